"""
Prometheus metrics for Umbra Ledger.

This module provides metrics for monitoring:
- Deposits and withdrawals (accepted count, rejections by reason)
- Operation duration
- Tree fill level and known-root window size per vault
- Event listener failures
"""

import time
from contextlib import contextmanager
from enum import Enum
from typing import Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from umbra.logging_config import get_logger

logger = get_logger(__name__)


class LedgerOperation(str, Enum):
    """Ledger operation types for metrics."""
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"


class OperationOutcome(str, Enum):
    """Operation outcomes for metrics."""
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class MetricsRegistry:
    """
    Central registry for all Umbra Prometheus metrics.

    Every metric is bound to the registry passed in (or a fresh one), so
    independent ledgers and tests never collide on metric names.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """
        Initialize metrics registry.

        Args:
            registry: Optional Prometheus CollectorRegistry (creates new if not provided)
        """
        self.registry = registry or CollectorRegistry()

        self.deposits_total = Counter(
            'umbra_deposits_total',
            'Total number of accepted deposits',
            ['vault'],
            registry=self.registry
        )

        self.deposit_rejections_total = Counter(
            'umbra_deposit_rejections_total',
            'Total number of rejected deposits',
            ['vault', 'reason'],
            registry=self.registry
        )

        self.withdrawals_total = Counter(
            'umbra_withdrawals_total',
            'Total number of authorized withdrawals',
            ['vault'],
            registry=self.registry
        )

        self.withdrawal_rejections_total = Counter(
            'umbra_withdrawal_rejections_total',
            'Total number of rejected withdrawals',
            ['vault', 'reason'],
            registry=self.registry
        )

        self.operation_duration_seconds = Histogram(
            'umbra_operation_duration_seconds',
            'Ledger operation duration in seconds',
            ['operation', 'outcome'],
            buckets=(0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
            registry=self.registry
        )

        self.listener_failures_total = Counter(
            'umbra_listener_failures_total',
            'Total number of event listener failures',
            ['vault', 'event_type'],
            registry=self.registry
        )

        self.leaf_count = Gauge(
            'umbra_leaf_count',
            'Number of commitments inserted into the vault tree',
            ['vault'],
            registry=self.registry
        )

        self.known_roots = Gauge(
            'umbra_known_roots',
            'Number of roots currently accepted for withdrawals',
            ['vault'],
            registry=self.registry
        )

    def record_deposit(self, vault_id: str, leaf_count: int, known_roots: int):
        """
        Record an accepted deposit.

        Args:
            vault_id: Vault the deposit went into
            leaf_count: Leaf count after the deposit
            known_roots: Size of the known-root window after the deposit
        """
        self.deposits_total.labels(vault=vault_id).inc()
        self.leaf_count.labels(vault=vault_id).set(leaf_count)
        self.known_roots.labels(vault=vault_id).set(known_roots)

    def record_deposit_rejection(self, vault_id: str, reason: str):
        self.deposit_rejections_total.labels(vault=vault_id, reason=reason).inc()

    def record_withdrawal(self, vault_id: str):
        self.withdrawals_total.labels(vault=vault_id).inc()

    def record_withdrawal_rejection(self, vault_id: str, reason: str):
        self.withdrawal_rejections_total.labels(vault=vault_id, reason=reason).inc()

    def record_listener_failure(self, vault_id: str, event_type: str):
        self.listener_failures_total.labels(vault=vault_id, event_type=event_type).inc()

    def set_vault_state(self, vault_id: str, leaf_count: int, known_roots: int):
        """Set the per-vault gauges, e.g. right after vault creation."""
        self.leaf_count.labels(vault=vault_id).set(leaf_count)
        self.known_roots.labels(vault=vault_id).set(known_roots)

    def record_operation_duration(
        self,
        operation: LedgerOperation,
        outcome: OperationOutcome,
        duration_seconds: float,
    ):
        self.operation_duration_seconds.labels(
            operation=operation.value,
            outcome=outcome.value,
        ).observe(duration_seconds)

    @contextmanager
    def time_operation(self, operation: LedgerOperation):
        """
        Context manager to time a ledger operation.

        The outcome is "rejected" if the body raises, "accepted" otherwise.

        Args:
            operation: Operation being timed
        """
        start_time = time.time()
        outcome = OperationOutcome.REJECTED
        try:
            yield
            outcome = OperationOutcome.ACCEPTED
        finally:
            self.record_operation_duration(operation, outcome, time.time() - start_time)

    # Metrics Export

    def generate_metrics(self) -> bytes:
        """
        Generate Prometheus metrics in text format.

        Returns:
            Metrics in Prometheus text format
        """
        return generate_latest(self.registry)

    def get_content_type(self) -> str:
        return CONTENT_TYPE_LATEST


# Global metrics registry instance
_metrics_registry: Optional[MetricsRegistry] = None


def get_metrics_registry() -> MetricsRegistry:
    """
    Get global metrics registry instance.

    Returns:
        MetricsRegistry singleton instance

    Raises:
        RuntimeError: If metrics registry not initialized
    """
    global _metrics_registry
    if _metrics_registry is None:
        raise RuntimeError(
            "Metrics registry not initialized. "
            "Call initialize_metrics_registry() first."
        )
    return _metrics_registry


def initialize_metrics_registry(registry: Optional[CollectorRegistry] = None) -> MetricsRegistry:
    """
    Initialize global metrics registry.

    Args:
        registry: Optional Prometheus CollectorRegistry

    Returns:
        Initialized MetricsRegistry
    """
    global _metrics_registry
    if _metrics_registry is not None:
        logger.warning("Metrics registry already initialized, reinitializing")

    _metrics_registry = MetricsRegistry(registry)
    logger.info("Global metrics registry initialized")
    return _metrics_registry
