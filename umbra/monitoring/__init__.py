"""
Monitoring for Umbra Ledger.

Prometheus metrics for deposits, withdrawals and per-vault tree state.
"""

from umbra.monitoring.metrics import (
    LedgerOperation,
    MetricsRegistry,
    OperationOutcome,
    get_metrics_registry,
    initialize_metrics_registry,
)

__all__ = [
    "LedgerOperation",
    "MetricsRegistry",
    "OperationOutcome",
    "get_metrics_registry",
    "initialize_metrics_registry",
]
