"""
Logging configuration for Umbra Ledger.

Provides centralized structured logging setup with JSON output for production
and human-readable output for development. Supports correlation IDs for
tracing a single deposit or withdrawal across components.
"""

import logging
import sys
import uuid
from contextvars import ContextVar
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
from structlog.types import EventDict


# Context variable for correlation ID
correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)


def add_correlation_id(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Add correlation ID to log events if present in context.

    Args:
        logger: Logger instance
        method_name: Name of the logging method
        event_dict: Event dictionary to modify

    Returns:
        Modified event dictionary with correlation_id if available
    """
    correlation_id = correlation_id_var.get()
    if correlation_id:
        event_dict["correlation_id"] = correlation_id
    return event_dict


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    """
    Set correlation ID for the current context.

    Args:
        correlation_id: Optional correlation ID. If None, generates a new UUID.

    Returns:
        The correlation ID that was set
    """
    if correlation_id is None:
        correlation_id = str(uuid.uuid4())
    correlation_id_var.set(correlation_id)
    return correlation_id


def clear_correlation_id() -> None:
    """Clear correlation ID from the current context."""
    correlation_id_var.set(None)


def get_correlation_id() -> Optional[str]:
    """
    Get the current correlation ID from context.

    Returns:
        Current correlation ID or None if not set
    """
    return correlation_id_var.get()


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    json_format: bool = True,
) -> None:
    """
    Configure structured logging for Umbra Ledger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path to log file. If None, logs only to stderr.
        json_format: If True, use JSON format. If False, use human-readable format.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Clear existing handlers to avoid duplicates
    root_logger.handlers.clear()

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(logging.Formatter("%(message)s"))
        root_logger.addHandler(file_handler)
    else:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setLevel(numeric_level)
        stderr_handler.setFormatter(logging.Formatter("%(message)s"))
        root_logger.addHandler(stderr_handler)

    processors: list = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        add_correlation_id,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance for a specific module.

    Args:
        name: Logger name (typically __name__ of the module).

    Returns:
        Structured logger instance.
    """
    return structlog.get_logger(name)


def _hex(value: int) -> str:
    # umbra.core imports this module while it initializes
    from umbra.core.field import format_field_element
    return format_field_element(value)


# Convenience functions for ledger logging patterns

def log_vault_created(
    logger: structlog.stdlib.BoundLogger,
    vault_id: str,
    depth: int,
    root_history_size: int,
    initial_root: int,
    **kwargs: Any,
) -> None:
    """
    Log creation of a vault.

    Args:
        logger: Logger instance
        vault_id: Asset identifier of the vault
        depth: Commitment tree depth
        root_history_size: Size of the known-root window
        initial_root: Empty-tree root seeded into the window
        **kwargs: Additional context to log
    """
    log_data: Dict[str, Any] = {
        "event_type": "vault_created",
        "vault_id": vault_id,
        "depth": depth,
        "root_history_size": root_history_size,
        "initial_root": _hex(initial_root),
    }
    log_data.update(kwargs)

    logger.info("vault_created", **log_data)


def log_deposit(
    logger: structlog.stdlib.BoundLogger,
    vault_id: str,
    leaf_index: int,
    new_root: int,
    duration_ms: float,
    **kwargs: Any,
) -> None:
    """
    Log an accepted deposit.

    The commitment is not logged, only the public leaf index and root.

    Args:
        logger: Logger instance
        vault_id: Asset identifier of the vault
        leaf_index: Index the commitment was inserted at
        new_root: Tree root after insertion
        duration_ms: Operation duration in milliseconds
        **kwargs: Additional context to log
    """
    log_data: Dict[str, Any] = {
        "event_type": "deposit",
        "vault_id": vault_id,
        "leaf_index": leaf_index,
        "new_root": _hex(new_root),
        "duration_ms": duration_ms,
    }
    log_data.update(kwargs)

    logger.info("deposit", **log_data)


def log_deposit_rejected(
    logger: structlog.stdlib.BoundLogger,
    vault_id: str,
    reason: str,
    **kwargs: Any,
) -> None:
    """
    Log a rejected deposit.

    Args:
        logger: Logger instance
        vault_id: Asset identifier of the vault
        reason: Short machine-readable rejection reason
        **kwargs: Additional context to log
    """
    log_data: Dict[str, Any] = {
        "event_type": "deposit_rejected",
        "vault_id": vault_id,
        "reason": reason,
    }
    log_data.update(kwargs)

    logger.warning("deposit_rejected", **log_data)


def log_withdrawal(
    logger: structlog.stdlib.BoundLogger,
    vault_id: str,
    nullifier_hash: int,
    root: int,
    fee: int,
    duration_ms: float,
    **kwargs: Any,
) -> None:
    """
    Log an authorized withdrawal.

    Args:
        logger: Logger instance
        vault_id: Asset identifier of the vault
        nullifier_hash: Nullifier hash marked spent
        root: Merkle root the proof was checked against
        fee: Fee routed to the relayer
        duration_ms: Operation duration in milliseconds
        **kwargs: Additional context to log
    """
    log_data: Dict[str, Any] = {
        "event_type": "withdrawal",
        "vault_id": vault_id,
        "nullifier_hash": _hex(nullifier_hash),
        "root": _hex(root),
        "fee": fee,
        "duration_ms": duration_ms,
    }
    log_data.update(kwargs)

    logger.info("withdrawal", **log_data)


def log_withdrawal_rejected(
    logger: structlog.stdlib.BoundLogger,
    vault_id: str,
    reason: str,
    nullifier_hash: Optional[int] = None,
    **kwargs: Any,
) -> None:
    """
    Log a rejected withdrawal.

    Args:
        logger: Logger instance
        vault_id: Asset identifier of the vault
        reason: Short machine-readable rejection reason
        nullifier_hash: Nullifier hash if it was valid enough to render
        **kwargs: Additional context to log
    """
    log_data: Dict[str, Any] = {
        "event_type": "withdrawal_rejected",
        "vault_id": vault_id,
        "reason": reason,
    }

    if nullifier_hash is not None:
        log_data["nullifier_hash"] = _hex(nullifier_hash)

    log_data.update(kwargs)

    logger.warning("withdrawal_rejected", **log_data)


def log_journal_replay(
    logger: structlog.stdlib.BoundLogger,
    journal_path: str,
    events_replayed: int,
    vault_count: int,
    success: bool,
    failure_reason: Optional[str] = None,
    **kwargs: Any,
) -> None:
    """
    Log a journal replay.

    Args:
        logger: Logger instance
        journal_path: Path of the replayed journal
        events_replayed: Number of events applied
        vault_count: Number of vaults rebuilt
        success: Whether replay matched every recorded event
        failure_reason: Reason for failure if not successful
        **kwargs: Additional context to log
    """
    log_data: Dict[str, Any] = {
        "event_type": "journal_replay",
        "journal_path": journal_path,
        "events_replayed": events_replayed,
        "vault_count": vault_count,
        "success": success,
    }

    if failure_reason is not None:
        log_data["failure_reason"] = failure_reason

    log_data.update(kwargs)

    if success:
        logger.info("journal_replay", **log_data)
    else:
        logger.error("journal_replay_failed", **log_data)
