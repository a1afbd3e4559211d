"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Umbra, a product of Garudex Labs

Event journal for Umbra Ledger.

An append-only JSON Lines file of ledger events. The journal is attached to a
VaultLedger as an event listener, so it is written after each operation
commits, and can later be scanned by depositors looking for their leaf index
or replayed to rebuild ledger state.
"""

import fcntl
import json
import os
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from umbra.core.field import to_field_element
from umbra.core.retry import retry_on_os_error
from umbra.events.models import DepositEvent, LedgerEvent, event_from_dict
from umbra.exceptions import InvalidFieldElementError, JournalReadError, JournalWriteError
from umbra.logging_config import get_logger

logger = get_logger(__name__)


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


@dataclass(frozen=True)
class JournalRecord:
    """
    One line of the journal.

    Attributes:
        event_id: Monotonically increasing id, starting at 1
        timestamp: ISO 8601 UTC time the record was written
        event: The ledger event
    """
    event_id: int
    timestamp: str
    event: LedgerEvent

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"event_id": self.event_id, "timestamp": self.timestamp}
        data.update(self.event.to_dict())
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JournalRecord":
        return cls(
            event_id=int(data["event_id"]),
            timestamp=data["timestamp"],
            event=event_from_dict(data),
        )

    def to_json_line(self) -> str:
        return json.dumps(self.to_dict(), separators=(',', ':'))


class EventJournal:
    """
    Appends ledger events to a JSON Lines file.

    Implements:
    - Append-only semantics (no updates or deletes)
    - Monotonically increasing event IDs, continued across restarts
    - Exclusive file locking and fsync per record
    - Retries with exponential backoff on transient OS errors
    - Records that still fail are kept and written before the next one

    Example:
        >>> journal = EventJournal("~/.umbra/events.jsonl")
        >>> ledger.add_listener(journal.append)
        >>> journal.find_deposit("eth", commitment).leaf_index
        0
    """

    def __init__(self, journal_path: str, fsync: bool = True, max_retries: int = 3):
        """
        Initialize EventJournal.

        Args:
            journal_path: Path to the journal file (JSON Lines format)
            fsync: Force each record to disk before returning
            max_retries: Retry attempts for a failed append
        """
        self.journal_path = Path(journal_path).expanduser()
        self.fsync = fsync
        self._lock = threading.Lock()
        self._next_event_id = 1
        self._pending: List[JournalRecord] = []
        self._append_with_retry = retry_on_os_error(
            max_retries=max_retries, base_delay=0.1, backoff_factor=2.0
        )(self._atomic_append)

        self.journal_path.parent.mkdir(parents=True, exist_ok=True)

        if not self.journal_path.exists():
            self.journal_path.touch()
            logger.info(f"Created new event journal at {self.journal_path}")
        else:
            self._initialize_event_id()
            logger.info(
                f"Loaded existing event journal from {self.journal_path}, "
                f"next event ID: {self._next_event_id}"
            )

    def append(self, event: LedgerEvent) -> JournalRecord:
        """
        Append a ledger event.

        Usable directly as a VaultLedger listener. A record that cannot be
        written is kept in memory with its event id and written ahead of the
        next event (or by flush()), so the file never skips or reorders an
        event the ledger committed.

        Returns:
            JournalRecord for the event

        Raises:
            JournalWriteError: If the write fails after all retries. The record
                stays pending.
        """
        with self._lock:
            record = JournalRecord(
                event_id=self._next_event_id,
                timestamp=_utc_timestamp(),
                event=event,
            )
            self._next_event_id += 1
            self._pending.append(record)
            self._write_pending()

        logger.debug(
            f"Journal write: event_id={record.event_id}, "
            f"type={event.event_type}, vault={event.vault_id}"
        )
        return record

    def flush(self) -> int:
        """
        Write records left pending by earlier failures.

        Returns:
            Number of records written

        Raises:
            JournalWriteError: If the write fails after all retries
        """
        with self._lock:
            count = len(self._pending)
            if count:
                self._write_pending()
                logger.info(f"Flushed {count} pending records to journal {self.journal_path}")
            return count

    @property
    def pending_count(self) -> int:
        """Records accepted by append() but not yet on disk."""
        with self._lock:
            return len(self._pending)

    def _write_pending(self) -> None:
        # Caller holds self._lock
        try:
            self._append_with_retry(self._pending)
        except OSError as e:
            logger.error(
                f"Failed to append to journal {self.journal_path}, "
                f"{len(self._pending)} records pending: {e}",
                exc_info=True
            )
            raise JournalWriteError(
                f"Failed to append event to journal {self.journal_path}: {e}"
            ) from e
        self._pending.clear()

    def _atomic_append(self, records: List[JournalRecord]) -> None:
        """Write records as one unit: on failure the file is cut back to its old end."""
        data = "".join(record.to_json_line() + '\n' for record in records).encode('utf-8')

        with open(self.journal_path, 'ab', buffering=0) as f:
            fcntl.flock(f.fileno(), fcntl.LOCK_EX)
            try:
                end = f.seek(0, os.SEEK_END)
                try:
                    view = memoryview(data)
                    while view:
                        view = view[f.write(view):]
                    if self.fsync:
                        os.fsync(f.fileno())
                except OSError:
                    f.truncate(end)
                    raise
            finally:
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)

    def _initialize_event_id(self) -> None:
        """Continue event IDs after the last record in an existing journal."""
        last_event_id = 0
        for record in self.read_records():
            last_event_id = record.event_id
        self._next_event_id = last_event_id + 1

    def read_records(
        self,
        vault_id: Optional[str] = None,
        event_type: Optional[str] = None,
    ) -> List[JournalRecord]:
        """
        Read journal records in file order with optional filters.

        Args:
            vault_id: Filter by vault (optional)
            event_type: Filter by event type, e.g. "deposit" (optional)

        Returns:
            List of matching JournalRecord objects

        Raises:
            JournalReadError: If the file cannot be read or a line is malformed
        """
        records = []

        try:
            with open(self.journal_path, 'r') as f:
                for line_num, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue

                    try:
                        record = JournalRecord.from_dict(json.loads(line))
                    except (ValueError, KeyError, TypeError, InvalidFieldElementError) as e:
                        logger.error(
                            f"Malformed record at line {line_num} of {self.journal_path}: {e}"
                        )
                        raise JournalReadError(
                            f"Malformed record at line {line_num} of {self.journal_path}: {e}"
                        ) from e

                    if vault_id is not None and record.event.vault_id != vault_id:
                        continue
                    if event_type is not None and record.event.event_type != event_type:
                        continue

                    records.append(record)
        except OSError as e:
            logger.error(f"Failed to read event journal {self.journal_path}: {e}", exc_info=True)
            raise JournalReadError(
                f"Failed to read event journal {self.journal_path}: {e}"
            ) from e

        return records

    def read_events(
        self,
        vault_id: Optional[str] = None,
        event_type: Optional[str] = None,
    ) -> List[LedgerEvent]:
        """Like read_records, returning only the events."""
        return [record.event for record in self.read_records(vault_id, event_type)]

    def find_deposit(self, vault_id: str, commitment: Any) -> Optional[DepositEvent]:
        """
        Scan for the deposit of a commitment.

        This is the lookup a depositor performs to learn the leaf index of
        their note before requesting a Merkle path.

        Returns:
            The DepositEvent, or None if the commitment was never deposited
        """
        commitment = to_field_element(commitment, "commitment")
        for event in self.read_events(vault_id=vault_id, event_type=DepositEvent.event_type):
            if event.commitment == commitment:
                return event
        return None
