"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Umbra, a product of Garudex Labs

Rebuild a VaultLedger from its event journal.

Every recorded event is re-applied through the normal ledger operations, so
the rebuilt state passes the same checks the live ledger enforced. Each
deposit's leaf index and root, and each vault's initial root, are compared
with what was recorded; any divergence fails the replay.
"""

from typing import Optional, Sequence, Tuple, Union

from umbra.core.hashing import FieldHash
from umbra.core.vault import FundsReleaser, VaultLedger
from umbra.core.verifier import Verifier
from umbra.events.journal import EventJournal, JournalRecord
from umbra.events.models import DepositEvent, VaultCreatedEvent, WithdrawalEvent
from umbra.exceptions import ReplayMismatchError, UmbraError
from umbra.logging_config import get_logger, log_journal_replay
from umbra.monitoring.metrics import MetricsRegistry

logger = get_logger(__name__)


class _RecordedWithdrawalVerifier(Verifier):
    """Accepts exactly the public inputs of the withdrawal being replayed."""

    def __init__(self):
        self.expected: Optional[Tuple[int, ...]] = None

    def verify(self, proof: bytes, public_inputs: Sequence[int]) -> bool:
        return self.expected is not None and tuple(public_inputs) == self.expected


def replay_journal(
    journal: Union[EventJournal, str],
    field_hash: Optional[FieldHash] = None,
    verifier: Optional[Verifier] = None,
    funds_releaser: Optional[FundsReleaser] = None,
    metrics: Optional[MetricsRegistry] = None,
) -> VaultLedger:
    """
    Rebuild ledger state from a journal.

    Withdrawals are replayed without paying anyone; the verifier and funds
    releaser passed in are installed on the returned ledger afterwards.

    Args:
        journal: EventJournal or path to a journal file
        field_hash: Hash the journal was produced with (default: Poseidon)
        verifier: Verifier for the rebuilt ledger
        funds_releaser: Funds releaser for the rebuilt ledger
        metrics: Metrics registry for the rebuilt ledger

    Returns:
        VaultLedger whose vaults match the journal

    Raises:
        ReplayMismatchError: If the journal is out of order or replayed
            state diverges from a recorded event
        JournalReadError: If the journal cannot be read
    """
    if not isinstance(journal, EventJournal):
        journal = EventJournal(journal)

    journal_path = str(journal.journal_path)
    replay_verifier = _RecordedWithdrawalVerifier()
    ledger = VaultLedger(verifier=replay_verifier, field_hash=field_hash, metrics=metrics)

    events_replayed = 0
    last_event_id = 0
    try:
        for record in journal.read_records():
            if record.event_id <= last_event_id:
                raise ReplayMismatchError(
                    f"Event ids out of order: {record.event_id} after {last_event_id}"
                )
            last_event_id = record.event_id

            _apply_record(ledger, replay_verifier, record)
            events_replayed += 1
    except ReplayMismatchError as e:
        log_journal_replay(
            logger, journal_path, events_replayed, len(ledger.vault_ids()),
            success=False, failure_reason=str(e),
        )
        raise

    ledger.verifier = verifier
    ledger.funds_releaser = funds_releaser

    log_journal_replay(
        logger, journal_path, events_replayed, len(ledger.vault_ids()), success=True
    )
    return ledger


def _apply_record(
    ledger: VaultLedger,
    replay_verifier: _RecordedWithdrawalVerifier,
    record: JournalRecord,
) -> None:
    event = record.event
    try:
        if isinstance(event, VaultCreatedEvent):
            _replay_vault_created(ledger, record.event_id, event)
        elif isinstance(event, DepositEvent):
            _replay_deposit(ledger, record.event_id, event)
        elif isinstance(event, WithdrawalEvent):
            _replay_withdrawal(ledger, replay_verifier, event)
    except ReplayMismatchError:
        raise
    except UmbraError as e:
        raise ReplayMismatchError(
            f"Event {record.event_id} ({event.event_type}) was rejected on replay: {e}"
        ) from e


def _replay_vault_created(ledger: VaultLedger, event_id: int, event: VaultCreatedEvent) -> None:
    try:
        replayed = ledger.create_vault(event.vault_id, event.depth, event.root_history_size)
    except ValueError as e:
        raise ReplayMismatchError(f"Event {event_id} has invalid vault parameters: {e}") from e

    if replayed.initial_root != event.initial_root:
        raise ReplayMismatchError(
            f"Event {event_id}: initial root of vault {event.vault_id} differs from the "
            f"recorded one; the journal was produced with a different hash"
        )


def _replay_deposit(ledger: VaultLedger, event_id: int, event: DepositEvent) -> None:
    replayed = ledger.deposit(event.vault_id, event.commitment)

    if replayed.leaf_index != event.leaf_index:
        raise ReplayMismatchError(
            f"Event {event_id}: deposit landed at leaf {replayed.leaf_index}, "
            f"journal recorded {event.leaf_index}"
        )
    if replayed.new_root != event.new_root:
        raise ReplayMismatchError(
            f"Event {event_id}: root after leaf {event.leaf_index} differs from the recorded root"
        )


def _replay_withdrawal(
    ledger: VaultLedger,
    replay_verifier: _RecordedWithdrawalVerifier,
    event: WithdrawalEvent,
) -> None:
    replay_verifier.expected = (
        event.root,
        event.nullifier_hash,
        event.recipient,
        event.relayer,
        event.fee,
    )
    try:
        ledger.withdraw(
            event.vault_id,
            b"replay",
            event.root,
            event.nullifier_hash,
            event.recipient,
            event.relayer,
            event.fee,
        )
    finally:
        replay_verifier.expected = None
