"""
Ledger events and the event journal.

Replay lives in umbra.events.replay and is imported from there directly.
"""

from umbra.events.journal import EventJournal, JournalRecord
from umbra.events.models import (
    DepositEvent,
    LedgerEvent,
    VaultCreatedEvent,
    WithdrawalEvent,
    event_from_dict,
)

__all__ = [
    "DepositEvent",
    "EventJournal",
    "JournalRecord",
    "LedgerEvent",
    "VaultCreatedEvent",
    "WithdrawalEvent",
    "event_from_dict",
]
