"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Umbra, a product of Garudex Labs

Ledger event models.

Events are emitted by VaultLedger after an operation commits and are what
listeners (such as the event journal) receive. Field elements are rendered as
0x-prefixed 64-digit hex strings when serialized.
"""

from dataclasses import dataclass
from typing import Any, ClassVar, Dict, Type, Union

from umbra.core.field import format_field_element, to_field_element


@dataclass(frozen=True)
class VaultCreatedEvent:
    """A vault was created and its empty-tree root seeded into the window."""

    event_type: ClassVar[str] = "vault_created"

    vault_id: str
    depth: int
    root_history_size: int
    initial_root: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": self.event_type,
            "vault_id": self.vault_id,
            "depth": self.depth,
            "root_history_size": self.root_history_size,
            "initial_root": format_field_element(self.initial_root),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VaultCreatedEvent":
        return cls(
            vault_id=data["vault_id"],
            depth=int(data["depth"]),
            root_history_size=int(data["root_history_size"]),
            initial_root=to_field_element(data["initial_root"], "initial_root"),
        )


@dataclass(frozen=True)
class DepositEvent:
    """
    A commitment was inserted.

    The ledger keeps no commitment-to-index map; callers recover their leaf
    index by scanning these events.
    """

    event_type: ClassVar[str] = "deposit"

    vault_id: str
    commitment: int
    leaf_index: int
    new_root: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": self.event_type,
            "vault_id": self.vault_id,
            "commitment": format_field_element(self.commitment),
            "leaf_index": self.leaf_index,
            "new_root": format_field_element(self.new_root),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DepositEvent":
        return cls(
            vault_id=data["vault_id"],
            commitment=to_field_element(data["commitment"], "commitment"),
            leaf_index=int(data["leaf_index"]),
            new_root=to_field_element(data["new_root"], "new_root"),
        )


@dataclass(frozen=True)
class WithdrawalEvent:
    """A nullifier was spent and the release of funds authorized."""

    event_type: ClassVar[str] = "withdrawal"

    vault_id: str
    nullifier_hash: int
    recipient: int
    relayer: int
    fee: int
    root: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": self.event_type,
            "vault_id": self.vault_id,
            "nullifier_hash": format_field_element(self.nullifier_hash),
            "recipient": format_field_element(self.recipient),
            "relayer": format_field_element(self.relayer),
            "fee": format_field_element(self.fee),
            "root": format_field_element(self.root),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WithdrawalEvent":
        return cls(
            vault_id=data["vault_id"],
            nullifier_hash=to_field_element(data["nullifier_hash"], "nullifier_hash"),
            recipient=to_field_element(data["recipient"], "recipient"),
            relayer=to_field_element(data["relayer"], "relayer"),
            fee=to_field_element(data["fee"], "fee"),
            root=to_field_element(data["root"], "root"),
        )


LedgerEvent = Union[VaultCreatedEvent, DepositEvent, WithdrawalEvent]

EVENT_TYPES: Dict[str, Type] = {
    VaultCreatedEvent.event_type: VaultCreatedEvent,
    DepositEvent.event_type: DepositEvent,
    WithdrawalEvent.event_type: WithdrawalEvent,
}


def event_from_dict(data: Dict[str, Any]) -> LedgerEvent:
    """
    Rebuild a ledger event from its serialized form.

    Raises:
        ValueError: If the event type is unknown
        KeyError: If a required field is missing
    """
    event_type = data.get("event_type")
    event_cls = EVENT_TYPES.get(event_type)
    if event_cls is None:
        raise ValueError(f"Unknown event type: {event_type!r}")
    return event_cls.from_dict(data)
