"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Umbra, a product of Garudex Labs

Core components for Umbra Ledger.

This module contains the core primitives:
- Field element codec
- Poseidon field hash
- Commitment and nullifier registries
- Withdrawal proof verifiers
- The vault ledger (umbra.core.vault)
"""

from umbra.core.field import (
    FIELD_MODULUS,
    format_field_element,
    is_canonical,
    to_field_element,
)
from umbra.core.hashing import FieldHash, create_field_hash
from umbra.core.registry import CommitmentRegistry, NullifierRegistry

__all__ = [
    "FIELD_MODULUS",
    "CommitmentRegistry",
    "FieldHash",
    "NullifierRegistry",
    "create_field_hash",
    "format_field_element",
    "is_canonical",
    "to_field_element",
]
