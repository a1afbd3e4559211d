"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Umbra, a product of Garudex Labs

Vault ledger: deposits and withdrawals per asset pool.

Each vault owns one commitment tree, one root history window, one commitment
registry and one nullifier registry, all guarded by a single re-entrant lock.
Operations are all-or-nothing and totally ordered per vault:

- deposit: zero check, commitment registration, tree insert, root recorded
- withdraw: known root, unspent nullifier, proof check, nullifier marked
  spent, then (and only then) funds released

Events are delivered to listeners after the vault lock is released, in the
order the operations committed.
"""

import threading
import time
from abc import ABC, abstractmethod
from collections import deque
from contextlib import nullcontext
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from umbra.core.field import FieldLike, to_field_element
from umbra.core.hashing import FieldHash, create_field_hash
from umbra.core.registry import CommitmentRegistry, NullifierRegistry
from umbra.core.verifier import Verifier, create_verifier
from umbra.events.models import DepositEvent, LedgerEvent, VaultCreatedEvent, WithdrawalEvent
from umbra.exceptions import (
    CommitmentAlreadyUsedError,
    FundsReleaseFailedError,
    InvalidCommitmentError,
    InvalidFieldElementError,
    NullifierAlreadyUsedError,
    ProofVerificationFailedError,
    TreeFullError,
    UmbraError,
    UnknownMerkleRootError,
    UnknownVaultError,
    VaultAlreadyExistsError,
    VerifierConfigurationError,
)
from umbra.logging_config import (
    get_logger,
    log_deposit,
    log_deposit_rejected,
    log_vault_created,
    log_withdrawal,
    log_withdrawal_rejected,
    setup_logging,
)
from umbra.merkle.root_history import DEFAULT_ROOT_HISTORY_SIZE, RootHistoryWindow
from umbra.merkle.tree import IncrementalMerkleTree
from umbra.monitoring.metrics import LedgerOperation, MetricsRegistry

logger = get_logger(__name__)

DEFAULT_TREE_DEPTH = 20

EventListener = Callable[[LedgerEvent], None]

# Machine-readable rejection reasons for logs and metrics
_REJECTION_REASONS = {
    InvalidFieldElementError: "invalid_field_element",
    InvalidCommitmentError: "invalid_commitment",
    CommitmentAlreadyUsedError: "commitment_already_used",
    TreeFullError: "tree_full",
    UnknownMerkleRootError: "unknown_merkle_root",
    NullifierAlreadyUsedError: "nullifier_already_used",
    ProofVerificationFailedError: "proof_verification_failed",
    FundsReleaseFailedError: "funds_release_failed",
    VerifierConfigurationError: "verifier_not_configured",
}


def _rejection_reason(error: Exception) -> str:
    return _REJECTION_REASONS.get(type(error), type(error).__name__)


class FundsReleaser(ABC):
    """
    Moves funds out of a vault once a withdrawal is authorized.

    release() is called with the nullifier already marked spent. Raising
    undoes that mark and fails the withdrawal with FundsReleaseFailedError.
    """

    @abstractmethod
    def release(self, vault_id: str, recipient: int, relayer: int, fee: int) -> None:
        """
        Pay the withdrawal.

        Args:
            vault_id: Vault being withdrawn from
            recipient: Recipient identifier
            relayer: Relayer identifier (receives the fee)
            fee: Fee routed to the relayer
        """
        pass


@dataclass
class Vault:
    """State of one asset pool."""

    vault_id: str
    tree: IncrementalMerkleTree
    root_history: RootHistoryWindow
    commitments: CommitmentRegistry = field(default_factory=CommitmentRegistry)
    nullifiers: NullifierRegistry = field(default_factory=NullifierRegistry)
    lock: Any = field(default_factory=threading.RLock)
    # Committed events waiting for delivery, in commit order
    pending_events: deque = field(default_factory=deque)
    notify_lock: Any = field(default_factory=threading.RLock)


class VaultLedger:
    """
    Deposit/withdrawal ledger over independent per-asset vaults.

    Example:
        >>> ledger = VaultLedger(verifier=verifier)
        >>> ledger.create_vault("eth")
        >>> event = ledger.deposit("eth", commitment)
        >>> directions, siblings = ledger.get_merkle_path("eth", event.leaf_index)
        >>> ledger.withdraw("eth", proof, root, nullifier_hash, recipient)
    """

    def __init__(
        self,
        verifier: Optional[Verifier] = None,
        field_hash: Optional[FieldHash] = None,
        funds_releaser: Optional[FundsReleaser] = None,
        metrics: Optional[MetricsRegistry] = None,
        default_depth: int = DEFAULT_TREE_DEPTH,
        default_root_history_size: int = DEFAULT_ROOT_HISTORY_SIZE,
    ):
        """
        Initialize an empty ledger.

        Args:
            verifier: Withdrawal proof verifier (required for withdraw)
            field_hash: Node hash shared with the proof circuit (default: Poseidon)
            funds_releaser: Payment collaborator (default: none, the withdrawal
                event is the authorization)
            metrics: Optional metrics registry
            default_depth: Tree depth for vaults created without one
            default_root_history_size: Window size for vaults created without one
        """
        self.verifier = verifier
        self.field_hash = field_hash or FieldHash()
        self.funds_releaser = funds_releaser
        self.metrics = metrics
        self.default_depth = default_depth
        self.default_root_history_size = default_root_history_size

        self._vaults: Dict[str, Vault] = {}
        self._vaults_lock = threading.Lock()
        self._listeners: List[EventListener] = []

    @classmethod
    def from_config(
        cls,
        config,
        verifier: Optional[Verifier] = None,
        funds_releaser: Optional[FundsReleaser] = None,
        metrics: Optional[MetricsRegistry] = None,
    ) -> "VaultLedger":
        """
        Build a ledger from UmbraConfig.

        Applies the logging section first. The verifier is built from the
        verifier section when one is not given and a public key path is
        configured. The journal, when enabled, is attached as a listener
        before the configured vaults are created.
        """
        setup_logging(
            level=config.logging.level,
            log_file=config.logging.file or None,
            json_format=config.logging.json_format,
        )

        if verifier is None and config.verifier.public_key_path:
            verifier = create_verifier(config.verifier)

        if metrics is None and config.metrics.enabled:
            metrics = MetricsRegistry()

        ledger = cls(
            verifier=verifier,
            field_hash=create_field_hash(config.hash),
            funds_releaser=funds_releaser,
            metrics=metrics,
            default_depth=config.ledger.tree_depth,
            default_root_history_size=config.ledger.root_history_size,
        )

        if config.journal.enabled:
            from umbra.events.journal import EventJournal

            journal = EventJournal(
                config.journal.path,
                fsync=config.journal.fsync,
                max_retries=config.journal.max_retries,
            )
            ledger.add_listener(journal.append)

        for spec in config.ledger.vaults:
            ledger.create_vault(spec.asset_id, spec.depth, spec.root_history_size)

        return ledger

    # Listeners

    def add_listener(self, listener: EventListener) -> None:
        """
        Register a callable that receives every committed ledger event.

        Listeners run in registration order, outside the vault lock. Each
        listener sees the events of one vault in commit order.
        """
        with self._vaults_lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: EventListener) -> None:
        with self._vaults_lock:
            self._listeners.remove(listener)

    def _deliver_pending(self, vault: Vault) -> None:
        """
        Hand queued events to listeners, oldest first.

        Only one thread drains a vault's queue at a time. A thread that finds
        another one draining leaves its events to it and returns, so delivery
        never waits on a lock while the vault lock may be held (a releaser
        that deposits into its own vault).
        """
        while vault.pending_events:
            if not vault.notify_lock.acquire(blocking=False):
                return
            try:
                while vault.pending_events:
                    self._notify(vault.vault_id, vault.pending_events.popleft())
            finally:
                vault.notify_lock.release()

    def _notify(self, vault_id: str, event: LedgerEvent) -> None:
        with self._vaults_lock:
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(event)
            except Exception as e:
                # The operation is already committed; a listener cannot undo it
                logger.error(
                    f"Event listener {listener!r} failed for {event.event_type} "
                    f"in vault {vault_id}: {e}",
                    exc_info=True,
                )
                if self.metrics:
                    self.metrics.record_listener_failure(vault_id, event.event_type)

    # Vault management

    def create_vault(
        self,
        vault_id: str,
        depth: Optional[int] = None,
        root_history_size: Optional[int] = None,
    ) -> VaultCreatedEvent:
        """
        Create the vault for an asset.

        Args:
            vault_id: Asset identifier
            depth: Tree depth (default: ledger default)
            root_history_size: Known-root window size (default: ledger default)

        Returns:
            VaultCreatedEvent

        Raises:
            VaultAlreadyExistsError: If the asset already has a vault
            ValueError: If the id, depth or window size is invalid
        """
        if not isinstance(vault_id, str) or not vault_id:
            raise ValueError(f"Vault id must be a non-empty string, got {vault_id!r}")

        depth = self.default_depth if depth is None else depth
        root_history_size = (
            self.default_root_history_size if root_history_size is None else root_history_size
        )

        tree = IncrementalMerkleTree(depth, self.field_hash)
        vault = Vault(
            vault_id=vault_id,
            tree=tree,
            root_history=RootHistoryWindow(root_history_size, tree.current_root),
        )

        with self._vaults_lock:
            if vault_id in self._vaults:
                raise VaultAlreadyExistsError(f"Vault already exists: {vault_id}")
            self._vaults[vault_id] = vault

        event = VaultCreatedEvent(
            vault_id=vault_id,
            depth=depth,
            root_history_size=root_history_size,
            initial_root=tree.current_root,
        )

        with vault.lock:
            log_vault_created(logger, vault_id, depth, root_history_size, tree.current_root)
            if self.metrics:
                self.metrics.set_vault_state(vault_id, 0, len(vault.root_history.known_roots()))
            vault.pending_events.append(event)

        self._deliver_pending(vault)
        return event

    def vault_ids(self) -> List[str]:
        with self._vaults_lock:
            return list(self._vaults)

    def has_vault(self, vault_id: str) -> bool:
        with self._vaults_lock:
            return vault_id in self._vaults

    def _get_vault(self, vault_id: str) -> Vault:
        with self._vaults_lock:
            vault = self._vaults.get(vault_id)
        if vault is None:
            raise UnknownVaultError(f"Unknown vault: {vault_id}")
        return vault

    def _timed(self, operation: LedgerOperation):
        if self.metrics:
            return self.metrics.time_operation(operation)
        return nullcontext()

    # Deposit

    def deposit(self, vault_id: str, commitment: FieldLike) -> DepositEvent:
        """
        Insert a commitment into the vault's tree.

        Args:
            vault_id: Asset identifier
            commitment: Non-zero field element

        Returns:
            DepositEvent with the leaf index and new root

        Raises:
            UnknownVaultError: If the vault does not exist
            InvalidFieldElementError: If commitment is not canonical
            InvalidCommitmentError: If commitment is zero
            CommitmentAlreadyUsedError: If commitment was already deposited
            TreeFullError: If the tree holds 2^depth leaves
        """
        vault = self._get_vault(vault_id)
        start_time = time.time()

        with vault.lock:
            try:
                with self._timed(LedgerOperation.DEPOSIT):
                    event = self._deposit_locked(vault, commitment)
            except UmbraError as e:
                reason = _rejection_reason(e)
                log_deposit_rejected(logger, vault_id, reason, error=str(e))
                if self.metrics:
                    self.metrics.record_deposit_rejection(vault_id, reason)
                raise

            duration_ms = (time.time() - start_time) * 1000
            log_deposit(logger, vault_id, event.leaf_index, event.new_root, duration_ms)
            if self.metrics:
                self.metrics.record_deposit(
                    vault_id,
                    vault.tree.next_leaf_index,
                    len(vault.root_history.known_roots()),
                )

            vault.pending_events.append(event)

        self._deliver_pending(vault)
        return event

    def _deposit_locked(self, vault: Vault, commitment: FieldLike) -> DepositEvent:
        commitment = to_field_element(commitment, "commitment")

        if commitment == 0:
            raise InvalidCommitmentError("Commitment must be non-zero")

        if not vault.commitments.use(commitment):
            raise CommitmentAlreadyUsedError(
                f"Commitment already deposited into vault {vault.vault_id}"
            )

        try:
            leaf_index, new_root = vault.tree.insert(commitment)
        except Exception:
            vault.commitments.undo_use(commitment)
            raise

        vault.root_history.record(new_root)

        return DepositEvent(
            vault_id=vault.vault_id,
            commitment=commitment,
            leaf_index=leaf_index,
            new_root=new_root,
        )

    # Withdrawal

    def withdraw(
        self,
        vault_id: str,
        proof: bytes,
        root: FieldLike,
        nullifier_hash: FieldLike,
        recipient: FieldLike,
        relayer: FieldLike = 0,
        fee: FieldLike = 0,
    ) -> WithdrawalEvent:
        """
        Authorize a withdrawal.

        The nullifier is marked spent before funds are released. If the funds
        releaser raises, the mark is undone and nothing else has changed.

        Args:
            vault_id: Asset identifier
            proof: Proof bytes for the configured verifier
            root: Merkle root the proof was built against
            nullifier_hash: Nullifier hash of the spent note
            recipient: Recipient identifier
            relayer: Relayer identifier (default: 0, no relayer)
            fee: Fee routed to the relayer (default: 0)

        Returns:
            WithdrawalEvent

        Raises:
            UnknownVaultError: If the vault does not exist
            InvalidFieldElementError: If a field argument is not canonical
            VerifierConfigurationError: If the ledger has no verifier
            UnknownMerkleRootError: If root is not in the known-root window
            NullifierAlreadyUsedError: If the nullifier was already spent
            ProofVerificationFailedError: If the verifier rejects the proof
            FundsReleaseFailedError: If the funds releaser fails
        """
        vault = self._get_vault(vault_id)
        start_time = time.time()
        rendered_nullifier: Optional[int] = None

        with vault.lock:
            try:
                with self._timed(LedgerOperation.WITHDRAW):
                    nullifier = to_field_element(nullifier_hash, "nullifier_hash")
                    rendered_nullifier = nullifier
                    event = self._withdraw_locked(
                        vault, proof, root, nullifier, recipient, relayer, fee
                    )
            except UmbraError as e:
                reason = _rejection_reason(e)
                log_withdrawal_rejected(
                    logger, vault_id, reason, nullifier_hash=rendered_nullifier, error=str(e)
                )
                if self.metrics:
                    self.metrics.record_withdrawal_rejection(vault_id, reason)
                raise

            duration_ms = (time.time() - start_time) * 1000
            log_withdrawal(
                logger, vault_id, event.nullifier_hash, event.root, event.fee, duration_ms
            )
            if self.metrics:
                self.metrics.record_withdrawal(vault_id)

            vault.pending_events.append(event)

        self._deliver_pending(vault)
        return event

    def _withdraw_locked(
        self,
        vault: Vault,
        proof: bytes,
        root: FieldLike,
        nullifier_hash: int,
        recipient: FieldLike,
        relayer: FieldLike,
        fee: FieldLike,
    ) -> WithdrawalEvent:
        root = to_field_element(root, "root")
        recipient = to_field_element(recipient, "recipient")
        relayer = to_field_element(relayer, "relayer")
        fee = to_field_element(fee, "fee")

        if isinstance(proof, bytearray):
            proof = bytes(proof)
        if not isinstance(proof, bytes):
            raise ProofVerificationFailedError(
                f"Proof must be bytes, got {type(proof).__name__}"
            )

        if self.verifier is None:
            raise VerifierConfigurationError("No proof verifier configured for this ledger")

        if not vault.root_history.is_known(root):
            raise UnknownMerkleRootError(
                f"Root is not among the last {vault.root_history.size} roots of vault {vault.vault_id}"
            )

        if vault.nullifiers.contains(nullifier_hash):
            raise NullifierAlreadyUsedError("The note has already been spent")

        public_inputs = [root, nullifier_hash, recipient, relayer, fee]
        try:
            verified = self.verifier.verify(proof, public_inputs)
        except Exception as e:
            logger.error(f"Verifier raised while checking proof: {e}", exc_info=True)
            raise ProofVerificationFailedError(f"Verifier error: {e}") from e

        if verified is not True:
            raise ProofVerificationFailedError("Invalid withdraw proof")

        if not vault.nullifiers.use(nullifier_hash):
            raise NullifierAlreadyUsedError("The note has already been spent")

        if self.funds_releaser is not None:
            try:
                self.funds_releaser.release(vault.vault_id, recipient, relayer, fee)
            except Exception as e:
                vault.nullifiers.undo_use(nullifier_hash)
                logger.error(
                    f"Funds release failed for vault {vault.vault_id}, "
                    f"nullifier mark undone: {e}",
                    exc_info=True,
                )
                raise FundsReleaseFailedError(f"Funds release failed: {e}") from e

        return WithdrawalEvent(
            vault_id=vault.vault_id,
            nullifier_hash=nullifier_hash,
            recipient=recipient,
            relayer=relayer,
            fee=fee,
            root=root,
        )

    # Read-only queries

    def get_current_root(self, vault_id: str) -> int:
        vault = self._get_vault(vault_id)
        with vault.lock:
            return vault.tree.current_root

    def get_current_leaf_index(self, vault_id: str) -> int:
        """Index the next deposit will be inserted at (the leaf count)."""
        vault = self._get_vault(vault_id)
        with vault.lock:
            return vault.tree.next_leaf_index

    def get_tree_depth(self, vault_id: str) -> int:
        return self._get_vault(vault_id).tree.depth

    def is_known_root(self, vault_id: str, root: FieldLike) -> bool:
        root = to_field_element(root, "root")
        vault = self._get_vault(vault_id)
        with vault.lock:
            return vault.root_history.is_known(root)

    def is_commitment_used(self, vault_id: str, commitment: FieldLike) -> bool:
        commitment = to_field_element(commitment, "commitment")
        vault = self._get_vault(vault_id)
        # Under the lock: a registration undone by a failed deposit is never visible
        with vault.lock:
            return vault.commitments.contains(commitment)

    def is_nullifier_used(self, vault_id: str, nullifier_hash: FieldLike) -> bool:
        nullifier_hash = to_field_element(nullifier_hash, "nullifier_hash")
        vault = self._get_vault(vault_id)
        with vault.lock:
            return vault.nullifiers.contains(nullifier_hash)

    def get_root_history_length(self, vault_id: str) -> int:
        vault = self._get_vault(vault_id)
        with vault.lock:
            return vault.root_history.length()

    def get_known_roots(self, vault_id: str) -> List[int]:
        vault = self._get_vault(vault_id)
        with vault.lock:
            return vault.root_history.known_roots()

    def get_merkle_path(
        self,
        vault_id: str,
        leaf_index: int,
        tree_size: Optional[int] = None,
    ) -> Tuple[List[int], List[int]]:
        """
        Authentication path of a deposited leaf.

        Args:
            vault_id: Asset identifier
            leaf_index: Leaf index from the deposit event
            tree_size: Build against the root at this leaf count (default: current root)

        Returns:
            Tuple of (directions, siblings), leaf level first

        Raises:
            LeafIndexOutOfRangeError: If the leaf was never inserted
        """
        vault = self._get_vault(vault_id)
        with vault.lock:
            path = vault.tree.path_to(leaf_index, tree_size)
        return path.directions, path.siblings
