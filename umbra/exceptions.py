"""
Exception hierarchy for Umbra Ledger.

All custom exceptions inherit from UmbraError base class.
"""


class UmbraError(Exception):
    """Base exception for all Umbra Ledger errors."""
    pass


# Field Element Errors
class FieldError(UmbraError):
    """Base exception for field element errors."""
    pass


class InvalidFieldElementError(FieldError):
    """Raised when a value is not a canonical element of the scalar field."""
    pass


# Merkle Tree Errors
class TreeError(UmbraError):
    """Base exception for commitment tree errors."""
    pass


class TreeFullError(TreeError):
    """Raised when inserting into a tree that already holds 2^depth leaves."""
    pass


class InvalidLeafError(TreeError):
    """Raised when inserting the reserved zero leaf."""
    pass


class LeafIndexOutOfRangeError(TreeError):
    """Raised when a path is requested for a leaf that was never inserted."""
    pass


# Vault Errors
class VaultError(UmbraError):
    """Base exception for vault management errors."""
    pass


class UnknownVaultError(VaultError):
    """Raised when an operation names an asset with no vault."""
    pass


class VaultAlreadyExistsError(VaultError):
    """Raised when creating a vault for an asset that already has one."""
    pass


# Deposit Errors
class DepositError(UmbraError):
    """Base exception for rejected deposits."""
    pass


class InvalidCommitmentError(DepositError):
    """Raised when depositing the zero commitment."""
    pass


class CommitmentAlreadyUsedError(DepositError):
    """Raised when a commitment was already deposited into the vault."""
    pass


# Withdrawal Errors
class WithdrawalError(UmbraError):
    """Base exception for rejected withdrawals."""
    pass


class UnknownMerkleRootError(WithdrawalError):
    """Raised when the claimed root is not in the vault's root history window."""
    pass


class NullifierAlreadyUsedError(WithdrawalError):
    """Raised when the nullifier hash was already spent."""
    pass


class ProofVerificationFailedError(WithdrawalError):
    """Raised when the verifier rejects the withdrawal proof."""
    pass


class FundsReleaseFailedError(WithdrawalError):
    """Raised when the funds releaser fails; the withdrawal is rolled back."""
    pass


# Verifier Errors
class VerifierError(UmbraError):
    """Base exception for proof verifier errors."""
    pass


class VerifierConfigurationError(VerifierError):
    """Raised when a verifier backend cannot be built from configuration."""
    pass


# Configuration Errors
class ConfigurationError(UmbraError):
    """Base exception for configuration-related errors."""
    pass


class InvalidConfigurationError(ConfigurationError):
    """Raised when configuration is invalid or malformed."""
    pass


# Event Journal Errors
class JournalError(UmbraError):
    """Base exception for event journal errors."""
    pass


class JournalWriteError(JournalError):
    """Raised when appending to the event journal fails."""
    pass


class JournalReadError(JournalError):
    """Raised when the event journal cannot be read or parsed."""
    pass


class ReplayMismatchError(JournalError):
    """Raised when replayed state diverges from what the journal recorded."""
    pass
