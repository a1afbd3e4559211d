"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Umbra, a product of Garudex Labs

Withdrawal proof verification with pluggable backend support.

The ledger treats proof checking as an opaque predicate over a proof blob and
the five public inputs [merkle_root, nullifier_hash, recipient, relayer, fee].
Backends:
- AttestationVerifier: accepts ECDSA P-256 signatures issued by a trusted
  proving service over the encoded public inputs

The verifier backend is configured via the verifier.backend setting.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Sequence, Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec

from umbra.core.field import field_element_to_bytes, is_canonical
from umbra.exceptions import VerifierConfigurationError
from umbra.logging_config import get_logger

logger = get_logger(__name__)

# Domain tag prefixed to the signed public inputs
WITHDRAW_DOMAIN_TAG = b"umbra.withdraw.v1"

PUBLIC_INPUT_COUNT = 5


def encode_public_inputs(public_inputs: Sequence[int]) -> bytes:
    """
    Canonical byte encoding of withdrawal public inputs.

    Each input is a 32-byte big-endian field element, concatenated in order
    after the domain tag.

    Raises:
        ValueError: If there are not exactly five canonical inputs
    """
    if len(public_inputs) != PUBLIC_INPUT_COUNT:
        raise ValueError(
            f"Expected {PUBLIC_INPUT_COUNT} public inputs, got {len(public_inputs)}"
        )
    if not all(is_canonical(value) for value in public_inputs):
        raise ValueError("Public inputs must be canonical field elements")

    return WITHDRAW_DOMAIN_TAG + b"".join(
        field_element_to_bytes(value) for value in public_inputs
    )


class Verifier(ABC):
    """
    Abstract base class for withdrawal proof verifiers.

    Implementations must be pure with respect to ledger state and must return
    False, never raise, for malformed proofs.
    """

    @abstractmethod
    def verify(self, proof: bytes, public_inputs: Sequence[int]) -> bool:
        """
        Check a proof against the withdrawal public inputs.

        Args:
            proof: Opaque proof bytes
            public_inputs: [merkle_root, nullifier_hash, recipient, relayer, fee]

        Returns:
            True if the proof is valid for exactly these inputs
        """
        pass


def _load_public_key(public_key_path: Union[str, Path]) -> ec.EllipticCurvePublicKey:
    key_path = Path(public_key_path).expanduser()

    if not key_path.exists():
        raise VerifierConfigurationError(f"Verifier public key file not found: {key_path}")

    with open(key_path, 'rb') as f:
        key_data = f.read()

    try:
        public_key = serialization.load_pem_public_key(key_data)
    except ValueError as e:
        raise VerifierConfigurationError(f"Failed to load verifier public key: {e}") from e

    if not isinstance(public_key, ec.EllipticCurvePublicKey):
        raise VerifierConfigurationError(f"Key is not an ECDSA key, got {type(public_key)}")

    if not isinstance(public_key.curve, ec.SECP256R1):
        raise VerifierConfigurationError(f"Key is not P-256 curve, got {type(public_key.curve)}")

    return public_key


class AttestationVerifier(Verifier):
    """
    Verifier backed by a trusted proving service.

    The service checks the zero-knowledge proof off-ledger and, if it holds,
    signs the encoded public inputs with its P-256 key. The "proof" handed to
    the ledger is that DER signature.

    Example:
        >>> verifier = AttestationVerifier.from_pem_file("/path/to/prover.pub.pem")
        >>> verifier.verify(signature, [root, nullifier_hash, recipient, relayer, fee])
        True
    """

    def __init__(self, public_key: ec.EllipticCurvePublicKey):
        if not isinstance(public_key, ec.EllipticCurvePublicKey) or not isinstance(
            public_key.curve, ec.SECP256R1
        ):
            raise VerifierConfigurationError("AttestationVerifier requires an ECDSA P-256 public key")
        self._public_key = public_key

    @classmethod
    def from_pem_file(cls, public_key_path: Union[str, Path]) -> "AttestationVerifier":
        """
        Load the proving service key from a PEM file.

        Raises:
            VerifierConfigurationError: If the file is missing or not a P-256 public key
        """
        public_key = _load_public_key(public_key_path)
        logger.info(f"Loaded attestation verifier key from {public_key_path}")
        return cls(public_key)

    def verify(self, proof: bytes, public_inputs: Sequence[int]) -> bool:
        if not isinstance(proof, bytes) or not proof:
            logger.debug("Rejecting empty or non-bytes proof")
            return False

        try:
            message = encode_public_inputs(public_inputs)
        except (TypeError, ValueError) as e:
            logger.debug(f"Rejecting malformed public inputs: {e}")
            return False

        try:
            self._public_key.verify(proof, message, ec.ECDSA(hashes.SHA256()))
            return True
        except (InvalidSignature, ValueError):
            # Malformed DER surfaces as ValueError on some backends
            return False

    def get_public_key_pem(self) -> bytes:
        return self._public_key.public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )


class AttestationSigner:
    """
    Proving-service side of the attestation scheme.

    Signs the encoded public inputs of a withdrawal whose proof the service
    has already checked.
    """

    def __init__(self, private_key: ec.EllipticCurvePrivateKey):
        if not isinstance(private_key, ec.EllipticCurvePrivateKey) or not isinstance(
            private_key.curve, ec.SECP256R1
        ):
            raise VerifierConfigurationError("AttestationSigner requires an ECDSA P-256 private key")
        self._private_key = private_key

    @classmethod
    def from_pem_file(
        cls, private_key_path: Union[str, Path], password: bytes = None
    ) -> "AttestationSigner":
        key_path = Path(private_key_path).expanduser()
        if not key_path.exists():
            raise VerifierConfigurationError(f"Signing key file not found: {key_path}")

        with open(key_path, 'rb') as f:
            key_data = f.read()

        try:
            private_key = serialization.load_pem_private_key(key_data, password=password)
        except (TypeError, ValueError) as e:
            raise VerifierConfigurationError(f"Failed to load signing key: {e}") from e

        return cls(private_key)

    def sign(self, public_inputs: Sequence[int]) -> bytes:
        """Return a DER signature over the encoded public inputs."""
        return self._private_key.sign(
            encode_public_inputs(public_inputs),
            ec.ECDSA(hashes.SHA256()),
        )

    def public_key(self) -> ec.EllipticCurvePublicKey:
        return self._private_key.public_key()


def create_verifier(config) -> Verifier:
    """
    Factory function to create the verifier named in configuration.

    Args:
        config: Verifier configuration with backend and public_key_path settings

    Returns:
        Verifier implementation

    Raises:
        VerifierConfigurationError: If the backend is unknown or misconfigured
    """
    backend = getattr(config, 'backend', 'attestation')

    if backend == "attestation":
        public_key_path = getattr(config, 'public_key_path', None)
        if not public_key_path:
            raise VerifierConfigurationError(
                "public_key_path is required for the attestation verifier backend"
            )
        return AttestationVerifier.from_pem_file(public_key_path)

    raise VerifierConfigurationError(f"Invalid verifier backend: {backend}")
