"""
Pytest configuration and shared fixtures for Umbra Ledger tests.
"""

import os
import tempfile
from pathlib import Path
from typing import Generator, List, Optional, Sequence

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from umbra.core.field import FIELD_MODULUS
from umbra.core.hashing import FieldHash
from umbra.core.vault import VaultLedger
from umbra.core.verifier import AttestationSigner, AttestationVerifier, Verifier


def toy_hash2(left: int, right: int) -> int:
    """Cheap, order-sensitive stand-in for Poseidon in structural tree tests."""
    return (left * 3 + right * 7 + 1) % FIELD_MODULUS


class RecordingVerifier(Verifier):
    """Accepts proofs equal to `accepted_proof` and records every call."""

    def __init__(self, accepted_proof: bytes = b"valid-proof"):
        self.accepted_proof = accepted_proof
        self.calls: List[tuple] = []

    def verify(self, proof: bytes, public_inputs: Sequence[int]) -> bool:
        self.calls.append((proof, list(public_inputs)))
        return proof == self.accepted_proof


def _create_test_ecdsa_key(directory: Path) -> Path:
    """
    Create a test ECDSA P-256 private key for the proving service.

    Args:
        directory: Directory to create the key in.

    Returns:
        Path to test private key file (PEM format).
    """
    private_key = ec.generate_private_key(ec.SECP256R1())

    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption()
    )

    key_path = directory / "prover_key.pem"
    key_path.write_bytes(private_pem)

    return key_path


def _write_public_key(private_key_path: Path) -> Path:
    private_key = serialization.load_pem_private_key(private_key_path.read_bytes(), password=None)
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    public_path = private_key_path.with_name("prover_key.pub.pem")
    public_path.write_bytes(public_pem)
    return public_path


def create_test_config_content(
    temp_dir: Path,
    public_key_path: Optional[Path] = None,
    journal_enabled: bool = False,
    tree_depth: int = 20,
    root_history_size: int = 30,
) -> str:
    """
    Generate test configuration YAML content.

    Args:
        temp_dir: Temporary directory for journal and log paths.
        public_key_path: Optional verifier public key path.
        journal_enabled: Whether to enable the event journal.
        tree_depth: Default tree depth.
        root_history_size: Default known-root window size.

    Returns:
        YAML configuration content as string.
    """
    return f"""
ledger:
  tree_depth: {tree_depth}
  root_history_size: {root_history_size}
  vaults:
    - eth
    - asset_id: usdc
      depth: 8
      root_history_size: 5

hash:
  backend: poseidon

verifier:
  backend: attestation
  public_key_path: "{public_key_path or ''}"

journal:
  enabled: {str(journal_enabled).lower()}
  path: {temp_dir}/events.jsonl
  fsync: true

logging:
  level: INFO
  file: {temp_dir}/umbra.log

metrics:
  enabled: true
"""


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """
    Create a temporary directory for test files.

    Yields:
        Path to temporary directory that is cleaned up after test.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def write_config(temp_dir: Path):
    """
    Factory writing a test config.yaml into temp_dir.

    Keyword arguments are passed to create_test_config_content.
    """
    def _write(**kwargs) -> Path:
        config_path = temp_dir / "config.yaml"
        config_path.write_text(create_test_config_content(temp_dir, **kwargs))
        return config_path

    return _write


@pytest.fixture
def prover_key(temp_dir: Path) -> Path:
    """Path to a fresh P-256 proving-service private key."""
    return _create_test_ecdsa_key(temp_dir)


@pytest.fixture
def prover_public_key(prover_key: Path) -> Path:
    """Path to the PEM public key matching prover_key."""
    return _write_public_key(prover_key)


@pytest.fixture
def attestation_signer(prover_key: Path) -> AttestationSigner:
    return AttestationSigner.from_pem_file(prover_key)


@pytest.fixture
def attestation_verifier(prover_public_key: Path) -> AttestationVerifier:
    return AttestationVerifier.from_pem_file(prover_public_key)


@pytest.fixture(scope="session")
def poseidon_hash() -> FieldHash:
    """Session-wide Poseidon FieldHash so empty subtree values are computed once."""
    return FieldHash(name="poseidon")


@pytest.fixture
def toy_hash() -> FieldHash:
    return FieldHash(toy_hash2, name="toy")


@pytest.fixture
def recording_verifier() -> RecordingVerifier:
    return RecordingVerifier()


@pytest.fixture
def ledger(toy_hash: FieldHash, recording_verifier: RecordingVerifier) -> VaultLedger:
    """Ledger with one depth-4 vault "eth" over the toy hash."""
    vault_ledger = VaultLedger(
        verifier=recording_verifier,
        field_hash=toy_hash,
        default_depth=4,
        default_root_history_size=3,
    )
    vault_ledger.create_vault("eth")
    return vault_ledger


# Hypothesis settings for property-based tests
from hypothesis import settings, Verbosity

settings.register_profile("umbra", max_examples=50, deadline=None, verbosity=Verbosity.normal)
settings.register_profile("umbra-ci", max_examples=500, deadline=None, verbosity=Verbosity.verbose)
settings.register_profile("umbra-dev", max_examples=10, deadline=None, verbosity=Verbosity.verbose)

# Load profile from environment or use default
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "umbra"))
