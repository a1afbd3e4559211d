"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Umbra, a product of Garudex Labs

Unit tests for withdrawal proof verifiers.
"""

from pathlib import Path
from types import SimpleNamespace

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa

from umbra.core.field import FIELD_MODULUS
from umbra.core.verifier import (
    WITHDRAW_DOMAIN_TAG,
    AttestationSigner,
    AttestationVerifier,
    create_verifier,
    encode_public_inputs,
)
from umbra.exceptions import VerifierConfigurationError


INPUTS = [11, 22, 33, 44, 55]


class TestEncodePublicInputs:

    def test_layout(self):
        encoded = encode_public_inputs(INPUTS)
        assert encoded.startswith(WITHDRAW_DOMAIN_TAG)
        body = encoded[len(WITHDRAW_DOMAIN_TAG):]
        assert len(body) == 5 * 32
        assert int.from_bytes(body[32:64], "big") == 22

    def test_wrong_count(self):
        with pytest.raises(ValueError, match="Expected 5"):
            encode_public_inputs([1, 2, 3])

    def test_non_canonical_input(self):
        with pytest.raises(ValueError, match="canonical"):
            encode_public_inputs([1, 2, 3, 4, FIELD_MODULUS])


class TestAttestationVerifier:

    def test_valid_signature(self, attestation_signer, attestation_verifier):
        proof = attestation_signer.sign(INPUTS)
        assert attestation_verifier.verify(proof, INPUTS) is True

    def test_signature_bound_to_every_input(self, attestation_signer, attestation_verifier):
        proof = attestation_signer.sign(INPUTS)
        for position in range(5):
            changed = list(INPUTS)
            changed[position] += 1
            assert attestation_verifier.verify(proof, changed) is False

    def test_foreign_key_rejected(self, attestation_verifier):
        other = AttestationSigner(ec.generate_private_key(ec.SECP256R1()))
        assert attestation_verifier.verify(other.sign(INPUTS), INPUTS) is False

    @pytest.mark.parametrize("proof", [b"", b"\x00" * 70, b"not a der signature", "text", None])
    def test_malformed_proof_returns_false(self, attestation_verifier, proof):
        assert attestation_verifier.verify(proof, INPUTS) is False

    def test_malformed_inputs_return_false(self, attestation_signer, attestation_verifier):
        proof = attestation_signer.sign(INPUTS)
        assert attestation_verifier.verify(proof, INPUTS[:4]) is False
        assert attestation_verifier.verify(proof, [-1, 2, 3, 4, 5]) is False

    def test_public_key_round_trip(self, attestation_verifier, prover_public_key):
        assert attestation_verifier.get_public_key_pem() == prover_public_key.read_bytes()

    def test_missing_key_file(self, temp_dir: Path):
        with pytest.raises(VerifierConfigurationError, match="not found"):
            AttestationVerifier.from_pem_file(temp_dir / "missing.pem")

    def test_garbage_key_file(self, temp_dir: Path):
        key_path = temp_dir / "garbage.pem"
        key_path.write_text("not a key")
        with pytest.raises(VerifierConfigurationError, match="Failed to load"):
            AttestationVerifier.from_pem_file(key_path)

    def test_wrong_curve_rejected(self, temp_dir: Path):
        key = ec.generate_private_key(ec.SECP384R1())
        key_path = temp_dir / "p384.pem"
        key_path.write_bytes(key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        ))
        with pytest.raises(VerifierConfigurationError, match="P-256"):
            AttestationVerifier.from_pem_file(key_path)

    def test_non_ec_key_rejected(self, temp_dir: Path):
        key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        key_path = temp_dir / "rsa.pem"
        key_path.write_bytes(key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        ))
        with pytest.raises(VerifierConfigurationError, match="not an ECDSA key"):
            AttestationVerifier.from_pem_file(key_path)


class TestAttestationSigner:

    def test_missing_key_file(self, temp_dir: Path):
        with pytest.raises(VerifierConfigurationError, match="not found"):
            AttestationSigner.from_pem_file(temp_dir / "missing.pem")

    def test_public_key_matches_verifier(self, attestation_signer):
        verifier = AttestationVerifier(attestation_signer.public_key())
        assert verifier.verify(attestation_signer.sign(INPUTS), INPUTS)


class TestCreateVerifier:

    def test_attestation_backend(self, prover_public_key):
        config = SimpleNamespace(backend="attestation", public_key_path=str(prover_public_key))
        assert isinstance(create_verifier(config), AttestationVerifier)

    def test_missing_public_key_path(self):
        config = SimpleNamespace(backend="attestation", public_key_path="")
        with pytest.raises(VerifierConfigurationError, match="public_key_path is required"):
            create_verifier(config)

    def test_unknown_backend(self):
        config = SimpleNamespace(backend="groth16", public_key_path="x")
        with pytest.raises(VerifierConfigurationError, match="Invalid verifier backend"):
            create_verifier(config)
