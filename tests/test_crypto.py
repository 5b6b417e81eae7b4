"""
Multiparty - Key agreement tests.

Created by orpheus497

Tests for key pair generation, fingerprints and shared secret derivation.
"""

import base64
import hashlib

import pytest

from multiparty import crypto
from multiparty.errors import CryptoError, ErrorCode
from multiparty.primitives import Primitives

# RFC 7748 section 6.1
ALICE_PRIVATE = bytes.fromhex("77076d0a7318a57d3c16c17251b26645df4c2f87ebc0992ab177fba51db92c2a")
ALICE_PUBLIC = bytes.fromhex("8520f0098930a754748b7ddcb43ef75a0dbf3a0d26381af4eba4a98eaa9b4e6a")
BOB_PRIVATE = bytes.fromhex("5dab087e624a8a4b79e17f8b83800ee66f3bb1292618b6fd1c2f8b27ff88e0eb")
BOB_PUBLIC = bytes.fromhex("de9edb7d7b7dc1b4d35b61c2ece435373f8343c85b78674dadfc7e146f882b4f")
DH_OUTPUT = bytes.fromhex("4a5d9d5ba4ce2de1728e3bf480350f25e07e21c947d19e3376f09b3c1e161742")


def test_private_key_generation():
    """Private keys are 32 random bytes."""
    key1 = crypto.generate_private_key()
    key2 = crypto.generate_private_key()

    assert len(key1) == 32
    assert key1 != key2


def test_private_key_uses_injected_random_source():
    """Key generation draws from the configured random source."""
    primitives = Primitives(random_source=lambda n: b"\x07" * n)
    assert crypto.generate_private_key(primitives) == b"\x07" * 32


def test_random_source_failure_propagates():
    """A broken random source is fatal, not silently replaced."""
    def broken(n):
        raise NotImplementedError("no entropy source")

    with pytest.raises(NotImplementedError):
        crypto.generate_private_key(Primitives(random_source=broken))


def test_short_random_output_rejected():
    primitives = Primitives(random_source=lambda n: b"\x00" * (n - 1))
    with pytest.raises(CryptoError) as exc_info:
        crypto.generate_private_key(primitives)
    assert exc_info.value.code == ErrorCode.E104_KEY_GENERATION_FAILED


def test_public_key_known_answer():
    """Public key derivation matches RFC 7748."""
    public = crypto.public_key_from_private(ALICE_PRIVATE)

    assert public.raw == ALICE_PUBLIC
    assert public.encoded == base64.b64encode(ALICE_PUBLIC).decode()


def test_public_key_is_deterministic():
    private = crypto.generate_private_key()
    assert crypto.public_key_from_private(private) == crypto.public_key_from_private(private)


def test_parse_public_key_round_trip():
    public = crypto.public_key_from_private(BOB_PRIVATE)
    assert crypto.parse_public_key(public.encoded) == public


@pytest.mark.parametrize("encoded", ["not base64!!", base64.b64encode(b"short").decode(), ""])
def test_parse_public_key_rejects_bad_input(encoded):
    with pytest.raises(CryptoError) as exc_info:
        crypto.parse_public_key(encoded)
    assert exc_info.value.code == ErrorCode.E103_INVALID_KEY


def test_fingerprint_format():
    """Fingerprint is the first 40 hex chars of SHA-512, upper-cased."""
    public = crypto.public_key_from_private(ALICE_PRIVATE)
    fp = crypto.fingerprint(public)

    assert len(fp) == 40
    assert fp == fp.upper()
    assert all(c in "0123456789ABCDEF" for c in fp)
    assert fp == hashlib.sha512(ALICE_PUBLIC).hexdigest()[:40].upper()


def test_fingerprint_accepts_raw_bytes():
    public = crypto.public_key_from_private(ALICE_PRIVATE)
    assert crypto.fingerprint(public.raw) == crypto.fingerprint(public)


def test_fingerprint_differs_per_key():
    a = crypto.KeyPair.generate()
    b = crypto.KeyPair.generate()
    assert a.fingerprint != b.fingerprint


def test_shared_secret_known_answer():
    """Shared secret is SHA-512 of the X25519 output, split 32/32."""
    secret = crypto.derive_shared_secret(ALICE_PRIVATE, BOB_PUBLIC)
    digest = hashlib.sha512(DH_OUTPUT).digest()

    assert secret.message_key == digest[:32]
    assert secret.mac_key == digest[32:]


def test_shared_secret_is_symmetric():
    """Both parties derive identical key material."""
    alice = crypto.KeyPair.generate()
    bob = crypto.KeyPair.generate()

    assert alice.shared_secret(bob.public_key) == bob.shared_secret(alice.public_key)


def test_shared_secret_differs_per_peer():
    alice = crypto.KeyPair.generate()
    bob = crypto.KeyPair.generate()
    carol = crypto.KeyPair.generate()

    assert alice.shared_secret(bob.public_key) != alice.shared_secret(carol.public_key)


def test_shared_secret_repr_hides_keys():
    secret = crypto.derive_shared_secret(ALICE_PRIVATE, BOB_PUBLIC)
    assert secret.message_key.hex() not in repr(secret)


def test_low_order_point_rejected():
    """An all-zero public key yields an all-zero DH output and is refused."""
    with pytest.raises(CryptoError):
        crypto.derive_shared_secret(ALICE_PRIVATE, b"\x00" * 32)


def test_keypair_serialization():
    """Key pair export and import keep the same keys."""
    original = crypto.KeyPair.generate()
    restored = crypto.KeyPair.from_dict(original.to_dict())

    assert restored.private_key == original.private_key
    assert restored.public_key == original.public_key


def test_keypair_rejects_mismatched_public_key():
    data = crypto.KeyPair.from_private_bytes(ALICE_PRIVATE).to_dict()
    data["public"] = base64.b64encode(BOB_PUBLIC).decode()

    with pytest.raises(CryptoError):
        crypto.KeyPair.from_dict(data)


def test_keypair_rejects_wrong_length():
    with pytest.raises(CryptoError):
        crypto.KeyPair(b"\x01" * 31)
