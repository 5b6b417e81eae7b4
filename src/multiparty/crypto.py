"""
Multiparty - Key agreement.

Created by orpheus497

This module implements the pairwise key material used by group messages:
- Curve25519 private scalars from a secure random source
- Public points with a base64 transport encoding
- SHA-512 based fingerprints for out-of-band verification
- Shared secrets split into an encryption key and a MAC key

The shared secret of a pair is SHA-512 over the raw Diffie-Hellman output.
Bytes 0-31 key AES-256-CTR, bytes 32-63 key HMAC-SHA512. Because the DH
output is symmetric, both parties derive the same two keys.
"""

import base64
import binascii
from typing import Dict, NamedTuple, Optional, Union

from .constants import (
    FINGERPRINT_LENGTH,
    MESSAGE_KEY_SIZE,
    PRIVATE_KEY_SIZE,
    PUBLIC_KEY_SIZE,
)
from .errors import CryptoError, ErrorCode
from .primitives import Primitives, default_primitives


class PublicKey(NamedTuple):
    """A Curve25519 public point in raw and base64 form."""

    raw: bytes
    encoded: str


class SharedSecret(NamedTuple):
    """Pairwise key material: AES key and HMAC key, 32 bytes each."""

    message_key: bytes
    mac_key: bytes

    def __repr__(self) -> str:
        return "SharedSecret(<redacted>)"


def generate_private_key(primitives: Optional[Primitives] = None) -> bytes:
    """
    Generate a 32-byte private scalar from the secure random source.

    A failing random source is fatal and propagates to the caller.
    """
    primitives = primitives or default_primitives()
    return primitives.random_bytes(PRIVATE_KEY_SIZE)


def public_key_from_private(private_key: bytes,
                            primitives: Optional[Primitives] = None) -> PublicKey:
    """Derive the public point of a private scalar."""
    primitives = primitives or default_primitives()
    raw = primitives.scalar_mult_base(private_key)
    return PublicKey(raw=raw, encoded=base64.b64encode(raw).decode('ascii'))


def parse_public_key(encoded: str) -> PublicKey:
    """
    Parse a base64 encoded public key received from a peer.

    Raises:
        CryptoError: If the value is not base64 or not 32 bytes long
    """
    try:
        raw = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError, TypeError) as e:
        raise CryptoError(
            ErrorCode.E103_INVALID_KEY,
            "Public key is not valid base64",
            {"error": str(e)},
        ) from e

    if len(raw) != PUBLIC_KEY_SIZE:
        raise CryptoError(
            ErrorCode.E103_INVALID_KEY,
            f"Public key must be {PUBLIC_KEY_SIZE} bytes, got {len(raw)}",
        )
    return PublicKey(raw=raw, encoded=base64.b64encode(raw).decode('ascii'))


def fingerprint(public_key: Union[PublicKey, bytes],
                primitives: Optional[Primitives] = None) -> str:
    """
    Generate a human-readable fingerprint of a public key.

    The fingerprint is the first 40 hex characters of SHA-512 over the raw
    key, upper-cased. It is only used for out-of-band verification and
    never enters the protocol itself.

    Returns a 40-character uppercase hexadecimal fingerprint.
    """
    primitives = primitives or default_primitives()
    raw = public_key.raw if isinstance(public_key, PublicKey) else bytes(public_key)
    return primitives.hash(raw).hex()[:FINGERPRINT_LENGTH].upper()


def derive_shared_secret(my_private_key: bytes,
                         their_public_key: Union[PublicKey, bytes],
                         primitives: Optional[Primitives] = None) -> SharedSecret:
    """
    Derive the pairwise shared secret with a peer.

    Computes SHA-512(X25519(my_private_key, their_public_key)) and splits
    the digest in half. The split uses fixed offsets only, so no branch
    depends on secret bytes.
    """
    primitives = primitives or default_primitives()
    raw = their_public_key.raw if isinstance(their_public_key, PublicKey) else bytes(their_public_key)
    secret = primitives.hash(primitives.scalar_mult(my_private_key, raw))
    return SharedSecret(
        message_key=secret[:MESSAGE_KEY_SIZE],
        mac_key=secret[MESSAGE_KEY_SIZE:],
    )


class KeyPair:
    """
    A local identity key pair.

    The public key is always recomputed from the private scalar, never
    trusted from storage.
    """

    def __init__(self, private_key: bytes, primitives: Optional[Primitives] = None):
        if len(private_key) != PRIVATE_KEY_SIZE:
            raise CryptoError(
                ErrorCode.E103_INVALID_KEY,
                f"Private key must be {PRIVATE_KEY_SIZE} bytes, got {len(private_key)}",
            )
        self.primitives = primitives or default_primitives()
        self.private_key = bytes(private_key)
        self.public_key = public_key_from_private(self.private_key, self.primitives)

    @classmethod
    def generate(cls, primitives: Optional[Primitives] = None) -> 'KeyPair':
        """Create a key pair from a fresh random scalar."""
        return cls(generate_private_key(primitives), primitives)

    @classmethod
    def from_private_bytes(cls, private_key: bytes,
                           primitives: Optional[Primitives] = None) -> 'KeyPair':
        return cls(private_key, primitives)

    @property
    def fingerprint(self) -> str:
        return fingerprint(self.public_key, self.primitives)

    def shared_secret(self, their_public_key: Union[PublicKey, bytes]) -> SharedSecret:
        """Derive the shared secret with a peer's public key."""
        return derive_shared_secret(self.private_key, their_public_key, self.primitives)

    def to_dict(self) -> Dict[str, str]:
        """Export key pair to dictionary for storage."""
        return {
            'private': base64.b64encode(self.private_key).decode('ascii'),
            'public': self.public_key.encoded,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, str],
                  primitives: Optional[Primitives] = None) -> 'KeyPair':
        """
        Import key pair from dictionary.

        Raises:
            CryptoError: If the stored public key does not match the private key
        """
        try:
            private_key = base64.b64decode(data['private'], validate=True)
        except (KeyError, binascii.Error, ValueError) as e:
            raise CryptoError(ErrorCode.E103_INVALID_KEY, f"Invalid stored private key: {e}") from e

        keypair = cls(private_key, primitives)
        stored_public = data.get('public')
        if stored_public is not None and stored_public != keypair.public_key.encoded:
            raise CryptoError(
                ErrorCode.E103_INVALID_KEY,
                "Stored public key does not match private key",
            )
        return keypair

    def __repr__(self) -> str:
        return f"KeyPair(public={self.public_key.encoded!r})"
