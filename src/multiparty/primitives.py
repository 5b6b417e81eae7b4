"""
Multiparty - Cryptographic primitive interface.

Created by orpheus497

The protocol code never touches a cipher, hash or curve directly. Every
operation goes through a Primitives instance so that tests can swap in a
deterministic random source and reproduce exact envelopes.

The default implementation uses the cryptography library
(Apache 2.0/BSD License):
- X25519 for scalar multiplication
- SHA-512 and HMAC-SHA512
- AES-256 in counter mode without padding
"""

import os
from typing import Callable, Optional

from cryptography.hazmat.primitives import hashes, hmac, serialization
from cryptography.hazmat.primitives.asymmetric import x25519
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .constants import COUNTER_BLOCK_SIZE, MESSAGE_KEY_SIZE, PRIVATE_KEY_SIZE, PUBLIC_KEY_SIZE
from .errors import CryptoError, ErrorCode

RandomSource = Callable[[int], bytes]


class Primitives:
    """
    Narrow interface over the primitives the protocol consumes.

    Args:
        random_source: Callable returning n random bytes. Defaults to
            os.urandom. Failures of the source propagate unchanged; there
            is no fallback to a weaker generator.
    """

    def __init__(self, random_source: Optional[RandomSource] = None):
        self._random_source = random_source or os.urandom

    def random_bytes(self, n: int) -> bytes:
        """Return n bytes from the configured secure random source."""
        data = self._random_source(n)
        if len(data) != n:
            raise CryptoError(
                ErrorCode.E104_KEY_GENERATION_FAILED,
                f"Random source returned {len(data)} bytes, expected {n}",
            )
        return data

    def scalar_mult_base(self, scalar: bytes) -> bytes:
        """Multiply the Curve25519 base point by a 32-byte scalar."""
        private_key = self._load_scalar(scalar)
        return private_key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )

    def scalar_mult(self, scalar: bytes, point: bytes) -> bytes:
        """Multiply a Curve25519 point by a 32-byte scalar."""
        if len(point) != PUBLIC_KEY_SIZE:
            raise CryptoError(
                ErrorCode.E103_INVALID_KEY,
                f"Public key must be {PUBLIC_KEY_SIZE} bytes, got {len(point)}",
            )
        private_key = self._load_scalar(scalar)
        public_key = x25519.X25519PublicKey.from_public_bytes(point)
        try:
            return private_key.exchange(public_key)
        except ValueError as e:
            # Raised for low-order points that yield an all-zero output
            raise CryptoError(ErrorCode.E103_INVALID_KEY, f"Key agreement failed: {e}") from e

    def hash(self, data: bytes) -> bytes:
        """SHA-512 digest (64 bytes)."""
        digest = hashes.Hash(hashes.SHA512())
        digest.update(data)
        return digest.finalize()

    def hmac(self, message: bytes, key: bytes) -> bytes:
        """HMAC-SHA512 of message under key (64 bytes)."""
        mac = hmac.HMAC(key, hashes.SHA512())
        mac.update(message)
        return mac.finalize()

    def cipher_encrypt(self, data: bytes, key: bytes, counter_block: bytes) -> bytes:
        """AES-256-CTR encryption starting at counter_block."""
        encryptor = self._ctr_cipher(key, counter_block).encryptor()
        return encryptor.update(data) + encryptor.finalize()

    def cipher_decrypt(self, data: bytes, key: bytes, counter_block: bytes) -> bytes:
        """AES-256-CTR decryption starting at counter_block."""
        decryptor = self._ctr_cipher(key, counter_block).decryptor()
        return decryptor.update(data) + decryptor.finalize()

    @staticmethod
    def _load_scalar(scalar: bytes) -> x25519.X25519PrivateKey:
        if len(scalar) != PRIVATE_KEY_SIZE:
            raise CryptoError(
                ErrorCode.E103_INVALID_KEY,
                f"Private key must be {PRIVATE_KEY_SIZE} bytes, got {len(scalar)}",
            )
        return x25519.X25519PrivateKey.from_private_bytes(scalar)

    @staticmethod
    def _ctr_cipher(key: bytes, counter_block: bytes) -> Cipher:
        if len(key) != MESSAGE_KEY_SIZE:
            raise CryptoError(
                ErrorCode.E103_INVALID_KEY,
                f"Message key must be {MESSAGE_KEY_SIZE} bytes, got {len(key)}",
            )
        if len(counter_block) != COUNTER_BLOCK_SIZE:
            raise CryptoError(
                ErrorCode.E002_INVALID_ARGUMENT,
                f"Counter block must be {COUNTER_BLOCK_SIZE} bytes, got {len(counter_block)}",
            )
        return Cipher(algorithms.AES(key), modes.CTR(counter_block))


_default_primitives = Primitives()


def default_primitives() -> Primitives:
    """Return the shared os.urandom-backed Primitives instance (stateless)."""
    return _default_primitives
