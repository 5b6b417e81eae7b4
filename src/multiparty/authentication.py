"""
Multiparty - Envelope authentication helpers.

Created by orpheus497

Shared by the encryption and decryption paths so both build the same bytes:
- counter block: the 12-byte IV zero-extended to one 16-byte AES block
- HMAC input: ciphertext || IV of every entry, in identity order
- message tag: eight chained SHA-512 rounds over plaintext || all HMACs
"""

import secrets
from typing import Iterable, Tuple

from .constants import COUNTER_BLOCK_SIZE, IV_SIZE, TAG_HASH_ROUNDS
from .envelope import RecipientEntry, b64encode, identity_order
from .errors import CryptoError, ErrorCode
from .primitives import Primitives


def counter_block(iv: bytes) -> bytes:
    """
    Extend a 12-byte IV to the initial AES-CTR counter block.

    The IV occupies the first 12 bytes and the 32-bit block counter starts
    at zero, so the first two blocks use counters 0 and 1.
    """
    if len(iv) != IV_SIZE:
        raise CryptoError(ErrorCode.E002_INVALID_ARGUMENT,
                          f"IV must be {IV_SIZE} bytes, got {len(iv)}")
    return iv + b'\x00' * (COUNTER_BLOCK_SIZE - IV_SIZE)


def build_hmac_input(entries: Iterable[Tuple[str, RecipientEntry]]) -> bytes:
    """Concatenate ciphertext || IV of each entry, sorted by identity."""
    parts = []
    for _, entry in sorted(entries, key=lambda item: identity_order(item[0])):
        parts.append(entry.message_bytes)
        parts.append(entry.iv_bytes)
    return b''.join(parts)


def build_tag_input(padded_plaintext: bytes,
                    entries: Iterable[Tuple[str, RecipientEntry]]) -> bytes:
    """Concatenate the padded plaintext with every raw HMAC, sorted by identity."""
    parts = [padded_plaintext]
    for _, entry in sorted(entries, key=lambda item: identity_order(item[0])):
        parts.append(entry.hmac_bytes)
    return b''.join(parts)


def message_tag(data: bytes, primitives: Primitives) -> str:
    """Base64 of SHA-512 applied TAG_HASH_ROUNDS times."""
    for _ in range(TAG_HASH_ROUNDS):
        data = primitives.hash(data)
    return b64encode(data)


def constant_time_equals(a: str, b: str) -> bool:
    """Compare two encodings without early exit on the first difference."""
    return secrets.compare_digest(a.encode('ascii', 'replace'), b.encode('ascii', 'replace'))
