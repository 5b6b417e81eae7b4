"""
Multiparty - Multi-recipient encryption.

Created by orpheus497

Builds one authenticated envelope for a set of recipients:
1. UTF-8 plaintext followed by 64 random padding bytes
2. Per recipient, in identity order: fresh 12-byte IV, AES-256-CTR
3. HMAC-SHA512 of every (ciphertext || IV) under each recipient's MAC key
4. Aggregate tag: SHA-512^8 of padded plaintext || all HMACs

Identity order is what every receiver uses to rebuild the HMAC input.
Any other order makes authentication fail for everyone.
"""

import logging
from typing import Dict, Iterable, Optional, Tuple

from .authentication import build_hmac_input, build_tag_input, counter_block, message_tag
from .constants import IV_SIZE, PADDING_SIZE
from .envelope import Envelope, RecipientEntry, b64encode, identity_order
from .errors import EncryptionError
from .primitives import Primitives, default_primitives
from .recipient import Recipient
from .registry import IVRegistry

logger = logging.getLogger(__name__)


def _fresh_iv(registry: IVRegistry, primitives: Primitives) -> Tuple[bytes, str]:
    """Draw IVs until one is unused, and claim it."""
    while True:
        raw = primitives.random_bytes(IV_SIZE)
        iv = b64encode(raw)
        if registry.claim(iv):
            return raw, iv
        logger.debug("Drew an IV already in the registry, retrying")


def encrypt(plaintext: str, recipients: Iterable[Recipient], registry: IVRegistry,
            primitives: Optional[Primitives] = None) -> Envelope:
    """
    Encrypt a message for every recipient with a resolved shared secret.

    Args:
        plaintext: Message text
        recipients: Candidate recipients; unresolved ones are skipped
        registry: IV registry of the sending session
        primitives: Primitive implementation (defaults to cryptography/os.urandom)

    Returns:
        The envelope, with entries in identity order

    Raises:
        EncryptionError: If no recipient has a shared secret, or an identity
            label appears twice
    """
    primitives = primitives or default_primitives()

    resolved = [r for r in recipients if r.has_secret]
    if not resolved:
        raise EncryptionError("No recipients with a resolved shared secret")

    resolved.sort(key=lambda r: identity_order(r.identity))
    labels = [r.identity for r in resolved]
    if len(set(labels)) != len(labels):
        duplicates = sorted({label for label in labels if labels.count(label) > 1})
        raise EncryptionError("Duplicate recipient identity", {"duplicates": duplicates})

    padded = plaintext.encode('utf-8') + primitives.random_bytes(PADDING_SIZE)

    entries: Dict[str, RecipientEntry] = {}
    for recipient in resolved:
        raw_iv, iv = _fresh_iv(registry, primitives)
        ciphertext = primitives.cipher_encrypt(
            padded,
            recipient.shared_secret.message_key,
            counter_block(raw_iv),
        )
        entries[recipient.identity] = RecipientEntry(message=b64encode(ciphertext), iv=iv)

    hmac_input = build_hmac_input(entries.items())
    for recipient in resolved:
        mac = primitives.hmac(hmac_input, recipient.shared_secret.mac_key)
        entries[recipient.identity].hmac = b64encode(mac)

    tag = message_tag(build_tag_input(padded, entries.items()), primitives)

    logger.debug(f"Encrypted message for {len(entries)} recipients")
    return Envelope(entries, tag)
