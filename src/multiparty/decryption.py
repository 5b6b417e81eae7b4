"""
Multiparty - Envelope decryption and verification.

Created by orpheus497

Opening an envelope is a chain of gates. Each gate either passes or
raises its own DecryptionError subclass, and nothing decrypted is handed
back unless every gate has passed:

1. addressed to me               -> NotAddressedToMe
2. sender key resolved           -> MissingSenderKey
3. per-recipient HMAC            -> AuthenticationFailure
4. IV never seen before          -> ReplayDetected
5. body at least padding long    -> InvalidPlaintextSize
6. aggregate tag                 -> TagFailure

Text that fails to decode as UTF-8 after all gates pass yields an empty
plaintext instead of an error.
"""

import logging
from typing import Iterable, List, NamedTuple, Optional

from .authentication import (
    build_hmac_input,
    build_tag_input,
    constant_time_equals,
    counter_block,
    message_tag,
)
from .constants import PADDING_SIZE
from .envelope import Envelope, b64encode
from .errors import (
    AuthenticationFailure,
    InvalidPlaintextSize,
    MissingSenderKey,
    NotAddressedToMe,
    ReplayDetected,
    TagFailure,
)
from .primitives import Primitives, default_primitives
from .recipient import Recipient
from .registry import IVRegistry

logger = logging.getLogger(__name__)


class DecryptedMessage(NamedTuple):
    """Result of a successful decryption."""

    plaintext: str
    missing_recipients: List[str]


def find_missing_recipients(envelope: Envelope, sender: str,
                            known_identities: Iterable[str]) -> List[str]:
    """Known identities, other than the sender, that the envelope does not address."""
    return sorted(
        identity for identity in set(known_identities)
        if identity != sender and identity not in envelope
    )


def decrypt(envelope: Envelope, sender: Recipient, my_identity: str,
            known_identities: Iterable[str], registry: IVRegistry,
            primitives: Optional[Primitives] = None) -> DecryptedMessage:
    """
    Open an envelope addressed to my_identity.

    Args:
        envelope: Parsed envelope
        sender: Sender with the shared secret derived against my key
        my_identity: Local identity label
        known_identities: Everyone currently in the conversation
        registry: IV registry of the receiving session
        primitives: Primitive implementation (defaults to cryptography/os.urandom)

    Returns:
        DecryptedMessage with the plaintext and the known identities the
        sender left out

    Raises:
        DecryptionError: One of the gate failures listed in the module docstring
    """
    primitives = primitives or default_primitives()
    name = sender.identity

    mine = envelope.get(my_identity)
    if mine is None:
        raise NotAddressedToMe(name, my_identity)

    if not sender.has_secret:
        raise MissingSenderKey(name, my_identity)
    secret = sender.shared_secret

    missing = find_missing_recipients(envelope, name, known_identities)

    entries = envelope.sorted_items()
    expected_hmac = b64encode(primitives.hmac(build_hmac_input(entries), secret.mac_key))
    if not constant_time_equals(mine.hmac, expected_hmac):
        raise AuthenticationFailure(name, my_identity)

    if not registry.claim(mine.iv):
        raise ReplayDetected(name, my_identity, details={"iv": mine.iv})

    padded = primitives.cipher_decrypt(
        mine.message_bytes,
        secret.message_key,
        counter_block(mine.iv_bytes),
    )

    if len(padded) < PADDING_SIZE:
        raise InvalidPlaintextSize(name, my_identity, details={"size": len(padded)})

    tag = message_tag(build_tag_input(padded, entries), primitives)
    if not constant_time_equals(envelope.tag, tag):
        raise TagFailure(name, my_identity)

    try:
        plaintext = padded[:-PADDING_SIZE].decode('utf-8')
    except UnicodeDecodeError:
        # Authentic but undecodable; the message is shown as empty
        logger.warning(f"Message from {name} passed verification but is not valid UTF-8")
        plaintext = ""

    if missing:
        logger.info(f"Message from {name} was not addressed to: {', '.join(missing)}")

    return DecryptedMessage(plaintext=plaintext, missing_recipients=missing)
