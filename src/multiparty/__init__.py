"""
Multiparty - Authenticated group message encryption

One plaintext, many recipients: each recipient shares a pairwise
Curve25519 secret with the sender, gets their own AES-256-CTR ciphertext,
and can verify that every other recipient received the same message.

Author: orpheus497
Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
__author__ = "orpheus497"
__license__ = "MIT"

from .config import Config
from .constants import APP_NAME, VERSION
from .crypto import (
    KeyPair,
    PublicKey,
    SharedSecret,
    derive_shared_secret,
    fingerprint,
    generate_private_key,
    parse_public_key,
    public_key_from_private,
)
from .decryption import DecryptedMessage, decrypt
from .encryption import encrypt
from .envelope import Envelope, RecipientEntry
from .errors import (
    AuthenticationFailure,
    BuddyError,
    ConfigError,
    CryptoError,
    DecryptionError,
    EncryptionError,
    EnvelopeError,
    ErrorCode,
    IdentityError,
    InvalidPlaintextSize,
    MissingSenderKey,
    MultipartyError,
    NotAddressedToMe,
    ReplayDetected,
    TagFailure,
)
from .primitives import Primitives
from .recipient import Recipient
from .registry import IVRegistry
from .session import GroupSession

__all__ = [
    "APP_NAME",
    "VERSION",
    "AuthenticationFailure",
    "BuddyError",
    "Config",
    "ConfigError",
    "CryptoError",
    "DecryptedMessage",
    "DecryptionError",
    "EncryptionError",
    "Envelope",
    "EnvelopeError",
    "ErrorCode",
    "GroupSession",
    "IVRegistry",
    "IdentityError",
    "InvalidPlaintextSize",
    "KeyPair",
    "MissingSenderKey",
    "MultipartyError",
    "NotAddressedToMe",
    "Primitives",
    "PublicKey",
    "Recipient",
    "RecipientEntry",
    "ReplayDetected",
    "SharedSecret",
    "TagFailure",
    "__author__",
    "__license__",
    "__version__",
    "decrypt",
    "derive_shared_secret",
    "encrypt",
    "fingerprint",
    "generate_private_key",
    "parse_public_key",
    "public_key_from_private",
]
