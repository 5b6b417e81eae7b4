"""
Multiparty - Group session context.

Created by orpheus497

A GroupSession is the context object for one conversation: it owns the
local key pair, the buddy list with their cached shared secrets, and the
IV registry. Separate sessions in the same process never share IVs.
"""

import logging
from threading import Lock
from typing import Dict, List, Optional, Union

from .config import Config
from .crypto import KeyPair, PublicKey, parse_public_key
from .decryption import DecryptedMessage, decrypt
from .encryption import encrypt
from .envelope import Envelope
from .errors import BuddyError, EnvelopeError, ErrorCode
from .primitives import Primitives, default_primitives
from .recipient import Recipient
from .registry import IVRegistry

logger = logging.getLogger(__name__)


class GroupSession:
    """
    Manages one identity's view of a group conversation.

    Attributes:
        identity: Local identity label
        keypair: Local key pair, held for the whole session
        registry: IV registry shared by sends and receives of this session
        buddies: identity -> Recipient
    """

    def __init__(self, identity: str, keypair: Optional[KeyPair] = None,
                 registry: Optional[IVRegistry] = None,
                 primitives: Optional[Primitives] = None,
                 config: Optional[Config] = None):
        self.identity = identity
        self.primitives = primitives or default_primitives()
        self.keypair = keypair or KeyPair.generate(self.primitives)
        if registry is None:
            max_entries = config.registry_max_entries if config else 0
            registry = IVRegistry(max_entries=max_entries)
        self.registry = registry
        self.buddies: Dict[str, Recipient] = {}
        self.lock = Lock()

        logger.info(f"Session started for {identity} (fingerprint {self.fingerprint})")

    @property
    def public_key(self) -> PublicKey:
        return self.keypair.public_key

    @property
    def fingerprint(self) -> str:
        return self.keypair.fingerprint

    def add_buddy(self, identity: str, public_key: Optional[Union[PublicKey, str]] = None) -> Recipient:
        """
        Add or update a buddy.

        Passing a public key (object or base64 string) derives and caches
        the shared secret. A buddy without a key is known to the session
        but excluded from encryption until resolve_buddy is called.

        Raises:
            BuddyError: If the identity is the local identity
            CryptoError: If the public key cannot be parsed
        """
        if identity == self.identity:
            raise BuddyError(ErrorCode.E400_BUDDY_ERROR,
                             "Cannot add the local identity as a buddy",
                             {"identity": identity})

        with self.lock:
            buddy = self.buddies.get(identity)
            if buddy is None:
                buddy = Recipient(identity)
                self.buddies[identity] = buddy
                logger.info(f"Added buddy {identity}")

        if public_key is not None:
            self.resolve_buddy(identity, public_key)
        return buddy

    def resolve_buddy(self, identity: str, public_key: Union[PublicKey, str]) -> Recipient:
        """
        Derive and cache the shared secret for a buddy.

        Raises:
            BuddyError: If the buddy is unknown
        """
        buddy = self.get_buddy(identity)
        if isinstance(public_key, str):
            public_key = parse_public_key(public_key)

        secret = self.keypair.shared_secret(public_key)
        with self.lock:
            buddy.public_key = public_key
            buddy.shared_secret = secret
        logger.info(f"Resolved key for {identity} (fingerprint {buddy.fingerprint})")
        return buddy

    def remove_buddy(self, identity: str) -> bool:
        """Remove a buddy. Returns True if removed."""
        with self.lock:
            if identity in self.buddies:
                del self.buddies[identity]
                logger.info(f"Removed buddy {identity}")
                return True
        return False

    def get_buddy(self, identity: str) -> Recipient:
        """
        Raises:
            BuddyError: If the buddy is unknown
        """
        buddy = self.buddies.get(identity)
        if buddy is None:
            raise BuddyError(ErrorCode.E401_BUDDY_NOT_FOUND, f"Unknown buddy: {identity}",
                             {"identity": identity})
        return buddy

    def known_identities(self) -> List[str]:
        with self.lock:
            return sorted(self.buddies)

    def encrypt(self, plaintext: str) -> Envelope:
        """Encrypt a message for every resolved buddy."""
        with self.lock:
            recipients = list(self.buddies.values())
        return encrypt(plaintext, recipients, self.registry, self.primitives)

    def decrypt(self, envelope: Union[Envelope, dict, str], sender: str) -> DecryptedMessage:
        """
        Decrypt an envelope received from a buddy.

        Accepts a parsed Envelope, its wire dictionary, or its JSON text.
        An unknown sender is treated as one without a resolved key.

        Raises:
            EnvelopeError: If the wire form is malformed; details name the
                sender and the local recipient
            DecryptionError: If any verification gate fails
        """
        try:
            if isinstance(envelope, str):
                envelope = Envelope.from_json(envelope)
            elif isinstance(envelope, dict):
                envelope = Envelope.from_dict(envelope)
        except EnvelopeError as e:
            e.details.update({"sender": sender, "recipient": self.identity})
            logger.warning(f"Malformed envelope from {sender}: {e.message}")
            raise

        buddy = self.buddies.get(sender) or Recipient(sender)
        return decrypt(envelope, buddy, self.identity, self.known_identities(),
                       self.registry, self.primitives)
