"""
Multiparty - Conversation participants.

Created by orpheus497
"""

from typing import Any, Dict, Optional

from .crypto import PublicKey, SharedSecret, fingerprint


class Recipient:
    """
    A participant addressed by identity label.

    The shared secret is resolved once the peer's public key is known and
    reused for every later message. Participants without one are skipped
    when encrypting and cannot be verified as senders.
    """

    def __init__(self, identity: str, shared_secret: Optional[SharedSecret] = None,
                 public_key: Optional[PublicKey] = None):
        self.identity = identity
        self.shared_secret = shared_secret
        self.public_key = public_key

    @property
    def has_secret(self) -> bool:
        return self.shared_secret is not None

    @property
    def fingerprint(self) -> Optional[str]:
        if self.public_key is None:
            return None
        return fingerprint(self.public_key)

    def to_dict(self) -> Dict[str, Any]:
        """Shareable view; never includes key material."""
        return {
            'identity': self.identity,
            'public_key': self.public_key.encoded if self.public_key else None,
            'fingerprint': self.fingerprint,
            'resolved': self.has_secret,
        }

    def __repr__(self) -> str:
        return f"Recipient({self.identity!r}, resolved={self.has_secret})"
