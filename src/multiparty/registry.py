"""
Multiparty - IV uniqueness registry.

This module tracks every initialization vector a session has used or
accepted. Encryption consults it to avoid reusing an IV, decryption
consults it to reject replayed envelopes.

Author: orpheus497
Version: 1.0.0
"""

import logging
from collections import OrderedDict
from threading import Lock

from .constants import IV_REGISTRY_UNBOUNDED

logger = logging.getLogger(__name__)


class IVRegistry:
    """Set of base64 IV encodings seen by one session.

    There is no removal operation. With the default capacity the registry
    grows for the lifetime of its owner. A positive max_entries bounds
    memory at the cost of forgetting the oldest IVs, which re-opens replay
    of envelopes older than the retained window.

    Attributes:
        max_entries: Capacity, or 0 for unbounded
        lock: Thread lock guarding every check-and-insert
    """

    def __init__(self, max_entries: int = IV_REGISTRY_UNBOUNDED):
        """Initialize an empty registry.

        Args:
            max_entries: Maximum number of IVs retained (0 = unbounded)
        """
        if max_entries < 0:
            raise ValueError(f"max_entries must be >= 0, got {max_entries}")

        self.max_entries = max_entries
        self._ivs: "OrderedDict[str, None]" = OrderedDict()
        self._evicting = False
        self.lock = Lock()

    def contains(self, iv: str) -> bool:
        """Check whether an IV has been registered."""
        with self.lock:
            return iv in self._ivs

    def add(self, iv: str) -> None:
        """Register an IV. Adding a known IV is a no-op."""
        with self.lock:
            self._insert(iv)

    def claim(self, iv: str) -> bool:
        """Atomically register an IV if it is new.

        Args:
            iv: Base64 IV encoding

        Returns:
            True if the IV was new and is now registered, False if it was
            already present
        """
        with self.lock:
            if iv in self._ivs:
                return False
            self._insert(iv)
            return True

    def _insert(self, iv: str) -> None:
        # Caller holds self.lock
        self._ivs[iv] = None

        if self.max_entries == IV_REGISTRY_UNBOUNDED:
            return

        while len(self._ivs) > self.max_entries:
            self._ivs.popitem(last=False)
            if not self._evicting:
                self._evicting = True
                logger.warning(
                    f"IV registry reached capacity ({self.max_entries}); "
                    "evicting oldest entries"
                )

    def __contains__(self, iv: object) -> bool:
        return isinstance(iv, str) and self.contains(iv)

    def __len__(self) -> int:
        with self.lock:
            return len(self._ivs)
