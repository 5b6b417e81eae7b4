"""
Pytest configuration and fixtures for multiparty tests.

Created by orpheus497

Provides common fixtures and test utilities for unit and integration tests.
"""

import hashlib
import shutil
import tempfile
from pathlib import Path
from typing import Dict, Generator, List

import pytest

from multiparty.authentication import build_hmac_input, build_tag_input, counter_block, message_tag
from multiparty.crypto import KeyPair
from multiparty.envelope import Envelope, RecipientEntry, b64encode, identity_order
from multiparty.primitives import Primitives
from multiparty.recipient import Recipient
from multiparty.registry import IVRegistry
from multiparty.session import GroupSession


class CountingRandom:
    """Deterministic random source: SHA-256(seed || counter) stream."""

    def __init__(self, seed: bytes = b"multiparty-tests"):
        self.seed = seed
        self.counter = 0

    def __call__(self, n: int) -> bytes:
        out = b""
        while len(out) < n:
            block = self.seed + self.counter.to_bytes(8, "big")
            out += hashlib.sha256(block).digest()
            self.counter += 1
        return out[:n]


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """
    Create a temporary directory for test data.

    Yields:
        Path: Temporary directory path
    """
    tmp = Path(tempfile.mkdtemp(prefix="multiparty_test_"))
    try:
        yield tmp
    finally:
        shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def deterministic_primitives() -> Primitives:
    """Primitives with a reproducible random source."""
    return Primitives(random_source=CountingRandom())


@pytest.fixture
def registry() -> IVRegistry:
    return IVRegistry()


@pytest.fixture
def group() -> Dict[str, GroupSession]:
    """
    Three sessions (alice, bob, carol) that all know each other's keys.

    Returns:
        dict: identity -> GroupSession
    """
    names = ["alice", "bob", "carol"]
    sessions = {name: GroupSession(name) for name in names}
    for name, session in sessions.items():
        for other, other_session in sessions.items():
            if other != name:
                session.add_buddy(other, other_session.public_key)
    return sessions


def sender_view(sender: KeyPair, recipients: Dict[str, KeyPair]) -> List[Recipient]:
    """Recipients as seen from the sender, with resolved secrets."""
    return [
        Recipient(name, sender.shared_secret(keypair.public_key), keypair.public_key)
        for name, keypair in recipients.items()
    ]


def build_raw_envelope(padded: bytes, recipients: List[Recipient],
                       primitives: Primitives) -> Envelope:
    """
    Assemble an envelope around arbitrary padded plaintext bytes.

    Mirrors the sending path but skips UTF-8 encoding and padding, so tests
    can craft bodies the public encrypt() never produces.
    """
    entries = {}
    for recipient in sorted(recipients, key=lambda r: identity_order(r.identity)):
        iv = primitives.random_bytes(12)
        ciphertext = primitives.cipher_encrypt(
            padded, recipient.shared_secret.message_key, counter_block(iv)
        )
        entries[recipient.identity] = RecipientEntry(b64encode(ciphertext), b64encode(iv))

    hmac_input = build_hmac_input(entries.items())
    for recipient in recipients:
        entries[recipient.identity].hmac = b64encode(
            primitives.hmac(hmac_input, recipient.shared_secret.mac_key)
        )

    tag = message_tag(build_tag_input(padded, entries.items()), primitives)
    return Envelope(entries, tag)


# Pytest marks
def pytest_configure(config):
    """
    Configure pytest markers.

    Args:
        config: Pytest configuration object
    """
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")


def pytest_collection_modifyitems(config, items):
    """Add markers based on test location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
