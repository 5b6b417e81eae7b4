"""
Multiparty - Group message protocol tests.

Created by orpheus497

Tests for envelope construction and every verification gate of decryption.
"""

import base64

import pytest
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from conftest import CountingRandom, build_raw_envelope, sender_view
from multiparty import decrypt, encrypt
from multiparty.authentication import build_hmac_input, counter_block
from multiparty.crypto import KeyPair
from multiparty.envelope import Envelope, identity_order
from multiparty.errors import (
    AuthenticationFailure,
    EncryptionError,
    ErrorCode,
    InvalidPlaintextSize,
    MissingSenderKey,
    NotAddressedToMe,
    ReplayDetected,
    TagFailure,
)
from multiparty.primitives import Primitives
from multiparty.recipient import Recipient
from multiparty.registry import IVRegistry


@pytest.fixture
def keys():
    return {name: KeyPair.generate() for name in ("alice", "bob", "carol", "dave")}


def receiver_view(receiver: KeyPair, sender_name: str, sender: KeyPair) -> Recipient:
    """The sender as seen from one receiver."""
    return Recipient(sender_name, receiver.shared_secret(sender.public_key), sender.public_key)


def open_as(envelope, keys, me, sender="alice", known=None, registry=None):
    return decrypt(
        envelope,
        receiver_view(keys[me], sender, keys[sender]),
        me,
        known if known is not None else [n for n in keys if n != me],
        registry if registry is not None else IVRegistry(),
    )


def flip(encoded: str, index: int = 0) -> str:
    raw = bytearray(base64.b64decode(encoded))
    raw[index] ^= 0x01
    return base64.b64encode(bytes(raw)).decode()


def tampered(envelope: Envelope, identity: str, field: str) -> Envelope:
    copy = Envelope.from_dict(envelope.to_dict())
    entry = copy.entries[identity]
    setattr(entry, field, flip(getattr(entry, field)))
    return copy


# ==========================================================================
# Round trip
# ==========================================================================

@pytest.mark.parametrize("plaintext", [
    "hi",
    "",
    "x" * 1000,
    "unicode: 你好世界 \U0001f512",
])
def test_round_trip_every_recipient(keys, plaintext):
    """Every addressed recipient recovers the plaintext."""
    recipients = {n: keys[n] for n in ("bob", "carol", "dave")}
    envelope = encrypt(plaintext, sender_view(keys["alice"], recipients), IVRegistry())

    for name in recipients:
        result = open_as(envelope, keys, name)
        assert result.plaintext == plaintext
        assert result.missing_recipients == []


def test_round_trip_through_json(keys):
    recipients = {n: keys[n] for n in ("bob", "carol")}
    envelope = encrypt("wire", sender_view(keys["alice"], recipients), IVRegistry())

    parsed = Envelope.from_json(envelope.to_json())

    assert open_as(parsed, keys, "bob", known=["alice", "bob", "carol"]).plaintext == "wire"


def test_example_envelope_sorted(keys):
    """Recipients supplied as zed, ann appear as ann, zed; zed can read."""
    zed, ann, me = KeyPair.generate(), KeyPair.generate(), KeyPair.generate()
    recipients = [
        Recipient("zed", me.shared_secret(zed.public_key)),
        Recipient("ann", me.shared_secret(ann.public_key)),
    ]
    envelope = encrypt("hi", recipients, IVRegistry())

    assert list(envelope.to_dict()["text"]) == ["ann", "zed"]

    sender = Recipient("me", zed.shared_secret(me.public_key))
    result = decrypt(envelope, sender, "zed", ["ann", "zed", "me"], IVRegistry())
    assert result.plaintext == "hi"


def test_envelope_wire_shape(keys):
    recipients = {n: keys[n] for n in ("bob", "carol")}
    data = encrypt("hi", sender_view(keys["alice"], recipients), IVRegistry()).to_dict()

    assert data["type"] == "message"
    assert set(data) == {"type", "text", "tag"}
    for entry in data["text"].values():
        assert set(entry) == {"message", "iv", "hmac"}
        assert len(base64.b64decode(entry["iv"])) == 12
        assert len(base64.b64decode(entry["hmac"])) == 64
        # 2 bytes of text + 64 bytes padding, CTR adds nothing
        assert len(base64.b64decode(entry["message"])) == 66
    assert len(base64.b64decode(data["tag"])) == 64


def test_unresolved_recipients_are_skipped(keys):
    recipients = sender_view(keys["alice"], {"bob": keys["bob"]}) + [Recipient("carol")]
    envelope = encrypt("hi", recipients, IVRegistry())

    assert envelope.recipients() == ["bob"]


def test_no_resolved_recipients_rejected():
    with pytest.raises(EncryptionError) as exc_info:
        encrypt("hi", [Recipient("bob")], IVRegistry())
    assert exc_info.value.code == ErrorCode.E101_ENCRYPTION_FAILED


def test_duplicate_identity_rejected(keys):
    recipients = sender_view(keys["alice"], {"bob": keys["bob"]})
    with pytest.raises(EncryptionError):
        encrypt("hi", recipients + recipients, IVRegistry())


def test_ivs_are_registered_and_distinct(keys):
    registry = IVRegistry()
    recipients = {n: keys[n] for n in ("bob", "carol", "dave")}
    envelope = encrypt("hi", sender_view(keys["alice"], recipients), registry)

    ivs = [entry.iv for entry in envelope.entries.values()]
    assert len(set(ivs)) == 3
    assert all(iv in registry for iv in ivs)


def test_iv_collision_is_redrawn(keys):
    """An IV already in the registry is never reused."""
    stream = iter([b"\x00" * 64, b"\x01" * 12, b"\x01" * 12, b"\x02" * 12])
    primitives = Primitives(random_source=lambda n: next(stream))
    registry = IVRegistry()

    recipients = {n: keys[n] for n in ("bob", "carol")}
    envelope = encrypt("hi", sender_view(keys["alice"], recipients), registry, primitives)

    assert envelope.entries["bob"].iv == base64.b64encode(b"\x01" * 12).decode()
    assert envelope.entries["carol"].iv == base64.b64encode(b"\x02" * 12).decode()


def test_deterministic_with_fixed_random_source(keys, deterministic_primitives):
    recipients = sender_view(keys["alice"], {"bob": keys["bob"], "carol": keys["carol"]})
    first = encrypt("same", recipients, IVRegistry(), deterministic_primitives)
    second = encrypt("same", recipients, IVRegistry(), Primitives(CountingRandom()))

    assert first == second


# ==========================================================================
# Byte-level agreement
# ==========================================================================

def test_counter_block_zero_extends_iv():
    iv = bytes(range(12))
    assert counter_block(iv) == iv + b"\x00\x00\x00\x00"


def test_ctr_keystream_starts_at_zero_counter():
    """First two keystream blocks use counters 0 and 1 after the IV."""
    key = bytes(range(32))
    iv = bytes(range(100, 112))
    data = bytes(32)

    ciphertext = Primitives().cipher_encrypt(data, key, counter_block(iv))

    ecb = Cipher(algorithms.AES(key), modes.ECB()).encryptor()
    keystream = ecb.update(iv + b"\x00\x00\x00\x00" + iv + b"\x00\x00\x00\x01") + ecb.finalize()
    assert ciphertext == keystream


def test_hmac_input_built_in_identity_order(keys):
    """bob, alice supplied; HMAC input is alice's entry then bob's."""
    recipients = sender_view(keys["carol"], {"bob": keys["bob"], "alice": keys["alice"]})
    envelope = encrypt("order", recipients, IVRegistry())

    alice, bob = envelope.entries["alice"], envelope.entries["bob"]
    expected_input = alice.message_bytes + alice.iv_bytes + bob.message_bytes + bob.iv_bytes
    assert build_hmac_input(envelope.entries.items()) == expected_input

    bob_mac_key = keys["carol"].shared_secret(keys["bob"].public_key).mac_key
    assert bob.hmac_bytes == Primitives().hmac(expected_input, bob_mac_key)


def test_identity_order_uses_utf16_code_units():
    """A label above U+FFFF sorts before U+FFFF, as JavaScript clients order it."""
    astral, bmp = "\U0001F600", "\uFFFF"

    assert sorted([bmp, astral, "bob"], key=identity_order) == ["bob", astral, bmp]


def test_astral_identity_round_trip(keys):
    astral, bmp = "\U0001F600", "\uFFFF"
    named = {bmp: keys["bob"], astral: keys["carol"]}
    envelope = encrypt("wide", sender_view(keys["alice"], named), IVRegistry())

    assert envelope.recipients() == [astral, bmp]
    first, second = envelope.entries[astral], envelope.entries[bmp]
    assert build_hmac_input(envelope.entries.items()) == (
        first.message_bytes + first.iv_bytes + second.message_bytes + second.iv_bytes
    )

    for name, keypair in named.items():
        result = decrypt(envelope, receiver_view(keypair, "alice", keys["alice"]),
                         name, [bmp, astral], IVRegistry())
        assert result.plaintext == "wide"


# ==========================================================================
# Verification gates
# ==========================================================================

def test_not_addressed_to_me(keys):
    envelope = encrypt("hi", sender_view(keys["alice"], {"bob": keys["bob"]}), IVRegistry())

    with pytest.raises(NotAddressedToMe) as exc_info:
        open_as(envelope, keys, "carol")
    assert exc_info.value.sender == "alice"
    assert exc_info.value.recipient == "carol"
    assert exc_info.value.code == ErrorCode.E110_NOT_ADDRESSED_TO_ME


def test_missing_sender_key(keys):
    envelope = encrypt("hi", sender_view(keys["alice"], {"bob": keys["bob"]}), IVRegistry())

    with pytest.raises(MissingSenderKey) as exc_info:
        decrypt(envelope, Recipient("alice"), "bob", ["alice"], IVRegistry())
    assert exc_info.value.details["sender"] == "alice"


def test_wrong_sender_key_fails_authentication(keys):
    envelope = encrypt("hi", sender_view(keys["alice"], {"bob": keys["bob"]}), IVRegistry())
    impostor = receiver_view(keys["bob"], "alice", keys["carol"])

    with pytest.raises(AuthenticationFailure):
        decrypt(envelope, impostor, "bob", ["alice"], IVRegistry())


@pytest.mark.parametrize("target", ["bob", "carol", "dave"])
@pytest.mark.parametrize("field", ["message", "iv", "hmac"])
def test_tampering_breaks_every_recipient(keys, target, field):
    """Any flipped byte in any entry is caught by every recipient."""
    recipients = {n: keys[n] for n in ("bob", "carol", "dave")}
    envelope = encrypt("tamper", sender_view(keys["alice"], recipients), IVRegistry())
    bad = tampered(envelope, target, field)

    for name in recipients:
        with pytest.raises((AuthenticationFailure, TagFailure)):
            open_as(bad, keys, name)


def test_tampered_ciphertext_is_authentication_failure_for_others(keys):
    recipients = {n: keys[n] for n in ("bob", "carol")}
    envelope = encrypt("tamper", sender_view(keys["alice"], recipients), IVRegistry())

    with pytest.raises(AuthenticationFailure):
        open_as(tampered(envelope, "carol", "message"), keys, "bob")


def test_tampered_foreign_hmac_is_tag_failure(keys):
    recipients = {n: keys[n] for n in ("bob", "carol")}
    envelope = encrypt("tamper", sender_view(keys["alice"], recipients), IVRegistry())

    with pytest.raises(TagFailure):
        open_as(tampered(envelope, "carol", "hmac"), keys, "bob")


def test_tampered_tag(keys):
    envelope = encrypt("hi", sender_view(keys["alice"], {"bob": keys["bob"]}), IVRegistry())
    envelope.tag = flip(envelope.tag, 5)

    with pytest.raises(TagFailure):
        open_as(envelope, keys, "bob")


def test_dropped_recipient_breaks_authentication(keys):
    """Removing an entry changes the HMAC input for everyone else."""
    recipients = {n: keys[n] for n in ("bob", "carol")}
    data = encrypt("hi", sender_view(keys["alice"], recipients), IVRegistry()).to_dict()
    del data["text"]["carol"]

    with pytest.raises(AuthenticationFailure):
        open_as(Envelope.from_dict(data), keys, "bob")


def test_replay_detected(keys):
    """Second decryption of the same envelope is a replay."""
    envelope = encrypt("hi", sender_view(keys["alice"], {"bob": keys["bob"]}), IVRegistry())
    registry = IVRegistry()

    assert open_as(envelope, keys, "bob", registry=registry).plaintext == "hi"
    with pytest.raises(ReplayDetected) as exc_info:
        open_as(envelope, keys, "bob", registry=registry)
    assert exc_info.value.code == ErrorCode.E113_REPLAY_DETECTED


def test_own_sent_iv_is_rejected_as_replay(keys):
    """IVs used when sending also count as seen on receive."""
    registry = IVRegistry()
    envelope = encrypt("hi", sender_view(keys["alice"], {"bob": keys["bob"]}), registry)

    with pytest.raises(ReplayDetected):
        open_as(envelope, keys, "bob", registry=registry)


def test_authentication_failure_does_not_register_iv(keys):
    recipients = {n: keys[n] for n in ("bob", "carol")}
    envelope = encrypt("hi", sender_view(keys["alice"], recipients), IVRegistry())
    registry = IVRegistry()

    with pytest.raises(AuthenticationFailure):
        open_as(tampered(envelope, "carol", "message"), keys, "bob", registry=registry)
    assert len(registry) == 0


def test_missing_recipients_reported(keys):
    """Known {alice, bob, carol}, envelope to {alice, bob}: carol is missing."""
    sender = keys["dave"]
    recipients = {n: keys[n] for n in ("alice", "bob")}
    envelope = encrypt("hi", sender_view(sender, recipients), IVRegistry())

    result = decrypt(
        envelope,
        receiver_view(keys["alice"], "dave", sender),
        "alice",
        {"alice", "bob", "carol", "dave"},
        IVRegistry(),
    )
    assert result.plaintext == "hi"
    assert result.missing_recipients == ["carol"]


def test_short_body_is_invalid_size_before_tag_check(keys):
    """A body under 64 bytes fails on size even with a garbage tag."""
    sender = keys["alice"]
    recipients = sender_view(sender, {"bob": keys["bob"]})
    envelope = build_raw_envelope(b"short", recipients, Primitives())
    envelope.tag = base64.b64encode(b"\x00" * 64).decode()
    registry = IVRegistry()

    with pytest.raises(InvalidPlaintextSize) as exc_info:
        open_as(envelope, keys, "bob", registry=registry)
    assert exc_info.value.details["size"] == 5
    # The IV was consumed before decryption
    assert envelope.entries["bob"].iv in registry


def test_exact_padding_length_is_empty_message(keys):
    recipients = sender_view(keys["alice"], {"bob": keys["bob"]})
    envelope = build_raw_envelope(b"\x00" * 64, recipients, Primitives())

    assert open_as(envelope, keys, "bob").plaintext == ""


def test_invalid_utf8_yields_empty_plaintext(keys):
    """Authentic but undecodable text is returned as an empty string."""
    recipients = sender_view(keys["alice"], {"bob": keys["bob"], "carol": keys["carol"]})
    padded = b"\xff\xfe\xfd" + b"\x11" * 64
    envelope = build_raw_envelope(padded, recipients, Primitives())

    result = open_as(envelope, keys, "bob", known=["alice", "carol", "dave"])

    assert result.plaintext == ""
    assert result.missing_recipients == ["dave"]
