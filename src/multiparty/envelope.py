"""
Multiparty - Group message envelope.

Created by orpheus497

Wire format shared with every other client of the protocol:

    {
      "type": "message",
      "text": {
        "<identity>": {"message": <b64>, "iv": <b64>, "hmac": <b64>},
        ...
      },
      "tag": <b64>
    }

Field names and base64 encodings are fixed for interoperability.
"""

import base64
import binascii
import json
from typing import Any, Dict, Iterator, List, Tuple

from .constants import HMAC_SIZE, IV_SIZE, MESSAGE_TYPE
from .errors import EnvelopeError


def identity_order(identity: str) -> bytes:
    """
    Sort key for identity labels.

    Orders by UTF-16 code units, the order JavaScript clients use. It only
    differs from code-point order for characters above U+FFFF.
    """
    return identity.encode('utf-16-be', 'surrogatepass')


def b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode('ascii')


def b64decode(value: Any, field: str) -> bytes:
    """Strict base64 decode that reports the offending field."""
    if not isinstance(value, str):
        raise EnvelopeError(message=f"Field '{field}' must be a base64 string",
                            details={"field": field})
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise EnvelopeError(message=f"Field '{field}' is not valid base64",
                            details={"field": field, "error": str(e)}) from e


class RecipientEntry:
    """Ciphertext addressed to one recipient."""

    def __init__(self, message: str, iv: str, hmac: str = ""):
        self.message = message
        self.iv = iv
        self.hmac = hmac

    @property
    def message_bytes(self) -> bytes:
        return b64decode(self.message, "message")

    @property
    def iv_bytes(self) -> bytes:
        return b64decode(self.iv, "iv")

    @property
    def hmac_bytes(self) -> bytes:
        return b64decode(self.hmac, "hmac")

    def validate(self, identity: str) -> None:
        """
        Check the entry decodes and has well-formed sizes.

        Raises:
            EnvelopeError: If a field is not base64 or has the wrong length
        """
        b64decode(self.message, "message")
        if len(self.iv_bytes) != IV_SIZE:
            raise EnvelopeError(message=f"IV for '{identity}' must be {IV_SIZE} bytes",
                                details={"entry": identity})
        if len(self.hmac_bytes) != HMAC_SIZE:
            raise EnvelopeError(message=f"HMAC for '{identity}' must be {HMAC_SIZE} bytes",
                                details={"entry": identity})

    def to_dict(self) -> Dict[str, str]:
        return {'message': self.message, 'iv': self.iv, 'hmac': self.hmac}

    @staticmethod
    def from_dict(identity: str, data: Any) -> 'RecipientEntry':
        if not isinstance(data, dict):
            raise EnvelopeError(message=f"Entry for '{identity}' must be an object",
                                details={"entry": identity})
        missing = [k for k in ('message', 'iv', 'hmac') if k not in data]
        if missing:
            raise EnvelopeError(message=f"Entry for '{identity}' is missing {', '.join(missing)}",
                                details={"entry": identity, "missing": missing})
        entry = RecipientEntry(data['message'], data['iv'], data['hmac'])
        entry.validate(identity)
        return entry

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RecipientEntry):
            return NotImplemented
        return self.to_dict() == other.to_dict()


class Envelope:
    """
    A group message: one entry per addressed identity plus an aggregate tag.

    Entries are always kept in identity order, the same order every
    implementation uses to build HMAC and tag inputs.
    """

    def __init__(self, entries: Dict[str, RecipientEntry], tag: str,
                 message_type: str = MESSAGE_TYPE):
        self.type = message_type
        self.entries: Dict[str, RecipientEntry] = {
            identity: entries[identity] for identity in sorted(entries, key=identity_order)
        }
        self.tag = tag

    def sorted_items(self) -> List[Tuple[str, RecipientEntry]]:
        """Entries in identity order."""
        return sorted(self.entries.items(), key=lambda item: identity_order(item[0]))

    def recipients(self) -> List[str]:
        return [identity for identity, _ in self.sorted_items()]

    def get(self, identity: str):
        return self.entries.get(identity)

    def __contains__(self, identity: object) -> bool:
        return identity in self.entries

    def __iter__(self) -> Iterator[str]:
        return iter(self.recipients())

    def __len__(self) -> int:
        return len(self.entries)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wire dictionary."""
        return {
            'type': self.type,
            'text': {identity: entry.to_dict() for identity, entry in self.sorted_items()},
            'tag': self.tag,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @staticmethod
    def from_dict(data: Any) -> 'Envelope':
        """
        Parse a wire dictionary.

        Raises:
            EnvelopeError: If the structure does not match the wire format
        """
        if not isinstance(data, dict):
            raise EnvelopeError(message="Envelope must be an object")
        if data.get('type') != MESSAGE_TYPE:
            raise EnvelopeError(message=f"Unsupported envelope type: {data.get('type')!r}",
                                details={"type": data.get('type')})
        text = data.get('text')
        if not isinstance(text, dict):
            raise EnvelopeError(message="Envelope 'text' must be an object")
        if 'tag' not in data:
            raise EnvelopeError(message="Envelope is missing 'tag'")
        b64decode(data['tag'], "tag")

        entries = {
            identity: RecipientEntry.from_dict(identity, entry)
            for identity, entry in text.items()
        }
        return Envelope(entries, data['tag'])

    @staticmethod
    def from_json(raw: str) -> 'Envelope':
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise EnvelopeError(message=f"Envelope is not valid JSON: {e}") from e
        return Envelope.from_dict(data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Envelope):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return f"Envelope(recipients={self.recipients()!r})"
