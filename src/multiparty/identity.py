"""
Multiparty - Identity management system.

Created by orpheus497

Stores the local key pair at rest, encrypted with a password:
- Argon2id key derivation (argon2-cffi), unique 16-byte salt per file
- AES-256-GCM authenticated encryption, unique 12-byte nonce per save
- Atomic writes through a temporary file and os.replace
"""

import base64
import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import aiofiles
from argon2.low_level import Type, hash_secret_raw
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .constants import (
    ARGON2_HASH_LEN,
    ARGON2_MEMORY_COST,
    ARGON2_PARALLELISM,
    ARGON2_TIME_COST,
    IDENTITY_FILE_VERSION,
    NONCE_SIZE,
    SALT_SIZE,
)
from .crypto import KeyPair
from .errors import CryptoError, ErrorCode, IdentityError

logger = logging.getLogger(__name__)


def _derive_storage_key(password: str, salt: bytes, time_cost: int, memory_cost: int) -> bytes:
    return hash_secret_raw(
        secret=password.encode('utf-8'),
        salt=salt,
        time_cost=time_cost,
        memory_cost=memory_cost,
        parallelism=ARGON2_PARALLELISM,
        hash_len=ARGON2_HASH_LEN,
        type=Type.ID,
    )


def encrypt_identity_file(identity_data: Dict[str, Any], password: str,
                          time_cost: int = ARGON2_TIME_COST,
                          memory_cost: int = ARGON2_MEMORY_COST) -> Dict[str, Any]:
    """
    Encrypt identity data with a password.

    The Argon2id cost parameters are stored alongside the ciphertext so a
    file stays readable after the configured defaults change.
    """
    salt = os.urandom(SALT_SIZE)
    key = _derive_storage_key(password, salt, time_cost, memory_cost)

    nonce = os.urandom(NONCE_SIZE)
    ciphertext = AESGCM(key).encrypt(nonce, json.dumps(identity_data).encode('utf-8'), None)

    return {
        'salt': base64.b64encode(salt).decode('utf-8'),
        'nonce': base64.b64encode(nonce).decode('utf-8'),
        'ciphertext': base64.b64encode(ciphertext).decode('utf-8'),
        'time_cost': time_cost,
        'memory_cost': memory_cost,
        'version': IDENTITY_FILE_VERSION,
    }


def decrypt_identity_file(encrypted_data: Dict[str, Any], password: str) -> Dict[str, Any]:
    """
    Decrypt identity data.

    Raises:
        CryptoError: If the password is incorrect or the file is corrupted
    """
    try:
        salt = base64.b64decode(encrypted_data['salt'])
        nonce = base64.b64decode(encrypted_data['nonce'])
        ciphertext = base64.b64decode(encrypted_data['ciphertext'])
        time_cost = int(encrypted_data.get('time_cost', ARGON2_TIME_COST))
        memory_cost = int(encrypted_data.get('memory_cost', ARGON2_MEMORY_COST))
    except (KeyError, ValueError, TypeError) as e:
        raise CryptoError(ErrorCode.E102_DECRYPTION_FAILED, f"Malformed identity file: {e}") from e

    key = _derive_storage_key(password, salt, time_cost, memory_cost)
    try:
        plaintext = AESGCM(key).decrypt(nonce, ciphertext, None)
    except InvalidTag as e:
        raise CryptoError(
            ErrorCode.E102_DECRYPTION_FAILED,
            "Failed to decrypt identity. Incorrect password or corrupted file.",
        ) from e
    return json.loads(plaintext.decode('utf-8'))


class Identity:
    """The local participant: identity label plus key pair."""

    def __init__(self, name: str, keypair: KeyPair):
        self.name = name
        self.keypair = keypair
        self.created_at = datetime.now(timezone.utc).isoformat()

    @property
    def fingerprint(self) -> str:
        return self.keypair.fingerprint

    def to_dict(self) -> Dict[str, Any]:
        """Export identity to dictionary."""
        return {
            'name': self.name,
            'keypair': self.keypair.to_dict(),
            'created_at': self.created_at,
            'fingerprint': self.fingerprint,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> 'Identity':
        """Import identity from dictionary."""
        identity = Identity(data['name'], KeyPair.from_dict(data['keypair']))
        identity.created_at = data.get('created_at', identity.created_at)
        return identity

    def get_shareable_info(self) -> Dict[str, str]:
        """
        Identity information to hand to peers.
        Does not include the private key.
        """
        return {
            'name': self.name,
            'public_key': self.keypair.public_key.encoded,
            'fingerprint': self.fingerprint,
        }


class IdentityManager:
    """Manages the local identity with encrypted storage."""

    def __init__(self, identity_file: str, time_cost: int = ARGON2_TIME_COST,
                 memory_cost: int = ARGON2_MEMORY_COST):
        self.identity_file = str(identity_file)
        self.time_cost = time_cost
        self.memory_cost = memory_cost
        self.identity: Optional[Identity] = None

    def identity_exists(self) -> bool:
        """Check if identity file exists."""
        return os.path.exists(self.identity_file)

    def create_identity(self, name: str, password: str) -> Identity:
        """
        Create and store a fresh identity.

        Raises:
            IdentityError: If an identity file already exists
        """
        if self.identity_exists():
            raise IdentityError(
                ErrorCode.E302_IDENTITY_ALREADY_EXISTS,
                f"Identity file already exists: {self.identity_file}",
                {"path": self.identity_file},
            )

        self.identity = Identity(name, KeyPair.generate())
        self.save_identity(password)
        return self.identity

    def load_identity(self, password: str) -> Optional[Identity]:
        """
        Load identity from encrypted file.
        Returns None if file doesn't exist or password is incorrect.
        """
        if not self.identity_exists():
            logger.debug(f"Identity file does not exist: {self.identity_file}")
            return None

        try:
            with open(self.identity_file, 'r', encoding='utf-8') as f:
                encrypted_data = json.load(f)

            identity_data = decrypt_identity_file(encrypted_data, password)
            self.identity = Identity.from_dict(identity_data)
            logger.info(f"Identity loaded: {self.identity.name}")
            return self.identity
        except CryptoError as e:
            logger.warning(f"Failed to decrypt identity (incorrect password?): {e}")
            return None
        except json.JSONDecodeError as e:
            logger.error(f"Corrupted identity file (invalid JSON): {e}")
            return None

    def _encrypted_payload(self, password: str) -> str:
        encrypted_data = encrypt_identity_file(
            self.identity.to_dict(), password, self.time_cost, self.memory_cost
        )
        return json.dumps(encrypted_data, indent=2, ensure_ascii=False)

    def save_identity(self, password: str) -> None:
        """
        Save identity to encrypted file (synchronous).

        Raises:
            IdentityError: If there is no identity or writing fails
        """
        if not self.identity:
            raise IdentityError(ErrorCode.E301_IDENTITY_NOT_FOUND, "No identity to save")

        try:
            temp_file = self.identity_file + '.tmp'
            with open(temp_file, 'w', encoding='utf-8') as f:
                f.write(self._encrypted_payload(password))

            # Rename temp file to actual file (atomic on POSIX systems)
            os.replace(temp_file, self.identity_file)
            logger.info(f"Identity saved: {self.identity.name}")
        except OSError as e:
            logger.error(f"Failed to save identity: {e}")
            raise IdentityError(
                ErrorCode.E304_IDENTITY_SAVE_FAILED,
                f"Failed to save identity: {e}",
                {"path": self.identity_file},
            ) from e

    async def save_identity_async(self, password: str) -> None:
        """Save identity to encrypted file asynchronously."""
        if not self.identity:
            raise IdentityError(ErrorCode.E301_IDENTITY_NOT_FOUND, "No identity to save")

        try:
            temp_file = self.identity_file + '.tmp'
            async with aiofiles.open(temp_file, 'w', encoding='utf-8') as f:
                await f.write(self._encrypted_payload(password))

            os.replace(temp_file, self.identity_file)
            logger.info(f"Identity saved (async): {self.identity.name}")
        except OSError as e:
            logger.error(f"Failed to save identity (async): {e}")
            raise IdentityError(
                ErrorCode.E304_IDENTITY_SAVE_FAILED,
                f"Failed to save identity: {e}",
                {"path": self.identity_file},
            ) from e

    def change_password(self, old_password: str, new_password: str) -> bool:
        """
        Change identity password.
        Returns True if successful, False if old password is incorrect.
        """
        if not self.load_identity(old_password):
            return False

        self.save_identity(new_password)
        return True

    def delete_identity(self, password: str) -> bool:
        """
        Delete identity file after verifying password.
        Returns True if successful, False if password is incorrect or file doesn't exist.
        """
        if not self.load_identity(password):
            logger.error("Delete failed: incorrect password or missing identity")
            return False

        os.remove(self.identity_file)
        name = self.identity.name if self.identity else "unknown"
        self.identity = None
        logger.info(f"Identity deleted: {name}")
        return True
