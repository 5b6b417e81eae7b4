"""
Multiparty - Custom Exception Classes and Error Codes

This module defines all custom exceptions and error codes used throughout
the multiparty package. Each error has a unique code for logging and debugging.

Decryption failures form a closed set of subclasses of DecryptionError.
Each one carries the sender and recipient identities so callers can report
which conversation partner produced the rejected envelope.

Author: orpheus497
Version: 1.0.0
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Enumeration of all multiparty error codes."""

    # General Errors (E001-E099)
    E002_INVALID_ARGUMENT = "E002"

    # Crypto Errors (E100-E199)
    E100_CRYPTO_ERROR = "E100"
    E101_ENCRYPTION_FAILED = "E101"
    E102_DECRYPTION_FAILED = "E102"
    E103_INVALID_KEY = "E103"
    E104_KEY_GENERATION_FAILED = "E104"

    # Envelope Verification Errors (E110-E119)
    E110_NOT_ADDRESSED_TO_ME = "E110"
    E111_MISSING_SENDER_KEY = "E111"
    E112_AUTHENTICATION_FAILURE = "E112"
    E113_REPLAY_DETECTED = "E113"
    E114_INVALID_PLAINTEXT_SIZE = "E114"
    E115_TAG_FAILURE = "E115"

    # Wire Format Errors (E200-E299)
    E206_INVALID_ENVELOPE = "E206"

    # Identity Errors (E300-E399)
    E300_IDENTITY_ERROR = "E300"
    E301_IDENTITY_NOT_FOUND = "E301"
    E302_IDENTITY_ALREADY_EXISTS = "E302"
    E304_IDENTITY_SAVE_FAILED = "E304"

    # Buddy Errors (E400-E499)
    E400_BUDDY_ERROR = "E400"
    E401_BUDDY_NOT_FOUND = "E401"

    # Config Errors (E700-E799)
    E700_CONFIG_ERROR = "E700"
    E702_CONFIG_SAVE_FAILED = "E702"
    E703_INVALID_CONFIG = "E703"
    E704_CONFIG_PARSE_ERROR = "E704"


class MultipartyError(Exception):
    """Base exception class for all multiparty errors.

    Attributes:
        code: Error code from ErrorCode enum
        message: Human-readable error message
        details: Additional error details (optional)
    """

    def __init__(self, code: ErrorCode, message: str, details: Optional[Dict[str, Any]] = None):
        """Initialize a multiparty error.

        Args:
            code: Error code from ErrorCode enum
            message: Human-readable error message
            details: Additional error context (optional)
        """
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(f"[{code.value}] {message}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for serialization.

        Returns:
            Dictionary containing error information
        """
        return {"code": self.code.value, "message": self.message, "details": self.details}


class CryptoError(MultipartyError):
    """Exception raised for key handling and primitive failures."""

    def __init__(
        self,
        code: ErrorCode = ErrorCode.E100_CRYPTO_ERROR,
        message: str = "Cryptographic operation failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(code, message, details)


class EncryptionError(CryptoError):
    """Exception raised when an envelope cannot be built."""

    def __init__(
        self,
        message: str = "Encryption failed",
        details: Optional[Dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.E101_ENCRYPTION_FAILED,
    ):
        super().__init__(code, message, details)


class DecryptionError(CryptoError):
    """Base class for envelope rejections.

    Subclasses are the only failure modes of decryption. None of them
    is raised after any plaintext has been released to the caller.

    Attributes:
        sender: Identity label of the claimed sender
        recipient: Identity label the envelope was opened for
    """

    default_code = ErrorCode.E102_DECRYPTION_FAILED
    default_message = "Decryption failed"

    def __init__(
        self,
        sender: str,
        recipient: Optional[str] = None,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.sender = sender
        self.recipient = recipient
        context = {"sender": sender, "recipient": recipient}
        context.update(details or {})
        text = message or f"{self.default_message} for message from {sender}"
        super().__init__(self.default_code, text, context)


class NotAddressedToMe(DecryptionError):
    """The envelope carries no entry for the local identity."""

    default_code = ErrorCode.E110_NOT_ADDRESSED_TO_ME
    default_message = "Not encrypted for me"


class MissingSenderKey(DecryptionError):
    """No shared secret has been derived for the sender."""

    default_code = ErrorCode.E111_MISSING_SENDER_KEY
    default_message = "Missing public key"


class AuthenticationFailure(DecryptionError):
    """The per-recipient HMAC did not verify."""

    default_code = ErrorCode.E112_AUTHENTICATION_FAILURE
    default_message = "HMAC failure"


class ReplayDetected(DecryptionError):
    """The entry's IV has been seen before."""

    default_code = ErrorCode.E113_REPLAY_DETECTED
    default_message = "IV reuse (possible replay attack)"


class InvalidPlaintextSize(DecryptionError):
    """Decrypted body is shorter than the padding suffix."""

    default_code = ErrorCode.E114_INVALID_PLAINTEXT_SIZE
    default_message = "Invalid plaintext size"


class TagFailure(DecryptionError):
    """The aggregate message tag did not verify."""

    default_code = ErrorCode.E115_TAG_FAILURE
    default_message = "Tag failure"


class EnvelopeError(MultipartyError):
    """Exception raised for structurally malformed envelopes."""

    def __init__(
        self,
        code: ErrorCode = ErrorCode.E206_INVALID_ENVELOPE,
        message: str = "Invalid envelope",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(code, message, details)


class IdentityError(MultipartyError):
    """Exception raised for identity management failures.

    This includes loading, saving, and validation of local identities.
    """

    def __init__(
        self,
        code: ErrorCode = ErrorCode.E300_IDENTITY_ERROR,
        message: str = "Identity operation failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(code, message, details)


class BuddyError(MultipartyError):
    """Exception raised for buddy list failures inside a session."""

    def __init__(
        self,
        code: ErrorCode = ErrorCode.E400_BUDDY_ERROR,
        message: str = "Buddy operation failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(code, message, details)


class ConfigError(MultipartyError):
    """Exception raised for configuration failures.

    This includes loading, parsing, and validating configuration files.
    """

    def __init__(
        self,
        code: ErrorCode = ErrorCode.E700_CONFIG_ERROR,
        message: str = "Configuration operation failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(code, message, details)
