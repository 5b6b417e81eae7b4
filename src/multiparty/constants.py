"""
Multiparty - Global Constants and Configuration Values

This module defines all constants used throughout the multiparty package.
Protocol sizes are fixed for interoperability with other implementations
of the group message format and must not be changed.

Author: orpheus497
Version: 1.0.0
"""

# Version Information
VERSION = "1.0.0"
APP_NAME = "Multiparty"

# Key Agreement Constants
PRIVATE_KEY_SIZE = 32  # Curve25519 scalar
PUBLIC_KEY_SIZE = 32  # Curve25519 point (u-coordinate)
MESSAGE_KEY_SIZE = 32  # bytes 0-31 of the shared secret
FINGERPRINT_LENGTH = 40  # hex characters

# Envelope Constants
MESSAGE_TYPE = "message"
IV_SIZE = 12  # 96-bit IV drawn per recipient
COUNTER_BLOCK_SIZE = 16  # AES block; IV is zero-extended to this size
PADDING_SIZE = 64  # random bytes appended to every plaintext
TAG_HASH_ROUNDS = 8  # chained SHA-512 rounds for the aggregate tag
HMAC_SIZE = 64  # HMAC-SHA512 output

# IV Registry
IV_REGISTRY_UNBOUNDED = 0
DEFAULT_IV_REGISTRY_MAX_ENTRIES = IV_REGISTRY_UNBOUNDED

# Identity Storage (Argon2id + AES-256-GCM)
SALT_SIZE = 16  # 128 bits
NONCE_SIZE = 12  # 96 bits for GCM
ARGON2_TIME_COST = 3
ARGON2_MEMORY_COST = 65536  # 64 MB
ARGON2_PARALLELISM = 1
ARGON2_HASH_LEN = 32
IDENTITY_FILE_VERSION = "1.0"

# File Paths
DEFAULT_DATA_DIR = "~/.multiparty"
IDENTITY_FILENAME = "identity.json"
CONFIG_FILENAME = "config.toml"
LOGS_DIR = "logs"
LOG_FILENAME = "multiparty.log"

# Environment
ENV_PREFIX = "MULTIPARTY"
PASSWORD_ENV_VAR = "MULTIPARTY_PASSWORD"

# Logging Configuration
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
LOG_BACKUP_COUNT = 5
