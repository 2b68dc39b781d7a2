"""
MaskFS Core: Constants and Type Definitions

This module provides system-wide constants, error codes, and type definitions.
"""
from enum import Enum, IntEnum
from typing import TypeAlias

# Version information
MASKFS_VERSION = "1.0.0"


# Error codes (0-9 range)
class ErrorCode(IntEnum):
    """Standardized error codes for MaskFS operations."""

    SUCCESS = 0  # Operation completed successfully
    INVALID_INPUT = 1  # Bad path, invalid configuration
    NOT_FOUND = 2  # File doesn't exist, or is masked
    PERMISSION_DENIED = 3  # Insufficient permissions
    INTERNAL_ERROR = 6  # Bug in MaskFS or unexpected filesystem failure


# Type aliases for clarity
FSPath: TypeAlias = str  # Root-relative POSIX path, no leading slash
LinkPath: TypeAlias = str  # URL-escaped path under FILES_PREFIX
RuleText: TypeAlias = str  # Newline-delimited mask rules


# Route namespace for file serving
FILES_PREFIX = "/files/"
ROOT_ROUTE = "/"

# Methods the request pipeline accepts
ALLOWED_METHODS = ("GET", "HEAD")

# Timestamp format for Entry.mod_time (RFC 3339, always UTC)
RFC3339_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


class Polarity(Enum):
    """Polarity of a mask rule."""

    INCLUDE = "include"  # Plain pattern: path is visible
    EXCLUDE = "exclude"  # Negated pattern (leading '!'): path is hidden


# Resource limits and defaults
class Limits:
    """System limits and default values."""

    # Path limits
    MAX_PATH_LENGTH = 4096
    MAX_RULE_LENGTH = 4096

    # Server defaults
    DEFAULT_PORT = 9888
    DEFAULT_SHUTDOWN_GRACE = 5.0  # seconds
    MAX_SHUTDOWN_GRACE = 300.0  # seconds

    # Bytes per read when streaming files
    STREAM_CHUNK_SIZE = 64 * 1024


# Configuration keys
class ConfigKey:
    """Configuration key constants."""

    # Top-level keys
    SERVER = "server"
    MASK = "mask"
    LOGGING = "logging"

    # Server configuration
    SERVER_HOST = "host"
    SERVER_PORT = "port"
    SERVER_ROOT = "root"
    SERVER_GRACE = "grace"

    # Mask configuration
    MASK_RULES = "rules"
    MASK_FILE = "file"

    # Logging configuration
    LOGGING_LEVEL = "level"
    LOGGING_FILE = "file"


DEFAULT_MASK_RULES = "**/maskfs/\n**/*.go"

# Default configuration values
DEFAULT_CONFIG = {
    ConfigKey.SERVER: {
        ConfigKey.SERVER_HOST: "",
        ConfigKey.SERVER_PORT: Limits.DEFAULT_PORT,
        ConfigKey.SERVER_ROOT: ".",
        ConfigKey.SERVER_GRACE: Limits.DEFAULT_SHUTDOWN_GRACE,
    },
    ConfigKey.MASK: {
        ConfigKey.MASK_RULES: DEFAULT_MASK_RULES,
        ConfigKey.MASK_FILE: None,
    },
    ConfigKey.LOGGING: {
        ConfigKey.LOGGING_LEVEL: "INFO",
        ConfigKey.LOGGING_FILE: None,
    },
}
