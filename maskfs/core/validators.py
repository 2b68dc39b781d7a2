"""
MaskFS Core: Input Validators.

This module provides input validation functions for configuration values:
ports, serving root, mask rule text, timeouts, and log levels.
"""
import os
from typing import Any, Dict, Union

from maskfs.core.constants import ConfigKey, ErrorCode, Limits

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class ValidationError(Exception):
    """Base exception for validation errors."""

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.INVALID_INPUT):
        """Initialize ValidationError.

        Args:
            message: Error message
            error_code: Associated error code
        """
        super().__init__(message)
        self.error_code = error_code


def validate_config(config: Dict[str, Any]) -> bool:
    """Validate MaskFS configuration structure.

    Expects the merged ``maskfs`` section (server, mask, logging).

    Args:
        config: Configuration dictionary

    Returns:
        True if valid

    Raises:
        ValidationError: If configuration is invalid
    """
    if not isinstance(config, dict):
        raise ValidationError("Configuration must be a dictionary")

    server = config.get(ConfigKey.SERVER, {})
    if not isinstance(server, dict):
        raise ValidationError("Server configuration must be a dictionary")

    if ConfigKey.SERVER_PORT in server:
        validate_port(server[ConfigKey.SERVER_PORT])

    if ConfigKey.SERVER_ROOT in server:
        validate_root(server[ConfigKey.SERVER_ROOT])

    if ConfigKey.SERVER_GRACE in server:
        validate_timeout(server[ConfigKey.SERVER_GRACE])

    mask = config.get(ConfigKey.MASK, {})
    if not isinstance(mask, dict):
        raise ValidationError("Mask configuration must be a dictionary")

    if mask.get(ConfigKey.MASK_RULES) is not None:
        validate_rules(mask[ConfigKey.MASK_RULES])

    logging_config = config.get(ConfigKey.LOGGING, {})
    if not isinstance(logging_config, dict):
        raise ValidationError("Logging configuration must be a dictionary")

    if ConfigKey.LOGGING_LEVEL in logging_config:
        validate_log_level(logging_config[ConfigKey.LOGGING_LEVEL])

    return True


def validate_port(port: Union[int, str]) -> bool:
    """Validate network port number.

    Args:
        port: Port number to validate

    Returns:
        True if valid

    Raises:
        ValidationError: If port is invalid
    """
    if isinstance(port, bool):
        raise ValidationError(f"Port must be numeric, got {type(port)}")

    try:
        port_num = int(port)
    except (ValueError, TypeError):
        raise ValidationError(f"Port must be numeric, got {port!r}")

    # 0 asks the OS for an ephemeral port
    if port_num < 0 or port_num > 65535:
        raise ValidationError(f"Port must be in range 0-65535, got {port_num}")

    return True


def validate_root(root: str) -> bool:
    """Validate the serving root directory.

    Args:
        root: Directory to serve

    Returns:
        True if valid

    Raises:
        ValidationError: If root is not an existing directory
    """
    if not root or not isinstance(root, str):
        raise ValidationError(f"Serving root must be a non-empty string, got {root!r}")

    if len(root) > Limits.MAX_PATH_LENGTH:
        raise ValidationError(f"Serving root exceeds maximum length ({Limits.MAX_PATH_LENGTH})")

    if "\0" in root:
        raise ValidationError("Serving root contains null bytes")

    if not os.path.exists(root):
        raise ValidationError(f"Serving root does not exist: {root}", ErrorCode.NOT_FOUND)

    if not os.path.isdir(root):
        raise ValidationError(f"Serving root is not a directory: {root}")

    return True


def validate_rules(rules: str) -> bool:
    """Validate mask rule text.

    Only the container is checked here. Individual lines are parsed
    leniently by the pattern matcher.

    Args:
        rules: Newline-delimited rule text

    Returns:
        True if valid

    Raises:
        ValidationError: If rules is not text
    """
    if not isinstance(rules, str):
        raise ValidationError(f"Mask rules must be a string, got {type(rules).__name__}")

    if "\0" in rules:
        raise ValidationError("Mask rules contain null bytes")

    for number, line in enumerate(rules.split("\n"), start=1):
        if len(line) > Limits.MAX_RULE_LENGTH:
            raise ValidationError(
                f"Mask rule on line {number} exceeds maximum length ({Limits.MAX_RULE_LENGTH})"
            )

    return True


def validate_timeout(timeout: Union[int, float]) -> bool:
    """Validate timeout value.

    Args:
        timeout: Timeout in seconds

    Returns:
        True if valid

    Raises:
        ValidationError: If timeout is invalid
    """
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)):
        raise ValidationError(f"Timeout must be numeric, got {type(timeout)}")

    if timeout <= 0:
        raise ValidationError(f"Timeout must be positive: {timeout}")

    if timeout > Limits.MAX_SHUTDOWN_GRACE:
        raise ValidationError(
            f"Timeout exceeds maximum ({Limits.MAX_SHUTDOWN_GRACE} seconds): {timeout}"
        )

    return True


def validate_log_level(level: str) -> bool:
    """Validate log level name.

    Args:
        level: Level name (case-insensitive)

    Returns:
        True if valid

    Raises:
        ValidationError: If level is unknown
    """
    if not isinstance(level, str) or level.upper() not in VALID_LOG_LEVELS:
        raise ValidationError(
            f"Invalid log level: {level}. Must be one of {sorted(VALID_LOG_LEVELS)}"
        )

    return True
