#!/usr/bin/env python3
"""Command-line interface for MaskFS.

This module provides the CLI for serving a masked directory tree:
- Argument parsing and validation
- Configuration layering (file, environment, arguments)
- Logging setup
- The ``--explain`` dry run for mask rules

Example:
    >>> from maskfs.cli import parse_arguments
    >>> args = parse_arguments(["--root", "/srv/data", "--mask", "**/*.md"])
"""

import argparse
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from maskfs.core.constants import DEFAULT_MASK_RULES, MASKFS_VERSION, Limits
from maskfs.infrastructure.config_manager import ConfigError, ConfigManager, ConfigSource
from maskfs.infrastructure.logger import Logger, set_global_logger

DESCRIPTION = "MaskFS - serve a directory over HTTP, hiding everything the mask does not include"


class CLIError(Exception):
    """Exception raised for CLI-related errors."""


def parse_arguments(args: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Args:
        args: Argument list to parse (defaults to sys.argv[1:])

    Returns:
        Parsed arguments namespace

    Raises:
        SystemExit: On invalid arguments or --help/--version
        CLIError: If an argument refers to a missing file or directory
    """
    parser = argparse.ArgumentParser(
        prog="maskfs",
        description=DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Mask rules use .gitignore syntax, one per line, but select what to SHOW.
The last matching rule wins; a leading '!' hides what earlier rules showed.

Examples:
  # Serve only Go sources below the current directory
  maskfs --mask '**/*.go'

  # Serve a tree with rules from a file
  maskfs --root /srv/data --mask-file rules.txt --port 8080

  # Check how the mask treats a path without serving
  maskfs --mask-file rules.txt --explain docs/secret.md

Default mask:
  {DEFAULT_MASK_RULES.replace(chr(10), chr(10) + '  ')}
        """,
    )

    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s {MASKFS_VERSION}",
    )

    parser.add_argument(
        "-c",
        "--config",
        metavar="FILE",
        type=str,
        help="Configuration file path (YAML format)",
    )

    # Server options
    server_group = parser.add_argument_group("server options")

    server_group.add_argument(
        "-p",
        "--port",
        type=int,
        help=f"Port to listen on (default: {Limits.DEFAULT_PORT})",
    )

    server_group.add_argument(
        "--host",
        type=str,
        help="Address to bind (default: all interfaces)",
    )

    server_group.add_argument(
        "-r",
        "--root",
        metavar="DIR",
        type=str,
        help="Directory to serve (default: current directory)",
    )

    server_group.add_argument(
        "--grace",
        metavar="SECONDS",
        type=float,
        help=f"Shutdown grace period (default: {Limits.DEFAULT_SHUTDOWN_GRACE})",
    )

    # Mask options
    mask_group = parser.add_argument_group("mask options")
    rules_source = mask_group.add_mutually_exclusive_group()

    rules_source.add_argument(
        "-m",
        "--mask",
        metavar="RULES",
        type=str,
        help="Newline-delimited mask rules",
    )

    rules_source.add_argument(
        "--mask-file",
        metavar="FILE",
        type=str,
        help="File containing mask rules",
    )

    mask_group.add_argument(
        "--explain",
        metavar="PATH",
        type=str,
        help="Print the rules matching PATH and whether it is visible, then exit",
    )

    # Logging options
    log_group = parser.add_argument_group("logging options")

    log_group.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    log_group.add_argument(
        "--log-file",
        metavar="FILE",
        type=str,
        help="Also write logs to FILE (rotated at 10MB)",
    )

    parsed = parser.parse_args(args)

    _validate_arguments(parsed)

    return parsed


def _validate_arguments(args: argparse.Namespace) -> None:
    """
    Validate parsed arguments.

    Args:
        args: Parsed arguments namespace

    Raises:
        CLIError: If validation fails
    """
    if args.config:
        config_path = Path(args.config)

        if not config_path.exists():
            raise CLIError(f"Configuration file does not exist: {args.config}")

        if not config_path.is_file():
            raise CLIError(f"Configuration path is not a file: {args.config}")

    if args.mask_file and not Path(args.mask_file).is_file():
        raise CLIError(f"Mask file does not exist: {args.mask_file}")

    if args.root:
        root_path = Path(args.root)

        if not root_path.exists():
            raise CLIError(f"Root directory does not exist: {args.root}")

        if not root_path.is_dir():
            raise CLIError(f"Root is not a directory: {args.root}")


def build_config_from_args(args: argparse.Namespace) -> Dict[str, Any]:
    """
    Build configuration dictionary from command-line arguments.

    Options that were not given are left as None, so lower-precedence
    sources keep their values.

    Args:
        args: Parsed arguments namespace

    Returns:
        Configuration dictionary for ConfigManager
    """
    return {
        "maskfs": {
            "server": {
                "host": args.host,
                "port": args.port,
                "root": args.root,
                "grace": args.grace,
            },
            "mask": {
                "rules": args.mask,
                "file": args.mask_file,
            },
            "logging": {
                "level": "DEBUG" if args.debug else None,
                "file": args.log_file,
            },
        }
    }


def load_config(args: argparse.Namespace) -> ConfigManager:
    """
    Layer configuration from file, environment, and arguments.

    Args:
        args: Parsed arguments namespace

    Returns:
        Loaded configuration manager

    Raises:
        ConfigError: If the configuration file cannot be loaded
    """
    config = ConfigManager(config_file=args.config)
    config.load_dict(build_config_from_args(args), ConfigSource.CLI_ARGS)
    return config


def setup_logging(config: ConfigManager) -> Logger:
    """
    Setup logging based on configuration.

    Args:
        config: Loaded configuration manager

    Returns:
        Configured logger instance
    """
    level = str(config.get("maskfs.logging.level", "INFO")).upper()
    log_file = config.get("maskfs.logging.file")

    try:
        logger = Logger("maskfs", level=level, log_file=log_file)
    except KeyError:
        raise ConfigError(f"Invalid log level: {level}")
    except OSError as e:
        raise ConfigError(f"Cannot open log file {log_file}: {e}")

    set_global_logger(logger)
    return logger


def print_banner(logger: Logger) -> None:
    """
    Print startup banner with version information.

    Args:
        logger: Logger instance
    """
    logger.info("=" * 60)
    logger.info(f"MaskFS v{MASKFS_VERSION}")
    logger.info(DESCRIPTION)
    logger.info("=" * 60)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Parses arguments, layers configuration, sets up logging, and hands
    control to :mod:`maskfs.main`.
    """
    from maskfs.main import MaskFSMain, run_maskfs

    try:
        args = parse_arguments(argv)
        config = load_config(args)
        logger = setup_logging(config)

        if args.explain:
            controller = MaskFSMain(config, logger)
            controller.initialize_components()
            for line in controller.explain(args.explain):
                print(line)
            return 0

        print_banner(logger)
        return run_maskfs(config, logger)

    except (CLIError, ConfigError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
