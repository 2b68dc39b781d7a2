#!/usr/bin/env python3
"""Main entry point for the MaskFS server.

This module handles:
- Component initialization (mask rules, request pipeline, HTTP server)
- Signal handling for graceful shutdown
- Draining in-flight requests on exit

Example:
    >>> from maskfs.main import run_maskfs
    >>> run_maskfs(config, logger)
"""

import os
import signal
import sys
import threading
from typing import List, Optional

from maskfs.core.constants import Limits
from maskfs.core.validators import ValidationError, validate_rules
from maskfs.infrastructure.config_manager import ConfigError, ConfigManager
from maskfs.infrastructure.logger import Logger
from maskfs.rules.engine import GlobMask
from maskfs.server.pipeline import RequestPipeline
from maskfs.server.transport import MaskFSServer, serve


class MaskFSMain:
    """
    Main class for the MaskFS server.

    Builds the immutable mask once, wires it into the request pipeline, and
    owns the server lifecycle.
    """

    def __init__(self, config: ConfigManager, logger: Logger):
        """
        Initialize MaskFS main controller.

        Args:
            config: Configuration manager with all sources loaded
            logger: Logger instance
        """
        self.config = config
        self.logger = logger
        self.shutdown_event = threading.Event()

        # Components
        self.root: Optional[str] = None
        self.mask: Optional[GlobMask] = None
        self.pipeline: Optional[RequestPipeline] = None
        self.server: Optional[MaskFSServer] = None

    def initialize_components(self) -> None:
        """
        Validate configuration and build the mask and pipeline.

        Raises:
            ConfigError: If the configuration or mask rules are invalid
        """
        self.logger.info("Initializing components...")

        self.config.validate()

        rules_text = self.config.get_mask_rules()
        try:
            validate_rules(rules_text)
        except ValidationError as e:
            raise ConfigError(f"Invalid mask rules: {e}", e.error_code)

        self.mask = GlobMask.from_text(rules_text, logger=self.logger)
        self.logger.debug("Mask created", mask=repr(self.mask))
        if self.mask.rules.inert_rules:
            self.logger.warning(
                "Some mask rules match nothing", count=len(self.mask.rules.inert_rules)
            )

        self.root = os.path.realpath(self.config.get("maskfs.server.root", "."))
        self.pipeline = RequestPipeline(self.root, self.mask, logger=self.logger)

        self.logger.info("Serving root", root=self.root, rules=len(self.mask.rules))

    def create_server(self) -> MaskFSServer:
        """
        Bind the HTTP server.

        Raises:
            ConfigError: If the address cannot be bound
        """
        host = self.config.get("maskfs.server.host", "")
        port = int(self.config.get("maskfs.server.port", Limits.DEFAULT_PORT))

        try:
            self.server = MaskFSServer((host, port), self.pipeline, logger=self.logger)
        except OSError as e:
            raise ConfigError(f"Cannot listen on {host or '*'}:{port}: {e}")

        return self.server

    def setup_signal_handlers(self) -> None:
        """
        Setup signal handlers for graceful shutdown.

        Handles:
        - SIGTERM: Graceful shutdown
        - SIGINT: Graceful shutdown (Ctrl+C)
        """

        def signal_handler(signum, frame):
            sig_name = signal.Signals(signum).name
            self.logger.info(f"Received signal {sig_name}, shutting down...")
            self.shutdown_event.set()

        signal.signal(signal.SIGTERM, signal_handler)
        signal.signal(signal.SIGINT, signal_handler)

        self.logger.debug("Signal handlers registered")

    def explain(self, path: str) -> List[str]:
        """
        Describe how the mask decides a path.

        Args:
            path: Root-relative path; a trailing slash marks a directory

        Returns:
            Matching rules in declaration order, then the verdict
        """
        rules = self.mask.rules
        relative = path.lstrip("/")
        is_dir = path.endswith("/") or os.path.isdir(os.path.join(self.root, relative))

        lines = [
            f"line {rule.line}: {rule.pattern} ({rule.polarity.value})"
            for rule in rules.matching_rules(relative, is_dir)
        ]
        if not lines:
            lines.append("no rule matches")

        verdict = "visible" if rules.is_visible(relative, is_dir) else "masked"
        lines.append(f"{path}: {verdict}")
        return lines

    def run(self) -> int:
        """
        Run the server until a signal or listener failure.

        Returns:
            Exit code (0 for success, non-zero for failure)
        """
        try:
            self.initialize_components()
            self.create_server()
            self.setup_signal_handlers()

            grace = float(
                self.config.get("maskfs.server.grace", Limits.DEFAULT_SHUTDOWN_GRACE)
            )
            serve(self.server, self.shutdown_event, grace=grace)
            return 0

        except ConfigError as e:
            self.logger.error(f"Configuration error: {e.message}")
            return 1

        except KeyboardInterrupt:
            self.logger.info("Interrupted by user")
            return 130

        except Exception as e:
            self.logger.exception("Fatal error", e)
            return 1


def run_maskfs(config: ConfigManager, logger: Logger) -> int:
    """
    Main entry point for running MaskFS.

    Args:
        config: Configuration manager
        logger: Logger instance

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    return MaskFSMain(config, logger).run()


def main():
    """Entry point when run as a module; delegates to the CLI."""
    from maskfs.cli import main as cli_main

    return cli_main()


if __name__ == "__main__":
    sys.exit(main())
