"""Tests for MaskFS command-line interface."""

import os
from unittest.mock import patch

import pytest

from maskfs.cli import (
    CLIError,
    build_config_from_args,
    load_config,
    main,
    parse_arguments,
    setup_logging,
)
from maskfs.infrastructure.config_manager import ConfigError, ConfigManager
from maskfs.infrastructure.logger import LogLevel, get_logger


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep MASKFS_* variables from the calling shell out of the tests."""
    for key in list(os.environ):
        if key.startswith("MASKFS_"):
            monkeypatch.delenv(key)


class TestParseArguments:
    """Tests for argument parsing."""

    def test_no_arguments(self):
        args = parse_arguments([])

        assert args.config is None
        assert args.port is None
        assert args.root is None
        assert args.mask is None
        assert args.mask_file is None
        assert not args.debug

    def test_server_options(self, serve_root):
        args = parse_arguments(
            ["--port", "8080", "--host", "127.0.0.1", "--root", str(serve_root), "--grace", "2.5"]
        )

        assert args.port == 8080
        assert args.host == "127.0.0.1"
        assert args.root == str(serve_root)
        assert args.grace == 2.5

    def test_short_options(self, serve_root):
        args = parse_arguments(["-p", "1", "-r", str(serve_root), "-m", "*.go"])

        assert args.port == 1
        assert args.mask == "*.go"

    def test_mask_and_mask_file_are_exclusive(self, temp_dir):
        rules = temp_dir / "rules.txt"
        rules.write_text("*.go")

        with pytest.raises(SystemExit):
            parse_arguments(["--mask", "*.go", "--mask-file", str(rules)])

    def test_version_option(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            parse_arguments(["--version"])

        assert exc_info.value.code == 0
        assert "maskfs 1.0.0" in capsys.readouterr().out

    def test_invalid_port(self):
        with pytest.raises(SystemExit):
            parse_arguments(["--port", "http"])

    def test_missing_config_file(self, temp_dir):
        with pytest.raises(CLIError, match="Configuration file does not exist"):
            parse_arguments(["--config", str(temp_dir / "nope.yaml")])

    def test_config_must_be_file(self, temp_dir):
        with pytest.raises(CLIError, match="not a file"):
            parse_arguments(["--config", str(temp_dir)])

    def test_missing_mask_file(self, temp_dir):
        with pytest.raises(CLIError, match="Mask file does not exist"):
            parse_arguments(["--mask-file", str(temp_dir / "nope.txt")])

    def test_missing_root(self, temp_dir):
        with pytest.raises(CLIError, match="Root directory does not exist"):
            parse_arguments(["--root", str(temp_dir / "absent")])

    def test_root_must_be_directory(self, serve_root):
        with pytest.raises(CLIError, match="not a directory"):
            parse_arguments(["--root", str(serve_root / "main.go")])


class TestBuildConfig:
    """Tests for turning arguments into configuration."""

    def test_unset_options_are_none(self):
        config = build_config_from_args(parse_arguments([]))

        assert config["maskfs"]["server"] == {"host": None, "port": None, "root": None, "grace": None}
        assert config["maskfs"]["mask"] == {"rules": None, "file": None}
        assert config["maskfs"]["logging"] == {"level": None, "file": None}

    def test_debug_sets_level(self):
        config = build_config_from_args(parse_arguments(["--debug"]))
        assert config["maskfs"]["logging"]["level"] == "DEBUG"

    def test_arguments_override_file(self, config_file):
        config = load_config(parse_arguments(["--config", str(config_file), "--port", "7000"]))

        assert config.get("maskfs.server.port") == 7000
        assert config.get("maskfs.server.host") == "127.0.0.1"

    def test_file_used_when_argument_missing(self, config_file):
        config = load_config(parse_arguments(["--config", str(config_file)]))
        assert config.get_mask_rules() == "**/*.go\n!**/secrets/"

    def test_mask_argument_overrides_file(self, config_file):
        config = load_config(parse_arguments(["--config", str(config_file), "--mask", "*.md"]))
        assert config.get_mask_rules() == "*.md"

    def test_mask_file_argument(self, temp_dir):
        rules = temp_dir / "rules.txt"
        rules.write_text("**/*.md\n")

        config = load_config(parse_arguments(["--mask-file", str(rules)]))

        assert config.get_mask_rules() == "**/*.md\n"


class TestSetupLogging:
    """Tests for logging setup."""

    def test_level_from_config(self):
        config = ConfigManager(environ={})
        config.set("maskfs.logging.level", "warning")

        logger = setup_logging(config)

        assert logger.get_level() == LogLevel.WARNING
        assert get_logger() is logger

    def test_invalid_level(self):
        config = ConfigManager(environ={})
        config.set("maskfs.logging.level", "chatty")

        with pytest.raises(ConfigError, match="Invalid log level"):
            setup_logging(config)

    def test_log_file(self, temp_dir):
        config = ConfigManager(environ={})
        config.set("maskfs.logging.file", str(temp_dir / "maskfs.log"))

        logger = setup_logging(config)
        logger.info("hello")
        for handler in logger.logger.handlers:
            handler.flush()

        assert "hello" in (temp_dir / "maskfs.log").read_text()

    def test_unwritable_log_file(self, temp_dir):
        config = ConfigManager(environ={})
        config.set("maskfs.logging.file", str(temp_dir / "missing" / "maskfs.log"))

        with pytest.raises(ConfigError, match="Cannot open log file"):
            setup_logging(config)


class TestMain:
    """Tests for the CLI entry point."""

    def test_runs_server(self, serve_root):
        with patch("maskfs.main.run_maskfs", return_value=0) as mock_run:
            assert main(["--root", str(serve_root), "--port", "0"]) == 0

        config = mock_run.call_args[0][0]
        assert config.get("maskfs.server.root") == str(serve_root)
        assert config.get("maskfs.server.port") == 0

    def test_propagates_exit_code(self, serve_root):
        with patch("maskfs.main.run_maskfs", return_value=1):
            assert main(["--root", str(serve_root)]) == 1

    def test_cli_error(self, temp_dir, capsys):
        assert main(["--root", str(temp_dir / "absent")]) == 1
        assert "Error: Root directory does not exist" in capsys.readouterr().err

    def test_config_error(self, temp_dir, capsys):
        broken = temp_dir / "broken.yaml"
        broken.write_text("maskfs: [unclosed\n")

        assert main(["--config", str(broken)]) == 1
        assert "YAML parse error" in capsys.readouterr().err

    def test_keyboard_interrupt(self, serve_root, capsys):
        with patch("maskfs.main.run_maskfs", side_effect=KeyboardInterrupt):
            assert main(["--root", str(serve_root)]) == 130

        assert "Interrupted" in capsys.readouterr().err

    def test_explain_visible(self, serve_root, capsys):
        code = main(["--root", str(serve_root), "--mask", "**/*.go\n!**/secrets/", "--explain", "main.go"])

        assert code == 0
        assert capsys.readouterr().out.splitlines() == [
            "line 1: **/*.go (include)",
            "main.go: visible",
        ]

    def test_explain_masked(self, serve_root, capsys):
        code = main(
            ["--root", str(serve_root), "--mask", "**/*.go\n!**/secrets/", "--explain", "secrets/key.go"]
        )

        assert code == 0
        assert capsys.readouterr().out.splitlines() == [
            "line 1: **/*.go (include)",
            "line 2: !**/secrets/ (exclude)",
            "secrets/key.go: masked",
        ]

    def test_explain_no_match(self, serve_root, capsys):
        main(["--root", str(serve_root), "--mask", "*.go", "--explain", "README.md"])

        assert capsys.readouterr().out.splitlines() == ["no rule matches", "README.md: masked"]

    def test_explain_does_not_serve(self, serve_root):
        with patch("maskfs.main.run_maskfs") as mock_run:
            main(["--root", str(serve_root), "--mask", "*.go", "--explain", "main.go"])

        mock_run.assert_not_called()
