"""Shared pytest fixtures for MaskFS tests."""
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Dict, Generator

import pytest
import yaml

from maskfs.index.entry import Entry, make_link
from maskfs.infrastructure.logger import Logger
from maskfs.rules.engine import GlobMask
from maskfs.server.pipeline import RequestPipeline

# Include Go sources, hide everything below any secrets directory
SCENARIO_RULES = "**/*.go\n!**/secrets/"


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def serve_root(temp_dir: Path) -> Path:
    """Create a serving root with a small source tree."""
    root = temp_dir / "root"
    root.mkdir()

    (root / "main.go").write_text("package main\n")
    (root / "README.md").write_text("# Project\n")

    (root / "secrets").mkdir()
    (root / "secrets" / "key.go").write_text("package secrets\n")

    (root / "cmd").mkdir()
    (root / "cmd" / "b.go").write_text("package b\n")
    (root / "cmd" / "a.go").write_text("package a\n")
    (root / "cmd" / "c.go").write_text("package c\n")
    (root / "cmd" / "notes.txt").write_text("not Go\n")

    return root


@pytest.fixture
def outside_file(temp_dir: Path) -> Path:
    """A file next to, not inside, the serving root."""
    path = temp_dir / "outside.go"
    path.write_text("package outside\n")
    return path


@pytest.fixture
def logger() -> Logger:
    """Create test logger."""
    return Logger("maskfs.test", level="DEBUG")


@pytest.fixture
def scenario_mask(logger: Logger) -> GlobMask:
    """Mask exposing Go sources outside secrets directories."""
    return GlobMask.from_text(SCENARIO_RULES, logger=logger)


@pytest.fixture
def pipeline(serve_root: Path, scenario_mask: GlobMask, logger: Logger) -> RequestPipeline:
    """Request pipeline over the sample tree."""
    return RequestPipeline(str(serve_root), scenario_mask, logger=logger)


@pytest.fixture
def sample_config(serve_root: Path) -> Dict[str, Any]:
    """Provide a sample MaskFS configuration."""
    return {
        "maskfs": {
            "server": {
                "host": "127.0.0.1",
                "port": 0,
                "root": str(serve_root),
                "grace": 1.0,
            },
            "mask": {
                "rules": SCENARIO_RULES,
            },
            "logging": {
                "level": "DEBUG",
                "file": None,
            },
        }
    }


@pytest.fixture
def config_file(temp_dir: Path, sample_config: Dict[str, Any]) -> Path:
    """Create a configuration file."""
    config_path = temp_dir / "maskfs.yaml"
    with open(config_path, "w") as f:
        yaml.dump(sample_config, f)
    return config_path


@pytest.fixture
def make_entry() -> Callable[..., Entry]:
    """Factory for Entry objects that do not touch the filesystem."""

    def _make(fs_path: str, is_dir: bool = False, size: int = 0) -> Entry:
        return Entry(
            name=os.path.basename(fs_path) or ".",
            size=size,
            mode=0o40755 if is_dir else 0o100644,
            mod_time="2024-01-02T03:04:05Z",
            is_dir=is_dir,
            fs_path=fs_path,
            link_path=make_link(fs_path),
        )

    return _make
