"""Shared pytest fixtures for StageBackup tests."""
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Generator
from unittest.mock import MagicMock

import pytest
import yaml

from stagebackup.archive.metadata import StaticIdentityResolver
from stagebackup.infrastructure.config_manager import ConfigManager, ConfigSource


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def source_dir(temp_dir: Path) -> Path:
    """Create a source tree to select files from.

    source/
      .hidden
      a.txt
      build/keep.txt
      build/output.o
      docs/api.md
      docs/guide.txt
      link.txt -> a.txt
      notes.md
      secret.txt
    """
    source = temp_dir / "source"
    source.mkdir()

    (source / "a.txt").write_text("Hello World")
    (source / "secret.txt").write_text("hunter2")
    (source / "notes.md").write_text("# Notes\n")
    (source / ".hidden").write_text("Hidden file")

    (source / "docs").mkdir()
    (source / "docs" / "api.md").write_text("# API Documentation")
    (source / "docs" / "guide.txt").write_text("Read me first")

    (source / "build").mkdir()
    (source / "build" / "output.o").write_bytes(b"\x7fELF binary")
    (source / "build" / "keep.txt").write_text("kept")

    os.symlink("a.txt", source / "link.txt")

    return source


@pytest.fixture
def write_list(temp_dir: Path):
    """Write a rule file and return its path."""

    def _write(text: str, name: str = "backup.list") -> str:
        path = temp_dir / name
        path.write_text(text)
        return str(path)

    return _write


@pytest.fixture
def resolver() -> StaticIdentityResolver:
    """Identity lookups that do not depend on the host databases."""
    return StaticIdentityResolver(
        users={os.getuid(): "tester"},
        groups={os.getgid(): "testers"},
    )


@pytest.fixture
def mock_logger() -> MagicMock:
    """Logger double for asserting diagnostics."""
    return MagicMock()


@pytest.fixture
def make_config():
    """Build a ConfigManager isolated from the real environment."""

    def _make(values: Dict[str, Any]) -> ConfigManager:
        config = ConfigManager(environ={})
        config.load_dict(values, ConfigSource.CLI_ARGS)
        return config

    return _make


@pytest.fixture
def config_file(temp_dir: Path) -> Path:
    """Create a YAML configuration file."""
    config_path = temp_dir / "stagebackup.yaml"
    with open(config_path, "w") as f:
        yaml.dump(
            {
                "root": str(temp_dir),
                "compression": {"algorithm": "bz2", "level": 9},
                "logging": {"level": "DEBUG"},
            },
            f,
        )
    return config_path
