"""Shared fixtures for srcpack tests."""

from pathlib import Path
from typing import Dict, Union

import pytest


def write_tree(root: Path, files: Dict[str, Union[str, bytes]]) -> None:
    """Create *files* (relative posix path -> content) under *root*."""
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content)


@pytest.fixture
def project(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture
def make_tree(project: Path):
    def _make(files: Dict[str, Union[str, bytes]]) -> Path:
        write_tree(project, files)
        return project

    return _make


@pytest.fixture
def scan_warnings():
    """Collects WalkEntryError instances passed to a scan's warning handler."""
    return []


@pytest.fixture(autouse=True)
def isolated_git_config(tmp_path_factory, monkeypatch):
    """Point HOME and XDG_CONFIG_HOME at an empty directory so the user's
    global git excludes never leak into a scan."""
    home = tmp_path_factory.mktemp("home")
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home / ".config"))
    return home
