"""Shared test configuration for diffedit-mcp tests.

Provides:
- Isolation from the user's edit config and working-dir environment
- A working directory with a file-writing helper
- A default EditSession rooted at that directory
"""

from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from diffedit_mcp.engine import EditConfig, EditSession


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep DIFFEDIT_* variables and ~/.diffedit out of every test."""
    monkeypatch.delenv("DIFFEDIT_CONFIG", raising=False)
    monkeypatch.delenv("DIFFEDIT_WORKING_DIR", raising=False)
    monkeypatch.delenv("DIFFEDIT_LOG_LEVEL", raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))


@pytest.fixture
def working_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "project"
    directory.mkdir()
    return directory


@pytest.fixture
def write_file(working_dir: Path) -> Callable[[str, str], Path]:
    """Write a file under the working directory, byte for byte."""

    def _write(name: str, content: str) -> Path:
        path = working_dir / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content.encode("utf-8"))
        return path

    return _write


@pytest.fixture
def session(working_dir: Path) -> Iterator[EditSession]:
    with EditSession(EditConfig(), working_dir=working_dir) as edit_session:
        yield edit_session
