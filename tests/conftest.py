"""Pytest configuration and fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest
from helpers import FakeGit, FakeSpice, RecordingObserver


@pytest.fixture
def recorder() -> RecordingObserver:
    return RecordingObserver()


@pytest.fixture
def fake_git() -> FakeGit:
    return FakeGit()


@pytest.fixture
def fake_spice() -> FakeSpice:
    return FakeSpice()


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    """Directory standing in for the repository root."""
    path = tmp_path / "repo"
    path.mkdir()
    return path
