"""Pytest fixtures for Snitch tests."""

from pathlib import Path

import pytest

from snitch.buffer import TextBuffer
from snitch.capture import SessionController
from snitch.config import SnitchConfig
from snitch.ledger import LedgerWriter
from snitch.project import GitProjectResolver
from snitch.tracker import TrackerStore


@pytest.fixture
def project_root(tmp_path):
    """Create a temporary project (a directory with a .git folder).

    Args:
        tmp_path: pytest's built-in temporary directory fixture

    Returns:
        Path to the project root
    """
    root = tmp_path / "proj"
    (root / ".git").mkdir(parents=True)
    (root / "src").mkdir()
    return root


@pytest.fixture
def config():
    """Default SnitchConfig (prefix "s", templates st/si/sn)."""
    return SnitchConfig()


@pytest.fixture
def store():
    return TrackerStore()


@pytest.fixture
def ledger_writer(project_root):
    return LedgerWriter(project_root / ".snitch" / "ledger.jsonl")


@pytest.fixture
def controller(config, store, ledger_writer):
    """SessionController wired to a git resolver, a fresh store and the ledger."""
    return SessionController(
        config=config,
        resolver=GitProjectResolver(),
        store=store,
        ledger_writer=ledger_writer,
    )


@pytest.fixture
def make_source(project_root):
    """Factory writing a source file in the project and opening it as a buffer."""

    def _make(text: str, name: str = "main.py") -> TextBuffer:
        path = project_root / "src" / name
        path.write_text(text, encoding="utf-8")
        return TextBuffer.from_file(path)

    return _make


@pytest.fixture
def tracking_path(project_root, config) -> Path:
    return config.tracking_path(project_root)
