"""Shared fixtures for CLI execution tests."""

from __future__ import annotations

import os

import pytest
from click.testing import CliRunner


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep host ECOTEL_* variables out of CLI tests."""
    for key in list(os.environ):
        if key.startswith("ECOTEL_"):
            monkeypatch.delenv(key)


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()
