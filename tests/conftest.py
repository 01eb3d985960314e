# tests/conftest.py

"""Shared pytest fixtures for the market_trust test suite."""

from collections.abc import Generator
from pathlib import Path

import pytest

from market_trust.config.settings import Settings


@pytest.fixture(autouse=True)
def isolated_paths(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch,
) -> Generator[None, None, None]:
    """Point every default database and log path into a temp dir."""
    monkeypatch.setattr(Settings, "DATA_DIR", tmp_path / "data")
    monkeypatch.setattr(Settings, "PRICE_DB_PATH", tmp_path / "data" / "prices.db")
    monkeypatch.setattr(
        Settings, "COMMUNITY_DB_PATH", tmp_path / "data" / "community.db",
    )
    monkeypatch.setattr(
        Settings, "INTERACTION_DB_PATH", tmp_path / "data" / "interactions.db",
    )
    monkeypatch.setattr(Settings, "LOGS_DIR", tmp_path / "logs")
    yield
