"""Shared test fixtures."""

import csv
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest

from datasifter.config import Settings, reset_settings
from datasifter.db import ConnectionPool
from datasifter.logging_config import setup_logging


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Keep tests away from the real home directory and process env."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    for var in ("DATABASE_URL", "DB_POOL_SIZE", "TABLE_NAME", "LOG_LEVEL", "LOG_FORMAT"):
        monkeypatch.delenv(var, raising=False)
    reset_settings()
    setup_logging(Settings(log_level="WARNING"))
    yield
    reset_settings()


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings backed by a SQLite file in the test directory."""
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'sifter.db'}",
        db_pool_size=4,
        db_pool_timeout=5,
        read_chunk_size=2,
    )


@pytest.fixture
async def pool(settings: Settings) -> AsyncGenerator[ConnectionPool, None]:
    """Connection pool over the test database."""
    pool = ConnectionPool.from_settings(settings)
    yield pool
    await pool.close()


@pytest.fixture
def write_csv(tmp_path):
    """Write rows to a CSV file and return its path."""

    def _write(rows: list[list[str]], name: str = "dataset.csv") -> Path:
        path = tmp_path / name
        with open(path, "w", newline="", encoding="utf-8") as f:
            csv.writer(f, lineterminator="\n").writerows(rows)
        return path

    return _write
