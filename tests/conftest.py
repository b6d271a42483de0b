"""Shared test fixtures for Factsets."""

from datetime import UTC, datetime, timedelta

import pytest

from factsets.config.models import FactsetsConfig
from factsets.store import SQLiteKnowledgeStore

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def sample_config():
    return FactsetsConfig()


@pytest.fixture
def store(tmp_path):
    db = SQLiteKnowledgeStore(str(tmp_path / "facts.db"))
    yield db
    db.close()


@pytest.fixture
def hours_ago(now):
    def _ago(hours: float) -> datetime:
        return now - timedelta(hours=hours)

    return _ago
