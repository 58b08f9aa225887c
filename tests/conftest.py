import os
from datetime import datetime, timedelta, timezone

import pytest

from asmara.domain.models import CardRecord, CardStatus
from asmara.infrastructure.adapters.memory_store import (
    InMemoryCardStore,
    InMemoryReviewRecorder,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def mock_home(tmp_path, monkeypatch):
    """Points HOME at a temp dir and clears ASMARA_* so no real config leaks in."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    for key in list(os.environ):
        if key.startswith("ASMARA_"):
            monkeypatch.delenv(key)
    return home


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_card():
    """Factory for cards with sensible defaults, due one minute before NOW."""

    def _make(card_id="c1", **kwargs):
        kwargs.setdefault("due_date", NOW - timedelta(minutes=1))
        return CardRecord(id=card_id, **kwargs)

    return _make


@pytest.fixture
def review_card(make_card):
    return make_card(status=CardStatus.REVIEW, interval=10, ease_factor=2.5)


@pytest.fixture
def store():
    return InMemoryCardStore()


@pytest.fixture
def recorder():
    return InMemoryReviewRecorder()
