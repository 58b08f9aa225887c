import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from asmara import server
from asmara.application.config import AppConfig
from asmara.consts import VERSION
from asmara.domain.errors import StorageError
from asmara.infrastructure.adapters.yaml_store import YamlCardStore
from asmara.server import app, get_config, get_recorder, get_store

client = TestClient(app)


@pytest.fixture(autouse=True)
def backend(store, recorder, make_card, now):
    asyncio.run(store.create_deck("spanish", {"learningStepsMinutes": [1, 10]}))
    for card in [
        make_card("hola", status="learning", front="hola", back="hello"),
        make_card("gato", status="review", interval=10, front="gato", back="cat"),
        make_card("perro", status="review", interval=3, due_date=now + timedelta(days=3650)),
    ]:
        asyncio.run(store.add_card("spanish", card))
    asyncio.run(store.create_deck("empty"))

    app.dependency_overrides[get_config] = lambda: AppConfig(backend="memory")
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_recorder] = lambda: recorder
    yield
    app.dependency_overrides.clear()
    server._sessions.clear()


def start(deck_id="spanish"):
    response = client.post("/sessions", json={"deck_id": deck_id})
    assert response.status_code == 200
    return response.json()


def test_health_check():
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["version"] == VERSION


def test_get_version():
    assert client.get("/version").json() == {"version": VERSION}


def test_deck_config():
    response = client.get("/decks/spanish/config")
    assert response.status_code == 200
    assert response.json()["learningStepsMinutes"] == [1, 10]
    assert response.json()["graduatingIntervalDays"] == 1


def test_deck_config_missing():
    assert client.get("/decks/ghost/config").status_code == 404


def test_start_session():
    data = start()

    assert data["deck_id"] == "spanish"
    assert data["remaining"] == 2
    assert data["finished"] is False
    assert data["current"]["id"] == "hola"

    again = client.get(f"/sessions/{data['session_id']}")
    assert again.json()["current"]["id"] == "hola"


def test_start_session_missing_deck():
    response = client.post("/sessions", json={"deck_id": "ghost"})
    assert response.status_code == 404


def test_start_session_storage_failure(store):
    store.load_due_cards = AsyncMock(side_effect=StorageError("backend down"))
    response = client.post("/sessions", json={"deck_id": "spanish"})
    assert response.status_code == 503


def test_empty_deck_is_finished_immediately():
    data = start("empty")
    assert data["finished"] is True
    assert data["current"] is None
    assert data["session_id"] is None
    assert server._sessions == {}


def test_preview():
    session_id = start()["session_id"]

    response = client.get(f"/sessions/{session_id}/preview")

    assert response.status_code == 200
    data = response.json()
    assert set(data) == {"1", "2", "3", "4"}
    assert data["3"]["status"] == "learning"
    assert data["4"]["status"] == "learning"


def test_full_session_flow(store, recorder):
    session_id = start()["session_id"]

    response = client.post(f"/sessions/{session_id}/grade", json={"rating": 1})
    assert response.status_code == 200
    data = response.json()
    assert data["card"]["id"] == "hola"
    assert data["reinsert_offset"] == 3
    assert data["recorded"] is True
    assert data["next"]["id"] == "gato"

    data = client.post(f"/sessions/{session_id}/grade", json={"rating": 3}).json()
    assert data["card"]["interval"] == 25.0
    assert data["reinsert_offset"] is None
    assert data["next"]["id"] == "hola"

    data = client.post(f"/sessions/{session_id}/grade", json={"rating": 3}).json()
    assert data["finished"] is True
    assert data["next"] is None

    assert client.get(f"/sessions/{session_id}").status_code == 404
    assert [e.card_id for e in recorder.events] == ["hola", "gato", "hola"]
    cards = {c.id: c for c in asyncio.run(store.list_cards("spanish"))}
    assert cards["gato"].due_date > cards["hola"].due_date


@pytest.mark.parametrize("rating", [0, 5, -3])
def test_grade_invalid_rating(rating, store):
    session_id = start()["session_id"]

    response = client.post(f"/sessions/{session_id}/grade", json={"rating": rating})

    assert response.status_code == 400
    assert client.get(f"/sessions/{session_id}").json()["current"]["id"] == "hola"


def test_grade_save_failure(store):
    session_id = start()["session_id"]
    store.save_card = AsyncMock(return_value=False)

    response = client.post(f"/sessions/{session_id}/grade", json={"rating": 3})

    assert response.status_code == 503
    data = client.get(f"/sessions/{session_id}").json()
    assert data["current"]["id"] == "hola"
    assert data["remaining"] == 2


def test_grade_unknown_session():
    response = client.post("/sessions/nope/grade", json={"rating": 3})
    assert response.status_code == 404


def test_grade_finished_session_conflicts():
    session_id = start()["session_id"]
    # Finished sessions are normally dropped; keep one around to hit the guard.
    entry = server._sessions[session_id]
    entry.session.queue.advance()
    entry.session.queue.advance()

    response = client.post(f"/sessions/{session_id}/grade", json={"rating": 3})

    assert response.status_code == 409


def test_close_session():
    session_id = start()["session_id"]
    assert client.delete(f"/sessions/{session_id}").json() == {"ok": True}
    assert client.delete(f"/sessions/{session_id}").status_code == 404


def test_open_sessions_are_capped():
    app.dependency_overrides[get_config] = lambda: AppConfig(backend="memory", max_open_sessions=2)
    first, second, third = (start()["session_id"] for _ in range(3))

    assert client.get(f"/sessions/{first}").status_code == 404
    assert client.get(f"/sessions/{second}").status_code == 200
    assert client.get(f"/sessions/{third}").status_code == 200


def test_idle_sessions_are_evicted():
    stale = start()["session_id"]
    server._sessions[stale].last_used -= 7200

    fresh = start()["session_id"]

    assert client.get(f"/sessions/{stale}").status_code == 404
    assert client.get(f"/sessions/{fresh}").status_code == 200


def test_start_session_malformed_deck_config(tmp_path):
    decks = tmp_path / "decks"
    decks.mkdir()
    (decks / "odd.yaml").write_text("name: odd\nconfig:\n  learningStepsMinutes: [-5]\ncards: {}\n")
    app.dependency_overrides[get_store] = lambda: YamlCardStore(tmp_path)

    response = client.post("/sessions", json={"deck_id": "odd"})

    assert response.status_code == 503
    assert "Malformed config" in response.json()["detail"]
