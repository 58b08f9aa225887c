from datetime import timedelta

import pytest
import yaml

from asmara.domain.errors import CardNotFoundError, DeckNotFoundError, StorageError
from asmara.domain.models import CardStatus
from asmara.infrastructure.adapters.yaml_store import YamlCardStore


@pytest.fixture
def yaml_store(tmp_path):
    return YamlCardStore(tmp_path)


@pytest.mark.asyncio
async def test_create_deck_writes_document(yaml_store, tmp_path):
    await yaml_store.create_deck("spanish", {"learningStepsMinutes": [1, 5, 20]})

    path = tmp_path / "decks" / "spanish.yaml"
    doc = yaml.safe_load(path.read_text())
    assert doc["name"] == "spanish"
    assert doc["config"] == {"learningStepsMinutes": [1, 5, 20]}
    assert doc["cards"] == {}
    assert await yaml_store.deck_exists("spanish")


@pytest.mark.asyncio
async def test_cards_survive_a_new_store_instance(yaml_store, tmp_path, make_card, now):
    card = make_card("c1", status="review", interval=4.5, lapses=1, last_reviewed=now)
    await yaml_store.create_deck("d")
    await yaml_store.add_card("d", card)

    reopened = YamlCardStore(tmp_path)

    assert await reopened.list_cards("d") == [card]


@pytest.mark.asyncio
async def test_due_filtering_and_save(yaml_store, make_card, now):
    await yaml_store.create_deck("d")
    await yaml_store.add_card("d", make_card("due"))
    await yaml_store.add_card("d", make_card("later", due_date=now + timedelta(hours=1)))

    due = await yaml_store.load_due_cards("d", now)
    assert [c.id for c in due] == ["due"]

    updated = make_card("due", status="learning", current_step=1, due_date=now + timedelta(days=1))
    assert await yaml_store.save_card("d", "due", updated) is True
    assert await yaml_store.load_due_cards("d", now) == []

    cards = {c.id: c for c in await yaml_store.list_cards("d")}
    assert cards["due"].status is CardStatus.LEARNING


@pytest.mark.asyncio
async def test_deck_config_resolution(yaml_store):
    await yaml_store.create_deck("d", {"graduatingIntervalDays": 2, "easyIntervalDays": 0})

    config = await yaml_store.load_deck_config("d")

    assert config.graduating_interval_days == 2
    assert config.easy_interval_days == 4


@pytest.mark.asyncio
async def test_missing_deck(yaml_store, make_card, now):
    with pytest.raises(DeckNotFoundError):
        await yaml_store.load_due_cards("missing", now)
    assert await yaml_store.deck_exists("missing") is False
    assert await yaml_store.save_card("missing", "c1", make_card()) is False


@pytest.mark.asyncio
async def test_existing_deck_is_not_overwritten(yaml_store, make_card):
    await yaml_store.create_deck("d")
    await yaml_store.add_card("d", make_card("x"))

    with pytest.raises(StorageError):
        await yaml_store.create_deck("d")
    assert len(await yaml_store.list_cards("d")) == 1


@pytest.mark.asyncio
async def test_malformed_yaml(yaml_store, tmp_path, now):
    decks = tmp_path / "decks"
    decks.mkdir()
    (decks / "bad.yaml").write_text("cards: [unclosed\n")

    with pytest.raises(StorageError):
        await yaml_store.load_due_cards("bad", now)


@pytest.mark.asyncio
async def test_malformed_card(yaml_store, tmp_path, now):
    decks = tmp_path / "decks"
    decks.mkdir()
    (decks / "bad.yaml").write_text("cards:\n  c1:\n    status: new\n")

    with pytest.raises(StorageError, match="Malformed card"):
        await yaml_store.list_cards("bad")


@pytest.mark.asyncio
@pytest.mark.parametrize("deck_id", ["../etc", "", "a/b"])
async def test_rejects_unsafe_deck_ids(yaml_store, deck_id):
    with pytest.raises(StorageError):
        await yaml_store.create_deck(deck_id)


@pytest.mark.asyncio
async def test_no_temp_files_left_behind(yaml_store, tmp_path, make_card):
    await yaml_store.create_deck("d")
    await yaml_store.add_card("d", make_card("x"))

    assert sorted(p.name for p in (tmp_path / "decks").iterdir()) == ["d.yaml"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "config",
    [
        "config:\n  learningStepsMinutes: [-5]\n",
        "config:\n  learningStepsMinutes: [x]\n",
        "config:\n  graduatingIntervalDays: soon\n",
        "config: [1, 10]\n",
    ],
)
async def test_malformed_deck_config(yaml_store, tmp_path, config):
    decks = tmp_path / "decks"
    decks.mkdir()
    (decks / "bad.yaml").write_text(config + "cards: {}\n")

    with pytest.raises(StorageError, match="Malformed config"):
        await yaml_store.load_deck_config("bad")


# --- Deck and card management ---


@pytest.mark.asyncio
async def test_list_decks(yaml_store, tmp_path):
    assert await yaml_store.list_decks() == []

    await yaml_store.create_deck("spanish")
    await yaml_store.create_deck("french")
    (tmp_path / "decks" / ".spanish.abc.tmp").write_text("")

    assert await yaml_store.list_decks() == ["french", "spanish"]


@pytest.mark.asyncio
async def test_delete_deck_removes_its_cards(yaml_store, tmp_path, make_card):
    await yaml_store.create_deck("d")
    await yaml_store.add_card("d", make_card("a"))
    await yaml_store.add_card("d", make_card("b"))

    assert await yaml_store.delete_deck("d") == 2

    assert not (tmp_path / "decks" / "d.yaml").exists()
    assert await yaml_store.list_decks() == []
    with pytest.raises(DeckNotFoundError):
        await yaml_store.list_cards("d")
    with pytest.raises(DeckNotFoundError):
        await yaml_store.delete_deck("d")


@pytest.mark.asyncio
async def test_update_card_content_keeps_schedule(yaml_store, tmp_path, make_card, now):
    card = make_card(
        "c1", status="review", interval=12.5, ease_factor=2.1, lapses=2, last_reviewed=now
    )
    await yaml_store.create_deck("d")
    await yaml_store.add_card("d", card)
    path = tmp_path / "decks" / "d.yaml"
    before = yaml.safe_load(path.read_text())["cards"]["c1"]

    updated = await yaml_store.update_card_content(
        "d", "c1", front="perro", tags=[" animals ", "", "es"]
    )

    after = yaml.safe_load(path.read_text())["cards"]["c1"]
    assert after["frontText"] == "perro"
    assert after["tags"] == ["animals", "es"]
    for key in ("status", "interval", "easeFactor", "currentStep", "lapses", "dueDate"):
        assert after[key] == before[key]
    assert after["lastReviewed"] == before["lastReviewed"]
    assert updated.interval == 12.5
    assert updated.back == card.back


@pytest.mark.asyncio
async def test_delete_card(yaml_store, make_card):
    await yaml_store.create_deck("d")
    await yaml_store.add_card("d", make_card("a"))
    await yaml_store.add_card("d", make_card("b"))

    await yaml_store.delete_card("d", "a")

    assert [c.id for c in await yaml_store.list_cards("d")] == ["b"]


@pytest.mark.asyncio
async def test_unknown_card(yaml_store):
    await yaml_store.create_deck("d")
    with pytest.raises(CardNotFoundError):
        await yaml_store.update_card_content("d", "ghost", front="x")
    with pytest.raises(CardNotFoundError):
        await yaml_store.delete_card("d", "ghost")
