"""
YAML Card Store — Infrastructure adapter for decks kept on disk.

Each deck is one YAML document under `<data_dir>/decks/<deck_id>.yaml`:

    name: spanish
    createdAt: '2026-01-01T00:00:00+00:00'
    config:
      learningStepsMinutes: [1, 10]
    cards:
      01J...:
        status: new
        ...

Writes go to a temp file that replaces the document, so a crash never leaves
a half-written deck behind.
"""

import logging
import os
import re
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import yaml  # type: ignore

from asmara.application.deck_config import resolve_deck_config
from asmara.domain.deck import DEFAULT_DECK_CONFIG, DeckConfig
from asmara.domain.errors import CardNotFoundError, DeckNotFoundError, StorageError
from asmara.domain.models import CardRecord
from asmara.domain.ports import CardStore

logger = logging.getLogger(__name__)

DECK_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


class YamlCardStore(CardStore):
    """Stores every deck as a single YAML document."""

    def __init__(self, data_dir: Path, defaults: DeckConfig = DEFAULT_DECK_CONFIG):
        self.decks_dir = Path(data_dir) / "decks"
        self.defaults = defaults

    # ---------- Document I/O ----------

    def _path(self, deck_id: str) -> Path:
        if not DECK_ID_RE.match(deck_id):
            raise StorageError(f"Invalid deck id {deck_id!r}")
        return self.decks_dir / f"{deck_id}.yaml"

    def _read(self, deck_id: str) -> dict[str, Any]:
        path = self._path(deck_id)
        if not path.exists():
            raise DeckNotFoundError(deck_id)
        try:
            doc = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as e:
            raise StorageError(f"Failed to read deck {deck_id!r}: {e}") from e
        if not isinstance(doc, dict):
            raise StorageError(f"Deck document {path} is not a mapping")
        if not doc.get("cards"):
            doc["cards"] = {}
        return doc

    def _write(self, deck_id: str, doc: dict[str, Any]) -> None:
        path = self._path(deck_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{deck_id}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                yaml.safe_dump(doc, f, sort_keys=False, allow_unicode=True)
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def _cards_of(self, deck_id: str, doc: dict[str, Any]) -> list[CardRecord]:
        cards = []
        for card_id, card_doc in (doc.get("cards") or {}).items():
            try:
                cards.append(CardRecord.from_document(str(card_id), card_doc or {}))
            except (TypeError, ValueError) as e:
                raise StorageError(f"Malformed card {card_id!r} in deck {deck_id!r}: {e}") from e
        return cards

    # ---------- CardStore ----------

    async def create_deck(self, deck_id: str, overrides: dict[str, Any] | None = None) -> None:
        if self._path(deck_id).exists():
            raise StorageError(f"Deck {deck_id!r} already exists")
        resolve_deck_config(overrides, self.defaults)
        doc = {
            "name": deck_id,
            "createdAt": datetime.now(timezone.utc).isoformat(),
            "config": dict(overrides or {}),
            "cards": {},
        }
        try:
            self._write(deck_id, doc)
        except OSError as e:
            raise StorageError(f"Failed to create deck {deck_id!r}: {e}") from e
        logger.info(f"Created deck {deck_id} at {self._path(deck_id)}")

    async def deck_exists(self, deck_id: str) -> bool:
        return self._path(deck_id).exists()

    async def add_card(self, deck_id: str, card: CardRecord) -> None:
        doc = self._read(deck_id)
        if card.id in doc["cards"]:
            raise StorageError(f"Card {card.id!r} already exists in deck {deck_id!r}")
        doc["cards"][card.id] = card.to_document()
        try:
            self._write(deck_id, doc)
        except OSError as e:
            raise StorageError(f"Failed to add card to {deck_id!r}: {e}") from e

    async def list_cards(self, deck_id: str) -> list[CardRecord]:
        return self._cards_of(deck_id, self._read(deck_id))

    async def list_decks(self) -> list[str]:
        if not self.decks_dir.is_dir():
            return []
        return sorted(p.stem for p in self.decks_dir.glob("*.yaml") if DECK_ID_RE.match(p.stem))

    async def delete_deck(self, deck_id: str) -> int:
        doc = self._read(deck_id)
        try:
            self._path(deck_id).unlink()
        except OSError as e:
            raise StorageError(f"Failed to delete deck {deck_id!r}: {e}") from e
        removed = len(doc["cards"])
        logger.info(f"Deleted deck {deck_id} with {removed} cards")
        return removed

    async def update_card_content(
        self,
        deck_id: str,
        card_id: str,
        front: str | None = None,
        back: str | None = None,
        tags: list[str] | None = None,
    ) -> CardRecord:
        doc = self._read(deck_id)
        if card_id not in doc["cards"]:
            raise CardNotFoundError(deck_id, card_id)
        card_doc = doc["cards"][card_id] or {}
        try:
            updated = CardRecord.from_document(card_id, card_doc).with_content(front, back, tags)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Malformed card {card_id!r} in deck {deck_id!r}: {e}") from e

        # Only the content keys are rewritten; schedule keys stay as stored.
        card_doc.update(
            {"frontText": updated.front, "backText": updated.back, "tags": list(updated.tags)}
        )
        doc["cards"][card_id] = card_doc
        try:
            self._write(deck_id, doc)
        except OSError as e:
            raise StorageError(f"Failed to update card {card_id!r}: {e}") from e
        return updated

    async def delete_card(self, deck_id: str, card_id: str) -> None:
        doc = self._read(deck_id)
        if card_id not in doc["cards"]:
            raise CardNotFoundError(deck_id, card_id)
        del doc["cards"][card_id]
        try:
            self._write(deck_id, doc)
        except OSError as e:
            raise StorageError(f"Failed to delete card {card_id!r}: {e}") from e

    async def load_due_cards(self, deck_id: str, now: datetime) -> list[CardRecord]:
        return [c for c in self._cards_of(deck_id, self._read(deck_id)) if c.is_due(now)]

    async def save_card(self, deck_id: str, card_id: str, card: CardRecord) -> bool:
        try:
            doc = self._read(deck_id)
            doc["cards"][card_id] = card.to_document()
            self._write(deck_id, doc)
            return True
        except (StorageError, OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to save card {card_id} in deck {deck_id}: {e}")
            return False

    async def load_deck_config(self, deck_id: str) -> DeckConfig:
        doc = self._read(deck_id)
        try:
            return resolve_deck_config(doc.get("config"), self.defaults)
        except (AttributeError, TypeError, ValueError) as e:
            raise StorageError(f"Malformed config in deck {deck_id!r}: {e}") from e
