"""
In-memory adapters for the storage and review-log ports.

Used by tests and by the HTTP server when no persistent backend is configured.
"""

import logging
from datetime import datetime
from typing import Any

from asmara.application.deck_config import resolve_deck_config
from asmara.domain.deck import DEFAULT_DECK_CONFIG, DeckConfig
from asmara.domain.errors import CardNotFoundError, DeckNotFoundError, StorageError
from asmara.domain.models import CardRecord, ReviewEvent
from asmara.domain.ports import CardStore, ReviewRecorder


class InMemoryCardStore(CardStore):
    """Keeps decks in process-local dictionaries."""

    def __init__(self, defaults: DeckConfig = DEFAULT_DECK_CONFIG):
        self.defaults = defaults
        self.logger = logging.getLogger(__name__)
        self._configs: dict[str, dict[str, Any]] = {}
        self._cards: dict[str, dict[str, CardRecord]] = {}

    def _deck(self, deck_id: str) -> dict[str, CardRecord]:
        try:
            return self._cards[deck_id]
        except KeyError:
            raise DeckNotFoundError(deck_id) from None

    async def create_deck(self, deck_id: str, overrides: dict[str, Any] | None = None) -> None:
        if deck_id in self._cards:
            raise StorageError(f"Deck {deck_id!r} already exists")
        # Validate before storing so a bad override never lands in the store.
        resolve_deck_config(overrides, self.defaults)
        self._configs[deck_id] = dict(overrides or {})
        self._cards[deck_id] = {}

    async def deck_exists(self, deck_id: str) -> bool:
        return deck_id in self._cards

    async def add_card(self, deck_id: str, card: CardRecord) -> None:
        cards = self._deck(deck_id)
        if card.id in cards:
            raise StorageError(f"Card {card.id!r} already exists in deck {deck_id!r}")
        cards[card.id] = card

    async def list_cards(self, deck_id: str) -> list[CardRecord]:
        return list(self._deck(deck_id).values())

    async def list_decks(self) -> list[str]:
        return sorted(self._cards)

    async def delete_deck(self, deck_id: str) -> int:
        cards = self._deck(deck_id)
        del self._cards[deck_id]
        self._configs.pop(deck_id, None)
        return len(cards)

    async def update_card_content(
        self,
        deck_id: str,
        card_id: str,
        front: str | None = None,
        back: str | None = None,
        tags: list[str] | None = None,
    ) -> CardRecord:
        cards = self._deck(deck_id)
        if card_id not in cards:
            raise CardNotFoundError(deck_id, card_id)
        cards[card_id] = cards[card_id].with_content(front, back, tags)
        return cards[card_id]

    async def delete_card(self, deck_id: str, card_id: str) -> None:
        cards = self._deck(deck_id)
        if cards.pop(card_id, None) is None:
            raise CardNotFoundError(deck_id, card_id)

    async def load_due_cards(self, deck_id: str, now: datetime) -> list[CardRecord]:
        return [card for card in self._deck(deck_id).values() if card.is_due(now)]

    async def save_card(self, deck_id: str, card_id: str, card: CardRecord) -> bool:
        cards = self._cards.get(deck_id)
        if cards is None:
            self.logger.error(f"Cannot save card {card_id}: deck {deck_id!r} not found")
            return False
        cards[card_id] = card
        return True

    async def load_deck_config(self, deck_id: str) -> DeckConfig:
        self._deck(deck_id)
        return resolve_deck_config(self._configs.get(deck_id), self.defaults)


class InMemoryReviewRecorder(ReviewRecorder):
    def __init__(self):
        self.events: list[ReviewEvent] = []

    async def record(self, event: ReviewEvent) -> bool:
        self.events.append(event)
        return True

    async def events_for_deck(self, deck_id: str) -> list[ReviewEvent]:
        return [e for e in self.events if e.deck_id == deck_id]
