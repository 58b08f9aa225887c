"""Search across every deck by deck name and card content."""

import logging
from dataclasses import dataclass, field

from asmara.domain.errors import StorageError
from asmara.domain.models import CardRecord
from asmara.domain.ports import CardStore


@dataclass
class SearchResult:
    """
    Attributes:
        decks: Deck ids whose name contains the term.
        cards: (deck_id, card) pairs whose front, back or tags contain the term.
        skipped: Decks that could not be read and were left out.
    """

    decks: list[str] = field(default_factory=list)
    cards: list[tuple[str, CardRecord]] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


class SearchService:
    def __init__(self, store: CardStore):
        self.store = store
        self.logger = logging.getLogger(__name__)

    async def search(self, term: str) -> SearchResult:
        """Case-insensitive substring search. An empty term matches every deck."""
        needle = term.strip().lower()
        result = SearchResult()

        for deck_id in await self.store.list_decks():
            if needle in deck_id.lower():
                result.decks.append(deck_id)
            if not needle:
                continue
            try:
                cards = await self.store.list_cards(deck_id)
            except StorageError as e:
                self.logger.warning(f"[search] Skipped deck {deck_id}: {e}")
                result.skipped.append(deck_id)
                continue
            result.cards.extend((deck_id, card) for card in cards if card.matches(needle))

        self.logger.debug(
            f"[search] term={term!r} decks={len(result.decks)} cards={len(result.cards)}"
        )
        return result
