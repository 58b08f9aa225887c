"""
Ports (interfaces) for the scheduler's collaborators.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from .deck import DeckConfig
from .models import CardRecord, ReviewEvent


class CardStore(ABC):
    """
    Port for loading and persisting decks and their cards.

    Implementations:
        - InMemoryCardStore: Process-local dictionaries.
        - YamlCardStore: One YAML document per deck on disk.
    """

    @abstractmethod
    async def load_due_cards(self, deck_id: str, now: datetime) -> list[CardRecord]:
        """
        Fetch every card of the deck with due_date <= now.

        Raises:
            DeckNotFoundError: The deck does not exist.
            StorageError: The backing store could not be read.
        """
        pass

    @abstractmethod
    async def save_card(self, deck_id: str, card_id: str, card: CardRecord) -> bool:
        """
        Persist a card's new state.

        Returns:
            True once the write is durable, False if it failed.
        """
        pass

    @abstractmethod
    async def load_deck_config(self, deck_id: str) -> DeckConfig:
        """Fetch the deck's configuration with global defaults applied."""
        pass

    @abstractmethod
    async def create_deck(self, deck_id: str, overrides: dict[str, Any] | None = None) -> None:
        pass

    @abstractmethod
    async def deck_exists(self, deck_id: str) -> bool:
        pass

    @abstractmethod
    async def add_card(self, deck_id: str, card: CardRecord) -> None:
        pass

    @abstractmethod
    async def list_cards(self, deck_id: str) -> list[CardRecord]:
        pass

    @abstractmethod
    async def list_decks(self) -> list[str]:
        """Identifiers of every stored deck, sorted."""
        pass

    @abstractmethod
    async def delete_deck(self, deck_id: str) -> int:
        """
        Delete a deck together with all of its cards.

        Returns:
            Number of cards that were deleted with the deck.

        Raises:
            DeckNotFoundError: The deck does not exist.
        """
        pass

    @abstractmethod
    async def update_card_content(
        self,
        deck_id: str,
        card_id: str,
        front: str | None = None,
        back: str | None = None,
        tags: list[str] | None = None,
    ) -> CardRecord:
        """
        Replace a card's content fields. None leaves a field unchanged.

        Schedule fields (status, interval, ease, step, lapses, dates) are
        never touched.

        Raises:
            DeckNotFoundError, CardNotFoundError
        """
        pass

    @abstractmethod
    async def delete_card(self, deck_id: str, card_id: str) -> None:
        """
        Raises:
            DeckNotFoundError, CardNotFoundError
        """
        pass


class ReviewRecorder(ABC):
    """Port for the append-only review log."""

    @abstractmethod
    async def record(self, event: ReviewEvent) -> bool:
        """
        Append one review event.

        Returns:
            True on success, False if the event could not be stored.
        """
        pass

    @abstractmethod
    async def events_for_deck(self, deck_id: str) -> list[ReviewEvent]:
        pass
