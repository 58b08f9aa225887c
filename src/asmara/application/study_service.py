"""
Study Session — Application layer orchestrator.

Coordinates one user's pass over a deck's due cards:
load config and due cards -> show card -> grade -> persist card -> update
queue -> append review event.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from asmara.domain.deck import DEFAULT_TUNABLES, DeckConfig, SchedulerTunables
from asmara.domain.errors import SessionFinishedError, StorageError
from asmara.domain.models import (
    CardRecord,
    Rating,
    ReinsertionHint,
    ReviewEvent,
    ScheduleResult,
)
from asmara.domain.ports import CardStore, ReviewRecorder

from .scheduler import preview, schedule
from .session_queue import SessionQueue

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class GradeOutcome:
    """
    Result of grading the current card.

    Attributes:
        card: The card's new, persisted state.
        hint: Where the card was reinserted, None if it left the session.
        recorded: False when the review event could not be appended.
        next_card: The card now at the front of the session, if any.
    """

    card: CardRecord
    hint: ReinsertionHint | None
    recorded: bool
    next_card: CardRecord | None


class StudySession:
    """
    One study session over a single deck.

    Follows Dependency Inversion: depends on the CardStore and ReviewRecorder
    ports, not concrete adapters. Owned by a single user context; not safe to
    share across concurrent tasks.
    """

    def __init__(
        self,
        store: CardStore,
        recorder: ReviewRecorder,
        deck_id: str,
        tunables: SchedulerTunables = DEFAULT_TUNABLES,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._store = store
        self._recorder = recorder
        self.deck_id = deck_id
        self.tunables = tunables
        self._clock = clock
        self._config: DeckConfig | None = None
        self._queue: SessionQueue | None = None

    async def start(self) -> CardRecord | None:
        """
        Load the deck configuration and due cards, and build the queue.

        Returns:
            The first card to study, or None if nothing is due.

        Raises:
            DeckNotFoundError, StorageError: Propagated from the store.
        """
        now = self._clock()
        self._config = await self._store.load_deck_config(self.deck_id)
        cards = await self._store.load_due_cards(self.deck_id, now)
        self._queue = SessionQueue.load(cards, now)
        logger.info(f"Started session on deck {self.deck_id}: {len(self._queue)} due cards")
        return self._queue.current

    @property
    def config(self) -> DeckConfig:
        if self._config is None:
            raise RuntimeError("Session not started")
        return self._config

    @property
    def queue(self) -> SessionQueue:
        if self._queue is None:
            raise RuntimeError("Session not started")
        return self._queue

    @property
    def current(self) -> CardRecord | None:
        return self.queue.current

    @property
    def is_finished(self) -> bool:
        return self.queue.is_finished

    @property
    def remaining(self) -> int:
        return self.queue.remaining

    def preview_current(self) -> dict[Rating, ScheduleResult]:
        """Next state of the current card for each possible rating."""
        card = self.current
        if card is None:
            raise SessionFinishedError("No card left in this session")
        return preview(card, self.config, self._clock(), self.tunables)

    async def grade(self, rating: Any) -> GradeOutcome:
        """
        Grade the current card.

        The card write happens first; the queue only moves once it is
        confirmed, so a failed save leaves the card in front of the user.
        The review event is appended last and its failure is only a warning.

        Raises:
            SessionFinishedError: No card left to grade.
            InvalidRatingError, InvalidCardError: Nothing was changed.
            StorageError: The new card state was not persisted.
        """
        card = self.current
        if card is None:
            raise SessionFinishedError("No card left in this session")

        now = self._clock()
        result = schedule(card, rating, self.config, now, self.tunables)

        try:
            saved = await self._store.save_card(self.deck_id, card.id, result.card)
        except StorageError:
            logger.error(f"Saving card {card.id} failed; session not advanced")
            raise
        if not saved:
            logger.error(f"Saving card {card.id} failed; session not advanced")
            raise StorageError(f"Card {card.id!r} could not be saved")

        next_card = self.queue.apply(result.card, result.hint)

        event = ReviewEvent(
            card_id=card.id,
            deck_id=self.deck_id,
            rating=Rating.parse(rating),
            reviewed_at=now,
        )
        recorded = await self._record(event)

        return GradeOutcome(
            card=result.card, hint=result.hint, recorded=recorded, next_card=next_card
        )

    async def _record(self, event: ReviewEvent) -> bool:
        try:
            ok = await self._recorder.record(event)
        except Exception as e:
            logger.warning(f"Review log failed for card {event.card_id}: {e}")
            return False
        if not ok:
            logger.warning(f"Review log rejected event for card {event.card_id}")
        return ok
