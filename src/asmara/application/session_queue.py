"""
In-memory study queue for one session.

The queue is a single forward-moving scan over a list of card snapshots:
1. Due cards are loaded and ordered by status priority, then due date.
2. Grading advances the cursor by one.
3. Cards the scheduler wants to see again are spliced in ahead of the cursor.

Positions already passed are never reordered. Not thread-safe; one queue per
active session.
"""

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime

from asmara.domain.constants import STATUS_PRIORITY, UNKNOWN_STATUS_PRIORITY
from asmara.domain.errors import SessionFinishedError
from asmara.domain.models import CardRecord, ReinsertionHint

logger = logging.getLogger(__name__)


def sort_due_cards(
    cards: Iterable[CardRecord],
    priority: Mapping[str, int] = STATUS_PRIORITY,
) -> list[CardRecord]:
    """
    Order cards for study: new, then learning/relearning, then review.

    Ties within a priority are broken by ascending due date; the sort is
    stable, so fully equal keys keep their input order.
    """
    return sorted(
        cards,
        key=lambda card: (
            priority.get(card.status.value, UNKNOWN_STATUS_PRIORITY),
            card.due_date,
        ),
    )


class SessionQueue:
    """Ordered working set of due cards with a monotonic cursor."""

    def __init__(self, cards: Iterable[CardRecord] = ()):
        self._items: list[CardRecord] = list(cards)
        self._cursor = 0

    @classmethod
    def load(
        cls,
        cards: Iterable[CardRecord],
        now: datetime,
        priority: Mapping[str, int] = STATUS_PRIORITY,
    ) -> "SessionQueue":
        """Build a queue from the cards that are due at `now`."""
        due = [card for card in cards if card.is_due(now)]
        queue = cls(sort_due_cards(due, priority))
        logger.debug(f"Session queue loaded with {len(queue)} due cards")
        return queue

    def __len__(self) -> int:
        return len(self._items)

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def current(self) -> CardRecord | None:
        if self.is_finished:
            return None
        return self._items[self._cursor]

    @property
    def is_finished(self) -> bool:
        return self._cursor >= len(self._items)

    @property
    def remaining(self) -> int:
        return max(0, len(self._items) - self._cursor)

    def snapshot(self) -> tuple[CardRecord, ...]:
        return tuple(self._items)

    def insert_position(self, hint: ReinsertionHint) -> int:
        """Where a card graded at the cursor would be reinserted."""
        return min(self._cursor + hint.offset + 1, len(self._items))

    def advance(self) -> CardRecord | None:
        """Move past the current card and return the next one, if any."""
        if self.is_finished:
            raise SessionFinishedError("No card left in this session")
        self._cursor += 1
        return self.current

    def apply(self, updated: CardRecord, hint: ReinsertionHint | None) -> CardRecord | None:
        """
        Apply the outcome of grading the current card.

        Without a hint the graded card leaves the session. With a hint, the
        updated snapshot is spliced in `hint.offset` cards ahead (clamped to
        the end of the queue) before the cursor advances.

        Returns:
            The next card to show, or None when the session is over.
        """
        if self.is_finished:
            raise SessionFinishedError("No card left in this session")

        if hint is not None:
            position = self.insert_position(hint)
            # Insertion at or behind the cursor would rewrite history.
            assert position > self._cursor
            self._items.insert(position, updated)
            logger.debug(f"Reinserted card {updated.id} at {position} (cursor={self._cursor})")

        return self.advance()
