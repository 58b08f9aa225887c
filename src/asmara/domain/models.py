"""
Domain models for card scheduling.

These are pure data structures with no I/O. `CardRecord` is the flat shape the
storage collaborator persists; `CardState` variants are the shape the
scheduling engine reasons about.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Any, Union

from .constants import DEFAULT_EASE_FACTOR
from .errors import InvalidRatingError


class CardStatus(str, Enum):
    NEW = "new"
    LEARNING = "learning"
    REVIEW = "review"
    RELEARNING = "relearning"

    @property
    def is_stepped(self) -> bool:
        return self in (CardStatus.LEARNING, CardStatus.RELEARNING)


class Rating(IntEnum):
    """Recall grade chosen by the user."""

    AGAIN = 1
    HARD = 2
    GOOD = 3
    EASY = 4

    @classmethod
    def parse(cls, value: Any) -> "Rating":
        # bool is an int subclass; True must not pass as Again.
        if isinstance(value, bool):
            raise InvalidRatingError(value)
        if isinstance(value, str) and value.strip().isdigit():
            value = int(value.strip())
        if not isinstance(value, int):
            raise InvalidRatingError(value)
        try:
            return cls(value)
        except ValueError:
            raise InvalidRatingError(value) from None


# ---------- Card states ----------


@dataclass(frozen=True)
class NewState:
    status = CardStatus.NEW


@dataclass(frozen=True)
class LearningState:
    step: int
    status = CardStatus.LEARNING


@dataclass(frozen=True)
class RelearningState:
    step: int
    status = CardStatus.RELEARNING


@dataclass(frozen=True)
class ReviewState:
    interval: float  # days
    status = CardStatus.REVIEW


CardState = Union[NewState, LearningState, RelearningState, ReviewState]
SteppedState = Union[LearningState, RelearningState]


# ---------- Card record ----------


def ensure_utc(value: datetime) -> datetime:
    """Interpret naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _parse_timestamp(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    return ensure_utc(datetime.fromisoformat(str(value)))


@dataclass(frozen=True)
class CardRecord:
    """
    Persisted unit of schedule state.

    Attributes:
        id: Identifier, unique within its deck.
        status: Which transition table applies.
        interval: Days until the next due date while in review; 0 otherwise.
        ease_factor: Multiplicative growth rate for review intervals.
        current_step: Index into the active step ladder while stepped.
        lapses: Times the card fell back into relearning.
        due_date: Card is eligible for study once due_date <= now.
        last_reviewed: Most recent grading, None if never reviewed.
        front, back, tags: Card content. Opaque to the scheduler.
    """

    id: str
    due_date: datetime
    status: CardStatus = CardStatus.NEW
    interval: float = 0.0
    ease_factor: float = DEFAULT_EASE_FACTOR
    current_step: int = 0
    lapses: int = 0
    last_reviewed: datetime | None = None
    front: str = ""
    back: str = ""
    tags: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "status", CardStatus(self.status))
        object.__setattr__(self, "tags", tuple(self.tags))
        object.__setattr__(self, "due_date", ensure_utc(self.due_date))
        if self.last_reviewed is not None:
            object.__setattr__(self, "last_reviewed", ensure_utc(self.last_reviewed))

    def is_due(self, now: datetime) -> bool:
        return self.due_date <= now

    @property
    def state(self) -> CardState:
        if self.status is CardStatus.NEW:
            return NewState()
        if self.status is CardStatus.LEARNING:
            return LearningState(step=self.current_step)
        if self.status is CardStatus.RELEARNING:
            return RelearningState(step=self.current_step)
        return ReviewState(interval=self.interval)

    def with_state(self, state: CardState, **changes: Any) -> "CardRecord":
        """Flatten a state variant back into a new record."""
        if isinstance(state, ReviewState):
            flat = {"interval": state.interval, "current_step": 0}
        elif isinstance(state, (LearningState, RelearningState)):
            flat = {"interval": 0.0, "current_step": state.step}
        else:
            flat = {"interval": 0.0, "current_step": 0}
        return replace(self, status=state.status, **flat, **changes)

    def with_content(
        self,
        front: str | None = None,
        back: str | None = None,
        tags: Iterable[str] | None = None,
    ) -> "CardRecord":
        """Copy with new content; schedule fields are left as they are."""
        changes: dict[str, Any] = {}
        if front is not None:
            changes["front"] = front
        if back is not None:
            changes["back"] = back
        if tags is not None:
            changes["tags"] = tuple(t.strip() for t in tags if t.strip())
        return replace(self, **changes)

    def matches(self, term: str) -> bool:
        """Case-insensitive substring match on front, back or any tag."""
        needle = term.lower()
        return any(needle in text.lower() for text in (self.front, self.back, *self.tags))

    # ---------- Storage boundary ----------

    def to_document(self) -> dict[str, Any]:
        """Flat mapping persisted by storage adapters (id excluded)."""
        return {
            "status": self.status.value,
            "interval": self.interval,
            "easeFactor": self.ease_factor,
            "currentStep": self.current_step,
            "lapses": self.lapses,
            "dueDate": self.due_date.isoformat(),
            "lastReviewed": self.last_reviewed.isoformat() if self.last_reviewed else None,
            "frontText": self.front,
            "backText": self.back,
            "tags": list(self.tags),
        }

    @classmethod
    def from_document(cls, card_id: str, doc: dict[str, Any]) -> "CardRecord":
        due = _parse_timestamp(doc.get("dueDate"))
        if due is None:
            raise ValueError(f"Card {card_id!r} has no dueDate")
        return cls(
            id=card_id,
            status=CardStatus(doc.get("status") or CardStatus.NEW.value),
            interval=float(doc.get("interval") or 0),
            ease_factor=float(doc.get("easeFactor") or DEFAULT_EASE_FACTOR),
            current_step=int(doc.get("currentStep") or 0),
            lapses=int(doc.get("lapses") or 0),
            due_date=due,
            last_reviewed=_parse_timestamp(doc.get("lastReviewed")),
            front=doc.get("frontText") or "",
            back=doc.get("backText") or "",
            tags=tuple(doc.get("tags") or ()),
        )


def new_card(
    card_id: str,
    now: datetime,
    front: str = "",
    back: str = "",
    tags: tuple[str, ...] | list[str] = (),
    ease_factor: float = DEFAULT_EASE_FACTOR,
) -> CardRecord:
    """Create a card in its initial lifecycle state, due immediately."""
    return CardRecord(
        id=card_id,
        status=CardStatus.NEW,
        interval=0.0,
        ease_factor=ease_factor,
        current_step=0,
        lapses=0,
        due_date=now,
        last_reviewed=None,
        front=front,
        back=back,
        tags=tuple(tags),
    )


# ---------- Scheduling output & audit ----------


@dataclass(frozen=True)
class ReinsertionHint:
    """Re-show the card after `offset` intervening cards in this session."""

    offset: int

    def __post_init__(self):
        if self.offset < 0:
            raise ValueError(f"Reinsertion offset must be >= 0 (got {self.offset})")


@dataclass(frozen=True)
class ScheduleResult:
    card: CardRecord
    hint: ReinsertionHint | None = None


@dataclass(frozen=True)
class ReviewEvent:
    """
    Append-only audit entry written once per graded card.

    Attributes:
        card_id: The card that was graded.
        deck_id: Deck the card belongs to.
        rating: Button pressed (1=Again, 2=Hard, 3=Good, 4=Easy).
        reviewed_at: Time of grading.
    """

    card_id: str
    deck_id: str
    rating: Rating
    reviewed_at: datetime

    def to_document(self) -> dict[str, Any]:
        return {
            "cardId": self.card_id,
            "deckId": self.deck_id,
            "rating": int(self.rating),
            "reviewedAt": self.reviewed_at.isoformat(),
        }

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "ReviewEvent":
        return cls(
            card_id=doc["cardId"],
            deck_id=doc["deckId"],
            rating=Rating.parse(doc["rating"]),
            reviewed_at=_parse_timestamp(doc["reviewedAt"]),
        )
