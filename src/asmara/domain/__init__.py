# Domain Package
from .deck import DEFAULT_DECK_CONFIG, DEFAULT_TUNABLES, DeckConfig, SchedulerTunables
from .models import (
    CardRecord,
    CardState,
    CardStatus,
    LearningState,
    NewState,
    Rating,
    ReinsertionHint,
    RelearningState,
    ReviewEvent,
    ReviewState,
    ScheduleResult,
    new_card,
)
from .ports import CardStore, ReviewRecorder

__all__ = [
    "CardRecord",
    "CardState",
    "CardStatus",
    "CardStore",
    "DEFAULT_DECK_CONFIG",
    "DEFAULT_TUNABLES",
    "DeckConfig",
    "LearningState",
    "NewState",
    "Rating",
    "ReinsertionHint",
    "RelearningState",
    "ReviewEvent",
    "ReviewRecorder",
    "ReviewState",
    "ScheduleResult",
    "SchedulerTunables",
    "new_card",
]
