"""
Deck configuration and scheduler tunables.

Both are immutable value objects injected into the scheduling engine, so tests
can vary them without touching global state.
"""

from dataclasses import dataclass

from . import constants as c
from .errors import InvalidDeckConfigError


@dataclass(frozen=True)
class DeckConfig:
    """
    Per-deck scheduling settings, fully resolved with defaults.

    Attributes:
        learning_steps: Step ladder for `learning` cards, in minutes.
        relearning_steps: Step ladder for `relearning` cards, in minutes.
        graduating_interval_days: First review interval after Good/Hard graduation.
        easy_interval_days: First review interval after Easy graduation.
    """

    learning_steps: tuple[float, ...] = c.LEARNING_STEPS_MINUTES
    relearning_steps: tuple[float, ...] = c.RELEARNING_STEPS_MINUTES
    graduating_interval_days: float = c.GRADUATING_INTERVAL_DAYS
    easy_interval_days: float = c.EASY_INTERVAL_DAYS

    def __post_init__(self):
        # Accept lists from storage/config layers but keep the value hashable.
        object.__setattr__(self, "learning_steps", tuple(self.learning_steps))
        object.__setattr__(self, "relearning_steps", tuple(self.relearning_steps))

        for name in ("learning_steps", "relearning_steps"):
            steps = getattr(self, name)
            if not steps:
                raise InvalidDeckConfigError(f"{name} must contain at least one step")
            if any(s <= 0 for s in steps):
                raise InvalidDeckConfigError(f"{name} must be positive minutes: {steps}")

        for name in ("graduating_interval_days", "easy_interval_days"):
            if getattr(self, name) <= 0:
                raise InvalidDeckConfigError(f"{name} must be positive")

    def ladder_for(self, status: str) -> tuple[float, ...]:
        """Return the step ladder used by a stepped status."""
        if status == "learning":
            return self.learning_steps
        if status == "relearning":
            return self.relearning_steps
        raise ValueError(f"Status {status!r} has no step ladder")


@dataclass(frozen=True)
class SchedulerTunables:
    """Fixed numeric knobs of the scheduler that are not per-deck."""

    min_ease_factor: float = c.MIN_EASE_FACTOR
    default_ease_factor: float = c.DEFAULT_EASE_FACTOR
    lapse_ease_penalty: float = c.LAPSE_EASE_PENALTY
    hard_ease_penalty: float = c.HARD_EASE_PENALTY
    easy_ease_bonus: float = c.EASY_EASE_BONUS
    easy_bonus: float = c.EASY_BONUS
    hard_interval_multiplier: float = c.HARD_INTERVAL_MULTIPLIER
    min_review_interval_days: float = c.MIN_REVIEW_INTERVAL_DAYS
    reinsert_after_again: int = c.REINSERT_AFTER_AGAIN
    reinsert_after_hard_learning: int = c.REINSERT_AFTER_HARD_LEARNING
    precision: int = c.STORED_PRECISION
    # When set, new cards walk the learning ladder instead of graduating on first grade.
    new_cards_use_learning_steps: bool = False

    def __post_init__(self):
        if self.min_ease_factor <= 0:
            raise InvalidDeckConfigError("min_ease_factor must be positive")
        if self.default_ease_factor < self.min_ease_factor:
            raise InvalidDeckConfigError("default_ease_factor is below min_ease_factor")
        if self.reinsert_after_again < 0 or self.reinsert_after_hard_learning < 0:
            raise InvalidDeckConfigError("reinsertion offsets must be non-negative")
        if self.hard_interval_multiplier < 1 or self.easy_bonus < 1:
            raise InvalidDeckConfigError("interval multipliers must be >= 1")


DEFAULT_DECK_CONFIG = DeckConfig()
DEFAULT_TUNABLES = SchedulerTunables()
