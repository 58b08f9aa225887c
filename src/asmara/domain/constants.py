"""Centralized constants for the asmara scheduler.

All scheduling defaults live here so every layer imports from a single
source of truth. Application code should go through ``SchedulerTunables``
and ``DeckConfig`` rather than reading these directly.
"""

# ---------- Ease ----------
DEFAULT_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3
LAPSE_EASE_PENALTY = 0.20
HARD_EASE_PENALTY = 0.15
EASY_EASE_BONUS = 0.15

# ---------- Intervals ----------
EASY_BONUS = 1.3
HARD_INTERVAL_MULTIPLIER = 1.2
MIN_REVIEW_INTERVAL_DAYS = 1.0
STORED_PRECISION = 2  # decimals kept for interval and ease

# ---------- Deck defaults ----------
LEARNING_STEPS_MINUTES = (1, 10)
RELEARNING_STEPS_MINUTES = (1, 10)
GRADUATING_INTERVAL_DAYS = 1
EASY_INTERVAL_DAYS = 4

# ---------- Session reinsertion ----------
REINSERT_AFTER_AGAIN = 3
REINSERT_AFTER_HARD_LEARNING = 5

# ---------- Queue ordering ----------
STATUS_PRIORITY = {"new": 0, "learning": 1, "relearning": 1, "review": 2}
UNKNOWN_STATUS_PRIORITY = 3
