"""
Scheduling engine.

Maps (card, rating, deck config, now) to the card's next state:

1. Stepped cards (learning / relearning) walk their step ladder and graduate
   to review once it is exhausted.
2. New and review cards grow their interval by the ease factor, or lapse into
   relearning on Again.

Pure and deterministic: no I/O, no hidden state. Safe to call from any thread.
"""

import logging
from datetime import datetime, timedelta
from typing import Any

from asmara.domain.deck import DEFAULT_TUNABLES, DeckConfig, SchedulerTunables
from asmara.domain.errors import InvalidCardError
from asmara.domain.models import (
    CardRecord,
    LearningState,
    NewState,
    Rating,
    ReinsertionHint,
    RelearningState,
    ReviewState,
    ScheduleResult,
    SteppedState,
)

logger = logging.getLogger(__name__)


def validate_card(
    card: CardRecord,
    config: DeckConfig,
    tunables: SchedulerTunables = DEFAULT_TUNABLES,
) -> None:
    """
    Check the invariants a card must satisfy before it can be scheduled.

    Raises:
        InvalidCardError: On the first violated invariant.
    """
    if card.ease_factor < tunables.min_ease_factor:
        raise InvalidCardError(
            card.id, f"ease_factor {card.ease_factor} < {tunables.min_ease_factor}"
        )
    if card.interval < 0:
        raise InvalidCardError(card.id, f"negative interval {card.interval}")
    if card.lapses < 0:
        raise InvalidCardError(card.id, f"negative lapses {card.lapses}")
    if card.current_step < 0:
        raise InvalidCardError(card.id, f"negative current_step {card.current_step}")

    if card.status.is_stepped:
        ladder = config.ladder_for(card.status.value)
        if card.current_step >= len(ladder):
            raise InvalidCardError(
                card.id,
                f"current_step {card.current_step} outside {card.status.value} "
                f"ladder of length {len(ladder)}",
            )


def schedule(
    card: CardRecord,
    rating: Any,
    config: DeckConfig,
    now: datetime,
    tunables: SchedulerTunables = DEFAULT_TUNABLES,
) -> ScheduleResult:
    """
    Compute a card's next state after a grading.

    Args:
        card: Current card record; must satisfy the scheduling invariants.
        rating: 1=Again, 2=Hard, 3=Good, 4=Easy. Anything else is rejected.
        config: Deck configuration with defaults already resolved.
        now: Timezone-aware time of grading.
        tunables: Fixed scheduler constants.

    Returns:
        ScheduleResult with the updated card and an optional reinsertion hint.

    Raises:
        InvalidRatingError: Rating outside 1..4.
        InvalidCardError: The input card violates an invariant.
        ValueError: `now` is naive.
    """
    grade = Rating.parse(rating)
    if now.tzinfo is None:
        raise ValueError("now must be timezone-aware")
    validate_card(card, config, tunables)

    state = card.state
    if isinstance(state, NewState) and tunables.new_cards_use_learning_steps:
        state = LearningState(step=0)
    if isinstance(state, (LearningState, RelearningState)):
        result = _schedule_stepped(card, state, grade, config, now, tunables)
    else:
        result = _schedule_review(card, grade, config, now, tunables)

    logger.debug(
        f"card={card.id} {card.status.value}->{result.card.status.value} "
        f"rating={grade.name} interval={result.card.interval} "
        f"ease={result.card.ease_factor} due={result.card.due_date.isoformat()} "
        f"hint={result.hint.offset if result.hint else None}"
    )
    return result


def preview(
    card: CardRecord,
    config: DeckConfig,
    now: datetime,
    tunables: SchedulerTunables = DEFAULT_TUNABLES,
) -> dict[Rating, ScheduleResult]:
    """Outcome of each answer button, for display before the user grades."""
    return {r: schedule(card, r, config, now, tunables) for r in Rating}


def _schedule_stepped(
    card: CardRecord,
    state: SteppedState,
    grade: Rating,
    config: DeckConfig,
    now: datetime,
    t: SchedulerTunables,
) -> ScheduleResult:
    ladder = config.ladder_for(state.status.value)
    ease = _round(card.ease_factor, t)

    if grade is Rating.AGAIN:
        next_state = type(state)(step=0)
        due = now + timedelta(minutes=ladder[0])
        hint = ReinsertionHint(t.reinsert_after_again)
    elif grade is Rating.HARD:
        # Stay on the current step and show it again a bit later.
        next_state = state
        due = now + timedelta(minutes=ladder[state.step])
        hint = ReinsertionHint(t.reinsert_after_hard_learning)
    else:
        step = state.step + 1
        hint = None
        if step >= len(ladder):
            interval = _round(_first_interval(grade, config), t)
            next_state = ReviewState(interval=interval)
            due = now + timedelta(days=interval)
        else:
            next_state = type(state)(step=step)
            due = now + timedelta(minutes=ladder[step])

    updated = card.with_state(next_state, ease_factor=ease, due_date=due, last_reviewed=now)
    return ScheduleResult(card=updated, hint=hint)


def _schedule_review(
    card: CardRecord,
    grade: Rating,
    config: DeckConfig,
    now: datetime,
    t: SchedulerTunables,
) -> ScheduleResult:
    ease = card.ease_factor

    if grade is Rating.AGAIN:
        ease = max(t.min_ease_factor, ease - t.lapse_ease_penalty)
        updated = card.with_state(
            RelearningState(step=0),
            ease_factor=_round(ease, t),
            lapses=card.lapses + 1,
            due_date=now + timedelta(minutes=config.relearning_steps[0]),
            last_reviewed=now,
        )
        return ScheduleResult(card=updated, hint=ReinsertionHint(t.reinsert_after_again))

    if card.status.value == "new" or card.interval == 0:
        interval = _first_interval(grade, config)
    elif grade is Rating.HARD:
        ease = max(t.min_ease_factor, ease - t.hard_ease_penalty)
        interval = max(t.min_review_interval_days, card.interval * t.hard_interval_multiplier)
    elif grade is Rating.GOOD:
        interval = max(t.min_review_interval_days, card.interval * ease)
    else:
        ease = ease + t.easy_ease_bonus
        interval = max(t.min_review_interval_days, card.interval * ease * t.easy_bonus)

    interval = _round(interval, t)
    updated = card.with_state(
        ReviewState(interval=interval),
        ease_factor=_round(ease, t),
        due_date=now + timedelta(days=interval),
        last_reviewed=now,
    )
    return ScheduleResult(card=updated)


def _first_interval(grade: Rating, config: DeckConfig) -> float:
    if grade is Rating.EASY:
        return float(config.easy_interval_days)
    return float(config.graduating_interval_days)


def _round(value: float, t: SchedulerTunables) -> float:
    return round(value, t.precision)
