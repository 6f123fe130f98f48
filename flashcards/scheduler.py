"""
SM-2 scheduling with learning and relearning steps.

All functions are pure: they read "now" and return new values, never
mutating the review passed in. Intervals are expressed in days; learning
steps are minutes converted to fractional days.
"""

import math
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from flashcards.constants import (
    AGAIN_STEP_MINUTES,
    EASE_STEP,
    EASY_BONUS,
    EASY_INTERVAL_DAYS,
    GRADUATING_INTERVAL_DAYS,
    HARD_RELEARN_STEP_MINUTES,
    LEARNING_STEPS_MINUTES,
    MILLIS_PER_DAY,
    MINIMUM_EASE,
    MINIMUM_REVIEW_INTERVAL_DAYS,
    MINUTES_PER_DAY,
    STARTING_EASE,
)
from flashcards.models import CardReview, CardState, Rating, now_ms


@dataclass(frozen=True)
class SchedulerConfig:
    learning_steps_minutes: Tuple[int, ...] = LEARNING_STEPS_MINUTES
    again_step_minutes: int = AGAIN_STEP_MINUTES
    graduating_interval_days: float = GRADUATING_INTERVAL_DAYS
    easy_interval_days: float = EASY_INTERVAL_DAYS
    hard_relearn_step_minutes: int = HARD_RELEARN_STEP_MINUTES
    starting_ease: float = STARTING_EASE
    minimum_ease: float = MINIMUM_EASE
    ease_step: float = EASE_STEP
    easy_bonus: float = EASY_BONUS


DEFAULT_CONFIG = SchedulerConfig()


@dataclass(frozen=True)
class ReviewResult:
    ease: float
    interval: float
    repetitions: int
    next_review: int
    state: CardState


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (2.5 -> 3, not 2)."""
    return math.floor(value + 0.5)


def minutes_to_days(minutes: float) -> float:
    return minutes / MINUTES_PER_DAY


def days_to_millis(days: float) -> int:
    return round_half_up(days * MILLIS_PER_DAY)


def _result(ease: float, interval: float, repetitions: int, state: CardState, now: int) -> ReviewResult:
    return ReviewResult(
        ease=ease,
        interval=interval,
        repetitions=repetitions,
        next_review=now + days_to_millis(interval),
        state=state,
    )


def _learning_state_after(state: CardState) -> CardState:
    # New cards start learning; anything already seen relearns
    return CardState.LEARNING if state == CardState.NEW else CardState.RELEARNING


def calculate_next_review(
    review: CardReview,
    rating: Rating,
    now: Optional[int] = None,
    config: SchedulerConfig = DEFAULT_CONFIG,
) -> ReviewResult:
    """Compute the next review state of a card after it has been graded.

    Raises ValueError for a rating outside 1-4. The caller persists the
    result and stamps last_review.
    """
    rating = Rating(rating)
    now = now if now is not None else now_ms()

    if rating == Rating.AGAIN:
        return _result(
            review.ease,
            minutes_to_days(config.again_step_minutes),
            0,
            _learning_state_after(review.state),
            now,
        )

    match review.state:
        case CardState.REVIEW:
            return _handle_review_state(review, rating, now, config)
        case _:
            return _handle_learning_state(review, rating, now, config)


def _handle_learning_state(
    review: CardReview, rating: Rating, now: int, config: SchedulerConfig
) -> ReviewResult:
    steps = config.learning_steps_minutes
    last_step = len(steps) - 1

    if rating == Rating.EASY:
        return _result(review.ease, config.easy_interval_days, 0, CardState.REVIEW, now)

    if rating == Rating.GOOD:
        if review.repetitions >= last_step:
            return _result(review.ease, config.graduating_interval_days, 0, CardState.REVIEW, now)

        next_step = review.repetitions + 1
        return _result(
            review.ease,
            minutes_to_days(steps[next_step]),
            next_step,
            _learning_state_after(review.state),
            now,
        )

    # HARD repeats the current step
    current_step = steps[min(review.repetitions, last_step)]
    return _result(
        review.ease,
        minutes_to_days(current_step),
        review.repetitions,
        _learning_state_after(review.state),
        now,
    )


def _handle_review_state(
    review: CardReview, rating: Rating, now: int, config: SchedulerConfig
) -> ReviewResult:
    if rating == Rating.HARD:
        return _result(
            max(config.minimum_ease, review.ease - config.ease_step),
            minutes_to_days(config.hard_relearn_step_minutes),
            0,
            CardState.RELEARNING,
            now,
        )

    if rating == Rating.GOOD:
        new_ease = review.ease
        new_interval = round_half_up(review.interval * new_ease)
    else:
        new_ease = review.ease + config.ease_step
        new_interval = round_half_up(review.interval * new_ease * config.easy_bonus)

    new_interval = max(new_interval, MINIMUM_REVIEW_INTERVAL_DAYS)

    return _result(new_ease, new_interval, review.repetitions + 1, CardState.REVIEW, now)


def apply_result(review: CardReview, result: ReviewResult, reviewed_at: int) -> CardReview:
    """Build the persisted review from a scheduling result."""
    return CardReview(
        id=review.id,
        card_id=review.card_id,
        ease=result.ease,
        interval=result.interval,
        repetitions=result.repetitions,
        next_review=result.next_review,
        last_review=reviewed_at,
        state=result.state,
    )


def create_initial_review(card_id: str, now: Optional[int] = None, config: SchedulerConfig = DEFAULT_CONFIG) -> CardReview:
    """Review state for a card entering its first study session."""
    now = now if now is not None else now_ms()
    return CardReview(
        id=card_id,
        card_id=card_id,
        ease=config.starting_ease,
        interval=0.0,
        repetitions=0,
        next_review=now,
        last_review=now,
        state=CardState.NEW,
    )


def is_due(review: CardReview, now: Optional[int] = None) -> bool:
    now = now if now is not None else now_ms()
    return review.next_review <= now


def format_interval(interval: float) -> str:
    """Human-readable form of an interval given in days."""
    if interval < 1:
        minutes = round_half_up(interval * MINUTES_PER_DAY)
        if minutes < 60:
            return f"{minutes} min"
        return f"{round_half_up(minutes / 60)} h"
    if interval < 30:
        return f"{round_half_up(interval)} d"
    if interval < 365:
        return f"{round_half_up(interval / 30)} mo"
    return f"{round_half_up(interval / 365)} y"


def predict_intervals(
    review: CardReview, now: Optional[int] = None, config: SchedulerConfig = DEFAULT_CONFIG
) -> Dict[Rating, str]:
    """Dry-run every rating so a session can show what each answer would do."""
    return {
        rating: format_interval(calculate_next_review(review, rating, now, config).interval)
        for rating in Rating
    }
