"""
Bayesian Knowledge Tracing.

Estimates P(topic known) from a chronological sequence of right/wrong
answers (Corbett & Anderson, 1994). Each observation applies a Bayesian
posterior update followed by a learning transition:

    correct:   p' = p(1-slip) / (p(1-slip) + (1-p)guess)
    incorrect: p' = p*slip / (p*slip + (1-p)(1-guess))
    transit:   p'' = p' + (1-p')transit

Parameters are grade-banded; younger children guess and slip more.

Because transit is applied last, an estimate never drops below p_transit.
A run of wrong answers moves the estimate monotonically to the band's
floor (the fixed point of the incorrect update), so it falls only from
above that floor; for grades 1-6 the floor sits above p_init.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from src.core.models import (
    PERFORMANCE_WINDOW_SIZE,
    Difficulty,
    OrderedOutcomes,
    SignalType,
    TopicMastery,
    Trend,
    clamp,
)

DEFAULT_GRADE = 4
TREND_MIN_ENTRIES = 6
TREND_SUBWINDOW = 3
TREND_MARGIN = 1


@dataclass(frozen=True)
class BKTParams:
    """Fixed BKT parameters for one grade band."""

    p_init: float
    p_transit: float
    p_slip: float
    p_guess: float


GRADE_BAND_PARAMS: dict[str, BKTParams] = {
    "grades_1_3": BKTParams(p_init=0.10, p_transit=0.30, p_slip=0.15, p_guess=0.25),
    "grades_4_6": BKTParams(p_init=0.20, p_transit=0.20, p_slip=0.10, p_guess=0.20),
    "grades_7_8": BKTParams(p_init=0.25, p_transit=0.15, p_slip=0.08, p_guess=0.18),
}


def grade_band(grade: int | None) -> str:
    """Map a school grade to its parameter band; unknown grades use grade 4."""
    if grade is None or not 1 <= grade <= 8:
        grade = DEFAULT_GRADE
    if grade <= 3:
        return "grades_1_3"
    if grade <= 6:
        return "grades_4_6"
    return "grades_7_8"


def get_bkt_params(grade: int | None) -> BKTParams:
    """Grade-appropriate BKT parameters."""
    return GRADE_BAND_PARAMS[grade_band(grade)]


def update_bkt(p_known: float, correct: bool, params: BKTParams) -> float:
    """
    Apply one observation to a mastery estimate.

    Args:
        p_known: Prior probability the topic is known
        correct: Whether the answer was correct
        params: Grade-band parameters

    Returns:
        Posterior after the learning transition, in [p_transit, 1]. A
        degenerate posterior (zero denominator) leaves the estimate unchanged.
    """
    p = clamp(p_known)

    if correct:
        numerator = p * (1 - params.p_slip)
        denominator = numerator + (1 - p) * params.p_guess
    else:
        numerator = p * params.p_slip
        denominator = numerator + (1 - p) * (1 - params.p_guess)

    if denominator == 0:
        return p

    posterior = numerator / denominator
    return clamp(posterior + (1 - posterior) * params.p_transit)


def calculate_trend(window: list[bool]) -> Trend:
    """
    Compare the last 3 outcomes with the 3 before them.

    Needs at least 6 entries; a difference of more than one correct
    answer counts as a trend.
    """
    if len(window) < TREND_MIN_ENTRIES:
        return Trend.STABLE

    recent = sum(window[-TREND_SUBWINDOW:])
    earlier = sum(window[-2 * TREND_SUBWINDOW:-TREND_SUBWINDOW])

    if recent > earlier + TREND_MARGIN:
        return Trend.IMPROVING
    if recent < earlier - TREND_MARGIN:
        return Trend.DECLINING
    return Trend.STABLE


def new_topic_mastery(
    topic: str,
    subject_id: str,
    params: BKTParams,
    at: datetime,
) -> TopicMastery:
    """Fresh mastery record seeded at the grade's prior."""
    return TopicMastery(
        topic=topic,
        subject_id=subject_id,
        p_known=params.p_init,
        first_attempt=at,
        last_attempt=at,
    )


def apply_outcomes(
    mastery: TopicMastery,
    outcomes: OrderedOutcomes,
    params: BKTParams,
    at: datetime,
) -> TopicMastery:
    """
    Replay a topic's outcomes through BKT, in order, updating counters.

    Mutates and returns ``mastery``.
    """
    times = outcomes.answer_times_ms or (None,) * len(outcomes)

    for correct, elapsed_ms in zip(outcomes.outcomes, times):
        mastery.p_known = update_bkt(mastery.p_known, correct, params)
        mastery.attempts += 1
        if correct:
            mastery.correct_count += 1
        else:
            mastery.incorrect_count += 1

        if elapsed_ms is not None:
            mastery.timed_attempts += 1
            mastery.average_time += (elapsed_ms - mastery.average_time) / mastery.timed_attempts

        mastery.performance_window.append(correct)
        if len(mastery.performance_window) > PERFORMANCE_WINDOW_SIZE:
            mastery.performance_window = mastery.performance_window[-PERFORMANCE_WINDOW_SIZE:]

    if len(outcomes):
        if mastery.first_attempt is None:
            mastery.first_attempt = at
        mastery.last_attempt = at
        mastery.last_signal_type = SignalType.QUIZ
        mastery.recent_trend = calculate_trend(mastery.performance_window)

    return mastery


def recommend_difficulty(p_known: float) -> Difficulty:
    """Question difficulty suited to a mastery estimate."""
    if p_known < 0.4:
        return Difficulty.EASY
    if p_known < 0.7:
        return Difficulty.MEDIUM
    return Difficulty.HARD
