"""
Engagement Analysis.

Classifies a finished (or abandoned) session from its pacing and
completion:

- high: normal pace, completed
- medium: completed, pace slightly off, or too little data to tell
- low: rushing, or finished far faster than expected
- avoidance: left early having answered under half the questions

Engagement does not measure knowledge. It only nudges confidence in the
existing estimate through ``impact_on_mastery``.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from src.core.models import EngagementLevel, EngagementMetrics, EngagementSignal


@dataclass
class EngagementConfig:
    """Thresholds for engagement classification."""

    expected_time_per_question_ms: float = 30000
    rush_threshold: float = 0.5  # avg time below expected * this = rushing
    slow_threshold: float = 3.0
    avoidance_completion_threshold: float = 0.5
    fast_session_ratio: float = 0.6
    slow_session_ratio: float = 2.0
    rushing_share: float = 0.8  # share of rushed answers that flags the session
    min_questions_for_analysis: int = 3
    mastery_adjustments: dict[EngagementLevel, float] = field(
        default_factory=lambda: {
            EngagementLevel.HIGH: 0.0,
            EngagementLevel.MEDIUM: 0.0,
            EngagementLevel.LOW: -0.05,
            EngagementLevel.AVOIDANCE: -0.10,
        }
    )


def build_engagement_metrics(
    session_duration_ms: float,
    questions_answered: int,
    questions_available: int,
    answer_times_ms: list[float],
    early_exit: bool,
    config: EngagementConfig | None = None,
) -> EngagementMetrics:
    """Summarize a session's timing and completion."""
    config = config or EngagementConfig()

    completion_rate = questions_answered / questions_available if questions_available > 0 else 0.0
    average = sum(answer_times_ms) / len(answer_times_ms) if answer_times_ms else 0.0

    rush_limit = config.expected_time_per_question_ms * config.rush_threshold
    rushed = sum(1 for t in answer_times_ms if t < rush_limit)
    rushing = bool(answer_times_ms) and rushed / len(answer_times_ms) > config.rushing_share

    return EngagementMetrics(
        session_duration_ms=session_duration_ms,
        questions_answered=questions_answered,
        questions_available=questions_available,
        completion_rate=completion_rate,
        average_time_per_question=average,
        early_exit=early_exit,
        rushing_detected=rushing,
    )


def analyze_engagement(
    metrics: EngagementMetrics,
    config: EngagementConfig | None = None,
) -> EngagementSignal:
    """
    Classify engagement from session metrics.

    Args:
        metrics: Output of build_engagement_metrics
        config: Thresholds (defaults if None)

    Returns:
        EngagementSignal; confidence grows with the number of answers
    """
    config = config or EngagementConfig()
    adjustments = config.mastery_adjustments
    expected = config.expected_time_per_question_ms

    if metrics.questions_answered < config.min_questions_for_analysis:
        return EngagementSignal(
            level=EngagementLevel.MEDIUM,
            confidence=0.3,
            reasoning=["Not enough answers to judge engagement"],
            impact_on_mastery=0.0,
        )

    level = EngagementLevel.MEDIUM
    impact = 0.0
    reasoning: list[str] = []
    completion_pct = round(metrics.completion_rate * 100)

    # Completion
    if metrics.completion_rate < config.avoidance_completion_threshold and metrics.early_exit:
        level = EngagementLevel.AVOIDANCE
        impact = adjustments[EngagementLevel.AVOIDANCE]
        reasoning.append(f"Left the session early ({completion_pct}% completed)")
    elif metrics.completion_rate >= 0.95:
        reasoning.append("Completed the whole session")
    elif metrics.completion_rate >= 0.7:
        reasoning.append(f"Completed {completion_pct}% of the session")

    # Pacing
    average_s = round(metrics.average_time_per_question / 1000)
    if metrics.rushing_detected or metrics.average_time_per_question < expected * config.rush_threshold:
        reasoning.append(f"Answered quickly (average {average_s}s)")
        if level != EngagementLevel.AVOIDANCE:
            level = EngagementLevel.LOW
            impact = adjustments[EngagementLevel.LOW]
    elif metrics.average_time_per_question > expected * config.slow_threshold:
        # Slow may be deep thinking; not penalized
        reasoning.append(f"Took a long time per question (average {average_s}s)")
    else:
        reasoning.append("Normal answer pace")
        if level == EngagementLevel.MEDIUM and metrics.completion_rate >= 0.95:
            level = EngagementLevel.HIGH

    # Session duration against expectation
    duration_ratio = metrics.session_duration_ms / (metrics.questions_answered * expected)
    if duration_ratio < config.fast_session_ratio:
        reasoning.append("Finished faster than expected")
        if level != EngagementLevel.AVOIDANCE:
            level = EngagementLevel.LOW
            impact = min(impact, adjustments[EngagementLevel.LOW])
    elif duration_ratio > config.slow_session_ratio:
        reasoning.append("Long session with pauses")

    confidence = min(0.95, 0.4 + (metrics.questions_answered / 20) * 0.55)

    return EngagementSignal(
        level=level,
        confidence=confidence,
        reasoning=reasoning,
        impact_on_mastery=impact,
    )


def engagement_label(level: EngagementLevel) -> str:
    return {
        EngagementLevel.HIGH: "High engagement",
        EngagementLevel.MEDIUM: "Medium engagement",
        EngagementLevel.LOW: "Low engagement",
        EngagementLevel.AVOIDANCE: "Avoidance",
    }[level]
