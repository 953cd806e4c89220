"""
Unit tests for engagement analysis and encouragement messages.
"""

import random

import pytest

from src.core.models import EarlyEndReason, EngagementLevel
from src.delivery.encouragement import (
    EARLY_END_EXPLANATIONS,
    FATIGUE_MESSAGES,
    FRUSTRATION_MESSAGES,
    get_encouragement_message,
    get_parent_explanation,
)
from src.delivery.engagement import (
    analyze_engagement,
    build_engagement_metrics,
    engagement_label,
)


def metrics(answered=10, available=10, time_ms=30000, early_exit=False, duration_ms=None):
    times = [time_ms] * answered
    return build_engagement_metrics(
        session_duration_ms=duration_ms if duration_ms is not None else sum(times),
        questions_answered=answered,
        questions_available=available,
        answer_times_ms=times,
        early_exit=early_exit,
    )


class TestBuildEngagementMetrics:
    """Tests for metric aggregation."""

    def test_completion_and_average(self):
        result = metrics(answered=5, available=10, time_ms=20000)
        assert result.completion_rate == 0.5
        assert result.average_time_per_question == 20000

    def test_rushing_flag(self):
        assert metrics(time_ms=5000).rushing_detected
        assert not metrics(time_ms=20000).rushing_detected

    def test_no_questions_available(self):
        assert metrics(answered=0, available=0).completion_rate == 0.0


class TestAnalyzeEngagement:
    """Tests for engagement classification."""

    def test_normal_complete_session_is_high(self):
        signal = analyze_engagement(metrics())
        assert signal.level == EngagementLevel.HIGH
        assert signal.impact_on_mastery == 0.0

    def test_rushing_is_low(self):
        signal = analyze_engagement(metrics(time_ms=5000))
        assert signal.level == EngagementLevel.LOW
        assert signal.impact_on_mastery == pytest.approx(-0.05)

    def test_early_exit_is_avoidance(self):
        signal = analyze_engagement(metrics(answered=4, available=10, early_exit=True))
        assert signal.level == EngagementLevel.AVOIDANCE
        assert signal.impact_on_mastery == pytest.approx(-0.10)

    def test_too_few_answers(self):
        signal = analyze_engagement(metrics(answered=2))
        assert signal.level == EngagementLevel.MEDIUM
        assert signal.confidence == 0.3

    def test_slow_is_not_penalized(self):
        signal = analyze_engagement(metrics(time_ms=120000))
        assert signal.impact_on_mastery == 0.0

    def test_confidence_grows_with_answers(self):
        assert analyze_engagement(metrics(answered=20)).confidence > analyze_engagement(metrics(answered=5)).confidence

    def test_labels(self):
        assert engagement_label(EngagementLevel.AVOIDANCE) == "Avoidance"


class TestEncouragement:
    """Tests for early-end messages."""

    def test_fatigue_message(self):
        assert get_encouragement_message(EarlyEndReason.FATIGUE, random.Random(0)) in FATIGUE_MESSAGES

    def test_frustration_message(self):
        assert get_encouragement_message(EarlyEndReason.FRUSTRATION, random.Random(0)) in FRUSTRATION_MESSAGES

    def test_messages_never_mention_struggle(self):
        for message in FATIGUE_MESSAGES + FRUSTRATION_MESSAGES:
            assert "difficult" not in message.lower()
            assert "struggl" not in message.lower()

    @pytest.mark.parametrize("reason", list(EarlyEndReason))
    def test_parent_explanations(self, reason):
        assert get_parent_explanation(reason) == get_parent_explanation(reason.value)

    def test_explanations_match_end_reasons(self):
        assert set(EARLY_END_EXPLANATIONS) == {reason.value for reason in EarlyEndReason}
