"""
Unit tests for in-session behavior monitoring.

Tests:
- Fatigue: baseline, rushing with accuracy drop, fast-but-accurate answers
- Frustration: topic blocking, streak reset, cooldown
- Session monitor: early end decisions and terminal state
"""

import random
from datetime import UTC, datetime, timedelta

import pytest

from config import Settings, get_monitor_config, get_settings
from src.core.models import EarlyEndReason
from src.delivery.encouragement import FATIGUE_MESSAGES, FRUSTRATION_MESSAGES
from src.delivery.telemetry import (
    COOLDOWN_QUESTIONS,
    FatigueDetector,
    FatigueState,
    FrustrationDetector,
    FrustrationState,
    MonitorConfig,
    SessionBehaviorMonitor,
)
from tests.factories import answer


class FakeClock:
    """Clock advanced manually by the test."""

    def __init__(self):
        self.now = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += timedelta(milliseconds=ms)


class TestFatigueDetector:
    """Tests for rushing + accuracy-drop detection."""

    def test_baseline_is_never_checked(self):
        detector = FatigueDetector()
        state = FatigueState()
        for _ in range(5):
            detector.update(state, 10000, False)

        assert state.baseline_count == 5
        assert state.average_answer_time == pytest.approx(10000)
        assert not state.fatigue_detected

    def test_fast_wrong_answers_after_baseline(self):
        detector = FatigueDetector()
        state = FatigueState()
        for _ in range(5):
            detector.update(state, 10000, True)
        for _ in range(3):
            detector.update(state, 3000, False)

        assert state.fatigue_detected

    def test_fast_correct_answers_are_fine(self):
        detector = FatigueDetector()
        state = FatigueState()
        for _ in range(5):
            detector.update(state, 10000, True)
        for _ in range(3):
            detector.update(state, 3000, True)

        assert not state.fatigue_detected

    def test_needs_three_recent_times(self):
        detector = FatigueDetector()
        state = FatigueState()
        for _ in range(5):
            detector.update(state, 10000, True)
        for _ in range(2):
            detector.update(state, 1000, False)

        assert not state.fatigue_detected

    def test_slow_wrong_answers_are_not_fatigue(self):
        detector = FatigueDetector()
        state = FatigueState()
        for _ in range(5):
            detector.update(state, 10000, True)
        for _ in range(3):
            detector.update(state, 9000, False)

        assert not state.fatigue_detected


class TestFrustrationDetector:
    """Tests for per-topic blocking."""

    def test_three_misses_block_topic(self):
        detector = FrustrationDetector()
        state = FrustrationState()

        assert not detector.update(state, "fractions", False)
        assert not detector.update(state, "fractions", False)
        assert detector.update(state, "fractions", False)
        assert state.blocked_topics == {"fractions"}

    def test_correct_answer_resets_streak(self):
        detector = FrustrationDetector()
        state = FrustrationState()
        for correct in (False, False, True, False, False):
            detector.update(state, "fractions", correct)

        assert state.consecutive_errors_by_topic["fractions"] == 2
        assert not state.blocked_topics

    def test_misses_counted_per_topic(self):
        detector = FrustrationDetector()
        state = FrustrationState()
        for topic in ("a", "b", "a", "b"):
            detector.update(state, topic, False)

        assert not state.blocked_topics

    def test_cooldown_releases_blocks(self):
        detector = FrustrationDetector()
        state = FrustrationState()
        for _ in range(3):
            detector.update(state, "a", False)

        for _ in range(COOLDOWN_QUESTIONS):
            assert not detector.apply_cooldown(state)
            detector.update(state, "b", True)

        assert detector.apply_cooldown(state)
        assert not state.blocked_topics
        assert not state.consecutive_errors_by_topic


class TestSessionBehaviorMonitor:
    """Tests for the per-session monitor."""

    def test_fatigue_ends_session(self):
        monitor = SessionBehaviorMonitor(["a", "b"], rng=random.Random(1))
        for _ in range(5):
            monitor.record_answer(answer("a", True, 10000))
        for _ in range(2):
            assert not monitor.record_answer(answer("b", False, 3000)).finished

        decision = monitor.record_answer(answer("b", False, 3000))

        assert decision.finished
        assert decision.reason == EarlyEndReason.FATIGUE
        assert decision.message in FATIGUE_MESSAGES
        assert decision.engagement.early_exit
        assert decision.engagement.questions_answered == 8

    def test_all_topics_blocked_ends_with_frustration(self):
        monitor = SessionBehaviorMonitor(["a", "b", "a", "b"])
        for topic in ("a", "a", "a", "b", "b"):
            assert not monitor.record_answer(answer(topic, False, 20000)).finished

        decision = monitor.record_answer(answer("b", False, 20000))

        assert decision.finished
        assert decision.reason == EarlyEndReason.FRUSTRATION
        assert decision.message in FRUSTRATION_MESSAGES

    def test_blocks_outside_session_topics_do_not_end_session(self):
        monitor = SessionBehaviorMonitor(["a", "b"])
        for topic in ["c"] * 3 + ["a"] * 3:
            monitor.record_answer(answer(topic, False, 20000))

        assert monitor.is_blocked("a")
        assert monitor.is_blocked("c")
        assert not monitor.finished

        for _ in range(3):
            decision = monitor.record_answer(answer("b", False, 20000))

        assert decision.finished
        assert decision.reason == EarlyEndReason.FRUSTRATION

    def test_one_blocked_topic_of_two_continues(self):
        monitor = SessionBehaviorMonitor(["a", "b"])
        for _ in range(3):
            monitor.record_answer(answer("a", False, 20000))

        assert monitor.is_blocked("a")
        assert not monitor.finished

    def test_finished_is_terminal(self):
        monitor = SessionBehaviorMonitor(["a"])
        for _ in range(3):
            monitor.record_answer(answer("a", False, 20000))
        assert monitor.finished

        decision = monitor.record_answer(answer("a", True, 20000))

        assert decision.finished
        assert monitor.questions_answered == 3

    def test_complete_reports_engagement(self):
        clock = FakeClock()
        monitor = SessionBehaviorMonitor(["a"] * 4, clock=clock)
        for _ in range(4):
            clock.advance(20000)
            monitor.record_answer(answer("a", True, 20000))

        metrics = monitor.complete()

        assert metrics.questions_answered == 4
        assert metrics.completion_rate == 1.0
        assert metrics.session_duration_ms == pytest.approx(80000)
        assert not metrics.early_exit


class TestMonitorConfigFromSettings:
    """Tests for building monitor thresholds from settings."""

    def test_settings_flow_into_config(self, monkeypatch):
        get_settings.cache_clear()
        monkeypatch.setenv("FRUSTRATION_THRESHOLD", "4")
        monkeypatch.setenv("FATIGUE_BASELINE_QUESTIONS", "6")
        try:
            config = get_monitor_config()
        finally:
            get_settings.cache_clear()

        assert isinstance(config, MonitorConfig)
        assert config.frustration_threshold == 4
        assert config.baseline_questions == 6

    def test_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.frustration_cooldown_questions == COOLDOWN_QUESTIONS
