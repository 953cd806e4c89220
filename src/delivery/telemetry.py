"""
Session Telemetry and Behavior Monitoring.

Watches the live answer stream of one quiz and ends it early when the
child shows signs of:
- Fatigue: answering much faster than their own baseline while accuracy
  collapses (both required, so fast-but-accurate children are left alone)
- Frustration: repeated misses on the same topic until every topic of
  the session is blocked

All state is owned by a SessionBehaviorMonitor created per session.
Detectors only ever move the session into a terminal finished state.
"""

from __future__ import annotations

import random
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from loguru import logger

from src.core.models import AnswerEvent, EarlyEndReason, EngagementMetrics, utc_now
from src.delivery.encouragement import get_encouragement_message
from src.delivery.engagement import build_engagement_metrics

COOLDOWN_QUESTIONS = 5


@dataclass
class MonitorConfig:
    """Thresholds for in-session behavior detection."""

    # Fatigue
    baseline_questions: int = 5  # answers that form the baseline time
    recent_time_window: int = 3
    recent_accuracy_window: int = 5
    speed_threshold: float = 0.5  # recent avg < baseline * this = rushing
    accuracy_threshold: float = 0.4

    # Frustration
    frustration_threshold: int = 3  # consecutive misses that block a topic
    cooldown_questions: int = COOLDOWN_QUESTIONS


# =============================================================================
# Fatigue
# =============================================================================


@dataclass
class FatigueState:
    """Rolling fatigue measurements for one session (times in ms)."""

    average_answer_time: float = 0.0
    baseline_count: int = 0
    recent_answer_times: list[float] = field(default_factory=list)
    recent_accuracy: list[bool] = field(default_factory=list)
    fatigue_detected: bool = False


class FatigueDetector:
    """
    Detects rushing combined with an accuracy drop.

    The first answers set a baseline average time and are never checked.
    Afterwards the last 3 times and last 5 outcomes are compared against
    that baseline.
    """

    def __init__(self, config: MonitorConfig | None = None):
        self.config = config or MonitorConfig()

    def update(self, state: FatigueState, elapsed_ms: float, correct: bool) -> FatigueState:
        """Fold one answer into the state and re-evaluate. Mutates ``state``."""
        if state.baseline_count < self.config.baseline_questions:
            state.baseline_count += 1
            state.average_answer_time += (elapsed_ms - state.average_answer_time) / state.baseline_count
            return state

        state.recent_answer_times.append(elapsed_ms)
        del state.recent_answer_times[: -self.config.recent_time_window]
        state.recent_accuracy.append(correct)
        del state.recent_accuracy[: -self.config.recent_accuracy_window]

        state.fatigue_detected = self.detect(state)
        return state

    def detect(self, state: FatigueState) -> bool:
        if len(state.recent_answer_times) < self.config.recent_time_window:
            return False
        if state.average_answer_time <= 0 or not state.recent_accuracy:
            return False

        recent_avg = sum(state.recent_answer_times) / len(state.recent_answer_times)
        rushing = recent_avg < state.average_answer_time * self.config.speed_threshold

        accuracy = sum(state.recent_accuracy) / len(state.recent_accuracy)
        accuracy_drop = accuracy < self.config.accuracy_threshold

        return rushing and accuracy_drop


# =============================================================================
# Frustration
# =============================================================================


@dataclass
class FrustrationState:
    """Per-topic miss streaks and the topics they have blocked."""

    consecutive_errors_by_topic: dict[str, int] = field(default_factory=dict)
    blocked_topics: set[str] = field(default_factory=set)
    last_topic: str | None = None
    questions_since_block: int = 0


class FrustrationDetector:
    """
    Blocks a topic after consecutive misses on it.

    A correct answer resets that topic's streak. Once anything is
    blocked, every further answer counts toward a cooldown that releases
    all blocks.
    """

    def __init__(self, config: MonitorConfig | None = None):
        self.config = config or MonitorConfig()

    def update(self, state: FrustrationState, topic: str, correct: bool) -> bool:
        """
        Fold one answer into the state. Mutates ``state``.

        Returns:
            True if this answer blocked the topic
        """
        state.last_topic = topic

        if correct:
            state.consecutive_errors_by_topic[topic] = 0
        else:
            count = state.consecutive_errors_by_topic.get(topic, 0) + 1
            state.consecutive_errors_by_topic[topic] = count
            if count >= self.config.frustration_threshold:
                if topic not in state.blocked_topics:
                    logger.warning(f"Frustration on topic '{topic}' after {count} consecutive misses")
                state.blocked_topics.add(topic)
                state.questions_since_block = 0
                return True

        if state.blocked_topics:
            state.questions_since_block += 1
        else:
            state.questions_since_block = 0
        return False

    def apply_cooldown(self, state: FrustrationState) -> bool:
        """Release all blocks once the cooldown has elapsed."""
        if state.blocked_topics and state.questions_since_block >= self.config.cooldown_questions:
            logger.info(f"Cooldown complete, unblocking {sorted(state.blocked_topics)}")
            state.blocked_topics.clear()
            state.consecutive_errors_by_topic.clear()
            state.questions_since_block = 0
            return True
        return False


# =============================================================================
# Session Monitor
# =============================================================================


@dataclass
class MonitorDecision:
    """Monitor verdict after an answer."""

    finished: bool = False
    reason: EarlyEndReason | None = None
    message: str | None = None
    engagement: EngagementMetrics | None = None


class SessionBehaviorMonitor:
    """
    Owns fatigue and frustration state for a single quiz session.

    Usage:
        monitor = SessionBehaviorMonitor(session_topics=[q.topic for q in questions])
        for event in answers:
            decision = monitor.record_answer(event)
            if decision.finished:
                show(decision.message)
                break
    """

    def __init__(
        self,
        session_topics: list[str],
        config: MonitorConfig | None = None,
        questions_available: int | None = None,
        clock: Callable[[], datetime] = utc_now,
        rng: random.Random | None = None,
    ):
        """
        Initialize monitor.

        Args:
            session_topics: Topic of every question in the session
            config: Thresholds (uses defaults if None)
            questions_available: Question count for completion rate
                (defaults to len(session_topics))
            clock: Time source for session duration
            rng: Random source for encouragement messages
        """
        self.config = config or MonitorConfig()
        self.session_topics = set(session_topics)
        self.questions_available = (
            questions_available if questions_available is not None else len(session_topics)
        )
        self.clock = clock
        self.rng = rng
        self.started_at = clock()

        self.fatigue = FatigueState()
        self.frustration = FrustrationState()
        self.answer_times_ms: list[float] = []
        self._fatigue_detector = FatigueDetector(self.config)
        self._frustration_detector = FrustrationDetector(self.config)
        self._seen_topics: set[str] = set()
        self._decision = MonitorDecision()

    @property
    def finished(self) -> bool:
        return self._decision.finished

    @property
    def questions_answered(self) -> int:
        return len(self.answer_times_ms)

    @property
    def decision(self) -> MonitorDecision:
        return self._decision

    def is_blocked(self, topic: str) -> bool:
        return topic in self.frustration.blocked_topics

    def record_answer(self, event: AnswerEvent) -> MonitorDecision:
        """
        React to a submitted answer.

        Fatigue is checked first; a fatigue exit skips the frustration
        update. Answers after the session finished are ignored.
        """
        if self.finished:
            logger.debug("Answer ignored, session already finished")
            return self._decision

        correct = event.is_correct
        self.answer_times_ms.append(event.elapsed_ms)
        self._seen_topics.add(event.question_topic)

        self._fatigue_detector.update(self.fatigue, event.elapsed_ms, correct)
        if self.fatigue.fatigue_detected:
            logger.info(
                f"Fatigue detected after {self.questions_answered} answers "
                f"(baseline {self.fatigue.average_answer_time:.0f}ms, "
                f"recent {self.fatigue.recent_answer_times})"
            )
            return self._finish(EarlyEndReason.FATIGUE)

        self._frustration_detector.update(self.frustration, event.question_topic, correct)
        self._frustration_detector.apply_cooldown(self.frustration)

        topics = self.session_topics or self._seen_topics
        distinct_topics = len(topics)
        # Only blocks on this session's own topics count toward ending it
        blocked = len(self.frustration.blocked_topics & topics)
        if blocked and blocked >= distinct_topics:
            logger.info(f"All {distinct_topics} topics blocked by frustration, ending early")
            return self._finish(EarlyEndReason.FRUSTRATION)

        return self._decision

    def complete(self) -> EngagementMetrics:
        """Engagement metrics for a session that ran to its end."""
        return self._engagement_metrics(early_exit=self.finished)

    def _finish(self, reason: EarlyEndReason) -> MonitorDecision:
        self._decision = MonitorDecision(
            finished=True,
            reason=reason,
            message=get_encouragement_message(reason, self.rng),
            engagement=self._engagement_metrics(early_exit=True),
        )
        return self._decision

    def _engagement_metrics(self, early_exit: bool) -> EngagementMetrics:
        duration_ms = (self.clock() - self.started_at).total_seconds() * 1000
        return build_engagement_metrics(
            session_duration_ms=duration_ms,
            questions_answered=self.questions_answered,
            questions_available=self.questions_available,
            answer_times_ms=list(self.answer_times_ms),
            early_exit=early_exit,
        )
