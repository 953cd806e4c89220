"""
Learner Profile Lifecycle.

Turns learning signals into profile updates:
- Quiz completions: BKT replay per topic, probe outcomes, totals
- Teacher evaluations: high-confidence signals fused with quiz evidence
- Engagement: small confidence nudges after rushed or abandoned sessions
- Bootstrap: rebuild a profile from a child's full session history

Failure tiers:
- Quiz signals raise ProfileUpdateError when the profile cannot be
  persisted, since a dropped update skews every later topic choice
- Evaluation and engagement signals have a strict ``apply_*`` entry point
  that raises and a best-effort ``process_*`` wrapper that only logs
- A failed profile read is logged and treated as "no profile yet"
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from collections.abc import Awaitable, Callable
from datetime import datetime

from loguru import logger

from config import Settings, get_retry_config, get_settings
from src.core.errors import ProfileUpdateError
from src.core.models import (
    ChildProfile,
    EngagementMetrics,
    EngagementSignal,
    Evaluation,
    LearnerProfile,
    OrderedOutcomes,
    Signal,
    SignalType,
    StudySession,
    TopicMastery,
    clamp,
    days_between,
    utc_now,
)
from src.core.retry import RetryConfig, retry_async
from src.db.profile_store import ProfileStore
from src.delivery.engagement import analyze_engagement
from src.learning.bkt import apply_outcomes, get_bkt_params, new_topic_mastery
from src.learning.profile_schema import SCHEMA_VERSION
from src.learning.signal_fusion import fuse_signals, get_base_confidence, make_signal
from src.study.probe_scheduler import ProbeScheduler

WEAK_TOPIC_P_KNOWN = 0.3
STRONG_TOPIC_P_KNOWN = 0.9


# ========================================
# Signal Extraction
# ========================================


def extract_topic_outcomes(session: StudySession) -> dict[str, OrderedOutcomes]:
    """
    Group a session's answers by topic, preserving answer order.

    A question without its own topic belongs to the session topic.
    Unanswered questions are skipped.
    """
    outcomes: dict[str, list[bool]] = defaultdict(list)
    times: dict[str, list[float]] = defaultdict(list)
    timed = len(session.answer_times_ms) == len(session.questions)

    for index, question in enumerate(session.questions):
        answer = session.user_answers[index] if index < len(session.user_answers) else None
        if answer is None:
            continue
        topic = question.topic or session.topic
        outcomes[topic].append(answer == question.correct_answer_index)
        if timed:
            times[topic].append(session.answer_times_ms[index])

    return {
        topic: OrderedOutcomes(tuple(results), tuple(times.get(topic, ())))
        for topic, results in outcomes.items()
    }


def build_evaluation_signals(evaluation: Evaluation, now: datetime) -> dict[str, list[Signal]]:
    """
    Evaluation evidence per topic.

    Weak topics count as 0.3 known and strong topics as 0.9; graded
    questions contribute their score fraction with one sample per question.
    """
    recency = days_between(evaluation.date, now)
    signals: dict[str, list[Signal]] = defaultdict(list)

    for topic in evaluation.weak_topics:
        signals[topic].append(make_signal(SignalType.EVALUATION, WEAK_TOPIC_P_KNOWN, recency))
    for topic in evaluation.strong_topics:
        signals[topic].append(make_signal(SignalType.EVALUATION, STRONG_TOPIC_P_KNOWN, recency))

    scores: dict[str, list[float]] = defaultdict(list)
    for question in evaluation.questions:
        if not question.topic:
            continue
        if question.score is not None and question.max_score:
            scores[question.topic].append(clamp(question.score / question.max_score))
        elif question.is_correct is not None:
            scores[question.topic].append(1.0 if question.is_correct else 0.0)

    for topic, fractions in scores.items():
        signals[topic].append(
            make_signal(
                SignalType.EVALUATION,
                sum(fractions) / len(fractions),
                recency,
                sample_size=len(fractions),
            )
        )

    return signals


def quiz_signal_for(mastery: TopicMastery, now: datetime) -> Signal:
    """Existing quiz-derived mastery expressed as a fusion signal."""
    return Signal(
        type=SignalType.QUIZ,
        p_known=mastery.p_known,
        confidence=get_base_confidence(SignalType.QUIZ),
        recency=days_between(mastery.last_attempt, now),
        sample_size=mastery.attempts,
    )


# ========================================
# Lifecycle Manager
# ========================================


class ProfileLifecycleManager:
    """
    Owns reads and writes of learner profiles.

    Every profile change goes through one of the signal entry points so
    that BKT replay, probe scheduling, and persistence stay consistent.
    """

    def __init__(
        self,
        store: ProfileStore,
        settings: Settings | None = None,
        probe_scheduler: ProbeScheduler | None = None,
        retry_config: RetryConfig | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize manager.

        Args:
            store: Profile persistence
            settings: Application settings (cached settings if None)
            probe_scheduler: Probe scheduler (defaults if None)
            retry_config: Write retry policy (from settings if None)
            sleep: Backoff sleep, injectable for tests
        """
        self.store = store
        self.settings = settings or get_settings()
        self.probes = probe_scheduler or ProbeScheduler()
        self.retry_config = retry_config or get_retry_config()
        self._sleep = sleep

    # ----------------------------------------
    # Profile access
    # ----------------------------------------

    @staticmethod
    def initialize_profile(child_id: str, family_id: str, at: datetime | None = None) -> LearnerProfile:
        """Zero-value profile for a child seen for the first time."""
        return LearnerProfile(
            child_id=child_id,
            family_id=family_id,
            last_updated=at or utc_now(),
            version=SCHEMA_VERSION,
        )

    async def get_profile(self, child_id: str) -> LearnerProfile | None:
        """Read a profile; read failures are logged and reported as absent."""
        try:
            return await self.store.get(child_id)
        except Exception as e:
            logger.warning(f"Profile read failed for {child_id}, treating as absent: {e}")
            return None

    async def _get_or_initialize(self, child_id: str, family_id: str, at: datetime) -> LearnerProfile:
        profile = await self.get_profile(child_id)
        if profile is None:
            logger.info(f"Initializing first profile for child {child_id}")
            profile = self.initialize_profile(child_id, family_id, at)
        return profile

    def _bkt_params(self, grade: int | None):
        return get_bkt_params(grade if grade is not None else self.settings.default_grade)

    async def _persist(self, profile: LearnerProfile, context: str) -> None:
        await retry_async(
            lambda: self.store.set(profile.child_id, profile, merge=True),
            config=self.retry_config,
            context=context,
            sleep=self._sleep,
        )

    # ----------------------------------------
    # Quiz signals
    # ----------------------------------------

    def apply_session(self, profile: LearnerProfile, session: StudySession, grade: int | None) -> None:
        """
        Replay one session into a profile in memory.

        The session date is the clock for every timestamp written, so a
        replay of history matches live processing exactly.
        """
        params = self._bkt_params(grade)
        at = session.date
        topic_outcomes = extract_topic_outcomes(session)

        for topic, outcomes in topic_outcomes.items():
            mastery = profile.topic_mastery.get(topic)
            if mastery is None:
                mastery = new_topic_mastery(topic, session.subject_id, params, at)
                profile.topic_mastery[topic] = mastery
            apply_outcomes(mastery, outcomes, params, at)

        for topic in session.probe_topics:
            mastery = profile.topic_mastery.get(topic)
            outcomes = topic_outcomes.get(topic)
            if mastery is None or not outcomes:
                continue
            self.probes.process_probe_result(mastery, outcomes.correct, len(outcomes), at)

        self.probes.schedule_initial_probes(profile, at)

        profile.total_quizzes += 1
        profile.total_questions += sum(len(o) for o in topic_outcomes.values())
        profile.last_updated = at

    async def process_quiz_signal(self, session: StudySession, child: ChildProfile) -> LearnerProfile:
        """
        Apply a completed quiz to the child's profile and persist it.

        Raises:
            ProfileUpdateError: The profile could not be updated or saved
        """
        logger.info(
            f"Processing quiz signal: child={session.child_id} session={session.id} "
            f"questions={len(session.questions)}"
        )
        try:
            profile = await self._get_or_initialize(session.child_id, session.family_id, session.date)
            self.apply_session(profile, session, child.grade)
            await self._persist(profile, "process_quiz_signal")
        except Exception as e:
            logger.error(f"Quiz signal failed for child={session.child_id} session={session.id}: {e}")
            raise ProfileUpdateError(f"Failed to process quiz signal for session {session.id}") from e

        logger.info(
            f"Quiz signal processed: child={session.child_id} "
            f"topics={len(profile.topic_mastery)} quizzes={profile.total_quizzes}"
        )
        return profile

    async def bootstrap_profile(self, child: ChildProfile, sessions: list[StudySession]) -> LearnerProfile:
        """
        Build a profile from a child's session history.

        Sessions are replayed oldest first through the same path as
        live quiz signals.

        Raises:
            ProfileUpdateError: The rebuilt profile could not be saved
        """
        logger.info(f"Bootstrapping profile for child {child.id} from {len(sessions)} sessions")

        ordered = sorted(sessions, key=lambda s: s.date)
        profile = self.initialize_profile(
            child.id, child.family_id, ordered[0].date if ordered else None
        )
        for session in ordered:
            self.apply_session(profile, session, child.grade)

        try:
            await self._persist(profile, "bootstrap_profile")
        except Exception as e:
            raise ProfileUpdateError(f"Failed to save bootstrapped profile for child {child.id}") from e

        logger.info(
            f"Profile bootstrapped: child={child.id} topics={len(profile.topic_mastery)} "
            f"quizzes={profile.total_quizzes}"
        )
        return profile

    # ----------------------------------------
    # Evaluation signals
    # ----------------------------------------

    async def apply_evaluation_signal(
        self,
        evaluation: Evaluation,
        child: ChildProfile,
        now: datetime | None = None,
    ) -> LearnerProfile:
        """
        Fuse a teacher evaluation into the profile (strict).

        Raises:
            Any error from fusion or persistence
        """
        now = now or utc_now()
        profile = await self._get_or_initialize(evaluation.child_id, evaluation.family_id, now)

        for topic, signals in build_evaluation_signals(evaluation, now).items():
            mastery = profile.topic_mastery.get(topic)
            if mastery is None:
                mastery = TopicMastery(
                    topic=topic,
                    subject_id=evaluation.subject_id,
                    p_known=self._bkt_params(child.grade).p_init,
                )
                profile.topic_mastery[topic] = mastery
            else:
                signals = [quiz_signal_for(mastery, now), *signals]

            fused = fuse_signals(signals)
            logger.debug(
                f"Evaluation fused '{topic}': {mastery.p_known:.2f} -> {fused.p_known:.2f} "
                f"(dominant {fused.dominant_signal})"
            )
            mastery.p_known = fused.p_known
            mastery.last_signal_type = fused.dominant_signal or SignalType.EVALUATION

        self.probes.schedule_initial_probes(profile, now)
        profile.last_updated = now
        await self._persist(profile, "apply_evaluation_signal")

        logger.info(f"Evaluation {evaluation.id} applied to child {evaluation.child_id}")
        return profile

    async def process_evaluation_signal(
        self,
        evaluation: Evaluation,
        child: ChildProfile,
        now: datetime | None = None,
    ) -> LearnerProfile | None:
        """Best-effort evaluation ingestion; failures are logged, never raised."""
        try:
            return await self.apply_evaluation_signal(evaluation, child, now)
        except Exception as e:
            logger.error(f"Evaluation signal {evaluation.id} for child {evaluation.child_id} dropped: {e}")
            return None

    # ----------------------------------------
    # Engagement signals
    # ----------------------------------------

    async def apply_engagement_signal(
        self,
        child: ChildProfile,
        topic: str,
        metrics: EngagementMetrics,
        now: datetime | None = None,
    ) -> EngagementSignal:
        """
        Nudge a tracked topic's estimate by the session's engagement (strict).

        Untracked topics and neutral engagement leave the profile untouched.
        """
        now = now or utc_now()
        signal = analyze_engagement(metrics)
        logger.info(f"Engagement for child {child.id} on '{topic}': {signal.level.value}")

        if signal.impact_on_mastery == 0:
            return signal

        profile = await self.get_profile(child.id)
        mastery = profile.topic_mastery.get(topic) if profile else None
        if mastery is None:
            return signal

        mastery.p_known = clamp(mastery.p_known + signal.impact_on_mastery)
        mastery.last_signal_type = SignalType.ENGAGEMENT
        profile.last_updated = now
        await self._persist(profile, "apply_engagement_signal")
        return signal

    async def process_engagement_signal(
        self,
        child: ChildProfile,
        topic: str,
        metrics: EngagementMetrics,
        now: datetime | None = None,
    ) -> EngagementSignal | None:
        """Best-effort engagement ingestion; failures are logged, never raised."""
        try:
            return await self.apply_engagement_signal(child, topic, metrics, now)
        except Exception as e:
            logger.error(f"Engagement signal for child {child.id} dropped: {e}")
            return None
