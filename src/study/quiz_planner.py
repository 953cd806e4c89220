"""
Adaptive Quiz Planner.

Joint pre-session flow that decides what the next quiz covers:

1. Fall back to static generation when the profile is too thin
2. Classify the subject's topics (optionally on a time-decayed profile)
3. Sample the 20/50/30 difficulty mix
4. Add due retention probes and, after a long gap, stale review topics
5. Order review -> target -> weak and emit per-topic question requests

The planner never generates question content; it hands QuestionRequests
to a QuestionGenerator supplied by the host application.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from loguru import logger

from config import Settings, get_settings
from src.core.models import (
    Difficulty,
    DifficultyMix,
    LearnerProfile,
    QuestionRequest,
    QuizQuestion,
    TopicBand,
    utc_now,
)
from src.learning.forgetting_curve import apply_forgetting_curve_to_profile
from src.study.difficulty_mixer import DifficultyMixer, MixConfig, round_half_up
from src.study.probe_scheduler import ProbeScheduler
from src.study.review_mode import ReviewModeDetector


class QuestionGenerator(Protocol):
    """External producer of quiz questions."""

    async def generate(
        self,
        subject_id: str,
        requests: list[QuestionRequest],
        grade: int | None,
    ) -> list[QuizQuestion]: ...


@dataclass
class QuizPlan:
    """Topic plan for one quiz."""

    adaptive: bool
    ordered_topics: list[str] = field(default_factory=list)
    requests: list[QuestionRequest] = field(default_factory=list)
    mix: DifficultyMix | None = None
    review_mode: bool = False
    probe_topics: list[str] = field(default_factory=list)
    review_topics: list[str] = field(default_factory=list)


class QuizPlanner:
    """
    Composes adaptive quizzes from a learner profile.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        mixer: DifficultyMixer | None = None,
        probe_scheduler: ProbeScheduler | None = None,
        review_detector: ReviewModeDetector | None = None,
        rng: random.Random | None = None,
    ):
        """
        Initialize planner.

        Args:
            settings: Application settings (cached settings if None)
            mixer: Difficulty mixer (built from settings if None)
            probe_scheduler: Probe scheduler (defaults if None)
            review_detector: Review-mode detector (defaults if None)
            rng: Random source for topic sampling when building the mixer
        """
        self.settings = settings or get_settings()
        self.mixer = mixer or DifficultyMixer(
            MixConfig(min_topics_for_adaptive=self.settings.min_topics_for_adaptive),
            rng=rng,
        )
        self.probes = probe_scheduler or ProbeScheduler()
        self.review = review_detector or ReviewModeDetector()

    def plan(
        self,
        profile: LearnerProfile | None,
        subject_id: str,
        available_topics: list[str],
        question_count: int,
        last_session_at: datetime | None = None,
        allow_difficult: bool = True,
        now: datetime | None = None,
    ) -> QuizPlan:
        """
        Build the topic plan for the next quiz.

        Args:
            profile: Child's profile, or None if none exists
            subject_id: Subject of the quiz
            available_topics: Topics the subject offers
            question_count: Requested number of questions
            last_session_at: When the child last practiced
            allow_difficult: False to suppress the weak share
            now: Planning time (defaults to current UTC time)

        Returns:
            QuizPlan; ``adaptive`` is False when the caller should fall
            back to static question generation
        """
        if profile is None or not self.mixer.has_profile_data(profile):
            logger.info("Not enough profile data, using static question generation")
            return QuizPlan(adaptive=False)

        now = now or utc_now()
        view = apply_forgetting_curve_to_profile(profile, now) if self.settings.forgetting_curve_enabled else profile

        classification = self.mixer.classify_topics(view, available_topics)
        logger.info(
            f"Topic classification: weak={len(classification.weak)} "
            f"learning={len(classification.learning)} mastered={len(classification.mastered)}"
        )
        mix = self.mixer.mix_difficulty(classification, question_count, allow_difficult)

        # Probes are scheduled on stored state, not the decayed view
        probe_topics = self.probes.select_probe_topics(profile, subject_id, now)
        present = {*mix.review_topics, *mix.target_topics, *mix.weak_topics}
        for topic in probe_topics:
            if topic not in present:
                mix.review_topics.append(topic)
                present.add(topic)
        mix.question_count = mix.total

        review_mode = self.review.should_enter_review_mode(last_session_at, now)
        review_topics: list[str] = []
        if review_mode:
            days = (now - last_session_at).days
            logger.info(f"Entering review mode after {days} days away")
            candidates = self.review.select_review_topics(profile, subject_id, now)
            review_topics = self.review.merge_review_topics(mix, candidates, question_count)

        ordered = self.mixer.order_topics(mix)
        requests = self.build_requests(view, mix, ordered, set(probe_topics))

        logger.info(
            f"Quiz plan: review={len(mix.review_topics)} target={len(mix.target_topics)} "
            f"weak={len(mix.weak_topics)} requests={len(requests)}"
        )
        return QuizPlan(
            adaptive=True,
            ordered_topics=ordered,
            requests=requests,
            mix=mix,
            review_mode=review_mode,
            probe_topics=probe_topics,
            review_topics=review_topics,
        )

    def build_requests(
        self,
        profile: LearnerProfile,
        mix: DifficultyMix,
        ordered_topics: list[str],
        probe_topics: set[str] | None = None,
    ) -> list[QuestionRequest]:
        """
        Per-topic question requests in quiz order.

        Weak and review topics get easy questions, target topics medium.
        Each probe topic expands into a full probe's worth of requests.
        """
        probe_topics = probe_topics or set()
        weak = set(mix.weak_topics)
        review = set(mix.review_topics)
        requests = []

        for topic in ordered_topics:
            if topic in weak:
                band, difficulty = TopicBand.WEAK, Difficulty.EASY
            elif topic in review:
                band, difficulty = TopicBand.REVIEW, Difficulty.EASY
            else:
                band, difficulty = TopicBand.TARGET, Difficulty.MEDIUM

            copies = self.probes.config.questions_per_probe if topic in probe_topics else 1
            percentage = round_half_up(profile.p_known(topic) * 100)
            requests.extend(
                QuestionRequest(
                    topic=topic,
                    target_difficulty=difficulty,
                    mastery_percentage=percentage,
                    band=band,
                    is_probe=topic in probe_topics,
                )
                for _ in range(copies)
            )

        return requests

    async def generate_quiz(
        self,
        generator: QuestionGenerator,
        plan: QuizPlan,
        subject_id: str,
        grade: int | None,
    ) -> list[QuizQuestion]:
        """Ask the generator for the plan's questions."""
        questions = await generator.generate(subject_id, plan.requests, grade)
        logger.info(f"Generated {len(questions)} questions for {len(plan.requests)} requests")
        return questions
