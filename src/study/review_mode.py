"""
Review Mode.

After a long break (21+ days) a quiz opens with topics the child once
knew, to ease back in before new material.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime

from loguru import logger

from src.core.models import DifficultyMix, LearnerProfile, days_between, utc_now


@dataclass
class ReviewModeConfig:
    """Configuration for review mode."""

    gap_threshold_days: int = 21
    review_percentage: float = 0.30
    min_review_p_known: float = 0.65
    max_review_topics: int = 3


class ReviewModeDetector:
    """Detects a practice gap and picks stale, previously learned topics."""

    def __init__(self, config: ReviewModeConfig | None = None):
        self.config = config or ReviewModeConfig()

    def should_enter_review_mode(
        self,
        last_session_at: datetime | None,
        now: datetime | None = None,
    ) -> bool:
        """True iff the last session was at least the gap threshold ago."""
        if last_session_at is None:
            return False
        return days_between(last_session_at, now or utc_now()) >= self.config.gap_threshold_days

    def select_review_topics(
        self,
        profile: LearnerProfile | None,
        subject_id: str,
        now: datetime | None = None,
    ) -> list[str]:
        """Learned but stale topics of a subject, oldest first."""
        if profile is None:
            return []
        now = now or utc_now()

        eligible = [
            m for m in profile.topics_for_subject(subject_id)
            if m.p_known >= self.config.min_review_p_known
            and m.last_attempt is not None
            and days_between(m.last_attempt, now) >= self.config.gap_threshold_days
        ]
        eligible.sort(key=lambda m: m.last_attempt)
        return [m.topic for m in eligible[: self.config.max_review_topics]]

    def merge_review_topics(
        self,
        mix: DifficultyMix,
        review_topics: list[str],
        question_count: int,
    ) -> list[str]:
        """
        Add review topics to the mix's review band.

        At most ceil(question_count * 30%) topics are added and topics
        already anywhere in the mix are skipped. Mutates ``mix``.

        Returns:
            Topics that were added
        """
        # round() first: 10 * 0.3 is 3.0000000000000004 in floating point
        limit = math.ceil(round(question_count * self.config.review_percentage, 9))
        present = {*mix.review_topics, *mix.target_topics, *mix.weak_topics}
        added = []

        for topic in review_topics:
            if len(added) >= limit:
                break
            if topic in present:
                continue
            mix.review_topics.append(topic)
            present.add(topic)
            added.append(topic)

        mix.question_count = mix.total
        logger.info(f"Review mode added {len(added)} topics (limit {limit}): {added}")
        return added
