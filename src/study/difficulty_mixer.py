"""
Topic Classifier and Difficulty Mixer.

Composes the topic list of an adaptive quiz:

- Classify: weak (<0.5), learning (0.5-0.8), mastered (>=0.8); topics the
  child has never seen are neutral (0.5) and land in learning
- Mix: 20% review (mastered) / 50% target (learning) / 30% weak, with the
  weak share cut to 10% when difficulty is suppressed
- Order: review -> target -> weak, a warm-up before the hard part

A band with too few topics yields fewer questions. Topics are never
duplicated, invented, or moved between bands to fill a shortfall.
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass

from loguru import logger

from src.core.models import DifficultyMix, LearnerProfile, TopicClassification


@dataclass
class MixConfig:
    """Configuration for difficulty mixing."""

    weak_threshold: float = 0.5
    mastered_threshold: float = 0.8
    review_ratio: float = 0.2
    target_ratio: float = 0.5
    weak_ratio: float = 0.3
    weak_ratio_suppressed: float = 0.1
    min_topics_for_adaptive: int = 3


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values (not banker's rounding)."""
    return math.floor(value + 0.5)


def sample_topics(topics: list[str], count: int, rng: random.Random | None = None) -> list[str]:
    """
    Uniform sample without replacement (Fisher-Yates).

    Returns every topic, shuffled, when fewer than ``count`` exist.
    """
    if count <= 0 or not topics:
        return []
    rng = rng or random.Random()
    pool = list(topics)
    for i in range(len(pool) - 1, 0, -1):
        j = rng.randint(0, i)
        pool[i], pool[j] = pool[j], pool[i]
    return pool[:count]


class DifficultyMixer:
    """
    Buckets topics by mastery and samples a quiz under target ratios.
    """

    def __init__(self, config: MixConfig | None = None, rng: random.Random | None = None):
        """
        Initialize mixer.

        Args:
            config: MixConfig or None for defaults
            rng: Random source for sampling; seed it for reproducible quizzes
        """
        self.config = config or MixConfig()
        self.rng = rng or random.Random()

    def classify_topics(
        self,
        profile: LearnerProfile | None,
        topics: list[str],
    ) -> TopicClassification:
        """Bucket topics into weak / learning / mastered."""
        classification = TopicClassification()

        for topic in dict.fromkeys(topics):
            p_known = profile.p_known(topic) if profile else 0.5
            if p_known < self.config.weak_threshold:
                classification.weak.append(topic)
            elif p_known < self.config.mastered_threshold:
                classification.learning.append(topic)
            else:
                classification.mastered.append(topic)

        return classification

    def band_counts(self, total: int, allow_difficult: bool = True) -> tuple[int, int, int]:
        """
        Target (review, target, weak) counts summing to ``total``.

        The rounding remainder goes to the target band.
        """
        if total <= 0:
            return 0, 0, 0

        weak_ratio = self.config.weak_ratio if allow_difficult else self.config.weak_ratio_suppressed
        review = round_half_up(total * self.config.review_ratio)
        target = round_half_up(total * self.config.target_ratio)
        weak = round_half_up(total * weak_ratio)

        target += total - (review + target + weak)
        if target < 0:
            # Only reachable with custom ratios summing above 1
            weak = max(0, weak + target)
            target = 0
        return review, target, weak

    def mix_difficulty(
        self,
        classification: TopicClassification,
        total: int,
        allow_difficult: bool = True,
    ) -> DifficultyMix:
        """
        Sample topics for each band independently.

        Args:
            classification: Bucketed topics
            total: Requested question count
            allow_difficult: False when frustration suppresses the weak share

        Returns:
            DifficultyMix whose question_count is the number actually sampled
        """
        review_count, target_count, weak_count = self.band_counts(total, allow_difficult)

        mix = DifficultyMix(
            review_topics=sample_topics(classification.mastered, review_count, self.rng),
            target_topics=sample_topics(classification.learning, target_count, self.rng),
            weak_topics=sample_topics(classification.weak, weak_count, self.rng),
        )
        mix.question_count = mix.total

        if mix.question_count < total:
            logger.info(
                f"Quiz shortened to {mix.question_count}/{total}: "
                f"review {len(mix.review_topics)}/{review_count}, "
                f"target {len(mix.target_topics)}/{target_count}, "
                f"weak {len(mix.weak_topics)}/{weak_count}"
            )
        return mix

    @staticmethod
    def order_topics(mix: DifficultyMix) -> list[str]:
        """Review first, target in the middle, weak last."""
        return [*mix.review_topics, *mix.target_topics, *mix.weak_topics]

    def has_profile_data(self, profile: LearnerProfile | None) -> bool:
        """Whether the profile tracks enough topics for an adaptive quiz."""
        if profile is None:
            return False
        return len(profile.topic_mastery) >= self.config.min_topics_for_adaptive
