"""
Retention Probe Scheduler.

Spaced verification of already-mastered topics. A mastered topic gets a
probe date; when the date arrives a short probe (3 questions) is mixed
into the next quiz of that subject.

Interval states:
- unscheduled --first scheduling--> 28 days
- scheduled(I) --pass--> min(2I, 168) days
- scheduled(I) --fail--> 28 days, p_known demoted to 0.75

Weak and learning topics are never probed; normal sampling retests them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from loguru import logger

from src.core.models import LearnerProfile, ProbeResult, TopicMastery, utc_now


@dataclass
class ProbeConfig:
    """Configuration for retention probes."""

    initial_interval_days: int = 28
    max_interval_days: int = 168
    questions_per_probe: int = 3
    passing_accuracy: float = 2 / 3  # 2 of 3 probe questions
    failed_probe_p_known: float = 0.75
    min_probe_p_known: float = 0.8
    max_probe_topics_per_quiz: int = 2


class ProbeScheduler:
    """
    Decides when mastered topics are due for a probe and reschedules
    them from probe outcomes.
    """

    def __init__(self, config: ProbeConfig | None = None):
        self.config = config or ProbeConfig()

    def needs_probe_question(self, mastery: TopicMastery, now: datetime | None = None) -> bool:
        """True iff the topic is mastered, has a probe date, and the date has passed."""
        if mastery.p_known < self.config.min_probe_p_known:
            return False
        if mastery.next_probe_date is None:
            return False
        return (now or utc_now()) >= mastery.next_probe_date

    def evaluate(self, correct: int, total: int) -> ProbeResult:
        """Grade a probe; an empty probe fails."""
        accuracy = correct / total if total > 0 else 0.0
        # Small tolerance so 2/3 compares equal to the threshold
        passed = accuracy + 1e-9 >= self.config.passing_accuracy
        return ProbeResult(correct=correct, total=total, passed=passed)

    def schedule_next_probe(
        self,
        mastery: TopicMastery,
        result: ProbeResult | None = None,
        at: datetime | None = None,
    ) -> TopicMastery:
        """
        Set the next probe date and interval.

        Mutates and returns ``mastery``. Without a result an existing
        interval is kept as-is.
        """
        at = at or utc_now()
        previous = mastery.probe_interval_days

        if not previous:
            interval = self.config.initial_interval_days
        elif result is None:
            interval = previous
        elif result.passed:
            interval = min(previous * 2, self.config.max_interval_days)
        else:
            interval = self.config.initial_interval_days

        logger.debug(f"Probe interval for '{mastery.topic}': {previous} -> {interval} days")

        mastery.probe_interval_days = interval
        mastery.next_probe_date = at + timedelta(days=interval)
        return mastery

    def process_probe_result(
        self,
        mastery: TopicMastery,
        correct: int,
        total: int,
        at: datetime | None = None,
    ) -> ProbeResult:
        """
        Apply a completed probe to a topic.

        A pass refreshes ``last_attempt``; a fail demotes the topic out of
        the mastered band. Either way the next probe is rescheduled.
        """
        at = at or utc_now()
        result = self.evaluate(correct, total)

        if result.passed:
            logger.info(
                f"Probe passed for '{mastery.topic}' ({correct}/{total}), "
                f"keeping p_known={mastery.p_known:.2f}"
            )
            mastery.last_attempt = at
        else:
            logger.info(
                f"Probe failed for '{mastery.topic}' ({correct}/{total}), "
                f"demoting p_known {mastery.p_known:.2f} -> {self.config.failed_probe_p_known}"
            )
            mastery.p_known = self.config.failed_probe_p_known

        self.schedule_next_probe(mastery, result, at)
        return result

    def schedule_initial_probes(self, profile: LearnerProfile, at: datetime | None = None) -> list[str]:
        """
        Put newly mastered topics into the probe cycle.

        Returns:
            Topics that received their first probe date
        """
        scheduled = []
        for topic, mastery in profile.topic_mastery.items():
            if mastery.p_known >= self.config.min_probe_p_known and not mastery.probe_scheduled:
                self.schedule_next_probe(mastery, at=at)
                scheduled.append(topic)
        if scheduled:
            logger.debug(f"Scheduled first probes for {scheduled}")
        return scheduled

    def select_probe_topics(
        self,
        profile: LearnerProfile,
        subject_id: str,
        now: datetime | None = None,
    ) -> list[str]:
        """
        Due topics of a subject, most overdue first, capped per quiz.
        """
        now = now or utc_now()
        due = [
            m for m in profile.topics_for_subject(subject_id)
            if self.needs_probe_question(m, now)
        ]
        due.sort(key=lambda m: m.next_probe_date)
        selected = [m.topic for m in due[: self.config.max_probe_topics_per_quiz]]

        if selected:
            logger.info(f"Probe topics for subject {subject_id}: {selected}")
        return selected
