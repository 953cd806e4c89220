"""
Forgetting Curve.

Read-only time decay of mastery estimates for planning and display:

    p_decayed = p_known * rate ** weeks_since_last_attempt

Rates by band: mastered 0.95/week, learning 0.92/week, weak 0.88/week.
Decay never writes back to the stored profile and never drops below 0.05.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime

from src.core.models import LearnerProfile, TopicMastery, days_between, utc_now

DECAY_RATES = {
    "mastered": 0.95,
    "learning": 0.92,
    "weak": 0.88,
}
MIN_P_KNOWN = 0.05


def decay_rate(p_known: float) -> float:
    if p_known >= 0.8:
        return DECAY_RATES["mastered"]
    if p_known >= 0.5:
        return DECAY_RATES["learning"]
    return DECAY_RATES["weak"]


def apply_forgetting_curve(mastery: TopicMastery, now: datetime | None = None) -> TopicMastery:
    """Copy of ``mastery`` with its estimate decayed to ``now``."""
    now = now or utc_now()
    weeks = max(0.0, days_between(mastery.last_attempt, now)) / 7
    decayed = mastery.p_known * decay_rate(mastery.p_known) ** weeks
    return replace(
        mastery,
        p_known=max(MIN_P_KNOWN, decayed),
        performance_window=list(mastery.performance_window),
    )


def apply_forgetting_curve_to_profile(
    profile: LearnerProfile,
    now: datetime | None = None,
) -> LearnerProfile:
    """Copy of ``profile`` with every topic decayed; the original is untouched."""
    now = now or utc_now()
    return replace(
        profile,
        topic_mastery={
            topic: apply_forgetting_curve(mastery, now)
            for topic, mastery in profile.topic_mastery.items()
        },
    )
