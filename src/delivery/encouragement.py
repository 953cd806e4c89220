"""
Encouragement Messages.

Shown when the behavior monitor ends a quiz early. Messages praise the
effort and never mention struggling or difficulty.
"""

from __future__ import annotations

import random

from src.core.models import EarlyEndReason

FATIGUE_MESSAGES = [
    "Great work! Let's take a break.",
    "Well done! You got a lot done today.",
    "Very nice! Perfect time for a short break.",
    "Excellent! Let's rest for a bit.",
]

FRUSTRATION_MESSAGES = [
    "Great effort! Let's try something different.",
    "Hey, you've practiced a lot today.",
    "Awesome! Let's take a quick break.",
]

# Parent-facing explanations for analytics screens
EARLY_END_EXPLANATIONS = {
    "fatigue": "Answers came much faster than usual. Sometimes the brain just needs a short break.",
    "frustration": "Today's material was a bit challenging. We'll practice it again next time.",
}


def get_encouragement_message(reason: EarlyEndReason, rng: random.Random | None = None) -> str:
    """Pick a random message for an early end."""
    messages = FATIGUE_MESSAGES if reason == EarlyEndReason.FATIGUE else FRUSTRATION_MESSAGES
    return (rng or random).choice(messages)


def get_parent_explanation(reason: EarlyEndReason | str) -> str:
    key = reason.value if isinstance(reason, EarlyEndReason) else reason
    return EARLY_END_EXPLANATIONS[key]
