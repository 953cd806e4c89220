"""
Signal Fusion.

Combines independent mastery evidence for one topic into a single
estimate. Each signal is weighted by:

    weight = confidence * recency_decay(days) * ln(1 + sample_size)

where recency decay halves every 14 days. Teacher evaluations carry a
higher base confidence than quiz results.
"""

from __future__ import annotations

import math

from loguru import logger

from src.core.models import DEFAULT_P_KNOWN, FusedSignal, Signal, SignalType, clamp

RECENCY_HALF_LIFE_DAYS = 14.0

BASE_CONFIDENCE: dict[SignalType, float] = {
    SignalType.EVALUATION: 0.95,
    SignalType.QUIZ: 0.70,
    SignalType.ENGAGEMENT: 0.60,
}


def get_base_confidence(signal_type: SignalType) -> float:
    return BASE_CONFIDENCE.get(signal_type, 0.5)


def recency_decay(days: float, half_life_days: float = RECENCY_HALF_LIFE_DAYS) -> float:
    """Exponential decay factor in (0, 1]; future-dated evidence counts as fresh."""
    return 0.5 ** (max(0.0, days) / half_life_days)


def signal_weight(signal: Signal) -> float:
    """Fusion weight of a single signal."""
    sample_boost = math.log1p(max(0, signal.sample_size))
    return clamp(signal.confidence) * recency_decay(signal.recency) * sample_boost


def make_signal(
    signal_type: SignalType,
    p_known: float,
    recency: float = 0.0,
    sample_size: int = 1,
    confidence: float | None = None,
) -> Signal:
    """Build a signal with its type's base confidence unless one is given."""
    return Signal(
        type=signal_type,
        p_known=clamp(p_known),
        confidence=get_base_confidence(signal_type) if confidence is None else confidence,
        recency=recency,
        sample_size=sample_size,
    )


def fuse_signals(signals: list[Signal]) -> FusedSignal:
    """
    Fuse signals into a weighted posterior.

    Args:
        signals: Evidence for a single topic

    Returns:
        FusedSignal with the weighted p_known, the mean weight as
        confidence, and the type of the heaviest signal. A single signal
        passes through unchanged; all-zero weights fall back to a plain
        average; no signals give a neutral estimate.
    """
    if not signals:
        return FusedSignal(p_known=DEFAULT_P_KNOWN, confidence=0.0, dominant_signal=None)

    weights = [signal_weight(s) for s in signals]

    if len(signals) == 1:
        only = signals[0]
        return FusedSignal(
            p_known=clamp(only.p_known),
            confidence=weights[0],
            dominant_signal=only.type,
        )

    total_weight = sum(weights)
    if total_weight <= 0:
        logger.debug(f"All {len(signals)} signals have zero weight, using plain average")
        average = sum(s.p_known for s in signals) / len(signals)
        return FusedSignal(
            p_known=clamp(average),
            confidence=0.0,
            dominant_signal=signals[0].type,
        )

    fused = sum(w * s.p_known for w, s in zip(weights, signals)) / total_weight
    dominant_index = max(range(len(signals)), key=lambda i: weights[i])

    return FusedSignal(
        p_known=clamp(fused),
        confidence=total_weight / len(signals),
        dominant_signal=signals[dominant_index].type,
    )
