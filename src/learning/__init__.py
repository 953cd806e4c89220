"""
Learning: mastery estimation for the adaptive quiz engine.

This package contains the learner-model logic:
- bkt: Bayesian Knowledge Tracing per topic
- signal_fusion: Confidence/recency weighted fusion of evidence
- forgetting_curve: Read-only time decay for planning
- profile_schema: Versioned persisted document
- signal_service: Profile lifecycle (quiz, evaluation, engagement signals)
"""

from src.learning.bkt import BKTParams, get_bkt_params, recommend_difficulty, update_bkt
from src.learning.forgetting_curve import apply_forgetting_curve, apply_forgetting_curve_to_profile
from src.learning.signal_fusion import fuse_signals, make_signal

__all__ = [
    # BKT
    "BKTParams",
    "get_bkt_params",
    "update_bkt",
    "recommend_difficulty",
    # Fusion
    "fuse_signals",
    "make_signal",
    # Decay
    "apply_forgetting_curve",
    "apply_forgetting_curve_to_profile",
]
