"""
Study Module - quiz composition.

Provides:
- Topic classification and 20/50/30 difficulty mixing
- Retention probes for mastered topics
- Review mode after long practice gaps
- The joint quiz planner
"""

from src.study.difficulty_mixer import DifficultyMixer, MixConfig
from src.study.probe_scheduler import ProbeConfig, ProbeScheduler
from src.study.quiz_planner import QuizPlan, QuizPlanner
from src.study.review_mode import ReviewModeConfig, ReviewModeDetector

__all__ = [
    "DifficultyMixer",
    "MixConfig",
    "ProbeConfig",
    "ProbeScheduler",
    "QuizPlan",
    "QuizPlanner",
    "ReviewModeConfig",
    "ReviewModeDetector",
]
