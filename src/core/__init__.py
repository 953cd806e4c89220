"""
Core Module - Shared domain models and interfaces.

Components:
- models: Learner profile, topic mastery, signals, session inputs
- errors: Error hierarchy with user-safe messages
- retry: Bounded exponential backoff for profile writes
- logging_setup: Loguru sink configuration

All domain modules (src/learning/, src/study/, src/delivery/) import
shared types from src/core/ rather than redefining them.
"""

from src.core.errors import (
    MasteryEngineError,
    ProfileSchemaError,
    ProfileStoreError,
    ProfileUpdateError,
)
from src.core.models import (
    AnswerEvent,
    ChildProfile,
    Difficulty,
    DifficultyMix,
    Evaluation,
    EvaluationQuestion,
    LearnerProfile,
    OrderedOutcomes,
    QuestionRequest,
    QuizQuestion,
    Signal,
    SignalType,
    StudySession,
    TopicClassification,
    TopicMastery,
    Trend,
)

__all__ = [
    # Errors
    "MasteryEngineError",
    "ProfileSchemaError",
    "ProfileStoreError",
    "ProfileUpdateError",
    # Learner model
    "LearnerProfile",
    "TopicMastery",
    "Trend",
    # Signals
    "Signal",
    "SignalType",
    "OrderedOutcomes",
    # Quiz composition
    "Difficulty",
    "DifficultyMix",
    "QuestionRequest",
    "TopicClassification",
    # Inputs
    "AnswerEvent",
    "ChildProfile",
    "Evaluation",
    "EvaluationQuestion",
    "QuizQuestion",
    "StudySession",
]
