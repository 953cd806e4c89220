"""
Core Domain Models.

Shared dataclasses for the learner model and the inputs the engine
consumes. Persisted state is limited to LearnerProfile and TopicMastery;
everything else is transient and recomputed per quiz or per session.

Design:
- LearnerProfile: per-child aggregate, one per child
- TopicMastery: per-topic BKT state plus probe schedule
- Signal / FusedSignal: ephemeral mastery evidence
- OrderedOutcomes: chronological answer sequence for one topic
- StudySession / Evaluation / ChildProfile: inputs from the host app
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

PERFORMANCE_WINDOW_SIZE = 10
DEFAULT_P_KNOWN = 0.5


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def days_between(earlier: datetime | None, later: datetime) -> float:
    """
    Fractional days from ``earlier`` to ``later``.

    Returns 0 when ``earlier`` is unknown.
    """
    if earlier is None:
        return 0.0
    return (later - earlier).total_seconds() / 86400


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    """Clamp value into [low, high]."""
    return max(low, min(high, value))


# =============================================================================
# Enums
# =============================================================================


class Trend(str, Enum):
    """Direction of recent performance on a topic."""

    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


class SignalType(str, Enum):
    """Source of mastery evidence."""

    QUIZ = "quiz"
    EVALUATION = "evaluation"
    ENGAGEMENT = "engagement"


class Difficulty(str, Enum):
    """Target difficulty handed to the question generator."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class TopicBand(str, Enum):
    """Which bucket of the difficulty mix a topic was drawn from."""

    REVIEW = "review"
    TARGET = "target"
    WEAK = "weak"


class EarlyEndReason(str, Enum):
    """Why the behavior monitor ended a session."""

    FATIGUE = "fatigue"
    FRUSTRATION = "frustration"


class EngagementLevel(str, Enum):
    """Engagement classification of a finished session."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    AVOIDANCE = "avoidance"


# =============================================================================
# Learner Model
# =============================================================================


@dataclass
class TopicMastery:
    """
    Knowledge state for one topic of one child.

    ``attempts`` always equals ``correct_count + incorrect_count``.
    ``average_time`` is the running mean answer time in milliseconds over
    the ``timed_attempts`` answers that reported a time.
    """

    topic: str
    subject_id: str
    p_known: float
    attempts: int = 0
    correct_count: int = 0
    incorrect_count: int = 0
    average_time: float = 0.0
    timed_attempts: int = 0
    recent_trend: Trend = Trend.STABLE
    performance_window: list[bool] = field(default_factory=list)
    first_attempt: datetime | None = None
    last_attempt: datetime | None = None
    last_signal_type: SignalType = SignalType.QUIZ

    # Probe schedule (None until the topic is first mastered)
    next_probe_date: datetime | None = None
    probe_interval_days: int | None = None

    def __post_init__(self) -> None:
        self.p_known = clamp(self.p_known)

    @property
    def accuracy(self) -> float:
        """Lifetime accuracy on this topic."""
        return self.correct_count / self.attempts if self.attempts else 0.0

    @property
    def probe_scheduled(self) -> bool:
        return self.next_probe_date is not None and self.probe_interval_days is not None


@dataclass
class LearnerProfile:
    """Per-child aggregate of topic mastery."""

    child_id: str
    family_id: str
    topic_mastery: dict[str, TopicMastery] = field(default_factory=dict)
    total_quizzes: int = 0
    total_questions: int = 0
    last_updated: datetime | None = None
    version: int = 1

    def topics_for_subject(self, subject_id: str) -> list[TopicMastery]:
        """All tracked topics belonging to a subject."""
        return [m for m in self.topic_mastery.values() if m.subject_id == subject_id]

    def p_known(self, topic: str) -> float:
        """Mastery estimate for a topic, neutral when untracked."""
        mastery = self.topic_mastery.get(topic)
        return mastery.p_known if mastery else DEFAULT_P_KNOWN


# =============================================================================
# Signals
# =============================================================================


@dataclass
class Signal:
    """One piece of mastery evidence fed into signal fusion."""

    type: SignalType
    p_known: float
    confidence: float
    recency: float  # days since the evidence was produced
    sample_size: int


@dataclass
class FusedSignal:
    """Result of fusing several signals for one topic."""

    p_known: float
    confidence: float
    dominant_signal: SignalType | None


@dataclass(frozen=True)
class OrderedOutcomes:
    """
    Chronological binary outcomes for a single topic.

    Replay through the estimator is order-dependent, so the replay path
    only accepts this type. ``answer_times_ms`` is either empty or aligned
    one-to-one with ``outcomes``.
    """

    outcomes: tuple[bool, ...]
    answer_times_ms: tuple[float, ...] = ()

    def __post_init__(self) -> None:
        if self.answer_times_ms and len(self.answer_times_ms) != len(self.outcomes):
            raise ValueError(
                f"answer_times_ms has {len(self.answer_times_ms)} entries "
                f"for {len(self.outcomes)} outcomes"
            )

    @classmethod
    def of(cls, *outcomes: bool) -> OrderedOutcomes:
        return cls(tuple(bool(o) for o in outcomes))

    def __len__(self) -> int:
        return len(self.outcomes)

    @property
    def correct(self) -> int:
        return sum(self.outcomes)


@dataclass
class ProbeResult:
    """Outcome of a retention probe on one topic."""

    correct: int
    total: int
    passed: bool


@dataclass
class TopicClassification:
    """Topics bucketed by mastery estimate."""

    weak: list[str] = field(default_factory=list)
    learning: list[str] = field(default_factory=list)
    mastered: list[str] = field(default_factory=list)


@dataclass
class DifficultyMix:
    """Sampled topics per band for one quiz."""

    review_topics: list[str] = field(default_factory=list)
    target_topics: list[str] = field(default_factory=list)
    weak_topics: list[str] = field(default_factory=list)
    question_count: int = 0

    @property
    def total(self) -> int:
        return len(self.review_topics) + len(self.target_topics) + len(self.weak_topics)


@dataclass
class QuestionRequest:
    """Per-topic instruction for the external question generator."""

    topic: str
    target_difficulty: Difficulty
    mastery_percentage: int
    band: TopicBand = TopicBand.TARGET
    is_probe: bool = False


# =============================================================================
# Host Application Inputs
# =============================================================================


@dataclass
class ChildProfile:
    """The child a signal belongs to."""

    id: str
    family_id: str
    grade: int | None = None


@dataclass
class QuizQuestion:
    """A generated question; only topic and answer key are read."""

    correct_answer_index: int
    topic: str | None = None


@dataclass
class StudySession:
    """
    A completed quiz.

    ``user_answers`` is aligned with ``questions``; None marks a question
    the child never answered. ``probe_topics`` lists topics whose
    questions in this session were retention probes.
    """

    id: str
    child_id: str
    family_id: str
    subject_id: str
    date: datetime
    questions: list[QuizQuestion]
    user_answers: list[int | None]
    topic: str = ""
    answer_times_ms: list[float] = field(default_factory=list)
    probe_topics: list[str] = field(default_factory=list)


@dataclass
class EvaluationQuestion:
    """A graded question from a teacher evaluation."""

    topic: str | None = None
    score: float | None = None
    max_score: float | None = None
    is_correct: bool | None = None


@dataclass
class Evaluation:
    """A teacher-graded test or report."""

    id: str
    child_id: str
    family_id: str
    subject_id: str
    date: datetime
    weak_topics: list[str] = field(default_factory=list)
    strong_topics: list[str] = field(default_factory=list)
    questions: list[EvaluationQuestion] = field(default_factory=list)


# =============================================================================
# Session Behavior
# =============================================================================


@dataclass
class AnswerEvent:
    """One submitted answer from the live session event stream."""

    option_index: int
    elapsed_ms: float
    question_topic: str
    correct_option_index: int

    @property
    def is_correct(self) -> bool:
        return self.option_index == self.correct_option_index


@dataclass
class EngagementMetrics:
    """Pacing and completion measurements for one session."""

    session_duration_ms: float
    questions_answered: int
    questions_available: int
    completion_rate: float
    average_time_per_question: float
    early_exit: bool
    rushing_detected: bool


@dataclass
class EngagementSignal:
    """Engagement classification with its effect on mastery."""

    level: EngagementLevel
    confidence: float
    reasoning: list[str]
    impact_on_mastery: float
