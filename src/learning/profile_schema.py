"""
Versioned Learner Profile Schema.

Validation and migration for persisted profile documents. The store
writes whole documents; this module makes their shape explicit:

- SCHEMA_VERSION: version written by this code
- REQUIRED_FIELDS: keys a document must carry at any version
- MIGRATIONS: additive upgrades, one per version step

Migrations only ever add fields with defaults. A document written by a
newer schema is rejected rather than silently truncated.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from src.core.errors import ProfileSchemaError
from src.core.models import LearnerProfile, SignalType, TopicMastery, Trend

SCHEMA_VERSION = 2

REQUIRED_FIELDS = frozenset({"child_id", "family_id"})
REQUIRED_TOPIC_FIELDS = frozenset({"topic", "subject_id", "p_known"})


def _v1_to_v2(document: dict[str, Any]) -> dict[str, Any]:
    """v2 tracks how many answers contributed to average_time."""
    for mastery in document.get("topic_mastery", {}).values():
        mastery.setdefault("timed_attempts", 0)
        mastery.setdefault("next_probe_date", None)
        mastery.setdefault("probe_interval_days", None)
    return document


MIGRATIONS: dict[int, Callable[[dict[str, Any]], dict[str, Any]]] = {
    1: _v1_to_v2,
}


# ========================================
# Document Models
# ========================================


def _as_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class TopicMasteryDocument(BaseModel):
    """Stored form of a TopicMastery."""

    model_config = ConfigDict(extra="ignore")

    topic: str
    subject_id: str
    p_known: float = Field(..., ge=0, le=1)
    attempts: int = Field(0, ge=0)
    correct_count: int = Field(0, ge=0)
    incorrect_count: int = Field(0, ge=0)
    average_time: float = 0.0
    timed_attempts: int = 0
    recent_trend: Trend = Trend.STABLE
    performance_window: list[bool] = Field(default_factory=list)
    first_attempt: datetime | None = None
    last_attempt: datetime | None = None
    last_signal_type: SignalType = SignalType.QUIZ
    next_probe_date: datetime | None = None
    probe_interval_days: int | None = None

    @field_validator("first_attempt", "last_attempt", "next_probe_date")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)

    @field_validator("last_signal_type", mode="before")
    @classmethod
    def _known_signal_type(cls, value: Any) -> Any:
        # Signal sources this engine does not model are kept as quiz evidence
        if value not in {t.value for t in SignalType} and not isinstance(value, SignalType):
            return SignalType.QUIZ
        return value

    @classmethod
    def from_domain(cls, mastery: TopicMastery) -> TopicMasteryDocument:
        return cls.model_validate(mastery, from_attributes=True)

    def to_domain(self) -> TopicMastery:
        return TopicMastery(**self.model_dump())


class ProfileDocument(BaseModel):
    """Stored form of a LearnerProfile."""

    model_config = ConfigDict(extra="ignore")

    child_id: str
    family_id: str
    topic_mastery: dict[str, TopicMasteryDocument] = Field(default_factory=dict)
    total_quizzes: int = Field(0, ge=0)
    total_questions: int = Field(0, ge=0)
    last_updated: datetime | None = None
    version: int = SCHEMA_VERSION

    @field_validator("last_updated")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)

    @classmethod
    def from_domain(cls, profile: LearnerProfile) -> ProfileDocument:
        return cls(
            child_id=profile.child_id,
            family_id=profile.family_id,
            topic_mastery={
                topic: TopicMasteryDocument.from_domain(mastery)
                for topic, mastery in profile.topic_mastery.items()
            },
            total_quizzes=profile.total_quizzes,
            total_questions=profile.total_questions,
            last_updated=profile.last_updated,
            version=SCHEMA_VERSION,
        )

    def to_domain(self) -> LearnerProfile:
        return LearnerProfile(
            child_id=self.child_id,
            family_id=self.family_id,
            topic_mastery={topic: doc.to_domain() for topic, doc in self.topic_mastery.items()},
            total_quizzes=self.total_quizzes,
            total_questions=self.total_questions,
            last_updated=self.last_updated,
            version=self.version,
        )


# ========================================
# Load / Dump
# ========================================


def migrate_document(document: dict[str, Any]) -> dict[str, Any]:
    """
    Bring a raw document up to SCHEMA_VERSION.

    Raises:
        ProfileSchemaError: Required fields missing or document is newer
            than this code understands
    """
    missing = REQUIRED_FIELDS - document.keys()
    if missing:
        raise ProfileSchemaError(f"Profile document missing required fields: {sorted(missing)}")

    for topic, mastery in document.get("topic_mastery", {}).items():
        missing = REQUIRED_TOPIC_FIELDS - mastery.keys()
        if missing:
            raise ProfileSchemaError(f"Topic '{topic}' missing required fields: {sorted(missing)}")

    version = int(document.get("version", 1))
    if version > SCHEMA_VERSION:
        raise ProfileSchemaError(
            f"Profile document version {version} is newer than supported {SCHEMA_VERSION}"
        )

    migrated = dict(document)
    migrated["topic_mastery"] = {
        topic: dict(mastery) for topic, mastery in document.get("topic_mastery", {}).items()
    }
    while version < SCHEMA_VERSION:
        logger.debug(f"Migrating profile {document['child_id']} from v{version} to v{version + 1}")
        migrated = MIGRATIONS[version](migrated)
        version += 1
    migrated["version"] = SCHEMA_VERSION
    return migrated


def load_profile(document: dict[str, Any]) -> LearnerProfile:
    """Validate (and migrate) a stored document into a LearnerProfile."""
    migrated = migrate_document(document)
    try:
        return ProfileDocument.model_validate(migrated).to_domain()
    except ValidationError as e:
        raise ProfileSchemaError(f"Invalid profile document for {document.get('child_id')}: {e}") from e


def dump_profile(profile: LearnerProfile) -> dict[str, Any]:
    """JSON-safe document for a LearnerProfile."""
    return ProfileDocument.from_domain(profile).model_dump(mode="json")
