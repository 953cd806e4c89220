"""
Learner Profile Models.

Profiles are stored as one validated JSON document per child. The
document is the unit of write; there is no per-topic row and therefore
no per-topic atomicity.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Integer, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class LearnerProfileRecord(Base):
    """
    Persisted learner profile.

    ``document`` holds the output of profile_schema.dump_profile;
    ``schema_version`` mirrors its version for cheap migration queries.
    """

    __tablename__ = "learner_profiles"

    child_id: Mapped[str] = mapped_column(Text, primary_key=True)
    family_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    schema_version: Mapped[int] = mapped_column(Integer, nullable=False)
    document: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    last_updated: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<LearnerProfileRecord child={self.child_id} v{self.schema_version}>"
