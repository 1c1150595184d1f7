"""Curriculum competency catalog and per-learner progress."""

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lernbuddy.models.base import Base
from lernbuddy.schemas import ProgressStatus, WeaknessIndicators

if TYPE_CHECKING:
    from lernbuddy.models.profile import Profile

MASTERY_THRESHOLD = 80


def clamp_confidence(value: int) -> int:
    """Clamp a confidence value to the 0-100 range."""
    return max(0, min(100, value))


def status_for_confidence(confidence: int) -> ProgressStatus:
    """Derive the progress status from a confidence level."""
    if confidence >= MASTERY_THRESHOLD:
        return ProgressStatus.MASTERED
    if confidence > 0:
        return ProgressStatus.IN_PROGRESS
    return ProgressStatus.NOT_STARTED


class Competency(Base):
    """A discrete curriculum skill tied to a subject and grade level. Read-only."""

    __tablename__ = "competencies"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    subject: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    grade_level: Mapped[int] = mapped_column(Integer, nullable=False)
    competency_domain: Mapped[str] = mapped_column(String(255), nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    is_mandatory: Mapped[bool] = mapped_column(Boolean, default=True)
    federal_state: Mapped[str | None] = mapped_column(
        String(100), nullable=True
    )  # None = applies to all states
    requirement_level: Mapped[str] = mapped_column(String(50), default="basis")

    def __repr__(self) -> str:
        return f"<Competency(subject={self.subject}, grade={self.grade_level}, title={self.title[:30]})>"


class CompetencyProgress(Base):
    """How far a learner has come with one competency. Never deleted."""

    __tablename__ = "competency_progress"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id"), nullable=False, index=True
    )
    competency_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("competencies.id"), nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(50), default=ProgressStatus.NOT_STARTED.value
    )  # not_started, in_progress, mastered
    confidence_level: Mapped[int] = mapped_column(Integer, default=0)  # 0-100
    priority: Mapped[int] = mapped_column(Integer, default=0)
    struggles_count: Mapped[int] = mapped_column(Integer, default=0)
    is_priority: Mapped[bool] = mapped_column(Boolean, default=False)
    estimated_level: Mapped[int | None] = mapped_column(Integer, nullable=True)
    last_practiced_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    last_struggle_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    weakness_indicators_json: Mapped[dict[str, Any] | None] = mapped_column(
        "weakness_indicators", JSON, nullable=True, default=None
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=lambda: datetime.now(timezone.utc), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    profile: Mapped["Profile"] = relationship("Profile", back_populates="competency_progress")
    competency: Mapped["Competency"] = relationship("Competency", lazy="joined")

    @property
    def weakness_indicators(self) -> WeaknessIndicators:
        """Validated view of the stored weakness indicators."""
        return WeaknessIndicators.model_validate(self.weakness_indicators_json or {})

    @weakness_indicators.setter
    def weakness_indicators(self, value: WeaknessIndicators) -> None:
        self.weakness_indicators_json = value.model_dump(mode="json")

    def __repr__(self) -> str:
        return (
            f"<CompetencyProgress(competency_id={self.competency_id}, "
            f"status={self.status}, confidence={self.confidence_level})>"
        )
