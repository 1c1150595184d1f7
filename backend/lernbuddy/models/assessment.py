"""Subject assessment results from the onboarding assessment."""

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from lernbuddy.models.base import Base


class SubjectAssessment(Base):
    """Estimated level of a learner in one subject.

    Written by the assessment flow; the chat only reads it to bias competency
    selection towards subjects flagged as priority.
    """

    __tablename__ = "subject_assessments"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id"), nullable=False, index=True
    )
    subject: Mapped[str] = mapped_column(String(100), nullable=False)
    estimated_level: Mapped[int] = mapped_column(Integer, nullable=False)
    actual_grade_level: Mapped[int] = mapped_column(Integer, nullable=False)
    discrepancy: Mapped[int] = mapped_column(Integer, default=0)  # actual - estimated
    is_priority: Mapped[bool] = mapped_column(Boolean, default=False)
    confidence: Mapped[float | None] = mapped_column(Float, nullable=True)
    questions_asked: Mapped[list[Any] | None] = mapped_column(JSON, nullable=True)
    answers_given: Mapped[list[Any] | None] = mapped_column(JSON, nullable=True)
    assessment_date: Mapped[datetime] = mapped_column(
        DateTime, default=lambda: datetime.now(timezone.utc), nullable=False
    )

    def __repr__(self) -> str:
        return (
            f"<SubjectAssessment(subject={self.subject}, estimated={self.estimated_level}, "
            f"priority={self.is_priority})>"
        )
