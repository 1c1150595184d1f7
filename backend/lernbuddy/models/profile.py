"""Learner profile and interest models."""

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lernbuddy.models.base import Base

if TYPE_CHECKING:
    from lernbuddy.models.competency import CompetencyProgress


class Profile(Base):
    """A learner using the buddy."""

    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    grade_level: Mapped[int | None] = mapped_column(Integer, nullable=True)
    federal_state: Mapped[str | None] = mapped_column(String(100), nullable=True)
    buddy_personality: Mapped[str] = mapped_column(
        String(50), default="encouraging"
    )  # encouraging, funny, professional, friendly
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=lambda: datetime.now(timezone.utc), nullable=False
    )

    interests: Mapped[list["UserInterest"]] = relationship(
        "UserInterest", back_populates="profile", cascade="all, delete-orphan"
    )
    competency_progress: Mapped[list["CompetencyProgress"]] = relationship(
        "CompetencyProgress", back_populates="profile", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Profile(id={self.id}, name={self.display_name}, grade={self.grade_level})>"


class UserInterest(Base):
    """Something the learner cares about, used to frame explanations."""

    __tablename__ = "user_interests"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id"), nullable=False, index=True
    )
    interest: Mapped[str] = mapped_column(String(255), nullable=False)
    intensity: Mapped[int] = mapped_column(Integer, default=5)  # 1-10
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=lambda: datetime.now(timezone.utc), nullable=False
    )

    profile: Mapped["Profile"] = relationship("Profile", back_populates="interests")

    def __repr__(self) -> str:
        return f"<UserInterest(interest={self.interest}, intensity={self.intensity})>"
