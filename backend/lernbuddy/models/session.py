"""Learning session model holding the engagement baseline."""

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from lernbuddy.models.base import Base
from lernbuddy.schemas import EngagementLevel, SessionMetrics


class LearningSession(Base):
    """One conversation with the buddy. Open while ended_at is null."""

    __tablename__ = "learning_sessions"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id"), nullable=False, index=True
    )
    started_at: Mapped[datetime] = mapped_column(
        DateTime, default=lambda: datetime.now(timezone.utc), nullable=False
    )
    ended_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    engagement_level: Mapped[str] = mapped_column(
        String(20), default=EngagementLevel.NORMAL.value
    )
    metrics_json: Mapped[dict[str, Any] | None] = mapped_column(
        "metrics", JSON, nullable=True, default=None
    )

    @property
    def metrics(self) -> SessionMetrics:
        """Validated view of the rolling engagement windows."""
        return SessionMetrics.model_validate(self.metrics_json or {})

    @metrics.setter
    def metrics(self, value: SessionMetrics) -> None:
        # Assign a fresh dict so the JSON column is flagged dirty
        self.metrics_json = value.model_dump(mode="json")

    @property
    def is_open(self) -> bool:
        return self.ended_at is None

    def __repr__(self) -> str:
        return f"<LearningSession(id={self.id}, user_id={self.user_id}, engagement={self.engagement_level})>"
