"""Uploaded task packages and their simplified task items."""

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lernbuddy.models.base import Base
from lernbuddy.schemas import InteractiveElement


class TaskPackage(Base):
    """A set of exercises the learner uploaded together (e.g. one homework sheet)."""

    __tablename__ = "task_packages"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    subject: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=lambda: datetime.now(timezone.utc), nullable=False
    )

    items: Mapped[list["TaskItem"]] = relationship(
        "TaskItem",
        back_populates="package",
        cascade="all, delete-orphan",
        order_by="TaskItem.position",
    )

    def __repr__(self) -> str:
        return f"<TaskPackage(id={self.id}, title={self.title[:30]})>"


class TaskItem(Base):
    """One uploaded exercise and its simplified form."""

    __tablename__ = "task_items"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    package_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("task_packages.id"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id"), nullable=False, index=True
    )
    original_image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    simplified_content: Mapped[str | None] = mapped_column(Text, nullable=True)
    task_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    interactive_element_json: Mapped[dict[str, Any] | None] = mapped_column(
        "interactive_element", JSON, nullable=True, default=None
    )
    position: Mapped[int] = mapped_column(Integer, default=0)
    is_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=lambda: datetime.now(timezone.utc), nullable=False
    )

    package: Mapped["TaskPackage"] = relationship("TaskPackage", back_populates="items")

    @property
    def interactive_element(self) -> InteractiveElement | None:
        if not self.interactive_element_json:
            return None
        return InteractiveElement.model_validate(self.interactive_element_json)

    @interactive_element.setter
    def interactive_element(self, value: InteractiveElement | None) -> None:
        self.interactive_element_json = (
            value.model_dump(mode="json", by_alias=True) if value else None
        )

    def __repr__(self) -> str:
        return f"<TaskItem(id={self.id}, completed={self.is_completed})>"
