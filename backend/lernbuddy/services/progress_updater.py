"""Progress updater: writes confidence and struggle changes back after a chat turn."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lernbuddy.models import CompetencyProgress, TaskItem
from lernbuddy.models.competency import clamp_confidence, status_for_confidence
from lernbuddy.schemas import MAX_WEAKNESS_INDICATORS, EngagementLevel
from lernbuddy.services.weakness_classifier import KeywordWeaknessClassifier, WeaknessClassifier

logger = logging.getLogger(__name__)

# Progress is only tracked once the conversation is under way
MIN_TURNS_FOR_PROGRESS = 3
# A task walkthrough needs at least this many learner turns before completion
MIN_TURNS_FOR_TASK_COMPLETION = 5

STRUGGLE_CONFIDENCE_DELTA = 5
CONFIDENCE_DELTAS = {
    EngagementLevel.HIGH: 25,
    EngagementLevel.NORMAL: 20,
}
DEFAULT_CONFIDENCE_DELTA = 15


@dataclass
class ProgressUpdate:
    """Outcome of one progress update."""

    weakness_tags: list[str] = field(default_factory=list)
    confidence_before: int | None = None
    confidence_after: int | None = None
    status: str | None = None

    @property
    def struggled(self) -> bool:
        return bool(self.weakness_tags)


def should_track_progress(learner_turns: int, has_target: bool) -> bool:
    """Progress updates need a target competency and at least three learner turns."""
    return has_target and learner_turns >= MIN_TURNS_FOR_PROGRESS


def should_complete_task(
    learner_turns: int,
    weakness_tags: list[str],
    engagement_level: EngagementLevel,
) -> bool:
    """An active task is done after five turns without struggle or with steady engagement."""
    if learner_turns < MIN_TURNS_FOR_TASK_COMPLETION:
        return False
    return not weakness_tags or engagement_level in (EngagementLevel.NORMAL, EngagementLevel.HIGH)


def apply_progress(
    progress: CompetencyProgress,
    weakness_tags: list[str],
    engagement_level: EngagementLevel,
    now: datetime | None = None,
) -> ProgressUpdate:
    """
    Apply one turn's outcome to a progress record in place.

    A struggle adds a small confidence bump and a struggle count; otherwise the
    confidence grows by an engagement-dependent delta. Confidence is clamped to
    0-100 and the status always follows from it.
    """
    now = now or datetime.now(timezone.utc)
    before = progress.confidence_level or 0

    if weakness_tags:
        indicators = progress.weakness_indicators
        indicators.indicators = [*indicators.indicators, *weakness_tags][-MAX_WEAKNESS_INDICATORS:]
        indicators.last_detected = now
        progress.weakness_indicators = indicators
        progress.struggles_count = (progress.struggles_count or 0) + 1
        progress.last_struggle_at = now
        after = clamp_confidence(before + STRUGGLE_CONFIDENCE_DELTA)
    else:
        delta = CONFIDENCE_DELTAS.get(engagement_level, DEFAULT_CONFIDENCE_DELTA)
        after = clamp_confidence(before + delta)

    progress.confidence_level = after
    progress.status = status_for_confidence(after).value
    progress.last_practiced_at = now

    return ProgressUpdate(
        weakness_tags=list(weakness_tags),
        confidence_before=before,
        confidence_after=after,
        status=progress.status,
    )


class ProgressUpdater:
    """Updates competency progress and task completion after a turn."""

    def __init__(self, db: AsyncSession, classifier: WeaknessClassifier | None = None) -> None:
        self.db = db
        self.classifier = classifier or KeywordWeaknessClassifier()

    async def detect_weakness(self, message: str, learner_turns: int) -> list[str]:
        return await self.classifier.detect(message, learner_turns)

    async def update_progress(
        self,
        progress_id: str,
        weakness_tags: list[str],
        engagement_level: EngagementLevel,
    ) -> ProgressUpdate | None:
        """Load a progress record and apply the turn's outcome to it."""
        result = await self.db.execute(
            select(CompetencyProgress).where(CompetencyProgress.id == progress_id)
        )
        progress = result.scalar_one_or_none()
        if progress is None:
            logger.warning(f"[ProgressUpdater] Progress {progress_id} not found")
            return None

        update = apply_progress(progress, weakness_tags, engagement_level)
        await self.db.flush()

        logger.info(
            f"[ProgressUpdater] Progress {progress_id}: confidence {update.confidence_before} -> "
            f"{update.confidence_after} ({update.status}), weakness={weakness_tags}"
        )
        return update

    async def complete_task(self, task_id: str, user_id: str) -> bool:
        """Mark a task item of the learner as completed. Returns False if it does not exist."""
        result = await self.db.execute(
            select(TaskItem).where(TaskItem.id == task_id, TaskItem.user_id == user_id)
        )
        task = result.scalar_one_or_none()
        if task is None:
            logger.warning(f"[ProgressUpdater] Task {task_id} not found for user {user_id}")
            return False

        task.is_completed = True
        task.completed_at = datetime.now(timezone.utc)
        await self.db.flush()
        logger.info(f"[ProgressUpdater] Task {task_id} completed")
        return True
