"""Engagement tracker: rolling response-time / message-length baseline per session."""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lernbuddy.models import LearningSession
from lernbuddy.schemas import METRICS_WINDOW_SIZE, EngagementLevel, SessionMetrics

logger = logging.getLogger(__name__)

# Multipliers against the session average
FRUSTRATED_RESPONSE_FACTOR = 2.5
FRUSTRATED_LENGTH_FACTOR = 0.3
LOW_RESPONSE_FACTOR = 1.5
LOW_LENGTH_FACTOR = 0.6
HIGH_RESPONSE_FACTOR = 0.8
HIGH_LENGTH_FACTOR = 0.9


def push_sample(window: list, value, size: int = METRICS_WINDOW_SIZE) -> list:
    """Append a sample and keep only the most recent `size` entries."""
    return [*window, value][-size:]


def _mean(values: list) -> float:
    return sum(values) / len(values) if values else 0.0


def classify_engagement(
    response_time_ms: float,
    message_length: int,
    avg_response_time: float,
    avg_message_length: float,
) -> EngagementLevel:
    """
    Classify a turn against the session baseline. First matching rule wins:
    frustrated, low, high, otherwise normal.
    """
    if (
        response_time_ms > FRUSTRATED_RESPONSE_FACTOR * avg_response_time
        or message_length < FRUSTRATED_LENGTH_FACTOR * avg_message_length
    ):
        return EngagementLevel.FRUSTRATED
    if (
        response_time_ms > LOW_RESPONSE_FACTOR * avg_response_time
        or message_length < LOW_LENGTH_FACTOR * avg_message_length
    ):
        return EngagementLevel.LOW
    if (
        response_time_ms < HIGH_RESPONSE_FACTOR * avg_response_time
        and message_length > HIGH_LENGTH_FACTOR * avg_message_length
    ):
        return EngagementLevel.HIGH
    return EngagementLevel.NORMAL


class EngagementTracker:
    """Updates the open learning session of a user and classifies the current turn."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_open_session(
        self, user_id: str, session_id: str | None = None
    ) -> LearningSession | None:
        """
        Find the session to track against.

        An explicit session handle wins when it names an open session of the
        same user; otherwise the most recently started open session is used.
        """
        if session_id:
            result = await self.db.execute(
                select(LearningSession).where(
                    LearningSession.id == session_id,
                    LearningSession.user_id == user_id,
                    LearningSession.ended_at.is_(None),
                )
            )
            session = result.scalar_one_or_none()
            if session:
                return session
            logger.info(f"[EngagementTracker] Session {session_id} not open for user {user_id}, falling back")

        result = await self.db.execute(
            select(LearningSession)
            .where(
                LearningSession.user_id == user_id,
                LearningSession.ended_at.is_(None),
            )
            .order_by(LearningSession.started_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def track(
        self,
        user_id: str,
        response_time_ms: float | None,
        message_length: int | None,
        session_id: str | None = None,
    ) -> tuple[EngagementLevel, LearningSession | None]:
        """
        Record one learner turn and classify it.

        Without timing data nothing is recorded and the turn counts as normal.

        Returns:
            The engagement level and the session that was updated (if any)
        """
        if response_time_ms is None or message_length is None:
            return EngagementLevel.NORMAL, None

        session = await self.get_open_session(user_id, session_id)
        if session is None:
            session = LearningSession(user_id=user_id)
            session.metrics = SessionMetrics()
            self.db.add(session)
            logger.info(f"[EngagementTracker] Started learning session for user {user_id}")

        metrics = session.metrics
        metrics.response_times = push_sample(metrics.response_times, response_time_ms)
        metrics.message_lengths = push_sample(metrics.message_lengths, message_length)

        level = classify_engagement(
            response_time_ms,
            message_length,
            _mean(metrics.response_times),
            _mean(metrics.message_lengths),
        )

        session.metrics = metrics
        session.engagement_level = level.value
        await self.db.flush()

        logger.info(
            f"[EngagementTracker] user={user_id} response_time={response_time_ms}ms "
            f"length={message_length} -> {level.value}"
        )
        return level, session
