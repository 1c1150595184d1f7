"""Buddy chat API router: one streamed chat turn per request."""

import json
import logging
import random
from collections.abc import AsyncIterator

from fastapi import APIRouter, Depends
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, StreamingResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lernbuddy.models import Profile, UserInterest, get_db, get_session_factory
from lernbuddy.prompts import compose_system_prompt
from lernbuddy.schemas import (
    ActiveTask,
    CamelModel,
    ChatMessage,
    EngagementLevel,
    count_learner_turns,
    latest_learner_message,
)
from lernbuddy.services.competency_selector import CompetencySelection, CompetencySelector
from lernbuddy.services.engagement_tracker import EngagementTracker
from lernbuddy.services.llm_gateway import GatewayError, LLMGatewayClient
from lernbuddy.services.progress_updater import (
    ProgressUpdater,
    should_complete_task,
    should_track_progress,
)
from lernbuddy.services.weakness_classifier import WeaknessClassifier, get_weakness_classifier

logger = logging.getLogger(__name__)
router = APIRouter(tags=["chat"])

MAX_INTERESTS = 3
MISSING_USER_MESSAGE = "User ID is required"
UNEXPECTED_ERROR_MESSAGE = "Etwas ist schiefgelaufen. Bitte versuche es noch einmal."
INVALID_REQUEST_MESSAGE = "Die Nachricht konnte nicht gelesen werden. Bitte lade die Seite neu."
SESSION_HEADER = "X-Learning-Session-Id"


class BuddyChatRequest(CamelModel):
    """A chat turn sent by the web client."""

    messages: list[ChatMessage] = []
    user_id: str | None = None
    response_time_ms: float | None = None
    message_length: int | None = None
    active_task: ActiveTask | None = None
    session_id: str | None = None


_gateway_client: LLMGatewayClient | None = None


def get_gateway_client() -> LLMGatewayClient:
    global _gateway_client
    if _gateway_client is None:
        _gateway_client = LLMGatewayClient()
    return _gateway_client


async def close_gateway_client() -> None:
    """Close the shared gateway client, if one was created."""
    global _gateway_client
    if _gateway_client is not None:
        await _gateway_client.aclose()
        _gateway_client = None


def get_classifier() -> WeaknessClassifier:
    return get_weakness_classifier()


def get_rng() -> random.Random | None:
    """Random source for competency picks; None means an unseeded one."""
    return None


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def invalid_chat_request(exc: RequestValidationError) -> JSONResponse:
    """Answer a malformed chat payload in the chat's own error shape."""
    logger.warning(f"[buddy-chat] Invalid request: {exc.errors()}")
    return _error(INVALID_REQUEST_MESSAGE, 400)


def _sse_event(payload: dict) -> bytes:
    return f"data: {json.dumps(payload)}\n\n".encode("utf-8")


async def _get_interests(db: AsyncSession, user_id: str) -> list[UserInterest]:
    result = await db.execute(
        select(UserInterest)
        .where(UserInterest.user_id == user_id)
        .order_by(UserInterest.intensity.desc())
        .limit(MAX_INTERESTS)
    )
    return list(result.scalars().all())


async def _finish_turn(
    session_factory: async_sessionmaker[AsyncSession],
    classifier: WeaknessClassifier,
    user_id: str,
    messages: list[ChatMessage],
    selection: CompetencySelection | None,
    progress_id: str | None,
    engagement_level: EngagementLevel,
    active_task: ActiveTask | None,
) -> dict | None:
    """
    Write back progress and task completion once the completion has streamed.

    Persistence here is best-effort: a failure is logged and never breaks the
    turn. Returns the task_complete event to append, if any.
    """
    learner_turns = count_learner_turns(messages)
    track_progress = should_track_progress(learner_turns, selection is not None)
    if not track_progress and active_task is None:
        return None

    async with session_factory() as db:
        try:
            updater = ProgressUpdater(db, classifier)
            weakness_tags = await updater.detect_weakness(
                latest_learner_message(messages), learner_turns
            )

            if track_progress and progress_id:
                await updater.update_progress(progress_id, weakness_tags, engagement_level)

            completed = False
            if active_task and should_complete_task(learner_turns, weakness_tags, engagement_level):
                completed = await updater.complete_task(active_task.id, user_id)

            await db.commit()
        except Exception as e:
            await db.rollback()
            logger.error(f"[buddy-chat] Progress update failed for user {user_id}: {e}")
            return None

    if completed:
        return {"type": "task_complete", "taskId": active_task.id}
    return None


@router.post("/buddy-chat")
async def buddy_chat(
    request: BuddyChatRequest,
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    gateway: LLMGatewayClient = Depends(get_gateway_client),
    classifier: WeaknessClassifier = Depends(get_classifier),
    rng: random.Random | None = Depends(get_rng),
):
    """
    Run one chat turn and stream the buddy's reply.

    Engagement is tracked, a target competency is selected and the system
    prompt composed before the gateway is called. The gateway's event stream
    is relayed unchanged; progress is written back after it ends, followed by
    an optional task_complete event.
    """
    user_id = request.user_id
    if not user_id:
        return _error(MISSING_USER_MESSAGE, 400)

    try:
        profile = await db.get(Profile, user_id)
        interests = await _get_interests(db, user_id)

        engagement_level = EngagementLevel.NORMAL
        learning_session = None
        selection = None
        if profile is None:
            logger.warning(f"[buddy-chat] No profile for user {user_id}, chatting without tracking")
        else:
            tracker = EngagementTracker(db)
            engagement_level, learning_session = await tracker.track(
                user_id,
                request.response_time_ms,
                request.message_length,
                session_id=request.session_id,
            )
            selection = await CompetencySelector(db, rng).select(user_id, profile)

        system_prompt = compose_system_prompt(
            personality=profile.buddy_personality if profile else None,
            profile=profile,
            interests=interests,
            competency=selection.competency if selection else None,
            progress=selection.progress if selection else None,
            engagement_level=engagement_level,
            is_priority_subject=selection.is_priority_subject if selection else False,
            active_task=request.active_task,
        )
        progress_id = selection.progress.id if selection else None
        session_id = learning_session.id if learning_session else None
        await db.commit()

        stream = await gateway.open_stream(system_prompt, request.messages)
    except GatewayError as e:
        return _error(e.user_message, e.status_code)
    except Exception as e:
        logger.exception(f"[buddy-chat] Unexpected error for user {user_id}: {e}")
        return _error(UNEXPECTED_ERROR_MESSAGE, 500)

    async def relay() -> AsyncIterator[bytes]:
        async for chunk in stream.aiter_bytes():
            yield chunk
        event = await _finish_turn(
            session_factory,
            classifier,
            user_id,
            request.messages,
            selection,
            progress_id,
            engagement_level,
            request.active_task,
        )
        if event:
            yield _sse_event(event)

    headers = {"Cache-Control": "no-cache"}
    if session_id:
        headers[SESSION_HEADER] = session_id
    return StreamingResponse(relay(), media_type="text/event-stream", headers=headers)
