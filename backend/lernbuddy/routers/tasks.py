"""Task API router: task packages, simplifying uploaded exercises and tracking their completion."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from lernbuddy.config import settings
from lernbuddy.models import Profile, TaskItem, TaskPackage, get_db
from lernbuddy.schemas import CamelModel, InteractiveElement
from lernbuddy.services.task_simplifier import TaskSimplificationError, TaskSimplifier

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/tasks", tags=["tasks"])


class SimplifyTaskRequest(CamelModel):
    image_url: str
    grade_level: int | None = None
    task_item_id: str | None = None


class SimplifyTaskResponse(CamelModel):
    simplified_content: str
    task_type: str | None = None
    interactive_element: InteractiveElement | None = None


class TaskItemResponse(CamelModel):
    id: str
    package_id: str
    original_image_url: str | None
    simplified_content: str | None
    task_type: str | None
    interactive_element: InteractiveElement | None
    position: int
    is_completed: bool
    completed_at: datetime | None


class TaskItemUpdate(CamelModel):
    is_completed: bool


class TaskItemCreate(CamelModel):
    original_image_url: str | None = None
    simplified_content: str | None = None
    task_type: str | None = None
    interactive_element: InteractiveElement | None = None
    position: int | None = None


class TaskPackageCreate(CamelModel):
    user_id: str
    title: str
    subject: str | None = None


class TaskPackageResponse(CamelModel):
    id: str
    user_id: str
    title: str
    subject: str | None
    created_at: datetime
    items: list[TaskItemResponse]


_simplifier: TaskSimplifier | None = None


def get_task_simplifier() -> TaskSimplifier:
    global _simplifier
    if _simplifier is None:
        _simplifier = TaskSimplifier()
    return _simplifier


async def close_task_simplifier() -> None:
    """Close the shared simplifier's API client, if one was created."""
    global _simplifier
    if _simplifier is not None:
        await _simplifier.aclose()
        _simplifier = None


def task_item_to_response(item: TaskItem) -> TaskItemResponse:
    return TaskItemResponse(
        id=item.id,
        package_id=item.package_id,
        original_image_url=item.original_image_url,
        simplified_content=item.simplified_content,
        task_type=item.task_type,
        interactive_element=item.interactive_element,
        position=item.position,
        is_completed=item.is_completed,
        completed_at=item.completed_at,
    )


def package_to_response(package: TaskPackage) -> TaskPackageResponse:
    return TaskPackageResponse(
        id=package.id,
        user_id=package.user_id,
        title=package.title,
        subject=package.subject,
        created_at=package.created_at,
        items=[task_item_to_response(item) for item in package.items],
    )


async def _get_package(db: AsyncSession, package_id: str) -> TaskPackage:
    result = await db.execute(
        select(TaskPackage)
        .options(selectinload(TaskPackage.items))
        .where(TaskPackage.id == package_id)
    )
    package = result.scalar_one_or_none()
    if package is None:
        raise HTTPException(status_code=404, detail="Task package not found")
    return package


@router.post(
    "/packages",
    response_model=TaskPackageResponse,
    response_model_by_alias=True,
    status_code=201,
)
async def create_task_package(
    package_data: TaskPackageCreate,
    db: AsyncSession = Depends(get_db),
) -> TaskPackageResponse:
    """Create an empty task package for a learner."""
    if await db.get(Profile, package_data.user_id) is None:
        raise HTTPException(status_code=404, detail="Profile not found")

    title = package_data.title.strip()
    if not title:
        raise HTTPException(status_code=400, detail="Title must not be empty")

    package = TaskPackage(
        user_id=package_data.user_id,
        title=title,
        subject=package_data.subject,
        items=[],
    )
    db.add(package)
    await db.flush()

    logger.info(f"[tasks] Created package {package.id} for user {package.user_id}")
    return package_to_response(package)


@router.get("/packages", response_model=list[TaskPackageResponse], response_model_by_alias=True)
async def list_task_packages(
    user_id: str,
    db: AsyncSession = Depends(get_db),
) -> list[TaskPackageResponse]:
    """List a learner's task packages, newest first."""
    result = await db.execute(
        select(TaskPackage)
        .options(selectinload(TaskPackage.items))
        .where(TaskPackage.user_id == user_id)
        .order_by(TaskPackage.created_at.desc())
    )
    return [package_to_response(p) for p in result.scalars().all()]


@router.get(
    "/packages/{package_id}", response_model=TaskPackageResponse, response_model_by_alias=True
)
async def get_task_package(
    package_id: str,
    db: AsyncSession = Depends(get_db),
) -> TaskPackageResponse:
    """Get a task package with its items."""
    return package_to_response(await _get_package(db, package_id))


@router.post(
    "/packages/{package_id}/items",
    response_model=TaskItemResponse,
    response_model_by_alias=True,
    status_code=201,
)
async def add_task_item(
    package_id: str,
    item_data: TaskItemCreate,
    db: AsyncSession = Depends(get_db),
) -> TaskItemResponse:
    """Add an exercise to a package; without a position it goes last."""
    package = await _get_package(db, package_id)

    position = item_data.position
    if position is None:
        position = len(package.items)

    item = TaskItem(
        package_id=package.id,
        user_id=package.user_id,
        original_image_url=item_data.original_image_url,
        simplified_content=item_data.simplified_content,
        task_type=item_data.task_type,
        position=position,
        is_completed=False,
    )
    item.interactive_element = item_data.interactive_element
    package.items.append(item)
    await db.flush()

    return task_item_to_response(item)


@router.post("/simplify", response_model=SimplifyTaskResponse, response_model_by_alias=True)
async def simplify_task(
    request: SimplifyTaskRequest,
    db: AsyncSession = Depends(get_db),
    simplifier: TaskSimplifier = Depends(get_task_simplifier),
) -> SimplifyTaskResponse:
    """
    Simplify a photographed exercise for the learner's grade level.

    When task_item_id is given, the result is stored on that task item.
    """
    item = None
    if request.task_item_id:
        item = await db.get(TaskItem, request.task_item_id)
        if item is None:
            raise HTTPException(status_code=404, detail="Task item not found")

    grade_level = request.grade_level or settings.default_grade_level
    try:
        task = await simplifier.simplify(request.image_url, grade_level)
    except TaskSimplificationError as e:
        logger.error(f"[tasks] Simplification failed: {e}")
        raise HTTPException(status_code=502, detail="Die Aufgabe konnte nicht vereinfacht werden.")

    if item is not None:
        item.original_image_url = item.original_image_url or request.image_url
        item.simplified_content = task.simplified_content
        item.task_type = task.task_type
        item.interactive_element = task.interactive_element
        await db.flush()

    return SimplifyTaskResponse(
        simplified_content=task.simplified_content,
        task_type=task.task_type,
        interactive_element=task.interactive_element,
    )


@router.get("/items/{item_id}", response_model=TaskItemResponse, response_model_by_alias=True)
async def get_task_item(
    item_id: str,
    db: AsyncSession = Depends(get_db),
) -> TaskItemResponse:
    """Get a single task item."""
    item = await db.get(TaskItem, item_id)
    if item is None:
        raise HTTPException(status_code=404, detail="Task item not found")
    return task_item_to_response(item)


@router.patch("/items/{item_id}", response_model=TaskItemResponse, response_model_by_alias=True)
async def update_task_item(
    item_id: str,
    update: TaskItemUpdate,
    db: AsyncSession = Depends(get_db),
) -> TaskItemResponse:
    """Mark a task item as completed or open again."""
    item = await db.get(TaskItem, item_id)
    if item is None:
        raise HTTPException(status_code=404, detail="Task item not found")

    item.is_completed = update.is_completed
    item.completed_at = datetime.now(timezone.utc) if update.is_completed else None
    await db.flush()
    return task_item_to_response(item)
