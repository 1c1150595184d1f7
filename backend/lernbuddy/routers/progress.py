"""Progress report endpoints for learners and parents."""

import logging
from collections import defaultdict
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from pydantic import Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lernbuddy.models import CompetencyProgress, Profile, SubjectAssessment, get_db
from lernbuddy.schemas import CamelModel, ProgressStatus

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/progress", tags=["progress"])


class AssessmentSummary(CamelModel):
    subject: str
    estimated_level: int
    actual_grade_level: int
    discrepancy: int
    is_priority: bool
    assessment_date: datetime


class CompetencyProgressItem(CamelModel):
    id: str
    competency_id: str
    title: str
    competency_domain: str
    status: str
    confidence_level: int
    struggles_count: int
    priority: int
    is_priority: bool
    last_practiced_at: datetime | None


class CompetencyPriorityUpdate(CamelModel):
    priority: int = Field(ge=0)


class ProgressTotals(CamelModel):
    mastered: int
    in_progress: int
    not_started: int
    average_confidence: int


class ProgressReportResponse(CamelModel):
    """Everything the progress report view shows for one learner."""

    user_id: str
    display_name: str
    assessments: list[AssessmentSummary]
    competencies_by_subject: dict[str, list[CompetencyProgressItem]]
    totals: ProgressTotals


def _latest_by_subject(assessments: list[SubjectAssessment]) -> list[SubjectAssessment]:
    """Keep the most recent assessment per subject (input ordered oldest first)."""
    latest: dict[str, SubjectAssessment] = {}
    for assessment in assessments:
        latest[assessment.subject] = assessment
    return list(latest.values())


def summarize_progress(progress_rows: list[CompetencyProgress]) -> ProgressTotals:
    """Count statuses and average the confidence over all progress records."""
    counts = defaultdict(int)
    for row in progress_rows:
        counts[row.status] += 1
    average = (
        round(sum(row.confidence_level for row in progress_rows) / len(progress_rows))
        if progress_rows
        else 0
    )
    return ProgressTotals(
        mastered=counts[ProgressStatus.MASTERED.value],
        in_progress=counts[ProgressStatus.IN_PROGRESS.value],
        not_started=counts[ProgressStatus.NOT_STARTED.value],
        average_confidence=average,
    )


def progress_to_item(row: CompetencyProgress) -> CompetencyProgressItem:
    return CompetencyProgressItem(
        id=row.id,
        competency_id=row.competency_id,
        title=row.competency.title,
        competency_domain=row.competency.competency_domain,
        status=row.status,
        confidence_level=row.confidence_level,
        struggles_count=row.struggles_count or 0,
        priority=row.priority or 0,
        is_priority=bool(row.is_priority),
        last_practiced_at=row.last_practiced_at,
    )


@router.get("/{user_id}", response_model=ProgressReportResponse, response_model_by_alias=True)
async def get_progress_report(
    user_id: str,
    db: AsyncSession = Depends(get_db),
) -> ProgressReportResponse:
    """
    Get the progress report of a learner: latest assessment per subject and
    competency progress grouped by subject.
    """
    profile = await db.get(Profile, user_id)
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")

    assessments_result = await db.execute(
        select(SubjectAssessment)
        .where(SubjectAssessment.user_id == user_id)
        .order_by(SubjectAssessment.assessment_date.asc())
    )
    assessments = _latest_by_subject(list(assessments_result.scalars().all()))

    progress_result = await db.execute(
        select(CompetencyProgress)
        .where(CompetencyProgress.user_id == user_id)
        .order_by(CompetencyProgress.updated_at.desc())
    )
    progress_rows = list(progress_result.scalars().unique().all())

    by_subject: dict[str, list[CompetencyProgressItem]] = defaultdict(list)
    for row in progress_rows:
        by_subject[row.competency.subject].append(progress_to_item(row))

    return ProgressReportResponse(
        user_id=user_id,
        display_name=profile.display_name,
        assessments=[
            AssessmentSummary(
                subject=a.subject,
                estimated_level=a.estimated_level,
                actual_grade_level=a.actual_grade_level,
                discrepancy=a.discrepancy or 0,
                is_priority=bool(a.is_priority),
                assessment_date=a.assessment_date,
            )
            for a in assessments
        ],
        competencies_by_subject=dict(by_subject),
        totals=summarize_progress(progress_rows),
    )


@router.patch(
    "/{user_id}/competencies/{progress_id}",
    response_model=CompetencyProgressItem,
    response_model_by_alias=True,
)
async def update_competency_priority(
    user_id: str,
    progress_id: str,
    update: CompetencyPriorityUpdate,
    db: AsyncSession = Depends(get_db),
) -> CompetencyProgressItem:
    """Change how urgently a competency is practiced; higher comes first."""
    row = await db.get(CompetencyProgress, progress_id)
    if row is None or row.user_id != user_id:
        raise HTTPException(status_code=404, detail="Competency progress not found")

    row.priority = update.priority
    await db.flush()
    logger.info(f"[progress] Priority of {progress_id} set to {update.priority}")
    return progress_to_item(row)
