"""Competency selector: picks the curriculum goal the buddy works towards this turn.

Cascade (each step runs only when the previous one found nothing):
1. Open progress in a priority subject (most struggles, lowest confidence first)
2. Best-ranked open progress in any subject (priority, struggles, confidence)
3. New random mandatory competency in a priority subject at its estimated level
4. New random mandatory competency at the learner's grade level
5. Nothing - the conversation runs without an implicit curriculum goal
"""

import logging
import random
from dataclasses import dataclass

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from lernbuddy.config import settings
from lernbuddy.models import Competency, CompetencyProgress, Profile, SubjectAssessment
from lernbuddy.schemas import ProgressStatus

logger = logging.getLogger(__name__)

MAX_PRIORITY_SUBJECTS = 3
MAX_CANDIDATES = 10
PRIORITY_SUBJECT_PRIORITY = 10

OPEN_STATUSES = (ProgressStatus.NOT_STARTED.value, ProgressStatus.IN_PROGRESS.value)


@dataclass
class CompetencySelection:
    """The competency targeted this turn and its progress record."""

    competency: Competency
    progress: CompetencyProgress
    is_priority_subject: bool


class CompetencySelector:
    """Chooses at most one target competency for a learner."""

    def __init__(self, db: AsyncSession, rng: random.Random | None = None) -> None:
        self.db = db
        self.rng = rng or random.Random()

    async def select(self, user_id: str, profile: Profile | None) -> CompetencySelection | None:
        """Run the selection cascade for a learner."""
        priority_assessments = await self._get_priority_assessments(user_id)
        priority_subjects = {a.subject for a in priority_assessments}

        # Step 1: existing open progress in a priority subject
        if priority_subjects:
            progress_rows = await self._get_open_progress(
                user_id,
                CompetencyProgress.struggles_count.desc(),
                CompetencyProgress.confidence_level.asc(),
            )
            for progress in progress_rows:
                if progress.competency.subject in priority_subjects:
                    logger.info(
                        f"[CompetencySelector] Priority progress for {user_id}: {progress.competency.title}"
                    )
                    return CompetencySelection(progress.competency, progress, True)

        # Step 2: best-ranked existing open progress, any subject
        progress_rows = await self._get_open_progress(
            user_id,
            CompetencyProgress.priority.desc(),
            CompetencyProgress.struggles_count.desc(),
            CompetencyProgress.confidence_level.asc(),
            limit=1,
        )
        if progress_rows:
            progress = progress_rows[0]
            is_priority = progress.competency.subject in priority_subjects
            logger.info(f"[CompetencySelector] Continuing progress for {user_id}: {progress.competency.title}")
            return CompetencySelection(progress.competency, progress, is_priority)

        federal_state = profile.federal_state if profile else None

        # Step 3: new competency in a priority subject at its estimated level
        for assessment in priority_assessments:
            candidates = await self._get_candidates(
                user_id, assessment.estimated_level, federal_state, subject=assessment.subject
            )
            if candidates:
                competency = self.rng.choice(candidates)
                progress = await self._create_progress(
                    user_id,
                    competency,
                    priority=PRIORITY_SUBJECT_PRIORITY,
                    is_priority=True,
                    estimated_level=assessment.estimated_level,
                )
                return CompetencySelection(competency, progress, True)

        # Step 4: new competency at the learner's grade level
        grade_level = settings.default_grade_level
        if profile and profile.grade_level:
            grade_level = profile.grade_level
        candidates = await self._get_candidates(user_id, grade_level, federal_state)
        if candidates:
            competency = self.rng.choice(candidates)
            progress = await self._create_progress(user_id, competency, priority=0, is_priority=False)
            return CompetencySelection(competency, progress, False)

        logger.info(f"[CompetencySelector] No competency available for {user_id}")
        return None

    async def _get_priority_assessments(self, user_id: str) -> list[SubjectAssessment]:
        result = await self.db.execute(
            select(SubjectAssessment)
            .where(
                SubjectAssessment.user_id == user_id,
                SubjectAssessment.is_priority.is_(True),
            )
            .order_by(SubjectAssessment.discrepancy.desc())
            .limit(MAX_PRIORITY_SUBJECTS)
        )
        return list(result.scalars().all())

    async def _get_open_progress(
        self, user_id: str, *order_by, limit: int | None = None
    ) -> list[CompetencyProgress]:
        """Open progress rows of mandatory competencies, in the given order."""
        query = (
            select(CompetencyProgress)
            .join(Competency, CompetencyProgress.competency_id == Competency.id)
            .where(
                CompetencyProgress.user_id == user_id,
                CompetencyProgress.status.in_(OPEN_STATUSES),
                Competency.is_mandatory.is_(True),
            )
            .order_by(*order_by)
        )
        if limit:
            query = query.limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().unique().all())

    async def _get_candidates(
        self,
        user_id: str,
        grade_level: int,
        federal_state: str | None,
        subject: str | None = None,
    ) -> list[Competency]:
        """Mandatory competencies the learner has no progress record for yet."""
        tracked = select(CompetencyProgress.competency_id).where(
            CompetencyProgress.user_id == user_id
        )
        query = select(Competency).where(
            Competency.is_mandatory.is_(True),
            Competency.grade_level == grade_level,
            Competency.id.not_in(tracked),
        )
        if subject:
            query = query.where(Competency.subject == subject)
        if federal_state:
            query = query.where(
                or_(Competency.federal_state.is_(None), Competency.federal_state == federal_state)
            )
        result = await self.db.execute(query.order_by(Competency.id).limit(MAX_CANDIDATES))
        return list(result.scalars().all())

    async def _create_progress(
        self,
        user_id: str,
        competency: Competency,
        priority: int,
        is_priority: bool,
        estimated_level: int | None = None,
    ) -> CompetencyProgress:
        progress = CompetencyProgress(
            user_id=user_id,
            competency_id=competency.id,
            status=ProgressStatus.NOT_STARTED.value,
            confidence_level=0,
            priority=priority,
            struggles_count=0,
            is_priority=is_priority,
            estimated_level=estimated_level,
        )
        progress.competency = competency
        self.db.add(progress)
        await self.db.flush()
        logger.info(
            f"[CompetencySelector] New progress for {user_id}: {competency.subject} / {competency.title} "
            f"(priority={priority})"
        )
        return progress
