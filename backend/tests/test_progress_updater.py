"""
Tests for the ProgressUpdater service.

Tests cover:
- Confidence deltas per engagement level
- Struggle bookkeeping and weakness indicators
- Status derived from confidence
- Task completion rules
"""

from datetime import datetime, timezone

import pytest

from lernbuddy.models import CompetencyProgress, TaskItem
from lernbuddy.schemas import EngagementLevel, WeaknessIndicators
from lernbuddy.services.progress_updater import (
    ProgressUpdater,
    apply_progress,
    should_complete_task,
    should_track_progress,
)


def _progress(confidence: int = 40, struggles: int = 0, status: str = "in_progress") -> CompetencyProgress:
    return CompetencyProgress(
        user_id="user-1",
        competency_id="comp-1",
        status=status,
        confidence_level=confidence,
        struggles_count=struggles,
        priority=0,
    )


# =============================================================================
# Gating Tests
# =============================================================================

class TestGating:
    """Tests for when progress and task completion apply."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "turns,has_target,expected",
        [(2, True, False), (3, True, True), (8, True, True), (5, False, False)],
    )
    def test_should_track_progress(self, turns, has_target, expected):
        assert should_track_progress(turns, has_target) is expected

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "turns,tags,level,expected",
        [
            (4, [], EngagementLevel.HIGH, False),
            (5, [], EngagementLevel.LOW, True),
            (5, ["weiß nicht"], EngagementLevel.FRUSTRATED, False),
            (5, ["weiß nicht"], EngagementLevel.LOW, False),
            (6, ["weiß nicht"], EngagementLevel.NORMAL, True),
            (6, ["weiß nicht"], EngagementLevel.HIGH, True),
        ],
    )
    def test_should_complete_task(self, turns, tags, level, expected):
        assert should_complete_task(turns, tags, level) is expected


# =============================================================================
# Apply Progress Tests
# =============================================================================

class TestApplyProgress:
    """Tests for applying one turn's outcome to a progress record."""

    @pytest.mark.unit
    def test_struggle_adds_small_bump_and_counts(self):
        progress = _progress(confidence=40, struggles=1)
        now = datetime(2026, 3, 2, 15, 0, tzinfo=timezone.utc)

        update = apply_progress(progress, ["weiß nicht"], EngagementLevel.NORMAL, now=now)

        assert progress.confidence_level == 45
        assert progress.struggles_count == 2
        assert progress.last_struggle_at == now
        assert progress.last_practiced_at == now
        assert progress.weakness_indicators.indicators == ["weiß nicht"]
        assert progress.weakness_indicators.last_detected == now
        assert update.struggled is True
        assert update.confidence_before == 40
        assert update.confidence_after == 45

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "level,expected",
        [
            (EngagementLevel.HIGH, 65),
            (EngagementLevel.NORMAL, 60),
            (EngagementLevel.LOW, 55),
            (EngagementLevel.FRUSTRATED, 55),
        ],
    )
    def test_engagement_deltas(self, level, expected):
        progress = _progress(confidence=40)

        update = apply_progress(progress, [], level)

        assert progress.confidence_level == expected
        assert progress.struggles_count == 0
        assert progress.last_struggle_at is None
        assert update.struggled is False

    @pytest.mark.unit
    def test_confidence_is_clamped(self):
        progress = _progress(confidence=95)

        apply_progress(progress, [], EngagementLevel.HIGH)

        assert progress.confidence_level == 100
        assert progress.status == "mastered"

    @pytest.mark.unit
    def test_mastered_at_threshold(self):
        progress = _progress(confidence=60)

        apply_progress(progress, [], EngagementLevel.NORMAL)

        assert progress.confidence_level == 80
        assert progress.status == "mastered"

    @pytest.mark.unit
    def test_just_below_threshold_is_in_progress(self):
        progress = _progress(confidence=59)

        apply_progress(progress, [], EngagementLevel.NORMAL)

        assert progress.confidence_level == 79
        assert progress.status == "in_progress"

    @pytest.mark.unit
    def test_first_success_starts_progress(self):
        progress = _progress(confidence=0, status="not_started")

        apply_progress(progress, [], EngagementLevel.NORMAL)

        assert progress.status == "in_progress"

    @pytest.mark.unit
    def test_struggle_can_reach_mastery(self):
        progress = _progress(confidence=78)

        apply_progress(progress, ["schwierig"], EngagementLevel.NORMAL)

        assert progress.confidence_level == 83
        assert progress.status == "mastered"

    @pytest.mark.unit
    def test_weakness_indicators_are_capped(self):
        progress = _progress()
        progress.weakness_indicators = WeaknessIndicators(indicators=[f"tag-{i}" for i in range(9)])

        apply_progress(progress, ["hilfe", "verwirrt", "short_response"], EngagementLevel.LOW)

        indicators = progress.weakness_indicators.indicators
        assert len(indicators) == 10
        assert indicators[-3:] == ["hilfe", "verwirrt", "short_response"]
        assert indicators[0] == "tag-2"


# =============================================================================
# Database Tests
# =============================================================================

class TestProgressUpdater:
    """Tests for loading and updating stored records."""

    @pytest.mark.unit
    async def test_update_progress_on_struggle(self, db, profile, make_competency):
        competency = await make_competency()
        progress = CompetencyProgress(
            user_id=profile.id,
            competency_id=competency.id,
            confidence_level=20,
            struggles_count=0,
        )
        db.add(progress)
        await db.flush()

        updater = ProgressUpdater(db)
        tags = await updater.detect_weakness("Ich weiß nicht, wie das geht", learner_turns=4)
        update = await updater.update_progress(progress.id, tags, EngagementLevel.NORMAL)

        assert "weiß nicht" in update.weakness_tags
        await db.refresh(progress)
        assert progress.struggles_count == 1
        assert progress.confidence_level == 25
        assert progress.status == "in_progress"
        assert "weiß nicht" in progress.weakness_indicators.indicators

    @pytest.mark.unit
    async def test_update_unknown_progress_returns_none(self, db):
        updater = ProgressUpdater(db)

        assert await updater.update_progress("missing", [], EngagementLevel.NORMAL) is None

    @pytest.mark.unit
    async def test_complete_task(self, db, profile, task_item):
        updater = ProgressUpdater(db)

        assert await updater.complete_task(task_item.id, profile.id) is True

        await db.refresh(task_item)
        assert task_item.is_completed is True
        assert task_item.completed_at is not None

    @pytest.mark.unit
    async def test_complete_task_of_other_user(self, db, task_item):
        updater = ProgressUpdater(db)

        assert await updater.complete_task(task_item.id, "someone-else") is False

        stored = await db.get(TaskItem, task_item.id)
        assert stored.is_completed is False
