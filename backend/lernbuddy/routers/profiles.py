"""Profile API router: learner settings and interests."""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from pydantic import Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lernbuddy.models import Profile, UserInterest, get_db
from lernbuddy.schemas import BuddyPersonality, CamelModel

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/profiles", tags=["profiles"])


class ProfileCreate(CamelModel):
    display_name: str
    grade_level: int | None = Field(default=None, ge=1, le=13)
    federal_state: str | None = None
    buddy_personality: BuddyPersonality = BuddyPersonality.ENCOURAGING


class ProfileUpdate(CamelModel):
    display_name: str | None = None
    grade_level: int | None = Field(default=None, ge=1, le=13)
    federal_state: str | None = None
    buddy_personality: BuddyPersonality | None = None


class ProfileResponse(CamelModel):
    id: str
    display_name: str
    grade_level: int | None
    federal_state: str | None
    buddy_personality: str
    created_at: datetime


class InterestCreate(CamelModel):
    interest: str
    intensity: int = Field(default=5, ge=1, le=10)


class InterestResponse(CamelModel):
    id: str
    interest: str
    intensity: int


def profile_to_response(profile: Profile) -> ProfileResponse:
    return ProfileResponse(
        id=profile.id,
        display_name=profile.display_name,
        grade_level=profile.grade_level,
        federal_state=profile.federal_state,
        buddy_personality=profile.buddy_personality,
        created_at=profile.created_at,
    )


def interest_to_response(interest: UserInterest) -> InterestResponse:
    return InterestResponse(
        id=interest.id,
        interest=interest.interest,
        intensity=interest.intensity,
    )


async def _get_profile(db: AsyncSession, user_id: str) -> Profile:
    profile = await db.get(Profile, user_id)
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return profile


@router.post("", response_model=ProfileResponse, response_model_by_alias=True, status_code=201)
async def create_profile(
    profile_data: ProfileCreate,
    db: AsyncSession = Depends(get_db),
) -> ProfileResponse:
    """Create a learner profile."""
    display_name = profile_data.display_name.strip()
    if not display_name:
        raise HTTPException(status_code=400, detail="Display name must not be empty")

    profile = Profile(
        display_name=display_name,
        grade_level=profile_data.grade_level,
        federal_state=profile_data.federal_state,
        buddy_personality=profile_data.buddy_personality.value,
    )
    db.add(profile)
    await db.flush()

    logger.info(f"[profiles] Created profile {profile.id}")
    return profile_to_response(profile)


@router.get("/{user_id}", response_model=ProfileResponse, response_model_by_alias=True)
async def get_profile(
    user_id: str,
    db: AsyncSession = Depends(get_db),
) -> ProfileResponse:
    """Get a learner profile."""
    return profile_to_response(await _get_profile(db, user_id))


@router.patch("/{user_id}", response_model=ProfileResponse, response_model_by_alias=True)
async def update_profile(
    user_id: str,
    update: ProfileUpdate,
    db: AsyncSession = Depends(get_db),
) -> ProfileResponse:
    """Change the buddy personality, federal state, grade level or name."""
    profile = await _get_profile(db, user_id)

    if update.display_name is not None:
        if not update.display_name.strip():
            raise HTTPException(status_code=400, detail="Display name must not be empty")
        profile.display_name = update.display_name.strip()
    if update.grade_level is not None:
        profile.grade_level = update.grade_level
    if update.federal_state is not None:
        # An empty string clears the state
        profile.federal_state = update.federal_state.strip() or None
    if update.buddy_personality is not None:
        profile.buddy_personality = update.buddy_personality.value

    await db.flush()
    return profile_to_response(profile)


@router.get(
    "/{user_id}/interests", response_model=list[InterestResponse], response_model_by_alias=True
)
async def list_interests(
    user_id: str,
    db: AsyncSession = Depends(get_db),
) -> list[InterestResponse]:
    """List a learner's interests, strongest first."""
    await _get_profile(db, user_id)
    result = await db.execute(
        select(UserInterest)
        .where(UserInterest.user_id == user_id)
        .order_by(UserInterest.intensity.desc())
    )
    return [interest_to_response(i) for i in result.scalars().all()]


@router.post(
    "/{user_id}/interests",
    response_model=InterestResponse,
    response_model_by_alias=True,
    status_code=201,
)
async def add_interest(
    user_id: str,
    interest_data: InterestCreate,
    db: AsyncSession = Depends(get_db),
) -> InterestResponse:
    """Add an interest the buddy can use in its examples."""
    await _get_profile(db, user_id)

    text = interest_data.interest.strip()
    if not text:
        raise HTTPException(status_code=400, detail="Interest must not be empty")

    interest = UserInterest(user_id=user_id, interest=text, intensity=interest_data.intensity)
    db.add(interest)
    await db.flush()
    return interest_to_response(interest)


@router.delete("/{user_id}/interests/{interest_id}", status_code=204)
async def delete_interest(
    user_id: str,
    interest_id: str,
    db: AsyncSession = Depends(get_db),
) -> None:
    """Remove an interest."""
    interest = await db.get(UserInterest, interest_id)
    if interest is None or interest.user_id != user_id:
        raise HTTPException(status_code=404, detail="Interest not found")

    await db.delete(interest)
    await db.flush()
