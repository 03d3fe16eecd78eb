"""The caller's own profile."""

from fastapi import APIRouter

from rubberband.dependencies import CurrentSession, Data
from rubberband.models.api import PersonalDetails
from rubberband.models.tenant import Profile
from rubberband.services import profiles

router = APIRouter(tags=["Profile"])


@router.get("/profile", response_model=Profile)
async def get_profile(session: CurrentSession, data: Data):
    return await profiles.get_own_profile(data, session)


@router.patch("/profile", response_model=Profile)
async def update_profile(body: PersonalDetails, session: CurrentSession, data: Data):
    return await profiles.update_own_profile(data, session, body.model_dump())
