"""Organization creation and administration of the caller's organization."""

from fastapi import APIRouter

from rubberband.dependencies import CurrentSession, Data
from rubberband.models.api import CreateOrganizationRequest, OrganizationDetails
from rubberband.models.tenant import Organization
from rubberband.services import profiles
from rubberband.services.onboarding import create_organization_for_session

router = APIRouter(tags=["Organizations"])


@router.post("/organizations", response_model=Organization, status_code=201)
async def create_organization(body: CreateOrganizationRequest, session: CurrentSession, data: Data):
    return await create_organization_for_session(data, session, body.name)


@router.get("/organizations/current", response_model=Organization)
async def get_current_organization(session: CurrentSession, data: Data):
    return await profiles.get_current_organization(data, session)


@router.patch("/organizations/current", response_model=Organization)
async def update_current_organization(body: OrganizationDetails, session: CurrentSession, data: Data):
    return await profiles.update_current_organization(data, session, body.model_dump())
