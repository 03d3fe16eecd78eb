"""Onboarding routes."""

from fastapi import APIRouter

from rubberband.dependencies import CurrentSession, Data
from rubberband.models.api import CompleteOnboardingRequest, OnboardingStatusResponse, SettingsUpdate
from rubberband.models.tenant import OrganizationSettings
from rubberband.services import onboarding

router = APIRouter(tags=["Onboarding"])


@router.get("/onboarding/status", response_model=OnboardingStatusResponse)
async def onboarding_status(session: CurrentSession, data: Data):
    status = await onboarding.get_onboarding_status(data, session)
    return OnboardingStatusResponse(
        organization_id=status.organization_id,
        has_completed_onboarding=status.has_completed_onboarding,
    )


@router.patch("/onboarding/settings", response_model=OrganizationSettings)
async def update_settings(body: SettingsUpdate, session: CurrentSession, data: Data):
    return await onboarding.update_organization_settings(data, session, **body.model_dump())


@router.post("/onboarding/complete", response_model=OrganizationSettings)
async def complete(body: CompleteOnboardingRequest, session: CurrentSession, data: Data):
    return await onboarding.complete_onboarding(
        data,
        session,
        personal=body.personal.model_dump(),
        organization=body.organization.model_dump(),
        use_case=body.use_case.model_dump(),
    )


@router.post("/onboarding/skip", response_model=OrganizationSettings)
async def skip(session: CurrentSession, data: Data):
    return await onboarding.skip_onboarding(data, session)
