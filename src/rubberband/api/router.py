"""Master API router mounted at /api/v1."""

from fastapi import APIRouter
from rubberband.api.routes import (
    account,
    activity,
    auth,
    health,
    invitations,
    members,
    onboarding,
    organizations,
    profile,
    teams,
)

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(auth.router)
api_router.include_router(account.router)
api_router.include_router(organizations.router)
api_router.include_router(onboarding.router)
api_router.include_router(invitations.router)
api_router.include_router(members.router)
api_router.include_router(teams.router)
api_router.include_router(profile.router)
api_router.include_router(activity.router)
