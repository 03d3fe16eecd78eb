"""User activity log routes."""

from fastapi import APIRouter, Query

from rubberband.dependencies import CurrentSession, Data
from rubberband.models.api import UserLogCreate
from rubberband.models.tenant import UserLog
from rubberband.services import activity

router = APIRouter(tags=["Activity"])


@router.post("/activity", status_code=202)
async def log_activity(body: UserLogCreate, session: CurrentSession, data: Data) -> dict:
    logged = await activity.log_user_action(
        data,
        session,
        body.module,
        body.action,
        record_id=body.record_id,
        metadata=body.metadata,
        team_id=body.team_id,
    )
    return {"logged": logged}


@router.get("/activity", response_model=list[UserLog])
async def list_activity(session: CurrentSession, data: Data, limit: int = Query(default=100, ge=1, le=1000)):
    return await activity.list_organization_logs(data, session, limit)
