"""Organization member routes."""

from fastapi import APIRouter

from rubberband.dependencies import CurrentSession, Data
from rubberband.models.api import MemberResponse, RoleUpdate
from rubberband.models.tenant import RoleBinding
from rubberband.services import members

router = APIRouter(tags=["Members"])


@router.get("/members", response_model=list[MemberResponse])
async def list_members(session: CurrentSession, data: Data):
    rows = await members.list_members(data, session)
    return [
        MemberResponse(user_id=b.user_id, role=b.role, joined_at=b.created_at, profile=profile)
        for b, profile in rows
    ]


@router.patch("/members/{user_id}", response_model=RoleBinding)
async def update_member(user_id: str, body: RoleUpdate, session: CurrentSession, data: Data):
    return await members.update_member_role(data, session, user_id, body.role)


@router.delete("/members/{user_id}", status_code=204)
async def remove_member(user_id: str, session: CurrentSession, data: Data):
    await members.remove_member(data, session, user_id)
