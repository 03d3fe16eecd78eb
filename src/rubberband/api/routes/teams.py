"""Team routes."""

from fastapi import APIRouter

from rubberband.dependencies import CurrentSession, Data
from rubberband.models.api import (
    MyTeamResponse,
    TeamCreate,
    TeamMemberCreate,
    TeamMemberResponse,
    TeamRoleUpdate,
    TeamUpdate,
)
from rubberband.models.tenant import Team, TeamMember
from rubberband.services import teams

router = APIRouter(tags=["Teams"])


@router.get("/teams", response_model=list[Team])
async def list_teams(session: CurrentSession, data: Data):
    return await teams.list_teams(data, session)


@router.post("/teams", response_model=Team, status_code=201)
async def create_team(body: TeamCreate, session: CurrentSession, data: Data):
    return await teams.create_team(data, session, body.name, body.description)


@router.get("/teams/mine", response_model=list[MyTeamResponse])
async def list_my_teams(session: CurrentSession, data: Data):
    return [MyTeamResponse(team=team, role=role) for team, role in await teams.list_my_teams(data, session)]


@router.get("/teams/{team_id}", response_model=Team)
async def get_team(team_id: str, session: CurrentSession, data: Data):
    return await teams.get_team(data, session, team_id)


@router.patch("/teams/{team_id}", response_model=Team)
async def update_team(team_id: str, body: TeamUpdate, session: CurrentSession, data: Data):
    return await teams.update_team(data, session, team_id, name=body.name, description=body.description)


@router.delete("/teams/{team_id}", status_code=204)
async def delete_team(team_id: str, session: CurrentSession, data: Data):
    await teams.delete_team(data, session, team_id)


@router.get("/teams/{team_id}/members", response_model=list[TeamMemberResponse])
async def list_team_members(team_id: str, session: CurrentSession, data: Data):
    rows = await teams.list_team_members(data, session, team_id)
    return [
        TeamMemberResponse(id=m.id, team_id=m.team_id, user_id=m.user_id, role=m.role, profile=profile)
        for m, profile in rows
    ]


@router.post("/teams/{team_id}/members", response_model=TeamMember, status_code=201)
async def add_team_member(team_id: str, body: TeamMemberCreate, session: CurrentSession, data: Data):
    return await teams.add_team_member(data, session, team_id, body.email, body.role)


@router.patch("/team-members/{member_id}", response_model=TeamMember)
async def update_team_member(member_id: str, body: TeamRoleUpdate, session: CurrentSession, data: Data):
    return await teams.update_team_member_role(data, session, member_id, body.role)


@router.delete("/team-members/{member_id}", status_code=204)
async def remove_team_member(member_id: str, session: CurrentSession, data: Data):
    await teams.remove_team_member(data, session, member_id)
