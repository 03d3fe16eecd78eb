"""Repositories for teams and team memberships."""

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from rubberband.db.models.team import TeamMemberRow, TeamRow
from rubberband.repositories.base import BaseRepository


class TeamRepository(BaseRepository):
    def __init__(self, session: AsyncSession):
        super().__init__(session, TeamRow)

    async def get(self, team_id: str) -> TeamRow | None:
        return await self.get_by_id("id", team_id)

    async def list_for_organization(self, organization_id: str) -> list[TeamRow]:
        stmt = (
            select(TeamRow)
            .where(TeamRow.organization_id == organization_id)
            .order_by(TeamRow.created_at, TeamRow.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())


class TeamMemberRepository(BaseRepository):
    def __init__(self, session: AsyncSession):
        super().__init__(session, TeamMemberRow)

    async def get(self, member_id: str) -> TeamMemberRow | None:
        return await self.get_by_id("id", member_id)

    async def list_filtered(
        self,
        team_id: str | None = None,
        user_id: str | None = None,
    ) -> list[TeamMemberRow]:
        stmt = select(TeamMemberRow).order_by(TeamMemberRow.created_at, TeamMemberRow.id)
        if team_id is not None:
            stmt = stmt.where(TeamMemberRow.team_id == team_id)
        if user_id is not None:
            stmt = stmt.where(TeamMemberRow.user_id == user_id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def delete_for_organization(self, organization_id: str) -> int:
        team_ids = select(TeamRow.id).where(TeamRow.organization_id == organization_id)
        stmt = delete(TeamMemberRow).where(TeamMemberRow.team_id.in_(team_ids))
        result = await self.session.execute(stmt)
        return result.rowcount or 0
