"""Repository for organization invitations."""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from rubberband.db.models.invitation import InvitationRow
from rubberband.repositories.base import BaseRepository


class InvitationRepository(BaseRepository):
    def __init__(self, session: AsyncSession):
        super().__init__(session, InvitationRow)

    async def get(self, invitation_id: str) -> InvitationRow | None:
        return await self.get_by_id("id", invitation_id)

    async def get_by_token(self, token: str) -> InvitationRow | None:
        stmt = select(InvitationRow).where(InvitationRow.token == token)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_for_email(self, organization_id: str, email: str) -> InvitationRow | None:
        stmt = select(InvitationRow).where(
            InvitationRow.organization_id == organization_id,
            func.lower(InvitationRow.email) == email.lower(),
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_organization(self, organization_id: str) -> list[InvitationRow]:
        stmt = (
            select(InvitationRow)
            .where(InvitationRow.organization_id == organization_id)
            .order_by(InvitationRow.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
