"""Repositories for organizations and their settings."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rubberband.db.models.organization import OrganizationRow, OrganizationSettingsRow
from rubberband.repositories.base import BaseRepository


class OrganizationRepository(BaseRepository):
    def __init__(self, session: AsyncSession):
        super().__init__(session, OrganizationRow)

    async def get(self, organization_id: str) -> OrganizationRow | None:
        return await self.get_by_id("id", organization_id)

    async def delete(self, organization_id: str) -> int:
        return await self.delete_by_field("id", organization_id)


class OrganizationSettingsRepository(BaseRepository):
    def __init__(self, session: AsyncSession):
        super().__init__(session, OrganizationSettingsRow)

    async def get_for_organization(self, organization_id: str) -> OrganizationSettingsRow | None:
        stmt = select(OrganizationSettingsRow).where(
            OrganizationSettingsRow.organization_id == organization_id
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def delete_for_organization(self, organization_id: str) -> int:
        return await self.delete_by_field("organization_id", organization_id)
