"""Repository for organization role bindings."""

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from rubberband.db.models.user_role import UserRoleRow
from rubberband.repositories.base import BaseRepository


class UserRoleRepository(BaseRepository):
    def __init__(self, session: AsyncSession):
        super().__init__(session, UserRoleRow)

    async def get_binding(self, user_id: str, organization_id: str) -> UserRoleRow | None:
        stmt = select(UserRoleRow).where(
            UserRoleRow.user_id == user_id,
            UserRoleRow.organization_id == organization_id,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_filtered(
        self,
        user_id: str | None = None,
        organization_id: str | None = None,
    ) -> list[UserRoleRow]:
        stmt = select(UserRoleRow).order_by(UserRoleRow.created_at, UserRoleRow.id)
        if user_id is not None:
            stmt = stmt.where(UserRoleRow.user_id == user_id)
        if organization_id is not None:
            stmt = stmt.where(UserRoleRow.organization_id == organization_id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_members(self, organization_id: str) -> int:
        stmt = select(func.count()).select_from(UserRoleRow).where(
            UserRoleRow.organization_id == organization_id
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def delete_binding(self, user_id: str, organization_id: str) -> int:
        stmt = delete(UserRoleRow).where(
            UserRoleRow.user_id == user_id,
            UserRoleRow.organization_id == organization_id,
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0
