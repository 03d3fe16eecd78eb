"""Repository for the user activity log."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rubberband.db.models.user_log import UserLogRow
from rubberband.repositories.base import BaseRepository


class UserLogRepository(BaseRepository):
    def __init__(self, session: AsyncSession):
        super().__init__(session, UserLogRow)

    async def list_for_organization(self, organization_id: str, limit: int = 100) -> list[UserLogRow]:
        stmt = (
            select(UserLogRow)
            .where(UserLogRow.organization_id == organization_id)
            .order_by(UserLogRow.timestamp.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
