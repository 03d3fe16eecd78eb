"""Repository for user profiles."""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from rubberband.db.models.profile import ProfileRow
from rubberband.repositories.base import BaseRepository


class ProfileRepository(BaseRepository):
    def __init__(self, session: AsyncSession):
        super().__init__(session, ProfileRow)

    async def get(self, user_id: str) -> ProfileRow | None:
        return await self.get_by_id("id", user_id)

    async def get_by_email(self, email: str) -> ProfileRow | None:
        stmt = select(ProfileRow).where(func.lower(ProfileRow.email) == email.lower())
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def list_for_ids(self, user_ids: list[str]) -> list[ProfileRow]:
        if not user_ids:
            return []
        stmt = select(ProfileRow).where(ProfileRow.id.in_(user_ids))
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
