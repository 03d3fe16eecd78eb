"""Repository for identity records of the built-in auth service."""

from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from rubberband.db.models.identity import IdentityRow
from rubberband.repositories.base import BaseRepository


class IdentityRepository(BaseRepository):
    def __init__(self, session: AsyncSession):
        super().__init__(session, IdentityRow)

    async def get(self, identity_id: str) -> IdentityRow | None:
        return await self.get_by_id("id", identity_id)

    async def get_by_email(self, email: str) -> IdentityRow | None:
        stmt = select(IdentityRow).where(func.lower(IdentityRow.email) == email.lower())
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_page(self, page: int, per_page: int) -> list[IdentityRow]:
        stmt = (
            select(IdentityRow)
            .order_by(IdentityRow.created_at, IdentityRow.id)
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def update_last_sign_in(self, identity: IdentityRow) -> None:
        identity.last_sign_in_at = datetime.now(timezone.utc)
        await self.session.flush()

    async def delete(self, identity: IdentityRow) -> None:
        await self.session.delete(identity)
        await self.session.flush()
