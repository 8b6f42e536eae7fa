"""
Point ledger repository - the ledger store.

Append and read only. There is intentionally no update or delete method:
ledger rows are immutable once written.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from points_api.models.point_ledger import PointLedger


class PointLedgerRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def append(self, entry: PointLedger) -> PointLedger:
        self.db.add(entry)
        await self.db.flush()
        return entry

    async def list_by_user(self, user_id: int, limit: int) -> list[PointLedger]:
        """Entries for one user, newest first."""
        result = await self.db.execute(
            select(PointLedger)
            .where(PointLedger.user_id == user_id)
            .order_by(PointLedger.created_at.desc(), PointLedger.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def list_by_transfer(self, transfer_id: int) -> list[PointLedger]:
        result = await self.db.execute(
            select(PointLedger)
            .where(PointLedger.transfer_id == transfer_id)
            .order_by(PointLedger.id)
        )
        return list(result.scalars().all())
