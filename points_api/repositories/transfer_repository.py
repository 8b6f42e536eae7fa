"""
Transfer repository - the transfer record store.

Durable record of each transfer attempt, addressed by idempotency key.
Like the other repositories it flushes but never commits or rolls back; the
transfer engine owns the transaction boundaries.
"""

from datetime import datetime

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from points_api.models.transfer import Transfer, TransferStatus


class TransferRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def insert(self, transfer: Transfer) -> Transfer:
        """
        Insert a new transfer. The database assigns id and timestamps.

        A duplicate idempotency key surfaces as IntegrityError from the
        flush. The session is then unusable until the caller rolls it back.
        """
        self.db.add(transfer)
        await self.db.flush()
        return transfer

    async def find_by_idem_key(self, idem_key: str) -> Transfer | None:
        result = await self.db.execute(
            select(Transfer).where(Transfer.idempotency_key == idem_key)
        )
        return result.scalar_one_or_none()

    async def find_last_completed_from(self, from_user_id: int) -> Transfer | None:
        """The sender's most recent completed transfer, by completion time."""
        result = await self.db.execute(
            select(Transfer)
            .where(Transfer.from_user_id == from_user_id)
            .where(Transfer.status == TransferStatus.COMPLETED.value)
            .order_by(Transfer.completed_at.desc(), Transfer.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def update_status(
        self,
        idem_key: str,
        status: TransferStatus,
        completed_at: datetime | None = None,
        fail_reason: str | None = None,
    ) -> Transfer:
        transfer = await self.find_by_idem_key(idem_key)
        if transfer is None:
            raise LookupError(f"No transfer with idempotency key {idem_key}")
        transfer.status = status.value
        transfer.completed_at = completed_at
        transfer.fail_reason = fail_reason
        await self.db.flush()
        return transfer

    async def list_by_user(
        self,
        user_id: int,
        page: int,
        page_size: int,
    ) -> tuple[list[Transfer], int]:
        """Transfers sent or received by the user, newest first, plus the total count."""
        involves_user = (Transfer.from_user_id == user_id) | (Transfer.to_user_id == user_id)

        total_result = await self.db.execute(
            select(func.count()).select_from(Transfer).where(involves_user)
        )
        total = total_result.scalar()

        result = await self.db.execute(
            select(Transfer)
            .where(involves_user)
            .order_by(Transfer.created_at.desc(), Transfer.id.desc())
            .limit(page_size)
            .offset((page - 1) * page_size)
        )
        return list(result.scalars().all()), total
