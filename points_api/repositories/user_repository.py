"""
User repository - the account store.

Owns reads and writes of the `users` table: existence checks, balance
reads, the unconditional balance overwrite used by the transfer engine, and
the profile operations used by the user service.

Transaction ownership:
  The repository never commits. It works on the AsyncSession it was given,
  and the caller (the transfer engine or the request's session dependency)
  decides where the transaction begins and ends. No locking is exposed
  beyond lock_for_update(), which the engine calls inside its own
  transaction.
"""

from dataclasses import dataclass

from sqlalchemy import select, func, exists
from sqlalchemy.ext.asyncio import AsyncSession

from points_api.exceptions import AccountNotFoundError
from points_api.models.point_ledger import PointLedger
from points_api.models.transfer import Transfer
from points_api.models.user import User


@dataclass
class UserUpdate:
    """
    Partial profile update. Every field is independently optional; None
    means "leave unchanged". Points are deliberately absent: balances only
    move through the transfer engine.
    """
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    email: str | None = None
    membership_level: str | None = None

    def is_empty(self) -> bool:
        return all(
            value is None
            for value in (
                self.first_name,
                self.last_name,
                self.phone,
                self.email,
                self.membership_level,
            )
        )


class UserRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Account store operations (used by the transfer engine)
    # ------------------------------------------------------------------

    async def exists(self, user_id: int) -> bool:
        result = await self.db.execute(
            select(exists().where(User.id == user_id))
        )
        return bool(result.scalar())

    async def get_balance_cents(self, user_id: int) -> int:
        """Return the user's balance in hundredths of a point."""
        result = await self.db.execute(
            select(User.points_cents).where(User.id == user_id)
        )
        balance = result.scalar_one_or_none()
        if balance is None:
            raise AccountNotFoundError(user_id)
        return balance

    async def lock_for_update(self, user_ids: list[int]) -> dict[int, User]:
        """
        Load and lock the given users, in ascending id order.

        A consistent lock order means two transfers between the same pair of
        users in opposite directions cannot deadlock. FOR UPDATE is a no-op
        on SQLite, where BEGIN IMMEDIATE already holds the database write
        lock (see points_api.database).

        Rows are re-read from the database even if already in the session's
        identity map, so the balances reflect what the lock protects.
        """
        users = {}
        for user_id in sorted(set(user_ids)):
            result = await self.db.execute(
                select(User)
                .where(User.id == user_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            user = result.scalar_one_or_none()
            if user is None:
                raise AccountNotFoundError(user_id)
            users[user_id] = user
        return users

    async def set_balance_cents(self, user_id: int, new_balance_cents: int) -> None:
        """
        Overwrite the user's balance.

        Unconditional: the caller has already locked the row and computed
        the new value inside the same transaction.
        """
        user = await self.db.get(User, user_id)
        if user is None:
            raise AccountNotFoundError(user_id)
        user.points_cents = new_balance_cents
        await self.db.flush()

    # ------------------------------------------------------------------
    # Profile operations (used by the user service)
    # ------------------------------------------------------------------

    async def list_all(self) -> list[User]:
        result = await self.db.execute(
            select(User).order_by(User.created_at.desc(), User.id.desc())
        )
        return list(result.scalars().all())

    async def get(self, user_id: int) -> User | None:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def email_taken(self, email: str, exclude_user_id: int | None = None) -> bool:
        query = select(func.count()).select_from(User).where(User.email == email)
        if exclude_user_id is not None:
            query = query.where(User.id != exclude_user_id)
        result = await self.db.execute(query)
        return result.scalar() > 0

    async def create(self, user: User) -> User:
        self.db.add(user)
        await self.db.flush()
        return user

    async def apply_update(self, user: User, update: UserUpdate) -> User:
        """Assign each provided field to its column."""
        if update.first_name is not None:
            user.first_name = update.first_name
        if update.last_name is not None:
            user.last_name = update.last_name
        if update.phone is not None:
            user.phone = update.phone
        if update.email is not None:
            user.email = update.email
        if update.membership_level is not None:
            user.membership_level = update.membership_level
        await self.db.flush()
        return user

    async def has_history(self, user_id: int) -> bool:
        """True if any transfer or ledger entry references the user."""
        transfer_result = await self.db.execute(
            select(
                exists().where(
                    (Transfer.from_user_id == user_id) | (Transfer.to_user_id == user_id)
                )
            )
        )
        if transfer_result.scalar():
            return True
        ledger_result = await self.db.execute(
            select(exists().where(PointLedger.user_id == user_id))
        )
        return bool(ledger_result.scalar())

    async def delete(self, user: User) -> None:
        await self.db.delete(user)
        await self.db.flush()
