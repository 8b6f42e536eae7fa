"""
User service - business logic for user profiles.

This module handles:
  - Listing and fetching users
  - Creating users (with an optional opening point balance)
  - Partial profile updates
  - Deleting users that have no transfer history

Points are never changed here after creation. Once a user exists, its
balance moves only through the transfer engine, which writes the ledger
entries that explain every change.
"""

import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from points_api.config import settings
from points_api.exceptions import AccountNotFoundError, ConflictError, InvalidArgumentError
from points_api.models.user import MembershipLevel, User
from points_api.points import has_at_most_two_places, to_cents
from points_api.repositories.user_repository import UserRepository, UserUpdate

logger = logging.getLogger(__name__)

_VALID_LEVELS = {level.value for level in MembershipLevel}


def _check_name(field: str, value: str) -> None:
    if not value or not value.strip():
        raise InvalidArgumentError(f"{field} is required")
    if len(value.strip()) > settings.NAME_MAX_LENGTH:
        raise InvalidArgumentError(
            f"{field} must not exceed {settings.NAME_MAX_LENGTH} characters"
        )


def _check_level(level: str) -> None:
    if level not in _VALID_LEVELS:
        raise InvalidArgumentError("Invalid membership level")


def _member_since(now: datetime) -> str:
    return f"{now.day}/{now.month}/{now.year}"


async def list_users(db: AsyncSession) -> list[User]:
    return await UserRepository(db).list_all()


async def get_user(db: AsyncSession, user_id: int) -> User:
    """
    Fetch one user.

    Raises:
        InvalidArgumentError: If user_id is not positive.
        AccountNotFoundError: If the user doesn't exist.
    """
    if user_id <= 0:
        raise InvalidArgumentError("Invalid user ID")
    user = await UserRepository(db).get(user_id)
    if user is None:
        raise AccountNotFoundError(user_id)
    return user


async def create_user(
    db: AsyncSession,
    first_name: str,
    last_name: str,
    phone: str,
    email: str,
    membership_level: str | None = None,
    points: Decimal = Decimal("0"),
) -> User:
    """
    Create a user.

    First and last name are required and, once trimmed, may not exceed
    NAME_MAX_LENGTH characters. The membership level defaults to Bronze.
    `points` is the opening balance: non-negative, at most two decimals.

    Raises:
        InvalidArgumentError: On any invalid field.
        ConflictError: If the email is already registered.
    """
    _check_name("First name", first_name)
    _check_name("Last name", last_name)
    if not phone or not phone.strip():
        raise InvalidArgumentError("Phone is required")
    if not email:
        raise InvalidArgumentError("Email is required")
    level = membership_level or MembershipLevel.BRONZE.value
    _check_level(level)
    if points < 0:
        raise InvalidArgumentError("Points cannot be negative")
    if not has_at_most_two_places(points):
        raise InvalidArgumentError("Points cannot have more than 2 decimal places")

    users = UserRepository(db)
    if await users.email_taken(email):
        raise ConflictError(f"Email {email} is already registered")

    user = await users.create(
        User(
            first_name=first_name,
            last_name=last_name,
            phone=phone,
            email=email,
            member_since=_member_since(datetime.now()),
            membership_level=level,
            points_cents=to_cents(points),
        )
    )
    logger.info("Created user %d with opening balance %s", user.id, points)
    return user


async def update_user(db: AsyncSession, user_id: int, update: UserUpdate) -> User:
    """
    Apply a partial profile update.

    Raises:
        InvalidArgumentError: Invalid id, invalid field, or nothing to update.
        AccountNotFoundError: If the user doesn't exist.
        ConflictError: If the new email belongs to another user.
    """
    user = await get_user(db, user_id)

    if update.first_name is not None:
        _check_name("First name", update.first_name)
    if update.last_name is not None:
        _check_name("Last name", update.last_name)
    if update.membership_level is not None:
        _check_level(update.membership_level)
    if update.is_empty():
        raise InvalidArgumentError("No fields to update")

    users = UserRepository(db)
    if update.email is not None and await users.email_taken(update.email, exclude_user_id=user_id):
        raise ConflictError(f"Email {update.email} is already registered")

    return await users.apply_update(user, update)


async def delete_user(db: AsyncSession, user_id: int) -> None:
    """
    Delete a user with no transfer or ledger history.

    Ledger entries are permanent, so a user they reference cannot be removed.

    Raises:
        AccountNotFoundError: If the user doesn't exist.
        ConflictError: If the user has transfer or ledger history.
    """
    user = await get_user(db, user_id)
    users = UserRepository(db)
    if await users.has_history(user_id):
        raise ConflictError(f"User {user_id} has transfer history and cannot be deleted")
    await users.delete(user)
    logger.info("Deleted user %d", user_id)
