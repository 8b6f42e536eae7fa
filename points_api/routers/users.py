"""
Users router - user profiles and their point ledger.

Endpoints:
  GET    /users               - List users
  POST   /users               - Create a user
  GET    /users/{user_id}     - Get a user
  PUT    /users/{user_id}     - Update profile fields
  DELETE /users/{user_id}     - Delete a user without transfer history
  GET    /users/{user_id}/ledger?limit= - Ledger entries, newest first
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from points_api.database import get_db
from points_api.repositories.user_repository import UserUpdate
from points_api.schemas.transfer import LedgerEntryResponse
from points_api.schemas.user import UserCreateRequest, UserResponse, UserUpdateRequest
from points_api.services import transfer_service, user_service

router = APIRouter()


@router.get(
    "",
    response_model=list[UserResponse],
    summary="List users",
)
async def list_users(db: AsyncSession = Depends(get_db)):
    return await user_service.list_users(db)


@router.post(
    "",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a user",
)
async def create_user(
    request: UserCreateRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Create a user. `points` is the opening balance; after creation points
    only move through transfers.
    """
    return await user_service.create_user(
        db,
        first_name=request.first_name,
        last_name=request.last_name,
        phone=request.phone,
        email=request.email,
        membership_level=request.membership_level,
        points=request.points,
    )


@router.get(
    "/{user_id}",
    response_model=UserResponse,
    summary="Get a user",
)
async def get_user(user_id: int, db: AsyncSession = Depends(get_db)):
    return await user_service.get_user(db, user_id)


@router.put(
    "/{user_id}",
    response_model=UserResponse,
    summary="Update profile fields",
)
async def update_user(
    user_id: int,
    request: UserUpdateRequest,
    db: AsyncSession = Depends(get_db),
):
    """Only fields present in the body are changed."""
    update = UserUpdate(
        first_name=request.first_name,
        last_name=request.last_name,
        phone=request.phone,
        email=request.email,
        membership_level=request.membership_level,
    )
    return await user_service.update_user(db, user_id, update)


@router.delete(
    "/{user_id}",
    summary="Delete a user",
)
async def delete_user(user_id: int, db: AsyncSession = Depends(get_db)):
    await user_service.delete_user(db, user_id)
    return {"message": "User deleted successfully"}


@router.get(
    "/{user_id}/ledger",
    response_model=list[LedgerEntryResponse],
    summary="List a user's point ledger entries",
)
async def list_ledger_entries(
    user_id: int,
    limit: int | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    entries = await transfer_service.get_ledger_entries(db, user_id, limit)
    return [LedgerEntryResponse.model_validate(e) for e in entries]
