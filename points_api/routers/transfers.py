"""
Transfers router - point transfers between users.

Endpoints:
  POST /transfers                     - Create and process a transfer
  GET  /transfers/{idem_key}          - Fetch a transfer by idempotency key
  GET  /transfers?userId=&page=&pageSize= - List a user's transfers

A created transfer is returned together with an `Idempotency-Key` response
header carrying the key the engine generated for it. That key is the
transfer's external reference for later lookups.
"""

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from points_api.database import get_db
from points_api.schemas.transfer import (
    TransferCreateRequest,
    TransferEnvelope,
    TransferListResponse,
    TransferResponse,
)
from points_api.services import transfer_service

router = APIRouter()


@router.post(
    "",
    response_model=TransferEnvelope,
    status_code=status.HTTP_201_CREATED,
    summary="Transfer points to another user",
)
async def create_transfer(
    request: TransferCreateRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    """
    Move points from one user to another.

    - **fromUserId** / **toUserId**: distinct, existing users
    - **amount**: positive, at most two decimal places, not above the cap
    - **note**: optional, up to 512 characters
    - The sender may not send to the same receiver as their last completed transfer
    """
    transfer = await transfer_service.create_transfer(
        db=db,
        from_user_id=request.from_user_id,
        to_user_id=request.to_user_id,
        amount=request.amount,
        note=request.note,
    )
    response.headers["Idempotency-Key"] = transfer.idempotency_key
    return TransferEnvelope(transfer=TransferResponse.model_validate(transfer))


@router.get(
    "",
    response_model=TransferListResponse,
    summary="List a user's transfers",
)
async def list_transfers(
    user_id: int = Query(alias="userId"),
    page: int = Query(1),
    page_size: int = Query(20, alias="pageSize"),
    db: AsyncSession = Depends(get_db),
):
    """
    Transfers sent or received by the user, newest first.

    `page` falls back to 1 and `pageSize` to 20 when not positive;
    `pageSize` is capped at 200.
    """
    page, page_size = transfer_service.normalize_pagination(page, page_size)
    transfers, total = await transfer_service.get_transfers_by_user_id(
        db, user_id, page, page_size
    )
    return TransferListResponse(
        data=[TransferResponse.model_validate(t) for t in transfers],
        page=page,
        page_size=page_size,
        total=total,
    )


@router.get(
    "/{idem_key}",
    response_model=TransferEnvelope,
    summary="Get a transfer by idempotency key",
)
async def get_transfer(
    idem_key: str,
    db: AsyncSession = Depends(get_db),
):
    transfer = await transfer_service.get_transfer_by_idem_key(db, idem_key)
    return TransferEnvelope(transfer=TransferResponse.model_validate(transfer))
