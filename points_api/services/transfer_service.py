"""
Transfer service - the transfer processing engine.

THIS IS THE MOST CRITICAL FILE IN THE PROJECT. It handles:
  - Validating transfer requests (static rules, existence, history, balance)
  - Recording each attempt under a freshly generated idempotency key
  - Executing the balance mutation and ledger writes atomically
  - Looking transfers up by idempotency key or by user

Two transactions per transfer:
  1. Validation reads and the insert of the `pending` transfer record.
     This is committed on its own so the attempt is durable even if the
     processing step below fails.
  2. The atomic processing step: lock both users, re-read their balances,
     re-check the sender's balance, then debit, credit, append two ledger
     entries and mark the transfer `completed`. Either all five writes are
     committed together or the transaction is rolled back and the transfer
     stays `pending`.

  The pre-checks in (1) are best-effort. The re-check in (2) runs under the
  row locks and is authoritative: if another transfer drained the sender in
  between, the transfer is marked `failed` and that failure is committed.

Failures and timeouts:
  A database error in (1), including a busy timeout while another writer
  holds the SQLite lock, is rolled back and reported as ProcessingFailedError
  with no idempotency key: nothing was recorded. In (2) the work before the
  commit runs under TRANSFER_TIMEOUT_SECONDS; an error or timeout there is
  rolled back and leaves the transfer `pending`. The commit itself is bounded
  by the driver's busy timeout only.

Concurrency:
  Rows are locked in ascending user id order with SELECT ... FOR UPDATE
  (PostgreSQL). On SQLite the engine's BEGIN IMMEDIATE hook serialises
  writers (see points_api.database). No in-process locks are used.

The repeat-recipient rule only considers completed transfers. Two
concurrent requests to the same receiver can therefore both complete.
"""

import asyncio
import logging
import secrets
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from points_api.config import settings
from points_api.exceptions import (
    AccountNotFoundError,
    AmountExceedsLimitError,
    ConflictError,
    InsufficientFundsError,
    InvalidArgumentError,
    PrecisionExceededError,
    ProcessingFailedError,
    RepeatRecipientError,
    SelfTransferError,
    TransferNotFoundError,
)
from points_api.models.point_ledger import LedgerEventType, PointLedger
from points_api.models.transfer import Transfer, TransferStatus
from points_api.points import has_at_most_two_places, to_cents
from points_api.repositories.point_ledger_repository import PointLedgerRepository
from points_api.repositories.transfer_repository import TransferRepository
from points_api.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)

PROCESSING_SHORTFALL_REASON = "insufficient points at processing time"


def generate_idem_key() -> str:
    """
    Return a new idempotency key: 16 random bytes as 8-4-4-4-12 hex groups.

    The shape matches a UUID but the bits are all random (no version or
    variant markers), giving 128 bits of entropy.
    """
    h = secrets.token_bytes(16).hex()
    return f"{h[0:8]}-{h[8:12]}-{h[12:16]}-{h[16:20]}-{h[20:32]}"


def _as_decimal(amount) -> Decimal:
    if isinstance(amount, Decimal):
        value = amount
    elif isinstance(amount, float):
        # str() gives the shortest repr, so 0.1 becomes Decimal("0.1")
        value = Decimal(str(amount))
    else:
        try:
            value = Decimal(amount)
        except (InvalidOperation, TypeError, ValueError):
            raise InvalidArgumentError("Amount must be a number")
    if not value.is_finite():
        raise InvalidArgumentError("Amount must be a finite number")
    return value


def validate_transfer_request(
    from_user_id: int,
    to_user_id: int,
    amount: Decimal,
    note: str | None,
) -> None:
    """
    Static checks that need no database access, in order:
    ids and amount positive, distinct users, note length, cap, precision.
    """
    if from_user_id <= 0:
        raise InvalidArgumentError("Invalid sender user ID")
    if to_user_id <= 0:
        raise InvalidArgumentError("Invalid receiver user ID")
    if amount <= 0:
        raise InvalidArgumentError("Amount must be greater than 0")
    if from_user_id == to_user_id:
        raise SelfTransferError()
    if note is not None and len(note) > settings.NOTE_MAX_LENGTH:
        raise InvalidArgumentError(
            f"Note too long (max {settings.NOTE_MAX_LENGTH} characters)"
        )
    if amount > settings.MAX_TRANSFER_AMOUNT:
        raise AmountExceedsLimitError(settings.MAX_TRANSFER_AMOUNT)
    if not has_at_most_two_places(amount):
        raise PrecisionExceededError()


async def create_transfer(
    db: AsyncSession,
    from_user_id: int,
    to_user_id: int,
    amount,
    note: str | None = None,
) -> Transfer:
    """
    Validate and execute a point transfer.

    Args:
        db: Database session. The engine commits on it: once for the pending
            record, once for the processing step.
        from_user_id: Sender.
        to_user_id: Receiver.
        amount: Points to move, at most two decimal places.
        note: Optional free text (max NOTE_MAX_LENGTH characters).

    Returns:
        The transfer in `completed` state.

    Raises:
        InvalidArgumentError, SelfTransferError, AmountExceedsLimitError,
        PrecisionExceededError, AccountNotFoundError, RepeatRecipientError:
            Request rejected before anything was written.
        InsufficientFundsError: Balance too low. When detected by the
            processing-time re-check, the transfer is persisted as `failed`.
        ConflictError: The generated idempotency key already exists.
        ProcessingFailedError: A database call failed or timed out. Before
            the pending record is written idem_key is None and nothing was
            stored; afterwards the transfer remains `pending`.
    """
    amount = _as_decimal(amount)
    validate_transfer_request(from_user_id, to_user_id, amount, note)
    amount_cents = to_cents(amount)

    idem_key = generate_idem_key()
    try:
        transfer = await _record_pending(
            db, idem_key, from_user_id, to_user_id, amount_cents, note
        )
    except IntegrityError as exc:
        await db.rollback()
        if await TransferRepository(db).find_by_idem_key(idem_key) is not None:
            raise ConflictError(
                f"Transfer with idempotency key {idem_key} already exists"
            ) from exc
        logger.exception("Transfer %s could not be recorded", idem_key)
        raise ProcessingFailedError(None, "Transfer could not be recorded") from exc
    except (SQLAlchemyError, OSError) as exc:
        await db.rollback()
        logger.exception("Transfer %s could not be recorded", idem_key)
        raise ProcessingFailedError(None, "Transfer could not be recorded") from exc

    logger.info(
        "Transfer %s pending: %d -> %d, %s points",
        idem_key, from_user_id, to_user_id, amount,
    )

    # Deadline covers the locked work, not the commit
    try:
        available_cents = await asyncio.wait_for(
            _process_transfer(db, transfer),
            timeout=settings.TRANSFER_TIMEOUT_SECONDS,
        )
        await db.commit()
    except asyncio.TimeoutError as exc:
        await db.rollback()
        logger.error("Transfer %s timed out; left pending", idem_key)
        raise ProcessingFailedError(idem_key, "Transfer processing timed out") from exc
    except (SQLAlchemyError, OSError) as exc:
        await db.rollback()
        logger.exception("Transfer %s failed to process; left pending", idem_key)
        raise ProcessingFailedError(idem_key) from exc

    if available_cents is not None:
        logger.warning("Transfer %s failed: %s", idem_key, PROCESSING_SHORTFALL_REASON)
        raise InsufficientFundsError(
            user_id=from_user_id,
            requested_cents=amount_cents,
            available_cents=available_cents,
        )

    logger.info("Transfer %s completed", idem_key)
    return transfer


async def _record_pending(
    db: AsyncSession,
    idem_key: str,
    from_user_id: int,
    to_user_id: int,
    amount_cents: int,
    note: str | None,
) -> Transfer:
    """Existence, history and balance pre-checks, then commit the pending record."""
    users = UserRepository(db)
    transfers = TransferRepository(db)

    if not await users.exists(from_user_id):
        raise AccountNotFoundError(from_user_id, role="sender")
    if not await users.exists(to_user_id):
        raise AccountNotFoundError(to_user_id, role="receiver")

    last_transfer = await transfers.find_last_completed_from(from_user_id)
    if last_transfer is not None and last_transfer.to_user_id == to_user_id:
        raise RepeatRecipientError(to_user_id)

    sender_balance_cents = await users.get_balance_cents(from_user_id)
    if sender_balance_cents < amount_cents:
        raise InsufficientFundsError(
            user_id=from_user_id,
            requested_cents=amount_cents,
            available_cents=sender_balance_cents,
        )

    transfer = await transfers.insert(
        Transfer(
            idempotency_key=idem_key,
            from_user_id=from_user_id,
            to_user_id=to_user_id,
            amount_cents=amount_cents,
            status=TransferStatus.PENDING.value,
            note=note,
        )
    )
    await db.commit()
    return transfer


async def _process_transfer(db: AsyncSession, transfer: Transfer) -> int | None:
    """
    The atomic step, up to but not including the commit.

    Returns None once the five writes are flushed, or the sender's balance
    in cents when the locked re-check finds it short. In that case the
    transfer has been marked `failed` instead.
    """
    users = UserRepository(db)
    transfers = TransferRepository(db)
    ledger = PointLedgerRepository(db)

    locked = await users.lock_for_update([transfer.from_user_id, transfer.to_user_id])
    sender = locked[transfer.from_user_id]
    receiver = locked[transfer.to_user_id]

    now = datetime.now(timezone.utc)

    if sender.points_cents < transfer.amount_cents:
        available_cents = sender.points_cents
        await transfers.update_status(
            transfer.idempotency_key,
            TransferStatus.FAILED,
            completed_at=now,
            fail_reason=PROCESSING_SHORTFALL_REASON,
        )
        return available_cents

    new_sender_cents = sender.points_cents - transfer.amount_cents
    new_receiver_cents = receiver.points_cents + transfer.amount_cents

    await users.set_balance_cents(transfer.from_user_id, new_sender_cents)
    await users.set_balance_cents(transfer.to_user_id, new_receiver_cents)

    # Each leg is scoped to its own user; the shared transfer_id links them
    await ledger.append(
        PointLedger(
            user_id=transfer.from_user_id,
            change_cents=-transfer.amount_cents,
            balance_after_cents=new_sender_cents,
            event_type=LedgerEventType.TRANSFER_OUT.value,
            transfer_id=transfer.id,
            reference=transfer.idempotency_key,
        )
    )
    await ledger.append(
        PointLedger(
            user_id=transfer.to_user_id,
            change_cents=transfer.amount_cents,
            balance_after_cents=new_receiver_cents,
            event_type=LedgerEventType.TRANSFER_IN.value,
            transfer_id=transfer.id,
            reference=transfer.idempotency_key,
        )
    )

    await transfers.update_status(
        transfer.idempotency_key,
        TransferStatus.COMPLETED,
        completed_at=now,
    )
    return None


async def get_transfer_by_idem_key(db: AsyncSession, idem_key: str) -> Transfer:
    """
    Look a transfer up by its idempotency key.

    Raises:
        InvalidArgumentError: If the key is empty.
        TransferNotFoundError: If no transfer has this key.
    """
    if not idem_key or not idem_key.strip():
        raise InvalidArgumentError("Idempotency key is required")

    transfer = await TransferRepository(db).find_by_idem_key(idem_key)
    if transfer is None:
        raise TransferNotFoundError(idem_key)
    return transfer


def normalize_pagination(page: int, page_size: int) -> tuple[int, int]:
    """page defaults to 1; page_size defaults to DEFAULT_PAGE_SIZE and is capped at MAX_PAGE_SIZE."""
    if page <= 0:
        page = 1
    if page_size <= 0:
        page_size = settings.DEFAULT_PAGE_SIZE
    page_size = min(page_size, settings.MAX_PAGE_SIZE)
    return page, page_size


async def get_transfers_by_user_id(
    db: AsyncSession,
    user_id: int,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[Transfer], int]:
    """
    List transfers the user sent or received, newest first.

    Returns:
        Tuple of (transfers on the requested page, total matching transfers).

    Raises:
        InvalidArgumentError: If user_id is not positive.
        AccountNotFoundError: If the user doesn't exist.
    """
    if user_id <= 0:
        raise InvalidArgumentError("Invalid user ID")
    page, page_size = normalize_pagination(page, page_size)

    if not await UserRepository(db).exists(user_id):
        raise AccountNotFoundError(user_id)

    return await TransferRepository(db).list_by_user(user_id, page, page_size)


async def get_ledger_entries(
    db: AsyncSession,
    user_id: int,
    limit: int | None = None,
) -> list[PointLedger]:
    """
    Ledger entries for a user, newest first.

    `limit` defaults to DEFAULT_LEDGER_LIMIT and is capped at MAX_PAGE_SIZE.
    """
    if user_id <= 0:
        raise InvalidArgumentError("Invalid user ID")
    if limit is None or limit <= 0:
        limit = settings.DEFAULT_LEDGER_LIMIT
    limit = min(limit, settings.MAX_PAGE_SIZE)

    if not await UserRepository(db).exists(user_id):
        raise AccountNotFoundError(user_id)

    return await PointLedgerRepository(db).list_by_user(user_id, limit)
