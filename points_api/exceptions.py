"""
Custom exception classes and FastAPI exception handlers.

The service layer raises domain-specific errors (like InsufficientFundsError)
without importing HTTP concepts. The handler registered here translates them
into HTTP responses, so service code stays testable without HTTP and error
responses are consistent across all endpoints.

Exception hierarchy:
    PointsAPIError (base)
    ├── InvalidArgumentError     - malformed input (ids, amount, note, key)
    ├── SelfTransferError        - sender and receiver are the same user
    ├── AmountExceedsLimitError  - amount above the per-transfer cap
    ├── PrecisionExceededError   - amount with more than two decimal places
    ├── AccountNotFoundError     - sender/receiver/user doesn't exist
    ├── RepeatRecipientError     - same receiver as the last completed transfer
    ├── InsufficientFundsError   - sender balance below the amount
    ├── ConflictError            - unique key collision / delete refused
    ├── TransferNotFoundError    - no transfer for an idempotency key
    └── ProcessingFailedError    - infrastructure failure in the atomic step
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Base exception
# ---------------------------------------------------------------------------

class PointsAPIError(Exception):
    """Base exception for all Point Transfer API domain errors."""

    status_code = 400
    error_type = "error"

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(self.detail)

    def to_content(self) -> dict:
        return {"detail": self.detail, "error_type": self.error_type}


# ---------------------------------------------------------------------------
# Domain exceptions
# ---------------------------------------------------------------------------

class InvalidArgumentError(PointsAPIError):
    """Raised when an input value is malformed or out of range."""

    error_type = "invalid_argument"


class SelfTransferError(PointsAPIError):
    """Raised when a transfer names the same user as sender and receiver."""

    status_code = 422
    error_type = "self_transfer"

    def __init__(self):
        super().__init__("Cannot transfer to yourself")


class AmountExceedsLimitError(PointsAPIError):
    """Raised when a transfer amount is above the configured cap."""

    error_type = "amount_exceeds_limit"

    def __init__(self, limit):
        self.limit = limit
        super().__init__(f"Transfer amount cannot exceed {limit} points")


class PrecisionExceededError(PointsAPIError):
    """Raised when an amount has more than two decimal places."""

    error_type = "precision_exceeded"

    def __init__(self):
        super().__init__("Amount cannot have more than 2 decimal places")


class AccountNotFoundError(PointsAPIError):
    """
    Raised when a user account does not exist.

    Attributes:
        user_id: The id that was looked up.
        role: "sender", "receiver", or None for a plain lookup.
    """

    status_code = 404
    error_type = "account_not_found"

    def __init__(self, user_id: int, role: str | None = None):
        self.user_id = user_id
        self.role = role
        if role:
            super().__init__(f"{role.capitalize()} user {user_id} not found")
        else:
            super().__init__(f"User {user_id} not found")

    def to_content(self) -> dict:
        content = super().to_content()
        if self.role:
            content["role"] = self.role
        return content


class RepeatRecipientError(PointsAPIError):
    """Raised when the receiver equals the sender's last completed transfer's receiver."""

    status_code = 422
    error_type = "repeat_recipient"

    def __init__(self, to_user_id: int):
        self.to_user_id = to_user_id
        super().__init__(
            "Cannot transfer to the same user as the last completed transfer"
        )


class InsufficientFundsError(PointsAPIError):
    """
    Raised when the sender's balance is below the transfer amount.

    Attributes:
        user_id: The user that lacks sufficient points.
        requested_cents: The amount requested, in hundredths of a point.
        available_cents: The balance at the time of the check.
    """

    status_code = 409
    error_type = "insufficient_points"

    def __init__(self, user_id: int, requested_cents: int, available_cents: int):
        self.user_id = user_id
        self.requested_cents = requested_cents
        self.available_cents = available_cents
        super().__init__(
            f"Insufficient points: requested {requested_cents} cents, "
            f"available {available_cents} cents"
        )

    def to_content(self) -> dict:
        content = super().to_content()
        content["requested_cents"] = self.requested_cents
        content["available_cents"] = self.available_cents
        return content


class ConflictError(PointsAPIError):
    """Raised when a write collides with existing state."""

    status_code = 409
    error_type = "conflict"


class TransferNotFoundError(PointsAPIError):
    """Raised when no transfer exists for an idempotency key."""

    status_code = 404
    error_type = "transfer_not_found"

    def __init__(self, idem_key: str):
        self.idem_key = idem_key
        super().__init__("Transfer not found")


class ProcessingFailedError(PointsAPIError):
    """
    Raised when the atomic processing step fails for an infrastructure reason.

    The transfer record stays `pending`; the caller must submit a new request.
    idem_key is None when the failure happened before the record was
    written, e.g. the database stayed locked past DB_TIMEOUT_SECONDS.
    """

    status_code = 500
    error_type = "processing_failed"

    def __init__(self, idem_key: str | None, reason: str = "Transfer processing failed"):
        self.idem_key = idem_key
        super().__init__(reason)

    def to_content(self) -> dict:
        content = super().to_content()
        if self.idem_key is not None:
            content["idem_key"] = self.idem_key
        return content


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

def register_exception_handlers(app: FastAPI) -> None:
    """
    Register the domain exception handler with the FastAPI application.

    Every PointsAPIError subclass carries its HTTP status and error_type, so
    one handler renders them all as {"detail": ..., "error_type": ...}.

    This is called once during app startup in main.py.
    """

    @app.exception_handler(PointsAPIError)
    async def points_api_error_handler(
        request: Request, exc: PointsAPIError
    ) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
        return JSONResponse(status_code=exc.status_code, content=exc.to_content())
