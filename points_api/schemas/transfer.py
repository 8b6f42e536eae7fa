"""
Pydantic schemas for Transfer and ledger endpoints.

The transfer API speaks camelCase JSON (fromUserId, idemKey, pageSize).
Response models read ORM attributes by their Python names and serialize
with camelCase aliases; populate_by_name lets the same models accept
either spelling.

Amounts are Decimals and serialize as strings ("1.50").
"""

from datetime import datetime
from decimal import Decimal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class TransferCreateRequest(BaseModel):
    """Request body for POST /transfers."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    from_user_id: int
    to_user_id: int
    amount: Decimal
    note: str | None = None


class _CamelResponse(BaseModel):
    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class TransferResponse(_CamelResponse):
    """Public representation of a transfer."""
    id: int = Field(alias="transferId")
    idempotency_key: str = Field(alias="idemKey")
    from_user_id: int
    to_user_id: int
    amount: Decimal
    status: str
    note: str | None
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None
    fail_reason: str | None


class TransferEnvelope(_CamelResponse):
    """Response body for creating or fetching a single transfer."""
    transfer: TransferResponse


class TransferListResponse(_CamelResponse):
    """Response body for GET /transfers?userId=..."""
    data: list[TransferResponse]
    page: int
    page_size: int
    total: int


class LedgerEntryResponse(_CamelResponse):
    """One point ledger entry."""
    id: int
    user_id: int
    change: Decimal
    balance_after: Decimal
    event_type: str
    transfer_id: int | None
    reference: str | None
    # The ORM attribute is extra_metadata; `metadata` is taken by SQLAlchemy
    metadata: str | None = Field(
        default=None,
        validation_alias=AliasChoices("extra_metadata", "metadata"),
        serialization_alias="metadata",
    )
    created_at: datetime
