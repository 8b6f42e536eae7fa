"""
Transfer model - the durable record of one point transfer attempt.

Every call to the transfer engine that passes validation creates exactly one
Transfer row. The row is identified externally by its idempotency key, a
random 36-character token generated by the engine; the integer id is an
internal detail used by ledger entries.

Lifecycle:
  pending ──▶ completed   (balances moved, two ledger entries written)
     └──────▶ failed      (insufficient points at processing time)

  A transfer leaves `pending` exactly once and never goes back. If the
  atomic processing step fails for an infrastructure reason the row stays
  `pending`. The schema also accepts `processing`, `cancelled` and
  `reversed` so those states can be introduced later without a migration;
  the engine never writes them.

Why amount_cents is always positive:
  Direction is given by from_user_id / to_user_id. Signed changes live on
  the ledger entries.
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import String, Integer, DateTime, ForeignKey, CheckConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column

from points_api.database import Base
from points_api.points import from_cents


class TransferStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"     # reserved
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"       # reserved
    REVERSED = "reversed"         # reserved


_STATUS_VALUES = ", ".join(f"'{s.value}'" for s in TransferStatus)


class Transfer(Base):
    __tablename__ = "transfers"

    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="ck_transfers_positive_amount"),
        CheckConstraint("from_user_id <> to_user_id", name="ck_transfers_distinct_users"),
        CheckConstraint(f"status IN ({_STATUS_VALUES})", name="ck_transfers_status"),
        Index("ix_transfers_from_status_completed", "from_user_id", "status", "completed_at"),
    )

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )

    idempotency_key: Mapped[str] = mapped_column(
        String(36),
        unique=True,
        nullable=False,
        index=True,
    )

    from_user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )
    to_user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )

    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[str] = mapped_column(
        String(12),
        nullable=False,
        default=TransferStatus.PENDING.value,
    )

    note: Mapped[str | None] = mapped_column(String(512), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # Set on the terminal transition (completed or failed)
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    fail_reason: Mapped[str | None] = mapped_column(String(255), nullable=True)

    @property
    def amount(self):
        return from_cents(self.amount_cents)
