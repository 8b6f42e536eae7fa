"""
PointLedger model - append-only record of every balance change.

Each row documents one change to one user's balance:
  - change_cents: signed change (negative for points leaving the account)
  - balance_after_cents: the user's balance right after the change
  - event_type: why the balance changed
  - transfer_id: the transfer that caused it (NULL for non-transfer events)

A completed transfer produces exactly two rows sharing its transfer_id:
a `transfer_out` on the sender and a `transfer_in` on the receiver whose
changes are exact negatives of each other.

Rows are never updated or deleted. PointLedgerRepository exposes only
append and read operations.
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import String, Integer, Text, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from points_api.database import Base
from points_api.points import from_cents


class LedgerEventType(str, enum.Enum):
    TRANSFER_OUT = "transfer_out"
    TRANSFER_IN = "transfer_in"
    # Reserved for non-transfer balance changes
    ADJUST = "adjust"
    EARN = "earn"
    REDEEM = "redeem"


_EVENT_VALUES = ", ".join(f"'{e.value}'" for e in LedgerEventType)


class PointLedger(Base):
    __tablename__ = "point_ledger"

    __table_args__ = (
        CheckConstraint(f"event_type IN ({_EVENT_VALUES})", name="ck_point_ledger_event_type"),
        CheckConstraint("balance_after_cents >= 0", name="ck_point_ledger_non_negative_balance"),
    )

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )

    change_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    balance_after_cents: Mapped[int] = mapped_column(Integer, nullable=False)

    event_type: Mapped[str] = mapped_column(String(20), nullable=False)

    transfer_id: Mapped[int | None] = mapped_column(
        ForeignKey("transfers.id"),
        nullable=True,
        index=True,
    )

    reference: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # "metadata" is reserved on declarative classes, hence the attribute name
    extra_metadata: Mapped[str | None] = mapped_column("metadata", Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )

    @property
    def change(self):
        return from_cents(self.change_cents)

    @property
    def balance_after(self):
        return from_cents(self.balance_after_cents)
