"""
User model - the owner of a point balance.

Each User is both the profile (name, phone, email, membership level) and the
point account: `points_cents` is the user's balance in hundredths of a point
(1.50 points = 150).

Balance management:
  `points_cents` is written only by the transfer engine inside its atomic
  step, together with the ledger entries that explain the change. The one
  exception is the opening balance supplied when the user is created.

  A CHECK constraint at the database level enforces that the balance can
  never go negative. The engine checks before debiting; the constraint is
  the final safety net against bugs or races.
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import String, Integer, DateTime, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from points_api.database import Base
from points_api.points import from_cents


class MembershipLevel(str, enum.Enum):
    """
    Loyalty tier of a user.

    Inherits from str so the value serializes naturally to JSON and is stored
    as a plain string.
    """
    BRONZE = "Bronze"
    SILVER = "Silver"
    GOLD = "Gold"
    PLATINUM = "Platinum"


class User(Base):
    __tablename__ = "users"

    __table_args__ = (
        CheckConstraint("points_cents >= 0", name="ck_users_non_negative_points"),
    )

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone: Mapped[str] = mapped_column(String(20), nullable=False)

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )

    # Day the user joined, rendered as D/M/YYYY
    member_since: Mapped[str] = mapped_column(String(10), nullable=False)

    membership_level: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=MembershipLevel.BRONZE.value,
    )

    # Balance in hundredths of a point
    points_cents: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    # Audit timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    @property
    def points(self):
        return from_cents(self.points_cents)
