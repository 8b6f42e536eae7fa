"""
SQLAlchemy ORM models package.

All models are imported here so that:
  1. Base.metadata knows every table before create_all() runs
  2. Other modules can import from points_api.models directly
"""

from points_api.models.user import User, MembershipLevel  # noqa: F401
from points_api.models.transfer import Transfer, TransferStatus  # noqa: F401
from points_api.models.point_ledger import PointLedger, LedgerEventType  # noqa: F401
