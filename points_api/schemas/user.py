"""
Pydantic schemas for User endpoints.

Point amounts are Decimals serialized as strings with two decimal places
("12.50"). Field-level business rules (name length, membership level,
opening balance precision) are checked in the user service so that they
raise the same domain errors as the rest of the API.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, EmailStr


class UserCreateRequest(BaseModel):
    """Request body for POST /users."""
    first_name: str
    last_name: str
    phone: str
    email: EmailStr
    membership_level: str | None = None
    points: Decimal = Decimal("0")


class UserUpdateRequest(BaseModel):
    """Request body for PUT /users/{id} (all fields optional)."""
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    email: EmailStr | None = None
    membership_level: str | None = None


class UserResponse(BaseModel):
    """Public representation of a user and their point balance."""
    id: int
    first_name: str
    last_name: str
    phone: str
    email: str
    member_since: str
    membership_level: str
    points: Decimal
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
