# models/user.py
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class Partition(str, Enum):
    """The databases that hold user accounts, selected by role."""

    TRADESMEN = "tradesmen"
    CUSTOMERS = "customers"


class Role(str, Enum):
    CUSTOMER = "customer"
    TRADESMAN = "tradesman"
    ADMIN = "admin"


# Older clients send "user" for a plain customer account
ROLE_ALIASES = {"user": Role.CUSTOMER}


def parse_role(value: str | None) -> Role | None:
    if not value:
        return None
    value = value.strip().lower()
    if value in ROLE_ALIASES:
        return ROLE_ALIASES[value]
    try:
        return Role(value)
    except ValueError:
        return None


def partition_for_role(role: Role | str | None) -> Partition | None:
    """
    Role -> partition mapping.
    tradesman -> tradesmen database, customer/admin -> customers database.
    Unknown roles return None (no hint).
    """
    if not isinstance(role, Role):
        role = parse_role(role)
    if role is None:
        return None
    if role == Role.TRADESMAN:
        return Partition.TRADESMEN
    return Partition.CUSTOMERS


class UserAccount(BaseModel):
    """One row of the `users` table in either partition."""

    id: str
    name: str
    email: str
    phone_number: str
    password_hash: str = Field(..., repr=False)
    role: Role
    city: str | None = None
    # Set on tradesman accounts created by role migration: the customer id they replaced
    migrated_from_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def public(self) -> dict:
        """Account data that is safe to send to the browser (no password hash)."""
        return self.model_dump(mode="json", exclude={"password_hash"})
