"""
Pydantic schemas for account records.

Stores return these detached, immutable snapshots instead of ORM objects,
so the ledger never holds a live database row and an in-memory store can
hand out the same types. All monetary amounts are integer cents.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from atm.models.account import AccountStatus
from atm.money import MAX_AMOUNT_CENTS


class AccountRecord(BaseModel):
    """Stored state of one account."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: uuid.UUID
    account_number: str
    name: str
    credential_hash: str = Field(repr=False)
    balance_cents: int
    status: AccountStatus
    last_login_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    @property
    def is_active(self) -> bool:
        return self.status == AccountStatus.ACTIVE


class NewAccount(BaseModel):
    """
    Everything a store needs to insert an account.

    `credential` is the plaintext secret; stores hash it before it is
    written anywhere.
    """

    name: str = Field(min_length=1, max_length=255)
    account_number: str = Field(pattern=r"^8\d{15}$")
    credential: str = Field(pattern=r"^\d{6}$", repr=False)
    balance_cents: int = Field(ge=0, le=MAX_AMOUNT_CENTS)
    status: AccountStatus = AccountStatus.ACTIVE


class RegisteredAccount(BaseModel):
    """
    Result of a successful registration.

    This is the one and only place the plaintext credential is surfaced.
    """

    model_config = ConfigDict(frozen=True)

    id: uuid.UUID
    account_number: str
    name: str
    credential: str = Field(repr=False)
    balance_cents: int
    status: AccountStatus
    created_at: datetime
