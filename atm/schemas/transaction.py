"""
Pydantic schemas for journal entries.

All monetary amounts are in integer cents (e.g., $10.50 = 1050).
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from atm.models.transaction import TransactionStatus, TransactionType


class NewTransaction(BaseModel):
    """A journal entry about to be recorded."""

    type: TransactionType
    status: TransactionStatus
    account_id: uuid.UUID
    counterparty_account_id: uuid.UUID | None = None
    amount_cents: int = Field(gt=0)
    balance_before_cents: int = Field(ge=0)
    balance_after_cents: int = Field(ge=0)
    reference_id: uuid.UUID | None = None
    error_message: str | None = Field(default=None, max_length=255)


class TransactionRecord(NewTransaction):
    """A recorded journal entry."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: uuid.UUID
    created_at: datetime
