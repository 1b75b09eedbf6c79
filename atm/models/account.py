"""
Account model: one customer record of the ATM ledger.

Each account has:
  - An opaque UUID primary key (never shown to the customer)
  - A unique 16-digit account number starting with "8" (used to receive transfers)
  - A display name, used as the login key
  - An Argon2 hash of the six-digit credential (never the plaintext)
  - A balance in integer cents
  - A status: ACTIVE, SUSPENDED or CLOSED

Balance management:
  The `balance_cents` column is only changed through a conditional UPDATE
  (compare-and-set) issued by the store on behalf of the ledger service, so
  two writers can never both apply a change computed from the same balance.

  A CHECK constraint at the database level enforces that the balance can
  never go negative. The ledger checks before debiting; the constraint is
  the final safety net.

Why integer cents?
  $10.99 is stored as 1099: all arithmetic is exact. Amounts are converted
  from and to decimal text only at the terminal (see atm.money).
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import BigInteger, CheckConstraint, DateTime, Enum, String
from sqlalchemy.orm import Mapped, mapped_column

from atm.database import Base


class AccountStatus(str, enum.Enum):
    """
    Lifecycle state of an account.

    Inherits from str so the value serializes naturally and is stored as a
    simple string in the database.
    """
    ACTIVE = "active"           # Can log in, withdraw, send and receive
    SUSPENDED = "suspended"     # Read-only until an operator reactivates it
    CLOSED = "closed"           # Permanently read-only


class Account(Base):
    __tablename__ = "accounts"

    __table_args__ = (
        CheckConstraint(
            "balance_cents >= 0",
            name="ck_accounts_non_negative_balance",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    # Public 16-digit identifier for receiving transfers
    account_number: Mapped[str] = mapped_column(
        String(16),
        unique=True,
        nullable=False,
        index=True,
    )

    # Login key, unique so a name resolves to exactly one account
    name: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )

    # Argon2id hash of the six-digit credential
    credential_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    balance_cents: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )

    status: Mapped[AccountStatus] = mapped_column(
        Enum(AccountStatus),
        nullable=False,
        default=AccountStatus.ACTIVE,
    )

    last_login_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Audit timestamps
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


class RetiredAccountNumber(Base):
    """
    An account number whose account was deleted.

    Deleting an account frees its row in `accounts`, so the unique index
    there no longer protects the number. Keeping it here means it is never
    issued again for the lifetime of the store.
    """

    __tablename__ = "retired_account_numbers"

    account_number: Mapped[str] = mapped_column(
        String(16),
        primary_key=True,
    )

    retired_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
