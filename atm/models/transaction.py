"""
Transaction model: the journal of every balance change attempt.

Every withdrawal and transfer leaves Transaction records behind:

  - A withdrawal creates one WITHDRAWAL row
  - A transfer creates a TRANSFER_DEBIT row on the sender and a
    TRANSFER_CREDIT row on the recipient, linked by a shared `reference_id`
  - A transfer whose credit leg failed adds a REVERSAL row on the sender,
    with the same `reference_id`
  - A request rejected for insufficient funds is kept as a DECLINED row

The journal is an audit trail. Balances are never derived from it; the
account's `balance_cents` column is the source of truth.

Why amount_cents is always positive:
  The type field makes the direction explicit, so a signed amount would
  only add ambiguity.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import BigInteger, CheckConstraint, DateTime, Enum, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from atm.database import Base


class TransactionType(str, enum.Enum):
    WITHDRAWAL = "withdrawal"
    TRANSFER_DEBIT = "transfer_debit"
    TRANSFER_CREDIT = "transfer_credit"
    REVERSAL = "reversal"


class TransactionStatus(str, enum.Enum):
    APPROVED = "approved"
    DECLINED = "declined"


class Transaction(Base):
    __tablename__ = "transactions"

    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="ck_transactions_positive_amount"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    type: Mapped[TransactionType] = mapped_column(
        Enum(TransactionType),
        nullable=False,
    )

    status: Mapped[TransactionStatus] = mapped_column(
        Enum(TransactionStatus),
        nullable=False,
    )

    # The account whose balance this row describes
    account_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # The other side of a transfer (NULL for withdrawals)
    counterparty_account_id: Mapped[uuid.UUID | None] = mapped_column(
        nullable=True,
    )

    amount_cents: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )

    balance_before_cents: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )
    balance_after_cents: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )

    # Shared by every row belonging to one transfer
    reference_id: Mapped[uuid.UUID | None] = mapped_column(
        nullable=True,
        index=True,
    )

    # Why a declined row was declined
    error_message: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
