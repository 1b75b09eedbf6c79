"""
SQLAlchemy ORM models package.

All models are imported here so that:
  1. init_db() registers every table on Base.metadata
  2. Other modules can import from atm.models directly
"""

from atm.models.account import Account, AccountStatus, RetiredAccountNumber  # noqa: F401
from atm.models.transaction import Transaction, TransactionStatus, TransactionType  # noqa: F401
