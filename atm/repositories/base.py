"""
The account store contract consumed by the ledger and session services.

Any backend works as long as compare_and_set_balance is a true conditional
write: it must succeed only if the stored balance still equals the expected
value at write time. A store that only offers unconditional writes cannot
protect the ledger against lost updates.
"""

import uuid
from abc import ABC, abstractmethod

from atm.models.account import AccountStatus
from atm.schemas.account import AccountRecord, NewAccount
from atm.schemas.transaction import NewTransaction, TransactionRecord


class AccountStore(ABC):
    """Abstract interface for account persistence backends."""

    # --- Lookups ---

    @abstractmethod
    async def get_by_id(self, account_id: uuid.UUID) -> AccountRecord | None:
        """Return the account with this internal id, if any."""

    @abstractmethod
    async def get_by_account_number(self, account_number: str) -> AccountRecord | None:
        """Return the account holding this 16-digit number, if any."""

    @abstractmethod
    async def get_by_name(self, name: str) -> AccountRecord | None:
        """Return the account registered under this display name, if any."""

    @abstractmethod
    async def list_all(self) -> list[AccountRecord]:
        """Every account, newest first."""

    # --- Writes ---

    @abstractmethod
    async def insert(self, account: NewAccount) -> AccountRecord:
        """
        Persist a new account, hashing its credential.

        Raises:
            DuplicateAccountNumberError: The account number is taken or retired.
            DuplicateNameError: The name is taken.
            PersistenceError: Any other store failure.
        """

    @abstractmethod
    async def compare_and_set_balance(
        self,
        account_id: uuid.UUID,
        expected_cents: int,
        new_cents: int,
    ) -> bool:
        """
        Set the balance to `new_cents` only if it still equals `expected_cents`.

        Returns False on mismatch (or if the account no longer exists).
        """

    @abstractmethod
    async def update_last_login(self, account_id: uuid.UUID) -> None:
        """Stamp the account's last_login_at with the current time."""

    @abstractmethod
    async def set_status(self, account_id: uuid.UUID, status: AccountStatus) -> AccountRecord:
        """
        Administrative status change.

        Raises:
            AccountNotFoundError: If the account does not exist.
        """

    @abstractmethod
    async def delete(self, account_id: uuid.UUID) -> bool:
        """
        Administrative hard delete of an account and its journal.

        The account number is retired, not freed: insert() refuses it
        afterwards with DuplicateAccountNumberError. Returns False if
        nothing was deleted.
        """

    # --- Journal ---

    @abstractmethod
    async def record_transaction(self, entry: NewTransaction) -> TransactionRecord:
        """Append an entry to the transaction journal."""

    @abstractmethod
    async def list_transactions(self, account_id: uuid.UUID) -> list[TransactionRecord]:
        """Journal entries of one account, newest first."""

    async def close(self) -> None:
        """Release connections (default no-op)."""
