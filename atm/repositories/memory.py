"""
In-memory account store.

Keeps records in dicts guarded by an asyncio.Lock, so every method is atomic
with respect to other tasks on the same event loop. Used for throwaway
simulations (`--database-url memory://`) and as a test double.

`yield_every_call` inserts an `await asyncio.sleep(0)` before each method
body. That hands control to other tasks between a ledger read and its
compare-and-set, which is how the concurrency tests force real interleaving.
"""

import asyncio
import uuid
from datetime import datetime, timezone

from atm.exceptions import AccountNotFoundError, DuplicateAccountNumberError, DuplicateNameError
from atm.models.account import AccountStatus
from atm.repositories.base import AccountStore
from atm.schemas.account import AccountRecord, NewAccount
from atm.schemas.transaction import NewTransaction, TransactionRecord
from atm.security import hash_credential


class InMemoryAccountStore(AccountStore):
    """Dict-backed account store for a single event loop."""

    def __init__(self, yield_every_call: bool = False):
        self._accounts: dict[uuid.UUID, AccountRecord] = {}
        self._transactions: list[TransactionRecord] = []
        self._retired_numbers: set[str] = set()
        self._lock = asyncio.Lock()
        self._yield = yield_every_call

    async def _checkpoint(self) -> None:
        if self._yield:
            await asyncio.sleep(0)

    async def get_by_id(self, account_id: uuid.UUID) -> AccountRecord | None:
        await self._checkpoint()
        async with self._lock:
            return self._accounts.get(account_id)

    async def get_by_account_number(self, account_number: str) -> AccountRecord | None:
        await self._checkpoint()
        async with self._lock:
            return next(
                (a for a in self._accounts.values() if a.account_number == account_number),
                None,
            )

    async def get_by_name(self, name: str) -> AccountRecord | None:
        await self._checkpoint()
        async with self._lock:
            return next((a for a in self._accounts.values() if a.name == name), None)

    async def list_all(self) -> list[AccountRecord]:
        await self._checkpoint()
        async with self._lock:
            # dicts keep insertion order, which is creation order
            return list(reversed(self._accounts.values()))

    async def insert(self, account: NewAccount) -> AccountRecord:
        credential_hash = await asyncio.to_thread(hash_credential, account.credential)
        await self._checkpoint()
        async with self._lock:
            if account.account_number in self._retired_numbers:
                raise DuplicateAccountNumberError(account.account_number)
            for existing in self._accounts.values():
                if existing.account_number == account.account_number:
                    raise DuplicateAccountNumberError(account.account_number)
                if existing.name == account.name:
                    raise DuplicateNameError(account.name)

            now = datetime.now(timezone.utc)
            record = AccountRecord(
                id=uuid.uuid4(),
                account_number=account.account_number,
                name=account.name,
                credential_hash=credential_hash,
                balance_cents=account.balance_cents,
                status=account.status,
                created_at=now,
                updated_at=now,
            )
            self._accounts[record.id] = record
            return record

    async def compare_and_set_balance(
        self,
        account_id: uuid.UUID,
        expected_cents: int,
        new_cents: int,
    ) -> bool:
        await self._checkpoint()
        async with self._lock:
            current = self._accounts.get(account_id)
            if current is None or current.balance_cents != expected_cents:
                return False
            self._accounts[account_id] = current.model_copy(
                update={
                    "balance_cents": new_cents,
                    "updated_at": datetime.now(timezone.utc),
                }
            )
            return True

    async def update_last_login(self, account_id: uuid.UUID) -> None:
        await self._checkpoint()
        async with self._lock:
            current = self._accounts.get(account_id)
            if current is not None:
                now = datetime.now(timezone.utc)
                self._accounts[account_id] = current.model_copy(
                    update={"last_login_at": now, "updated_at": now}
                )

    async def set_status(self, account_id: uuid.UUID, status: AccountStatus) -> AccountRecord:
        await self._checkpoint()
        async with self._lock:
            current = self._accounts.get(account_id)
            if current is None:
                raise AccountNotFoundError(account_id)
            updated = current.model_copy(
                update={"status": status, "updated_at": datetime.now(timezone.utc)}
            )
            self._accounts[account_id] = updated
            return updated

    async def delete(self, account_id: uuid.UUID) -> bool:
        await self._checkpoint()
        async with self._lock:
            removed = self._accounts.pop(account_id, None)
            if removed is None:
                return False
            self._retired_numbers.add(removed.account_number)
            self._transactions = [
                t for t in self._transactions if t.account_id != account_id
            ]
            return True

    async def record_transaction(self, entry: NewTransaction) -> TransactionRecord:
        await self._checkpoint()
        async with self._lock:
            record = TransactionRecord(
                id=uuid.uuid4(),
                created_at=datetime.now(timezone.utc),
                **entry.model_dump(),
            )
            self._transactions.append(record)
            return record

    async def list_transactions(self, account_id: uuid.UUID) -> list[TransactionRecord]:
        await self._checkpoint()
        async with self._lock:
            return [t for t in reversed(self._transactions) if t.account_id == account_id]
