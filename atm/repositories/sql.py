"""
SQLAlchemy-backed account store.

Every method runs in its own short session: committed on success, rolled
back on any exception, then closed. Nothing is held open between calls, so
concurrent ledger operations never share a session.

Compare-and-set:
  compare_and_set_balance is a single statement,

      UPDATE accounts SET balance_cents = :new
      WHERE id = :id AND balance_cents = :expected

  and succeeds only if exactly one row matched. The database evaluates the
  condition and the write atomically, which is what makes the ledger's
  optimistic concurrency sound across tasks, threads and processes.

Errors:
  SQLAlchemyError and driver errors that bypass it (OverflowError) never
  escape this module; they are logged and re-raised as PersistenceError (or
  one of the duplicate errors for unique violations).
"""

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from atm.exceptions import (
    AccountNotFoundError,
    DuplicateAccountNumberError,
    DuplicateNameError,
    LedgerError,
    PersistenceError,
)
from atm.models.account import Account, AccountStatus, RetiredAccountNumber
from atm.models.transaction import Transaction
from atm.repositories.base import AccountStore
from atm.schemas.account import AccountRecord, NewAccount
from atm.schemas.transaction import NewTransaction, TransactionRecord
from atm.security import hash_credential

logger = logging.getLogger(__name__)


class SqlAccountStore(AccountStore):
    """Account store over an async SQLAlchemy session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self):
        try:
            async with self._session_factory() as session:
                try:
                    yield session
                    await session.commit()
                except Exception:
                    await session.rollback()
                    raise
        except LedgerError:
            raise
        except (SQLAlchemyError, OverflowError) as exc:
            # OverflowError is raised by the sqlite3 driver itself, unwrapped,
            # when a bound integer does not fit in 64 bits
            logger.error("Account store failure: %s", exc)
            raise PersistenceError(
                f"Account store failure: {exc.__class__.__name__}"
            ) from exc

    async def _get_one(self, *criteria) -> AccountRecord | None:
        async with self._session() as session:
            result = await session.execute(select(Account).where(*criteria))
            row = result.scalar_one_or_none()
            return AccountRecord.model_validate(row) if row is not None else None

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def get_by_id(self, account_id: uuid.UUID) -> AccountRecord | None:
        return await self._get_one(Account.id == account_id)

    async def get_by_account_number(self, account_number: str) -> AccountRecord | None:
        return await self._get_one(Account.account_number == account_number)

    async def get_by_name(self, name: str) -> AccountRecord | None:
        return await self._get_one(Account.name == name)

    async def list_all(self) -> list[AccountRecord]:
        async with self._session() as session:
            result = await session.execute(
                select(Account).order_by(Account.created_at.desc())
            )
            return [AccountRecord.model_validate(row) for row in result.scalars().all()]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def insert(self, account: NewAccount) -> AccountRecord:
        # Argon2 is deliberately slow; keep it off the event loop
        credential_hash = await asyncio.to_thread(hash_credential, account.credential)
        now = datetime.now(timezone.utc)

        async with self._session() as session:
            if await session.get(RetiredAccountNumber, account.account_number) is not None:
                raise DuplicateAccountNumberError(account.account_number)

            row = Account(
                id=uuid.uuid4(),
                account_number=account.account_number,
                name=account.name,
                credential_hash=credential_hash,
                balance_cents=account.balance_cents,
                status=account.status,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            try:
                await session.flush()
            except IntegrityError as exc:
                await session.rollback()
                raise await self._duplicate_error(session, account) from exc
            return AccountRecord.model_validate(row)

    async def _duplicate_error(self, session: AsyncSession, account: NewAccount) -> LedgerError:
        """Work out which unique constraint an insert collided with."""
        taken_number = await session.execute(
            select(Account.id).where(Account.account_number == account.account_number)
        )
        if taken_number.scalar_one_or_none() is not None:
            return DuplicateAccountNumberError(account.account_number)

        taken_name = await session.execute(
            select(Account.id).where(Account.name == account.name)
        )
        if taken_name.scalar_one_or_none() is not None:
            return DuplicateNameError(account.name)

        return PersistenceError("Account insert violated a constraint")

    async def compare_and_set_balance(
        self,
        account_id: uuid.UUID,
        expected_cents: int,
        new_cents: int,
    ) -> bool:
        async with self._session() as session:
            result = await session.execute(
                update(Account)
                .where(Account.id == account_id)
                .where(Account.balance_cents == expected_cents)
                .values(
                    balance_cents=new_cents,
                    updated_at=datetime.now(timezone.utc),
                )
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1

    async def update_last_login(self, account_id: uuid.UUID) -> None:
        now = datetime.now(timezone.utc)
        async with self._session() as session:
            await session.execute(
                update(Account)
                .where(Account.id == account_id)
                .values(last_login_at=now, updated_at=now)
                .execution_options(synchronize_session=False)
            )

    async def set_status(self, account_id: uuid.UUID, status: AccountStatus) -> AccountRecord:
        async with self._session() as session:
            result = await session.execute(select(Account).where(Account.id == account_id))
            row = result.scalar_one_or_none()
            if row is None:
                raise AccountNotFoundError(account_id)
            row.status = status
            row.updated_at = datetime.now(timezone.utc)
            await session.flush()
            return AccountRecord.model_validate(row)

    async def delete(self, account_id: uuid.UUID) -> bool:
        async with self._session() as session:
            row = await session.get(Account, account_id)
            if row is None:
                return False
            session.add(RetiredAccountNumber(account_number=row.account_number))
            await session.execute(
                delete(Transaction).where(Transaction.account_id == account_id)
            )
            result = await session.execute(
                delete(Account).where(Account.id == account_id)
            )
            return result.rowcount == 1

    # ------------------------------------------------------------------
    # Journal
    # ------------------------------------------------------------------

    async def record_transaction(self, entry: NewTransaction) -> TransactionRecord:
        async with self._session() as session:
            row = Transaction(
                id=uuid.uuid4(),
                created_at=datetime.now(timezone.utc),
                **entry.model_dump(),
            )
            session.add(row)
            await session.flush()
            return TransactionRecord.model_validate(row)

    async def list_transactions(self, account_id: uuid.UUID) -> list[TransactionRecord]:
        async with self._session() as session:
            result = await session.execute(
                select(Transaction)
                .where(Transaction.account_id == account_id)
                .order_by(Transaction.created_at.desc())
            )
            return [TransactionRecord.model_validate(row) for row in result.scalars().all()]
