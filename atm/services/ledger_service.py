"""
Ledger service: the core financial business logic.

THIS IS THE MOST CRITICAL FILE IN THE PROJECT. It handles:
  - Registration (unique account number, credential, opening balance)
  - Withdrawals
  - Transfers between accounts, with a compensating reversal
  - Balance enforcement (no negative balances)
  - The transaction journal (approved, declined and reversal entries)

Optimistic concurrency:
  No balance is ever written unconditionally. Every debit and credit is a
  read-verify-write round ending in store.compare_and_set_balance(), which
  only succeeds if the balance is still the one that was read. A lost round
  means another writer got in first; the round is repeated from a fresh
  read, a bounded number of times, and then ContentionError is raised.
  Two concurrent debits can therefore never both succeed against the same
  pre-mutation balance, across tasks, threads or processes sharing a store.

Transfers:
  The debit on the sender is made final first. Only then is the recipient
  credited, with the same compare-and-set discipline. If the credit cannot
  be applied, the debit is reversed by crediting the sender back, and
  TransferFailedError is raised with the funds returned. Every rejection
  that can be detected up front (bad amount, unknown target, same account,
  inactive account, insufficient funds) happens before anything is written.

Journal:
  Journal writes happen after the balance change they describe has
  committed. A journal failure is logged and does not undo or hide a
  completed balance change.
"""

import asyncio
import logging
import uuid
from typing import Callable

from atm.config import settings
from atm.exceptions import (
    AccountInactiveError,
    AccountNotFoundError,
    ContentionError,
    DuplicateAccountNumberError,
    DuplicateNameError,
    GenerationExhaustedError,
    InsufficientFundsError,
    InvalidAmountError,
    SameAccountError,
    TargetNotFoundError,
    TransferFailedError,
    ValidationError,
)
from atm.models.account import AccountStatus
from atm.models.transaction import TransactionStatus, TransactionType
from atm.money import MAX_AMOUNT_CENTS
from atm.repositories.base import AccountStore
from atm.schemas.account import AccountRecord, NewAccount, RegisteredAccount
from atm.schemas.transaction import NewTransaction, TransactionRecord
from atm.services.identifiers import (
    generate_account_number,
    generate_credential,
    is_valid_account_number,
)

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 255


def _attempts(value: int | None, default: int, name: str) -> int:
    attempts = default if value is None else value
    if attempts < 1:
        raise ValueError(f"{name} must be at least 1, got {attempts}")
    return attempts


class LedgerService:
    """
    Balance-mutating operations over an injected AccountStore.

    Retry bounds default to the values in atm.config.settings; tests pass
    their own.
    """

    def __init__(
        self,
        store: AccountStore,
        *,
        number_factory: Callable[[], str] = generate_account_number,
        credential_factory: Callable[[], str] = generate_credential,
        account_number_attempts: int | None = None,
        balance_update_attempts: int | None = None,
        compensation_attempts: int | None = None,
        retry_backoff: float | None = None,
    ):
        self._store = store
        self._number_factory = number_factory
        self._credential_factory = credential_factory
        self._number_attempts = _attempts(
            account_number_attempts,
            settings.ACCOUNT_NUMBER_MAX_ATTEMPTS,
            "account_number_attempts",
        )
        self._balance_attempts = _attempts(
            balance_update_attempts,
            settings.BALANCE_UPDATE_MAX_ATTEMPTS,
            "balance_update_attempts",
        )
        self._compensation_attempts = _attempts(
            compensation_attempts,
            settings.COMPENSATION_MAX_ATTEMPTS,
            "compensation_attempts",
        )
        self._retry_backoff = (
            settings.RETRY_BACKOFF_SECONDS if retry_backoff is None else retry_backoff
        )

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    async def register(self, name: str, initial_balance_cents: int) -> RegisteredAccount:
        """
        Open a new ACTIVE account.

        Args:
            name: Display name; surrounding whitespace is trimmed.
            initial_balance_cents: Opening balance, zero or more.

        Returns:
            The new account, including the plaintext credential. This is
            the only time the credential can be read.

        Raises:
            ValidationError: Empty or over-long name, balance below zero or
                above MAX_AMOUNT_CENTS.
            DuplicateNameError: The name is already registered.
            GenerationExhaustedError: No unused account number was found.
            PersistenceError: The store failed.
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Name cannot be empty")
        if len(name) > MAX_NAME_LENGTH:
            raise ValidationError(f"Name cannot exceed {MAX_NAME_LENGTH} characters")
        if initial_balance_cents < 0:
            raise ValidationError("Initial balance must be non-negative")
        if initial_balance_cents > MAX_AMOUNT_CENTS:
            raise ValidationError("Initial balance is too large")

        if await self._store.get_by_name(name) is not None:
            raise DuplicateNameError(name)

        credential = self._credential_factory()

        # Generate a unique account number (retry on collision)
        for attempt in range(1, self._number_attempts + 1):
            account_number = self._number_factory()
            if not is_valid_account_number(account_number):
                logger.warning("Discarding malformed account number candidate")
                continue
            if await self._store.get_by_account_number(account_number) is not None:
                logger.debug("Account number collision on attempt %d", attempt)
                continue

            try:
                account = await self._store.insert(
                    NewAccount(
                        name=name,
                        account_number=account_number,
                        credential=credential,
                        balance_cents=initial_balance_cents,
                        status=AccountStatus.ACTIVE,
                    )
                )
            except DuplicateAccountNumberError:
                # Another registration took the number after our lookup
                logger.debug("Account number taken concurrently on attempt %d", attempt)
                continue

            logger.info(
                "Registered account %s with number %s",
                account.id,
                account.account_number,
            )
            return RegisteredAccount(
                id=account.id,
                account_number=account.account_number,
                name=account.name,
                credential=credential,
                balance_cents=account.balance_cents,
                status=account.status,
                created_at=account.created_at,
            )

        logger.error(
            "No unique account number after %d attempts", self._number_attempts
        )
        raise GenerationExhaustedError(self._number_attempts)

    # ------------------------------------------------------------------
    # Withdrawal
    # ------------------------------------------------------------------

    async def withdraw(self, account_id: uuid.UUID, amount_cents: int) -> int:
        """
        Debit `amount_cents` from an ACTIVE account.

        Returns:
            The new balance in cents.

        Raises:
            InvalidAmountError: amount_cents <= 0 or above MAX_AMOUNT_CENTS.
            AccountNotFoundError: No such account.
            AccountInactiveError: The account is not ACTIVE.
            InsufficientFundsError: The balance is lower than the amount.
                The balance is left unchanged.
            ContentionError: Concurrent writers won every round.
        """
        self._require_positive(amount_cents)

        before, after = await self._debit(
            account_id,
            amount_cents,
            declined_type=TransactionType.WITHDRAWAL,
        )
        await self._journal(
            type=TransactionType.WITHDRAWAL,
            status=TransactionStatus.APPROVED,
            account_id=account_id,
            amount_cents=amount_cents,
            balance_before_cents=before,
            balance_after_cents=after,
        )
        logger.info("Withdrew %d cents from account %s", amount_cents, account_id)
        return after

    # ------------------------------------------------------------------
    # Transfer
    # ------------------------------------------------------------------

    async def transfer(
        self,
        sender_id: uuid.UUID,
        target_account_number: str,
        amount_cents: int,
    ) -> int:
        """
        Move `amount_cents` from the sender to the account holding
        `target_account_number`.

        On success the combined balance of both accounts is unchanged and
        the sender's balance is lower by exactly `amount_cents`.

        Returns:
            The sender's new balance in cents.

        Raises:
            InvalidAmountError: amount_cents <= 0 or above MAX_AMOUNT_CENTS.
            ValidationError: The account number is malformed, or the credit
                would take the recipient above MAX_AMOUNT_CENTS.
            AccountNotFoundError: The sender does not exist.
            TargetNotFoundError: Nobody holds that account number.
            SameAccountError: The target is the sender.
            AccountInactiveError: Sender or recipient is not ACTIVE.
            InsufficientFundsError: The sender cannot cover the amount.
            ContentionError: The debit lost every round (nothing moved).
            TransferFailedError: The credit failed after the debit, for any
                reason; the debit has been reversed (see funds_returned).
            asyncio.CancelledError: Re-raised after the reversal ran.
        """
        self._require_positive(amount_cents)

        target_account_number = (target_account_number or "").strip()
        if not is_valid_account_number(target_account_number):
            raise ValidationError(
                "Account numbers are 16 digits and start with 8"
            )

        sender = await self._load_active(sender_id)
        recipient = await self._store.get_by_account_number(target_account_number)
        if recipient is None:
            raise TargetNotFoundError(target_account_number)
        if recipient.id == sender.id:
            raise SameAccountError()
        if not recipient.is_active:
            raise AccountInactiveError(recipient.id, recipient.status.value)
        if recipient.balance_cents > MAX_AMOUNT_CENTS - amount_cents:
            raise ValidationError("Transfer would exceed the recipient's maximum balance")

        reference_id = uuid.uuid4()

        if sender.balance_cents < amount_cents:
            await self._journal(
                type=TransactionType.TRANSFER_DEBIT,
                status=TransactionStatus.DECLINED,
                account_id=sender.id,
                counterparty_account_id=recipient.id,
                amount_cents=amount_cents,
                balance_before_cents=sender.balance_cents,
                balance_after_cents=sender.balance_cents,
                reference_id=reference_id,
                error_message="insufficient funds",
            )
            raise InsufficientFundsError(
                account_id=sender.id,
                requested_cents=amount_cents,
                available_cents=sender.balance_cents,
            )

        # Leg 1: the debit is final once this returns
        sender_before, sender_after = await self._debit(
            sender.id,
            amount_cents,
            declined_type=TransactionType.TRANSFER_DEBIT,
            counterparty_id=recipient.id,
            reference_id=reference_id,
        )

        # Leg 2: credit the recipient, or give the money back. From here on
        # any exception, cancellation included, must run the reversal.
        try:
            await self._journal(
                type=TransactionType.TRANSFER_DEBIT,
                status=TransactionStatus.APPROVED,
                account_id=sender.id,
                counterparty_account_id=recipient.id,
                amount_cents=amount_cents,
                balance_before_cents=sender_before,
                balance_after_cents=sender_after,
                reference_id=reference_id,
            )
            recipient_before, recipient_after = await self._credit(
                recipient.id,
                amount_cents,
                attempts=self._balance_attempts,
                require_active=True,
            )
        except asyncio.CancelledError:
            logger.warning(
                "Transfer %s cancelled after the debit; reversing the debit",
                reference_id,
            )
            await asyncio.shield(
                self._reverse(sender.id, recipient.id, amount_cents, reference_id)
            )
            raise
        except Exception as exc:
            logger.warning(
                "Credit leg of transfer %s failed (%s); reversing the debit",
                reference_id,
                getattr(exc, "error_type", type(exc).__name__),
            )
            returned = await self._reverse(
                sender.id, recipient.id, amount_cents, reference_id
            )
            raise TransferFailedError(
                account_id=sender.id,
                amount_cents=amount_cents,
                reference_id=reference_id,
                funds_returned=returned,
            ) from exc

        await self._journal(
            type=TransactionType.TRANSFER_CREDIT,
            status=TransactionStatus.APPROVED,
            account_id=recipient.id,
            counterparty_account_id=sender.id,
            amount_cents=amount_cents,
            balance_before_cents=recipient_before,
            balance_after_cents=recipient_after,
            reference_id=reference_id,
        )
        logger.info(
            "Transferred %d cents from %s to %s (transfer %s)",
            amount_cents,
            sender.id,
            recipient.id,
            reference_id,
        )
        return sender_after

    async def _reverse(
        self,
        sender_id: uuid.UUID,
        recipient_id: uuid.UUID,
        amount_cents: int,
        reference_id: uuid.UUID,
    ) -> bool:
        """Credit the sender back. Returns False if that could not be done."""
        try:
            before, after = await self._credit(
                sender_id,
                amount_cents,
                attempts=self._compensation_attempts,
                require_active=False,
            )
        except Exception as exc:
            logger.critical(
                "Reversal of transfer %s could not be applied: %d cents owed "
                "to account %s (%s)",
                reference_id,
                amount_cents,
                sender_id,
                exc,
            )
            return False

        await self._journal(
            type=TransactionType.REVERSAL,
            status=TransactionStatus.APPROVED,
            account_id=sender_id,
            counterparty_account_id=recipient_id,
            amount_cents=amount_cents,
            balance_before_cents=before,
            balance_after_cents=after,
            reference_id=reference_id,
        )
        logger.warning(
            "Reversed %d cents to account %s for transfer %s",
            amount_cents,
            sender_id,
            reference_id,
        )
        return True

    # ------------------------------------------------------------------
    # Compare-and-set rounds
    # ------------------------------------------------------------------

    async def _debit(
        self,
        account_id: uuid.UUID,
        amount_cents: int,
        *,
        declined_type: TransactionType,
        counterparty_id: uuid.UUID | None = None,
        reference_id: uuid.UUID | None = None,
    ) -> tuple[int, int]:
        """
        Subtract from an ACTIVE account. Returns (balance_before, balance_after).

        Each round re-reads the account, so status and funds are always
        checked against the balance the write is conditioned on.
        """
        for attempt in range(1, self._balance_attempts + 1):
            account = await self._load_active(account_id)

            if account.balance_cents < amount_cents:
                await self._journal(
                    type=declined_type,
                    status=TransactionStatus.DECLINED,
                    account_id=account_id,
                    counterparty_account_id=counterparty_id,
                    amount_cents=amount_cents,
                    balance_before_cents=account.balance_cents,
                    balance_after_cents=account.balance_cents,
                    reference_id=reference_id,
                    error_message="insufficient funds",
                )
                raise InsufficientFundsError(
                    account_id=account_id,
                    requested_cents=amount_cents,
                    available_cents=account.balance_cents,
                )

            new_balance = account.balance_cents - amount_cents
            if await self._store.compare_and_set_balance(
                account_id, account.balance_cents, new_balance
            ):
                return account.balance_cents, new_balance

            logger.debug(
                "Debit on %s lost a concurrent write (attempt %d/%d)",
                account_id,
                attempt,
                self._balance_attempts,
            )
            await self._backoff(attempt, self._balance_attempts)

        logger.warning(
            "Debit on %s gave up after %d contended attempts",
            account_id,
            self._balance_attempts,
        )
        raise ContentionError(account_id, self._balance_attempts)

    async def _credit(
        self,
        account_id: uuid.UUID,
        amount_cents: int,
        *,
        attempts: int,
        require_active: bool,
    ) -> tuple[int, int]:
        """Add to an account. Returns (balance_before, balance_after)."""
        for attempt in range(1, attempts + 1):
            account = await self._store.get_by_id(account_id)
            if account is None:
                raise AccountNotFoundError(account_id)
            if require_active and not account.is_active:
                raise AccountInactiveError(account_id, account.status.value)

            new_balance = account.balance_cents + amount_cents
            if new_balance > MAX_AMOUNT_CENTS:
                raise ValidationError(
                    f"Balance of account {account_id} would exceed the maximum"
                )
            if await self._store.compare_and_set_balance(
                account_id, account.balance_cents, new_balance
            ):
                return account.balance_cents, new_balance

            logger.debug(
                "Credit on %s lost a concurrent write (attempt %d/%d)",
                account_id,
                attempt,
                attempts,
            )
            await self._backoff(attempt, attempts)

        raise ContentionError(account_id, attempts)

    async def _backoff(self, attempt: int, attempts: int) -> None:
        if attempt < attempts:
            await asyncio.sleep(self._retry_backoff * attempt)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _require_positive(amount_cents: int) -> None:
        if amount_cents <= 0 or amount_cents > MAX_AMOUNT_CENTS:
            raise InvalidAmountError(amount_cents)

    async def _load_active(self, account_id: uuid.UUID) -> AccountRecord:
        account = await self._store.get_by_id(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        if not account.is_active:
            raise AccountInactiveError(account_id, account.status.value)
        return account

    async def _journal(self, **fields) -> None:
        try:
            await self._store.record_transaction(NewTransaction(**fields))
        except Exception:
            logger.exception(
                "Could not journal %s on account %s",
                fields["type"].value,
                fields["account_id"],
            )

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------

    async def get_account(self, account_id: uuid.UUID) -> AccountRecord:
        """
        Raises:
            AccountNotFoundError: If the account doesn't exist.
        """
        account = await self._store.get_by_id(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return account

    async def get_transactions(self, account_id: uuid.UUID) -> list[TransactionRecord]:
        """Journal entries for an account, newest first."""
        await self.get_account(account_id)
        return await self._store.list_transactions(account_id)

    # ------------------------------------------------------------------
    # Admin functions
    # ------------------------------------------------------------------

    async def admin_list_accounts(self) -> list[AccountRecord]:
        """[ADMIN ONLY] Every account, newest first."""
        return await self._store.list_all()

    async def admin_set_status(
        self,
        account_number: str,
        status: AccountStatus,
    ) -> AccountRecord:
        """
        [ADMIN ONLY] Suspend, close or reactivate an account.

        Raises:
            AccountNotFoundError: Nobody holds that account number.
        """
        account = await self._store.get_by_account_number(account_number.strip())
        if account is None:
            raise AccountNotFoundError(account_number)
        updated = await self._store.set_status(account.id, status)
        logger.info(
            "Account %s status changed from %s to %s",
            account.id,
            account.status.value,
            status.value,
        )
        return updated
