"""
Domain exception classes for the ledger.

The engine raises domain-specific errors (like InsufficientFundsError)
without knowing how they will be shown to a person. The command facade
catches LedgerError and renders each `error_type` as a message, so:
    - Engine code is testable without the terminal
    - Error messages are consistent across all commands
    - Adding new error types is straightforward

Exception hierarchy:
    LedgerError (base)
    ├── ValidationError            - bad input shape
    │   └── DuplicateNameError     - display name already registered
    ├── AccountNotFoundError       - no account with that id/name
    ├── TargetNotFoundError        - no account with that account number
    ├── InvalidCredentialError     - credential mismatch
    ├── AccountInactiveError       - account is SUSPENDED or CLOSED
    ├── InsufficientFundsError     - debit larger than the balance
    ├── InvalidAmountError         - amount is zero or negative
    ├── SameAccountError           - transfer to the sender itself
    ├── AlreadyLoggedInError       - login on a session that is logged in
    ├── NoActiveSessionError       - operation needs a logged-in session
    ├── GenerationExhaustedError   - no unique account number found
    ├── ContentionError            - compare-and-set retries exhausted
    ├── PersistenceError           - store-layer failure
    │   └── DuplicateAccountNumberError
    └── TransferFailedError        - credit failed, debit reversed
"""

import uuid


# ---------------------------------------------------------------------------
# Base exception
# ---------------------------------------------------------------------------

class LedgerError(Exception):
    """Base exception for all ledger domain errors."""

    error_type = "ledger_error"

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(self.detail)


# ---------------------------------------------------------------------------
# Input and lookup errors
# ---------------------------------------------------------------------------

class ValidationError(LedgerError):
    """Raised when an input has the wrong shape (empty name, bad number...)."""

    error_type = "validation_error"


class DuplicateNameError(ValidationError):
    """Raised when registering a display name that is already taken."""

    error_type = "duplicate_name"

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Name {name!r} is already registered")


class AccountNotFoundError(LedgerError):
    """Raised when a requested account does not exist."""

    error_type = "not_found"

    def __init__(self, reference: uuid.UUID | str):
        self.reference = reference
        super().__init__(f"Account {reference} not found")


class TargetNotFoundError(LedgerError):
    """Raised when a transfer names an account number nobody holds."""

    error_type = "target_not_found"

    def __init__(self, account_number: str):
        self.account_number = account_number
        super().__init__(f"Target account {account_number} not found")


class InvalidCredentialError(LedgerError):
    """Raised when a login credential does not match."""

    error_type = "invalid_credential"

    def __init__(self):
        super().__init__("Invalid credential")


# ---------------------------------------------------------------------------
# Business rule errors
# ---------------------------------------------------------------------------

class AccountInactiveError(LedgerError):
    """Raised when a mutating operation touches a non-ACTIVE account."""

    error_type = "account_inactive"

    def __init__(self, account_id: uuid.UUID, status: str):
        self.account_id = account_id
        self.status = status
        super().__init__(f"Account {account_id} is {status}")


class InsufficientFundsError(LedgerError):
    """
    Raised when a withdrawal or transfer would cause a negative balance.

    Attributes:
        account_id: The account that lacks sufficient funds.
        requested_cents: The amount the caller tried to debit.
        available_cents: The balance seen when the request was rejected.
    """

    error_type = "insufficient_funds"

    def __init__(
        self,
        account_id: uuid.UUID,
        requested_cents: int,
        available_cents: int,
    ):
        self.account_id = account_id
        self.requested_cents = requested_cents
        self.available_cents = available_cents
        super().__init__(
            f"Insufficient funds: requested {requested_cents} cents, "
            f"available {available_cents} cents"
        )


class InvalidAmountError(LedgerError):
    """Raised when an amount is not strictly positive."""

    error_type = "invalid_amount"

    def __init__(self, amount_cents: int):
        self.amount_cents = amount_cents
        super().__init__(f"Amount must be positive and in range, got {amount_cents} cents")


class SameAccountError(LedgerError):
    """Raised when the transfer target is the sender's own account."""

    error_type = "same_account"

    def __init__(self):
        super().__init__("Cannot transfer to the same account")


# ---------------------------------------------------------------------------
# Session state errors
# ---------------------------------------------------------------------------

class AlreadyLoggedInError(LedgerError):
    """Raised when logging in on a session that already holds an account."""

    error_type = "already_logged_in"

    def __init__(self):
        super().__init__("Another user is already logged in on this session")


class NoActiveSessionError(LedgerError):
    """Raised when an operation needs a logged-in session and there is none."""

    error_type = "no_active_session"

    def __init__(self):
        super().__init__("No active session")


# ---------------------------------------------------------------------------
# Operational errors
# ---------------------------------------------------------------------------

class GenerationExhaustedError(LedgerError):
    """Raised when no unused account number was found within the attempt bound."""

    error_type = "generation_exhausted"

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(
            f"Failed to generate a unique account number after {attempts} attempts"
        )


class ContentionError(LedgerError):
    """Raised when concurrent writers kept winning every compare-and-set round."""

    error_type = "contention"

    def __init__(self, account_id: uuid.UUID, attempts: int):
        self.account_id = account_id
        self.attempts = attempts
        super().__init__(
            f"Balance of account {account_id} changed concurrently "
            f"{attempts} times in a row"
        )


class PersistenceError(LedgerError):
    """Raised when the account store fails to read or write."""

    error_type = "persistence_error"


class DuplicateAccountNumberError(PersistenceError):
    """Raised by a store insert when the account number is already present."""

    error_type = "duplicate_account_number"

    def __init__(self, account_number: str):
        self.account_number = account_number
        super().__init__(f"Account number {account_number} already exists")


class TransferFailedError(LedgerError):
    """
    Raised when the credit leg of a transfer failed after the debit succeeded.

    Attributes:
        account_id: The sender.
        amount_cents: The amount that was debited.
        reference_id: Links the journal entries of this transfer.
        funds_returned: True once the compensating credit has been applied.
    """

    error_type = "transfer_failed"

    def __init__(
        self,
        account_id: uuid.UUID,
        amount_cents: int,
        reference_id: uuid.UUID,
        funds_returned: bool = True,
    ):
        self.account_id = account_id
        self.amount_cents = amount_cents
        self.reference_id = reference_id
        self.funds_returned = funds_returned
        if funds_returned:
            detail = (
                f"Transfer {reference_id} failed; {amount_cents} cents "
                f"returned to the sender"
            )
        else:
            detail = (
                f"Transfer {reference_id} failed and the reversal of "
                f"{amount_cents} cents is still outstanding"
            )
        super().__init__(detail)
