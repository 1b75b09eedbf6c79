"""
Command facade: the one place that turns ledger outcomes into text.

Each operation returns a CommandResult and never raises a domain error: every
LedgerError is caught here and rendered through ERROR_MESSAGES, the way a web
API maps exceptions to responses in one exception-handler module. The engine
keeps its own error representation; the wording lives only here.

Authorization:
  withdraw, transfer and balance resolve the session's account with
  SessionManager.require_account() before anything else, so a logged-out
  session is rejected before any ledger logic runs or any input is parsed.

Text commands (dispatch):
    register <name> <initial balance>
    login <name> <credential>
    withdraw <amount>
    transfer <account number> <amount>
    balance
    logout
    help
    exit
"""

import logging
from typing import Any, Callable

from pydantic import BaseModel, Field

from atm.exceptions import (
    AccountInactiveError,
    InsufficientFundsError,
    LedgerError,
    TransferFailedError,
)
from atm.money import format_cents, parse_amount
from atm.services.ledger_service import LedgerService
from atm.services.session_service import Session, SessionManager

logger = logging.getLogger(__name__)


MENU = """
ATM Menu:
1. register [name] [initial balance]
2. login [name] [credential]
3. withdraw [amount]
4. transfer [account number] [amount]
5. balance
6. logout
7. exit"""


class CommandResult(BaseModel):
    """Outcome of one command, ready to print."""

    ok: bool
    message: str
    error_type: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)
    exit: bool = False


# ---------------------------------------------------------------------------
# Error rendering
# ---------------------------------------------------------------------------

def _insufficient_funds(exc: InsufficientFundsError) -> str:
    return f"Insufficient funds. Available balance: {format_cents(exc.available_cents)}"


def _account_inactive(exc: AccountInactiveError) -> str:
    return f"Account is not active ({exc.status})"


def _transfer_failed(exc: TransferFailedError) -> str:
    if exc.funds_returned:
        return (
            f"Transfer could not be completed. {format_cents(exc.amount_cents)} "
            f"has been returned to your account"
        )
    return (
        f"Transfer could not be completed and the refund is pending. "
        f"Quote reference {exc.reference_id}"
    )


# error_type -> fixed text, or a function of the exception for messages
# that quote its attributes. validation_error and anything unlisted fall
# back to the exception's own detail.
ERROR_MESSAGES: dict[str, str | Callable[[Any], str]] = {
    "duplicate_name": "That name is already registered",
    "not_found": "Customer not found",
    "target_not_found": "Target account not found",
    "invalid_credential": "Invalid PIN",
    "account_inactive": _account_inactive,
    "insufficient_funds": _insufficient_funds,
    "invalid_amount": "Invalid amount",
    "same_account": "Cannot transfer to your own account",
    "already_logged_in": "Another user is already logged in",
    "no_active_session": "No active session",
    "generation_exhausted": "Could not allocate an account number. Please contact the bank",
    "contention": "The account is busy. Please try again",
    "persistence_error": "The bank is temporarily unavailable. Please try again later",
    "duplicate_account_number": "The bank is temporarily unavailable. Please try again later",
    "transfer_failed": _transfer_failed,
}


def render_error(exc: LedgerError) -> CommandResult:
    template = ERROR_MESSAGES.get(exc.error_type)
    if template is None:
        text = exc.detail
    elif callable(template):
        text = template(exc)
    else:
        text = template
    return CommandResult(ok=False, message=f"Error: {text}", error_type=exc.error_type)


# ---------------------------------------------------------------------------
# Facade
# ---------------------------------------------------------------------------

def split_login_args(args: list[str]) -> tuple[str, str | None]:
    """
    Split "login" arguments into (name, credential).

    Names may contain spaces; the credential, when present, is the last
    argument and is all digits.
    """
    if len(args) >= 2 and args[-1].isdigit():
        return " ".join(args[:-1]), args[-1]
    return " ".join(args), None


class CommandFacade:
    """Translates operation requests into session and ledger calls."""

    def __init__(self, ledger: LedgerService, sessions: SessionManager):
        self.ledger = ledger
        self.sessions = sessions

    def open_session(self) -> Session:
        return self.sessions.open_session()

    async def register(self, name: str, initial_balance: str) -> CommandResult:
        try:
            account = await self.ledger.register(name, parse_amount(initial_balance))
        except LedgerError as exc:
            logger.info("Registration rejected: %s", exc.error_type)
            return render_error(exc)

        return CommandResult(
            ok=True,
            message=(
                "Registration successful!\n"
                f"Account Number: {account.account_number}\n"
                f"PIN: {account.credential}"
            ),
            data={
                "account_id": str(account.id),
                "account_number": account.account_number,
                "credential": account.credential,
                "balance_cents": account.balance_cents,
            },
        )

    async def login(self, session: Session, name: str, credential: str) -> CommandResult:
        try:
            account = await self.sessions.login(session, name, credential)
        except LedgerError as exc:
            return render_error(exc)

        return CommandResult(
            ok=True,
            message=(
                f"Welcome {account.name}!\n"
                f"Current balance: {format_cents(account.balance_cents)}"
            ),
            data={
                "account_id": str(account.id),
                "balance_cents": account.balance_cents,
            },
        )

    async def withdraw(self, session: Session, amount: str) -> CommandResult:
        try:
            account_id = self.sessions.require_account(session)
            balance_cents = await self.ledger.withdraw(account_id, parse_amount(amount))
        except LedgerError as exc:
            return render_error(exc)

        return CommandResult(
            ok=True,
            message=f"Withdrawal successful!\nNew balance: {format_cents(balance_cents)}",
            data={"balance_cents": balance_cents},
        )

    async def transfer(self, session: Session, account_number: str, amount: str) -> CommandResult:
        try:
            account_id = self.sessions.require_account(session)
            balance_cents = await self.ledger.transfer(
                account_id, account_number, parse_amount(amount)
            )
        except LedgerError as exc:
            return render_error(exc)

        return CommandResult(
            ok=True,
            message=f"Transfer successful!\nNew balance: {format_cents(balance_cents)}",
            data={"balance_cents": balance_cents},
        )

    async def balance(self, session: Session) -> CommandResult:
        try:
            account_id = self.sessions.require_account(session)
            account = await self.ledger.get_account(account_id)
        except LedgerError as exc:
            return render_error(exc)

        return CommandResult(
            ok=True,
            message=(
                f"Account Number: {account.account_number}\n"
                f"Current balance: {format_cents(account.balance_cents)}"
            ),
            data={
                "account_number": account.account_number,
                "balance_cents": account.balance_cents,
            },
        )

    def logout(self, session: Session) -> CommandResult:
        try:
            self.sessions.logout(session)
        except LedgerError as exc:
            return render_error(exc)
        return CommandResult(ok=True, message="Logout successful!")

    def help(self) -> CommandResult:
        return CommandResult(ok=True, message=MENU.strip("\n"))

    async def dispatch(self, session: Session, line: str) -> CommandResult:
        """Parse one text command and run it."""
        parts = line.split()
        if not parts:
            return self.help()

        command, args = parts[0].lower(), parts[1:]

        if command == "register":
            if len(args) < 2:
                return _usage("register [name] [initial balance]")
            return await self.register(" ".join(args[:-1]), args[-1])

        if command == "login":
            name, credential = split_login_args(args)
            if not name or credential is None:
                return _usage("login [name] [credential]")
            return await self.login(session, name, credential)

        if command == "withdraw":
            if len(args) != 1:
                return _usage("withdraw [amount]")
            return await self.withdraw(session, args[0])

        if command == "transfer":
            if len(args) != 2:
                return _usage("transfer [account number] [amount]")
            return await self.transfer(session, args[0], args[1])

        if command == "balance":
            return await self.balance(session)

        if command == "logout":
            return self.logout(session)

        if command in ("help", "menu"):
            return self.help()

        if command in ("exit", "quit"):
            if session.is_logged_in:
                self.sessions.logout(session)
            return CommandResult(ok=True, message="Goodbye!", exit=True)

        return CommandResult(ok=False, message="Unknown command", error_type="unknown_command")


def _usage(text: str) -> CommandResult:
    return CommandResult(ok=False, message=f"Usage: {text}", error_type="usage")
