"""
Session service: login and logout.

A Session is an explicit handle owned by one caller (one terminal, one test,
one task). It holds nothing but the id of the account it is authorized for.
There is no process-wide "current user": any number of sessions can be
logged in at once, each to its own account, and the SessionManager keeps no
state of its own beyond the store it reads from.

State machine:
    LoggedOut --login--> LoggedIn(account_id) --logout--> LoggedOut

Only SessionManager changes a Session; the ledger service never sees one.
The command facade resolves the authorized account with require_account()
before calling the ledger.

Login flow:
  1. Reject if the session is already logged in
  2. Look up the account by display name
  3. Verify the credential against the stored Argon2 hash
  4. Reject accounts that are not ACTIVE
  5. Record last_login_at and bind the session to the account
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field

from atm.exceptions import (
    AccountInactiveError,
    AccountNotFoundError,
    AlreadyLoggedInError,
    InvalidCredentialError,
    NoActiveSessionError,
    ValidationError,
)
from atm.repositories.base import AccountStore
from atm.schemas.account import AccountRecord
from atm.security import verify_credential

logger = logging.getLogger(__name__)


@dataclass
class Session:
    """Authorization context of one caller."""

    id: uuid.UUID = field(default_factory=uuid.uuid4)
    account_id: uuid.UUID | None = None

    @property
    def is_logged_in(self) -> bool:
        return self.account_id is not None


class SessionManager:
    """Authenticates credential pairs and tracks per-session authorization."""

    def __init__(self, store: AccountStore):
        self._store = store

    def open_session(self) -> Session:
        """A fresh, logged-out session handle."""
        return Session()

    async def login(self, session: Session, name: str, credential: str) -> AccountRecord:
        """
        Authenticate `name` + `credential` and bind the session to the account.

        Returns:
            The account as stored after the login timestamp was recorded.

        Raises:
            AlreadyLoggedInError: The session is already logged in.
            ValidationError: The name is empty.
            AccountNotFoundError: No account has this name.
            InvalidCredentialError: The credential does not match.
            AccountInactiveError: The account is SUSPENDED or CLOSED.
        """
        if session.is_logged_in:
            raise AlreadyLoggedInError()

        name = (name or "").strip()
        if not name:
            raise ValidationError("Name cannot be empty")

        account = await self._store.get_by_name(name)
        if account is None:
            raise AccountNotFoundError(name)

        # Argon2 verification is CPU-bound; keep it off the event loop
        matches = await asyncio.to_thread(
            verify_credential, credential or "", account.credential_hash
        )
        if not matches:
            logger.info("Rejected login for account %s: invalid credential", account.id)
            raise InvalidCredentialError()

        if not account.is_active:
            raise AccountInactiveError(account.id, account.status.value)

        await self._store.update_last_login(account.id)
        session.account_id = account.id
        logger.info("Session %s logged in to account %s", session.id, account.id)

        refreshed = await self._store.get_by_id(account.id)
        return refreshed if refreshed is not None else account

    def logout(self, session: Session) -> None:
        """
        Raises:
            NoActiveSessionError: The session is not logged in.
        """
        if not session.is_logged_in:
            raise NoActiveSessionError()
        logger.info("Session %s logged out of account %s", session.id, session.account_id)
        session.account_id = None

    def current_account(self, session: Session) -> uuid.UUID | None:
        return session.account_id

    def require_account(self, session: Session) -> uuid.UUID:
        """
        The authorized account id, for operations that need one.

        Raises:
            NoActiveSessionError: The session is not logged in.
        """
        if session.account_id is None:
            raise NoActiveSessionError()
        return session.account_id
