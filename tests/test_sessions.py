"""
Tests for login, logout and session authorization.

These tests verify:
  - Login with the registered name and credential binds the session
  - Wrong credential, unknown name and inactive accounts are rejected
  - A logged-in session cannot log in again
  - Logout clears the session; logging out twice is rejected
  - require_account gates account operations
"""

import uuid

import pytest

from atm.exceptions import (
    AccountInactiveError,
    AccountNotFoundError,
    AlreadyLoggedInError,
    InvalidCredentialError,
    NoActiveSessionError,
    ValidationError,
)
from atm.models.account import AccountStatus
from atm.services import Session


class TestLogin:

    async def test_login_success(self, sessions, alice):
        session = sessions.open_session()
        account = await sessions.login(session, "Alice", alice.credential)
        assert account.id == alice.id
        assert account.last_login_at is not None
        assert session.is_logged_in
        assert sessions.current_account(session) == alice.id

    async def test_login_trims_name(self, sessions, alice):
        session = sessions.open_session()
        await sessions.login(session, "  Alice ", alice.credential)
        assert session.account_id == alice.id

    async def test_wrong_credential(self, sessions, alice):
        session = sessions.open_session()
        wrong = "000000" if alice.credential != "000000" else "111111"
        with pytest.raises(InvalidCredentialError):
            await sessions.login(session, "Alice", wrong)
        assert not session.is_logged_in

    async def test_unknown_name(self, sessions, alice):
        session = sessions.open_session()
        with pytest.raises(AccountNotFoundError):
            await sessions.login(session, "Mallory", "123456")
        assert not session.is_logged_in

    async def test_empty_name(self, sessions):
        with pytest.raises(ValidationError):
            await sessions.login(sessions.open_session(), "   ", "123456")

    async def test_name_is_case_sensitive(self, sessions, alice):
        with pytest.raises(AccountNotFoundError):
            await sessions.login(sessions.open_session(), "alice", alice.credential)

    @pytest.mark.parametrize("status", [AccountStatus.SUSPENDED, AccountStatus.CLOSED])
    async def test_inactive_account(self, sessions, ledger, alice, status):
        await ledger.admin_set_status(alice.account_number, status)
        session = sessions.open_session()
        with pytest.raises(AccountInactiveError):
            await sessions.login(session, "Alice", alice.credential)
        assert not session.is_logged_in

    async def test_already_logged_in(self, sessions, alice, bob):
        session = sessions.open_session()
        await sessions.login(session, "Alice", alice.credential)
        with pytest.raises(AlreadyLoggedInError):
            await sessions.login(session, "Bob", bob.credential)
        assert session.account_id == alice.id

    async def test_other_session_can_log_in(self, sessions, alice, bob):
        first = sessions.open_session()
        second = sessions.open_session()
        await sessions.login(first, "Alice", alice.credential)
        await sessions.login(second, "Bob", bob.credential)
        assert first.account_id == alice.id
        assert second.account_id == bob.id


class TestLogout:

    async def test_logout(self, sessions, alice):
        session = sessions.open_session()
        await sessions.login(session, "Alice", alice.credential)
        sessions.logout(session)
        assert not session.is_logged_in
        assert sessions.current_account(session) is None

    def test_logout_without_login(self, sessions):
        with pytest.raises(NoActiveSessionError):
            sessions.logout(sessions.open_session())

    async def test_login_again_after_logout(self, sessions, alice, bob):
        session = sessions.open_session()
        await sessions.login(session, "Alice", alice.credential)
        sessions.logout(session)
        await sessions.login(session, "Bob", bob.credential)
        assert session.account_id == bob.id


class TestRequireAccount:

    def test_logged_out_session(self, sessions):
        with pytest.raises(NoActiveSessionError):
            sessions.require_account(Session())

    def test_logged_in_session(self, sessions):
        account_id = uuid.uuid4()
        assert sessions.require_account(Session(account_id=account_id)) == account_id

    def test_sessions_have_distinct_ids(self, sessions):
        assert sessions.open_session().id != sessions.open_session().id
