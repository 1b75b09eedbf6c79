"""
Terminal front end.

Usage:
    atm                                   # interactive menu (same as "atm repl")
    atm accounts                          # list every account, newest first
    atm set-status 8123456789012345 suspended

    atm --database-url memory:// repl     # throwaway in-memory ledger

The REPL owns exactly one Session. Commands typed without their arguments
are completed interactively: "register" asks for the name and opening
balance, and "login <name>" asks for the credential without echoing it.
"""

import argparse
import asyncio
import getpass
import logging
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncEngine

from atm.commands import CommandFacade, split_login_args
from atm.config import settings
from atm.database import create_engine, create_session_factory, init_db
from atm.exceptions import LedgerError
from atm.logging_config import setup_logging
from atm.models.account import AccountStatus
from atm.money import format_cents
from atm.repositories import AccountStore, InMemoryAccountStore, SqlAccountStore
from atm.services import LedgerService, SessionManager

logger = logging.getLogger(__name__)

MEMORY_URL = "memory://"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="atm",
        description=f"{settings.APP_NAME} {settings.APP_VERSION} - terminal banking simulator",
    )
    parser.add_argument(
        "--database-url",
        default=settings.DATABASE_URL,
        help=f"SQLAlchemy async URL, or {MEMORY_URL} (default: %(default)s)",
    )
    parser.add_argument("--log-level", default=settings.LOG_LEVEL)
    parser.add_argument(
        "--log-format",
        choices=["standard", "json"],
        default=settings.LOG_FORMAT,
    )

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("repl", help="Interactive ATM menu (default)")
    subparsers.add_parser("accounts", help="List all accounts")

    status_parser = subparsers.add_parser("set-status", help="Change an account's status")
    status_parser.add_argument("account_number")
    status_parser.add_argument(
        "status",
        choices=[status.value for status in AccountStatus],
    )

    return parser


async def open_store(database_url: str) -> tuple[AccountStore, AsyncEngine | None]:
    """Build the store for `database_url`, creating tables if needed."""
    if database_url == MEMORY_URL:
        return InMemoryAccountStore(), None

    engine = create_engine(database_url)
    await init_db(engine)
    return SqlAccountStore(create_session_factory(engine)), engine


def build_facade(store: AccountStore) -> CommandFacade:
    return CommandFacade(LedgerService(store), SessionManager(store))


async def _complete_line(
    line: str,
    read_line: Callable[[str], str],
    read_secret: Callable[[str], str],
) -> str:
    """Prompt for arguments the user left out of register/login."""
    parts = line.split()
    command = parts[0].lower()

    if command == "register" and len(parts) == 1:
        name = (await asyncio.to_thread(read_line, "Enter name: ")).strip()
        balance = (await asyncio.to_thread(read_line, "Enter initial balance: ")).strip()
        return f"register {name} {balance}"

    if command == "login" and len(parts) >= 2:
        _, credential = split_login_args(parts[1:])
        if credential is None:
            pin = await asyncio.to_thread(read_secret, "Enter PIN: ")
            return f"{line} {pin.strip()}"

    return line


async def run_repl(
    facade: CommandFacade,
    read_line: Callable[[str], str] = input,
    write: Callable[[str], None] = print,
    read_secret: Callable[[str], str] = getpass.getpass,
) -> None:
    """Read commands until "exit" or end of input."""
    session = facade.open_session()
    write(facade.help().message)

    while True:
        try:
            line = await asyncio.to_thread(read_line, "> ")
            line = line.strip()
            if not line:
                continue
            line = await _complete_line(line, read_line, read_secret)
        except EOFError:
            if session.is_logged_in:
                facade.logout(session)
            write("Goodbye!")
            return

        result = await facade.dispatch(session, line)
        write(result.message)
        if result.exit:
            return


async def list_accounts(ledger: LedgerService, write: Callable[[str], None] = print) -> None:
    accounts = await ledger.admin_list_accounts()
    if not accounts:
        write("No accounts")
        return
    for account in accounts:
        write(
            f"{account.account_number}  {account.status.value:<9}  "
            f"{format_cents(account.balance_cents):>14}  {account.name}"
        )


async def _run(args: argparse.Namespace) -> int:
    store, engine = await open_store(args.database_url)
    try:
        facade = build_facade(store)

        if args.command == "accounts":
            await list_accounts(facade.ledger)
        elif args.command == "set-status":
            try:
                account = await facade.ledger.admin_set_status(
                    args.account_number, AccountStatus(args.status)
                )
            except LedgerError as exc:
                print(f"Error: {exc.detail}")
                return 1
            print(f"Account {account.account_number} is now {account.status.value}")
        else:
            await run_repl(facade)
        return 0
    finally:
        await store.close()
        if engine is not None:
            await engine.dispose()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level, args.log_format)
    try:
        return asyncio.run(_run(args))
    except KeyboardInterrupt:
        return 130
