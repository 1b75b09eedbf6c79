"""
Test fixtures for the ATM ledger test suite.

This module provides shared fixtures used across all test files:

  - db_engine / session_factory: Fresh in-memory SQLite database per test
  - sql_store: SqlAccountStore over that database
  - memory_store: InMemoryAccountStore
  - store: parametrized over both, for contract tests
  - ledger / sessions / facade: services wired to sql_store
  - alice / bob: registered accounts from the reference scenario

Key design decisions:
  - In-memory SQLite (sqlite+aiosqlite://) is used for speed and isolation.
    Each test gets a completely fresh database, so no state leaks between
    tests.
  - Retry backoff is zero in tests; the bounds stay small so contention
    paths run quickly.
  - Fixtures register accounts through LedgerService.register, so they
    exercise the real registration flow (not just inserts).
"""

import pytest
import pytest_asyncio

from atm.commands import CommandFacade
from atm.database import create_engine, create_session_factory, init_db
from atm.repositories import InMemoryAccountStore, SqlAccountStore
from atm.services import LedgerService, SessionManager


# In-memory SQLite for fast, isolated tests
TEST_DATABASE_URL = "sqlite+aiosqlite://"


def make_ledger(store, **overrides) -> LedgerService:
    options = {
        "balance_update_attempts": 5,
        "compensation_attempts": 10,
        "retry_backoff": 0.0,
    }
    options.update(overrides)
    return LedgerService(store, **options)


@pytest_asyncio.fixture
async def db_engine():
    """Create a fresh async engine with all tables for each test."""
    engine = create_engine(TEST_DATABASE_URL)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest_asyncio.fixture
async def sql_store(session_factory):
    return SqlAccountStore(session_factory)


@pytest.fixture
def memory_store():
    return InMemoryAccountStore()


@pytest_asyncio.fixture(params=["sql", "memory"])
async def store(request, session_factory):
    """Each store implementation in turn, for tests of the store contract."""
    if request.param == "sql":
        return SqlAccountStore(session_factory)
    return InMemoryAccountStore()


@pytest_asyncio.fixture
async def ledger(sql_store):
    return make_ledger(sql_store)


@pytest_asyncio.fixture
async def sessions(sql_store):
    return SessionManager(sql_store)


@pytest_asyncio.fixture
async def facade(ledger, sessions):
    return CommandFacade(ledger, sessions)


@pytest_asyncio.fixture
async def alice(ledger):
    """Alice, registered with $100.00."""
    return await ledger.register("Alice", 100_00)


@pytest_asyncio.fixture
async def bob(ledger):
    """Bob, registered with $10.00."""
    return await ledger.register("Bob", 10_00)
