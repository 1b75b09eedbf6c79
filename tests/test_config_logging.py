"""Tests for settings, logging setup and the exception hierarchy."""

import json
import logging
import sys

import pytest

from atm.config import Settings
from atm.exceptions import (
    AccountNotFoundError,
    ContentionError,
    DuplicateAccountNumberError,
    DuplicateNameError,
    LedgerError,
    PersistenceError,
    TargetNotFoundError,
    TransferFailedError,
    ValidationError,
)
from atm.logging_config import JsonFormatter, setup_logging


class TestSettings:

    def test_defaults(self, monkeypatch):
        for name in ("DATABASE_URL", "LOG_LEVEL", "BALANCE_UPDATE_MAX_ATTEMPTS"):
            monkeypatch.delenv(name, raising=False)
        config = Settings(_env_file=None)

        assert config.DATABASE_URL.startswith("sqlite+aiosqlite://")
        assert config.LOG_LEVEL == "WARNING"
        assert config.ACCOUNT_NUMBER_MAX_ATTEMPTS == 10
        assert config.BALANCE_UPDATE_MAX_ATTEMPTS == 5
        assert config.COMPENSATION_MAX_ATTEMPTS > config.BALANCE_UPDATE_MAX_ATTEMPTS

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///tmp/other.db")
        monkeypatch.setenv("balance_update_max_attempts", "9")
        config = Settings(_env_file=None)

        assert config.DATABASE_URL == "sqlite+aiosqlite:///tmp/other.db"
        assert config.BALANCE_UPDATE_MAX_ATTEMPTS == 9

    def test_env_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("LOG_FORMAT", raising=False)
        env_file = tmp_path / ".env"
        env_file.write_text("LOG_FORMAT=json\nUNRELATED=1\n")

        assert Settings(_env_file=env_file).LOG_FORMAT == "json"


class TestSetupLogging:

    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_standard_format(self):
        setup_logging("DEBUG")
        root = logging.getLogger()

        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert root.handlers[0].stream is sys.stderr
        assert not isinstance(root.handlers[0].formatter, JsonFormatter)
        assert logging.getLogger("atm").level == logging.DEBUG

    def test_json_format(self):
        setup_logging("INFO", "json")
        assert isinstance(logging.getLogger().handlers[0].formatter, JsonFormatter)

    def test_unknown_level_falls_back_to_warning(self):
        setup_logging("CHATTY")
        assert logging.getLogger().level == logging.WARNING

    def test_library_noise_is_reduced(self):
        setup_logging("DEBUG")
        assert logging.getLogger("passlib").level == logging.ERROR


class TestJsonFormatter:

    def test_format(self):
        record = logging.LogRecord(
            "atm.services.ledger_service", logging.INFO, __file__, 1,
            "Withdrew %d cents", (4000,), None,
        )
        data = json.loads(JsonFormatter().format(record))

        assert data["level"] == "INFO"
        assert data["logger"] == "atm.services.ledger_service"
        assert data["message"] == "Withdrew 4000 cents"
        assert "timestamp" in data

    def test_exception_info(self):
        try:
            raise ContentionError("acct", 3)
        except ContentionError:
            record = logging.LogRecord(
                "atm", logging.ERROR, __file__, 1, "failed", (), sys.exc_info(),
            )
        data = json.loads(JsonFormatter().format(record))
        assert "ContentionError" in data["exception"]


class TestExceptionHierarchy:

    def test_all_are_ledger_errors(self):
        for err in (
            ValidationError("bad"),
            AccountNotFoundError("Alice"),
            TargetNotFoundError("8123456789012345"),
            PersistenceError("down"),
        ):
            assert isinstance(err, LedgerError)

    def test_duplicate_name_is_validation_error(self):
        err = DuplicateNameError("Alice")
        assert isinstance(err, ValidationError)
        assert err.error_type == "duplicate_name"

    def test_duplicate_account_number_is_persistence_error(self):
        assert isinstance(DuplicateAccountNumberError("8123456789012345"), PersistenceError)

    def test_transfer_failed_attributes(self):
        err = TransferFailedError(
            account_id="a", amount_cents=5_00, reference_id="r", funds_returned=False
        )
        assert err.funds_returned is False
        assert err.amount_cents == 5_00
        assert err.error_type == "transfer_failed"

    def test_detail_is_message(self):
        assert str(ValidationError("Name cannot be empty")) == "Name cannot be empty"
