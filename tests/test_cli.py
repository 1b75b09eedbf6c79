"""
Tests for the terminal front end.

The REPL is driven with scripted read_line / read_secret callables and a
write callable that collects output, so no real terminal is involved.
"""

import logging

import pytest

from atm.cli import (
    MEMORY_URL,
    build_facade,
    build_parser,
    list_accounts,
    main,
    open_store,
    run_repl,
)
from atm.models.account import AccountStatus
from atm.repositories import InMemoryAccountStore, SqlAccountStore


class Script:
    """Feeds prepared lines to the REPL and records what it prints."""

    def __init__(self, lines, secrets=()):
        self._lines = list(lines)
        self._secrets = list(secrets)
        self.prompts = []
        self.output = []

    def read_line(self, prompt):
        self.prompts.append(prompt)
        if not self._lines:
            raise EOFError
        return self._lines.pop(0)

    def read_secret(self, prompt):
        self.prompts.append(prompt)
        return self._secrets.pop(0)

    def write(self, text):
        self.output.append(text)

    @property
    def text(self):
        return "\n".join(self.output)


@pytest.fixture
def memory_facade():
    return build_facade(InMemoryAccountStore())


@pytest.fixture
def restore_root_logger():
    """main() reconfigures the root logger; put it back afterwards."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


async def drive(facade, script):
    await run_repl(
        facade,
        read_line=script.read_line,
        write=script.write,
        read_secret=script.read_secret,
    )


class TestRepl:

    async def test_menu_then_goodbye_on_eof(self, memory_facade):
        script = Script([])
        await drive(memory_facade, script)
        assert script.output[0].startswith("ATM Menu:")
        assert script.output[-1] == "Goodbye!"

    async def test_exit_command(self, memory_facade):
        script = Script(["exit", "balance"])
        await drive(memory_facade, script)
        assert script.output[-1] == "Goodbye!"
        # "balance" was never read
        assert script.prompts.count("> ") == 1

    async def test_blank_lines_are_skipped(self, memory_facade):
        script = Script(["", "   ", "exit"])
        await drive(memory_facade, script)
        assert script.output == [script.output[0], "Goodbye!"]

    async def test_register_prompts_for_missing_arguments(self, memory_facade):
        script = Script(["register", "Alice", "100", "exit"])
        await drive(memory_facade, script)
        assert "Enter name: " in script.prompts
        assert "Enter initial balance: " in script.prompts
        assert "Registration successful!" in script.text

    async def test_login_prompts_for_pin(self, memory_facade):
        registered = await memory_facade.register("Alice", "100")
        credential = registered.data["credential"]

        script = Script(["login Alice", "withdraw 40", "exit"], secrets=[credential])
        await drive(memory_facade, script)

        assert "Enter PIN: " in script.prompts
        assert "Welcome Alice!" in script.text
        assert "New balance: $60.00" in script.text
        # the credential typed at the hidden prompt is never echoed
        assert credential not in script.text

    async def test_errors_are_printed(self, memory_facade):
        script = Script(["withdraw 10", "fly away", "exit"])
        await drive(memory_facade, script)
        assert "Error: No active session" in script.output
        assert "Unknown command" in script.output

    async def test_eof_logs_out(self, memory_facade):
        registered = await memory_facade.register("Alice", "100")
        script = Script([f"login Alice {registered.data['credential']}"])
        await drive(memory_facade, script)
        assert script.output[-1] == "Goodbye!"


class TestAdminCommands:

    async def test_list_accounts_empty(self, memory_facade):
        output = []
        await list_accounts(memory_facade.ledger, write=output.append)
        assert output == ["No accounts"]

    async def test_list_accounts(self, memory_facade):
        alice = (await memory_facade.register("Alice", "1234.5")).data
        output = []
        await list_accounts(memory_facade.ledger, write=output.append)
        assert len(output) == 1
        assert alice["account_number"] in output[0]
        assert "$1,234.50" in output[0]
        assert "active" in output[0]

    def test_set_status_command(self, tmp_path, capsys, restore_root_logger):
        url = f"sqlite+aiosqlite:///{tmp_path / 'atm.db'}"
        assert main(["--database-url", url, "accounts"]) == 0
        assert "No accounts" in capsys.readouterr().out

        assert main(["--database-url", url, "set-status", "8999999999999999", "closed"]) == 1
        assert "not found" in capsys.readouterr().out


class TestParser:

    def test_defaults(self):
        args = build_parser().parse_args([])
        assert args.command is None
        assert args.log_format in ("standard", "json")

    def test_set_status_arguments(self):
        args = build_parser().parse_args(["set-status", "8123456789012345", "suspended"])
        assert args.account_number == "8123456789012345"
        assert AccountStatus(args.status) == AccountStatus.SUSPENDED

    def test_rejects_unknown_status(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["set-status", "8123456789012345", "frozen"])

    def test_global_options(self):
        args = build_parser().parse_args(
            ["--database-url", MEMORY_URL, "--log-format", "json", "repl"]
        )
        assert args.database_url == MEMORY_URL
        assert args.log_format == "json"
        assert args.command == "repl"


class TestOpenStore:

    async def test_memory_url(self):
        store, engine = await open_store(MEMORY_URL)
        assert isinstance(store, InMemoryAccountStore)
        assert engine is None

    async def test_sqlite_file_is_created(self, tmp_path):
        path = tmp_path / "nested" / "atm.db"
        store, engine = await open_store(f"sqlite+aiosqlite:///{path}")
        try:
            assert isinstance(store, SqlAccountStore)
            assert path.parent.is_dir()
            assert await store.list_all() == []
        finally:
            await engine.dispose()
