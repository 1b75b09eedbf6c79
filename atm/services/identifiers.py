"""
Account number and credential generation.

Both are drawn from the `secrets` module (the OS CSPRNG): account numbers are
handed out publicly to receive transfers, and a predictable sequence would let
anyone enumerate them. The generators are stateless and promise nothing about
uniqueness; the ledger service checks candidates against the store and retries.
"""

import re
import secrets


ACCOUNT_NUMBER_PREFIX = "8"
ACCOUNT_NUMBER_LENGTH = 16
CREDENTIAL_LENGTH = 6

_ACCOUNT_NUMBER_RE = re.compile(
    rf"^{ACCOUNT_NUMBER_PREFIX}[0-9]{{{ACCOUNT_NUMBER_LENGTH - 1}}}$"
)


def _random_digits(count: int) -> str:
    return "".join(str(secrets.randbelow(10)) for _ in range(count))


def generate_account_number() -> str:
    """A candidate 16-digit account number: "8" followed by 15 random digits."""
    return ACCOUNT_NUMBER_PREFIX + _random_digits(ACCOUNT_NUMBER_LENGTH - 1)


def generate_credential() -> str:
    """A 6-digit numeric credential. Leading zeros are kept."""
    return _random_digits(CREDENTIAL_LENGTH)


def is_valid_account_number(value: str) -> bool:
    """True if `value` has the account number shape (16 digits, leading "8")."""
    return bool(_ACCOUNT_NUMBER_RE.fullmatch(value))
