"""
Tests for account number and credential generation.

These tests verify:
  - Account numbers are 16 digits and start with 8
  - Credentials are 6 digits
  - The format check accepts generated numbers and rejects malformed ones
"""

import pytest

from atm.services.identifiers import (
    generate_account_number,
    generate_credential,
    is_valid_account_number,
)


class TestAccountNumbers:

    def test_shape(self):
        for _ in range(200):
            number = generate_account_number()
            assert len(number) == 16
            assert number.isdigit()
            assert number.startswith("8")

    def test_numbers_vary(self):
        """15 random digits should practically never repeat in a small sample."""
        numbers = {generate_account_number() for _ in range(100)}
        assert len(numbers) == 100

    def test_generated_numbers_are_valid(self):
        assert all(is_valid_account_number(generate_account_number()) for _ in range(50))

    @pytest.mark.parametrize(
        "value",
        [
            "",
            "812345678901234",      # 15 digits
            "81234567890123456",    # 17 digits
            "7123456789012345",     # wrong prefix
            "81234567890123a5",
            " 8123456789012345",
            "８123456789012345",    # full-width digit
        ],
    )
    def test_malformed_numbers_rejected(self, value):
        assert not is_valid_account_number(value)


class TestCredentials:

    def test_shape(self):
        for _ in range(200):
            credential = generate_credential()
            assert len(credential) == 6
            assert credential.isdigit()
