"""
Conversions between decimal amounts typed at the terminal and integer cents.

The ledger only ever does integer arithmetic on cents. Text such as "40" or
"40.25" is turned into cents here, and cents are turned back into "40.25"
for display. Amounts with more than two fractional digits are rejected
rather than rounded: silently rounding money is never what the customer meant.
"""

from decimal import Decimal, InvalidOperation

from atm.exceptions import ValidationError


CENTS_PER_UNIT = 100
# Largest amount or balance a signed 64-bit INTEGER column can hold
MAX_AMOUNT_CENTS = 2**63 - 1
_TWO_PLACES = Decimal("0.01")


def parse_amount(text: str) -> int:
    """
    Parse a decimal amount into integer cents.

    The sign is preserved: range checks (positive for withdrawals,
    non-negative for opening balances) belong to the ledger.

    Raises:
        ValidationError: If the text is not a finite number with at most two
            fractional digits, or is beyond MAX_AMOUNT_CENTS.
    """
    try:
        value = Decimal(text.strip())
        if not value.is_finite():
            raise ValidationError(f"Invalid number format: {text!r}")
        quantized = value.quantize(_TWO_PLACES)
    except InvalidOperation:
        raise ValidationError(f"Invalid number format: {text!r}")

    if value != quantized:
        raise ValidationError(f"Amounts have at most two decimal places: {text!r}")

    cents = int(value * CENTS_PER_UNIT)
    if abs(cents) > MAX_AMOUNT_CENTS:
        raise ValidationError(f"Amount is too large: {text!r}")
    return cents


def cents_to_decimal(cents: int) -> Decimal:
    return (Decimal(cents) / CENTS_PER_UNIT).quantize(_TWO_PLACES)


def format_cents(cents: int) -> str:
    """Render cents for display, e.g. 6000 -> "$60.00"."""
    return f"${cents_to_decimal(cents):,.2f}"
