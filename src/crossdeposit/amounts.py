"""Exact conversion between decimal token amounts and integer token units.

Amounts travel as decimal strings ("12.345") and are converted with Decimal
only, so no float rounding can creep in.
"""

import re
from decimal import Decimal, InvalidOperation

USDC_DECIMALS = 6

_AMOUNT_RE = re.compile(r"^\d+(\.\d+)?$")


class InvalidAmountError(ValueError):
    """Raised when an amount cannot be represented exactly in token units."""
    pass


def parse_units(amount: str, decimals: int = USDC_DECIMALS) -> int:
    """Convert a decimal string into integer token units.

    Args:
        amount: Plain decimal string, e.g. "12.345000"
        decimals: Token decimals

    Returns:
        Integer amount in the token's smallest unit

    Raises:
        InvalidAmountError: If the string is malformed, negative, or has
            more fraction digits than the token supports
    """
    text = str(amount).strip()
    if not _AMOUNT_RE.match(text):
        raise InvalidAmountError(f"Invalid amount: {amount!r}")

    fraction = text.partition(".")[2]
    if len(fraction.rstrip("0")) > decimals:
        raise InvalidAmountError(
            f"Amount {text} has more than {decimals} fractional digits"
        )

    try:
        units = Decimal(text).scaleb(decimals)
    except InvalidOperation as e:
        raise InvalidAmountError(f"Invalid amount: {amount!r}") from e

    return int(units)


def format_units(units: int, decimals: int = USDC_DECIMALS) -> str:
    """Convert integer token units back into a fixed-point decimal string.

    The result always carries exactly `decimals` fraction digits.
    """
    if units < 0:
        raise InvalidAmountError(f"Negative token units: {units}")

    value = Decimal(units).scaleb(-decimals)
    return f"{value:.{decimals}f}"


def to_decimal(amount: str, decimals: int = USDC_DECIMALS) -> Decimal:
    """Parse and normalise an amount to a Decimal with token precision."""
    return Decimal(parse_units(amount, decimals)).scaleb(-decimals)
