from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

CENT = Decimal("0.01")
RATIO_PLACES = Decimal("0.0001")
# 15 significant digits: every amount up to here survives the float step of JSON output.
MAX_AMOUNT_CENTS = 999_999_999_999_999


def amount_to_cents(value: Union[Decimal, int, str]) -> int:
    """Convert a decimal amount to integer cents.

    Amounts with more than two fractional digits are rejected instead of being
    silently rounded.
    """
    try:
        amount = Decimal(str(value))
        if not amount.is_finite():
            raise ValueError(f"Invalid amount: {value!r}")
        quantized = amount.quantize(CENT)
    except InvalidOperation as exc:
        raise ValueError(f"Invalid amount: {value!r}") from exc
    if amount != quantized:
        raise ValueError("Amounts support at most two decimal places")
    cents = int(quantized * 100)
    if abs(cents) > MAX_AMOUNT_CENTS:
        raise ValueError(
            f"Amount exceeds the maximum of {format_amount(MAX_AMOUNT_CENTS)}"
        )
    return cents


def cents_to_amount(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(CENT)


def ratio(part_cents: int, whole_cents: int) -> Decimal:
    if whole_cents <= 0:
        return Decimal("0")
    return (Decimal(part_cents) / Decimal(whole_cents)).quantize(
        RATIO_PLACES, rounding=ROUND_HALF_UP
    )


def format_amount(cents: int) -> str:
    return f"{cents_to_amount(cents):,.2f}"


def format_percent(value: Decimal) -> str:
    return f"{(value * 100).quantize(Decimal('1'), rounding=ROUND_HALF_UP)}%"
