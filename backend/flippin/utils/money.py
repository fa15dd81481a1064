from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_decimal(value) -> Decimal:
    """Coerce ints, strings, floats and Decimals to Decimal.

    Floats go through ``str`` so 0.1 stays 0.1. Raises ``ValueError`` on
    anything that is not a finite number.
    """
    if isinstance(value, Decimal):
        parsed = value
    elif isinstance(value, bool) or value is None:
        raise ValueError(f"invalid_amount {value!r}")
    else:
        try:
            parsed = Decimal(str(value).strip())
        except (InvalidOperation, ValueError) as exc:
            raise ValueError(f"invalid_amount {value!r}") from exc
    if not parsed.is_finite():
        raise ValueError(f"invalid_amount {value!r}")
    return parsed


def quantize_cents(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def round_to_step(amount: Decimal, step: int | Decimal) -> Decimal:
    """Round half-up to the nearest multiple of ``step`` (e.g. 50 or 1)."""
    step_dec = Decimal(step)
    if step_dec <= 0:
        raise ValueError("rounding step must be positive")
    units = (amount / step_dec).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return quantize_cents(units * step_dec)


def money_str(amount: Decimal | None) -> str:
    return str(quantize_cents(amount if amount is not None else ZERO))


def format_rand(amount: Decimal | None) -> str:
    value = quantize_cents(amount if amount is not None else ZERO)
    if value == value.to_integral_value():
        return f"R{value:,.0f}"
    return f"R{value:,.2f}"
