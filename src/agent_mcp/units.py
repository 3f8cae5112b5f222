"""Exact conversions between base units (wei) and display amounts."""

from decimal import Decimal

ETHER_DECIMALS = 18


def format_units(value: int, decimals: int) -> str:
    """Format an integer amount of base units as a decimal string.

    Always keeps at least one fractional digit, so one ether formats as ``"1.0"``.

    >>> format_units(1500000000000000000, 18)
    '1.5'
    """
    negative = value < 0
    whole, frac = divmod(abs(value), 10**decimals)
    frac_text = str(frac).rjust(decimals, "0").rstrip("0") if decimals else ""
    text = f"{whole}.{frac_text or '0'}"
    return f"-{text}" if negative else text


def parse_units(amount: Decimal | str | int, decimals: int) -> int:
    """Convert a decimal amount to integer base units.

    Raises:
        ValueError: If the amount has more fractional digits than ``decimals``.
    """
    value = Decimal(str(amount)) if not isinstance(amount, Decimal) else amount
    if not value.is_finite():
        raise ValueError(f"{amount} is not a finite amount")
    # Integer arithmetic on the digits, so no context precision can round it
    sign, digits, exponent = value.as_tuple()
    coefficient = int("".join(map(str, digits)))
    shift = exponent + decimals
    if shift >= 0:
        units = coefficient * 10**shift
    else:
        units, remainder = divmod(coefficient, 10**-shift)
        if remainder:
            raise ValueError(f"{amount} has more than {decimals} fractional digits")
    return -units if sign else units


def format_ether(wei: int) -> str:
    return format_units(wei, ETHER_DECIMALS)


def parse_ether(amount: Decimal | str | int) -> int:
    return parse_units(amount, ETHER_DECIMALS)
