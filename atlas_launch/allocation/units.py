"""Decimal amount to fixed-point token unit conversion."""

from decimal import Decimal, InvalidOperation, localcontext
from typing import Any

from ..errors import InvalidAmountError

DEFAULT_DECIMALS = 18


def parse_units(value: Any, decimals: int = DEFAULT_DECIMALS) -> int:
    """
    Convert a decimal amount in whole tokens to integer units.

    Never rounds: an amount with more fractional digits than the token
    supports is rejected.

    Args:
        value: Decimal string or integer, e.g. "300000000" or "0.5"
        decimals: Token decimal precision

    Returns:
        Amount in the token's smallest unit

    Raises:
        InvalidAmountError: malformed, negative, non-finite or too precise
    """
    if isinstance(value, (bool, float)) or value is None:
        raise InvalidAmountError(
            f"Amount must be a decimal string or integer, got {value!r}",
            raw_value=value, decimals=decimals
        )

    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise InvalidAmountError(
            f"Not a decimal amount: {value!r}", raw_value=value, decimals=decimals
        ) from None

    if not amount.is_finite() or amount < 0:
        raise InvalidAmountError(
            f"Amount must be finite and non-negative: {value!r}",
            raw_value=value, decimals=decimals
        )

    with localcontext() as ctx:
        ctx.prec = 200
        scaled = amount.scaleb(decimals)
        if scaled != scaled.to_integral_value():
            raise InvalidAmountError(
                f"Amount {value!r} has more than {decimals} fractional digits",
                raw_value=value, decimals=decimals
            )
        return int(scaled)


def format_units(units: int, decimals: int = DEFAULT_DECIMALS) -> str:
    """Render integer units as a plain decimal string."""
    with localcontext() as ctx:
        ctx.prec = 200
        text = format(Decimal(units).scaleb(-decimals), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text
