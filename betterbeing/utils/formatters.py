"""
Serialization helpers for JSON responses.
Money goes out as fixed two-decimal strings, addresses as the JSON the client sent.
"""
import json
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from datetime import date, datetime
from typing import Any, Optional, Union

CENT = Decimal('0.01')


def to_money(value: Union[int, float, Decimal, str, None]) -> Decimal:
    """
    Coerce a numeric value to a Decimal rounded to cents.

    Floats go through str() so 0.1 stays 0.1 instead of its binary expansion.

    Examples:
        to_money(100) -> Decimal('100.00')
        to_money('34.995') -> Decimal('35.00')
    """
    if value is None:
        return Decimal('0.00')
    try:
        num = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Invalid money value: {value!r}") from e
    return num.quantize(CENT, rounding=ROUND_HALF_UP)


def money_str(value: Union[int, float, Decimal, str, None]) -> Optional[str]:
    """Format money for JSON: '280.00'. None stays None."""
    if value is None:
        return None
    return str(to_money(value))


def iso(value: Union[date, datetime, None]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat()


def dump_address(address: Any) -> str:
    """Serialize an address (object or free text) for a JSON text column."""
    return json.dumps(address)


def load_address(raw: Optional[str]) -> Any:
    """Inverse of dump_address; legacy plain-text rows come back as strings."""
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        return raw
