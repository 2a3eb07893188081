"""
Checkout pricing.

subtotal = sum(price * qty), tax = subtotal * rate, shipping free only when
subtotal is strictly above the threshold, total = subtotal + tax + shipping.
Loyalty points are one per whole currency unit of the total.
"""
from decimal import Decimal, ROUND_FLOOR
from typing import Any, Dict, Iterable, Mapping

from betterbeing.utils.formatters import to_money

DEFAULT_TAX_RATE = Decimal('0.15')
DEFAULT_FREE_SHIPPING_THRESHOLD = Decimal('500')
DEFAULT_SHIPPING_FEE = Decimal('50')


def loyalty_points_for(total) -> int:
    """floor(total) as an int."""
    return int(Decimal(str(total)).to_integral_value(rounding=ROUND_FLOOR))


def shipping_for(subtotal, free_shipping_threshold=DEFAULT_FREE_SHIPPING_THRESHOLD,
                 shipping_fee=DEFAULT_SHIPPING_FEE) -> Decimal:
    if to_money(subtotal) > Decimal(str(free_shipping_threshold)):
        return to_money(0)
    return to_money(shipping_fee)


def calculate_order_totals(
    lines: Iterable[Mapping[str, Any]],
    tax_rate=DEFAULT_TAX_RATE,
    free_shipping_threshold=DEFAULT_FREE_SHIPPING_THRESHOLD,
    shipping_fee=DEFAULT_SHIPPING_FEE,
) -> Dict[str, Any]:
    """
    Calculate order totals from priced lines.

    Args:
        lines: mappings with 'unit_price' and 'quantity'
        tax_rate: VAT rate applied to the subtotal
        free_shipping_threshold: subtotal must exceed this for free shipping
        shipping_fee: flat fee otherwise

    Returns:
        dict with subtotal, tax, shipping, total (Decimal) and loyalty_points (int)
    """
    subtotal = Decimal('0')
    for line in lines:
        subtotal += to_money(line['unit_price']) * int(line['quantity'])
    subtotal = to_money(subtotal)

    tax = to_money(subtotal * Decimal(str(tax_rate)))
    shipping = shipping_for(subtotal, free_shipping_threshold, shipping_fee)
    total = to_money(subtotal + tax + shipping)

    return {
        'subtotal': subtotal,
        'tax': tax,
        'shipping': shipping,
        'total': total,
        'loyalty_points': loyalty_points_for(total),
    }


def pricing_from_config(config: Mapping[str, Any]) -> Dict[str, Decimal]:
    """Keyword arguments for calculate_order_totals taken from app config."""
    return {
        'tax_rate': Decimal(str(config.get('TAX_RATE', DEFAULT_TAX_RATE))),
        'free_shipping_threshold': Decimal(str(config.get('FREE_SHIPPING_THRESHOLD', DEFAULT_FREE_SHIPPING_THRESHOLD))),
        'shipping_fee': Decimal(str(config.get('SHIPPING_FEE', DEFAULT_SHIPPING_FEE))),
    }
