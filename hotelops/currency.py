"""Currency display helpers."""

from decimal import Decimal, InvalidOperation

from django.conf import settings


def _symbol():
    return getattr(settings, 'HOTELOPS_CURRENCY_SYMBOL', '₦')


def _to_decimal(amount):
    if amount is None or amount == '' or isinstance(amount, bool):
        return None
    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation:
        return None
    return value if value.is_finite() else None


def format_currency(amount, show_decimal=False):
    """Format ``amount`` with the configured symbol: 1500 -> '₦1,500'."""
    value = _to_decimal(amount)
    if value is None:
        return f"{_symbol()}0"

    if show_decimal:
        return f"{_symbol()}{value:,.2f}"
    # Whole amounts print bare; fractions keep up to three places.
    if value == value.to_integral_value():
        return f"{_symbol()}{value:,.0f}"
    return f"{_symbol()}{value.quantize(Decimal('0.001')).normalize():,f}"


def format_currency_compact(amount):
    """Short form for dashboard tiles: '₦1.5k', '₦2.3M'."""
    value = _to_decimal(amount)
    if value is None:
        return f"{_symbol()}0"

    if value >= 1000000:
        return f"{_symbol()}{value / 1000000:.1f}M"
    if value >= 1000:
        return f"{_symbol()}{value / 1000:.1f}k"
    return format_currency(value)


def currency_code():
    return getattr(settings, 'HOTELOPS_CURRENCY_CODE', 'NGN')
