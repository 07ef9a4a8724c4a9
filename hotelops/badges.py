"""Badge colour variants for the status values shown across the dashboard."""

from types import MappingProxyType

from .pricing import PAID, PARTIAL, UNPAID

EVENT_STATUS_COLORS = MappingProxyType({
    'upcoming': 'info',
    'ongoing': 'success',
    'completed': 'secondary',
    'cancelled': 'destructive',
})

BOOKING_STATUS_COLORS = MappingProxyType({
    'checked-in': 'success',
    'confirmed': 'info',
    'checked-out': 'secondary',
    'cancelled': 'warning',
})

LAUNDRY_STATUS_COLORS = MappingProxyType({
    'received': 'info',
    'processing': 'warning',
    'ready': 'success',
    'delivered': 'secondary',
})

RESTAURANT_STATUS_COLORS = MappingProxyType({
    'pending': 'warning',
    'preparing': 'info',
    'ready': 'success',
    'delivered': 'secondary',
    'cancelled': 'destructive',
})

PAYMENT_STATUS_COLORS = MappingProxyType({
    PAID: 'success',
    PARTIAL: 'warning',
    UNPAID: 'secondary',
})


def badge_variant(colors, status, default='secondary'):
    return colors.get(status, default)
