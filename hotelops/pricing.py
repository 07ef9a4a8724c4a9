"""
Price aggregation and payment-status helpers.

Every function here is pure and never raises on bad numeric input: missing
or unparseable quantities and prices count as zero. They back the live
estimates shown while an order is being drafted as well as the totals
stored when a record is saved.
"""

import math
import re
from collections import namedtuple
from decimal import Decimal, InvalidOperation

ZERO = Decimal('0')

PAID = 'Paid'
PARTIAL = 'Partial'
UNPAID = 'Unpaid'

PAYMENT_STATUSES = (PAID, PARTIAL, UNPAID)

HOURLY = 'hourly'
DAILY = 'daily'

_INTEGER_PREFIX = re.compile(r'^\s*([+-]?\d+)')

OrderLine = namedtuple('OrderLine', ['item_id', 'quantity', 'unit_price_components'])
ReceiptItem = namedtuple('ReceiptItem', ['name', 'quantity', 'price', 'subtotal'])
EventEstimate = namedtuple('EventEstimate', ['hours', 'days', 'estimate'])
StayEstimate = namedtuple('StayEstimate', ['nights', 'total'])


def coerce_quantity(value):
    """
    Read a quantity the way a form field would.

    Integers pass through, floats are truncated and strings are read up to
    their first non-digit ("3 shirts" -> 3, "2.7" -> 2). Anything else, or
    a negative result, is 0.
    """
    if value is None or isinstance(value, bool):
        return 0

    if isinstance(value, int):
        quantity = value
    elif isinstance(value, (float, Decimal)):
        try:
            quantity = int(value)
        except (ValueError, OverflowError, InvalidOperation):
            return 0
    else:
        match = _INTEGER_PREFIX.match(str(value))
        if not match:
            return 0
        quantity = int(match.group(1))

    return quantity if quantity > 0 else 0


def coerce_amount(value):
    """Convert a price or amount to Decimal. Missing or invalid input is 0."""
    if value is None or isinstance(value, bool) or value == '':
        return ZERO

    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            return ZERO

    if not amount.is_finite():
        return ZERO
    return amount


def _field(line, name, default=None):
    if isinstance(line, dict):
        return line.get(name, default)
    return getattr(line, name, default)


def line_unit_price(line):
    """Effective unit price of a line: the sum of its price components."""
    components = _field(line, 'unit_price_components') or ()
    return sum((coerce_amount(component) for component in components), ZERO)


def line_subtotal(line):
    return coerce_quantity(_field(line, 'quantity')) * line_unit_price(line)


def calculate_total(lines):
    """
    Subtotal of a draft order.

    ``lines`` is any iterable of OrderLine tuples or dicts carrying
    ``quantity`` and ``unit_price_components``. The result is
    sum(quantity * sum(components)) over all lines.
    """
    return sum((line_subtotal(line) for line in lines), ZERO)


class PriceLookup:
    """
    Read-only catalog price table.

    Built from rows shaped either ``{'category_id', 'service_id', 'price'}``
    (two-axis catalogs such as laundry) or ``{'item_id', 'price'}``. Unknown
    keys price at 0.
    """

    def __init__(self, rows=()):
        prices = {}
        services = {}
        for row in rows:
            if 'item_id' in row:
                key = (str(row['item_id']), None)
            else:
                key = (str(row.get('category_id')), str(row.get('service_id')))
                services.setdefault(key[0], []).append(key[1])
            prices[key] = coerce_amount(row.get('price'))
        self._prices = prices
        self._services = {category: tuple(ids) for category, ids in services.items()}

    def __len__(self):
        return len(self._prices)

    def __contains__(self, key):
        category_id, service_id = key if isinstance(key, tuple) else (key, None)
        return self._key(category_id, service_id) in self._prices

    @staticmethod
    def _key(category_id, service_id):
        return (str(category_id), None if service_id is None else str(service_id))

    def price(self, category_id, service_id=None):
        return self._prices.get(self._key(category_id, service_id), ZERO)

    def available_services(self, category_id):
        """Service ids that have a price configured for ``category_id``."""
        return self._services.get(str(category_id), ())

    def order_line(self, category_id, service_ids, quantity):
        """Resolve one composite item into an OrderLine."""
        components = tuple(self.price(category_id, service_id) for service_id in service_ids)
        return OrderLine(category_id, quantity, components)


def service_ids_of(item):
    """Selected service ids of a draft item; anything but a list counts as none."""
    service_ids = item.get('service_ids')
    return tuple(service_ids) if isinstance(service_ids, (list, tuple)) else ()


def calculate_laundry_total(items, lookup):
    """
    Total for laundry items, each a dict with ``clothing_type_id``,
    ``service_ids`` and ``quantity``. Items that are not dicts are skipped.
    """
    lines = (
        lookup.order_line(item.get('clothing_type_id'), service_ids_of(item), item.get('quantity'))
        for item in items
        if isinstance(item, dict)
    )
    return calculate_total(lines)


def build_receipt_items(items, lookup, names=None):
    """
    Receipt rows for single-axis catalog items.

    ``items`` are dicts with ``item_id`` and ``quantity``; ``names`` maps
    item ids to display names. Unknown items price at 0.
    """
    names = names or {}
    receipt = []
    for item in items:
        if not isinstance(item, dict):
            continue
        item_id = str(item.get('item_id'))
        quantity = coerce_quantity(item.get('quantity'))
        price = lookup.price(item_id)
        receipt.append(ReceiptItem(
            name=names.get(item_id, 'Unknown'),
            quantity=quantity,
            price=price,
            subtotal=price * quantity,
        ))
    return receipt


# --- Payment status ---

def classify_payment(total_amount, paid_amount):
    """
    Classify a charge as Paid, Partial or Unpaid.

    Comparison is exact. A zero total with nothing paid satisfies
    ``paid >= total`` and therefore reads as Paid.
    """
    total = coerce_amount(total_amount)
    paid = coerce_amount(paid_amount)

    if paid >= total:
        return PAID
    if paid > 0:
        return PARTIAL
    return UNPAID


def balance_due(total_amount, paid_amount):
    """Outstanding amount. Negative when overpaid; never clamped."""
    return coerce_amount(total_amount) - coerce_amount(paid_amount)


# --- Durations ---

def _seconds_between(start, end):
    return (end - start).total_seconds()


def calculate_nights(check_in, check_out):
    """Nights between two datetimes, rounded up. Zero or negative if out of order."""
    return math.ceil(_seconds_between(check_in, check_out) / 86400)


def estimate_stay(check_in, check_out, nightly_rate):
    """Public booking summary: nights floor at 0, total = nights * rate."""
    if not check_in or not check_out:
        return StayEstimate(0, ZERO)
    nights = max(0, calculate_nights(check_in, check_out))
    return StayEstimate(nights, nights * coerce_amount(nightly_rate))


def event_duration(start, end):
    """(hours, days) for a hall booking, each at least 1."""
    hours = max(1, math.ceil(_seconds_between(start, end) / 3600))
    days = max(1, math.ceil(hours / 24))
    return hours, days


def estimate_event_charge(start, end, charge_type, hourly_rate, daily_rate):
    hours, days = event_duration(start, end)
    if charge_type == DAILY:
        estimate = coerce_amount(daily_rate) * days
    else:
        estimate = coerce_amount(hourly_rate) * hours
    return EventEstimate(hours, days, estimate)


# --- Tax ---

CENT = Decimal('0.01')


def apply_tax(subtotal, rate):
    """(tax, total) for ``subtotal`` at ``rate``; tax is rounded to cents."""
    subtotal = coerce_amount(subtotal)
    tax = (subtotal * coerce_amount(rate)).quantize(CENT)
    return tax, subtotal + tax
