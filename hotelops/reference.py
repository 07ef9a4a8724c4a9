import time
import uuid

BOOKING_PREFIX = 'BK'
LAUNDRY_PREFIX = 'LDR'
RESTAURANT_PREFIX = 'RST'
TRANSACTION_PREFIX = 'HTL'


def generate_transaction_ref(prefix=TRANSACTION_PREFIX):
    """Payment correlation reference: PREFIX-<epoch ms>-<uuid4 hex>."""
    timestamp = int(time.time() * 1000)
    return f"{prefix}-{timestamp}-{uuid.uuid4().hex}"


def generate_booking_reference():
    return generate_transaction_ref(BOOKING_PREFIX)


def generate_order_number():
    return generate_transaction_ref(LAUNDRY_PREFIX)


def generate_restaurant_order_number():
    return generate_transaction_ref(RESTAURANT_PREFIX)
