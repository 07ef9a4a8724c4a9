"""
Input checks shared by the forms. Free text is passed through bleach.
"""

import re
from decimal import Decimal

import bleach
from django.core.exceptions import ValidationError

from .pricing import coerce_quantity


def validate_name(name, min_length=2, max_length=100):
    """Guest, member, client and staff names, title-cased."""
    if not name:
        raise ValidationError("Name is required.")

    name = name.strip()

    if len(name) < min_length:
        raise ValidationError(f"Name must be at least {min_length} characters long.")

    if len(name) > max_length:
        raise ValidationError(f"Name cannot exceed {max_length} characters.")

    # Letters, spaces, hyphens, apostrophes and dots only
    if not re.match(r"^[a-zA-Z\s\-'\.]+$", name):
        raise ValidationError("Name can only contain letters, spaces, hyphens, and apostrophes.")

    name = bleach.clean(name, strip=True)

    return name.title()


def validate_phone_number(phone):
    """10 to 15 digits in any punctuation; blank stays blank."""
    if not phone:
        return phone

    phone = phone.strip()
    phone_digits = re.sub(r'\D', '', phone)

    if len(phone_digits) < 10:
        raise ValidationError("Phone number must be at least 10 digits.")

    if len(phone_digits) > 15:
        raise ValidationError("Phone number cannot exceed 15 digits.")

    return bleach.clean(phone, strip=True)


def validate_date_range(start, end, min_days=1, max_days=90):
    """Stays run between ``min_days`` and ``max_days``."""
    if not start or not end:
        raise ValidationError("Both start and end dates are required.")

    if end <= start:
        raise ValidationError("End date must be after start date.")

    days_diff = (end - start).days

    if days_diff < min_days:
        raise ValidationError(f"Minimum duration is {min_days} day(s).")

    if days_diff > max_days:
        raise ValidationError(f"Maximum duration is {max_days} days.")


def validate_time_window(start, end):
    """Hall bookings only need the end to follow the start."""
    if not start or not end:
        raise ValidationError("Both start and end times are required.")

    if end <= start:
        raise ValidationError("End time must be after start time.")


def sanitize_text_input(text, max_length=None, allow_html=False):
    """Addresses, notes and amenity labels; guest notes may keep basic formatting."""
    if not text:
        return text

    text = text.strip()

    if max_length and len(text) > max_length:
        raise ValidationError(f"Text cannot exceed {max_length} characters.")

    if allow_html:
        allowed_tags = ['br', 'p', 'strong', 'em', 'u']
        return bleach.clean(text, tags=allowed_tags, strip=True)

    return bleach.clean(text, strip=True)


def validate_positive_number(value, min_value=0.01, max_value=99999999):
    """Room rates, hall rates, plan and menu prices."""
    if value is None:
        raise ValidationError("Value is required.")

    if value < min_value:
        raise ValidationError(f"Value must be at least {min_value}.")

    if value > max_value:
        raise ValidationError(f"Value cannot exceed {max_value}.")

    return value


def check_room_availability(room, check_in, check_out, exclude_booking=None):
    """
    Check that a room has no active booking overlapping the given dates.

    Raises:
        ValidationError: If the room is taken, naming the conflicting stay
    """
    from .models import Booking  # Import here to avoid circular imports

    overlapping_bookings = Booking.objects.filter(
        room=room,
        check_in__lt=check_out,
        check_out__gt=check_in,
        status__in=['confirmed', 'checked-in'],
    )

    if exclude_booking is not None and exclude_booking.pk:
        overlapping_bookings = overlapping_bookings.exclude(pk=exclude_booking.pk)

    if overlapping_bookings.exists():
        conflicting_booking = overlapping_bookings.first()
        raise ValidationError(
            f"Room {room.number} is not available for the selected dates. "
            f"Conflict with existing booking from {conflicting_booking.check_in.date()} "
            f"to {conflicting_booking.check_out.date()}."
        )

    return True


def validate_amount_paid(value):
    """Amount handed over when a record is created; missing means nothing paid."""
    if value is None:
        return Decimal('0')
    if value < 0:
        raise ValidationError("Amount paid cannot be negative.")
    return value


def validate_order_items(items, lookup):
    """
    Check laundry items before an order is created.

    Each item needs a clothing type, at least one service, a quantity of one
    or more, and a catalog price for every selected service.

    Returns:
        list: Items with quantities coerced to int

    Raises:
        ValidationError: Listing every problem found
    """
    if not isinstance(items, list) or not items:
        raise ValidationError("At least one item is required.")

    errors = []
    cleaned = []
    for position, item in enumerate(items, start=1):
        if not isinstance(item, dict):
            errors.append(f"Item {position}: expected an object.")
            continue

        clothing_type_id = item.get('clothing_type_id')
        service_ids = item.get('service_ids')
        quantity = coerce_quantity(item.get('quantity'))

        if not clothing_type_id:
            errors.append(f"Item {position}: clothing type is required.")
            continue
        if not isinstance(service_ids, (list, tuple)) or not service_ids:
            errors.append(f"Item {position}: select at least one service.")
            service_ids = []
        if quantity < 1:
            errors.append(f"Item {position}: quantity must be at least 1.")
        for service_id in service_ids:
            if (clothing_type_id, service_id) not in lookup:
                errors.append(f"Item {position}: no price configured for service {service_id}.")

        cleaned.append({
            'clothing_type_id': clothing_type_id,
            'service_ids': list(service_ids),
            'quantity': quantity,
        })

    if errors:
        raise ValidationError(errors)

    return cleaned


def validate_menu_items(items, lookup):
    """
    Check a restaurant cart: every line names a priced menu item that is in
    stock, with a quantity of one or more.

    Returns:
        list: ``{item_id, quantity}`` dicts ready for a receipt
    """
    if not isinstance(items, list) or not items:
        raise ValidationError("At least one item is required.")

    errors = []
    cleaned = []
    for position, item in enumerate(items, start=1):
        if not isinstance(item, dict):
            errors.append(f"Item {position}: expected an object.")
            continue

        item_id = item.get('menu_item_id')
        quantity = coerce_quantity(item.get('quantity'))

        if item_id is None or item_id not in lookup:
            errors.append(f"Item {position}: menu item {item_id} is not available.")
        if quantity < 1:
            errors.append(f"Item {position}: quantity must be at least 1.")

        cleaned.append({'item_id': item_id, 'quantity': quantity})

    if errors:
        raise ValidationError(errors)

    return cleaned
