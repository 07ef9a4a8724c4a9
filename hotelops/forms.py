from datetime import timedelta
from decimal import Decimal

from django import forms
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from .models import (
    ROOM_CHARGE,
    Booking,
    Employee,
    Event,
    EventHall,
    Guest,
    LaundryOrder,
    LaundryOrderItem,
    LaundryServicePrice,
    Membership,
    MembershipPlan,
    MenuItem,
    Payment,
    RestaurantOrder,
    RestaurantOrderItem,
    Room,
)
from .permissions import MODULES, get_role_permissions, permissions_as_dicts
from .pricing import PriceLookup, apply_tax, build_receipt_items, calculate_total
from .validators import (
    check_room_availability,
    sanitize_text_input,
    validate_amount_paid,
    validate_date_range,
    validate_menu_items,
    validate_name,
    validate_order_items,
    validate_phone_number,
    validate_positive_number,
    validate_time_window,
)


def laundry_price_lookup():
    """Catalog snapshot used for both quotes and order creation."""
    return PriceLookup(price.as_row() for price in LaundryServicePrice.objects.all())


def booking_by_reference(reference):
    reference = (reference or '').strip()
    if not reference:
        return None
    try:
        return Booking.objects.select_related('guest', 'room').get(booking_reference=reference)
    except Booking.DoesNotExist:
        raise ValidationError(f"No booking found with reference '{reference}'.")


class GuestForm(forms.ModelForm):
    """Guest form with validation and sanitisation."""

    class Meta:
        model = Guest
        fields = ['name', 'email', 'phone', 'address', 'id_number', 'notes']

    def clean_name(self):
        return validate_name(self.cleaned_data.get('name'))

    def clean_email(self):
        """Validate email uniqueness."""
        email = self.cleaned_data.get('email')
        if not email:
            raise ValidationError("Email is required.")

        email = email.lower().strip()

        existing_guest = Guest.objects.filter(email=email)
        if self.instance.pk:
            existing_guest = existing_guest.exclude(pk=self.instance.pk)

        if existing_guest.exists():
            raise ValidationError("A guest with this email address already exists.")

        return email

    def clean_phone(self):
        return validate_phone_number(self.cleaned_data.get('phone'))

    def clean_address(self):
        return sanitize_text_input(self.cleaned_data.get('address'), max_length=500)

    def clean_notes(self):
        return sanitize_text_input(self.cleaned_data.get('notes'), max_length=1000, allow_html=True)


class RoomForm(forms.ModelForm):

    class Meta:
        model = Room
        fields = ['number', 'category', 'floor', 'capacity', 'price', 'status']

    def clean_number(self):
        """Normalise and check room number uniqueness."""
        number = (self.cleaned_data.get('number') or '').strip().upper()
        if not number:
            raise ValidationError("Room number is required.")

        existing_room = Room.objects.filter(number=number)
        if self.instance.pk:
            existing_room = existing_room.exclude(pk=self.instance.pk)

        if existing_room.exists():
            raise ValidationError("A room with this number already exists.")

        return number

    def clean_capacity(self):
        capacity = self.cleaned_data.get('capacity')
        if capacity is None or capacity < 1:
            raise ValidationError("Capacity must be at least 1.")
        if capacity > 10:
            raise ValidationError("Capacity cannot exceed 10 guests.")
        return capacity

    def clean_price(self):
        return validate_positive_number(self.cleaned_data.get('price'))


class BookingForm(forms.ModelForm):
    """
    Booking form. An optional ``paid_amount`` is recorded as the first
    payment when the booking is created.
    """

    paid_amount = forms.DecimalField(max_digits=12, decimal_places=2, required=False, min_value=0)
    payment_method = forms.ChoiceField(choices=Payment.PAYMENT_METHODS, required=False)

    class Meta:
        model = Booking
        fields = ['guest', 'room', 'check_in', 'check_out', 'booking_type', 'other_charges']

    def clean_check_in(self):
        check_in = self.cleaned_data.get('check_in')
        if not check_in:
            raise ValidationError("Check-in date is required.")

        today = timezone.localdate()
        if check_in.date() < today:
            raise ValidationError("Check-in date cannot be in the past.")

        if check_in.date() > today + timedelta(days=365):
            raise ValidationError("Check-in date cannot be more than 1 year in advance.")

        return check_in

    def clean_other_charges(self):
        other_charges = self.cleaned_data.get('other_charges')
        if other_charges is None:
            return Decimal('0')
        if other_charges < 0:
            raise ValidationError("Other charges cannot be negative.")
        return other_charges

    def clean(self):
        """Cross-field validation for booking dates and room availability."""
        cleaned_data = super().clean()
        room = cleaned_data.get('room')
        check_in = cleaned_data.get('check_in')
        check_out = cleaned_data.get('check_out')

        if check_in and check_out:
            validate_date_range(check_in, check_out)

            if room:
                if room.status == 'maintenance':
                    raise ValidationError(f"Room {room.number} is under maintenance.")
                check_room_availability(room, check_in, check_out, exclude_booking=self.instance)

        return cleaned_data

    @transaction.atomic
    def save(self, commit=True):
        booking = super().save(commit=False)
        if booking.booking_type == 'check-in' and not booking.pk:
            booking.status = 'checked-in'
        if not commit:
            return booking

        booking.save()

        paid_amount = self.cleaned_data.get('paid_amount')
        if paid_amount:
            Payment.objects.create(
                booking=booking,
                amount=paid_amount,
                payment_method=self.cleaned_data.get('payment_method') or 'cash',
            )

        room = booking.room
        room.status = 'occupied' if booking.status == 'checked-in' else 'reserved'
        room.save(update_fields=['status'])
        return booking


class PaymentForm(forms.ModelForm):

    class Meta:
        model = Payment
        fields = ['amount', 'payment_method', 'transaction_ref']

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['transaction_ref'].required = False

    def clean_amount(self):
        amount = self.cleaned_data.get('amount')
        if amount is None:
            raise ValidationError("Payment amount is required.")
        if amount <= 0:
            raise ValidationError("Payment amount must be greater than 0.")
        return amount

    def clean_transaction_ref(self):
        """Sanitise a supplied reference, or leave blank for a generated one."""
        transaction_ref = (self.cleaned_data.get('transaction_ref') or '').strip()
        if not transaction_ref:
            return Payment._meta.get_field('transaction_ref').get_default()

        transaction_ref = sanitize_text_input(transaction_ref, max_length=100)

        if Payment.objects.filter(transaction_ref=transaction_ref).exists():
            raise ValidationError("A payment with this transaction reference already exists.")

        return transaction_ref


class ChargePaymentForm(forms.Form):
    """Instalment against a laundry order, event or restaurant order."""

    amount = forms.DecimalField(max_digits=12, decimal_places=2)

    def __init__(self, data=None, instance=None, **kwargs):
        super().__init__(data, **kwargs)
        self.instance = instance

    def clean_amount(self):
        amount = self.cleaned_data.get('amount')
        if amount is None or amount <= 0:
            raise ValidationError("Payment amount must be greater than 0.")
        return amount

    def clean(self):
        cleaned_data = super().clean()
        if getattr(self.instance, 'payment_method', None) == ROOM_CHARGE:
            raise ValidationError("Room-charge orders are settled on the booking.")
        return cleaned_data

    @transaction.atomic
    def save(self):
        model = type(self.instance)
        model.objects.filter(pk=self.instance.pk).update(
            paid_amount=F('paid_amount') + self.cleaned_data['amount'],
        )
        self.instance.refresh_from_db()
        return self.instance


class LaundryOrderForm(forms.Form):
    """
    Laundry order for a hotel guest (charged to their room via booking
    reference) or a walk-in visitor. Items are passed separately as a list of
    ``{clothing_type_id, service_ids, quantity}`` dicts.
    """

    booking_reference = forms.CharField(max_length=64, required=False)
    customer_name = forms.CharField(max_length=100, required=False)
    phone = forms.CharField(max_length=20, required=False)
    email = forms.EmailField(required=False)
    address = forms.CharField(max_length=500, required=False)
    payment_method = forms.ChoiceField(choices=LaundryOrder.PAYMENT_METHODS, required=False)
    paid_amount = forms.DecimalField(max_digits=12, decimal_places=2, required=False)

    def __init__(self, data=None, items=None, lookup=None, **kwargs):
        super().__init__(data, **kwargs)
        self.items = items or []
        self.lookup = lookup if lookup is not None else laundry_price_lookup()

    def clean_booking_reference(self):
        return booking_by_reference(self.cleaned_data.get('booking_reference'))

    def clean_paid_amount(self):
        return validate_amount_paid(self.cleaned_data.get('paid_amount'))

    def clean_address(self):
        return sanitize_text_input(self.cleaned_data.get('address'), max_length=500)

    def clean(self):
        cleaned_data = super().clean()
        booking = cleaned_data.get('booking_reference')

        if booking is not None:
            cleaned_data['customer_name'] = booking.guest.name
            cleaned_data['payment_method'] = ROOM_CHARGE
            if cleaned_data.get('paid_amount'):
                raise ValidationError("Room-charge orders are settled on the booking.")
        elif not self.errors.get('booking_reference'):
            cleaned_data['customer_name'] = validate_name(cleaned_data.get('customer_name'))
            if not cleaned_data.get('phone'):
                raise ValidationError("Phone number is required for walk-in orders.")
            cleaned_data['phone'] = validate_phone_number(cleaned_data.get('phone'))
            if cleaned_data.get('payment_method') == ROOM_CHARGE:
                raise ValidationError("Room charge requires a booking reference.")
            cleaned_data['payment_method'] = cleaned_data.get('payment_method') or 'cash'

        cleaned_data['items'] = validate_order_items(self.items, self.lookup)
        return cleaned_data

    @transaction.atomic
    def save(self):
        data = self.cleaned_data
        order = LaundryOrder.objects.create(
            booking=data.get('booking_reference'),
            customer_name=data['customer_name'],
            phone=data.get('phone') or '',
            email=data.get('email') or '',
            address=data.get('address') or '',
            payment_method=data['payment_method'],
            paid_amount=data.get('paid_amount') or Decimal('0'),
        )
        for item in data['items']:
            line = self.lookup.order_line(item['clothing_type_id'], item['service_ids'], item['quantity'])
            order_item = LaundryOrderItem.objects.create(
                order=order,
                clothing_type_id=item['clothing_type_id'],
                quantity=line.quantity,
                unit_price=sum(line.unit_price_components),
            )
            order_item.services.set(item['service_ids'])

        order.recalculate_total()
        order.save(update_fields=['total_amount'])
        return order


def menu_price_lookup():
    """In-stock menu items only; anything else cannot be sold."""
    return PriceLookup(item.as_row() for item in MenuItem.objects.filter(in_stock=True))


class MenuItemForm(forms.ModelForm):

    class Meta:
        model = MenuItem
        fields = ['name', 'category', 'price', 'description', 'in_stock']

    def clean_name(self):
        name = sanitize_text_input(self.cleaned_data.get('name'), max_length=100)
        if not name:
            raise ValidationError("Item name is required.")
        return name

    def clean_price(self):
        return validate_positive_number(self.cleaned_data.get('price'))

    def clean_description(self):
        return sanitize_text_input(self.cleaned_data.get('description'), max_length=500)


class RestaurantCheckoutForm(forms.Form):
    """
    Till checkout. ``payment_method`` is fixed by the endpoint: cash and card
    orders are taxed and paid in full, room-charge orders need a booking
    reference and are billed to the stay.
    """

    booking_reference = forms.CharField(max_length=64, required=False)
    customer_name = forms.CharField(max_length=100, required=False)

    def __init__(self, data=None, items=None, payment_method='cash', lookup=None, **kwargs):
        super().__init__(data, **kwargs)
        self.items = items
        self.payment_method = payment_method
        self.lookup = lookup if lookup is not None else menu_price_lookup()

    def clean_booking_reference(self):
        return booking_by_reference(self.cleaned_data.get('booking_reference'))

    def clean_customer_name(self):
        return sanitize_text_input(self.cleaned_data.get('customer_name'), max_length=100)

    def clean(self):
        cleaned_data = super().clean()
        booking = cleaned_data.get('booking_reference')

        if self.payment_method == ROOM_CHARGE:
            if booking is None and not self.errors.get('booking_reference'):
                raise ValidationError("Room charge requires a booking reference.")
            if booking is not None:
                if booking.status != 'checked-in':
                    raise ValidationError(f"Booking {booking.booking_reference} is not checked in.")
                cleaned_data['customer_name'] = booking.guest.name

        cleaned_data['items'] = validate_menu_items(self.items, self.lookup)
        return cleaned_data

    @transaction.atomic
    def save(self):
        data = self.cleaned_data
        names = {str(item.pk): item.name for item in MenuItem.objects.filter(pk__in=[i['item_id'] for i in data['items']])}
        receipt = build_receipt_items(data['items'], self.lookup, names)
        subtotal = calculate_total(
            {'quantity': row.quantity, 'unit_price_components': (row.price,)} for row in receipt
        )

        if self.payment_method == ROOM_CHARGE:
            tax, total = Decimal('0'), subtotal
            paid = Decimal('0')
        else:
            tax, total = apply_tax(subtotal, settings.HOTELOPS_TAX_RATE)
            paid = total

        order = RestaurantOrder.objects.create(
            booking=data.get('booking_reference') if self.payment_method == ROOM_CHARGE else None,
            customer_name=data.get('customer_name') or '',
            payment_method=self.payment_method,
            subtotal=subtotal,
            tax=tax,
            total_amount=total,
            paid_amount=paid,
        )
        for item, row in zip(data['items'], receipt):
            RestaurantOrderItem.objects.create(
                order=order,
                menu_item_id=item['item_id'],
                name=row.name,
                quantity=row.quantity,
                price=row.price,
            )
        return order


class EventHallForm(forms.ModelForm):

    class Meta:
        model = EventHall
        fields = ['name', 'capacity', 'hourly_rate', 'daily_rate', 'amenities', 'is_available']

    def clean_name(self):
        return sanitize_text_input(self.cleaned_data.get('name'), max_length=100)

    def clean_hourly_rate(self):
        return validate_positive_number(self.cleaned_data.get('hourly_rate'))

    def clean_daily_rate(self):
        return validate_positive_number(self.cleaned_data.get('daily_rate'))

    def clean_amenities(self):
        amenities = self.cleaned_data.get('amenities') or []
        if not isinstance(amenities, list):
            raise ValidationError("Amenities must be a list.")
        return [sanitize_text_input(str(amenity), max_length=100) for amenity in amenities]


class EventForm(forms.ModelForm):

    class Meta:
        model = Event
        fields = [
            'hall', 'client_name', 'client_email', 'client_phone',
            'event_type', 'start_date', 'end_date', 'charge_type', 'paid_amount',
        ]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['paid_amount'].required = False

    def clean_paid_amount(self):
        return validate_amount_paid(self.cleaned_data.get('paid_amount'))

    def clean_client_name(self):
        return validate_name(self.cleaned_data.get('client_name'))

    def clean_client_phone(self):
        return validate_phone_number(self.cleaned_data.get('client_phone'))

    def clean_event_type(self):
        return sanitize_text_input(self.cleaned_data.get('event_type'), max_length=50)

    def clean(self):
        cleaned_data = super().clean()
        hall = cleaned_data.get('hall')
        start = cleaned_data.get('start_date')
        end = cleaned_data.get('end_date')

        if start and end:
            validate_time_window(start, end)

            if hall:
                if not hall.is_available:
                    raise ValidationError(f"{hall.name} is not available for bookings.")
                clashing = hall.events.filter(
                    start_date__lt=end,
                    end_date__gt=start,
                ).exclude(status='cancelled')
                if self.instance.pk:
                    clashing = clashing.exclude(pk=self.instance.pk)
                if clashing.exists():
                    raise ValidationError(f"{hall.name} is already booked for the selected time.")

        return cleaned_data


class MembershipPlanForm(forms.ModelForm):

    class Meta:
        model = MembershipPlan
        fields = ['facility', 'name', 'duration_days', 'price', 'features']

    def clean_duration_days(self):
        duration = self.cleaned_data.get('duration_days')
        if not duration:
            raise ValidationError("Duration must be at least 1 day.")
        return duration

    def clean_price(self):
        return validate_positive_number(self.cleaned_data.get('price'))

    def clean_features(self):
        features = self.cleaned_data.get('features') or []
        if not isinstance(features, list):
            raise ValidationError("Features must be a list.")
        return [sanitize_text_input(str(feature), max_length=100) for feature in features]


class MembershipForm(forms.ModelForm):
    """Gym or pool membership, for a walk-in member or a guest by booking reference."""

    booking_reference = forms.CharField(max_length=64, required=False)

    class Meta:
        model = Membership
        fields = ['plan', 'name', 'email', 'phone', 'start_date', 'payment_method', 'paid_amount']

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['name'].required = False
        self.fields['start_date'].required = False
        self.fields['paid_amount'].required = False

    def clean_booking_reference(self):
        return booking_by_reference(self.cleaned_data.get('booking_reference'))

    def clean_paid_amount(self):
        return validate_amount_paid(self.cleaned_data.get('paid_amount'))

    def clean(self):
        cleaned_data = super().clean()
        booking = cleaned_data.get('booking_reference')

        if booking is not None:
            cleaned_data['name'] = booking.guest.name
            cleaned_data['email'] = cleaned_data.get('email') or booking.guest.email
        elif not self.errors.get('booking_reference'):
            cleaned_data['name'] = validate_name(cleaned_data.get('name'))
            if cleaned_data.get('payment_method') == ROOM_CHARGE:
                raise ValidationError("Room charge requires a booking reference.")

        if not cleaned_data.get('start_date'):
            cleaned_data['start_date'] = timezone.localdate()

        return cleaned_data

    def save(self, commit=True):
        membership = super().save(commit=False)
        membership.booking = self.cleaned_data.get('booking_reference')
        membership.name = self.cleaned_data['name']
        membership.start_date = self.cleaned_data['start_date']
        if commit:
            membership.save()
        return membership


class EmployeeForm(forms.ModelForm):
    """Staff member form; permissions default from the chosen role."""

    class Meta:
        model = Employee
        fields = ['name', 'email', 'phone', 'role', 'department', 'status', 'permissions']

    def clean_name(self):
        return validate_name(self.cleaned_data.get('name'))

    def clean_email(self):
        email = (self.cleaned_data.get('email') or '').lower().strip()
        existing = Employee.objects.filter(email=email)
        if self.instance.pk:
            existing = existing.exclude(pk=self.instance.pk)
        if existing.exists():
            raise ValidationError("An employee with this email address already exists.")
        return email

    def clean_phone(self):
        return validate_phone_number(self.cleaned_data.get('phone'))

    def clean_permissions(self):
        permissions = self.cleaned_data.get('permissions')
        if not permissions:
            return []
        if not isinstance(permissions, list):
            raise ValidationError("Permissions must be a list.")

        cleaned = []
        for entry in permissions:
            if not isinstance(entry, dict) or entry.get('module') not in MODULES:
                raise ValidationError("Each permission needs a known module name.")
            cleaned.append({
                'module': entry['module'],
                'create': bool(entry.get('create')),
                'read': bool(entry.get('read')),
                'update': bool(entry.get('update')),
                'delete': bool(entry.get('delete')),
            })
        return cleaned

    def clean(self):
        cleaned_data = super().clean()
        role = cleaned_data.get('role')
        role_changed = self.instance.pk and 'role' in self.changed_data
        if role and (not cleaned_data.get('permissions') or (role_changed and 'permissions' not in self.data)):
            cleaned_data['permissions'] = permissions_as_dicts(get_role_permissions(role))
        return cleaned_data
