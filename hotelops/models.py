from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone

from .permissions import ROLE_CHOICES, get_role_permissions, permissions_as_dicts
from .pricing import (
    DAILY,
    HOURLY,
    OrderLine,
    apply_tax,
    balance_due,
    calculate_nights,
    calculate_total,
    classify_payment,
    estimate_event_charge,
)
from .reference import (
    generate_booking_reference,
    generate_order_number,
    generate_restaurant_order_number,
    generate_transaction_ref,
)

ROOM_CHARGE = 'room-charge'


class ChargeMixin:
    """Shared helpers for records carrying a total and an amount paid."""

    def charge_total(self):
        return self.total_amount or Decimal('0')

    def charge_paid(self):
        return self.paid_amount or Decimal('0')

    @property
    def payment_status(self):
        return classify_payment(self.charge_total(), self.charge_paid())

    @property
    def balance(self):
        return balance_due(self.charge_total(), self.charge_paid())


class Guest(models.Model):
    name = models.CharField(max_length=100)
    email = models.EmailField()
    phone = models.CharField(max_length=20, blank=True, null=True)
    address = models.TextField(blank=True, null=True)
    id_number = models.CharField(max_length=50, blank=True, null=True)
    notes = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.name

    def as_dict(self):
        return {
            'id': self.pk,
            'name': self.name,
            'email': self.email,
            'phone': self.phone,
            'address': self.address,
            'id_number': self.id_number,
            'notes': self.notes,
            'created_at': self.created_at,
        }


class Room(models.Model):
    CATEGORIES = (
        ('standard', 'Standard'),
        ('deluxe', 'Deluxe'),
        ('executive', 'Executive'),
        ('suite', 'Suite'),
    )
    STATUSES = (
        ('available', 'Available'),
        ('occupied', 'Occupied'),
        ('reserved', 'Reserved'),
        ('maintenance', 'Maintenance'),
    )
    number = models.CharField(max_length=10, unique=True)
    category = models.CharField(max_length=20, choices=CATEGORIES, default='standard')
    floor = models.IntegerField(default=1)
    capacity = models.IntegerField(default=2)
    price = models.DecimalField(max_digits=12, decimal_places=2)
    status = models.CharField(max_length=20, choices=STATUSES, default='available')

    def __str__(self):
        return f"Room {self.number} ({self.category})"

    def as_dict(self):
        return {
            'id': self.pk,
            'number': self.number,
            'category': self.category,
            'floor': self.floor,
            'capacity': self.capacity,
            'price': self.price,
            'status': self.status,
        }


class Booking(ChargeMixin, models.Model):
    BOOKING_TYPES = [
        ('check-in', 'Check-in'),
        ('reservation', 'Reservation'),
    ]
    STATUS_CHOICES = [
        ('confirmed', 'Confirmed'),
        ('checked-in', 'Checked In'),
        ('checked-out', 'Checked Out'),
        ('cancelled', 'Cancelled'),
    ]

    booking_reference = models.CharField(max_length=64, unique=True, editable=False)
    guest = models.ForeignKey(Guest, on_delete=models.CASCADE, related_name='bookings')
    room = models.ForeignKey(Room, on_delete=models.CASCADE, related_name='bookings')
    check_in = models.DateTimeField()
    check_out = models.DateTimeField()
    booking_type = models.CharField(max_length=20, choices=BOOKING_TYPES, default='reservation')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='confirmed')
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, blank=True, null=True)
    other_charges = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'), blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.booking_reference} - {self.guest.name} - Room {self.room.number}"

    # --- Price Calculation ---
    @property
    def nights(self):
        return calculate_nights(self.check_in, self.check_out)

    def compute_total_amount(self):
        """Room charge: nightly rate times nights."""
        return self.room.price * self.nights

    def save(self, *args, **kwargs):
        if not self.booking_reference:
            self.booking_reference = generate_booking_reference()
        if self.total_amount is None:
            self.total_amount = self.compute_total_amount()
        super().save(*args, **kwargs)

    # --- Charges billed to the room ---
    @property
    def laundry_charges(self):
        return self.laundry_orders.filter(payment_method=ROOM_CHARGE).aggregate(
            total=models.Sum('total_amount')
        )['total'] or Decimal('0')

    @property
    def membership_charges(self):
        return self.memberships.filter(payment_method=ROOM_CHARGE).aggregate(
            total=models.Sum('total_amount')
        )['total'] or Decimal('0')

    @property
    def restaurant_charges(self):
        return self.restaurant_orders.filter(payment_method=ROOM_CHARGE).aggregate(
            total=models.Sum('total_amount')
        )['total'] or Decimal('0')

    @property
    def grand_total(self):
        """Everything billed to the stay, before tax."""
        return (
            (self.total_amount or Decimal('0'))
            + self.laundry_charges
            + self.membership_charges
            + self.restaurant_charges
            + (self.other_charges or Decimal('0'))
        )

    def tax_and_amount_due(self):
        return apply_tax(self.grand_total, settings.HOTELOPS_TAX_RATE)

    # --- Payment Helpers ---
    @property
    def paid_amount(self):
        return self.payments.aggregate(total=models.Sum('amount'))['total'] or Decimal('0')

    def charge_total(self):
        # Tax is part of what the guest owes.
        return self.tax_and_amount_due()[1]

    def as_dict(self):
        tax, amount_due = self.tax_and_amount_due()
        return {
            'id': self.pk,
            'booking_reference': self.booking_reference,
            'guest_id': self.guest_id,
            'guest_name': self.guest.name,
            'room_id': self.room_id,
            'room_number': self.room.number,
            'check_in': self.check_in,
            'check_out': self.check_out,
            'nights': self.nights,
            'booking_type': self.booking_type,
            'status': self.status,
            'total_amount': self.total_amount,
            'laundry_charges': self.laundry_charges,
            'membership_charges': self.membership_charges,
            'restaurant_charges': self.restaurant_charges,
            'other_charges': self.other_charges,
            'grand_total': self.grand_total,
            'tax': tax,
            'amount_due': amount_due,
            'paid_amount': self.paid_amount,
            'balance': self.balance,
            'payment_status': self.payment_status,
            'created_at': self.created_at,
        }


class Payment(models.Model):
    PAYMENT_METHODS = [
        ('cash', 'Cash'),
        ('card', 'Card'),
        ('transfer', 'Bank Transfer'),
        ('online', 'Online Payment'),
    ]

    booking = models.ForeignKey(Booking, on_delete=models.CASCADE, related_name='payments')
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    payment_date = models.DateTimeField(default=timezone.now)
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHODS, default='cash')
    transaction_ref = models.CharField(max_length=100, unique=True, default=generate_transaction_ref)

    def __str__(self):
        return f"Payment {self.transaction_ref} - {self.amount}"

    def save(self, *args, **kwargs):
        if self.amount is None or self.amount <= 0:
            raise ValueError("Payment amount must be greater than zero.")
        super().save(*args, **kwargs)

    def as_dict(self):
        return {
            'id': self.pk,
            'booking_id': self.booking_id,
            'amount': self.amount,
            'payment_date': self.payment_date,
            'payment_method': self.payment_method,
            'transaction_ref': self.transaction_ref,
        }


# --- Laundry ---

class LaundryClothingType(models.Model):
    name = models.CharField(max_length=100, unique=True)
    description = models.TextField(blank=True, default='')

    def __str__(self):
        return self.name


class LaundryServiceType(models.Model):
    name = models.CharField(max_length=100, unique=True)
    description = models.TextField(blank=True, default='')

    def __str__(self):
        return self.name


class LaundryServicePrice(models.Model):
    clothing_type = models.ForeignKey(LaundryClothingType, on_delete=models.CASCADE, related_name='prices')
    service_type = models.ForeignKey(LaundryServiceType, on_delete=models.CASCADE, related_name='prices')
    price = models.DecimalField(max_digits=12, decimal_places=2)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['clothing_type', 'service_type'], name='unique_laundry_price'),
        ]

    def __str__(self):
        return f"{self.clothing_type} / {self.service_type}: {self.price}"

    def as_row(self):
        return {
            'category_id': self.clothing_type_id,
            'service_id': self.service_type_id,
            'price': self.price,
        }


class LaundryOrder(ChargeMixin, models.Model):
    STATUS_CHOICES = [
        ('received', 'Received'),
        ('processing', 'Processing'),
        ('ready', 'Ready'),
        ('delivered', 'Delivered'),
    ]
    PAYMENT_METHODS = [
        ('cash', 'Cash'),
        ('card', 'Card'),
        (ROOM_CHARGE, 'Room Charge'),
    ]

    order_number = models.CharField(max_length=64, unique=True, editable=False)
    booking = models.ForeignKey(
        Booking, on_delete=models.SET_NULL, null=True, blank=True, related_name='laundry_orders'
    )
    customer_name = models.CharField(max_length=100)
    phone = models.CharField(max_length=20, blank=True, default='')
    email = models.EmailField(blank=True, default='')
    address = models.TextField(blank=True, default='')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='received')
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHODS, default='cash')
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    paid_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.order_number} ({self.customer_name})"

    def save(self, *args, **kwargs):
        if not self.order_number:
            self.order_number = generate_order_number()
        super().save(*args, **kwargs)

    def order_lines(self):
        return [
            OrderLine(item.clothing_type_id, item.quantity, (item.unit_price,))
            for item in self.items.all()
        ]

    def recalculate_total(self):
        self.total_amount = calculate_total(self.order_lines())
        return self.total_amount

    def as_dict(self):
        return {
            'id': self.pk,
            'order_number': self.order_number,
            'booking_reference': self.booking.booking_reference if self.booking else None,
            'customer_name': self.customer_name,
            'phone': self.phone,
            'email': self.email,
            'status': self.status,
            'payment_method': self.payment_method,
            'items': [item.as_dict() for item in self.items.all()],
            'total_amount': self.total_amount,
            'paid_amount': self.paid_amount,
            'balance': self.balance,
            'payment_status': self.payment_status,
            'created_at': self.created_at,
        }


class LaundryOrderItem(models.Model):
    order = models.ForeignKey(LaundryOrder, on_delete=models.CASCADE, related_name='items')
    clothing_type = models.ForeignKey(LaundryClothingType, on_delete=models.PROTECT, related_name='order_items')
    services = models.ManyToManyField(LaundryServiceType, related_name='order_items')
    quantity = models.PositiveIntegerField(default=1)
    unit_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))

    @property
    def subtotal(self):
        return self.unit_price * self.quantity

    def as_dict(self):
        return {
            'clothing_type_id': self.clothing_type_id,
            'clothing_type': self.clothing_type.name,
            'service_ids': [service.pk for service in self.services.all()],
            'quantity': self.quantity,
            'unit_price': self.unit_price,
            'subtotal': self.subtotal,
        }


# --- Restaurant ---

class MenuItem(models.Model):
    CATEGORIES = [
        ('food', 'Food'),
        ('drink', 'Drink'),
    ]

    name = models.CharField(max_length=100, unique=True)
    category = models.CharField(max_length=10, choices=CATEGORIES, default='food')
    price = models.DecimalField(max_digits=12, decimal_places=2)
    description = models.TextField(blank=True, default='')
    in_stock = models.BooleanField(default=True)

    def __str__(self):
        return self.name

    def as_row(self):
        return {'item_id': self.pk, 'price': self.price}

    def as_dict(self):
        return {
            'id': self.pk,
            'name': self.name,
            'category': self.category,
            'price': self.price,
            'description': self.description,
            'in_stock': self.in_stock,
        }


class RestaurantOrder(ChargeMixin, models.Model):
    """
    A till checkout. Cash and card orders carry their own tax and are paid
    in full; room-charge orders are billed untaxed to the booking, which
    levies tax on the whole stay.
    """

    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('preparing', 'Preparing'),
        ('ready', 'Ready'),
        ('delivered', 'Delivered'),
        ('cancelled', 'Cancelled'),
    ]
    PAYMENT_METHODS = [
        ('cash', 'Cash'),
        ('card', 'Card'),
        (ROOM_CHARGE, 'Room Charge'),
    ]

    order_number = models.CharField(max_length=64, unique=True, editable=False)
    booking = models.ForeignKey(
        Booking, on_delete=models.SET_NULL, null=True, blank=True, related_name='restaurant_orders'
    )
    customer_name = models.CharField(max_length=100, blank=True, default='')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHODS, default='cash')
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    tax = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    paid_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.order_number} ({self.get_payment_method_display()})"

    def save(self, *args, **kwargs):
        if not self.order_number:
            self.order_number = generate_restaurant_order_number()
        super().save(*args, **kwargs)

    def as_dict(self):
        return {
            'id': self.pk,
            'order_number': self.order_number,
            'booking_reference': self.booking.booking_reference if self.booking else None,
            'customer_name': self.customer_name,
            'status': self.status,
            'payment_method': self.payment_method,
            'items': [item.as_dict() for item in self.items.all()],
            'subtotal': self.subtotal,
            'tax': self.tax,
            'total_amount': self.total_amount,
            'paid_amount': self.paid_amount,
            'balance': self.balance,
            'payment_status': self.payment_status,
            'date': self.created_at,
        }


class RestaurantOrderItem(models.Model):
    order = models.ForeignKey(RestaurantOrder, on_delete=models.CASCADE, related_name='items')
    menu_item = models.ForeignKey(MenuItem, on_delete=models.PROTECT, related_name='order_items')
    name = models.CharField(max_length=100)
    quantity = models.PositiveIntegerField(default=1)
    price = models.DecimalField(max_digits=12, decimal_places=2)

    @property
    def subtotal(self):
        return self.price * self.quantity

    def as_dict(self):
        return {
            'menu_item_id': self.menu_item_id,
            'name': self.name,
            'quantity': self.quantity,
            'price': self.price,
            'subtotal': self.subtotal,
        }


# --- Events ---

class EventHall(models.Model):
    name = models.CharField(max_length=100, unique=True)
    capacity = models.PositiveIntegerField(default=0)
    hourly_rate = models.DecimalField(max_digits=12, decimal_places=2)
    daily_rate = models.DecimalField(max_digits=12, decimal_places=2)
    amenities = models.JSONField(default=list, blank=True)
    is_available = models.BooleanField(default=True)

    def __str__(self):
        return self.name

    def as_dict(self):
        return {
            'id': self.pk,
            'name': self.name,
            'capacity': self.capacity,
            'hourly_rate': self.hourly_rate,
            'daily_rate': self.daily_rate,
            'amenities': self.amenities,
            'is_available': self.is_available,
        }


class Event(ChargeMixin, models.Model):
    CHARGE_TYPES = [
        (HOURLY, 'Hourly'),
        (DAILY, 'Daily'),
    ]
    STATUS_CHOICES = [
        ('upcoming', 'Upcoming'),
        ('ongoing', 'Ongoing'),
        ('completed', 'Completed'),
        ('cancelled', 'Cancelled'),
    ]

    hall = models.ForeignKey(EventHall, on_delete=models.CASCADE, related_name='events')
    client_name = models.CharField(max_length=100)
    client_email = models.EmailField()
    client_phone = models.CharField(max_length=20)
    event_type = models.CharField(max_length=50)
    start_date = models.DateTimeField()
    end_date = models.DateTimeField()
    charge_type = models.CharField(max_length=10, choices=CHARGE_TYPES, default=HOURLY)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, blank=True, null=True)
    paid_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='upcoming')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.event_type} for {self.client_name} in {self.hall.name}"

    def estimate(self):
        return estimate_event_charge(
            self.start_date, self.end_date, self.charge_type,
            self.hall.hourly_rate, self.hall.daily_rate,
        )

    def save(self, *args, **kwargs):
        if self.total_amount is None:
            self.total_amount = self.estimate().estimate
        super().save(*args, **kwargs)

    def as_dict(self):
        return {
            'id': self.pk,
            'hall_id': self.hall_id,
            'hall_name': self.hall.name,
            'client_name': self.client_name,
            'client_email': self.client_email,
            'client_phone': self.client_phone,
            'event_type': self.event_type,
            'start_date': self.start_date,
            'end_date': self.end_date,
            'charge_type': self.charge_type,
            'total_amount': self.total_amount,
            'paid_amount': self.paid_amount,
            'balance': self.balance,
            'payment_status': self.payment_status,
            'status': self.status,
        }


# --- Gym & pool ---

class MembershipPlan(models.Model):
    FACILITIES = [
        ('gym', 'Gym'),
        ('pool', 'Pool'),
    ]

    facility = models.CharField(max_length=10, choices=FACILITIES)
    name = models.CharField(max_length=100)
    duration_days = models.PositiveIntegerField()
    price = models.DecimalField(max_digits=12, decimal_places=2)
    features = models.JSONField(default=list, blank=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['facility', 'name'], name='unique_plan_per_facility'),
        ]

    def __str__(self):
        return f"{self.get_facility_display()} - {self.name}"

    def as_dict(self):
        return {
            'id': self.pk,
            'facility': self.facility,
            'name': self.name,
            'duration_days': self.duration_days,
            'price': self.price,
            'features': self.features,
        }


class Membership(ChargeMixin, models.Model):
    STATUS_CHOICES = [
        ('active', 'Active'),
        ('expired', 'Expired'),
        ('cancelled', 'Cancelled'),
    ]
    PAYMENT_METHODS = [
        ('cash', 'Cash'),
        ('card', 'Card'),
        ('transfer', 'Bank Transfer'),
        (ROOM_CHARGE, 'Room Charge'),
    ]

    plan = models.ForeignKey(MembershipPlan, on_delete=models.PROTECT, related_name='memberships')
    booking = models.ForeignKey(
        Booking, on_delete=models.SET_NULL, null=True, blank=True, related_name='memberships'
    )
    name = models.CharField(max_length=100)
    email = models.EmailField(blank=True, default='')
    phone = models.CharField(max_length=20, blank=True, default='')
    start_date = models.DateField(default=timezone.localdate)
    end_date = models.DateField(blank=True, null=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='active')
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHODS, default='cash')
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, blank=True, null=True)
    paid_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.name} ({self.plan})"

    @property
    def is_guest(self):
        return self.booking_id is not None

    def save(self, *args, **kwargs):
        if self.end_date is None:
            self.end_date = self.start_date + timedelta(days=self.plan.duration_days)
        if self.total_amount is None:
            self.total_amount = calculate_total([OrderLine(self.plan_id, 1, (self.plan.price,))])
        super().save(*args, **kwargs)

    def as_dict(self):
        return {
            'id': self.pk,
            'plan_id': self.plan_id,
            'plan_name': self.plan.name,
            'facility': self.plan.facility,
            'name': self.name,
            'email': self.email,
            'phone': self.phone,
            'is_guest': self.is_guest,
            'start_date': self.start_date,
            'end_date': self.end_date,
            'status': self.status,
            'payment_method': self.payment_method,
            'total_amount': self.total_amount,
            'paid_amount': self.paid_amount,
            'balance': self.balance,
            'payment_status': self.payment_status,
        }


# --- Staff ---

class Employee(models.Model):
    STATUS_CHOICES = [
        ('active', 'Active'),
        ('inactive', 'Inactive'),
        ('suspended', 'Suspended'),
    ]

    name = models.CharField(max_length=100)
    email = models.EmailField(unique=True)
    phone = models.CharField(max_length=20, blank=True, default='')
    role = models.CharField(max_length=30, choices=ROLE_CHOICES)
    department = models.CharField(max_length=100, blank=True, default='')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='active')
    permissions = models.JSONField(default=list, blank=True)
    join_date = models.DateField(default=timezone.localdate)

    def __str__(self):
        return f"{self.name} ({self.get_role_display()})"

    def save(self, *args, **kwargs):
        if not self.permissions:
            self.permissions = permissions_as_dicts(get_role_permissions(self.role))
        super().save(*args, **kwargs)

    def as_dict(self):
        return {
            'id': self.pk,
            'name': self.name,
            'email': self.email,
            'phone': self.phone,
            'role': self.role,
            'role_label': self.get_role_display(),
            'department': self.department,
            'status': self.status,
            'permissions': self.permissions,
            'join_date': self.join_date,
        }
