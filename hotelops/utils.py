import logging
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.db import models, transaction
from django.utils import timezone

from .pricing import PAYMENT_STATUSES, balance_due, classify_payment, coerce_amount

logger = logging.getLogger(__name__)


def get_booking_financial_summary(booking):
    """
    Get comprehensive financial summary for a booking.
    Returns dictionary with all financial details.
    """
    tax, amount_due = booking.tax_and_amount_due()
    total_paid = booking.paid_amount
    return {
        'room_charges': booking.total_amount or Decimal('0'),
        'laundry_charges': booking.laundry_charges,
        'membership_charges': booking.membership_charges,
        'restaurant_charges': booking.restaurant_charges,
        'other_charges': booking.other_charges or Decimal('0'),
        'grand_total': booking.grand_total,
        'tax': tax,
        'amount_due': amount_due,
        'total_paid': total_paid,
        'outstanding_balance': balance_due(amount_due, total_paid),
        'payment_status': classify_payment(amount_due, total_paid),
    }


def build_checkout_report(booking):
    """Itemised bill for a guest checking out, on the same basis as the booking's own status."""
    summary = get_booking_financial_summary(booking)

    return {
        'booking_id': booking.pk,
        'booking_reference': booking.booking_reference,
        'guest_name': booking.guest.name,
        'guest_email': booking.guest.email,
        'guest_phone': booking.guest.phone,
        'room_number': booking.room.number,
        'room_category': booking.room.category,
        'check_in': booking.check_in,
        'check_out': booking.check_out,
        'nights': booking.nights,
        'room_charges': summary['room_charges'],
        'restaurant_charges': summary['restaurant_charges'],
        'laundry_charges': summary['laundry_charges'],
        'membership_charges': summary['membership_charges'],
        'other_charges': summary['other_charges'],
        'subtotal': summary['grand_total'],
        'tax_rate': coerce_amount(settings.HOTELOPS_TAX_RATE),
        'tax': summary['tax'],
        'total_amount': summary['amount_due'],
        'paid_amount': summary['total_paid'],
        'balance': summary['outstanding_balance'],
        'payment_status': summary['payment_status'],
    }


def get_payment_anomalies():
    """
    Identify bookings with payment anomalies for review.
    Returns list of problematic bookings with details.
    """
    from .models import Booking

    anomalies = []
    today = timezone.now().date()

    for booking in Booking.objects.select_related('room', 'guest').exclude(status='cancelled'):
        summary = get_booking_financial_summary(booking)
        outstanding = summary['outstanding_balance']
        issues = []

        if outstanding < 0:
            issues.append(f"Overpaid by {-outstanding}")

        if booking.check_out.date() < today and outstanding > 0:
            days_overdue = (today - booking.check_out.date()).days
            issues.append(f"Overdue by {days_overdue} days, balance: {outstanding}")

        if booking.status == 'checked-out' and outstanding > 0:
            issues.append(f"Checked out with balance {outstanding}")

        if issues:
            anomalies.append({
                'booking_id': booking.pk,
                'booking_reference': booking.booking_reference,
                'issues': issues,
                'financial_summary': summary,
            })

    return anomalies


def generate_revenue_report(start_date=None, end_date=None):
    """
    Revenue collected per department over a date range, defaulting to the
    current month, plus a payment status breakdown of the bookings in range.
    """
    from .models import Booking, Event, LaundryOrder, Membership, Payment, RestaurantOrder

    if not start_date or not end_date:
        today = timezone.now().date()
        start_date = today.replace(day=1)
        if today.month == 12:
            end_date = today.replace(year=today.year + 1, month=1, day=1) - timedelta(days=1)
        else:
            end_date = today.replace(month=today.month + 1, day=1) - timedelta(days=1)

    def collected(queryset, field):
        return queryset.aggregate(total=models.Sum(field))['total'] or Decimal('0')

    payments = Payment.objects.filter(payment_date__date__gte=start_date, payment_date__date__lte=end_date)
    laundry = LaundryOrder.objects.filter(created_at__date__gte=start_date, created_at__date__lte=end_date)
    events = Event.objects.filter(start_date__date__gte=start_date, start_date__date__lte=end_date)
    memberships = Membership.objects.filter(start_date__gte=start_date, start_date__lte=end_date)
    restaurant = RestaurantOrder.objects.filter(created_at__date__gte=start_date, created_at__date__lte=end_date)

    departments = {
        'rooms': collected(payments, 'amount'),
        'restaurant': collected(restaurant, 'paid_amount'),
        'laundry': collected(laundry, 'paid_amount'),
        'events': collected(events, 'paid_amount'),
        'memberships': collected(memberships, 'paid_amount'),
    }

    bookings = Booking.objects.filter(
        check_in__date__gte=start_date,
        check_in__date__lte=end_date,
    ).select_related('room', 'guest')

    breakdown = {status: 0 for status in PAYMENT_STATUSES}
    for booking in bookings:
        breakdown[booking.payment_status] += 1

    return {
        'period': f"{start_date} to {end_date}",
        'start_date': start_date,
        'end_date': end_date,
        'departments': departments,
        'total_collected': sum(departments.values(), Decimal('0')),
        'total_payments': payments.count(),
        'total_bookings': bookings.count(),
        'payment_status_breakdown': breakdown,
    }


def get_dashboard_stats():
    from .models import Booking, Guest, LaundryOrder, Payment, Room

    room_stats = Room.objects.aggregate(
        total_rooms=models.Count('id'),
        occupied_rooms=models.Count('id', filter=models.Q(status='occupied')),
        reserved_rooms=models.Count('id', filter=models.Q(status='reserved')),
        maintenance_rooms=models.Count('id', filter=models.Q(status='maintenance')),
    )
    total_rooms = room_stats['total_rooms']
    occupied_rooms = room_stats['occupied_rooms']

    today = timezone.localdate()
    occupancy_rate = round(occupied_rooms / total_rooms * 100, 2) if total_rooms else 0

    return {
        'total_rooms': total_rooms,
        'occupied_rooms': occupied_rooms,
        'available_rooms': total_rooms - occupied_rooms - room_stats['reserved_rooms'] - room_stats['maintenance_rooms'],
        'maintenance_rooms': room_stats['maintenance_rooms'],
        'occupancy_rate': occupancy_rate,
        'today_check_ins': Booking.objects.filter(check_in__date=today).exclude(status='cancelled').count(),
        'today_check_outs': Booking.objects.filter(check_out__date=today).exclude(status='cancelled').count(),
        'total_revenue': Payment.objects.aggregate(total=models.Sum('amount'))['total'] or Decimal('0'),
        'pending_laundry_orders': LaundryOrder.objects.exclude(status='delivered').count(),
        'active_guests': Guest.objects.filter(bookings__status='checked-in').distinct().count(),
        'upcoming_reservations': Booking.objects.filter(status='confirmed', check_in__date__gt=today).count(),
    }


def recalculate_booking_totals(bookings, dry_run=False):
    """
    Recompute room charges (nights x nightly rate) for ``bookings``.
    Returns the list of bookings whose stored total differed.
    """
    changed = []

    with transaction.atomic():
        for booking in bookings.select_related('room', 'guest'):
            computed = booking.compute_total_amount()
            if booking.total_amount != computed:
                changed.append((booking, booking.total_amount, computed))
                if not dry_run:
                    booking.total_amount = computed
                    booking.save(update_fields=['total_amount'])

        if dry_run:
            transaction.set_rollback(True)

    logger.info("Booking totals checked, %d changed%s", len(changed), " (dry run)" if dry_run else "")
    return changed


def recalculate_order_totals(orders, dry_run=False):
    """Recompute laundry order totals from their items."""
    changed = []

    with transaction.atomic():
        for order in orders.prefetch_related('items'):
            stored = order.total_amount
            computed = order.recalculate_total()
            if stored != computed:
                changed.append((order, stored, computed))
                if not dry_run:
                    order.save(update_fields=['total_amount'])

        if dry_run:
            transaction.set_rollback(True)

    logger.info("Laundry totals checked, %d changed%s", len(changed), " (dry run)" if dry_run else "")
    return changed
