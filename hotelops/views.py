import csv
import logging
from datetime import datetime, time

from django.conf import settings
from django.db.models import Q, Sum
from django.forms.models import model_to_dict
from django.http import HttpResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime
from openpyxl import Workbook

from .badges import (
    BOOKING_STATUS_COLORS,
    EVENT_STATUS_COLORS,
    LAUNDRY_STATUS_COLORS,
    PAYMENT_STATUS_COLORS,
    RESTAURANT_STATUS_COLORS,
    badge_variant,
)
from .currency import currency_code, format_currency, format_currency_compact
from .forms import (
    BookingForm,
    ChargePaymentForm,
    EmployeeForm,
    EventForm,
    EventHallForm,
    GuestForm,
    LaundryOrderForm,
    MembershipForm,
    MembershipPlanForm,
    MenuItemForm,
    PaymentForm,
    RestaurantCheckoutForm,
    RoomForm,
    laundry_price_lookup,
    menu_price_lookup,
)
from .models import (
    ROOM_CHARGE,
    Booking,
    Employee,
    Event,
    EventHall,
    Guest,
    LaundryOrder,
    LaundryServicePrice,
    Membership,
    MembershipPlan,
    MenuItem,
    Payment,
    RestaurantOrder,
    Room,
)
from .permissions import ROLE_CHOICES, get_role_label, get_role_permissions, permissions_as_dicts
from .pricing import (
    apply_tax,
    build_receipt_items,
    calculate_laundry_total,
    coerce_quantity,
    estimate_event_charge,
    estimate_stay,
    service_ids_of,
)
from .responses import api_error, api_response, api_view, form_errors, paginate, read_payload
from .utils import build_checkout_report, generate_revenue_report, get_dashboard_stats, get_payment_anomalies

logger = logging.getLogger(__name__)


def _parse_moment(value):
    """Datetime (or date at midnight) from an ISO string; None when unreadable."""
    if not value:
        return None
    if isinstance(value, datetime):
        moment = value
    else:
        try:
            moment = parse_datetime(str(value))
            day = parse_date(str(value)) if moment is None else None
        except ValueError:
            # Well formed but impossible, e.g. 2026-02-30.
            return None
        if moment is None:
            if day is None:
                return None
            moment = datetime.combine(day, time.min)
    if timezone.is_naive(moment):
        moment = timezone.make_aware(moment)
    return moment


def _parse_day(value):
    if not value:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        return None


def _save_form(form, message, status=201):
    if not form.is_valid():
        return api_error(400, data=form_errors(form))
    instance = form.save()
    logger.info("%s (%s #%s)", message, instance.__class__.__name__, instance.pk)
    return api_response(instance.as_dict(), message, status=status)


def _update_data(instance, form_class, payload):
    """Current field values overlaid with ``payload`` so PUT may be partial."""
    data = model_to_dict(instance, fields=form_class._meta.fields)
    data.update(payload)
    return data


def _update_status(instance, payload, choices, colors):
    status = payload.get('status')
    if status not in dict(choices):
        return api_error(400, message=f"Invalid status '{status}'.")
    instance.status = status
    instance.save(update_fields=['status'])
    data = instance.as_dict()
    data['status_color'] = badge_variant(colors, status)
    return api_response(data, "Status updated successfully.")


def _record_charge_payment(request, instance, reference):
    form = ChargePaymentForm(read_payload(request), instance=instance)
    if not form.is_valid():
        return api_error(400, data=form_errors(form))
    amount = form.cleaned_data['amount']
    instance = form.save()
    logger.info("Payment of %s recorded for %s", amount, reference)
    return api_response(
        instance.as_dict(),
        f"Payment of {format_currency(amount, show_decimal=True)} received for {reference}.",
        status=201,
    )


# =======================
# 🔹 DASHBOARD
# =======================
@api_view('GET')
def dashboard(request):
    stats = get_dashboard_stats()
    stats['currency'] = currency_code()
    stats['total_revenue_display'] = format_currency(stats['total_revenue'])
    stats['total_revenue_compact'] = format_currency_compact(stats['total_revenue'])
    return api_response(stats)


# =======================
# 🔹 ROOMS
# =======================
@api_view('GET', 'POST')
def room_list(request):
    if request.method == 'POST':
        return _save_form(RoomForm(read_payload(request)), "Room created successfully.")

    rooms = Room.objects.all().order_by('number')
    status = request.GET.get('status')
    if status:
        rooms = rooms.filter(status=status)
    category = request.GET.get('category')
    if category:
        rooms = rooms.filter(category=category)
    return api_response(paginate(request, rooms))


@api_view('GET', 'PUT', 'DELETE')
def room_detail(request, pk):
    room = get_object_or_404(Room, pk=pk)

    if request.method == 'DELETE':
        room.delete()
        logger.info("Room %s deleted", room.number)
        return api_response(None, "Room deleted successfully.")

    if request.method == 'PUT':
        form = RoomForm(_update_data(room, RoomForm, read_payload(request)), instance=room)
        return _save_form(form, "Room updated successfully.", status=200)

    return api_response(room.as_dict())


# =======================
# 🔹 GUESTS
# =======================
@api_view('GET', 'POST')
def guest_list(request):
    if request.method == 'POST':
        return _save_form(GuestForm(read_payload(request)), "Guest added successfully.")

    guests = Guest.objects.all().order_by('name')
    search = request.GET.get('search')
    if search:
        guests = guests.filter(Q(name__icontains=search) | Q(email__icontains=search) | Q(phone__icontains=search))
    return api_response(paginate(request, guests))


@api_view('GET', 'PUT', 'DELETE')
def guest_detail(request, pk):
    guest = get_object_or_404(Guest, pk=pk)

    if request.method == 'DELETE':
        guest.delete()
        return api_response(None, "Guest deleted successfully.")

    if request.method == 'PUT':
        form = GuestForm(_update_data(guest, GuestForm, read_payload(request)), instance=guest)
        return _save_form(form, "Guest updated successfully.", status=200)

    data = guest.as_dict()
    bookings = guest.bookings.select_related('room').order_by('-check_in')
    data['bookings'] = [booking.as_dict() for booking in bookings]
    data['total_stays'] = len(data['bookings'])
    data['total_spent'] = Payment.objects.filter(booking__guest=guest).aggregate(total=Sum('amount'))['total'] or 0
    return api_response(data)


# =======================
# 🔹 BOOKINGS
# =======================
@api_view('GET', 'POST')
def booking_list(request):
    if request.method == 'POST':
        return _save_form(BookingForm(read_payload(request)), "Booking created successfully.")

    bookings = Booking.objects.select_related('guest', 'room').order_by('-check_in')
    status = request.GET.get('status')
    if status:
        bookings = bookings.filter(status=status)
    search = request.GET.get('search')
    if search:
        bookings = bookings.filter(
            Q(booking_reference__icontains=search)
            | Q(guest__name__icontains=search)
            | Q(room__number__icontains=search)
        )
    return api_response(paginate(request, bookings))


@api_view('GET')
def booking_detail(request, pk):
    booking = get_object_or_404(Booking.objects.select_related('guest', 'room'), pk=pk)
    data = booking.as_dict()
    data['status_color'] = badge_variant(BOOKING_STATUS_COLORS, booking.status)
    data['payment_status_color'] = badge_variant(PAYMENT_STATUS_COLORS, data['payment_status'])
    data['payments'] = [payment.as_dict() for payment in booking.payments.order_by('payment_date')]
    data['laundry_orders'] = [order.as_dict() for order in booking.laundry_orders.all()]
    data['restaurant_orders'] = [order.as_dict() for order in booking.restaurant_orders.all()]
    return api_response(data)


ROOM_STATUS_FOR_BOOKING = {
    'confirmed': 'reserved',
    'checked-in': 'occupied',
    'checked-out': 'available',
    'cancelled': 'available',
}


@api_view('PUT', 'POST')
def booking_status(request, pk):
    booking = get_object_or_404(Booking.objects.select_related('guest', 'room'), pk=pk)
    response = _update_status(booking, read_payload(request), Booking.STATUS_CHOICES, BOOKING_STATUS_COLORS)

    if response.status_code == 200:
        room = booking.room
        room.status = ROOM_STATUS_FOR_BOOKING[booking.status]
        room.save(update_fields=['status'])
        logger.info("Booking %s marked %s", booking.booking_reference, booking.status)
    return response


@api_view('POST')
def booking_payment(request, pk):
    booking = get_object_or_404(Booking, pk=pk)
    form = PaymentForm(read_payload(request))
    if not form.is_valid():
        return api_error(400, data=form_errors(form))

    payment = form.save(commit=False)
    payment.booking = booking
    payment.save()
    logger.info("Payment %s of %s recorded for %s", payment.transaction_ref, payment.amount, booking.booking_reference)

    data = payment.as_dict()
    data['payment_status'] = booking.payment_status
    data['balance'] = booking.balance
    return api_response(
        data,
        f"Payment of {format_currency(payment.amount, show_decimal=True)} received for {booking.booking_reference}.",
        status=201,
    )


@api_view('GET')
def checkout_report(request, pk):
    booking = get_object_or_404(Booking.objects.select_related('guest', 'room'), pk=pk)
    return api_response(build_checkout_report(booking))


@api_view('POST')
def booking_estimate(request):
    """Live stay estimate for the booking form; never rejects input."""
    payload = read_payload(request)
    room = Room.objects.filter(pk=payload.get('room_id')).first() if str(payload.get('room_id', '')).isdigit() else None
    rate = room.price if room else payload.get('nightly_rate')
    stay = estimate_stay(_parse_moment(payload.get('check_in')), _parse_moment(payload.get('check_out')), rate)
    return api_response({'nights': stay.nights, 'total': stay.total, 'total_display': format_currency(stay.total)})


EXPORT_HEADERS = ['Reference', 'Guest Name', 'Room Number', 'Check-in', 'Check-out', 'Nights',
                  'Status', 'Total', 'Paid', 'Balance', 'Payment Status']


def _export_rows():
    for booking in Booking.objects.select_related('guest', 'room').order_by('-check_in'):
        yield [
            booking.booking_reference,
            booking.guest.name,
            booking.room.number,
            booking.check_in.strftime('%Y-%m-%d'),
            booking.check_out.strftime('%Y-%m-%d'),
            booking.nights,
            booking.status,
            float(booking.charge_total()),
            float(booking.paid_amount),
            float(booking.balance),
            booking.payment_status,
        ]


@api_view('GET')
def export_bookings_csv(request):
    response = HttpResponse(content_type='text/csv')
    response['Content-Disposition'] = 'attachment; filename="booking_list.csv"'

    writer = csv.writer(response)
    writer.writerow(EXPORT_HEADERS)
    for row in _export_rows():
        writer.writerow(row)

    return response


@api_view('GET')
def export_bookings_excel(request):
    response = HttpResponse(content_type='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet')
    response['Content-Disposition'] = 'attachment; filename="booking_list.xlsx"'

    workbook = Workbook()
    sheet = workbook.active
    sheet.title = 'Booking List'
    sheet.append(EXPORT_HEADERS)
    for row in _export_rows():
        sheet.append(row)

    workbook.save(response)
    return response


# =======================
# 🔹 LAUNDRY
# =======================
@api_view('GET')
def laundry_prices(request):
    prices = LaundryServicePrice.objects.select_related('clothing_type', 'service_type').order_by(
        'clothing_type__name', 'service_type__name'
    )
    return api_response([
        dict(price.as_row(), clothing_type=price.clothing_type.name, service_type=price.service_type.name)
        for price in prices
    ])


@api_view('POST')
def laundry_quote(request):
    """
    Running total while an order is drafted. Unpriced services count as 0
    and bad quantities as 0; nothing here rejects the draft.
    """
    items = read_payload(request).get('items') or []
    if not isinstance(items, list):
        items = []
    items = [item for item in items if isinstance(item, dict)]
    lookup = laundry_price_lookup()

    lines = []
    for item in items:
        line = lookup.order_line(item.get('clothing_type_id'), service_ids_of(item), item.get('quantity'))
        unit_price = sum(line.unit_price_components, 0)
        quantity = coerce_quantity(line.quantity)
        lines.append({
            'clothing_type_id': item.get('clothing_type_id'),
            'available_service_ids': list(lookup.available_services(item.get('clothing_type_id'))),
            'quantity': quantity,
            'unit_price': unit_price,
            'subtotal': unit_price * quantity,
        })

    total = calculate_laundry_total(items, lookup)
    return api_response({'items': lines, 'total': total, 'total_display': format_currency(total)})


@api_view('GET', 'POST')
def laundry_order_list(request):
    if request.method == 'POST':
        payload = read_payload(request)
        items = payload.pop('items', None)
        if not isinstance(items, list):
            items = []
        return _save_form(LaundryOrderForm(payload, items=items), "Laundry order created successfully.")

    orders = LaundryOrder.objects.select_related('booking').prefetch_related('items__services', 'items__clothing_type')
    orders = orders.order_by('-created_at')
    status = request.GET.get('status')
    if status:
        orders = orders.filter(status=status)
    return api_response(paginate(request, orders))


@api_view('GET')
def laundry_order_detail(request, pk):
    order = get_object_or_404(LaundryOrder, pk=pk)
    data = order.as_dict()
    data['status_color'] = badge_variant(LAUNDRY_STATUS_COLORS, order.status)
    data['payment_status_color'] = badge_variant(PAYMENT_STATUS_COLORS, order.payment_status)
    return api_response(data)


@api_view('PUT', 'POST')
def laundry_order_status(request, pk):
    order = get_object_or_404(LaundryOrder, pk=pk)
    return _update_status(order, read_payload(request), LaundryOrder.STATUS_CHOICES, LAUNDRY_STATUS_COLORS)


@api_view('POST')
def laundry_order_payment(request, pk):
    order = get_object_or_404(LaundryOrder, pk=pk)
    return _record_charge_payment(request, order, order.order_number)


# =======================
# 🔹 RESTAURANT
# =======================
@api_view('GET', 'POST')
def menu_item_list(request):
    if request.method == 'POST':
        return _save_form(MenuItemForm(read_payload(request)), "Menu item created successfully.")

    items = MenuItem.objects.order_by('category', 'name')
    category = request.GET.get('category')
    if category:
        items = items.filter(category=category)
    if request.GET.get('in_stock') == 'true':
        items = items.filter(in_stock=True)
    return api_response(paginate(request, items))


@api_view('GET', 'PUT', 'DELETE')
def menu_item_detail(request, pk):
    item = get_object_or_404(MenuItem, pk=pk)

    if request.method == 'DELETE':
        if item.order_items.exists():
            return api_error(400, message="Menu item has been ordered; mark it out of stock instead.")
        item.delete()
        return api_response(None, "Menu item deleted successfully.")

    if request.method == 'PUT':
        form = MenuItemForm(_update_data(item, MenuItemForm, read_payload(request)), instance=item)
        return _save_form(form, "Menu item updated successfully.", status=200)

    return api_response(item.as_dict())


def _draft_menu_items(payload):
    items = payload.get('items') or []
    if not isinstance(items, list):
        return []
    return [
        {'item_id': item.get('menu_item_id'), 'quantity': item.get('quantity')}
        for item in items if isinstance(item, dict)
    ]


@api_view('POST')
def restaurant_quote(request):
    """Cart totals while an order is taken; unknown or out-of-stock items price at 0."""
    items = _draft_menu_items(read_payload(request))
    names = {str(pk): name for pk, name in MenuItem.objects.values_list('pk', 'name')}
    receipt = build_receipt_items(items, menu_price_lookup(), names)

    subtotal = sum((row.subtotal for row in receipt), 0)
    tax, total = apply_tax(subtotal, settings.HOTELOPS_TAX_RATE)
    return api_response({
        'items': [row._asdict() for row in receipt],
        'subtotal': subtotal,
        'tax': tax,
        'total': total,
        'total_display': format_currency(total),
    })


def _restaurant_checkout(payload, payment_method):
    items = payload.pop('items', None)
    form = RestaurantCheckoutForm(payload, items=items, payment_method=payment_method)
    if payment_method == ROOM_CHARGE:
        message = "Order charged to room successfully."
    else:
        message = "Order paid successfully."
    return _save_form(form, message)


@api_view('POST')
def restaurant_checkout_cash(request):
    payload = read_payload(request)
    payment_method = payload.pop('payment_method', 'cash')
    if payment_method not in ('cash', 'card'):
        return api_error(400, message=f"Invalid payment method '{payment_method}'.")
    return _restaurant_checkout(payload, payment_method)


@api_view('POST')
def restaurant_checkout_room_charge(request):
    return _restaurant_checkout(read_payload(request), ROOM_CHARGE)


@api_view('GET')
def restaurant_order_list(request):
    orders = RestaurantOrder.objects.select_related('booking').prefetch_related('items').order_by('-created_at')
    status = request.GET.get('status')
    if status:
        orders = orders.filter(status=status)
    payment_method = request.GET.get('payment_method')
    if payment_method:
        orders = orders.filter(payment_method=payment_method)
    return api_response(paginate(request, orders))


@api_view('GET')
def restaurant_order_detail(request, pk):
    order = get_object_or_404(RestaurantOrder.objects.select_related('booking'), pk=pk)
    data = order.as_dict()
    data['status_color'] = badge_variant(RESTAURANT_STATUS_COLORS, order.status)
    data['payment_status_color'] = badge_variant(PAYMENT_STATUS_COLORS, order.payment_status)
    return api_response(data)


@api_view('PUT', 'POST')
def restaurant_order_status(request, pk):
    order = get_object_or_404(RestaurantOrder.objects.select_related('booking'), pk=pk)
    return _update_status(order, read_payload(request), RestaurantOrder.STATUS_CHOICES, RESTAURANT_STATUS_COLORS)


@api_view('POST')
def restaurant_order_payment(request, pk):
    order = get_object_or_404(RestaurantOrder.objects.select_related('booking'), pk=pk)
    return _record_charge_payment(request, order, order.order_number)


# =======================
# 🔹 EVENTS
# =======================
@api_view('GET', 'POST')
def event_hall_list(request):
    if request.method == 'POST':
        return _save_form(EventHallForm(read_payload(request)), "Event hall created successfully.")
    return api_response(paginate(request, EventHall.objects.order_by('name')))


@api_view('POST')
def event_estimate(request):
    """Hall charge estimate; 0 until a hall and both times are chosen."""
    payload = read_payload(request)
    hall_id = payload.get('hall_id')
    hall = EventHall.objects.filter(pk=hall_id).first() if str(hall_id or '').isdigit() else None
    start = _parse_moment(payload.get('start_date'))
    end = _parse_moment(payload.get('end_date'))

    if hall is None or start is None or end is None:
        return api_response({'hours': 0, 'days': 0, 'estimate': 0, 'estimate_display': format_currency(0)})

    estimate = estimate_event_charge(start, end, payload.get('charge_type'), hall.hourly_rate, hall.daily_rate)
    return api_response({
        'hours': estimate.hours,
        'days': estimate.days,
        'estimate': estimate.estimate,
        'estimate_display': format_currency(estimate.estimate),
    })


@api_view('GET', 'POST')
def event_list(request):
    if request.method == 'POST':
        return _save_form(EventForm(read_payload(request)), "Event booked successfully.")

    events = Event.objects.select_related('hall').order_by('start_date')
    status = request.GET.get('status')
    if status:
        events = events.filter(status=status)
    return api_response(paginate(request, events))


@api_view('PUT', 'POST')
def event_status(request, pk):
    event = get_object_or_404(Event.objects.select_related('hall'), pk=pk)
    return _update_status(event, read_payload(request), Event.STATUS_CHOICES, EVENT_STATUS_COLORS)


@api_view('POST')
def event_payment(request, pk):
    event = get_object_or_404(Event.objects.select_related('hall'), pk=pk)
    return _record_charge_payment(request, event, f"event #{event.pk}")


# =======================
# 🔹 GYM & POOL
# =======================
@api_view('GET', 'POST')
def membership_plan_list(request):
    if request.method == 'POST':
        return _save_form(MembershipPlanForm(read_payload(request)), "Plan created successfully.")

    plans = MembershipPlan.objects.order_by('facility', 'price')
    facility = request.GET.get('facility')
    if facility:
        plans = plans.filter(facility=facility)
    return api_response(paginate(request, plans))


@api_view('GET', 'POST')
def membership_list(request):
    if request.method == 'POST':
        return _save_form(MembershipForm(read_payload(request)), "Member registered successfully.")

    memberships = Membership.objects.select_related('plan').order_by('-start_date')
    facility = request.GET.get('facility')
    if facility:
        memberships = memberships.filter(plan__facility=facility)
    status = request.GET.get('status')
    if status:
        memberships = memberships.filter(status=status)
    return api_response(paginate(request, memberships))


# =======================
# 🔹 EMPLOYEES
# =======================
@api_view('GET', 'POST')
def employee_list(request):
    if request.method == 'POST':
        return _save_form(EmployeeForm(read_payload(request)), "Employee added successfully.")

    employees = Employee.objects.order_by('name')
    role = request.GET.get('role')
    if role:
        employees = employees.filter(role=role)
    return api_response(paginate(request, employees))


@api_view('GET')
def role_list(request):
    return api_response([{'value': value, 'label': label} for value, label in ROLE_CHOICES])


@api_view('GET')
def role_permissions(request, role):
    return api_response({
        'role': role,
        'label': get_role_label(role),
        'permissions': permissions_as_dicts(get_role_permissions(role)),
    })


# =======================
# 🔹 REPORTS
# =======================
@api_view('GET')
def revenue_report(request):
    report = generate_revenue_report(
        _parse_day(request.GET.get('start_date')),
        _parse_day(request.GET.get('end_date')),
    )
    report['total_collected_display'] = format_currency(report['total_collected'])
    return api_response(report)


@api_view('GET')
def payment_anomalies(request):
    return api_response(get_payment_anomalies())
