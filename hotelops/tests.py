import os
import tempfile
from datetime import datetime, timedelta
from decimal import Decimal
from io import BytesIO, StringIO

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.test import SimpleTestCase, TestCase
from django.utils import timezone
from openpyxl import load_workbook

from hotelops.badges import BOOKING_STATUS_COLORS, PAYMENT_STATUS_COLORS, badge_variant
from hotelops.currency import format_currency, format_currency_compact
from hotelops.diagram import collect_entities
from hotelops.models import (
    Booking,
    Employee,
    Event,
    EventHall,
    Guest,
    LaundryClothingType,
    LaundryOrder,
    LaundryServicePrice,
    LaundryServiceType,
    MembershipPlan,
    MenuItem,
    Payment,
    RestaurantOrder,
    Room,
)
from hotelops.permissions import (
    DEFAULT_PERMISSIONS,
    MODULES,
    ROLE_CHOICES,
    ROLE_PERMISSION_DEFAULTS,
    get_role_permissions,
    permissions_as_dicts,
)
from hotelops.pricing import (
    PAID,
    PARTIAL,
    UNPAID,
    OrderLine,
    PriceLookup,
    balance_due,
    build_receipt_items,
    calculate_laundry_total,
    calculate_nights,
    calculate_total,
    classify_payment,
    coerce_quantity,
    estimate_event_charge,
    estimate_stay,
    event_duration,
)
from hotelops.reference import generate_booking_reference, generate_transaction_ref
from hotelops.validators import validate_amount_paid, validate_menu_items, validate_order_items


class LineItemTotalTestCase(SimpleTestCase):
    def test_total_sums_quantity_times_unit_price(self):
        lines = [
            OrderLine(1, 2, (Decimal('100'), Decimal('50'))),
            OrderLine(2, 1, (Decimal('30'),)),
        ]
        self.assertEqual(calculate_total(lines), Decimal('330'))

    def test_composite_item(self):
        self.assertEqual(calculate_total([OrderLine(1, 2, (Decimal('500'), Decimal('800')))]), Decimal('2600'))

    def test_empty_order_totals_zero(self):
        self.assertEqual(calculate_total([]), 0)

    def test_lines_may_be_dicts(self):
        lines = [{'item_id': 'a', 'quantity': '3', 'unit_price_components': ['10', '2.5']}]
        self.assertEqual(calculate_total(lines), Decimal('37.5'))

    def test_quantity_coercion(self):
        """Quantities read like a form field: integer prefix, bad or negative input is 0."""
        self.assertEqual(coerce_quantity('3 shirts'), 3)
        self.assertEqual(coerce_quantity('2.7'), 2)
        self.assertEqual(coerce_quantity(2.7), 2)
        self.assertEqual(coerce_quantity('abc'), 0)
        self.assertEqual(coerce_quantity(''), 0)
        self.assertEqual(coerce_quantity(None), 0)
        self.assertEqual(coerce_quantity(-4), 0)

    def test_invalid_price_components_count_as_zero(self):
        line = OrderLine(1, 2, ('abc', None, '20', 'NaN'))
        self.assertEqual(calculate_total([line]), Decimal('40'))

    def test_adding_a_line_never_lowers_the_total(self):
        lines = [OrderLine(1, 1, ('15',))]
        before = calculate_total(lines)
        lines.append(OrderLine(2, 'x', ('99',)))
        self.assertGreaterEqual(calculate_total(lines), before)
        lines.append(OrderLine(3, 1, ()))
        self.assertGreaterEqual(calculate_total(lines), before)


class PriceLookupTestCase(SimpleTestCase):
    def setUp(self):
        self.lookup = PriceLookup([
            {'category_id': 1, 'service_id': 1, 'price': Decimal('500')},
            {'category_id': 1, 'service_id': 2, 'price': Decimal('200')},
            {'category_id': 2, 'service_id': 1, 'price': Decimal('800')},
        ])

    def test_unknown_pairs_price_at_zero(self):
        self.assertEqual(self.lookup.price(1, 2), Decimal('200'))
        self.assertEqual(self.lookup.price('1', '2'), Decimal('200'))
        self.assertEqual(self.lookup.price(2, 2), 0)
        self.assertNotIn((2, 2), self.lookup)

    def test_available_services(self):
        self.assertEqual(self.lookup.available_services(1), ('1', '2'))
        self.assertEqual(self.lookup.available_services(9), ())

    def test_laundry_total(self):
        items = [
            {'clothing_type_id': 1, 'service_ids': [1, 2], 'quantity': 2},
            {'clothing_type_id': 2, 'service_ids': [1, 3], 'quantity': '1'},
            {'clothing_type_id': 2, 'service_ids': [1], 'quantity': 'none'},
        ]
        self.assertEqual(calculate_laundry_total(items, self.lookup), Decimal('2200'))

    def test_malformed_drafts_total_zero(self):
        items = [
            {'clothing_type_id': 1, 'service_ids': 5, 'quantity': 2},
            {'clothing_type_id': 1, 'service_ids': None, 'quantity': 2},
            1,
            'shirt',
        ]
        self.assertEqual(calculate_laundry_total(items, self.lookup), 0)

    def test_receipt_items(self):
        lookup = PriceLookup([{'item_id': 7, 'price': '1200'}])
        receipt = build_receipt_items(
            [{'item_id': 7, 'quantity': 2}, {'item_id': 8, 'quantity': 1}],
            lookup,
            names={'7': 'Jollof Rice'},
        )
        self.assertEqual(receipt[0].name, 'Jollof Rice')
        self.assertEqual(receipt[0].subtotal, Decimal('2400'))
        self.assertEqual(receipt[1].name, 'Unknown')
        self.assertEqual(receipt[1].subtotal, 0)


class PaymentStatusTestCase(SimpleTestCase):
    def test_classification(self):
        self.assertEqual(classify_payment(Decimal('100'), Decimal('100')), PAID)
        self.assertEqual(classify_payment(Decimal('100'), Decimal('150')), PAID)
        self.assertEqual(classify_payment(Decimal('100'), Decimal('40')), PARTIAL)
        self.assertEqual(classify_payment(Decimal('100'), Decimal('0')), UNPAID)

    def test_nothing_owed_reads_as_paid(self):
        self.assertEqual(classify_payment(0, 0), PAID)

    def test_string_and_invalid_amounts(self):
        self.assertEqual(classify_payment('100', '40'), PARTIAL)
        self.assertEqual(classify_payment('100', 'abc'), UNPAID)

    def test_comparison_is_exact(self):
        self.assertEqual(classify_payment(Decimal('100.00'), Decimal('99.99')), PARTIAL)

    def test_balance_is_not_clamped(self):
        self.assertEqual(balance_due(Decimal('100'), Decimal('150')), Decimal('-50'))
        self.assertEqual(balance_due(Decimal('300'), Decimal('120')), Decimal('180'))


class DurationTestCase(SimpleTestCase):
    def setUp(self):
        self.start = timezone.make_aware(datetime(2026, 11, 1, 10, 0))

    def test_nights_round_up(self):
        self.assertEqual(calculate_nights(self.start, self.start + timedelta(hours=1)), 1)
        self.assertEqual(calculate_nights(self.start, self.start + timedelta(days=1)), 1)
        self.assertEqual(calculate_nights(self.start, self.start + timedelta(hours=25)), 2)

    def test_inverted_stay_is_not_clamped(self):
        self.assertEqual(calculate_nights(self.start, self.start - timedelta(days=1)), -1)
        self.assertEqual(calculate_nights(self.start, self.start), 0)

    def test_stay_estimate_floors_at_zero(self):
        stay = estimate_stay(self.start, self.start - timedelta(days=2), Decimal('100'))
        self.assertEqual(stay.nights, 0)
        self.assertEqual(stay.total, 0)
        self.assertEqual(estimate_stay(None, self.start, Decimal('100')), (0, 0))
        self.assertEqual(estimate_stay(self.start, self.start + timedelta(days=3), '100').total, Decimal('300'))

    def test_event_duration_is_at_least_one(self):
        self.assertEqual(event_duration(self.start, self.start), (1, 1))
        self.assertEqual(event_duration(self.start, self.start - timedelta(hours=5)), (1, 1))
        self.assertEqual(event_duration(self.start, self.start + timedelta(hours=30)), (30, 2))

    def test_hourly_event_charge(self):
        estimate = estimate_event_charge(
            self.start, self.start + timedelta(hours=3), 'hourly', Decimal('1000'), Decimal('5000'),
        )
        self.assertEqual(estimate.hours, 3)
        self.assertEqual(estimate.estimate, Decimal('3000'))

    def test_daily_event_charge(self):
        estimate = estimate_event_charge(
            self.start, self.start + timedelta(hours=30), 'daily', Decimal('1000'), Decimal('5000'),
        )
        self.assertEqual(estimate.days, 2)
        self.assertEqual(estimate.estimate, Decimal('10000'))

    def test_part_hour_is_billed_as_a_full_hour(self):
        start = timezone.make_aware(datetime(2026, 11, 1, 9, 0))
        end = timezone.make_aware(datetime(2026, 11, 1, 11, 30))
        estimate = estimate_event_charge(start, end, 'hourly', Decimal('1000'), Decimal('5000'))
        self.assertEqual(estimate.hours, 3)
        self.assertEqual(estimate.estimate, Decimal('3000'))

    def test_exactly_two_days(self):
        estimate = estimate_event_charge(
            self.start, self.start + timedelta(hours=48), 'daily', Decimal('1000'), Decimal('5000'),
        )
        self.assertEqual(estimate.days, 2)
        self.assertEqual(estimate.estimate, Decimal('10000'))


class RolePermissionTestCase(SimpleTestCase):
    def test_unknown_role_is_read_only(self):
        permissions = get_role_permissions('night-auditor')
        self.assertEqual(permissions, DEFAULT_PERMISSIONS)
        for permission in permissions:
            self.assertTrue(permission.read)
            self.assertFalse(permission.create or permission.update or permission.delete)

    def test_every_role_covers_every_module_in_order(self):
        for role, permissions in ROLE_PERMISSION_DEFAULTS.items():
            self.assertEqual(tuple(p.module for p in permissions), MODULES, role)

    def test_role_tables(self):
        self.assertTrue(all(p.delete for p in get_role_permissions('sub-admin')))
        self.assertFalse(any(p.delete for p in get_role_permissions('manager')))

        reports = get_role_permissions('receptionist')[MODULES.index('Reports')]
        self.assertFalse(reports.read)

        gym = get_role_permissions('gym-head')[MODULES.index('Gym')]
        self.assertTrue(gym.create and gym.read and gym.update and gym.delete)

    def test_super_admin_is_not_assignable(self):
        self.assertNotIn('super-admin', dict(ROLE_CHOICES))

    def test_tables_are_read_only(self):
        with self.assertRaises(TypeError):
            ROLE_PERMISSION_DEFAULTS['manager'] = DEFAULT_PERMISSIONS
        with self.assertRaises(AttributeError):
            DEFAULT_PERMISSIONS[0].create = True

    def test_copies_are_independent(self):
        first = permissions_as_dicts(get_role_permissions('manager'))
        first[0]['delete'] = True
        second = permissions_as_dicts(get_role_permissions('manager'))
        self.assertFalse(second[0]['delete'])


class DisplayHelpersTestCase(SimpleTestCase):
    def test_format_currency(self):
        self.assertEqual(format_currency(1500), '₦1,500')
        self.assertEqual(format_currency(1500, show_decimal=True), '₦1,500.00')
        self.assertEqual(format_currency('1234.5'), '₦1,234.5')
        self.assertEqual(format_currency(None), '₦0')
        self.assertEqual(format_currency('abc'), '₦0')

    def test_format_currency_compact(self):
        self.assertEqual(format_currency_compact(1500), '₦1.5k')
        self.assertEqual(format_currency_compact(2300000), '₦2.3M')
        self.assertEqual(format_currency_compact(999), '₦999')

    def test_badges(self):
        self.assertEqual(badge_variant(PAYMENT_STATUS_COLORS, PAID), 'success')
        self.assertEqual(badge_variant(BOOKING_STATUS_COLORS, 'unknown'), 'secondary')
        with self.assertRaises(TypeError):
            BOOKING_STATUS_COLORS['unknown'] = 'info'

    def test_references_are_unique(self):
        refs = {generate_transaction_ref() for _ in range(200)}
        self.assertEqual(len(refs), 200)
        self.assertTrue(generate_transaction_ref().startswith('HTL-'))
        self.assertTrue(generate_booking_reference().startswith('BK-'))


class OrderItemValidationTestCase(SimpleTestCase):
    def setUp(self):
        self.lookup = PriceLookup([{'category_id': 1, 'service_id': 1, 'price': '500'}])

    def test_valid_items_are_cleaned(self):
        cleaned = validate_order_items([{'clothing_type_id': 1, 'service_ids': [1], 'quantity': '2'}], self.lookup)
        self.assertEqual(cleaned[0]['quantity'], 2)

    def test_rejections(self):
        with self.assertRaises(ValidationError):
            validate_order_items([], self.lookup)
        with self.assertRaises(ValidationError):
            validate_order_items([{'clothing_type_id': 1, 'service_ids': [1], 'quantity': 0}], self.lookup)
        with self.assertRaises(ValidationError):
            validate_order_items([{'clothing_type_id': 1, 'service_ids': [], 'quantity': 1}], self.lookup)
        with self.assertRaises(ValidationError) as ctx:
            validate_order_items([{'clothing_type_id': 1, 'service_ids': [1, 2], 'quantity': 1}], self.lookup)
        self.assertIn('no price configured for service 2', ctx.exception.messages[0])

    def test_malformed_items_are_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            validate_order_items([1], self.lookup)
        self.assertIn('expected an object', ctx.exception.messages[0])
        with self.assertRaises(ValidationError):
            validate_order_items({'clothing_type_id': 1}, self.lookup)
        with self.assertRaises(ValidationError):
            validate_order_items([{'clothing_type_id': 1, 'service_ids': 1, 'quantity': 1}], self.lookup)


class MenuItemValidationTestCase(SimpleTestCase):
    def setUp(self):
        self.lookup = PriceLookup([{'item_id': 3, 'price': '1500'}])

    def test_valid_cart(self):
        cleaned = validate_menu_items([{'menu_item_id': 3, 'quantity': '2'}], self.lookup)
        self.assertEqual(cleaned, [{'item_id': 3, 'quantity': 2}])

    def test_rejections(self):
        with self.assertRaises(ValidationError):
            validate_menu_items([], self.lookup)
        with self.assertRaises(ValidationError):
            validate_menu_items(['3'], self.lookup)
        with self.assertRaises(ValidationError) as ctx:
            validate_menu_items([{'menu_item_id': 4, 'quantity': 1}], self.lookup)
        self.assertIn('menu item 4 is not available', ctx.exception.messages[0])
        with self.assertRaises(ValidationError):
            validate_menu_items([{'menu_item_id': 3, 'quantity': 0}], self.lookup)

    def test_paid_amount(self):
        self.assertEqual(validate_amount_paid(None), 0)
        self.assertEqual(validate_amount_paid(Decimal('25')), Decimal('25'))
        with self.assertRaises(ValidationError):
            validate_amount_paid(Decimal('-1'))


class HotelTestCase(TestCase):
    """Shared fixtures: a logged-in user, a room, a guest and a 3-night booking."""

    def setUp(self):
        self.user = get_user_model().objects.create_user(username='frontdesk', password='secret-pass')
        self.client.force_login(self.user)

        self.guest = Guest.objects.create(name="Test Guest", email="test@example.com", phone="08012345678")
        self.room = Room.objects.create(number="101", category="deluxe", capacity=2, price=Decimal("100.00"))

        self.check_in = timezone.now() + timedelta(days=1)
        self.check_out = self.check_in + timedelta(days=3)
        self.booking = Booking.objects.create(
            guest=self.guest,
            room=self.room,
            check_in=self.check_in,
            check_out=self.check_out,
        )

    def post_json(self, url, data):
        return self.client.post(url, data, content_type='application/json')

    def put_json(self, url, data):
        return self.client.put(url, data, content_type='application/json')


class BalanceManagementTestCase(HotelTestCase):
    def test_total_is_nights_times_rate(self):
        self.assertEqual(self.booking.nights, 3)
        self.assertEqual(self.booking.total_amount, Decimal('300.00'))
        self.assertTrue(self.booking.booking_reference.startswith('BK-'))

    def test_payment_status_progression(self):
        """The guest owes the stay plus 10% tax: 300 + 30."""
        self.assertEqual(self.booking.payment_status, UNPAID)

        Payment.objects.create(booking=self.booking, amount=Decimal("150.00"), payment_method="card")
        self.assertEqual(self.booking.payment_status, PARTIAL)
        self.assertEqual(self.booking.balance, Decimal('180.00'))

        Payment.objects.create(booking=self.booking, amount=Decimal("150.00"), payment_method="cash")
        self.assertEqual(self.booking.payment_status, PARTIAL)
        self.assertEqual(self.booking.balance, Decimal('30.00'))

        Payment.objects.create(booking=self.booking, amount=Decimal("30.00"), payment_method="cash")
        self.assertEqual(self.booking.payment_status, PAID)
        self.assertEqual(self.booking.balance, 0)

    def test_overpayment_is_recorded(self):
        Payment.objects.create(booking=self.booking, amount=Decimal("350.00"))
        self.assertEqual(self.booking.payment_status, PAID)
        self.assertEqual(self.booking.balance, Decimal('-20.00'))

    def test_as_dict_lists_every_charge(self):
        data = self.booking.as_dict()
        for key in ('laundry_charges', 'membership_charges', 'restaurant_charges', 'other_charges'):
            self.assertIn(key, data)
        self.assertEqual(data['membership_charges'], 0)
        self.assertEqual(data['grand_total'], Decimal('300.00'))
        self.assertEqual(data['tax'], Decimal('30.00'))
        self.assertEqual(data['amount_due'], Decimal('330.00'))

    def test_non_positive_payment_is_rejected(self):
        with self.assertRaises(ValueError):
            Payment.objects.create(booking=self.booking, amount=Decimal("0"))

    def test_transaction_refs_are_generated(self):
        first = Payment.objects.create(booking=self.booking, amount=Decimal("10"))
        second = Payment.objects.create(booking=self.booking, amount=Decimal("10"))
        self.assertNotEqual(first.transaction_ref, second.transaction_ref)
        self.assertTrue(first.transaction_ref.startswith('HTL-'))


class ApiEnvelopeTestCase(HotelTestCase):
    def test_anonymous_requests_get_401(self):
        self.client.logout()
        response = self.client.get('/api/dashboard/')
        self.assertEqual(response.status_code, 401)
        body = response.json()
        self.assertFalse(body['success'])
        self.assertEqual(body['message'], 'Unauthorized. Please login again.')

    def test_unknown_method_gets_405(self):
        response = self.client.delete('/api/dashboard/')
        self.assertEqual(response.status_code, 405)
        self.assertEqual(response.json()['message'], 'Method not allowed.')

    def test_missing_object_gets_404(self):
        response = self.client.get('/api/bookings/999999/')
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()['message'], 'Resource not found.')

    def test_malformed_json_gets_400(self):
        response = self.client.post('/api/rooms/', '[1, 2]', content_type='application/json')
        self.assertEqual(response.status_code, 400)

    def test_dashboard(self):
        body = self.client.get('/api/dashboard/').json()
        self.assertTrue(body['success'])
        self.assertEqual(body['data']['total_rooms'], 1)
        self.assertEqual(body['data']['currency'], 'NGN')

    def test_list_pagination(self):
        Room.objects.create(number="102", price=Decimal("80.00"))
        data = self.client.get('/api/rooms/?page_size=1').json()['data']
        self.assertEqual(data['total_items'], 2)
        self.assertEqual(data['total_pages'], 2)
        self.assertEqual(len(data['items']), 1)


class GuestApiTestCase(HotelTestCase):
    def test_detail_totals_payments_across_stays(self):
        second = Booking.objects.create(
            guest=self.guest,
            room=Room.objects.create(number="102", price=Decimal("80.00")),
            check_in=self.check_in,
            check_out=self.check_out,
        )
        Payment.objects.create(booking=self.booking, amount=Decimal('100'))
        Payment.objects.create(booking=self.booking, amount=Decimal('50'))
        Payment.objects.create(booking=second, amount=Decimal('80'))

        data = self.client.get(f'/api/guests/{self.guest.pk}/').json()['data']
        self.assertEqual(data['total_stays'], 2)
        self.assertEqual(Decimal(data['total_spent']), Decimal('230'))

    def test_guest_without_payments(self):
        data = self.client.get(f'/api/guests/{self.guest.pk}/').json()['data']
        self.assertEqual(Decimal(data['total_spent']), 0)


class BookingApiTestCase(HotelTestCase):
    def setUp(self):
        super().setUp()
        self.suite = Room.objects.create(number="201", category="suite", price=Decimal("250.00"))

    def booking_payload(self, **overrides):
        start = timezone.now() + timedelta(days=2)
        payload = {
            'guest': self.guest.pk,
            'room': self.suite.pk,
            'check_in': start.isoformat(),
            'check_out': (start + timedelta(days=2)).isoformat(),
            'booking_type': 'reservation',
        }
        payload.update(overrides)
        return payload

    def test_create_booking_with_initial_payment(self):
        response = self.post_json('/api/bookings/', self.booking_payload(paid_amount='100', payment_method='cash'))
        self.assertEqual(response.status_code, 201)

        data = response.json()['data']
        self.assertEqual(Decimal(data['total_amount']), Decimal('500'))
        self.assertEqual(Decimal(data['amount_due']), Decimal('550'))
        self.assertEqual(data['payment_status'], PARTIAL)
        self.assertEqual(Decimal(data['balance']), Decimal('450'))

        self.suite.refresh_from_db()
        self.assertEqual(self.suite.status, 'reserved')

    def test_overlapping_booking_is_rejected(self):
        self.assertEqual(self.post_json('/api/bookings/', self.booking_payload()).status_code, 201)
        response = self.post_json('/api/bookings/', self.booking_payload())
        self.assertEqual(response.status_code, 400)
        self.assertIn('not available', response.json()['data']['__all__'][0])

    def test_inverted_dates_are_rejected(self):
        start = timezone.now() + timedelta(days=5)
        payload = self.booking_payload(check_in=start.isoformat(), check_out=(start - timedelta(days=1)).isoformat())
        self.assertEqual(self.post_json('/api/bookings/', payload).status_code, 400)
        self.assertEqual(Booking.objects.count(), 1)

    def test_record_payment(self):
        response = self.post_json(f'/api/bookings/{self.booking.pk}/payments/', {'amount': '100', 'payment_method': 'card'})
        self.assertEqual(response.status_code, 201)
        data = response.json()['data']
        self.assertEqual(data['payment_status'], PARTIAL)
        self.assertTrue(data['transaction_ref'].startswith('HTL-'))

        duplicate = self.post_json(
            f'/api/bookings/{self.booking.pk}/payments/',
            {'amount': '50', 'transaction_ref': data['transaction_ref']},
        )
        self.assertEqual(duplicate.status_code, 400)

        negative = self.post_json(f'/api/bookings/{self.booking.pk}/payments/', {'amount': '-5'})
        self.assertEqual(negative.status_code, 400)

    def test_status_update_moves_room(self):
        response = self.put_json(f'/api/bookings/{self.booking.pk}/status/', {'status': 'checked-in'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['data']['status_color'], 'success')
        self.room.refresh_from_db()
        self.assertEqual(self.room.status, 'occupied')

        bad = self.put_json(f'/api/bookings/{self.booking.pk}/status/', {'status': 'teleported'})
        self.assertEqual(bad.status_code, 400)

    def test_estimate_is_lenient(self):
        start = timezone.now() + timedelta(days=1)
        inverted = self.post_json('/api/bookings/estimate/', {
            'room_id': self.suite.pk,
            'check_in': start.isoformat(),
            'check_out': (start - timedelta(days=2)).isoformat(),
        }).json()['data']
        self.assertEqual(inverted['nights'], 0)
        self.assertEqual(Decimal(inverted['total']), 0)

        missing = self.post_json('/api/bookings/estimate/', {'room_id': self.suite.pk}).json()['data']
        self.assertEqual(missing['nights'], 0)

        stay = self.post_json('/api/bookings/estimate/', {
            'room_id': self.suite.pk,
            'check_in': start.isoformat(),
            'check_out': (start + timedelta(days=3)).isoformat(),
        }).json()['data']
        self.assertEqual(stay['nights'], 3)
        self.assertEqual(Decimal(stay['total']), Decimal('750'))
        self.assertEqual(stay['total_display'], '₦750')

    def test_estimate_with_impossible_date_is_zero(self):
        response = self.post_json('/api/bookings/estimate/', {
            'room_id': self.suite.pk,
            'check_in': '2026-02-30',
            'check_out': '2026-03-02',
        })
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['data']['nights'], 0)

    def test_paying_the_detail_balance_settles_everywhere(self):
        url = f'/api/bookings/{self.booking.pk}/'
        balance = self.client.get(url).json()['data']['balance']
        self.assertEqual(Decimal(balance), Decimal('330'))

        self.post_json(f'{url}payments/', {'amount': balance, 'payment_method': 'cash'})

        detail = self.client.get(url).json()['data']
        self.assertEqual(detail['payment_status'], PAID)
        self.assertEqual(Decimal(detail['balance']), 0)

        report = self.client.get(f'{url}checkout-report/').json()['data']
        self.assertEqual(report['payment_status'], PAID)
        self.assertEqual(Decimal(report['balance']), 0)
        self.assertEqual(Decimal(report['total_amount']), Decimal(detail['amount_due']))

        self.assertEqual(self.client.get('/api/reports/anomalies/').json()['data'], [])

    def test_checkout_report(self):
        Payment.objects.create(booking=self.booking, amount=Decimal('100'))
        data = self.client.get(f'/api/bookings/{self.booking.pk}/checkout-report/').json()['data']
        self.assertEqual(Decimal(data['subtotal']), Decimal('300'))
        self.assertEqual(Decimal(data['tax']), Decimal('30'))
        self.assertEqual(Decimal(data['total_amount']), Decimal('330'))
        self.assertEqual(Decimal(data['balance']), Decimal('230'))
        self.assertEqual(data['payment_status'], PARTIAL)

    def test_csv_export(self):
        response = self.client.get('/api/bookings/export/csv/')
        self.assertEqual(response['Content-Type'], 'text/csv')
        content = response.content.decode()
        self.assertIn('Reference,Guest Name', content)
        self.assertIn(self.booking.booking_reference, content)

    def test_excel_export(self):
        response = self.client.get('/api/bookings/export/xlsx/')
        self.assertEqual(response.status_code, 200)
        sheet = load_workbook(BytesIO(response.content)).active
        self.assertEqual(sheet['A1'].value, 'Reference')
        self.assertEqual(sheet['A2'].value, self.booking.booking_reference)
        self.assertEqual(sheet['K2'].value, UNPAID)


class LaundryApiTestCase(HotelTestCase):
    def setUp(self):
        super().setUp()
        self.shirt = LaundryClothingType.objects.create(name='Shirt')
        self.wash = LaundryServiceType.objects.create(name='Wash')
        self.iron = LaundryServiceType.objects.create(name='Iron')
        self.dry_clean = LaundryServiceType.objects.create(name='Dry Clean')
        LaundryServicePrice.objects.create(clothing_type=self.shirt, service_type=self.wash, price=Decimal('500'))
        LaundryServicePrice.objects.create(clothing_type=self.shirt, service_type=self.iron, price=Decimal('200'))

    def priced_item(self, quantity=2):
        return {'clothing_type_id': self.shirt.pk, 'service_ids': [self.wash.pk, self.iron.pk], 'quantity': quantity}

    def unpriced_item(self):
        return {'clothing_type_id': self.shirt.pk, 'service_ids': [self.dry_clean.pk], 'quantity': 3}

    def test_quote_counts_unpriced_services_as_zero(self):
        response = self.post_json('/api/laundry/quote/', {'items': [self.priced_item(), self.unpriced_item()]})
        data = response.json()['data']
        self.assertEqual(Decimal(data['total']), Decimal('1400'))
        self.assertEqual(Decimal(data['items'][1]['subtotal']), 0)
        self.assertEqual(
            sorted(data['items'][0]['available_service_ids']),
            sorted([str(self.wash.pk), str(self.iron.pk)]),
        )

    def test_quote_tolerates_bad_quantities(self):
        data = self.post_json('/api/laundry/quote/', {'items': [self.priced_item(quantity='abc')]}).json()['data']
        self.assertEqual(data['items'][0]['quantity'], 0)
        self.assertEqual(Decimal(data['total']), 0)

    def test_quote_tolerates_malformed_items(self):
        response = self.post_json('/api/laundry/quote/', {'items': [
            {'clothing_type_id': self.shirt.pk, 'service_ids': 5, 'quantity': 2},
            1,
        ]})
        self.assertEqual(response.status_code, 200)
        data = response.json()['data']
        self.assertEqual(len(data['items']), 1)
        self.assertEqual(Decimal(data['total']), 0)

    def test_order_with_malformed_items_is_rejected(self):
        response = self.post_json('/api/laundry/orders/', {
            'customer_name': 'Ada Obi',
            'phone': '08012345678',
            'items': [1],
        })
        self.assertEqual(response.status_code, 400)
        self.assertEqual(LaundryOrder.objects.count(), 0)

    def test_walk_in_pays_in_instalments(self):
        response = self.post_json('/api/laundry/orders/', {
            'customer_name': 'Ada Obi',
            'phone': '08012345678',
            'payment_method': 'cash',
            'paid_amount': '500',
            'items': [self.priced_item()],
        })
        self.assertEqual(response.status_code, 201)
        order = response.json()['data']
        self.assertEqual(order['payment_status'], PARTIAL)
        self.assertEqual(Decimal(order['balance']), Decimal('900'))

        url = f"/api/laundry/orders/{order['id']}/payments/"
        self.assertEqual(self.post_json(url, {'amount': '0'}).status_code, 400)

        response = self.post_json(url, {'amount': '900'})
        self.assertEqual(response.status_code, 201)
        data = response.json()['data']
        self.assertEqual(data['payment_status'], PAID)
        self.assertEqual(Decimal(data['paid_amount']), Decimal('1400'))
        self.assertEqual(Decimal(data['balance']), 0)

    def test_walk_in_starts_unpaid_without_paid_amount(self):
        response = self.post_json('/api/laundry/orders/', {
            'customer_name': 'Ada Obi',
            'phone': '08012345678',
            'items': [self.priced_item()],
        })
        self.assertEqual(response.json()['data']['payment_status'], UNPAID)

    def test_negative_paid_amount_is_rejected(self):
        response = self.post_json('/api/laundry/orders/', {
            'customer_name': 'Ada Obi',
            'phone': '08012345678',
            'paid_amount': '-10',
            'items': [self.priced_item()],
        })
        self.assertEqual(response.status_code, 400)

    def test_room_charge_order_is_paid_on_the_booking(self):
        self.post_json('/api/laundry/orders/', {
            'booking_reference': self.booking.booking_reference,
            'items': [self.priced_item()],
        })
        order = LaundryOrder.objects.get()
        response = self.post_json(f'/api/laundry/orders/{order.pk}/payments/', {'amount': '1400'})
        self.assertEqual(response.status_code, 400)
        order.refresh_from_db()
        self.assertEqual(order.paid_amount, 0)

    def test_order_with_unpriced_service_is_rejected(self):
        response = self.post_json('/api/laundry/orders/', {
            'customer_name': 'Ada Obi',
            'phone': '08012345678',
            'payment_method': 'cash',
            'items': [self.unpriced_item()],
        })
        self.assertEqual(response.status_code, 400)
        self.assertEqual(LaundryOrder.objects.count(), 0)

    def test_guest_order_is_charged_to_room(self):
        response = self.post_json('/api/laundry/orders/', {
            'booking_reference': self.booking.booking_reference,
            'items': [self.priced_item()],
        })
        self.assertEqual(response.status_code, 201)
        data = response.json()['data']
        self.assertEqual(data['payment_method'], 'room-charge')
        self.assertEqual(data['customer_name'], 'Test Guest')
        self.assertEqual(Decimal(data['total_amount']), Decimal('1400'))
        self.assertEqual(data['payment_status'], UNPAID)
        self.assertTrue(data['order_number'].startswith('LDR-'))

        self.assertEqual(self.booking.laundry_charges, Decimal('1400'))
        self.assertEqual(self.booking.grand_total, Decimal('1700'))

    def test_walk_in_cannot_charge_a_room(self):
        response = self.post_json('/api/laundry/orders/', {
            'customer_name': 'Ada Obi',
            'phone': '08012345678',
            'payment_method': 'room-charge',
            'items': [self.priced_item()],
        })
        self.assertEqual(response.status_code, 400)

    def test_unknown_booking_reference(self):
        response = self.post_json('/api/laundry/orders/', {
            'booking_reference': 'BK-missing',
            'items': [self.priced_item()],
        })
        self.assertEqual(response.status_code, 400)

    def test_fix_order_totals_command(self):
        self.post_json('/api/laundry/orders/', {
            'booking_reference': self.booking.booking_reference,
            'items': [self.priced_item()],
        })
        order = LaundryOrder.objects.get()
        LaundryOrder.objects.filter(pk=order.pk).update(total_amount=Decimal('0'))

        out = StringIO()
        call_command('fix_order_totals', '--dry-run', stdout=out)
        self.assertIn('Would update 1 orders', out.getvalue())
        order.refresh_from_db()
        self.assertEqual(order.total_amount, 0)

        call_command('fix_order_totals', stdout=StringIO())
        order.refresh_from_db()
        self.assertEqual(order.total_amount, Decimal('1400'))


class RestaurantApiTestCase(HotelTestCase):
    def setUp(self):
        super().setUp()
        self.jollof = MenuItem.objects.create(name='Jollof Rice', category='food', price=Decimal('1500'))
        self.chapman = MenuItem.objects.create(name='Chapman', category='drink', price=Decimal('800'))
        self.suya = MenuItem.objects.create(name='Suya', category='food', price=Decimal('2000'), in_stock=False)

    def cart(self):
        return [
            {'menu_item_id': self.jollof.pk, 'quantity': 2},
            {'menu_item_id': self.chapman.pk, 'quantity': 1},
        ]

    def test_cash_checkout_is_taxed_and_paid(self):
        response = self.post_json('/api/restaurant/orders/checkout/cash/', {
            'customer_name': 'Walk-in',
            'items': self.cart(),
        })
        self.assertEqual(response.status_code, 201)
        data = response.json()['data']
        self.assertTrue(data['order_number'].startswith('RST-'))
        self.assertEqual(data['payment_method'], 'cash')
        self.assertEqual(Decimal(data['subtotal']), Decimal('3800'))
        self.assertEqual(Decimal(data['tax']), Decimal('380'))
        self.assertEqual(Decimal(data['total_amount']), Decimal('4180'))
        self.assertEqual(data['payment_status'], PAID)
        self.assertEqual([item['name'] for item in data['items']], ['Jollof Rice', 'Chapman'])

    def test_card_checkout(self):
        response = self.post_json('/api/restaurant/orders/checkout/cash/', {
            'payment_method': 'card',
            'items': self.cart(),
        })
        self.assertEqual(response.status_code, 201)
        self.assertEqual(RestaurantOrder.objects.get().payment_method, 'card')

        bad = self.post_json('/api/restaurant/orders/checkout/cash/', {
            'payment_method': 'room-charge',
            'items': self.cart(),
        })
        self.assertEqual(bad.status_code, 400)

    def test_out_of_stock_item_is_rejected(self):
        response = self.post_json('/api/restaurant/orders/checkout/cash/', {
            'items': [{'menu_item_id': self.suya.pk, 'quantity': 1}],
        })
        self.assertEqual(response.status_code, 400)
        self.assertEqual(RestaurantOrder.objects.count(), 0)

    def test_room_charge_needs_a_checked_in_booking(self):
        payload = {
            'booking_reference': self.booking.booking_reference,
            'items': [{'menu_item_id': self.jollof.pk, 'quantity': 2}],
        }
        response = self.post_json('/api/restaurant/orders/checkout/room-charge/', payload)
        self.assertEqual(response.status_code, 400)
        self.assertIn('not checked in', response.json()['data']['__all__'][0])

        missing = self.post_json('/api/restaurant/orders/checkout/room-charge/', {'items': self.cart()})
        self.assertEqual(missing.status_code, 400)

        Booking.objects.filter(pk=self.booking.pk).update(status='checked-in')
        response = self.post_json('/api/restaurant/orders/checkout/room-charge/', payload)
        self.assertEqual(response.status_code, 201)
        data = response.json()['data']
        self.assertEqual(data['customer_name'], 'Test Guest')
        self.assertEqual(Decimal(data['tax']), 0)
        self.assertEqual(Decimal(data['total_amount']), Decimal('3000'))
        self.assertEqual(data['payment_status'], UNPAID)

        self.assertEqual(self.booking.restaurant_charges, Decimal('3000'))
        self.assertEqual(self.booking.grand_total, Decimal('3300'))

        report = self.client.get(f'/api/bookings/{self.booking.pk}/checkout-report/').json()['data']
        self.assertEqual(Decimal(report['restaurant_charges']), Decimal('3000'))
        self.assertEqual(Decimal(report['tax']), Decimal('330'))
        self.assertEqual(Decimal(report['total_amount']), Decimal('3630'))

        order = RestaurantOrder.objects.get()
        refused = self.post_json(f'/api/restaurant/orders/{order.pk}/payments/', {'amount': '3000'})
        self.assertEqual(refused.status_code, 400)

    def test_quote_is_lenient(self):
        response = self.post_json('/api/restaurant/quote/', {'items': [
            {'menu_item_id': self.jollof.pk, 'quantity': 'two'},
            {'menu_item_id': self.chapman.pk, 'quantity': 2},
            {'menu_item_id': self.suya.pk, 'quantity': 1},
            {'menu_item_id': 999, 'quantity': 1},
            'coke',
        ]})
        self.assertEqual(response.status_code, 200)
        data = response.json()['data']
        self.assertEqual(len(data['items']), 4)
        self.assertEqual(Decimal(data['subtotal']), Decimal('1600'))
        self.assertEqual(Decimal(data['tax']), Decimal('160'))
        self.assertEqual(Decimal(data['total']), Decimal('1760'))

    def test_status_update(self):
        self.post_json('/api/restaurant/orders/checkout/cash/', {'items': self.cart()})
        order = RestaurantOrder.objects.get()
        response = self.put_json(f'/api/restaurant/orders/{order.pk}/status/', {'status': 'preparing'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['data']['status_color'], 'info')

    def test_menu_crud(self):
        response = self.post_json('/api/restaurant/menu/', {'name': 'Pepper Soup', 'category': 'food', 'price': '2500'})
        self.assertEqual(response.status_code, 201)
        pk = response.json()['data']['id']

        response = self.put_json(f'/api/restaurant/menu/{pk}/', {'in_stock': False})
        self.assertEqual(response.status_code, 200)
        self.assertFalse(MenuItem.objects.get(pk=pk).in_stock)

        self.post_json('/api/restaurant/orders/checkout/cash/', {'items': self.cart()})
        self.assertEqual(self.client.delete(f'/api/restaurant/menu/{self.jollof.pk}/').status_code, 400)
        self.assertEqual(self.client.delete(f'/api/restaurant/menu/{pk}/').status_code, 200)

    def test_revenue_report_counts_restaurant_takings(self):
        self.post_json('/api/restaurant/orders/checkout/cash/', {'items': self.cart()})
        data = self.client.get('/api/reports/revenue/').json()['data']
        self.assertEqual(Decimal(data['departments']['restaurant']), Decimal('4180'))


class EventApiTestCase(HotelTestCase):
    def setUp(self):
        super().setUp()
        self.hall = EventHall.objects.create(
            name='Grand Hall', capacity=300, hourly_rate=Decimal('1000'), daily_rate=Decimal('5000'),
        )
        self.start = (timezone.now() + timedelta(days=7)).replace(hour=10, minute=0, second=0, microsecond=0)

    def event_payload(self, **overrides):
        payload = {
            'hall': self.hall.pk,
            'client_name': 'Chidi Okafor',
            'client_email': 'chidi@example.com',
            'client_phone': '08031234567',
            'event_type': 'Wedding',
            'start_date': self.start.isoformat(),
            'end_date': (self.start + timedelta(hours=3)).isoformat(),
            'charge_type': 'hourly',
        }
        payload.update(overrides)
        return payload

    def test_estimate(self):
        hourly = self.post_json('/api/events/estimate/', {
            'hall_id': self.hall.pk,
            'start_date': self.start.isoformat(),
            'end_date': (self.start + timedelta(hours=3)).isoformat(),
            'charge_type': 'hourly',
        }).json()['data']
        self.assertEqual(Decimal(hourly['estimate']), Decimal('3000'))

        daily = self.post_json('/api/events/estimate/', {
            'hall_id': self.hall.pk,
            'start_date': self.start.isoformat(),
            'end_date': (self.start + timedelta(hours=30)).isoformat(),
            'charge_type': 'daily',
        }).json()['data']
        self.assertEqual(daily['days'], 2)
        self.assertEqual(Decimal(daily['estimate']), Decimal('10000'))

    def test_estimate_without_hall_is_zero(self):
        data = self.post_json('/api/events/estimate/', {'start_date': self.start.isoformat()}).json()['data']
        self.assertEqual(data['estimate'], 0)

    def test_create_event_stores_estimate(self):
        response = self.post_json('/api/events/', self.event_payload())
        self.assertEqual(response.status_code, 201)
        self.assertEqual(Decimal(response.json()['data']['total_amount']), Decimal('3000'))
        self.assertEqual(Event.objects.get().payment_status, UNPAID)

    def test_deposit_then_balance(self):
        response = self.post_json('/api/events/', self.event_payload(paid_amount='1000'))
        self.assertEqual(response.status_code, 201)
        event = response.json()['data']
        self.assertEqual(event['payment_status'], PARTIAL)
        self.assertEqual(Decimal(event['balance']), Decimal('2000'))

        response = self.post_json(f"/api/events/{event['id']}/payments/", {'amount': '2000'})
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()['data']['payment_status'], PAID)
        self.assertEqual(Event.objects.get().paid_amount, Decimal('3000'))

    def test_negative_deposit_is_rejected(self):
        response = self.post_json('/api/events/', self.event_payload(paid_amount='-1'))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(Event.objects.count(), 0)

    def test_estimate_with_impossible_date_is_zero(self):
        response = self.post_json('/api/events/estimate/', {
            'hall_id': self.hall.pk,
            'start_date': '2026-02-30',
            'end_date': '2026-03-02',
        })
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['data']['estimate'], 0)

    def test_clashing_event_is_rejected(self):
        self.post_json('/api/events/', self.event_payload())
        clash = self.event_payload(
            start_date=(self.start + timedelta(hours=1)).isoformat(),
            end_date=(self.start + timedelta(hours=5)).isoformat(),
        )
        self.assertEqual(self.post_json('/api/events/', clash).status_code, 400)


class MembershipApiTestCase(HotelTestCase):
    def setUp(self):
        super().setUp()
        self.plan = MembershipPlan.objects.create(facility='gym', name='Monthly', duration_days=30, price=Decimal('20000'))

    def test_guest_membership_on_room_charge(self):
        response = self.post_json('/api/memberships/', {
            'plan': self.plan.pk,
            'booking_reference': self.booking.booking_reference,
            'payment_method': 'room-charge',
            'paid_amount': '0',
        })
        self.assertEqual(response.status_code, 201)
        data = response.json()['data']
        self.assertEqual(data['name'], 'Test Guest')
        self.assertTrue(data['is_guest'])
        self.assertEqual(Decimal(data['total_amount']), Decimal('20000'))
        self.assertEqual(self.booking.membership_charges, Decimal('20000'))

    def test_walk_in_cannot_use_room_charge(self):
        response = self.post_json('/api/memberships/', {
            'plan': self.plan.pk,
            'name': 'Bola Ade',
            'payment_method': 'room-charge',
        })
        self.assertEqual(response.status_code, 400)


class EmployeeApiTestCase(HotelTestCase):
    def test_new_employee_gets_role_defaults(self):
        response = self.post_json('/api/employees/', {
            'name': 'Grace Bello',
            'email': 'grace@example.com',
            'role': 'receptionist',
            'department': 'Front Desk',
            'status': 'active',
        })
        self.assertEqual(response.status_code, 201)
        self.assertEqual(
            response.json()['data']['permissions'],
            permissions_as_dicts(get_role_permissions('receptionist')),
        )

    def test_model_fills_permissions(self):
        employee = Employee.objects.create(name='Tunde Lawal', email='tunde@example.com', role='manager')
        self.assertEqual(len(employee.permissions), len(MODULES))
        self.assertTrue(employee.permissions[0]['create'])

    def test_role_endpoints(self):
        roles = self.client.get('/api/employees/roles/').json()['data']
        self.assertNotIn('super-admin', [role['value'] for role in roles])

        data = self.client.get('/api/employees/roles/night-auditor/permissions/').json()['data']
        self.assertEqual(data['permissions'], permissions_as_dicts(DEFAULT_PERMISSIONS))


class ReportTestCase(HotelTestCase):
    def test_revenue_report(self):
        Payment.objects.create(booking=self.booking, amount=Decimal('150'))
        data = self.client.get('/api/reports/revenue/').json()['data']
        self.assertEqual(Decimal(data['departments']['rooms']), Decimal('150'))
        self.assertEqual(data['total_payments'], 1)
        self.assertEqual(set(data['payment_status_breakdown']), {PAID, PARTIAL, UNPAID})

    def test_overpaid_booking_is_flagged(self):
        Payment.objects.create(booking=self.booking, amount=Decimal('400'))
        anomalies = self.client.get('/api/reports/anomalies/').json()['data']
        self.assertEqual(len(anomalies), 1)
        self.assertIn('Overpaid by', anomalies[0]['issues'][0])

    def test_fix_booking_totals_command(self):
        Booking.objects.filter(pk=self.booking.pk).update(total_amount=Decimal('1'))

        out = StringIO()
        call_command('fix_booking_totals', '--dry-run', stdout=out)
        self.assertIn('Would update 1 bookings', out.getvalue())
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.total_amount, Decimal('1'))

        call_command('fix_booking_totals', stdout=StringIO())
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.total_amount, Decimal('300'))


class SchemaDiagramTestCase(TestCase):
    def test_collect_entities(self):
        entities, relationships = collect_entities()
        self.assertIn(('guest_id', 'FK'), entities['Booking'])
        self.assertEqual(entities['Room'][0], ('id', 'PK'))
        self.assertIn(('Booking', 'Payment', '1:N'), relationships)
        self.assertIn(('LaundryServiceType', 'LaundryOrderItem', 'N:M'), relationships)

    def test_command_writes_image(self):
        with tempfile.TemporaryDirectory() as tmp:
            output = os.path.join(tmp, 'schema.png')
            call_command('generate_er_diagram', '--output', output, stdout=StringIO())
            self.assertTrue(os.path.getsize(output) > 0)
