"""
Test suite for Core module
Tests: money arithmetic, clock, state machine helper, error rendering, numbering, locking, lookups, audit log
"""
from datetime import date, timedelta
from decimal import Decimal
from unittest import mock

from django.test import TestCase, override_settings
from rest_framework import status

from backoffice.core import money
from backoffice.core.clock import FixedClock, SystemClock, resolve
from backoffice.core.exceptions import (
    ConcurrentModification, DocumentLocked, InvalidAmount, InvalidTransition, InvariantViolation, NotFound,
    OverApplication,
    engine_exception_handler
)
from backoffice.core.models import AuditLog
from backoffice.core.state_machine import StateMachine
from backoffice.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backoffice.core.utils import (
    check_discount, create_audit_log, create_numbered, lock_document, next_document_number, prepare_line_items
)
from backoffice.sales.models import Order


class MoneyTests(TestCase):
    """Test VAT, rounding and totals"""

    def test_to_money_rounds_half_up(self):
        self.assertEqual(money.to_money('1.005'), Decimal('1.01'))
        self.assertEqual(money.to_money('1.004'), Decimal('1.00'))
        self.assertEqual(money.to_money(2), Decimal('2.00'))

    def test_to_money_float_goes_through_str(self):
        self.assertEqual(money.to_money(0.1), Decimal('0.10'))

    def test_to_money_rejects_garbage(self):
        with self.assertRaises(ValueError):
            money.to_money('abc')
        with self.assertRaises(ValueError):
            money.to_money('NaN')

    def test_line_total(self):
        self.assertEqual(money.line_total(3, Decimal('19.99')), Decimal('59.97'))

    def test_compute_totals(self):
        totals = money.compute_totals([(10, Decimal('100.00'))])
        self.assertEqual(totals.subtotal, Decimal('1000.00'))
        self.assertEqual(totals.vat_amount, Decimal('150.00'))
        self.assertEqual(totals.total, Decimal('1150.00'))

    def test_compute_totals_with_discount(self):
        totals = money.compute_totals([(1, Decimal('100.00')), (2, Decimal('25.00'))], Decimal('10.00'))
        self.assertEqual(totals.subtotal, Decimal('150.00'))
        self.assertEqual(totals.vat_amount, Decimal('22.50'))
        self.assertEqual(totals.total, Decimal('162.50'))

    def test_vat_rounding(self):
        # 15% of 0.33 = 0.0495
        self.assertEqual(money.vat_for(Decimal('0.33')), Decimal('0.05'))

    def test_empty_document_is_zero(self):
        totals = money.compute_totals([])
        self.assertEqual(totals.total, Decimal('0.00'))

    @override_settings(BACKOFFICE={'VAT_RATE': '0.10'})
    def test_vat_rate_from_settings(self):
        self.assertEqual(money.vat_for(Decimal('100.00')), Decimal('10.00'))


class ClockTests(TestCase):
    def test_fixed_clock_from_date(self):
        clock = FixedClock(date(2026, 3, 1))
        self.assertEqual(clock.today(), date(2026, 3, 1))

    def test_fixed_clock_advance(self):
        clock = FixedClock(date(2026, 3, 1)).advance(timedelta(days=2))
        self.assertEqual(clock.today(), date(2026, 3, 3))

    def test_resolve_defaults_to_system_clock(self):
        self.assertIsInstance(resolve(None), SystemClock)
        clock = FixedClock(date(2026, 1, 1))
        self.assertIs(resolve(clock), clock)


class StateMachineTests(TestCase):
    def setUp(self):
        self.machine = StateMachine('Thing', {'A': {'B'}, 'B': {'C'}}, locked=['C'])

    def test_allowed_transition(self):
        self.assertTrue(self.machine.can('A', 'B'))
        self.machine.check('A', 'B')

    def test_disallowed_transition(self):
        with self.assertRaises(InvalidTransition) as ctx:
            self.machine.check('A', 'C')
        self.assertEqual(ctx.exception.from_status, 'A')
        self.assertEqual(ctx.exception.to_status, 'C')

    def test_unknown_state_has_no_targets(self):
        self.assertEqual(self.machine.allowed('Z'), frozenset())

    def test_locked_state(self):
        self.assertTrue(self.machine.is_locked('C'))
        with self.assertRaises(DocumentLocked):
            self.machine.check_editable('C')
        self.machine.check_editable('A')


class ExceptionHandlerTests(TestCase):
    def test_engine_error_body(self):
        response = engine_exception_handler(OverApplication(amount='1.00', amount_due='0.00'), {})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'over_application')
        self.assertEqual(response.data['amount_due'], '0.00')

    def test_invalid_transition_body(self):
        response = engine_exception_handler(InvalidTransition('DRAFT', 'PAID'), {})
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'invalid_transition')
        self.assertEqual(response.data['from_status'], 'DRAFT')
        self.assertEqual(response.data['to_status'], 'PAID')

    def test_not_found_status(self):
        response = engine_exception_handler(NotFound('gone'), {})
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['detail'], 'gone')

    def test_invariant_violation_is_internal_error(self):
        with self.assertLogs('backoffice.core.exceptions', level='ERROR'):
            response = engine_exception_handler(InvariantViolation('totals drifted'), {'view': None})
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data, {'error': 'internal_error', 'detail': 'Internal error.'})

    def test_other_exceptions_fall_through(self):
        self.assertIsNone(engine_exception_handler(ValueError('x'), {}))


class UtilsTests(TestCase):
    def test_next_document_number_sequence(self):
        self.assertEqual(next_document_number(Order, 'order_number', 'ORD-2026-'), 'ORD-2026-00001')
        TestDataFactory.create_order()
        TestDataFactory.create_order()
        year = Order.objects.first().order_number.split('-')[1]
        self.assertEqual(
            next_document_number(Order, 'order_number', f'ORD-{year}-'),
            f'ORD-{year}-00003'
        )

    def test_create_numbered_moves_past_a_taken_number(self):
        """A writer that read the same last number retries with the next one"""
        taken = TestDataFactory.create_order()
        prefix = taken.order_number[:-5]
        with mock.patch(
            'backoffice.core.utils.next_document_number',
            side_effect=[taken.order_number, f'{prefix}00002'],
        ):
            order = create_numbered(Order, 'order_number', prefix, customer=taken.customer)
        self.assertEqual(order.order_number, f'{prefix}00002')
        self.assertEqual(Order.objects.count(), 2)

    def test_create_numbered_gives_up_with_conflict(self):
        taken = TestDataFactory.create_order()
        prefix = taken.order_number[:-5]
        with mock.patch('backoffice.core.utils.next_document_number', return_value=taken.order_number):
            with self.assertRaises(ConcurrentModification) as ctx:
                create_numbered(Order, 'order_number', prefix, attempts=3, customer=taken.customer)
        self.assertEqual(ctx.exception.context['prefix'], prefix)
        self.assertEqual(Order.objects.count(), 1)

    def test_lock_document_version_mismatch(self):
        order = TestDataFactory.create_order()
        with self.assertRaises(ConcurrentModification) as ctx:
            lock_document(Order, order.pk, version=order.version + 5)
        self.assertEqual(ctx.exception.context['current_version'], order.version)

    def test_lock_document_missing(self):
        with self.assertRaises(NotFound):
            lock_document(Order, 999999)

    def test_prepare_line_items_uses_product_defaults(self):
        product = TestDataFactory.create_product(name='Bolt', price=Decimal('12.50'))
        lines = prepare_line_items([{'product': product.id, 'quantity': 4}])
        self.assertEqual(lines[0]['unit_price'], Decimal('12.50'))
        self.assertEqual(lines[0]['description'], 'Bolt')
        self.assertEqual(lines[0]['sku'], product.sku)

    def test_prepare_line_items_rejects_bad_quantity(self):
        with self.assertRaises(InvalidAmount):
            prepare_line_items([{'description': 'x', 'quantity': 0, 'unit_price': 1}])

    def test_prepare_line_items_custom_item_needs_price(self):
        with self.assertRaises(InvalidAmount):
            prepare_line_items([{'description': 'x', 'quantity': 1}])

    def test_prepare_line_items_unknown_product(self):
        with self.assertRaises(NotFound):
            prepare_line_items([{'product': 999999, 'quantity': 1}])

    def test_check_discount_bounds(self):
        lines = prepare_line_items([{'description': 'x', 'quantity': 1, 'unit_price': '100.00'}])
        with self.assertRaises(InvalidAmount):
            check_discount(lines, '-1')
        with self.assertRaises(InvalidAmount):
            check_discount(lines, '115.01')
        self.assertEqual(check_discount(lines, '115.00').total, Decimal('0.00'))

    def test_create_audit_log(self):
        user = TestDataFactory.create_user()
        log = create_audit_log(
            action='order_create', model_name='Order', object_id=1,
            changes={'total': '1.00'}, user=user, object_reference='ORD-2026-00001'
        )
        self.assertIsNotNone(log)
        self.assertEqual(log.user, user)
        self.assertEqual(log.object_id, '1')

    def test_create_audit_log_skips_incomplete(self):
        self.assertIsNone(create_audit_log(action='order_create', model_name=None, object_id=1))
        self.assertEqual(AuditLog.objects.count(), 0)


class LookupTests(TestCase):
    """Read-only assistant lookups"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_lookup_order_by_number(self):
        order = TestDataFactory.create_order()
        response = self.client.get('/api/v1/lookup/document/', {'number': order.order_number})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['type'], 'order')
        self.assertEqual(response.data['status'], Order.STATUS_PENDING)

    def test_lookup_quote_by_number(self):
        quote = TestDataFactory.create_quote(customer=TestDataFactory.create_customer())
        response = self.client.get('/api/v1/lookup/document/', {'number': quote.quote_number.lower()})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['type'], 'quote')

    def test_lookup_unknown_number(self):
        response = self.client.get('/api/v1/lookup/document/', {'number': 'NOPE-1'})
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'not_found')

    def test_lookup_product(self):
        TestDataFactory.create_product(name='Copper Pipe 15mm', price=Decimal('80.00'), stock_quantity=3)
        response = self.client.get('/api/v1/lookup/product/', {'q': 'copper'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['results']), 1)
        self.assertEqual(response.data['results'][0]['price'], '80.00')
        self.assertTrue(response.data['results'][0]['in_stock'])

    def test_lookups_are_read_only(self):
        response = self.client.post('/api/v1/lookup/product/', {'q': 'x'})
        self.assertEqual(response.status_code, status.HTTP_405_METHOD_NOT_ALLOWED)

    def test_lookup_requires_authentication(self):
        self.client.logout()
        response = self.client.get('/api/v1/lookup/product/', {'q': 'x'})
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class AuthTests(TestCase):
    def test_login_and_me(self):
        TestDataFactory.create_user(username='clerk', password='s3cret-pass')
        client = AuthenticatedAPIClient()
        response = client.post('/api/v1/auth/login/', {'username': 'clerk', 'password': 's3cret-pass'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")
        response = client.get('/api/v1/auth/me/')
        self.assertEqual(response.data['username'], 'clerk')

    def test_audit_log_list_for_staff(self):
        admin = TestDataFactory.create_admin()
        TestDataFactory.create_order(user=admin)
        client = AuthenticatedAPIClient()
        client.authenticate_user(admin)
        response = client.get('/api/v1/audit-logs/', {'action': 'order_create'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
