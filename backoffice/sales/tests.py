"""
Comprehensive test suite for Sales module
Tests: Orders, status workflow, proof of payment, Quotes, quote conversion, API endpoints
"""
from datetime import date
from decimal import Decimal
from io import StringIO

from django.core.management import call_command
from django.test import TestCase
from rest_framework import status

from backoffice.billing import services as billing_services
from backoffice.core.clock import FixedClock
from backoffice.core.exceptions import (
    AlreadyConverted, ConcurrentModification, DocumentLocked, InvalidAmount, InvalidTransition, MissingReason,
    QuoteExpired
)
from backoffice.core.models import AuditLog
from backoffice.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backoffice.parties.models import Customer
from . import services
from .models import Order, OrderStatusHistory, Quote


def advance_order(order, *statuses):
    for new_status in statuses:
        order = services.transition_order_status(order.id, new_status)
    return order


class OrderServiceTests(TestCase):
    """Test order creation and lifecycle rules"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.customer = TestDataFactory.create_customer()

    def test_create_order_totals(self):
        """Totals are computed from the line items"""
        order = TestDataFactory.create_order(customer=self.customer, user=self.user)
        self.assertEqual(order.status, Order.STATUS_PENDING)
        self.assertEqual(order.subtotal, Decimal('200.00'))
        self.assertEqual(order.vat_amount, Decimal('30.00'))
        self.assertEqual(order.total, Decimal('230.00'))
        self.assertEqual(order.items.count(), 1)
        self.assertTrue(order.order_number.startswith('ORD-'))
        self.assertEqual(order.status_history.count(), 1)
        self.assertTrue(AuditLog.objects.filter(action='order_create', object_id=str(order.id)).exists())

    def test_create_order_from_product(self):
        product = TestDataFactory.create_product(name='Tap', price=Decimal('45.50'))
        order = services.create_order(self.customer, [{'product': product.id, 'quantity': 2}])
        item = order.items.get()
        self.assertEqual(item.unit_price, Decimal('45.50'))
        self.assertEqual(item.description, 'Tap')
        self.assertEqual(order.total, Decimal('104.65'))

    def test_create_order_requires_items(self):
        with self.assertRaises(InvalidAmount):
            services.create_order(self.customer, [])

    def test_create_order_rejects_excess_discount(self):
        with self.assertRaises(InvalidAmount):
            TestDataFactory.create_order(customer=self.customer, discount=Decimal('500.00'))
        self.assertEqual(Order.objects.count(), 0)

    def test_order_numbers_are_sequential(self):
        first = TestDataFactory.create_order(customer=self.customer)
        second = TestDataFactory.create_order(customer=self.customer)
        self.assertEqual(int(second.order_number[-5:]), int(first.order_number[-5:]) + 1)

    def test_happy_path_to_delivered(self):
        order = TestDataFactory.create_order(customer=self.customer)
        order = advance_order(
            order,
            Order.STATUS_CONFIRMED, Order.STATUS_AWAITING_PAYMENT, Order.STATUS_PAYMENT_RECEIVED,
            Order.STATUS_PROCESSING, Order.STATUS_READY_FOR_DISPATCH, Order.STATUS_DISPATCHED,
            Order.STATUS_DELIVERED,
        )
        self.assertEqual(order.status, Order.STATUS_DELIVERED)
        self.assertIsNotNone(order.dispatched_at)
        self.assertIsNotNone(order.delivered_at)
        self.assertEqual(order.status_history.count(), 8)

    def test_skipping_states_is_rejected(self):
        order = TestDataFactory.create_order(customer=self.customer)
        with self.assertRaises(InvalidTransition):
            services.transition_order_status(order.id, Order.STATUS_DISPATCHED)
        order.refresh_from_db()
        self.assertEqual(order.status, Order.STATUS_PENDING)

    def test_cancelled_is_terminal(self):
        order = advance_order(TestDataFactory.create_order(customer=self.customer), Order.STATUS_CANCELLED)
        self.assertIsNotNone(order.cancelled_at)
        with self.assertRaises(InvalidTransition):
            services.transition_order_status(order.id, Order.STATUS_CONFIRMED)

    def test_on_hold_resumes_previous_status(self):
        order = advance_order(
            TestDataFactory.create_order(customer=self.customer), Order.STATUS_CONFIRMED, Order.STATUS_ON_HOLD
        )
        self.assertEqual(order.status_before_hold, Order.STATUS_CONFIRMED)
        with self.assertRaises(InvalidTransition):
            services.transition_order_status(order.id, Order.STATUS_PROCESSING)
        order = services.transition_order_status(order.id, Order.STATUS_CONFIRMED)
        self.assertEqual(order.status, Order.STATUS_CONFIRMED)
        self.assertEqual(order.status_before_hold, '')

    def test_on_hold_can_cancel(self):
        order = advance_order(
            TestDataFactory.create_order(customer=self.customer), Order.STATUS_ON_HOLD, Order.STATUS_CANCELLED
        )
        self.assertEqual(order.status, Order.STATUS_CANCELLED)

    def test_dispatched_order_is_locked(self):
        """A dispatched order rejects item edits and backward moves"""
        order = advance_order(
            TestDataFactory.create_order(customer=self.customer),
            Order.STATUS_CONFIRMED, Order.STATUS_AWAITING_PAYMENT, Order.STATUS_PAYMENT_RECEIVED,
            Order.STATUS_PROCESSING, Order.STATUS_READY_FOR_DISPATCH, Order.STATUS_DISPATCHED,
        )
        with self.assertRaises(DocumentLocked):
            services.update_order_items(order.id, [{'description': 'Extra', 'quantity': 1, 'unit_price': 5}])
        with self.assertRaises(InvalidTransition):
            services.transition_order_status(order.id, Order.STATUS_PROCESSING)
        with self.assertRaises(InvalidTransition):
            services.transition_order_status(order.id, Order.STATUS_CANCELLED)
        order.refresh_from_db()
        self.assertEqual(order.total, Decimal('230.00'))
        self.assertEqual(order.status, Order.STATUS_DISPATCHED)

    def test_update_items_recomputes_totals(self):
        order = TestDataFactory.create_order(customer=self.customer)
        order = services.update_order_items(
            order.id,
            [{'description': 'Pipe', 'quantity': 4, 'unit_price': Decimal('25.00')}],
            discount=Decimal('15.00'),
            version=order.version,
        )
        self.assertEqual(order.subtotal, Decimal('100.00'))
        self.assertEqual(order.vat_amount, Decimal('15.00'))
        self.assertEqual(order.total, Decimal('100.00'))
        self.assertEqual(order.items.count(), 1)

    def test_stale_version_is_rejected(self):
        order = TestDataFactory.create_order(customer=self.customer)
        stale = order.version
        services.transition_order_status(order.id, Order.STATUS_CONFIRMED, version=stale)
        with self.assertRaises(ConcurrentModification):
            services.transition_order_status(order.id, Order.STATUS_CANCELLED, version=stale)

    def test_update_details(self):
        order = TestDataFactory.create_order(customer=self.customer)
        order = services.update_order_details(order.id, delivery_city='Durban', priority='HIGH')
        self.assertEqual(order.delivery_city, 'Durban')
        self.assertEqual(order.priority, 'HIGH')


class ProofOfPaymentTests(TestCase):
    """Test POP upload and review"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.order = advance_order(TestDataFactory.create_order(), Order.STATUS_CONFIRMED)

    def test_upload_moves_confirmed_to_awaiting_payment(self):
        order = services.upload_pop(self.order.id, 'pop/slip.pdf', 'slip.pdf')
        self.assertEqual(order.status, Order.STATUS_AWAITING_PAYMENT)
        self.assertEqual(order.pop_file, 'pop/slip.pdf')
        self.assertFalse(order.pop_verified)
        self.assertIsNotNone(order.pop_uploaded_at)

    def test_upload_requires_file(self):
        with self.assertRaises(MissingReason):
            services.upload_pop(self.order.id, '')

    def test_approve_marks_paid(self):
        services.upload_pop(self.order.id, 'pop/slip.pdf', 'slip.pdf')
        order = services.approve_pop(self.order.id, user=self.admin)
        self.assertEqual(order.status, Order.STATUS_PAYMENT_RECEIVED)
        self.assertEqual(order.payment_status, Order.PAYMENT_PAID)
        self.assertTrue(order.pop_verified)
        self.assertEqual(order.pop_verified_by, self.admin)
        self.assertIsNotNone(order.paid_at)

    def test_approve_without_pop(self):
        with self.assertRaises(InvalidTransition):
            services.approve_pop(self.order.id, user=self.admin)

    def test_review_refused_once_order_is_locked(self):
        services.upload_pop(self.order.id, 'pop/slip.pdf')
        advance_order(self.order, Order.STATUS_PAYMENT_RECEIVED, Order.STATUS_PROCESSING,
                      Order.STATUS_READY_FOR_DISPATCH, Order.STATUS_DISPATCHED)
        with self.assertRaises(DocumentLocked):
            services.approve_pop(self.order.id, user=self.admin)
        with self.assertRaises(DocumentLocked):
            services.reject_pop(self.order.id, 'Wrong slip', user=self.admin)
        self.order.refresh_from_db()
        self.assertFalse(self.order.pop_verified)
        self.assertEqual(self.order.payment_status, Order.PAYMENT_UNPAID)

    def test_invoice_payment_does_not_downgrade_approved_pop(self):
        services.upload_pop(self.order.id, 'pop/slip.pdf')
        services.approve_pop(self.order.id, user=self.admin)
        invoice = billing_services.generate_invoice_from_order(self.order.id)
        billing_services.apply_payment(invoice.id, Decimal('1.00'))
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, Order.PAYMENT_PAID)

    def test_reject_requires_reason(self):
        services.upload_pop(self.order.id, 'pop/slip.pdf')
        with self.assertRaises(MissingReason):
            services.reject_pop(self.order.id, '  ')

    def test_reject_clears_upload(self):
        services.upload_pop(self.order.id, 'pop/slip.pdf')
        order = services.reject_pop(self.order.id, 'Amount does not match', user=self.admin)
        self.assertEqual(order.status, Order.STATUS_AWAITING_PAYMENT)
        self.assertEqual(order.pop_file, '')
        self.assertEqual(order.pop_rejection_reason, 'Amount does not match')
        self.assertEqual(order.payment_status, Order.PAYMENT_UNPAID)
        self.assertTrue(OrderStatusHistory.objects.filter(order=order, notes__startswith='POP rejected').exists())


class QuoteServiceTests(TestCase):
    """Test quotes, expiry and conversion"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.customer = TestDataFactory.create_customer()
        self.clock = FixedClock(date(2026, 3, 1))

    def _accepted_quote(self, **kwargs):
        quote = TestDataFactory.create_quote(customer=self.customer, clock=self.clock, **kwargs)
        for new_status in (Quote.STATUS_SENT, Quote.STATUS_VIEWED, Quote.STATUS_ACCEPTED):
            quote = services.transition_quote_status(quote.id, new_status, clock=self.clock)
        return quote

    def test_quote_totals_and_validity(self):
        quote = TestDataFactory.create_quote(customer=self.customer, clock=self.clock)
        self.assertEqual(quote.status, Quote.STATUS_DRAFT)
        self.assertEqual(quote.subtotal, Decimal('1000.00'))
        self.assertEqual(quote.vat_amount, Decimal('150.00'))
        self.assertEqual(quote.total, Decimal('1150.00'))
        self.assertEqual(quote.valid_until, date(2026, 3, 31))
        self.assertEqual(quote.quote_number, 'QUO-2026-00001')
        self.assertEqual(quote.customer_email, self.customer.email)

    def test_accept_and_convert(self):
        """Accepted quote converts into an order with the same total"""
        quote = self._accepted_quote()
        order = services.convert_quote_to_order(quote.id, user=self.user, clock=self.clock)
        quote.refresh_from_db()
        self.assertEqual(quote.status, Quote.STATUS_CONVERTED)
        self.assertEqual(quote.order, order)
        self.assertIsNotNone(quote.converted_at)
        self.assertEqual(order.total, Decimal('1150.00'))
        self.assertEqual(order.customer, self.customer)
        self.assertEqual(order.source, 'QUOTE')
        self.assertEqual(order.status, Order.STATUS_PENDING)
        self.assertEqual(
            list(order.items.values_list('description', 'quantity', 'unit_price')),
            [('Widget', 10, Decimal('100.00'))]
        )

    def test_convert_twice_fails(self):
        quote = self._accepted_quote()
        services.convert_quote_to_order(quote.id, clock=self.clock)
        with self.assertRaises(AlreadyConverted):
            services.convert_quote_to_order(quote.id, clock=self.clock)
        self.assertEqual(Order.objects.count(), 1)

    def test_draft_cannot_convert(self):
        quote = TestDataFactory.create_quote(customer=self.customer, clock=self.clock)
        with self.assertRaises(InvalidTransition):
            services.convert_quote_to_order(quote.id, clock=self.clock)

    def test_converted_status_cannot_be_set_directly(self):
        quote = self._accepted_quote()
        with self.assertRaises(InvalidTransition):
            services.transition_quote_status(quote.id, Quote.STATUS_CONVERTED, clock=self.clock)

    def test_accept_after_validity_fails(self):
        quote = TestDataFactory.create_quote(customer=self.customer, clock=self.clock, valid_days=7)
        services.transition_quote_status(quote.id, Quote.STATUS_SENT, clock=self.clock)
        services.transition_quote_status(quote.id, Quote.STATUS_VIEWED, clock=self.clock)
        late = FixedClock(date(2026, 3, 9))
        with self.assertRaises(QuoteExpired):
            services.transition_quote_status(quote.id, Quote.STATUS_ACCEPTED, clock=late)

    def test_accept_on_last_valid_day(self):
        quote = TestDataFactory.create_quote(customer=self.customer, clock=self.clock, valid_days=7)
        services.transition_quote_status(quote.id, Quote.STATUS_SENT, clock=self.clock)
        services.transition_quote_status(quote.id, Quote.STATUS_VIEWED, clock=self.clock)
        quote = services.transition_quote_status(quote.id, Quote.STATUS_ACCEPTED, clock=FixedClock(date(2026, 3, 8)))
        self.assertEqual(quote.status, Quote.STATUS_ACCEPTED)

    def test_convert_after_validity_fails(self):
        quote = self._accepted_quote(valid_days=7)
        with self.assertRaises(QuoteExpired):
            services.convert_quote_to_order(quote.id, clock=FixedClock(date(2026, 4, 1)))

    def test_expire_quotes_sweep(self):
        sent = TestDataFactory.create_quote(customer=self.customer, clock=self.clock, valid_days=5)
        services.transition_quote_status(sent.id, Quote.STATUS_SENT, clock=self.clock)
        draft = TestDataFactory.create_quote(customer=self.customer, clock=self.clock, valid_days=5)
        fresh = TestDataFactory.create_quote(customer=self.customer, clock=self.clock, valid_days=60)
        services.transition_quote_status(fresh.id, Quote.STATUS_SENT, clock=self.clock)

        later = FixedClock(date(2026, 3, 10))
        expired = services.expire_quotes(clock=later)
        self.assertEqual([quote.id for quote in expired], [sent.id])
        draft.refresh_from_db()
        fresh.refresh_from_db()
        self.assertEqual(draft.status, Quote.STATUS_DRAFT)
        self.assertEqual(fresh.status, Quote.STATUS_SENT)
        self.assertEqual(services.expire_quotes(clock=later), [])

    def test_reject_requires_reason(self):
        quote = TestDataFactory.create_quote(customer=self.customer, clock=self.clock)
        services.transition_quote_status(quote.id, Quote.STATUS_SENT, clock=self.clock)
        with self.assertRaises(MissingReason):
            services.reject_quote(quote.id, '')
        quote = services.reject_quote(quote.id, 'Too expensive', clock=self.clock)
        self.assertEqual(quote.status, Quote.STATUS_REJECTED)
        self.assertEqual(quote.rejection_reason, 'Too expensive')

    def test_update_quote_items(self):
        quote = TestDataFactory.create_quote(customer=self.customer, clock=self.clock)
        quote = services.update_quote(
            quote.id, items=[{'description': 'Valve', 'quantity': 2, 'unit_price': Decimal('10.00')}]
        )
        self.assertEqual(quote.total, Decimal('23.00'))

    def test_valid_until_fixed_after_send(self):
        quote = TestDataFactory.create_quote(customer=self.customer, clock=self.clock)
        services.transition_quote_status(quote.id, Quote.STATUS_SENT, clock=self.clock)
        with self.assertRaises(DocumentLocked):
            services.update_quote(quote.id, valid_until=date(2026, 6, 1))

    def test_accepted_quote_is_locked(self):
        quote = self._accepted_quote()
        with self.assertRaises(DocumentLocked):
            services.update_quote(quote.id, discount=Decimal('5.00'))


class QuoteRequestTests(TestCase):
    """Test public quote requests from the website"""

    def setUp(self):
        self.clock = FixedClock(date(2026, 3, 1))
        self.contact = {'name': 'Thandi Nkosi', 'email': 'thandi@example.com', 'phone': '0821234567'}

    def test_request_creates_unpriced_pending_quote(self):
        quote = services.submit_quote_request(
            self.contact, [{'description': 'Geyser 150L', 'quantity': 1}], notes='Need by Friday', clock=self.clock
        )
        self.assertEqual(quote.status, Quote.STATUS_PENDING)
        self.assertIsNone(quote.customer)
        self.assertEqual(quote.total, Decimal('0.00'))
        self.assertEqual(quote.items.get().unit_price, Decimal('0.00'))

    def test_request_requires_contact(self):
        with self.assertRaises(MissingReason):
            services.submit_quote_request({'name': 'X', 'email': ''}, [{'description': 'A', 'quantity': 1}])

    def test_priced_request_converts_with_new_customer(self):
        quote = services.submit_quote_request(
            self.contact, [{'description': 'Geyser 150L', 'quantity': 1}], clock=self.clock
        )
        services.update_quote(
            quote.id, items=[{'description': 'Geyser 150L', 'quantity': 1, 'unit_price': Decimal('4000.00')}]
        )
        order = services.convert_quote_to_order(quote.id, clock=self.clock)
        self.assertEqual(order.total, Decimal('4600.00'))
        self.assertEqual(order.customer.email, 'thandi@example.com')
        self.assertEqual(order.customer.first_name, 'Thandi')
        self.assertEqual(Customer.objects.count(), 1)

    def test_conversion_reuses_customer_with_same_email(self):
        existing = TestDataFactory.create_customer(first_name='Thandi', email='THANDI@example.com')
        quote = services.submit_quote_request(
            self.contact, [{'description': 'Geyser', 'quantity': 1}], clock=self.clock
        )
        services.update_quote(quote.id, items=[{'description': 'Geyser', 'quantity': 1, 'unit_price': 3500}])
        order = services.convert_quote_to_order(quote.id, clock=self.clock)
        self.assertEqual(order.customer, existing)

    def test_unpriced_request_cannot_convert(self):
        quote = services.submit_quote_request(
            self.contact,
            [{'description': 'Geyser 150L', 'quantity': 1}, {'description': 'Installation', 'quantity': 1}],
            clock=self.clock,
        )
        with self.assertRaises(InvalidAmount) as ctx:
            services.convert_quote_to_order(quote.id, clock=self.clock)
        self.assertEqual(ctx.exception.context['unpriced_items'], ['Geyser 150L', 'Installation'])
        quote.refresh_from_db()
        self.assertEqual(quote.status, Quote.STATUS_PENDING)
        self.assertIsNone(quote.order)
        self.assertFalse(Order.objects.exists())
        self.assertFalse(Customer.objects.exists())

    def test_partly_priced_request_cannot_convert(self):
        quote = services.submit_quote_request(
            self.contact, [{'description': 'Geyser 150L', 'quantity': 1}], clock=self.clock
        )
        services.update_quote(quote.id, items=[
            {'description': 'Geyser 150L', 'quantity': 1, 'unit_price': Decimal('4000.00')},
            {'description': 'Installation', 'quantity': 1, 'unit_price': Decimal('0.00')},
        ])
        with self.assertRaises(InvalidAmount) as ctx:
            services.convert_quote_to_order(quote.id, clock=self.clock)
        self.assertEqual(ctx.exception.context['unpriced_items'], ['Installation'])


class OrderAPITests(TestCase):
    """Test order and quote API endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.admin = TestDataFactory.create_admin()
        self.customer = TestDataFactory.create_customer()
        self.client = AuthenticatedAPIClient().authenticate_user(self.user)

    def test_create_order(self):
        data = {
            'customer': self.customer.id,
            'items': [{'description': 'Cable', 'quantity': 3, 'unit_price': '10.00'}],
            'delivery_city': 'Pretoria',
        }
        response = self.client.post('/api/v1/orders/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['total'], '34.50')
        self.assertEqual(response.data['delivery_city'], 'Pretoria')
        self.assertEqual(len(response.data['items']), 1)

    def test_create_order_unknown_customer(self):
        data = {'customer': 999999, 'items': [{'description': 'Cable', 'quantity': 1, 'unit_price': '1.00'}]}
        response = self.client.post('/api/v1/orders/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'not_found')

    def test_create_order_validation(self):
        response = self.client.post('/api/v1/orders/', {'customer': self.customer.id, 'items': []}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_orders_filtered(self):
        order = TestDataFactory.create_order(customer=self.customer)
        TestDataFactory.create_order()
        response = self.client.get('/api/v1/orders/', {'customer': self.customer.id})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['id'] for row in response.data], [order.id])

    def test_invalid_transition_response(self):
        order = TestDataFactory.create_order(customer=self.customer)
        response = self.client.post(f'/api/v1/orders/{order.id}/status/', {'status': 'DELIVERED'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'invalid_transition')
        self.assertEqual(response.data['from_status'], 'PENDING')

    def test_status_change_with_stale_version(self):
        order = TestDataFactory.create_order(customer=self.customer)
        data = {'status': 'CONFIRMED', 'version': order.version + 1}
        response = self.client.post(f'/api/v1/orders/{order.id}/status/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'concurrent_modification')

    def test_pop_approval_is_admin_only(self):
        order = advance_order(TestDataFactory.create_order(customer=self.customer), Order.STATUS_CONFIRMED)
        response = self.client.post(f'/api/v1/orders/{order.id}/pop/', {'file_ref': 'pop/a.pdf'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], Order.STATUS_AWAITING_PAYMENT)

        response = self.client.post(f'/api/v1/orders/{order.id}/pop/approve/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        admin_client = AuthenticatedAPIClient().authenticate_user(self.admin)
        response = admin_client.post(f'/api/v1/orders/{order.id}/pop/approve/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['payment_status'], Order.PAYMENT_PAID)

    def test_quote_flow(self):
        data = {
            'customer': self.customer.id,
            'items': [{'description': 'Widget', 'quantity': 10, 'unit_price': '100.00'}],
        }
        response = self.client.post('/api/v1/quotes/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['total'], '1150.00')
        quote_id = response.data['id']

        for new_status in ('SENT', 'VIEWED', 'ACCEPTED'):
            response = self.client.post(f'/api/v1/quotes/{quote_id}/status/', {'status': new_status}, format='json')
            self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.post(f'/api/v1/quotes/{quote_id}/convert/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['total'], '1150.00')

        response = self.client.post(f'/api/v1/quotes/{quote_id}/convert/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'already_converted')

    def test_quote_needs_customer_or_email(self):
        data = {'items': [{'description': 'Widget', 'quantity': 1, 'unit_price': '1.00'}]}
        response = self.client.post('/api/v1/quotes/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_public_quote_request(self):
        data = {
            'name': 'Sipho Dlamini',
            'email': 'sipho@example.com',
            'phone': '0831112222',
            'items': [{'description': 'Solar panel', 'quantity': 4}],
        }
        response = AuthenticatedAPIClient().post('/api/v1/quotes/request/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], Quote.STATUS_PENDING)
        self.assertTrue(Quote.objects.filter(quote_number=response.data['quote_number']).exists())

    def test_requires_authentication(self):
        response = AuthenticatedAPIClient().get('/api/v1/orders/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class ExpireQuotesCommandTests(TestCase):
    def test_command_expires_sent_quotes(self):
        clock = FixedClock(date(2026, 3, 1))
        quote = TestDataFactory.create_quote(clock=clock, valid_days=5)
        services.transition_quote_status(quote.id, Quote.STATUS_SENT, clock=clock)
        out = StringIO()
        call_command('expire_quotes', '--date', '2026-03-07', stdout=out)
        self.assertIn('Expired 1 quote(s)', out.getvalue())
        quote.refresh_from_db()
        self.assertEqual(quote.status, Quote.STATUS_EXPIRED)
