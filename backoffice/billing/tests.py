"""
Comprehensive test suite for Billing module
Tests: Invoice generation, derived status, payments, overdue sweep, API endpoints
"""
from datetime import date, timedelta
from decimal import Decimal
from io import StringIO

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from backoffice.core.clock import FixedClock
from backoffice.core.exceptions import (
    AlreadyInvoiced, ConcurrentModification, DocumentLocked, InvalidAmount, InvalidTransition, InvariantViolation,
    InvoiceLocked, OverApplication
)
from backoffice.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backoffice.sales import services as sales_services
from backoffice.sales.models import Order, Quote
from . import services
from .models import Invoice, Payment


class InvoiceGenerationTests(TestCase):
    """Test invoice creation from orders"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.clock = FixedClock(date(2026, 3, 1))
        self.customer = TestDataFactory.create_customer()
        self.order = TestDataFactory.create_order(
            customer=self.customer,
            items=[{'description': 'Widget', 'quantity': 10, 'unit_price': Decimal('100.00')}],
        )

    def test_generate_copies_totals_and_lines(self):
        invoice = TestDataFactory.create_invoice(self.order, user=self.user, clock=self.clock)
        self.assertEqual(invoice.invoice_number, 'INV-2026-00001')
        self.assertEqual(invoice.status, Invoice.STATUS_DRAFT)
        self.assertEqual(invoice.customer, self.customer)
        self.assertEqual(invoice.total, Decimal('1150.00'))
        self.assertEqual(invoice.amount_due, Decimal('1150.00'))
        self.assertEqual(invoice.amount_paid, Decimal('0.00'))
        self.assertEqual(invoice.issue_date, date(2026, 3, 1))
        self.assertEqual(invoice.due_date, date(2026, 3, 31))
        self.assertEqual(invoice.items.count(), 1)

    def test_due_date_follows_customer_terms(self):
        customer = TestDataFactory.create_customer(payment_terms=14)
        order = TestDataFactory.create_order(customer=customer)
        invoice = TestDataFactory.create_invoice(order, clock=self.clock)
        self.assertEqual(invoice.due_date, date(2026, 3, 15))

    def test_explicit_due_date(self):
        invoice = TestDataFactory.create_invoice(self.order, clock=self.clock, due_date=date(2026, 5, 1))
        self.assertEqual(invoice.due_date, date(2026, 5, 1))

    def test_one_invoice_per_order(self):
        TestDataFactory.create_invoice(self.order, clock=self.clock)
        with self.assertRaises(AlreadyInvoiced):
            TestDataFactory.create_invoice(self.order, clock=self.clock)
        self.assertEqual(Invoice.objects.count(), 1)

    def test_cancelled_order_cannot_be_invoiced(self):
        sales_services.transition_order_status(self.order.id, Order.STATUS_CANCELLED)
        with self.assertRaises(DocumentLocked):
            TestDataFactory.create_invoice(self.order, clock=self.clock)

    def test_invoice_lines_are_a_snapshot(self):
        """Editing the order afterwards leaves the invoice untouched"""
        invoice = TestDataFactory.create_invoice(self.order, clock=self.clock)
        sales_services.update_order_items(
            self.order.id, [{'description': 'Other', 'quantity': 1, 'unit_price': Decimal('5.00')}]
        )
        invoice.refresh_from_db()
        self.assertEqual(invoice.total, Decimal('1150.00'))
        self.assertEqual(list(invoice.items.values_list('description', 'quantity')), [('Widget', 10)])

    def test_lines_survive_quote_deletion(self):
        """Quote -> order -> invoice keeps its own copy of the lines"""
        quote = TestDataFactory.create_quote(customer=self.customer, clock=self.clock)
        sales_services.transition_quote_status(quote.id, Quote.STATUS_SENT, clock=self.clock)
        sales_services.transition_quote_status(quote.id, Quote.STATUS_VIEWED, clock=self.clock)
        sales_services.transition_quote_status(quote.id, Quote.STATUS_ACCEPTED, clock=self.clock)
        order = sales_services.convert_quote_to_order(quote.id, clock=self.clock)
        invoice = TestDataFactory.create_invoice(order, clock=self.clock)

        Quote.objects.filter(pk=quote.pk).delete()
        invoice.refresh_from_db()
        self.assertEqual(invoice.total, Decimal('1150.00'))
        self.assertEqual(
            list(invoice.items.values_list('description', 'quantity', 'unit_price')),
            [('Widget', 10, Decimal('100.00'))]
        )
        invoice.check_totals()


class InvoicePaymentTests(TestCase):
    """Test payments and the derived invoice status"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.clock = FixedClock(date(2026, 3, 1))
        self.order = TestDataFactory.create_order(
            items=[{'description': 'Widget', 'quantity': 10, 'unit_price': Decimal('100.00')}],
        )
        invoice = TestDataFactory.create_invoice(self.order, clock=self.clock)
        self.invoice = services.send_invoice(invoice.id, clock=self.clock)

    def test_send(self):
        self.assertEqual(self.invoice.status, Invoice.STATUS_SENT)
        self.assertIsNotNone(self.invoice.sent_at)
        with self.assertRaises(InvalidTransition):
            services.send_invoice(self.invoice.id, clock=self.clock)

    def test_partial_then_full_payment(self):
        """1150.00 invoice paid in two parts, then refuses more"""
        services.apply_payment(self.invoice.id, Decimal('500.00'), clock=self.clock)
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.amount_due, Decimal('650.00'))
        self.assertEqual(self.invoice.status, Invoice.STATUS_PARTIALLY_PAID)

        services.apply_payment(self.invoice.id, Decimal('650.00'), clock=self.clock)
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.amount_due, Decimal('0.00'))
        self.assertEqual(self.invoice.amount_paid, Decimal('1150.00'))
        self.assertEqual(self.invoice.status, Invoice.STATUS_PAID)
        self.assertIsNotNone(self.invoice.paid_at)

        with self.assertRaises(OverApplication):
            services.apply_payment(self.invoice.id, Decimal('1.00'), clock=self.clock)
        self.assertEqual(self.invoice.payments.count(), 2)

    def test_order_payment_status_follows_invoice(self):
        services.apply_payment(self.invoice.id, Decimal('100.00'), clock=self.clock)
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, Order.PAYMENT_PARTIAL)
        services.apply_payment(self.invoice.id, Decimal('1050.00'), clock=self.clock)
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, Order.PAYMENT_PAID)
        self.assertIsNotNone(self.order.paid_at)

    def test_overpayment_in_one_go(self):
        with self.assertRaises(OverApplication) as ctx:
            services.apply_payment(self.invoice.id, Decimal('1150.01'), clock=self.clock)
        self.assertEqual(ctx.exception.context['amount_due'], '1150.00')
        self.assertEqual(Payment.objects.count(), 0)

    def test_invalid_amounts(self):
        for amount in (Decimal('0'), Decimal('-5.00'), 'abc'):
            with self.assertRaises(InvalidAmount):
                services.apply_payment(self.invoice.id, amount, clock=self.clock)
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.amount_paid, Decimal('0.00'))

    def test_payment_on_draft_invoice(self):
        order = TestDataFactory.create_order()
        invoice = TestDataFactory.create_invoice(order, clock=self.clock)
        services.apply_payment(invoice.id, Decimal('30.00'), clock=self.clock)
        invoice.refresh_from_db()
        self.assertEqual(invoice.status, Invoice.STATUS_PARTIALLY_PAID)

    def test_cancelled_invoice_refuses_payment(self):
        invoice = services.cancel_invoice(self.invoice.id, reason='Duplicate', clock=self.clock)
        self.assertEqual(invoice.status, Invoice.STATUS_CANCELLED)
        with self.assertRaises(InvoiceLocked):
            services.apply_payment(invoice.id, Decimal('10.00'), clock=self.clock)
        # amount is validated before the invoice state
        with self.assertRaises(InvalidAmount):
            services.apply_payment(invoice.id, Decimal('0.00'), clock=self.clock)

    def test_cannot_cancel_paid_invoice(self):
        services.apply_payment(self.invoice.id, Decimal('10.00'), clock=self.clock)
        with self.assertRaises(InvalidTransition):
            services.cancel_invoice(self.invoice.id, clock=self.clock)

    def test_stale_version_refuses_payment(self):
        stale = self.invoice.version
        services.apply_payment(self.invoice.id, Decimal('100.00'), version=stale, clock=self.clock)
        with self.assertRaises(ConcurrentModification):
            services.apply_payment(self.invoice.id, Decimal('200.00'), version=stale, clock=self.clock)
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.amount_paid, Decimal('100.00'))
        self.assertEqual(self.invoice.version, stale + 1)
        self.assertEqual(self.invoice.payments.count(), 1)

    def test_zero_total_invoice_is_paid_once_sent(self):
        order = TestDataFactory.create_order(
            items=[{'description': 'Warranty callout', 'quantity': 1, 'unit_price': Decimal('0.00')}],
        )
        invoice = TestDataFactory.create_invoice(order, clock=self.clock)
        self.assertEqual(invoice.status, Invoice.STATUS_DRAFT)

        invoice = services.send_invoice(invoice.id, clock=self.clock)
        self.assertEqual(invoice.amount_due, Decimal('0.00'))
        self.assertEqual(invoice.status, Invoice.STATUS_PAID)
        self.assertIsNotNone(invoice.paid_at)

        # the overdue sweep leaves it alone
        self.assertEqual(services.mark_overdue_invoices(clock=FixedClock(date(2026, 6, 1))), [])

    def test_payments_are_immutable(self):
        payment = services.apply_payment(self.invoice.id, Decimal('10.00'), clock=self.clock)
        payment.amount = Decimal('1.00')
        with self.assertRaises(InvariantViolation):
            payment.save()
        with self.assertRaises(InvariantViolation):
            payment.delete()
        self.assertEqual(Payment.objects.get(pk=payment.pk).amount, Decimal('10.00'))


class OverdueTests(TestCase):
    """Test overdue derivation and the sweep"""

    def setUp(self):
        self.clock = FixedClock(date(2026, 3, 1))
        invoice = TestDataFactory.create_invoice(clock=self.clock)
        self.invoice = services.send_invoice(invoice.id, clock=self.clock)
        self.late = FixedClock(date(2026, 4, 5))

    def test_not_overdue_on_due_date(self):
        on_due = FixedClock(self.invoice.due_date)
        self.assertEqual(services.mark_overdue_invoices(clock=on_due), [])
        self.assertEqual(services.derive_invoice_status(self.invoice, on_due.today()), Invoice.STATUS_SENT)

    def test_sweep_is_idempotent(self):
        updated = services.mark_overdue_invoices(clock=self.late)
        self.assertEqual([invoice.id for invoice in updated], [self.invoice.id])
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, Invoice.STATUS_OVERDUE)
        version = self.invoice.version

        self.assertEqual(services.mark_overdue_invoices(clock=self.late), [])
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.version, version)

    def test_overdue_wins_over_partially_paid(self):
        services.apply_payment(self.invoice.id, Decimal('10.00'), clock=self.clock)
        services.mark_overdue_invoices(clock=self.late)
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, Invoice.STATUS_OVERDUE)

    def test_paying_overdue_invoice_clears_it(self):
        services.mark_overdue_invoices(clock=self.late)
        services.apply_payment(self.invoice.id, self.invoice.total, clock=self.late)
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, Invoice.STATUS_PAID)

    def test_drafts_are_never_overdue(self):
        draft = TestDataFactory.create_invoice(clock=self.clock)
        services.mark_overdue_invoices(clock=self.late)
        draft.refresh_from_db()
        self.assertEqual(draft.status, Invoice.STATUS_DRAFT)

    def test_overdue_listing(self):
        rows = services.overdue_invoices(clock=self.late)
        self.assertEqual([invoice.id for invoice in rows], [self.invoice.id])
        self.assertEqual(rows[0].days_overdue, 5)


class InvoiceAPITests(TestCase):
    """Test invoice API endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient().authenticate_user(self.user)
        self.order = TestDataFactory.create_order(
            items=[{'description': 'Widget', 'quantity': 10, 'unit_price': Decimal('100.00')}],
        )

    def test_generate_send_and_pay(self):
        response = self.client.post('/api/v1/invoices/', {'order': self.order.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['total'], '1150.00')
        self.assertEqual(response.data['order_number'], self.order.order_number)
        invoice_id = response.data['id']

        response = self.client.post(f'/api/v1/invoices/{invoice_id}/send/', {}, format='json')
        self.assertEqual(response.data['status'], Invoice.STATUS_SENT)

        response = self.client.post(f'/api/v1/invoices/{invoice_id}/payments/', {'amount': '500.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['amount_due'], '650.00')
        self.assertEqual(response.data['status'], Invoice.STATUS_PARTIALLY_PAID)
        self.assertEqual(len(response.data['payments']), 1)

        response = self.client.post(f'/api/v1/invoices/{invoice_id}/payments/', {'amount': '700.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'over_application')
        self.assertEqual(response.data['amount_due'], '650.00')

    def test_payment_with_stale_version_conflicts(self):
        invoice = TestDataFactory.create_invoice(self.order)
        stale = invoice.version
        services.send_invoice(invoice.id)

        response = self.client.post(
            f'/api/v1/invoices/{invoice.id}/payments/', {'amount': '100.00', 'version': stale}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'concurrent_modification')
        self.assertEqual(response.data['current_version'], stale + 1)
        invoice.refresh_from_db()
        self.assertEqual(invoice.amount_paid, Decimal('0.00'))
        self.assertFalse(Payment.objects.filter(invoice=invoice).exists())

    def test_duplicate_invoice_conflict(self):
        TestDataFactory.create_invoice(self.order)
        response = self.client.post('/api/v1/invoices/', {'order': self.order.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'already_invoiced')

    def test_unknown_order(self):
        response = self.client.post('/api/v1/invoices/', {'order': 999999}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_overdue_endpoint(self):
        today = timezone.localdate()
        invoice = TestDataFactory.create_invoice(self.order, due_date=today - timedelta(days=3))
        services.send_invoice(invoice.id)
        response = self.client.get('/api/v1/invoices/overdue/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data[0]['days_overdue'], 3)

    def test_mark_overdue_is_admin_only(self):
        response = self.client.post('/api/v1/invoices/mark-overdue/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        today = timezone.localdate()
        invoice = TestDataFactory.create_invoice(self.order, due_date=today - timedelta(days=1))
        services.send_invoice(invoice.id, clock=FixedClock(today - timedelta(days=5)))
        admin_client = AuthenticatedAPIClient().authenticate_user(self.admin)
        response = admin_client.post('/api/v1/invoices/mark-overdue/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['updated'], 1)
        self.assertEqual(response.data['invoices'], [invoice.invoice_number])

    def test_list_filter_by_status(self):
        invoice = TestDataFactory.create_invoice(self.order)
        TestDataFactory.create_invoice()
        services.send_invoice(invoice.id)
        response = self.client.get('/api/v1/invoices/', {'status': 'sent'})
        self.assertEqual([row['id'] for row in response.data], [invoice.id])


class MarkOverdueCommandTests(TestCase):
    def test_command_flags_overdue(self):
        clock = FixedClock(date(2026, 3, 1))
        invoice = TestDataFactory.create_invoice(clock=clock)
        services.send_invoice(invoice.id, clock=clock)
        out = StringIO()
        call_command('mark_overdue_invoices', '--date', '2026-04-05', stdout=out)
        self.assertIn('Marked 1 invoice(s) overdue', out.getvalue())
        invoice.refresh_from_db()
        self.assertEqual(invoice.status, Invoice.STATUS_OVERDUE)

    def test_command_rejects_bad_date(self):
        with self.assertRaises(CommandError):
            call_command('mark_overdue_invoices', '--date', '05/04/2026', stdout=StringIO())
