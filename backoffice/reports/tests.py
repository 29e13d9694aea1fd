"""
Test suite for Reports module
Tests: Sales report revenue rules, invoice statistics, API endpoints
"""
from datetime import date, timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from backoffice.billing import services as billing_services
from backoffice.core.clock import FixedClock
from backoffice.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backoffice.sales import services as sales_services
from backoffice.sales.models import Order
from .services import get_report, invoice_stats


def paid_order(**kwargs):
    order = TestDataFactory.create_order(**kwargs)
    sales_services.transition_order_status(order.id, Order.STATUS_CONFIRMED)
    sales_services.upload_pop(order.id, 'pop/slip.pdf')
    return sales_services.approve_pop(order.id)


def delivered_order(**kwargs):
    order = TestDataFactory.create_order(**kwargs)
    for new_status in (
        Order.STATUS_CONFIRMED, Order.STATUS_AWAITING_PAYMENT, Order.STATUS_PAYMENT_RECEIVED,
        Order.STATUS_PROCESSING, Order.STATUS_READY_FOR_DISPATCH, Order.STATUS_DISPATCHED,
        Order.STATUS_DELIVERED,
    ):
        order = sales_services.transition_order_status(order.id, new_status)
    return order


class SalesReportTests(TestCase):
    """Test which orders count as revenue"""

    def setUp(self):
        self.paid = paid_order()
        self.delivered = delivered_order(
            items=[{'description': 'Pump', 'quantity': 1, 'unit_price': Decimal('500.00')}]
        )
        cancelled = paid_order()
        self.cancelled = sales_services.transition_order_status(cancelled.id, Order.STATUS_CANCELLED)
        self.pending = TestDataFactory.create_order()

    def test_summary(self):
        report = get_report(30)
        summary = report['summary']
        self.assertEqual(summary['total_orders'], 4)
        self.assertEqual(summary['revenue_orders'], 2)
        self.assertEqual(summary['total_revenue'], '805.00')
        self.assertEqual(summary['average_order_value'], '402.50')
        self.assertEqual(summary['new_customers'], 4)
        self.assertEqual(report['period']['days'], 30)

    def test_orders_by_status(self):
        self.assertEqual(get_report(30)['orders_by_status'], {
            Order.STATUS_PAYMENT_RECEIVED: 1,
            Order.STATUS_DELIVERED: 1,
            Order.STATUS_CANCELLED: 1,
            Order.STATUS_PENDING: 1,
        })

    def test_revenue_by_month(self):
        rows = get_report(30)['revenue_by_month']
        self.assertEqual(sum(Decimal(row['revenue']) for row in rows), Decimal('805.00'))
        self.assertEqual(sum(row['orders'] for row in rows), 2)

    def test_top_products_skip_cancelled_orders(self):
        top = get_report(30)['top_products']
        self.assertEqual(top[0]['description'], 'Widget')
        self.assertEqual(top[0]['quantity'], 4)
        self.assertEqual(top[1]['description'], 'Pump')

    def test_top_customers(self):
        top = get_report(30)['top_customers']
        self.assertEqual(top[0]['customer_id'], self.delivered.customer_id)
        self.assertEqual(top[0]['total_spent'], '575.00')
        self.assertEqual(len(top), 2)

    def test_period_window(self):
        Order.objects.filter(pk=self.delivered.pk).update(created_at=timezone.now() - timedelta(days=60))
        self.assertEqual(get_report(30)['summary']['total_revenue'], '230.00')
        self.assertEqual(get_report(90)['summary']['total_revenue'], '805.00')

    def test_invalid_period(self):
        with self.assertRaises(ValueError):
            get_report(0)


class EmptyReportTests(TestCase):
    def test_no_orders(self):
        report = get_report(30)
        self.assertEqual(report['summary']['total_revenue'], '0.00')
        self.assertEqual(report['summary']['average_order_value'], '0.00')
        self.assertEqual(report['revenue_by_month'], [])
        self.assertEqual(report['orders_by_status'], {})


class InvoiceStatsTests(TestCase):
    """Test billed, collected and outstanding figures"""

    def setUp(self):
        self.clock = FixedClock(date(2026, 3, 1))
        invoice = TestDataFactory.create_invoice(clock=self.clock)
        billing_services.send_invoice(invoice.id, clock=self.clock)
        billing_services.apply_payment(invoice.id, Decimal('100.00'), clock=self.clock)
        cancelled = TestDataFactory.create_invoice(clock=self.clock)
        billing_services.cancel_invoice(cancelled.id, clock=self.clock)

    def test_totals_exclude_cancelled(self):
        stats = invoice_stats(clock=self.clock)
        self.assertEqual(stats['total_billed'], '230.00')
        self.assertEqual(stats['total_collected'], '100.00')
        self.assertEqual(stats['total_outstanding'], '130.00')
        self.assertEqual(stats['overdue_count'], 0)
        self.assertEqual(stats['invoices_by_status'], {'CANCELLED': 1, 'PARTIALLY_PAID': 1})

    def test_overdue_figures(self):
        stats = invoice_stats(clock=FixedClock(date(2026, 4, 5)))
        self.assertEqual(stats['overdue_count'], 1)
        self.assertEqual(stats['overdue_amount'], '130.00')


class ReportAPITests(TestCase):
    """Test report API endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient().authenticate_user(self.user)

    def test_sales_report(self):
        paid_order()
        response = self.client.get('/api/v1/reports/', {'period': '7'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['period']['days'], 7)
        self.assertEqual(response.data['summary']['total_revenue'], '230.00')

    def test_invalid_period(self):
        for period in ('abc', '0', '-3'):
            response = self.client.get('/api/v1/reports/', {'period': period})
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
            self.assertEqual(response.data['error'], 'invalid_period')

    def test_invoice_stats(self):
        response = self.client.get('/api/v1/reports/invoice-stats/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_billed'], '0.00')

    def test_requires_authentication(self):
        response = AuthenticatedAPIClient().get('/api/v1/reports/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
