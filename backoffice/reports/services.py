import logging
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.db.models import Count, DecimalField, Q, Sum
from django.db.models.functions import TruncMonth

from backoffice.billing.models import Invoice
from backoffice.core import clock as clocks
from backoffice.core.money import ZERO, to_money
from backoffice.parties.models import Customer
from backoffice.sales.models import Order, OrderItem

logger = logging.getLogger('backoffice.reports')


def _money(value):
    return str(to_money(value or ZERO))


def revenue_filter():
    """Orders that count as revenue: paid or delivered, never cancelled"""
    return (
        Q(payment_status=Order.PAYMENT_PAID) | Q(status=Order.STATUS_DELIVERED)
    ) & ~Q(status=Order.STATUS_CANCELLED)


def get_report(period_days=30, clock=None):
    """Sales summary over orders created in the last ``period_days`` days"""
    clock = clocks.resolve(clock)
    period_days = int(period_days)
    if period_days < 1:
        raise ValueError('period_days must be at least 1')
    top_n = settings.BACKOFFICE.get('REPORT_TOP_N', 5)
    now = clock.now()
    since = now - timedelta(days=period_days)

    orders = Order.objects.filter(created_at__gte=since, created_at__lte=now)
    revenue_orders = orders.filter(revenue_filter())

    summary = revenue_orders.aggregate(
        revenue=Sum('total', output_field=DecimalField()),
        count=Count('id'),
    )
    revenue = summary['revenue'] or Decimal('0.00')
    revenue_count = summary['count']
    average = revenue / revenue_count if revenue_count else ZERO

    monthly = (
        revenue_orders.annotate(month=TruncMonth('created_at'))
        .values('month')
        .annotate(revenue=Sum('total', output_field=DecimalField()), orders=Count('id'))
        .order_by('month')
    )

    top_products = (
        OrderItem.objects.filter(order__in=orders.exclude(status=Order.STATUS_CANCELLED))
        .values('product_id', 'description')
        .annotate(quantity=Sum('quantity'))
        .order_by('-quantity', 'description')[:top_n]
    )

    top_customers = (
        revenue_orders.values('customer_id', 'customer__first_name', 'customer__last_name', 'customer__company')
        .annotate(spent=Sum('total', output_field=DecimalField()), orders=Count('id'))
        .order_by('-spent', 'customer_id')[:top_n]
    )

    by_status = {
        row['status']: row['count']
        for row in orders.values('status').annotate(count=Count('id')).order_by('status')
    }

    new_customers = Customer.objects.filter(created_at__gte=since, created_at__lte=now).count()

    logger.info(f"Report generated for last {period_days} days: {orders.count()} orders, revenue {revenue}")

    return {
        'period': {
            'days': period_days,
            'from': since.isoformat(),
            'to': now.isoformat(),
        },
        'summary': {
            'total_revenue': _money(revenue),
            'total_orders': orders.count(),
            'revenue_orders': revenue_count,
            'new_customers': new_customers,
            'average_order_value': _money(average),
        },
        'revenue_by_month': [
            {
                'month': row['month'].strftime('%Y-%m') if row['month'] else None,
                'revenue': _money(row['revenue']),
                'orders': row['orders'],
            }
            for row in monthly
        ],
        'top_products': [
            {
                'product_id': row['product_id'],
                'description': row['description'],
                'quantity': row['quantity'],
            }
            for row in top_products
        ],
        'top_customers': [
            {
                'customer_id': row['customer_id'],
                'name': row['customer__company'] or
                f"{row['customer__first_name']} {row['customer__last_name']}".strip(),
                'total_spent': _money(row['spent']),
                'orders': row['orders'],
            }
            for row in top_customers
        ],
        'orders_by_status': by_status,
    }


def invoice_stats(clock=None):
    """Billed, collected and outstanding totals across all invoices"""
    today = clocks.resolve(clock).today()
    live = Invoice.objects.filter(cancelled_at__isnull=True)

    totals = live.aggregate(
        billed=Sum('total', output_field=DecimalField()),
        collected=Sum('amount_paid', output_field=DecimalField()),
        outstanding=Sum('amount_due', output_field=DecimalField()),
    )
    overdue = live.filter(amount_due__gt=0, due_date__lt=today).exclude(status=Invoice.STATUS_DRAFT).aggregate(
        count=Count('id'),
        amount=Sum('amount_due', output_field=DecimalField()),
    )
    by_status = {
        row['status']: row['count']
        for row in Invoice.objects.values('status').annotate(count=Count('id')).order_by('status')
    }

    return {
        'total_billed': _money(totals['billed']),
        'total_collected': _money(totals['collected']),
        'total_outstanding': _money(totals['outstanding']),
        'overdue_count': overdue['count'],
        'overdue_amount': _money(overdue['amount']),
        'invoices_by_status': by_status,
    }
