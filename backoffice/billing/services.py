"""
Invoice generation and payment reconciliation.

Invoice status is never set by hand: ``derive_invoice_status`` computes it
from the amounts, dates and flags, and ``refresh_status`` stores the result.
"""
import logging
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.db import transaction
from django.db.models import Sum

from backoffice.core import clock as clocks
from backoffice.core.exceptions import (
    AlreadyInvoiced, DocumentLocked, InvalidAmount, InvalidTransition, InvoiceLocked, OverApplication
)
from backoffice.core.money import ZERO, to_money
from backoffice.core.utils import bump_version, create_audit_log, create_numbered, lock_document
from backoffice.sales.models import Order
from backoffice.sales.services import sync_payment_status
from .models import Invoice, InvoiceItem, Payment

logger = logging.getLogger(__name__)


def derive_invoice_status(invoice, today):
    """Status as a pure function of the invoice's amounts, dates and flags"""
    if invoice.cancelled_at is not None:
        return Invoice.STATUS_CANCELLED
    if invoice.amount_due == ZERO and (invoice.total > ZERO or invoice.sent_at is not None):
        return Invoice.STATUS_PAID
    if invoice.sent_at is None and invoice.amount_paid == ZERO:
        return Invoice.STATUS_DRAFT
    if invoice.amount_due > ZERO and invoice.due_date and today > invoice.due_date:
        return Invoice.STATUS_OVERDUE
    if ZERO < invoice.amount_due < invoice.total:
        return Invoice.STATUS_PARTIALLY_PAID
    return Invoice.STATUS_SENT


def refresh_status(invoice, clock=None):
    """Recompute and store ``invoice.status``; returns True when it changed"""
    new_status = derive_invoice_status(invoice, clocks.resolve(clock).today())
    if new_status == invoice.status:
        return False
    invoice.status = new_status
    return True


def _due_date(customer, issue_date, due_date=None):
    if due_date is not None:
        return due_date
    terms = customer.payment_terms
    if terms is None:
        terms = settings.BACKOFFICE.get('DEFAULT_PAYMENT_TERMS_DAYS', 30)
    return issue_date + timedelta(days=int(terms))


def generate_invoice_from_order(order_id, due_date=None, notes='', user=None, clock=None):
    """Create a DRAFT invoice whose lines are an independent copy of the order's"""
    clock = clocks.resolve(clock)
    with transaction.atomic():
        order = lock_document(Order, order_id)
        if Invoice.objects.filter(order_id=order.id).exists():
            raise AlreadyInvoiced(order_id=order.id, invoice_number=order.invoice.invoice_number)
        if order.status == Order.STATUS_CANCELLED:
            raise DocumentLocked('Cancelled orders cannot be invoiced.', status=order.status)

        lines = [line.snapshot() for line in order.items.all()]
        issue_date = clock.today()
        invoice = create_numbered(
            Invoice, 'invoice_number', f'INV-{issue_date.year}-',
            order=order,
            customer=order.customer,
            issue_date=issue_date,
            due_date=_due_date(order.customer, issue_date, due_date),
            subtotal=order.subtotal,
            vat_amount=order.vat_amount,
            discount=order.discount,
            total=order.total,
            amount_paid=ZERO,
            amount_due=order.total,
            status=Invoice.STATUS_DRAFT,
            notes=notes or '',
            created_by=user if user is not None and user.is_authenticated else None,
        )
        InvoiceItem.objects.bulk_create([InvoiceItem(invoice=invoice, **line) for line in lines])
        invoice.check_totals()

        create_audit_log(
            action='invoice_create',
            model_name='Invoice',
            object_id=invoice.id,
            object_reference=invoice.invoice_number,
            user=user,
            changes={
                'order_id': order.id,
                'order_number': order.order_number,
                'total': str(invoice.total),
                'due_date': invoice.due_date.isoformat(),
            }
        )
    logger.info(f"Invoice {invoice.invoice_number} generated from order {order.order_number}")
    return invoice


def send_invoice(invoice_id, user=None, version=None, clock=None):
    """DRAFT -> SENT; stamps sent_at and issue_date when missing"""
    clock = clocks.resolve(clock)
    with transaction.atomic():
        invoice = lock_document(Invoice, invoice_id, version)
        if invoice.status != Invoice.STATUS_DRAFT:
            raise InvalidTransition(invoice.status, Invoice.STATUS_SENT)
        invoice.sent_at = clock.now()
        if invoice.issue_date is None:
            invoice.issue_date = clock.today()
        refresh_status(invoice, clock)
        if invoice.status == Invoice.STATUS_PAID and invoice.paid_at is None:
            invoice.paid_at = invoice.sent_at
        bump_version(invoice)
        invoice.save()

        create_audit_log(
            action='invoice_send',
            model_name='Invoice',
            object_id=invoice.id,
            object_reference=invoice.invoice_number,
            user=user,
            changes={'status': invoice.status, 'sent_at': invoice.sent_at.isoformat()},
        )
    logger.info(f"Invoice {invoice.invoice_number} sent")
    return invoice


def apply_payment(invoice_id, amount, method='EFT', reference='', notes='', received_at=None,
                  user=None, version=None, clock=None):
    """
    Record a payment against an invoice.

    Checks run in a fixed order so the caller always sees the same error for
    the same input: amount, cancelled invoice, then over-application.
    """
    clock = clocks.resolve(clock)
    try:
        amount = to_money(amount)
    except ValueError:
        raise InvalidAmount('Payment amount is not a valid amount.', amount=str(amount))
    if amount <= ZERO:
        raise InvalidAmount('Payment amount must be greater than zero.', amount=str(amount))

    with transaction.atomic():
        invoice = lock_document(Invoice, invoice_id, version)
        if invoice.is_cancelled:
            raise InvoiceLocked(invoice_number=invoice.invoice_number)
        if amount > invoice.amount_due:
            raise OverApplication(amount=str(amount), amount_due=str(invoice.amount_due))

        payment = Payment.objects.create(
            invoice=invoice,
            amount=amount,
            method=method or 'EFT',
            reference=reference or '',
            notes=notes or '',
            received_at=received_at or clock.now(),
            created_by=user if user is not None and user.is_authenticated else None,
        )

        paid = invoice.payments.aggregate(total=Sum('amount'))['total'] or Decimal('0')
        invoice.amount_paid = to_money(paid)
        invoice.amount_due = invoice.total - invoice.amount_paid
        if invoice.amount_due < ZERO:
            raise OverApplication(amount=str(amount), amount_due=str(invoice.amount_due + amount))
        refresh_status(invoice, clock)
        if invoice.status == Invoice.STATUS_PAID and invoice.paid_at is None:
            invoice.paid_at = clock.now()
        bump_version(invoice)
        invoice.save()

        if invoice.order_id:
            sync_payment_status(invoice.order_id, invoice.amount_paid, invoice.total, clock)

        create_audit_log(
            action='payment_add',
            model_name='Invoice',
            object_id=invoice.id,
            object_reference=invoice.invoice_number,
            user=user,
            changes={
                'payment_id': payment.id,
                'amount': str(amount),
                'method': payment.method,
                'amount_paid': str(invoice.amount_paid),
                'amount_due': str(invoice.amount_due),
                'status': invoice.status,
            }
        )
    logger.info(
        f"Payment {amount} applied to invoice {invoice.invoice_number} "
        f"(paid={invoice.amount_paid}, due={invoice.amount_due}, status={invoice.status})"
    )
    return payment


def cancel_invoice(invoice_id, reason='', user=None, version=None, clock=None):
    clock = clocks.resolve(clock)
    with transaction.atomic():
        invoice = lock_document(Invoice, invoice_id, version)
        if invoice.is_cancelled:
            raise InvalidTransition(invoice.status, Invoice.STATUS_CANCELLED, 'Invoice is already cancelled.')
        if invoice.amount_paid > ZERO:
            raise InvalidTransition(
                invoice.status, Invoice.STATUS_CANCELLED, 'Invoices with payments cannot be cancelled.'
            )
        old_status = invoice.status
        invoice.cancelled_at = clock.now()
        refresh_status(invoice, clock)
        bump_version(invoice)
        invoice.save()

        create_audit_log(
            action='invoice_cancel',
            model_name='Invoice',
            object_id=invoice.id,
            object_reference=invoice.invoice_number,
            user=user,
            changes={'status': {'old': old_status, 'new': invoice.status}, 'reason': reason},
        )
    logger.info(f"Invoice {invoice.invoice_number} cancelled")
    return invoice


def mark_overdue_invoices(clock=None):
    """Flag SENT and PARTIALLY_PAID invoices past their due date; safe to re-run"""
    clock = clocks.resolve(clock)
    today = clock.today()
    candidates = Invoice.objects.filter(
        status__in=[Invoice.STATUS_SENT, Invoice.STATUS_PARTIALLY_PAID],
        due_date__lt=today,
        amount_due__gt=0,
    ).values_list('id', flat=True)

    updated = []
    for invoice_id in list(candidates):
        with transaction.atomic():
            invoice = lock_document(Invoice, invoice_id)
            old_status = invoice.status
            if not refresh_status(invoice, clock):
                continue
            bump_version(invoice)
            invoice.save(update_fields=['status', 'version', 'updated_at'])
            create_audit_log(
                action='invoice_overdue',
                model_name='Invoice',
                object_id=invoice.id,
                object_reference=invoice.invoice_number,
                changes={'status': {'old': old_status, 'new': invoice.status}},
            )
            updated.append(invoice)
    if updated:
        logger.info(f"Marked {len(updated)} invoice(s) overdue")
    return updated


def overdue_invoices(clock=None):
    """Unpaid invoices past due, oldest first, annotated with ``days_overdue``"""
    today = clocks.resolve(clock).today()
    invoices = list(
        Invoice.objects.select_related('customer')
        .filter(cancelled_at__isnull=True, amount_due__gt=0, due_date__lt=today)
        .exclude(status=Invoice.STATUS_DRAFT)
        .order_by('due_date', 'id')
    )
    for invoice in invoices:
        invoice.days_overdue = (today - invoice.due_date).days
    return invoices
