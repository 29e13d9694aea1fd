from django.db import models
from decimal import Decimal

from backoffice.core.exceptions import InvariantViolation
from backoffice.core.models import Document, LineItem, User
from backoffice.parties.models import Customer
from backoffice.sales.models import Order


class Invoice(Document):
    """Invoices issued against orders.

    ``status`` is stored for filtering but only ever written by
    ``billing.services.refresh_status``.
    """
    STATUS_DRAFT = 'DRAFT'
    STATUS_SENT = 'SENT'
    STATUS_PAID = 'PAID'
    STATUS_PARTIALLY_PAID = 'PARTIALLY_PAID'
    STATUS_OVERDUE = 'OVERDUE'
    STATUS_CANCELLED = 'CANCELLED'

    STATUS_CHOICES = [
        (STATUS_DRAFT, 'Draft'),
        (STATUS_SENT, 'Sent'),
        (STATUS_PAID, 'Paid'),
        (STATUS_PARTIALLY_PAID, 'Partially Paid'),
        (STATUS_OVERDUE, 'Overdue'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    invoice_number = models.CharField(max_length=50, unique=True)
    order = models.OneToOneField(Order, on_delete=models.PROTECT, null=True, blank=True, related_name='invoice')
    customer = models.ForeignKey(Customer, on_delete=models.PROTECT, related_name='invoices')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_DRAFT)
    issue_date = models.DateField(null=True, blank=True)
    due_date = models.DateField()
    amount_paid = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    amount_due = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    notes = models.TextField(blank=True)
    sent_at = models.DateTimeField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='invoices')

    def __str__(self):
        return self.invoice_number

    @property
    def is_cancelled(self):
        return self.cancelled_at is not None

    class Meta:
        db_table = 'invoices'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status'], name='idx_invoice_status'),
            models.Index(fields=['status', 'due_date'], name='idx_invoice_status_due'),
            models.Index(fields=['customer'], name='idx_invoice_customer'),
        ]


class InvoiceItem(LineItem):
    """Invoice line items, copied from the order when the invoice is generated"""
    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name='items')

    class Meta:
        db_table = 'invoice_items'
        ordering = ['id']


class Payment(models.Model):
    """Payments applied to invoices; never edited or deleted once recorded"""
    PAYMENT_METHOD_CHOICES = [
        ('EFT', 'EFT / Bank Transfer'),
        ('CASH', 'Cash'),
        ('CARD', 'Card'),
        ('CHEQUE', 'Cheque'),
        ('OTHER', 'Other'),
    ]

    invoice = models.ForeignKey(Invoice, on_delete=models.PROTECT, related_name='payments')
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    method = models.CharField(max_length=20, choices=PAYMENT_METHOD_CHOICES, default='EFT')
    reference = models.CharField(max_length=200, blank=True)
    notes = models.TextField(blank=True)
    received_at = models.DateTimeField()
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='payments')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.invoice.invoice_number} - {self.amount}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise InvariantViolation(f'Payment {self.pk} is immutable')
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise InvariantViolation(f'Payment {self.pk} is immutable')

    class Meta:
        db_table = 'payments'
        ordering = ['received_at', 'id']
