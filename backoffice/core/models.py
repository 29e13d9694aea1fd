from django.contrib.auth.models import AbstractUser
from django.core.validators import MinValueValidator
from django.db import models
from decimal import Decimal

from .exceptions import InvariantViolation
from .money import compute_totals, line_total


class User(AbstractUser):
    """Back-office staff account"""
    phone = models.CharField(max_length=20, blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'users'


class AuditLog(models.Model):
    """Audit log for engine operations"""
    ACTION_CHOICES = [
        ('order_create', 'Order Created'),
        ('order_update', 'Order Updated'),
        ('order_status', 'Order Status Changed'),
        ('pop_upload', 'POP Uploaded'),
        ('pop_approve', 'POP Approved'),
        ('pop_reject', 'POP Rejected'),
        ('quote_create', 'Quote Created'),
        ('quote_update', 'Quote Updated'),
        ('quote_status', 'Quote Status Changed'),
        ('quote_convert', 'Quote Converted'),
        ('invoice_create', 'Invoice Created'),
        ('invoice_send', 'Invoice Sent'),
        ('invoice_cancel', 'Invoice Cancelled'),
        ('invoice_overdue', 'Invoice Marked Overdue'),
        ('payment_add', 'Payment Added'),
        ('po_create', 'Purchase Order Created'),
        ('po_update', 'Purchase Order Updated'),
        ('po_status', 'Purchase Order Status Changed'),
        ('stock_receive', 'Stock Received'),
    ]

    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='audit_logs')
    action = models.CharField(max_length=50, choices=ACTION_CHOICES)
    model_name = models.CharField(max_length=100)
    object_id = models.CharField(max_length=100)
    object_reference = models.CharField(max_length=255, blank=True, null=True, help_text="Document number (order, quote, invoice or PO number)")
    changes = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at'], name='audit_logs_created_idx'),
            models.Index(fields=['action'], name='audit_logs_action_idx'),
            models.Index(fields=['model_name'], name='audit_logs_model_idx'),
            models.Index(fields=['object_reference'], name='audit_logs_ref_idx'),
        ]


class Document(models.Model):
    """Priced document whose totals are derived from its ``items``"""
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    vat_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    discount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    # Bumped on every engine write; callers echo it back to detect stale reads
    version = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True

    def line_pairs(self):
        return [(item.quantity, item.unit_price) for item in self.items.all()]

    def recalculate_totals(self):
        totals = compute_totals(self.line_pairs(), self.discount)
        self.subtotal = totals.subtotal
        self.vat_amount = totals.vat_amount
        self.discount = totals.discount
        self.total = totals.total
        return totals

    def check_totals(self):
        expected = compute_totals(self.line_pairs(), self.discount)
        actual = (self.subtotal, self.vat_amount, self.total)
        if actual != (expected.subtotal, expected.vat_amount, expected.total):
            raise InvariantViolation(
                f'{self.__class__.__name__} {self.pk} totals {actual} disagree with line items {tuple(expected)}'
            )


class LineItem(models.Model):
    """Priced, quantified entry on a document; ``product`` is optional for custom items"""
    product = models.ForeignKey(
        'catalog.Product', on_delete=models.SET_NULL, null=True, blank=True,
        related_name='%(app_label)s_%(class)s_lines'
    )
    description = models.CharField(max_length=255)
    sku = models.CharField(max_length=100, blank=True)
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    unit_price = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(Decimal('0.00'))])
    notes = models.TextField(blank=True)

    class Meta:
        abstract = True

    @property
    def line_total(self):
        return line_total(self.quantity, self.unit_price)

    def snapshot(self):
        """Field values for copying this line onto another document"""
        return {
            'product': self.product,
            'description': self.description,
            'sku': self.sku,
            'quantity': self.quantity,
            'unit_price': self.unit_price,
            'notes': self.notes,
        }
