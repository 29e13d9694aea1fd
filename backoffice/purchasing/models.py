from django.db import models

from backoffice.core.models import Document, LineItem, User
from backoffice.parties.models import Supplier


class PurchaseOrder(Document):
    """Purchase orders issued to suppliers"""
    STATUS_DRAFT = 'DRAFT'
    STATUS_SENT = 'SENT'
    STATUS_CONFIRMED = 'CONFIRMED'
    STATUS_PARTIAL = 'PARTIAL'
    STATUS_RECEIVED = 'RECEIVED'
    STATUS_CANCELLED = 'CANCELLED'

    STATUS_CHOICES = [
        (STATUS_DRAFT, 'Draft'),
        (STATUS_SENT, 'Sent'),
        (STATUS_CONFIRMED, 'Confirmed'),
        (STATUS_PARTIAL, 'Partially Received'),
        (STATUS_RECEIVED, 'Received'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    po_number = models.CharField(max_length=50, unique=True)
    supplier = models.ForeignKey(Supplier, on_delete=models.PROTECT, related_name='purchase_orders')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_DRAFT)
    order_date = models.DateField()
    expected_date = models.DateField(null=True, blank=True)
    sent_at = models.DateTimeField(null=True, blank=True)
    confirmed_at = models.DateTimeField(null=True, blank=True)
    received_date = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)
    internal_notes = models.TextField(blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='purchase_orders')

    def __str__(self):
        return self.po_number

    class Meta:
        db_table = 'purchase_orders'
        ordering = ['-order_date', '-created_at']
        indexes = [
            models.Index(fields=['status'], name='idx_po_status'),
            models.Index(fields=['supplier', 'status'], name='idx_po_supplier_status'),
        ]


class PurchaseOrderItem(LineItem):
    """Purchase order lines; ``quantity`` is the quantity ordered"""
    purchase_order = models.ForeignKey(PurchaseOrder, on_delete=models.CASCADE, related_name='items')
    quantity_received = models.PositiveIntegerField(default=0)

    @property
    def quantity_remaining(self):
        return max(self.quantity - self.quantity_received, 0)

    class Meta:
        db_table = 'purchase_order_items'
        ordering = ['id']
        indexes = [
            models.Index(fields=['purchase_order', 'product'], name='idx_poitem_po_product'),
        ]


class StockReceiving(models.Model):
    """One delivery booked against a purchase order (append-only)"""
    purchase_order = models.ForeignKey(PurchaseOrder, on_delete=models.CASCADE, related_name='receivings')
    received_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='stock_receivings')
    received_at = models.DateTimeField()
    notes = models.TextField(blank=True)

    def __str__(self):
        return f"{self.purchase_order.po_number} @ {self.received_at:%Y-%m-%d %H:%M}"

    class Meta:
        db_table = 'stock_receivings'
        ordering = ['-received_at', '-id']


class StockReceivingItem(models.Model):
    """Per-line outcome of a delivery: received units split into accepted and rejected"""
    receiving = models.ForeignKey(StockReceiving, on_delete=models.CASCADE, related_name='items')
    po_item = models.ForeignKey(PurchaseOrderItem, on_delete=models.PROTECT, related_name='receiving_items')
    product = models.ForeignKey('catalog.Product', on_delete=models.SET_NULL, null=True, blank=True, related_name='receiving_items')
    description = models.CharField(max_length=255, blank=True)
    quantity_received = models.PositiveIntegerField()
    quantity_accepted = models.PositiveIntegerField()
    quantity_rejected = models.PositiveIntegerField(default=0)
    rejection_reason = models.TextField(blank=True)

    class Meta:
        db_table = 'stock_receiving_items'
        ordering = ['id']
