from django.db import models

from backoffice.core.models import Document, LineItem, User
from backoffice.parties.models import Customer


class Order(Document):
    """Customer orders"""
    STATUS_PENDING = 'PENDING'
    STATUS_CONFIRMED = 'CONFIRMED'
    STATUS_AWAITING_PAYMENT = 'AWAITING_PAYMENT'
    STATUS_PAYMENT_RECEIVED = 'PAYMENT_RECEIVED'
    STATUS_PROCESSING = 'PROCESSING'
    STATUS_READY_FOR_DISPATCH = 'READY_FOR_DISPATCH'
    STATUS_DISPATCHED = 'DISPATCHED'
    STATUS_DELIVERED = 'DELIVERED'
    STATUS_CANCELLED = 'CANCELLED'
    STATUS_ON_HOLD = 'ON_HOLD'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_CONFIRMED, 'Confirmed'),
        (STATUS_AWAITING_PAYMENT, 'Awaiting Payment'),
        (STATUS_PAYMENT_RECEIVED, 'Payment Received'),
        (STATUS_PROCESSING, 'Processing'),
        (STATUS_READY_FOR_DISPATCH, 'Ready for Dispatch'),
        (STATUS_DISPATCHED, 'Dispatched'),
        (STATUS_DELIVERED, 'Delivered'),
        (STATUS_CANCELLED, 'Cancelled'),
        (STATUS_ON_HOLD, 'On Hold'),
    ]

    PAYMENT_UNPAID = 'UNPAID'
    PAYMENT_PARTIAL = 'PARTIAL'
    PAYMENT_PAID = 'PAID'

    PAYMENT_STATUS_CHOICES = [
        (PAYMENT_UNPAID, 'Unpaid'),
        (PAYMENT_PARTIAL, 'Partially Paid'),
        (PAYMENT_PAID, 'Paid'),
    ]

    PAYMENT_METHOD_CHOICES = [
        ('EFT', 'EFT / Bank Transfer'),
        ('CASH', 'Cash'),
        ('CARD', 'Card'),
        ('CREDIT', 'Account Credit'),
        ('OTHER', 'Other'),
    ]

    PRIORITY_CHOICES = [
        ('LOW', 'Low'),
        ('NORMAL', 'Normal'),
        ('HIGH', 'High'),
        ('URGENT', 'Urgent'),
    ]

    SOURCE_CHOICES = [
        ('WEBSITE', 'Website'),
        ('ADMIN', 'Admin'),
        ('QUOTE', 'Quote'),
        ('PHONE', 'Phone'),
    ]

    order_number = models.CharField(max_length=50, unique=True)
    customer = models.ForeignKey(Customer, on_delete=models.PROTECT, related_name='orders')
    status = models.CharField(max_length=30, choices=STATUS_CHOICES, default=STATUS_PENDING)
    # Where ON_HOLD resumes to
    status_before_hold = models.CharField(max_length=30, choices=STATUS_CHOICES, blank=True)
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHOD_CHOICES, default='EFT')
    payment_status = models.CharField(max_length=20, choices=PAYMENT_STATUS_CHOICES, default=PAYMENT_UNPAID)

    # Proof of payment
    pop_file = models.CharField(max_length=500, blank=True)
    pop_file_name = models.CharField(max_length=255, blank=True)
    pop_uploaded_at = models.DateTimeField(null=True, blank=True)
    pop_verified = models.BooleanField(default=False)
    pop_verified_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='verified_pops')
    pop_verified_at = models.DateTimeField(null=True, blank=True)
    pop_rejection_reason = models.TextField(blank=True)

    # Delivery address snapshot
    delivery_address = models.TextField(blank=True)
    delivery_city = models.CharField(max_length=100, blank=True)
    delivery_province = models.CharField(max_length=100, blank=True)
    delivery_postal_code = models.CharField(max_length=20, blank=True)
    delivery_notes = models.TextField(blank=True)

    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default='NORMAL')
    source = models.CharField(max_length=20, choices=SOURCE_CHOICES, default='ADMIN')
    notes = models.TextField(blank=True)
    internal_notes = models.TextField(blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    dispatched_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='orders')

    def __str__(self):
        return self.order_number

    class Meta:
        db_table = 'orders'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status'], name='idx_order_status'),
            models.Index(fields=['customer', 'status'], name='idx_order_customer_status'),
            models.Index(fields=['-created_at'], name='idx_order_created'),
        ]


class OrderItem(LineItem):
    """Order line items"""
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='items')

    class Meta:
        db_table = 'order_items'
        ordering = ['id']


class OrderStatusHistory(models.Model):
    """Append-only record of every order status change"""
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='status_history')
    from_status = models.CharField(max_length=30, blank=True)
    to_status = models.CharField(max_length=30)
    notes = models.TextField(blank=True)
    changed_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='order_status_changes')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.order.order_number}: {self.from_status or '-'} -> {self.to_status}"

    class Meta:
        db_table = 'order_status_history'
        ordering = ['created_at', 'id']


class Quote(Document):
    """Quotes for customers or website prospects"""
    STATUS_DRAFT = 'DRAFT'
    STATUS_SENT = 'SENT'
    STATUS_VIEWED = 'VIEWED'
    STATUS_PENDING = 'PENDING'
    STATUS_ACCEPTED = 'ACCEPTED'
    STATUS_REJECTED = 'REJECTED'
    STATUS_EXPIRED = 'EXPIRED'
    STATUS_CONVERTED = 'CONVERTED'

    STATUS_CHOICES = [
        (STATUS_DRAFT, 'Draft'),
        (STATUS_SENT, 'Sent'),
        (STATUS_VIEWED, 'Viewed'),
        (STATUS_PENDING, 'Pending'),
        (STATUS_ACCEPTED, 'Accepted'),
        (STATUS_REJECTED, 'Rejected'),
        (STATUS_EXPIRED, 'Expired'),
        (STATUS_CONVERTED, 'Converted'),
    ]

    quote_number = models.CharField(max_length=50, unique=True)
    customer = models.ForeignKey(Customer, on_delete=models.SET_NULL, null=True, blank=True, related_name='quotes')
    # Contact snapshot for prospects without an account
    customer_name = models.CharField(max_length=200, blank=True)
    customer_email = models.EmailField(blank=True)
    customer_phone = models.CharField(max_length=20, blank=True)
    customer_company = models.CharField(max_length=200, blank=True)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_DRAFT)
    valid_until = models.DateField()
    rejection_reason = models.TextField(blank=True)
    order = models.OneToOneField(Order, on_delete=models.SET_NULL, null=True, blank=True, related_name='source_quote')

    delivery_address = models.TextField(blank=True)
    delivery_city = models.CharField(max_length=100, blank=True)
    delivery_notes = models.TextField(blank=True)
    notes = models.TextField(blank=True)
    internal_notes = models.TextField(blank=True)

    sent_at = models.DateTimeField(null=True, blank=True)
    viewed_at = models.DateTimeField(null=True, blank=True)
    accepted_at = models.DateTimeField(null=True, blank=True)
    converted_at = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='quotes')

    def __str__(self):
        return self.quote_number

    def is_expired(self, today):
        return today > self.valid_until

    class Meta:
        db_table = 'quotes'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status'], name='idx_quote_status'),
            models.Index(fields=['valid_until'], name='idx_quote_valid_until'),
        ]


class QuoteItem(LineItem):
    """Quote line items"""
    quote = models.ForeignKey(Quote, on_delete=models.CASCADE, related_name='items')

    class Meta:
        db_table = 'quote_items'
        ordering = ['id']
