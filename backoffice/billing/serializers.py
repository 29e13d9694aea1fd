from rest_framework import serializers
from .models import Invoice, InvoiceItem, Payment


class InvoiceItemSerializer(serializers.ModelSerializer):
    line_total = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = InvoiceItem
        fields = ['id', 'product', 'description', 'sku', 'quantity', 'unit_price', 'line_total', 'notes']


class PaymentSerializer(serializers.ModelSerializer):
    created_by_username = serializers.CharField(source='created_by.username', read_only=True, default=None)

    class Meta:
        model = Payment
        fields = ['id', 'invoice', 'amount', 'method', 'reference', 'notes', 'received_at',
                  'created_by', 'created_by_username', 'created_at']
        read_only_fields = fields


class InvoiceSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source='customer.display_name', read_only=True)
    order_number = serializers.CharField(source='order.order_number', read_only=True, default=None)
    items = InvoiceItemSerializer(many=True, read_only=True)
    payments = PaymentSerializer(many=True, read_only=True)

    class Meta:
        model = Invoice
        fields = [
            'id', 'invoice_number', 'order', 'order_number', 'customer', 'customer_name', 'status',
            'issue_date', 'due_date', 'items', 'subtotal', 'vat_amount', 'discount', 'total',
            'amount_paid', 'amount_due', 'payments', 'notes', 'sent_at', 'paid_at', 'cancelled_at',
            'version', 'created_by', 'created_at', 'updated_at'
        ]
        read_only_fields = fields


class InvoiceListSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source='customer.display_name', read_only=True)

    class Meta:
        model = Invoice
        fields = [
            'id', 'invoice_number', 'order', 'customer', 'customer_name', 'status', 'issue_date',
            'due_date', 'total', 'amount_paid', 'amount_due', 'version', 'created_at'
        ]


class OverdueInvoiceSerializer(InvoiceListSerializer):
    days_overdue = serializers.IntegerField(read_only=True)

    class Meta(InvoiceListSerializer.Meta):
        fields = InvoiceListSerializer.Meta.fields + ['days_overdue']


class InvoiceCreateSerializer(serializers.Serializer):
    order = serializers.IntegerField()
    due_date = serializers.DateField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class PaymentCreateSerializer(serializers.Serializer):
    # Sign and size are checked by the billing service so the error kinds stay consistent
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    method = serializers.ChoiceField(choices=Payment.PAYMENT_METHOD_CHOICES, default='EFT')
    reference = serializers.CharField(required=False, allow_blank=True, max_length=200, default='')
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    received_at = serializers.DateTimeField(required=False, allow_null=True)
    version = serializers.IntegerField(required=False, allow_null=True, min_value=0)
