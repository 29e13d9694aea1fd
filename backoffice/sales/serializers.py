from rest_framework import serializers
from backoffice.core.serializers import LineItemSerializer
from .models import Order, OrderItem, OrderStatusHistory, Quote, QuoteItem


class OrderItemSerializer(serializers.ModelSerializer):
    line_total = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = OrderItem
        fields = ['id', 'product', 'description', 'sku', 'quantity', 'unit_price', 'line_total', 'notes']


class OrderStatusHistorySerializer(serializers.ModelSerializer):
    changed_by_username = serializers.CharField(source='changed_by.username', read_only=True, default=None)

    class Meta:
        model = OrderStatusHistory
        fields = ['id', 'from_status', 'to_status', 'notes', 'changed_by', 'changed_by_username', 'created_at']


class OrderSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source='customer.display_name', read_only=True)
    items = OrderItemSerializer(many=True, read_only=True)
    status_history = OrderStatusHistorySerializer(many=True, read_only=True)
    invoice_number = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            'id', 'order_number', 'customer', 'customer_name', 'status', 'status_before_hold',
            'payment_method', 'payment_status', 'items', 'subtotal', 'vat_amount', 'discount', 'total',
            'pop_file', 'pop_file_name', 'pop_uploaded_at', 'pop_verified', 'pop_verified_by',
            'pop_verified_at', 'pop_rejection_reason',
            'delivery_address', 'delivery_city', 'delivery_province', 'delivery_postal_code', 'delivery_notes',
            'priority', 'source', 'notes', 'internal_notes', 'paid_at', 'dispatched_at', 'delivered_at',
            'cancelled_at', 'invoice_number', 'status_history', 'version', 'created_by', 'created_at', 'updated_at'
        ]
        read_only_fields = fields

    def get_invoice_number(self, obj):
        invoice = getattr(obj, 'invoice', None)
        return invoice.invoice_number if invoice else None


class OrderListSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source='customer.display_name', read_only=True)

    class Meta:
        model = Order
        fields = [
            'id', 'order_number', 'customer', 'customer_name', 'status', 'payment_status',
            'total', 'priority', 'source', 'version', 'created_at'
        ]


class OrderDetailsSerializer(serializers.Serializer):
    delivery_address = serializers.CharField(required=False, allow_blank=True)
    delivery_city = serializers.CharField(required=False, allow_blank=True, max_length=100)
    delivery_province = serializers.CharField(required=False, allow_blank=True, max_length=100)
    delivery_postal_code = serializers.CharField(required=False, allow_blank=True, max_length=20)
    delivery_notes = serializers.CharField(required=False, allow_blank=True)
    priority = serializers.ChoiceField(choices=Order.PRIORITY_CHOICES, required=False)
    payment_method = serializers.ChoiceField(choices=Order.PAYMENT_METHOD_CHOICES, required=False)
    notes = serializers.CharField(required=False, allow_blank=True)
    internal_notes = serializers.CharField(required=False, allow_blank=True)
    version = serializers.IntegerField(required=False, allow_null=True, min_value=0)


class OrderCreateSerializer(OrderDetailsSerializer):
    customer = serializers.IntegerField()
    items = LineItemSerializer(many=True, allow_empty=False)
    discount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, default=0)
    source = serializers.ChoiceField(choices=Order.SOURCE_CHOICES, required=False, default='ADMIN')


class LineItemsUpdateSerializer(serializers.Serializer):
    items = LineItemSerializer(many=True, allow_empty=False)
    discount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    version = serializers.IntegerField(required=False, allow_null=True, min_value=0)


class POPUploadSerializer(serializers.Serializer):
    file = serializers.FileField(required=False)
    file_ref = serializers.CharField(required=False, allow_blank=True, max_length=500)
    file_name = serializers.CharField(required=False, allow_blank=True, max_length=255)
    version = serializers.IntegerField(required=False, allow_null=True, min_value=0)

    def validate(self, attrs):
        if not attrs.get('file') and not attrs.get('file_ref'):
            raise serializers.ValidationError('Upload a file or give a file reference.')
        return attrs


class QuoteItemSerializer(serializers.ModelSerializer):
    line_total = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = QuoteItem
        fields = ['id', 'product', 'description', 'sku', 'quantity', 'unit_price', 'line_total', 'notes']


class QuoteSerializer(serializers.ModelSerializer):
    items = QuoteItemSerializer(many=True, read_only=True)
    order_number = serializers.CharField(source='order.order_number', read_only=True, default=None)

    class Meta:
        model = Quote
        fields = [
            'id', 'quote_number', 'customer', 'customer_name', 'customer_email', 'customer_phone',
            'customer_company', 'status', 'valid_until', 'rejection_reason', 'items',
            'subtotal', 'vat_amount', 'discount', 'total', 'order', 'order_number',
            'delivery_address', 'delivery_city', 'delivery_notes', 'notes', 'internal_notes',
            'sent_at', 'viewed_at', 'accepted_at', 'converted_at', 'version', 'created_by',
            'created_at', 'updated_at'
        ]
        read_only_fields = fields


class QuoteCreateSerializer(serializers.Serializer):
    customer = serializers.IntegerField(required=False, allow_null=True)
    customer_name = serializers.CharField(required=False, allow_blank=True, max_length=200)
    customer_email = serializers.EmailField(required=False, allow_blank=True)
    customer_phone = serializers.CharField(required=False, allow_blank=True, max_length=20)
    customer_company = serializers.CharField(required=False, allow_blank=True, max_length=200)
    items = LineItemSerializer(many=True, allow_empty=False)
    discount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, default=0)
    valid_until = serializers.DateField(required=False, allow_null=True)
    valid_days = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    delivery_address = serializers.CharField(required=False, allow_blank=True)
    delivery_city = serializers.CharField(required=False, allow_blank=True, max_length=100)
    delivery_notes = serializers.CharField(required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)
    internal_notes = serializers.CharField(required=False, allow_blank=True)

    def validate(self, attrs):
        if not attrs.get('customer') and not attrs.get('customer_email'):
            raise serializers.ValidationError('Give a customer or the contact email of the prospect.')
        return attrs


class QuoteUpdateSerializer(serializers.Serializer):
    items = LineItemSerializer(many=True, required=False, allow_empty=False)
    discount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    valid_until = serializers.DateField(required=False, allow_null=True)
    delivery_address = serializers.CharField(required=False, allow_blank=True)
    delivery_city = serializers.CharField(required=False, allow_blank=True, max_length=100)
    delivery_notes = serializers.CharField(required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)
    internal_notes = serializers.CharField(required=False, allow_blank=True)
    version = serializers.IntegerField(required=False, allow_null=True, min_value=0)


class QuoteRequestItemSerializer(serializers.Serializer):
    description = serializers.CharField(max_length=255)
    quantity = serializers.IntegerField(min_value=1, default=1)
    notes = serializers.CharField(required=False, allow_blank=True)


class QuoteRequestSerializer(serializers.Serializer):
    """Public website quote request"""
    name = serializers.CharField(max_length=200)
    email = serializers.EmailField()
    phone = serializers.CharField(max_length=20)
    company = serializers.CharField(required=False, allow_blank=True, max_length=200)
    items = QuoteRequestItemSerializer(many=True, allow_empty=False)
    delivery_address = serializers.CharField(required=False, allow_blank=True)
    delivery_city = serializers.CharField(required=False, allow_blank=True, max_length=100)
    notes = serializers.CharField(required=False, allow_blank=True)
