from rest_framework import serializers
from backoffice.core.serializers import LineItemSerializer
from .models import PurchaseOrder, PurchaseOrderItem, StockReceiving, StockReceivingItem


class PurchaseOrderItemSerializer(serializers.ModelSerializer):
    line_total = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    quantity_remaining = serializers.IntegerField(read_only=True)

    class Meta:
        model = PurchaseOrderItem
        fields = ['id', 'product', 'description', 'sku', 'quantity', 'unit_price', 'line_total',
                  'quantity_received', 'quantity_remaining', 'notes']


class StockReceivingItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = StockReceivingItem
        fields = ['id', 'po_item', 'product', 'description', 'quantity_received',
                  'quantity_accepted', 'quantity_rejected', 'rejection_reason']


class StockReceivingSerializer(serializers.ModelSerializer):
    items = StockReceivingItemSerializer(many=True, read_only=True)
    received_by_username = serializers.CharField(source='received_by.username', read_only=True, default=None)

    class Meta:
        model = StockReceiving
        fields = ['id', 'purchase_order', 'received_by', 'received_by_username', 'received_at', 'notes', 'items']


class PurchaseOrderSerializer(serializers.ModelSerializer):
    supplier_name = serializers.CharField(source='supplier.name', read_only=True)
    items = PurchaseOrderItemSerializer(many=True, read_only=True)
    receivings = StockReceivingSerializer(many=True, read_only=True)

    class Meta:
        model = PurchaseOrder
        fields = [
            'id', 'po_number', 'supplier', 'supplier_name', 'status', 'order_date', 'expected_date',
            'items', 'subtotal', 'vat_amount', 'discount', 'total', 'sent_at', 'confirmed_at',
            'received_date', 'cancelled_at', 'notes', 'internal_notes', 'receivings', 'version',
            'created_by', 'created_at', 'updated_at'
        ]
        read_only_fields = fields


class PurchaseOrderListSerializer(serializers.ModelSerializer):
    supplier_name = serializers.CharField(source='supplier.name', read_only=True)

    class Meta:
        model = PurchaseOrder
        fields = ['id', 'po_number', 'supplier', 'supplier_name', 'status', 'order_date',
                  'expected_date', 'total', 'version', 'created_at']


class PurchaseOrderCreateSerializer(serializers.Serializer):
    supplier = serializers.IntegerField()
    items = LineItemSerializer(many=True, allow_empty=False)
    order_date = serializers.DateField(required=False, allow_null=True)
    expected_date = serializers.DateField(required=False, allow_null=True)
    discount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, default=0)
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    internal_notes = serializers.CharField(required=False, allow_blank=True, default='')


class ReceiveRecordSerializer(serializers.Serializer):
    # Negative and inconsistent quantities are rejected by the receiving service
    item_id = serializers.IntegerField()
    quantity_received = serializers.IntegerField()
    quantity_accepted = serializers.IntegerField(required=False, allow_null=True)
    quantity_rejected = serializers.IntegerField(required=False, default=0)
    rejection_reason = serializers.CharField(required=False, allow_blank=True, default='')


class ReceiveStockSerializer(serializers.Serializer):
    items = ReceiveRecordSerializer(many=True)
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    version = serializers.IntegerField(required=False, allow_null=True, min_value=0)
