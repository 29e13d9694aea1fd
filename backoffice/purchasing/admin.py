from django.contrib import admin
from .models import PurchaseOrder, PurchaseOrderItem, StockReceiving, StockReceivingItem


class PurchaseOrderItemInline(admin.TabularInline):
    model = PurchaseOrderItem
    extra = 0
    readonly_fields = ['product', 'description', 'sku', 'quantity', 'unit_price', 'quantity_received', 'notes']
    can_delete = False


@admin.register(PurchaseOrder)
class PurchaseOrderAdmin(admin.ModelAdmin):
    list_display = ['po_number', 'supplier', 'status', 'order_date', 'expected_date', 'total', 'created_at']
    list_filter = ['status', 'order_date', 'created_at']
    search_fields = ['po_number', 'supplier__name', 'supplier__code']
    readonly_fields = ['subtotal', 'vat_amount', 'total', 'status', 'version', 'sent_at', 'confirmed_at',
                       'received_date', 'cancelled_at', 'created_at', 'updated_at']
    inlines = [PurchaseOrderItemInline]
    ordering = ['-order_date']
    date_hierarchy = 'order_date'


class StockReceivingItemInline(admin.TabularInline):
    model = StockReceivingItem
    extra = 0
    readonly_fields = ['po_item', 'product', 'description', 'quantity_received', 'quantity_accepted',
                       'quantity_rejected', 'rejection_reason']
    can_delete = False


@admin.register(StockReceiving)
class StockReceivingAdmin(admin.ModelAdmin):
    list_display = ['purchase_order', 'received_by', 'received_at']
    list_filter = ['received_at']
    search_fields = ['purchase_order__po_number', 'notes']
    readonly_fields = ['purchase_order', 'received_by', 'received_at', 'notes']
    inlines = [StockReceivingItemInline]
    ordering = ['-received_at']
