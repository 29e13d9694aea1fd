from django.contrib import admin
from .models import Order, OrderItem, OrderStatusHistory, Quote, QuoteItem


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ['product', 'description', 'sku', 'quantity', 'unit_price', 'notes']
    can_delete = False


class OrderStatusHistoryInline(admin.TabularInline):
    model = OrderStatusHistory
    extra = 0
    readonly_fields = ['from_status', 'to_status', 'notes', 'changed_by', 'created_at']
    can_delete = False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ['order_number', 'customer', 'status', 'payment_status', 'total', 'priority', 'source', 'created_at']
    list_filter = ['status', 'payment_status', 'priority', 'source', 'created_at']
    search_fields = ['order_number', 'customer__first_name', 'customer__last_name', 'customer__company', 'customer__email']
    readonly_fields = ['subtotal', 'vat_amount', 'total', 'version', 'status', 'payment_status', 'created_at', 'updated_at']
    inlines = [OrderItemInline, OrderStatusHistoryInline]
    ordering = ['-created_at']
    date_hierarchy = 'created_at'


class QuoteItemInline(admin.TabularInline):
    model = QuoteItem
    extra = 0
    readonly_fields = ['product', 'description', 'sku', 'quantity', 'unit_price', 'notes']
    can_delete = False


@admin.register(Quote)
class QuoteAdmin(admin.ModelAdmin):
    list_display = ['quote_number', 'customer_name', 'customer_email', 'status', 'total', 'valid_until', 'created_at']
    list_filter = ['status', 'valid_until', 'created_at']
    search_fields = ['quote_number', 'customer_name', 'customer_email', 'customer_company']
    readonly_fields = ['subtotal', 'vat_amount', 'total', 'version', 'status', 'order', 'created_at', 'updated_at']
    inlines = [QuoteItemInline]
    ordering = ['-created_at']
