from django.contrib import admin
from .models import Invoice, InvoiceItem, Payment


class InvoiceItemInline(admin.TabularInline):
    model = InvoiceItem
    extra = 0
    readonly_fields = ['product', 'description', 'sku', 'quantity', 'unit_price', 'notes']
    can_delete = False


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0
    readonly_fields = ['amount', 'method', 'reference', 'notes', 'received_at', 'created_by', 'created_at']
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ['invoice_number', 'customer', 'status', 'total', 'amount_paid', 'amount_due', 'due_date', 'created_at']
    list_filter = ['status', 'due_date', 'created_at']
    search_fields = ['invoice_number', 'order__order_number', 'customer__company', 'customer__email']
    readonly_fields = [
        'subtotal', 'vat_amount', 'total', 'amount_paid', 'amount_due', 'status', 'version',
        'sent_at', 'paid_at', 'cancelled_at', 'created_at', 'updated_at'
    ]
    inlines = [InvoiceItemInline, PaymentInline]
    ordering = ['-created_at']
    date_hierarchy = 'created_at'


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ['invoice', 'amount', 'method', 'reference', 'received_at', 'created_by']
    list_filter = ['method', 'received_at']
    search_fields = ['invoice__invoice_number', 'reference']
    readonly_fields = ['invoice', 'amount', 'method', 'reference', 'notes', 'received_at', 'created_by', 'created_at']
    ordering = ['-received_at']

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
