from django.contrib import admin
from .models import Customer, Supplier


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ['first_name', 'last_name', 'company', 'email', 'phone', 'payment_terms', 'source', 'is_active', 'created_at']
    list_filter = ['is_active', 'source', 'created_at']
    search_fields = ['first_name', 'last_name', 'company', 'email', 'phone']
    ordering = ['company', 'first_name']


@admin.register(Supplier)
class SupplierAdmin(admin.ModelAdmin):
    list_display = ['name', 'code', 'phone', 'email', 'payment_terms', 'is_active', 'created_at']
    list_filter = ['is_active', 'created_at']
    search_fields = ['name', 'code', 'email']
    ordering = ['name']
