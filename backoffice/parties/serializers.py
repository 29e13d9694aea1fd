from rest_framework import serializers
from .models import Customer, Supplier


class CustomerSerializer(serializers.ModelSerializer):
    display_name = serializers.CharField(read_only=True)

    class Meta:
        model = Customer
        fields = [
            'id', 'first_name', 'last_name', 'company', 'display_name', 'email', 'phone',
            'address', 'city', 'payment_terms', 'credit_limit', 'source', 'is_active',
            'created_at', 'updated_at'
        ]


class SupplierSerializer(serializers.ModelSerializer):
    class Meta:
        model = Supplier
        fields = [
            'id', 'name', 'code', 'phone', 'email', 'address', 'contact_person',
            'payment_terms', 'is_active', 'created_at', 'updated_at'
        ]
