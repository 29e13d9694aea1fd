from rest_framework import serializers
from .models import Product


class ProductSerializer(serializers.ModelSerializer):
    in_stock = serializers.BooleanField(read_only=True)

    class Meta:
        model = Product
        fields = [
            'id', 'name', 'sku', 'description', 'price', 'stock_quantity', 'low_stock_threshold',
            'in_stock', 'is_active', 'created_at', 'updated_at'
        ]
        # Stock only moves through purchase order receiving
        read_only_fields = ['stock_quantity', 'created_at', 'updated_at']
