from rest_framework import serializers
from .models import User, AuditLog


class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'first_name', 'last_name', 'phone', 'is_active', 'is_staff', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']


class AuditLogSerializer(serializers.ModelSerializer):
    username = serializers.CharField(source='user.username', read_only=True, default=None)

    class Meta:
        model = AuditLog
        fields = ['id', 'user', 'username', 'action', 'model_name', 'object_id',
                  'object_reference', 'changes', 'ip_address', 'created_at']


class LineItemSerializer(serializers.Serializer):
    """Write-side shape of a line item; prices fall back to the product's"""
    product = serializers.IntegerField(required=False, allow_null=True)
    description = serializers.CharField(max_length=255, required=False, allow_blank=True)
    sku = serializers.CharField(max_length=100, required=False, allow_blank=True)
    quantity = serializers.IntegerField(min_value=1)
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True)

    def validate(self, attrs):
        if attrs.get('product') is None and not attrs.get('description'):
            raise serializers.ValidationError('Custom items need a description.')
        return attrs


class StatusChangeSerializer(serializers.Serializer):
    status = serializers.CharField(max_length=30)
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    version = serializers.IntegerField(required=False, allow_null=True, min_value=0)


class ReasonSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default='')
    version = serializers.IntegerField(required=False, allow_null=True, min_value=0)


class VersionSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    version = serializers.IntegerField(required=False, allow_null=True, min_value=0)
