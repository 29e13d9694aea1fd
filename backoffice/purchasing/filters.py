import django_filters
from django.db.models import Q
from .models import PurchaseOrder


class PurchaseOrderFilter(django_filters.FilterSet):
    search = django_filters.CharFilter(method='filter_search', label='Search')
    status = django_filters.CharFilter(field_name='status', lookup_expr='iexact')
    supplier = django_filters.NumberFilter(field_name='supplier_id')
    date_from = django_filters.DateFilter(field_name='order_date', lookup_expr='gte')
    date_to = django_filters.DateFilter(field_name='order_date', lookup_expr='lte')
    open = django_filters.BooleanFilter(method='filter_open', label='Awaiting stock')

    class Meta:
        model = PurchaseOrder
        fields = ['search', 'status', 'supplier', 'date_from', 'date_to', 'open']

    def filter_search(self, queryset, name, value):
        value = (value or '').strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(po_number__icontains=value) |
            Q(supplier__name__icontains=value) |
            Q(supplier__code__icontains=value)
        )

    def filter_open(self, queryset, name, value):
        receivable = [PurchaseOrder.STATUS_SENT, PurchaseOrder.STATUS_CONFIRMED, PurchaseOrder.STATUS_PARTIAL]
        return queryset.filter(status__in=receivable) if value else queryset.exclude(status__in=receivable)
