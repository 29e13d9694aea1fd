import django_filters
from django.db.models import Q
from django.utils import timezone
from .models import Invoice


class InvoiceFilter(django_filters.FilterSet):
    search = django_filters.CharFilter(method='filter_search', label='Search')
    status = django_filters.CharFilter(field_name='status', lookup_expr='iexact')
    customer = django_filters.NumberFilter(field_name='customer_id')
    order = django_filters.NumberFilter(field_name='order_id')
    due_before = django_filters.DateFilter(field_name='due_date', lookup_expr='lt')
    overdue = django_filters.BooleanFilter(method='filter_overdue', label='Overdue')

    class Meta:
        model = Invoice
        fields = ['search', 'status', 'customer', 'order', 'due_before', 'overdue']

    def filter_search(self, queryset, name, value):
        value = (value or '').strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(invoice_number__icontains=value) |
            Q(order__order_number__icontains=value) |
            Q(customer__company__icontains=value) |
            Q(customer__email__icontains=value)
        )

    def filter_overdue(self, queryset, name, value):
        overdue = (
            Q(cancelled_at__isnull=True) & Q(amount_due__gt=0) & Q(due_date__lt=timezone.localdate()) &
            ~Q(status=Invoice.STATUS_DRAFT)
        )
        return queryset.filter(overdue) if value else queryset.exclude(overdue)
