import django_filters
from django.db.models import Q
from .models import Order, Quote


class OrderFilter(django_filters.FilterSet):
    search = django_filters.CharFilter(method='filter_search', label='Search')
    status = django_filters.CharFilter(field_name='status', lookup_expr='iexact')
    payment_status = django_filters.CharFilter(field_name='payment_status', lookup_expr='iexact')
    customer = django_filters.NumberFilter(field_name='customer_id')
    source = django_filters.CharFilter(field_name='source', lookup_expr='iexact')
    date_from = django_filters.DateFilter(field_name='created_at', lookup_expr='date__gte')
    date_to = django_filters.DateFilter(field_name='created_at', lookup_expr='date__lte')
    awaiting_pop_review = django_filters.BooleanFilter(method='filter_awaiting_pop_review', label='POP awaiting review')

    class Meta:
        model = Order
        fields = ['search', 'status', 'payment_status', 'customer', 'source', 'date_from', 'date_to']

    def filter_search(self, queryset, name, value):
        value = (value or '').strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(order_number__icontains=value) |
            Q(customer__first_name__icontains=value) |
            Q(customer__last_name__icontains=value) |
            Q(customer__company__icontains=value) |
            Q(customer__email__icontains=value)
        )

    def filter_awaiting_pop_review(self, queryset, name, value):
        pending = Q(pop_verified=False) & ~Q(pop_file='')
        return queryset.filter(pending) if value else queryset.exclude(pending)


class QuoteFilter(django_filters.FilterSet):
    search = django_filters.CharFilter(method='filter_search', label='Search')
    status = django_filters.CharFilter(field_name='status', lookup_expr='iexact')
    customer = django_filters.NumberFilter(field_name='customer_id')
    valid_until_before = django_filters.DateFilter(field_name='valid_until', lookup_expr='lt')

    class Meta:
        model = Quote
        fields = ['search', 'status', 'customer', 'valid_until_before']

    def filter_search(self, queryset, name, value):
        value = (value or '').strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(quote_number__icontains=value) |
            Q(customer_name__icontains=value) |
            Q(customer_email__icontains=value) |
            Q(customer_company__icontains=value)
        )
