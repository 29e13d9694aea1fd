import django_filters
from django.db.models import Q
from .models import Customer, Supplier


class CustomerFilter(django_filters.FilterSet):
    search = django_filters.CharFilter(method='filter_search', label='Search')
    active = django_filters.BooleanFilter(field_name='is_active')
    source = django_filters.CharFilter(field_name='source', lookup_expr='iexact')

    class Meta:
        model = Customer
        fields = ['search', 'active', 'source']

    def filter_search(self, queryset, name, value):
        value = (value or '').strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(first_name__icontains=value) |
            Q(last_name__icontains=value) |
            Q(company__icontains=value) |
            Q(email__icontains=value) |
            Q(phone__icontains=value)
        )


class SupplierFilter(django_filters.FilterSet):
    search = django_filters.CharFilter(method='filter_search', label='Search')
    active = django_filters.BooleanFilter(field_name='is_active')

    class Meta:
        model = Supplier
        fields = ['search', 'active']

    def filter_search(self, queryset, name, value):
        value = (value or '').strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(name__icontains=value) |
            Q(code__icontains=value) |
            Q(email__icontains=value)
        )
