import django_filters
from django.db.models import Q
from .models import Item


class ItemFilter(django_filters.FilterSet):
    """Filter for the article catalog using django-filter"""

    search = django_filters.CharFilter(method='filter_search', label='Search')
    category = django_filters.CharFilter(field_name='category', lookup_expr='iexact')
    unit = django_filters.CharFilter(field_name='unit', lookup_expr='exact')
    active = django_filters.CharFilter(method='filter_active', label='Active')
    price_min = django_filters.NumberFilter(field_name='price_ht', lookup_expr='gte')
    price_max = django_filters.NumberFilter(field_name='price_ht', lookup_expr='lte')

    class Meta:
        model = Item
        fields = ['search', 'category', 'unit', 'active', 'price_min', 'price_max']

    def filter_search(self, queryset, name, value):
        if not value:
            return queryset
        return queryset.filter(
            Q(reference__icontains=value) |
            Q(designation__icontains=value) |
            Q(description__icontains=value)
        )

    def filter_active(self, queryset, name, value):
        if value in ('true', '1', 'True'):
            return queryset.filter(is_active=True)
        if value in ('false', '0', 'False'):
            return queryset.filter(is_active=False)
        return queryset
