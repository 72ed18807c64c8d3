import django_filters
from django_filters.widgets import BooleanWidget
from django.conf import settings
from django.db.models import Q
from .models import Product


class ProductFilter(django_filters.FilterSet):
    """Storefront and back-office product filters"""
    category = django_filters.CharFilter(method='filter_category')
    search = django_filters.CharFilter(method='filter_search')
    min_price = django_filters.NumberFilter(field_name='price', lookup_expr='gte')
    max_price = django_filters.NumberFilter(field_name='price', lookup_expr='lte')
    size = django_filters.CharFilter(method='filter_size')
    color = django_filters.CharFilter(method='filter_color')
    tag = django_filters.CharFilter(method='filter_tag')
    in_stock = django_filters.BooleanFilter(method='filter_in_stock', widget=BooleanWidget())
    low_stock = django_filters.BooleanFilter(method='filter_low_stock', widget=BooleanWidget())

    class Meta:
        model = Product
        fields = []

    def filter_category(self, queryset, name, value):
        value = value.strip()
        if not value:
            return queryset
        return queryset.filter(Q(category__slug__iexact=value) | Q(category__name__iexact=value))

    def filter_search(self, queryset, name, value):
        value = value.strip()
        if not value:
            return queryset
        return queryset.filter(Q(name__icontains=value) | Q(description__icontains=value))

    # JSON list membership: match the quoted element inside the stored JSON text,
    # which works on both SQLite and Postgres
    def _filter_list_member(self, queryset, field_name, value):
        value = value.strip()
        if not value:
            return queryset
        return queryset.filter(**{f'{field_name}__icontains': f'"{value}"'})

    def filter_size(self, queryset, name, value):
        return self._filter_list_member(queryset, 'sizes', value)

    def filter_color(self, queryset, name, value):
        return self._filter_list_member(queryset, 'colors', value)

    def filter_tag(self, queryset, name, value):
        return self._filter_list_member(queryset, 'tags', value)

    def filter_in_stock(self, queryset, name, value):
        if value is True:
            return queryset.filter(stock_quantity__gt=0)
        if value is False:
            return queryset.filter(stock_quantity=0)
        return queryset

    def filter_low_stock(self, queryset, name, value):
        if value:
            return queryset.filter(stock_quantity__lt=settings.LOW_STOCK_THRESHOLD)
        return queryset
