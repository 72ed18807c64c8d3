import django_filters
from django.db.models import Q
from .models import Order


class OrderFilter(django_filters.FilterSet):
    """Back-office order filters"""
    status = django_filters.ChoiceFilter(choices=Order.STATUS_CHOICES)
    payment_status = django_filters.ChoiceFilter(choices=Order.PAYMENT_STATUS_CHOICES)
    from_date = django_filters.DateFilter(field_name='created_at', lookup_expr='date__gte')
    search = django_filters.CharFilter(method='filter_search')

    class Meta:
        model = Order
        fields = []

    def filter_search(self, queryset, name, value):
        value = value.strip()
        if not value:
            return queryset
        if value.isdigit():
            return queryset.filter(id=int(value))
        return queryset.filter(Q(customer_email__icontains=value) | Q(customer_name__icontains=value))
