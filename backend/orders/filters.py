import django_filters
from core_backend.base.filters import BaseFilterSet
from .models import Order


class OrderFilter(BaseFilterSet):
    """
    Filters for order lists: status (comma separated for several), type,
    table and the created_at range inherited from BaseFilterSet.
    """

    status = django_filters.CharFilter(method='filter_status')
    order_type = django_filters.ChoiceFilter(choices=Order.OrderType.choices)
    table_ref = django_filters.CharFilter(field_name='table_ref')

    class Meta:
        model = Order
        fields = ['status', 'order_type', 'table_ref']

    def filter_status(self, queryset, name, value):
        statuses = [s.strip() for s in value.split(',') if s.strip()]
        return queryset.filter(status__in=statuses) if statuses else queryset
