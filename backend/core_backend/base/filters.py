import django_filters
from django.utils import timezone
from django.utils.dateparse import parse_datetime, parse_date
from datetime import datetime, time
import logging

logger = logging.getLogger(__name__)


def normalize_datetime_value(value, *, is_end=False):
    """
    Normalize a date or datetime to a timezone-aware datetime.

    Args:
        value: A string (date or datetime), date object, or datetime object
        is_end: If True and value is date-only, returns end of day
                If False, returns start of day

    Examples:
        normalize_datetime_value("2025-11-11", is_end=False)  # 2025-11-11 00:00:00
        normalize_datetime_value("2025-11-11", is_end=True)   # 2025-11-11 23:59:59.999999
    """
    if not value:
        return value

    if isinstance(value, datetime):
        if timezone.is_naive(value):
            return timezone.make_aware(value)
        return value

    if isinstance(value, str):
        dt = parse_datetime(value)
        if dt:
            return timezone.make_aware(dt) if timezone.is_naive(dt) else dt
        parsed = parse_date(value)
        if parsed is None:
            logger.warning(f"Could not parse date filter value: {value}")
            return None
        value = parsed

    return timezone.make_aware(datetime.combine(value, time.max if is_end else time.min))


class BaseFilterSet(django_filters.FilterSet):
    """
    FilterSet with inclusive created_at range filters. Date-only values cover
    the whole day in the active timezone.
    """

    created_at__gte = django_filters.CharFilter(method='filter_created_from')
    created_at__lte = django_filters.CharFilter(method='filter_created_to')

    def filter_created_from(self, queryset, name, value):
        value = normalize_datetime_value(value)
        return queryset.filter(created_at__gte=value) if value else queryset

    def filter_created_to(self, queryset, name, value):
        value = normalize_datetime_value(value, is_end=True)
        return queryset.filter(created_at__lte=value) if value else queryset
