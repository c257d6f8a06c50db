import django_filters
from django.db.models import Q

from backend.core.constants import STATUS_CHOICES
from .models import Liver


class LiverFilter(django_filters.FilterSet):
    """Roster filters: status, agency and free-text search"""
    search = django_filters.CharFilter(method='filter_search', label='Search')
    status = django_filters.ChoiceFilter(choices=STATUS_CHOICES)
    agency = django_filters.NumberFilter(field_name='agency_id', lookup_expr='exact')
    unassigned = django_filters.BooleanFilter(field_name='agency', lookup_expr='isnull', label='No agency')

    class Meta:
        model = Liver
        fields = ['search', 'status', 'agency', 'unassigned']

    def filter_search(self, queryset, name, value):
        value = value.strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(name__icontains=value) |
            Q(account_name__icontains=value) |
            Q(liver_id__icontains=value) |
            Q(tiktok_username__icontains=value)
        )
