import django_filters

from backend.core.constants import FORM_TAB_CHOICES, STATUS_CHOICES
from .models import Application


class ApplicationFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=STATUS_CHOICES)
    form_tab = django_filters.ChoiceFilter(choices=FORM_TAB_CHOICES)
    agency = django_filters.NumberFilter(field_name='agency_id', lookup_expr='exact')
    date_from = django_filters.DateFilter(field_name='created_at', lookup_expr='date__gte')
    date_to = django_filters.DateFilter(field_name='created_at', lookup_expr='date__lte')

    class Meta:
        model = Application
        fields = ['status', 'form_tab', 'agency', 'date_from', 'date_to']
