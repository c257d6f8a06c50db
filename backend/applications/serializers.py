from rest_framework import serializers

from backend.core.constants import STATUS_CHOICES
from .models import Application


class ApplicationSerializer(serializers.ModelSerializer):
    agency_name = serializers.CharField(source='agency.name', read_only=True, default=None)
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    form_tab_display = serializers.CharField(source='get_form_tab_display', read_only=True)

    class Meta:
        model = Application
        fields = ['id', 'form_tab', 'form_tab_display', 'status', 'status_display', 'name', 'address',
                  'birth_date', 'contact', 'email', 'additional_info', 'tiktok_username', 'tiktok_account_link',
                  'id_verified', 'form_data', 'agency', 'agency_name', 'liver', 'submitted_by',
                  'created_at', 'updated_at']
        read_only_fields = ['status', 'liver', 'submitted_by', 'created_at', 'updated_at']

    def validate(self, attrs):
        # Blank optional answers are stored as NULL
        for field in ['name', 'address', 'contact', 'email', 'additional_info', 'tiktok_username', 'tiktok_account_link']:
            if attrs.get(field) == '':
                attrs[field] = None
        return attrs

    def validate_form_data(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError('form_data must be an object')
        return value


class ApplicationStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=STATUS_CHOICES)
    expected_status = serializers.ChoiceField(choices=STATUS_CHOICES, required=False)
