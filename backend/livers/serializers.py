from rest_framework import serializers

from backend.core.constants import STATUS_CHOICES
from .models import Liver


class LiverSerializer(serializers.ModelSerializer):
    agency_name = serializers.CharField(source='agency.name', read_only=True, default=None)
    status_display = serializers.CharField(source='get_status_display', read_only=True)

    class Meta:
        model = Liver
        fields = ['id', 'name', 'account_name', 'liver_id', 'email', 'tiktok_username', 'status', 'status_display',
                  'link', 'address', 'contact', 'birth_date', 'acquisition_date', 'streaming_start_date',
                  'agency', 'agency_name', 'created_at', 'updated_at']
        read_only_fields = ['status', 'agency', 'created_at', 'updated_at']


class LiverStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=STATUS_CHOICES)


class LiverBulkStatusSerializer(serializers.Serializer):
    ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=False)
    status = serializers.ChoiceField(choices=STATUS_CHOICES)
