from decimal import Decimal

from rest_framework import serializers

from backend.core.constants import AGENCY_RANK_CHOICES
from .models import Agency


class AgencySerializer(serializers.ModelSerializer):
    rank_display = serializers.CharField(source='get_rank_display', read_only=True)
    user_email = serializers.CharField(source='user.email', read_only=True, default=None)
    parent_agencies = serializers.SerializerMethodField()

    class Meta:
        model = Agency
        fields = ['id', 'name', 'commission_rate', 'rank', 'rank_display', 'user', 'user_email',
                  'parent_agencies', 'created_at', 'updated_at']
        read_only_fields = fields

    def get_parent_agencies(self, obj):
        return [{'id': parent.id, 'name': parent.name} for parent in obj.parent_agencies.all()]


class AgencyUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=200)
    commission_rate = serializers.DecimalField(
        max_digits=5, decimal_places=4, min_value=Decimal('0'), max_value=Decimal('1')
    )
    rank = serializers.ChoiceField(choices=AGENCY_RANK_CHOICES)
    parent_agency_ids = serializers.ListField(child=serializers.IntegerField(), required=False, default=list)

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Agency name is required')
        return value


class AgencyCreateSerializer(AgencyUpdateSerializer):
    email = serializers.EmailField()


class AgencyCompanyInfoSerializer(serializers.ModelSerializer):
    """Invoice registration and bank details; blank values are allowed"""

    class Meta:
        model = Agency
        fields = ['id', 'name', 'invoice_registration_number', 'company_address', 'representative_name',
                  'bank_name', 'bank_branch', 'bank_account_type', 'bank_account_number', 'bank_account_holder']
        read_only_fields = ['id', 'name']
        extra_kwargs = {
            'invoice_registration_number': {'trim_whitespace': True},
        }
