from rest_framework import serializers

from backend.agencies.models import Agency
from backend.core.constants import REVENUE_TASK_CHOICES
from backend.livers.models import Liver
from .models import MonthlyReport, CsvDataRow, Refund, ExchangeRateLog


class MonthlyReportSerializer(serializers.ModelSerializer):
    revenue_task_display = serializers.CharField(source='get_revenue_task_display', read_only=True)
    upload_agency_name = serializers.CharField(source='upload_agency.name', read_only=True, default=None)

    class Meta:
        model = MonthlyReport
        fields = ['id', 'rate', 'revenue_task', 'revenue_task_display', 'data_month', 'upload_agency',
                  'upload_agency_name', 'created_by', 'created_at', 'updated_at']


class CsvDataRowSerializer(serializers.ModelSerializer):
    agency_name = serializers.CharField(source='agency.name', read_only=True, default=None)

    class Meta:
        model = CsvDataRow
        fields = ['id', 'creator_id', 'creator_nickname', 'handle', 'group', 'group_manager',
                  'creator_network_manager', 'data_month', 'diamonds', 'estimated_bonus',
                  'bonus_rookie_half_milestone', 'bonus_activeness', 'bonus_revenue_scale',
                  'bonus_rookie_milestone_1', 'bonus_rookie_milestone_2', 'bonus_off_platform',
                  'bonus_rookie_retention', 'valid_days', 'live_duration', 'is_violative', 'was_rookie',
                  'total_reward_jpy', 'agency_reward_jpy', 'liver', 'agency', 'agency_name']


class RefundSerializer(serializers.ModelSerializer):
    liver_name = serializers.CharField(source='liver.name', read_only=True, default=None)
    agency_name = serializers.CharField(source='agency.name', read_only=True, default=None)

    class Meta:
        model = Refund
        fields = ['id', 'report', 'liver', 'liver_name', 'agency', 'agency_name', 'target_month', 'reason',
                  'amount_usd', 'amount_jpy', 'is_deleted', 'created_at']


class RefundCreateSerializer(serializers.Serializer):
    report = serializers.PrimaryKeyRelatedField(queryset=MonthlyReport.objects.all())
    liver = serializers.PrimaryKeyRelatedField(queryset=Liver.objects.all())
    target_month = serializers.DateField(input_formats=['%Y-%m-%d'])
    amount_usd = serializers.DecimalField(max_digits=14, decimal_places=2)
    reason = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    def validate_amount_usd(self, value):
        if value <= 0:
            raise serializers.ValidationError('Refund amount must be positive')
        return value


class CsvImportSerializer(serializers.Serializer):
    file = serializers.FileField(required=False)
    csv_text = serializers.CharField(required=False, trim_whitespace=False)
    rate = serializers.DecimalField(max_digits=10, decimal_places=4)
    revenue_task = serializers.ChoiceField(choices=REVENUE_TASK_CHOICES, required=False, allow_blank=True, allow_null=True)
    upload_agency = serializers.PrimaryKeyRelatedField(queryset=Agency.objects.all(), required=False, allow_null=True)
    replace_existing = serializers.BooleanField(required=False, default=False)

    def validate(self, attrs):
        upload = attrs.pop('file', None)
        if upload is not None:
            try:
                attrs['csv_text'] = upload.read().decode('utf-8')
            except UnicodeDecodeError:
                raise serializers.ValidationError({'file': 'CSV must be UTF-8 encoded'})
        if not attrs.get('csv_text'):
            raise serializers.ValidationError({'file': 'Upload a CSV file or provide csv_text'})
        return attrs


class ExchangeRateSerializer(serializers.Serializer):
    new_rate = serializers.DecimalField(max_digits=10, decimal_places=4)


class ExchangeRateLogSerializer(serializers.ModelSerializer):
    changed_by_email = serializers.CharField(source='changed_by.email', read_only=True, default=None)

    class Meta:
        model = ExchangeRateLog
        fields = ['id', 'report', 'old_rate', 'new_rate', 'csv_row_count', 'refund_row_count',
                  'changed_by', 'changed_by_email', 'created_at']
