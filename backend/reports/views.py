import csv
import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.http import HttpResponse
from django.shortcuts import get_object_or_404

from backend.core.auth import IsSystemAdmin
from backend.core.cache_utils import (
    MONTHLY_REPORT_LIST_CACHE_KEY, MONTHLY_REPORT_LIST_CACHE_TTL, get_or_set_cached,
)
from backend.core.exceptions import ServiceError
from backend.core.utils import create_audit_log, error_response
from .models import MonthlyReport, Refund, ExchangeRateLog
from .serializers import (
    MonthlyReportSerializer, CsvDataRowSerializer, RefundSerializer, RefundCreateSerializer,
    CsvImportSerializer, ExchangeRateSerializer, ExchangeRateLogSerializer,
)
from . import services

logger = logging.getLogger(__name__)


def build_monthly_report_list():
    queryset = MonthlyReport.objects.select_related('upload_agency').order_by('-created_at')
    return list(MonthlyReportSerializer(queryset, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def monthly_report_list(request):
    """List monthly reports, newest first"""
    reports = get_or_set_cached(
        MONTHLY_REPORT_LIST_CACHE_KEY, build_monthly_report_list, MONTHLY_REPORT_LIST_CACHE_TTL
    )
    return Response(reports)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def monthly_report_import(request):
    """
    Import a TikTok backend CSV as a new monthly report.
    Returns 409 with the colliding reports when the month was already
    imported, unless replace_existing is true.
    """
    serializer = CsvImportSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    try:
        result = services.import_csv(
            csv_text=data['csv_text'],
            rate=data['rate'],
            revenue_task=data.get('revenue_task'),
            user=request.user,
            upload_agency=data.get('upload_agency'),
            replace_existing=data['replace_existing'],
        )
    except ServiceError as e:
        return error_response(e)

    replaced = bool(result['replaced_report_ids'])
    create_audit_log(
        request=request,
        action='csv_replace' if replaced else 'csv_import',
        model_name='MonthlyReport',
        object_id=str(result['monthly_report_id']),
        object_reference=result['data_month'],
        changes={
            'rate': str(data['rate']),
            'total_rows': result['total_rows'],
            'replaced_report_ids': result['replaced_report_ids'],
            'migrated_refund_count': result['migrated_refund_count'],
        }
    )
    return Response(result, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def monthly_report_dashboard(request, pk):
    """Rows, live refunds and summary figures of a report"""
    report = get_object_or_404(MonthlyReport, pk=pk)
    try:
        rows, refunds = services.scoped_report_data(report, request.user, request.query_params.get('agency'))
    except ServiceError as e:
        return error_response(e)

    rows = rows.select_related('agency').order_by('id')
    refunds = refunds.select_related('liver', 'agency').order_by('-created_at')
    return Response({
        'report': MonthlyReportSerializer(report).data,
        'rows': CsvDataRowSerializer(rows, many=True).data,
        'refunds': RefundSerializer(refunds, many=True).data,
        'summary': services.summarize(rows, refunds),
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def refund_create(request):
    """Register a refund against a report"""
    serializer = RefundCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    try:
        refund = services.create_refund(
            user=request.user,
            liver=data['liver'],
            report=data['report'],
            target_month=data['target_month'],
            amount_usd=data['amount_usd'],
            reason=data.get('reason'),
        )
    except ServiceError as e:
        return error_response(e)

    create_audit_log(
        request=request,
        action='refund_create',
        model_name='Refund',
        object_id=str(refund.id),
        object_name=str(refund.liver),
        object_reference=str(refund.target_month),
        changes={'amount_usd': str(refund.amount_usd), 'amount_jpy': str(refund.amount_jpy),
                 'report_id': refund.report_id}
    )
    return Response(RefundSerializer(refund).data, status=status.HTTP_201_CREATED)


@api_view(['DELETE'])
@permission_classes([IsAuthenticated, IsSystemAdmin])
def refund_delete(request, pk):
    """Soft-delete a refund"""
    refund = get_object_or_404(Refund, pk=pk, is_deleted=False)
    services.soft_delete_refund(refund)
    create_audit_log(
        request=request,
        action='refund_delete',
        model_name='Refund',
        object_id=str(refund.id),
        object_reference=str(refund.target_month),
        changes={'amount_usd': str(refund.amount_usd), 'report_id': refund.report_id}
    )
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def refund_export_csv(request, pk):
    """Export a report's live refunds as CSV (UTF-8 with BOM)"""
    report = get_object_or_404(MonthlyReport, pk=pk)
    try:
        _, refunds = services.scoped_report_data(report, request.user, request.query_params.get('agency'))
    except ServiceError as e:
        return error_response(e)

    response = HttpResponse(content_type='text/csv; charset=utf-8')
    response['Content-Disposition'] = f'attachment; filename="refunds_{report.data_month or report.id}.csv"'
    response.write('\ufeff')

    writer = csv.writer(response)
    writer.writerow(['対象月', 'ライバー', '代理店', '返金額(USD)', '返金額(円)', '理由', '登録日時'])
    for refund in refunds.select_related('liver', 'agency').order_by('target_month', 'id'):
        writer.writerow([
            refund.target_month.isoformat(),
            str(refund.liver) if refund.liver else '',
            refund.agency.name if refund.agency else '',
            refund.amount_usd,
            refund.amount_jpy,
            refund.reason or '',
            refund.created_at.strftime('%Y-%m-%d %H:%M'),
        ])
    return response


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsSystemAdmin])
def exchange_rate_preview(request, pk):
    """Counts and totals an exchange-rate change would produce"""
    report = get_object_or_404(MonthlyReport, pk=pk)
    serializer = ExchangeRateSerializer(data=request.query_params)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        preview = services.preview_rate_change(report, serializer.validated_data['new_rate'])
    except ServiceError as e:
        return error_response(e)
    return Response(preview)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsSystemAdmin])
def exchange_rate_update(request, pk):
    """Apply a new exchange rate to a report and all its derived amounts"""
    report = get_object_or_404(MonthlyReport, pk=pk)
    serializer = ExchangeRateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        result = services.update_exchange_rate(report, serializer.validated_data['new_rate'], request.user)
    except ServiceError as e:
        return error_response(e)

    create_audit_log(
        request=request,
        action='rate_change',
        model_name='MonthlyReport',
        object_id=str(report.id),
        object_reference=report.data_month,
        changes={
            'rate': {'old': str(result['old_rate']), 'new': str(result['new_rate'])},
            'csv_row_count': result['csv_row_count'],
            'refund_row_count': result['refund_row_count'],
        }
    )
    return Response(result)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsSystemAdmin])
def exchange_rate_logs(request, pk):
    """Exchange-rate history of a report"""
    report = get_object_or_404(MonthlyReport, pk=pk)
    logs = ExchangeRateLog.objects.filter(report=report).select_related('changed_by')
    return Response(ExchangeRateLogSerializer(logs, many=True).data)
