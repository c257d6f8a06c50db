import csv
import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.http import HttpResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone

from backend.core.auth import IsSystemAdmin, can_view_agency, is_system_admin, scope_to_viewable
from backend.core.utils import create_audit_log
from .filters import LiverFilter
from .models import Liver
from .serializers import LiverSerializer, LiverStatusSerializer, LiverBulkStatusSerializer

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = [
    ('名前', 'name'),
    ('アカウント名', 'account_name'),
    ('ライバーID', 'liver_id'),
    ('メールアドレス', 'email'),
    ('TikTokユーザー名', 'tiktok_username'),
    ('ステータス', 'status_display'),
    ('代理店', 'agency_name'),
    ('リンク', 'link'),
    ('住所', 'address'),
    ('連絡先', 'contact'),
    ('生年月日', 'birth_date'),
    ('獲得日', 'acquisition_date'),
    ('配信開始日', 'streaming_start_date'),
]


def get_scoped_livers(request):
    queryset = Liver.objects.select_related('agency').order_by('-created_at')
    queryset = scope_to_viewable(queryset, request.user)
    return LiverFilter(request.query_params, queryset=queryset).qs


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def liver_list(request):
    """List livers of viewable agencies"""
    serializer = LiverSerializer(get_scoped_livers(request), many=True)
    return Response(serializer.data)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated])
def liver_detail(request, pk):
    """Retrieve or update a liver's profile fields"""
    liver = get_object_or_404(Liver.objects.select_related('agency'), pk=pk)

    # Livers without an agency are visible to system admins only
    if not is_system_admin(request.user) and not can_view_agency(request.user, liver.agency_id):
        return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'GET':
        return Response(LiverSerializer(liver).data)

    serializer = LiverSerializer(liver, data=request.data, partial=True)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    changes = {}
    for field, new_value in serializer.validated_data.items():
        old_value = getattr(liver, field)
        if old_value != new_value:
            changes[field] = {'old': str(old_value) if old_value is not None else None,
                              'new': str(new_value) if new_value is not None else None}
    serializer.save()

    if changes:
        create_audit_log(
            request=request,
            action='update',
            model_name='Liver',
            object_id=str(liver.id),
            object_name=str(liver),
            object_reference=liver.liver_id,
            changes=changes
        )
    return Response(serializer.data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsSystemAdmin])
def liver_update_status(request, pk):
    """Change a liver's status"""
    liver = get_object_or_404(Liver, pk=pk)
    serializer = LiverStatusSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    old_status = liver.status
    liver.status = serializer.validated_data['status']
    liver.save(update_fields=['status', 'updated_at'])

    create_audit_log(
        request=request,
        action='status_change',
        model_name='Liver',
        object_id=str(liver.id),
        object_name=str(liver),
        object_reference=liver.liver_id,
        changes={'status': {'old': old_status, 'new': liver.status}}
    )
    return Response(LiverSerializer(liver).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsSystemAdmin])
def liver_bulk_update_status(request):
    """Set the same status on several livers"""
    serializer = LiverBulkStatusSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    ids = sorted(set(serializer.validated_data['ids']))
    new_status = serializer.validated_data['status']
    updated = Liver.objects.filter(pk__in=ids).update(status=new_status, updated_at=timezone.now())

    create_audit_log(
        request=request,
        action='bulk_status_change',
        model_name='Liver',
        object_id=','.join(str(pk) for pk in ids)[:100],
        changes={'ids': ids, 'status': new_status, 'updated': updated}
    )
    return Response({'success': True, 'updated': updated})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def liver_export_csv(request):
    """Export the filtered roster as CSV (UTF-8 with BOM for Excel)"""
    rows = LiverSerializer(get_scoped_livers(request), many=True).data

    response = HttpResponse(content_type='text/csv; charset=utf-8')
    filename = f"livers_{timezone.localdate().strftime('%Y%m%d')}.csv"
    response['Content-Disposition'] = f'attachment; filename="{filename}"'
    response.write('\ufeff')

    writer = csv.writer(response)
    writer.writerow([header for header, _ in EXPORT_COLUMNS])
    for row in rows:
        writer.writerow(['' if row.get(key) is None else row.get(key) for _, key in EXPORT_COLUMNS])
    return response
