import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404

from backend.core.auth import can_view_agency, is_system_admin, viewable_agency_ids
from backend.core.cache_utils import AGENCY_LIST_CACHE_KEY, AGENCY_LIST_CACHE_TTL, get_or_set_cached
from backend.core.exceptions import ServiceError
from backend.core.utils import create_audit_log, error_response
from .models import Agency
from .serializers import (
    AgencySerializer, AgencyCreateSerializer, AgencyUpdateSerializer, AgencyCompanyInfoSerializer,
)
from . import services

logger = logging.getLogger(__name__)


def build_agency_list():
    queryset = Agency.objects.select_related('user').prefetch_related('parent_agencies').order_by('-created_at')
    return list(AgencySerializer(queryset, many=True).data)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def agency_list_create(request):
    """List agencies (newest first) or create an agency with its login account"""
    if request.method == 'GET':
        agencies = get_or_set_cached(AGENCY_LIST_CACHE_KEY, build_agency_list, AGENCY_LIST_CACHE_TTL)
        allowed = viewable_agency_ids(request.user)
        if allowed is not None:
            agencies = [agency for agency in agencies if agency['id'] in allowed]
        return Response(agencies)

    if not is_system_admin(request.user):
        return Response({'error': 'Only system administrators can create agencies'}, status=status.HTTP_403_FORBIDDEN)

    serializer = AgencyCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    try:
        agency, temp_password = services.create_agency(
            name=data['name'],
            commission_rate=data['commission_rate'],
            rank=data['rank'],
            email=data['email'],
            parent_agency_ids=data['parent_agency_ids'],
        )
    except ServiceError as e:
        return error_response(e)

    create_audit_log(
        request=request,
        action='agency_create',
        model_name='Agency',
        object_id=str(agency.id),
        object_name=agency.name,
        changes={
            'commission_rate': str(agency.commission_rate),
            'rank': agency.rank,
            'email': agency.user.email,
            'parent_agency_ids': data['parent_agency_ids'],
        }
    )

    response_data = AgencySerializer(agency).data
    response_data['temp_password'] = temp_password
    return Response(response_data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated])
def agency_detail(request, pk):
    """Retrieve or update an agency"""
    agency = get_object_or_404(Agency.objects.prefetch_related('parent_agencies'), pk=pk)

    if request.method == 'GET':
        if not can_view_agency(request.user, agency.id):
            return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)
        return Response(AgencySerializer(agency).data)

    if not is_system_admin(request.user):
        return Response({'error': 'Only system administrators can update agencies'}, status=status.HTTP_403_FORBIDDEN)

    serializer = AgencyUpdateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    old_values = {'name': agency.name, 'commission_rate': str(agency.commission_rate), 'rank': agency.rank}
    try:
        agency, old_parent_ids, new_parent_ids = services.update_agency(
            agency,
            name=data['name'],
            commission_rate=data['commission_rate'],
            rank=data['rank'],
            parent_agency_ids=data['parent_agency_ids'],
        )
    except ServiceError as e:
        return error_response(e)

    changes = {}
    new_values = {'name': agency.name, 'commission_rate': str(agency.commission_rate), 'rank': agency.rank}
    for field, old_value in old_values.items():
        if old_value != new_values[field]:
            changes[field] = {'old': old_value, 'new': new_values[field]}
    if sorted(old_parent_ids) != sorted(new_parent_ids):
        changes['parent_agency_ids'] = {'old': sorted(old_parent_ids), 'new': sorted(new_parent_ids)}

    create_audit_log(
        request=request,
        action='agency_update',
        model_name='Agency',
        object_id=str(agency.id),
        object_name=agency.name,
        changes=changes
    )

    agency = Agency.objects.prefetch_related('parent_agencies').get(pk=agency.pk)
    return Response(AgencySerializer(agency).data)


@api_view(['GET', 'PUT', 'PATCH'])
@permission_classes([IsAuthenticated])
def agency_company_info(request, pk):
    """Invoice registration number and bank details of an agency"""
    agency = get_object_or_404(Agency, pk=pk)
    if not can_view_agency(request.user, agency.id):
        return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'GET':
        return Response(AgencyCompanyInfoSerializer(agency).data)

    serializer = AgencyCompanyInfoSerializer(agency, data=request.data, partial=request.method == 'PATCH')
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    changes = {}
    for field, new_value in serializer.validated_data.items():
        old_value = getattr(agency, field)
        if old_value != new_value:
            changes[field] = {'old': old_value, 'new': new_value}
    serializer.save()

    if changes:
        create_audit_log(
            request=request,
            action='company_info_update',
            model_name='Agency',
            object_id=str(agency.id),
            object_name=agency.name,
            changes=changes
        )
    return Response(serializer.data)
