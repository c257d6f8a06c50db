import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db.models import Q
from django.shortcuts import get_object_or_404

from backend.core.auth import IsSystemAdmin, can_view_agency, viewable_agency_ids
from backend.core.exceptions import ServiceError
from backend.core.utils import create_audit_log, error_response
from .filters import ApplicationFilter
from .models import Application
from .serializers import ApplicationSerializer, ApplicationStatusSerializer
from . import services

logger = logging.getLogger(__name__)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def application_list_create(request):
    """List applications of viewable agencies or submit a new one"""
    if request.method == 'GET':
        queryset = Application.objects.select_related('agency').order_by('-created_at')
        allowed = viewable_agency_ids(request.user)
        if allowed is not None:
            # Agency users also see what they submitted without an agency
            queryset = queryset.filter(Q(agency__in=allowed) | Q(submitted_by=request.user))
        queryset = ApplicationFilter(request.query_params, queryset=queryset).qs
        serializer = ApplicationSerializer(queryset, many=True)
        return Response(serializer.data)

    serializer = ApplicationSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    agency = serializer.validated_data.get('agency')
    if agency is not None and not can_view_agency(request.user, agency.id):
        return Response({'error': 'You do not have access to the selected agency'}, status=status.HTTP_403_FORBIDDEN)

    application = serializer.save(submitted_by=request.user)
    create_audit_log(
        request=request,
        action='application_create',
        model_name='Application',
        object_id=str(application.id),
        object_name=str(application),
        object_reference=application.form_tab,
        changes={'form_tab': application.form_tab, 'agency_id': application.agency_id}
    )
    return Response(ApplicationSerializer(application).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def application_detail(request, pk):
    """Retrieve an application"""
    application = get_object_or_404(Application.objects.select_related('agency'), pk=pk)
    if application.submitted_by_id != request.user.id and not can_view_agency(request.user, application.agency_id):
        return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)
    return Response(ApplicationSerializer(application).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsSystemAdmin])
def application_update_status(request, pk):
    """Transition an application's status; approval of an affiliation check adds the liver"""
    application = get_object_or_404(Application, pk=pk)
    serializer = ApplicationStatusSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    old_status = application.status
    new_status = serializer.validated_data['status']
    expected_status = serializer.validated_data.get('expected_status')
    try:
        application, liver = services.update_application_status(application, new_status, expected_status)
    except ServiceError as e:
        return error_response(e)

    changes = {'status': {'old': expected_status or old_status, 'new': new_status}}
    if liver:
        changes['created_liver_id'] = liver.id
    create_audit_log(
        request=request,
        action='status_change',
        model_name='Application',
        object_id=str(application.id),
        object_name=str(application),
        object_reference=application.form_tab,
        changes=changes
    )

    response_data = ApplicationSerializer(application).data
    response_data['created_liver_id'] = liver.id if liver else None
    return Response(response_data)
