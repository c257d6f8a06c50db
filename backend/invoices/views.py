import logging
import re

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.http import HttpResponse
from django.shortcuts import get_object_or_404

from backend.core.auth import IsAgencyUser, can_view_agency, scope_to_viewable
from backend.core.exceptions import ServiceError
from backend.core.utils import create_audit_log, error_response
from .models import Invoice
from .pdf import render_invoice_pdf
from .serializers import InvoiceListSerializer, InvoiceSerializer, InvoiceTargetSerializer
from . import services

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r'[^A-Za-z0-9_-]')


def get_visible_invoice(request, pk):
    invoice = get_object_or_404(Invoice, pk=pk)
    if not can_view_agency(request.user, invoice.agency_id):
        return None
    return invoice


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def invoice_list(request):
    """List invoices of viewable agencies, newest first (?agency= to filter)"""
    queryset = scope_to_viewable(Invoice.objects.order_by('-created_at'), request.user)
    agency_id = request.query_params.get('agency')
    if agency_id:
        if not agency_id.isdigit():
            return Response({'error': 'Invalid agency id'}, status=status.HTTP_400_BAD_REQUEST)
        queryset = queryset.filter(agency_id=agency_id)
    return Response(InvoiceListSerializer(queryset, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def invoice_detail(request, pk):
    invoice = get_visible_invoice(request, pk)
    if invoice is None:
        return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)
    return Response(InvoiceSerializer(invoice).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAgencyUser])
def invoice_preview(request):
    """Totals and snapshot values an invoice would carry (?agency=&monthly_report=)"""
    serializer = InvoiceTargetSerializer(data=request.query_params)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    try:
        preview = services.preview_invoice(request.user, data['agency'], data['monthly_report'])
    except ServiceError as e:
        return error_response(e)
    return Response(preview)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAgencyUser])
def invoice_create(request):
    """Issue an invoice and notify the administrators"""
    serializer = InvoiceTargetSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    try:
        invoice = services.create_invoice(request.user, data['agency'], data['monthly_report'])
    except ServiceError as e:
        return error_response(e)

    create_audit_log(
        request=request,
        action='invoice_create',
        model_name='Invoice',
        object_id=str(invoice.id),
        object_name=invoice.agency_name,
        object_reference=invoice.invoice_number,
        changes={
            'monthly_report_id': invoice.monthly_report_id,
            'subtotal_jpy': str(invoice.subtotal_jpy),
            'tax_amount_jpy': str(invoice.tax_amount_jpy),
            'total_jpy': str(invoice.total_jpy),
        }
    )
    return Response(InvoiceSerializer(invoice).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def invoice_pdf(request, pk):
    """Download the invoice as PDF (?inline=true to display in the browser)"""
    invoice = get_visible_invoice(request, pk)
    if invoice is None:
        return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)

    pdf_bytes = render_invoice_pdf(invoice)
    filename = f"invoice_{_UNSAFE_FILENAME_CHARS.sub('_', invoice.invoice_number)}.pdf"
    disposition = 'inline' if request.query_params.get('inline') == 'true' else 'attachment'

    response = HttpResponse(pdf_bytes, content_type='application/pdf')
    response['Content-Disposition'] = f'{disposition}; filename="{filename}"'
    response['Content-Length'] = str(len(pdf_bytes))
    response['Cache-Control'] = 'private, no-cache'
    return response
