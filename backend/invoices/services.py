"""
Invoice totals, numbering and issuing
"""
import logging
import re
from decimal import Decimal, ROUND_HALF_UP

from django.db import IntegrityError, transaction
from django.db.models import DecimalField, Sum, Value
from django.db.models.functions import Coalesce
from django.utils import timezone

from backend.core.auth import get_profile
from backend.core.constants import (
    CONSUMPTION_TAX_RATE, DEDUCTIBLE_RATE_FINAL, DEDUCTIBLE_RATE_REGISTERED, DEDUCTIBLE_RATE_SCHEDULE,
    INVOICE_NUMBER_MAX_RETRIES, JPY, ROLE_AGENCY_USER,
)
from backend.core.emails import send_invoice_notification_email
from backend.core.exceptions import AccessDenied, Conflict, EmailDeliveryError
from backend.reports.models import CsvDataRow
from .models import Invoice

logger = logging.getLogger(__name__)

INVOICE_NUMBER_PREFIX = 'INV'
WHOLE_YEN = Decimal('1')


def get_deductible_rate(is_registered, reference_date=None):
    """Share of the consumption tax the recipient may deduct as input-tax credit"""
    if is_registered:
        return DEDUCTIBLE_RATE_REGISTERED
    if reference_date is None:
        reference_date = timezone.localdate()
    for before, rate in DEDUCTIBLE_RATE_SCHEDULE:
        if reference_date < before:
            return rate
    return DEDUCTIBLE_RATE_FINAL


def compute_invoice_totals(agency, report):
    subtotal = CsvDataRow.objects.filter(report=report, agency=agency).aggregate(
        total=Coalesce(Sum('agency_reward_jpy'), Value(Decimal('0')),
                       output_field=DecimalField(max_digits=18, decimal_places=2))
    )['total']
    subtotal = Decimal(subtotal).quantize(JPY, rounding=ROUND_HALF_UP)
    tax = (subtotal * CONSUMPTION_TAX_RATE).quantize(WHOLE_YEN, rounding=ROUND_HALF_UP)
    return {
        'subtotal_jpy': subtotal,
        'tax_rate': CONSUMPTION_TAX_RATE,
        'tax_amount_jpy': tax,
        'total_jpy': subtotal + tax,
    }


def invoice_number_prefix(data_month):
    """INV-YYYYMM- from the report's month digits, or the current month"""
    digits = re.sub(r'[^0-9]', '', data_month or '')[:6]
    if len(digits) < 4:
        digits = timezone.localdate().strftime('%Y%m')
    return f"{INVOICE_NUMBER_PREFIX}-{digits}-"


def next_invoice_number(prefix):
    last_number = (
        Invoice.objects.filter(invoice_number__startswith=prefix)
        .order_by('-invoice_number')
        .values_list('invoice_number', flat=True)
        .first()
    )
    seq = 1
    if last_number:
        suffix = last_number[len(prefix):]
        if suffix.isdigit():
            seq = int(suffix) + 1
    return f"{prefix}{seq:04d}"


def ensure_can_issue(user, agency):
    """Invoices are issued by agency users for agencies they can see"""
    profile = get_profile(user)
    if profile.role != ROLE_AGENCY_USER:
        raise AccessDenied('Only agency users can issue invoices')
    if not profile.viewable_agencies.filter(pk=agency.pk).exists():
        raise AccessDenied()


def preview_invoice(user, agency, report):
    ensure_can_issue(user, agency)
    totals = compute_invoice_totals(agency, report)
    return {
        'agency_id': agency.id,
        'monthly_report_id': report.id,
        'agency_name': agency.name,
        'agency_address': agency.company_address,
        'agency_representative': agency.representative_name,
        'invoice_registration_number': agency.invoice_registration_number,
        'is_invoice_registered': agency.is_invoice_registered,
        'bank_name': agency.bank_name,
        'bank_branch': agency.bank_branch,
        'bank_account_type': agency.bank_account_type,
        'bank_account_number': agency.bank_account_number,
        'bank_account_holder': agency.bank_account_holder,
        'data_month': report.data_month,
        'exchange_rate': report.rate,
        'commission_rate': agency.commission_rate,
        'deductible_rate': get_deductible_rate(agency.is_invoice_registered),
        **totals,
    }


def _invoice_exists(agency, report):
    return Invoice.objects.filter(agency=agency, monthly_report=report).exists()


def create_invoice(user, agency, report):
    """
    Issue the agency's invoice for a report.

    The sequential number is read then inserted; a concurrent issue with the
    same number fails on the unique constraint and the next number is tried,
    up to INVOICE_NUMBER_MAX_RETRIES attempts.

    Raises:
        AccessDenied: not an agency user, or the agency is not viewable
        Conflict: already invoiced, or no free number after the retries
    """
    ensure_can_issue(user, agency)
    if _invoice_exists(agency, report):
        raise Conflict('An invoice for this agency and monthly report already exists')

    totals = compute_invoice_totals(agency, report)
    is_registered = agency.is_invoice_registered
    prefix = invoice_number_prefix(report.data_month)

    invoice = None
    for attempt in range(INVOICE_NUMBER_MAX_RETRIES):
        invoice_number = next_invoice_number(prefix)
        try:
            with transaction.atomic():
                invoice = Invoice.objects.create(
                    invoice_number=invoice_number,
                    agency=agency,
                    monthly_report=report,
                    is_invoice_registered=is_registered,
                    invoice_registration_number=agency.invoice_registration_number,
                    deductible_rate=get_deductible_rate(is_registered),
                    agency_name=agency.name,
                    agency_address=agency.company_address,
                    agency_representative=agency.representative_name,
                    bank_name=agency.bank_name,
                    bank_branch=agency.bank_branch,
                    bank_account_type=agency.bank_account_type,
                    bank_account_number=agency.bank_account_number,
                    bank_account_holder=agency.bank_account_holder,
                    data_month=report.data_month,
                    exchange_rate=report.rate,
                    commission_rate=agency.commission_rate,
                    sent_at=timezone.now(),
                    created_by=user,
                    **totals
                )
            break
        except IntegrityError:
            if _invoice_exists(agency, report):
                raise Conflict('An invoice for this agency and monthly report already exists')
            logger.warning(f"Invoice number {invoice_number} taken, retrying (attempt {attempt + 1})")

    if invoice is None:
        raise Conflict('Could not allocate an invoice number, please try again')

    try:
        send_invoice_notification_email(
            agency_name=invoice.agency_name,
            invoice_number=invoice.invoice_number,
            total_jpy=invoice.total_jpy,
            data_month=invoice.data_month,
        )
    except EmailDeliveryError as e:
        logger.error(f"Invoice notification for {invoice.invoice_number} failed: {e}")

    logger.info(f"Issued invoice {invoice.invoice_number} for agency {agency.id} (report {report.id})")
    return invoice
