"""
Monthly report import, dashboard figures, refunds and exchange-rate recalculation
"""
import logging
from decimal import Decimal, ROUND_HALF_UP

from django.db import IntegrityError, transaction
from django.db.models import (
    Count, DecimalField, ExpressionWrapper, F, OuterRef, Subquery, Sum, Value,
)
from django.db.models.functions import Coalesce

from backend.agencies.models import Agency
from backend.core.auth import can_view_agency, ensure_can_view_agency, is_system_admin, viewable_agency_ids
from backend.core.constants import (
    CSV_INSERT_BATCH_SIZE, CSV_MAX_ROWS, JPY, MAX_EXCHANGE_RATE, MIN_EXCHANGE_RATE, TAX_RATE,
)
from backend.core.exceptions import AccessDenied, Conflict, ValidationFailed
from backend.livers.models import Liver
from .csv_import import detect_data_month, parse_csv_text
from .models import CsvDataRow, ExchangeRateLog, MonthlyReport, Refund

logger = logging.getLogger(__name__)

JPY_FIELD = DecimalField(max_digits=18, decimal_places=2)
RATE_FIELD = DecimalField(max_digits=10, decimal_places=4)
COMMISSION_FIELD = DecimalField(max_digits=5, decimal_places=4)
BONUS_PLACES = Decimal('0.0001')


def to_jpy(amount):
    return Decimal(amount).quantize(JPY, rounding=ROUND_HALF_UP)


def compute_rewards(estimated_bonus, rate, commission_rate):
    """(total_reward_jpy, agency_reward_jpy) for one CSV row"""
    total = estimated_bonus * rate
    agency = total * commission_rate if commission_rate is not None else Decimal('0')
    return to_jpy(total), to_jpy(agency)


def validate_import_rate(rate):
    if rate < MIN_EXCHANGE_RATE or rate > MAX_EXCHANGE_RATE:
        raise ValidationFailed(
            f'Exchange rate must be between {MIN_EXCHANGE_RATE} and {MAX_EXCHANGE_RATE}'
        )


def describe_reports(reports):
    return [
        {
            'id': report.id,
            'data_month': report.data_month,
            'rate': str(report.rate),
            'created_at': report.created_at.isoformat(),
            'row_count': report.rows.count(),
        }
        for report in reports
    ]


def _build_rows(report, parsed_rows, rate, upload_agency):
    livers = dict(
        Liver.objects.exclude(liver_id__isnull=True).exclude(liver_id='').values_list('liver_id', 'id')
    )
    agencies = {name: (pk, commission) for pk, name, commission in
                Agency.objects.values_list('id', 'name', 'commission_rate')}

    rows = []
    for parsed in parsed_rows:
        liver_id = livers.get(parsed['creator_id'])
        agency_id, commission_rate = agencies.get(parsed['creator_network_manager'], (None, None))
        estimated_bonus = parsed['estimated_bonus'].quantize(BONUS_PLACES, rounding=ROUND_HALF_UP)
        total_reward, agency_reward = compute_rewards(estimated_bonus, rate, commission_rate)

        fields = dict(parsed)
        for key, value in fields.items():
            if key.startswith('bonus_'):
                fields[key] = value.quantize(BONUS_PLACES, rounding=ROUND_HALF_UP)
        fields['estimated_bonus'] = estimated_bonus
        fields['diamonds'] = parsed['diamonds'].quantize(JPY, rounding=ROUND_HALF_UP)
        for key in ('creator_id', 'creator_nickname', 'handle', 'group', 'group_manager',
                    'creator_network_manager', 'data_month', 'valid_days', 'live_duration'):
            fields[key] = fields[key] or None

        rows.append(CsvDataRow(
            report=report,
            liver_id=liver_id,
            agency_id=agency_id,
            upload_agency=upload_agency,
            total_reward_jpy=total_reward,
            agency_reward_jpy=agency_reward,
            **fields
        ))
    return rows


def import_csv(csv_text, rate, revenue_task, user, upload_agency=None, replace_existing=False):
    """
    Create a monthly report from an exported CSV.

    When reports for the same data month already exist the import stops with
    a Conflict listing them, unless replace_existing is set. Replacing moves
    the old reports' refunds onto the new report (re-priced at the new rate)
    and deletes the old reports with their rows, all in one transaction.
    """
    rate = Decimal(rate)
    validate_import_rate(rate)

    if not is_system_admin(user):
        if upload_agency is None:
            raise ValidationFailed('Upload agency is required')
        if not can_view_agency(user, upload_agency.id):
            raise AccessDenied()

    parsed_rows = parse_csv_text(csv_text)
    if len(parsed_rows) > CSV_MAX_ROWS:
        raise ValidationFailed(f'CSV has too many rows (limit {CSV_MAX_ROWS:,})')

    data_month = detect_data_month(parsed_rows)

    try:
        return _import_report(parsed_rows, rate, revenue_task, user, upload_agency, replace_existing, data_month)
    except IntegrityError:
        # Another import claimed the month between our check and insert
        logger.warning(f"Concurrent import of {data_month} rejected")
        raise Conflict(f'Data for {data_month} is already being imported', data_month=data_month)


def _import_report(parsed_rows, rate, revenue_task, user, upload_agency, replace_existing, data_month):
    from backend.invoices.models import Invoice

    with transaction.atomic():
        existing = []
        if data_month:
            existing = list(MonthlyReport.objects.select_for_update().filter(data_month=data_month))

        if existing and not replace_existing:
            raise Conflict(
                f'Data for {data_month} has already been imported',
                data_month=data_month,
                existing_reports=describe_reports(existing),
            )

        if existing:
            if not is_system_admin(user):
                allowed = viewable_agency_ids(user)
                if any(report.upload_agency_id not in allowed for report in existing):
                    raise AccessDenied('Only system administrators can replace this month')
            invoiced = list(
                Invoice.objects.filter(monthly_report__in=existing).values_list('invoice_number', flat=True)
            )
            if invoiced:
                raise Conflict(
                    f'Invoices have already been issued for {data_month}; the month cannot be replaced',
                    data_month=data_month,
                    invoice_numbers=invoiced,
                )

        # The month is unique, so a replacement takes it only once the old reports are gone
        report = MonthlyReport.objects.create(
            rate=rate,
            revenue_task=revenue_task or None,
            data_month=None if existing else data_month,
            upload_agency=upload_agency,
            created_by=user,
        )

        rows = _build_rows(report, parsed_rows, rate, upload_agency)
        for start in range(0, len(rows), CSV_INSERT_BATCH_SIZE):
            CsvDataRow.objects.bulk_create(rows[start:start + CSV_INSERT_BATCH_SIZE])

        migrated_refunds = 0
        replaced_ids = [old.id for old in existing]
        if existing:
            migrated_refunds = Refund.objects.filter(report_id__in=replaced_ids).update(
                report=report,
                amount_jpy=ExpressionWrapper(F('amount_usd') * Value(rate, output_field=RATE_FIELD),
                                             output_field=JPY_FIELD),
            )
            MonthlyReport.objects.filter(pk__in=replaced_ids).delete()
            report.data_month = data_month
            report.save(update_fields=['data_month', 'updated_at'])

    linked_livers = sum(1 for row in rows if row.liver_id is not None)
    linked_agencies = sum(1 for row in rows if row.agency_id is not None)
    logger.info(
        f"Imported report {report.id} ({data_month}): {len(rows)} rows, "
        f"replaced={replaced_ids}, migrated refunds={migrated_refunds}"
    )
    return {
        'success': True,
        'monthly_report_id': report.id,
        'data_month': data_month,
        'total_rows': len(rows),
        'linked_liver_count': linked_livers,
        'unlinked_liver_count': len(rows) - linked_livers,
        'linked_agency_count': linked_agencies,
        'unlinked_agency_count': len(rows) - linked_agencies,
        'replaced_report_ids': replaced_ids,
        'migrated_refund_count': migrated_refunds,
    }


def scoped_report_data(report, user, agency_id=None):
    """Rows and live refunds of a report, restricted to what the user may see"""
    rows = report.rows.all()
    refunds = report.refunds.filter(is_deleted=False)

    allowed = viewable_agency_ids(user)
    if agency_id:
        if not str(agency_id).isdigit():
            raise ValidationFailed('Invalid agency id')
        ensure_can_view_agency(user, agency_id)
        rows = rows.filter(agency_id=agency_id)
        refunds = refunds.filter(agency_id=agency_id)
    elif allowed is not None:
        rows = rows.filter(agency_id__in=allowed)
        refunds = refunds.filter(agency_id__in=allowed)
    return rows, refunds


def summarize(rows, refunds):
    totals = rows.aggregate(
        total_diamonds=Coalesce(Sum('diamonds'), Value(Decimal('0')), output_field=JPY_FIELD),
        total_bonus=Coalesce(Sum('estimated_bonus'), Value(Decimal('0')), output_field=DecimalField()),
        total_reward_jpy=Coalesce(Sum('total_reward_jpy'), Value(Decimal('0')), output_field=JPY_FIELD),
        total_agency_reward_jpy=Coalesce(Sum('agency_reward_jpy'), Value(Decimal('0')), output_field=JPY_FIELD),
    )
    total_refund = refunds.aggregate(
        total=Coalesce(Sum('amount_jpy'), Value(Decimal('0')), output_field=JPY_FIELD)
    )['total']

    total_reward = Decimal(totals['total_reward_jpy'])
    total_agency_reward = Decimal(totals['total_agency_reward_jpy'])
    commission_rate = Decimal('0')
    if total_reward > 0:
        commission_rate = (total_agency_reward / total_reward).quantize(Decimal('0.0001'), rounding=ROUND_HALF_UP)

    net_ex_tax = total_reward - Decimal(total_refund)
    return {
        'total_diamonds': Decimal(totals['total_diamonds']),
        'total_bonus': Decimal(totals['total_bonus']),
        'total_reward_jpy': to_jpy(total_reward),
        'total_agency_reward_jpy': to_jpy(total_agency_reward),
        'total_refund_jpy': to_jpy(total_refund),
        'tax_rate': TAX_RATE,
        'net_amount_ex_tax': to_jpy(net_ex_tax),
        'net_amount_inc_tax': to_jpy(net_ex_tax * TAX_RATE),
        'agency_payment_inc_tax': to_jpy(total_agency_reward * TAX_RATE),
        'commission_rate': commission_rate,
    }


def create_refund(user, liver, report, target_month, amount_usd, reason=None):
    """Register a refund; its JPY amount uses the report's rate and its agency is the liver's"""
    if amount_usd <= 0:
        raise ValidationFailed('Refund amount must be positive')

    if not is_system_admin(user):
        if liver.agency_id is None:
            raise AccessDenied('Only system administrators can refund livers without an agency')
        ensure_can_view_agency(user, liver.agency_id)

    return Refund.objects.create(
        report=report,
        liver=liver,
        agency_id=liver.agency_id,
        target_month=target_month,
        reason=reason or None,
        amount_usd=amount_usd,
        amount_jpy=to_jpy(amount_usd * report.rate),
        created_by=user,
    )


def soft_delete_refund(refund):
    refund.is_deleted = True
    refund.save(update_fields=['is_deleted', 'updated_at'])
    return refund


def validate_new_rate(report, new_rate):
    if new_rate <= 0:
        raise ValidationFailed('Exchange rate must be a positive number')
    if new_rate == report.rate:
        raise ValidationFailed('New exchange rate is the same as the current rate')


def preview_rate_change(report, new_rate):
    """What update_exchange_rate would change, without writing"""
    new_rate = Decimal(new_rate)
    validate_new_rate(report, new_rate)

    row_stats = report.rows.aggregate(
        count=Count('id'),
        total_bonus=Coalesce(Sum('estimated_bonus'), Value(Decimal('0')), output_field=DecimalField()),
        total_reward=Coalesce(Sum('total_reward_jpy'), Value(Decimal('0')), output_field=JPY_FIELD),
    )
    live_refunds = report.refunds.filter(is_deleted=False).aggregate(
        total_usd=Coalesce(Sum('amount_usd'), Value(Decimal('0')), output_field=JPY_FIELD),
        total_jpy=Coalesce(Sum('amount_jpy'), Value(Decimal('0')), output_field=JPY_FIELD),
    )
    return {
        'old_rate': report.rate,
        'new_rate': new_rate,
        'csv_row_count': row_stats['count'],
        'refund_row_count': report.refunds.count(),
        'old_total_reward_jpy': to_jpy(row_stats['total_reward']),
        'new_total_reward_jpy': to_jpy(Decimal(row_stats['total_bonus']) * new_rate),
        'old_total_refund_jpy': to_jpy(live_refunds['total_jpy']),
        'new_total_refund_jpy': to_jpy(Decimal(live_refunds['total_usd']) * new_rate),
    }


def update_exchange_rate(report, new_rate, user):
    """
    Re-price a report at a new exchange rate.

    Rewards and refunds are recomputed in the database with UPDATE
    expressions. Agency rewards use each agency's current commission rate.
    """
    new_rate = Decimal(new_rate)

    with transaction.atomic():
        report = MonthlyReport.objects.select_for_update().get(pk=report.pk)
        validate_new_rate(report, new_rate)
        old_rate = report.rate

        rate_value = Value(new_rate, output_field=RATE_FIELD)
        commission = Coalesce(
            Subquery(Agency.objects.filter(pk=OuterRef('agency_id')).values('commission_rate')[:1]),
            Value(Decimal('0')),
            output_field=COMMISSION_FIELD,
        )
        csv_row_count = CsvDataRow.objects.filter(report=report).update(
            total_reward_jpy=ExpressionWrapper(F('estimated_bonus') * rate_value, output_field=JPY_FIELD),
            agency_reward_jpy=ExpressionWrapper(F('estimated_bonus') * rate_value * commission, output_field=JPY_FIELD),
        )
        refund_row_count = Refund.objects.filter(report=report).update(
            amount_jpy=ExpressionWrapper(F('amount_usd') * rate_value, output_field=JPY_FIELD),
        )

        report.rate = new_rate
        report.save(update_fields=['rate', 'updated_at'])

        ExchangeRateLog.objects.create(
            report=report,
            old_rate=old_rate,
            new_rate=new_rate,
            csv_row_count=csv_row_count,
            refund_row_count=refund_row_count,
            changed_by=user,
        )

    logger.info(f"Report {report.id} rate {old_rate} -> {new_rate} ({csv_row_count} rows, {refund_row_count} refunds)")
    return {
        'success': True,
        'old_rate': old_rate,
        'new_rate': new_rate,
        'csv_row_count': csv_row_count,
        'refund_row_count': refund_row_count,
    }
