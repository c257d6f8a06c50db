"""
Tests for monthly report import, dashboard figures, refunds and exchange-rate changes
"""
import os
import tempfile
from decimal import Decimal
from io import StringIO
from unittest import mock

from django.core.cache import cache
from django.core.files.uploadedfile import SimpleUploadedFile
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase
from rest_framework import status

from backend.core.exceptions import AccessDenied, Conflict, ValidationFailed
from backend.core.models import AuditLog
from backend.core.constants import CSV_MAX_ROWS
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.reports.csv_import import column_decimal, normalize_data_month, parse_csv_text, safe_decimal
from backend.reports.models import CsvDataRow, ExchangeRateLog, MonthlyReport, Refund
from backend.reports.services import import_csv

SAMPLE_CSV = (
    'Creator ID,Creator nickname,Handle,Data Month,Creator Network manager,Diamonds,'
    'Estimated bonus,Estimated bonus - Activeness task\n'
    '111,Hana,hana_live,202501,Alpha,"1,000",100,20\n'
    '222,Taro,taro,202501,Unknown,500,$50.5,\n'
)


class CsvParsingTests(TestCase):
    """Lenient parsing of the exported CSV"""

    def test_safe_decimal(self):
        self.assertEqual(safe_decimal('1,234.5'), Decimal('1234.5'))
        self.assertEqual(safe_decimal('$12'), Decimal('12'))
        self.assertEqual(safe_decimal('abc'), Decimal('0'))
        self.assertEqual(safe_decimal(''), Decimal('0'))
        self.assertEqual(safe_decimal(None), Decimal('0'))
        self.assertEqual(safe_decimal('NaN'), Decimal('0'))

    def test_safe_decimal_column_width(self):
        self.assertEqual(safe_decimal('12.34567', 14, 4), Decimal('12.3457'))
        self.assertEqual(safe_decimal('1e30', 14, 4), Decimal('0'))
        self.assertEqual(safe_decimal('123456789012', 14, 4), Decimal('0'))
        self.assertEqual(safe_decimal('-9999999999.9999', 14, 4), Decimal('-9999999999.9999'))
        self.assertEqual(column_decimal('diamonds', '123456789012'), Decimal('123456789012.00'))
        self.assertEqual(column_decimal('estimated_bonus', '123456789012'), Decimal('0'))

    def test_normalize_data_month(self):
        self.assertEqual(normalize_data_month('2025-01'), '2025-01')
        self.assertEqual(normalize_data_month('202501'), '2025-01')
        self.assertEqual(normalize_data_month('2025/1'), '2025-01')
        self.assertEqual(normalize_data_month('2025-01-15'), '2025-01')
        self.assertIsNone(normalize_data_month('2025-13'))
        self.assertIsNone(normalize_data_month('abc'))
        self.assertIsNone(normalize_data_month(''))

    def test_parse_rows(self):
        rows = parse_csv_text(SAMPLE_CSV)
        self.assertEqual(len(rows), 2)
        self.assertEqual(rows[0]['creator_id'], '111')
        self.assertEqual(rows[0]['diamonds'], Decimal('1000'))
        self.assertEqual(rows[0]['estimated_bonus'], Decimal('100'))
        self.assertEqual(rows[0]['bonus_activeness'], Decimal('20'))
        self.assertEqual(rows[1]['estimated_bonus'], Decimal('50.5'))
        self.assertEqual(rows[1]['bonus_activeness'], Decimal('0'))

    def test_bom_and_blank_rows(self):
        rows = parse_csv_text('\ufeff' + SAMPLE_CSV + ',,,,,,,\n')
        self.assertEqual(len(rows), 2)
        self.assertEqual(rows[0]['creator_id'], '111')

    def test_missing_columns(self):
        with self.assertRaises(ValidationFailed):
            parse_csv_text('Creator ID,Diamonds\n111,100\n')

    def test_header_only(self):
        with self.assertRaises(ValidationFailed):
            parse_csv_text('Creator ID,Estimated bonus\n')


class ImportServiceTests(TestCase):
    """Import, month collision and replacement"""

    def setUp(self):
        self.admin = TestDataFactory.create_system_admin()
        self.agency = TestDataFactory.create_agency(name='Alpha')
        self.liver = TestDataFactory.create_liver(agency=self.agency, liver_id='111')

    def test_import_links_and_prices_rows(self):
        result = import_csv(SAMPLE_CSV, Decimal('150'), 'task_1', self.admin)

        self.assertEqual(result['data_month'], '2025-01')
        self.assertEqual(result['total_rows'], 2)
        self.assertEqual(result['linked_liver_count'], 1)
        self.assertEqual(result['unlinked_liver_count'], 1)
        self.assertEqual(result['linked_agency_count'], 1)
        self.assertEqual(result['replaced_report_ids'], [])

        linked = CsvDataRow.objects.get(creator_id='111')
        self.assertEqual(linked.liver, self.liver)
        self.assertEqual(linked.agency, self.agency)
        self.assertEqual(linked.total_reward_jpy, Decimal('15000.00'))
        self.assertEqual(linked.agency_reward_jpy, Decimal('3000.00'))

        unlinked = CsvDataRow.objects.get(creator_id='222')
        self.assertIsNone(unlinked.agency)
        self.assertEqual(unlinked.total_reward_jpy, Decimal('7575.00'))
        self.assertEqual(unlinked.agency_reward_jpy, Decimal('0.00'))

    def test_rate_out_of_range(self):
        with self.assertRaises(ValidationFailed):
            import_csv(SAMPLE_CSV, Decimal('40'), None, self.admin)
        self.assertFalse(MonthlyReport.objects.exists())

    def test_agency_user_needs_viewable_upload_agency(self):
        agency_user = TestDataFactory.create_agency_user(agency=self.agency)
        with self.assertRaises(ValidationFailed):
            import_csv(SAMPLE_CSV, Decimal('150'), None, agency_user)
        with self.assertRaises(AccessDenied):
            import_csv(SAMPLE_CSV, Decimal('150'), None, agency_user, upload_agency=TestDataFactory.create_agency())

        result = import_csv(SAMPLE_CSV, Decimal('150'), None, agency_user, upload_agency=self.agency)
        report = MonthlyReport.objects.get(pk=result['monthly_report_id'])
        self.assertEqual(report.upload_agency, self.agency)

    def test_same_month_conflicts(self):
        first = import_csv(SAMPLE_CSV, Decimal('150'), None, self.admin)
        with self.assertRaises(Conflict) as ctx:
            import_csv(SAMPLE_CSV, Decimal('150'), None, self.admin)
        existing = ctx.exception.details['existing_reports']
        self.assertEqual([report['id'] for report in existing], [first['monthly_report_id']])
        self.assertEqual(existing[0]['row_count'], 2)
        self.assertEqual(MonthlyReport.objects.count(), 1)

    def test_replace_moves_refunds(self):
        """Test replacing a month re-prices refunds onto the new report"""
        first = import_csv(SAMPLE_CSV, Decimal('150'), None, self.admin)
        old_report = MonthlyReport.objects.get(pk=first['monthly_report_id'])
        refund = TestDataFactory.create_refund(old_report, self.liver, amount_usd=Decimal('10.00'))

        result = import_csv(SAMPLE_CSV, Decimal('160'), None, self.admin, replace_existing=True)

        self.assertEqual(result['replaced_report_ids'], [old_report.id])
        self.assertEqual(result['migrated_refund_count'], 1)
        self.assertFalse(MonthlyReport.objects.filter(pk=old_report.id).exists())
        refund.refresh_from_db()
        self.assertEqual(refund.report_id, result['monthly_report_id'])
        self.assertEqual(refund.amount_jpy, Decimal('1600.00'))
        self.assertEqual(CsvDataRow.objects.count(), 2)

    def test_replace_blocked_by_invoice(self):
        first = import_csv(SAMPLE_CSV, Decimal('150'), None, self.admin)
        old_report = MonthlyReport.objects.get(pk=first['monthly_report_id'])
        invoice = TestDataFactory.create_invoice(self.agency, old_report)

        with self.assertRaises(Conflict) as ctx:
            import_csv(SAMPLE_CSV, Decimal('160'), None, self.admin, replace_existing=True)
        self.assertEqual(ctx.exception.details['invoice_numbers'], [invoice.invoice_number])
        self.assertTrue(MonthlyReport.objects.filter(pk=old_report.id).exists())

    def test_agency_user_cannot_replace_foreign_upload(self):
        import_csv(SAMPLE_CSV, Decimal('150'), None, self.admin)
        agency_user = TestDataFactory.create_agency_user(agency=self.agency)
        with self.assertRaises(AccessDenied):
            import_csv(SAMPLE_CSV, Decimal('150'), None, agency_user, upload_agency=self.agency, replace_existing=True)

    def test_oversized_numbers_count_as_zero(self):
        csv_text = (
            'Creator ID,Data Month,Estimated bonus,Estimated bonus - Activeness task\n'
            '111,202501,1e30,123456789012\n'
            '222,202501,123456789012,5\n'
        )
        result = import_csv(csv_text, Decimal('150'), None, self.admin)

        self.assertEqual(result['total_rows'], 2)
        huge = CsvDataRow.objects.get(creator_id='111')
        self.assertEqual(huge.estimated_bonus, Decimal('0'))
        self.assertEqual(huge.bonus_activeness, Decimal('0'))
        self.assertEqual(huge.total_reward_jpy, Decimal('0.00'))
        wide = CsvDataRow.objects.get(creator_id='222')
        self.assertEqual(wide.estimated_bonus, Decimal('0'))
        self.assertEqual(wide.bonus_activeness, Decimal('5'))

    def test_too_many_rows(self):
        lines = ''.join(f'{n},202501,1\n' for n in range(CSV_MAX_ROWS + 1))
        with self.assertRaises(ValidationFailed):
            import_csv('Creator ID,Data Month,Estimated bonus\n' + lines, Decimal('150'), None, self.admin)
        self.assertFalse(MonthlyReport.objects.exists())

    def test_large_import_keeps_every_row(self):
        lines = ''.join(f'{n},202501,1\n' for n in range(1201))
        result = import_csv('Creator ID,Data Month,Estimated bonus\n' + lines, Decimal('150'), None, self.admin)

        self.assertEqual(result['total_rows'], 1201)
        self.assertEqual(CsvDataRow.objects.filter(report_id=result['monthly_report_id']).count(), 1201)

    def test_replacement_keeps_the_month(self):
        import_csv(SAMPLE_CSV, Decimal('150'), None, self.admin)
        result = import_csv(SAMPLE_CSV, Decimal('160'), None, self.admin, replace_existing=True)
        self.assertEqual(MonthlyReport.objects.get().data_month, '2025-01')
        self.assertEqual(MonthlyReport.objects.get().pk, result['monthly_report_id'])

    def test_concurrent_same_month_import_conflicts(self):
        """A month claimed after the collision check still ends in a Conflict"""
        TestDataFactory.create_report(data_month='2025-01')
        with mock.patch.object(MonthlyReport.objects, 'select_for_update', return_value=MonthlyReport.objects.none()):
            with self.assertRaises(Conflict) as ctx:
                import_csv(SAMPLE_CSV, Decimal('150'), None, self.admin)
        self.assertEqual(ctx.exception.details['data_month'], '2025-01')
        self.assertEqual(MonthlyReport.objects.count(), 1)
        self.assertFalse(CsvDataRow.objects.exists())


class ImportAPITests(TestCase):
    """Import endpoint and report list"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.admin = TestDataFactory.create_system_admin()
        self.client.authenticate_user(self.admin)
        TestDataFactory.create_agency(name='Alpha')

    def test_upload_file(self):
        upload = SimpleUploadedFile('report.csv', ('\ufeff' + SAMPLE_CSV).encode('utf-8'), content_type='text/csv')
        response = self.client.post('/api/v1/reports/import/', {'file': upload, 'rate': '150'}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['total_rows'], 2)
        self.assertTrue(AuditLog.objects.filter(action='csv_import').exists())

    def test_conflict_then_replace(self):
        payload = {'csv_text': SAMPLE_CSV, 'rate': '150'}
        self.client.post('/api/v1/reports/import/', payload, format='json')

        response = self.client.post('/api/v1/reports/import/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['data_month'], '2025-01')
        self.assertEqual(len(response.data['existing_reports']), 1)

        response = self.client.post('/api/v1/reports/import/', dict(payload, replace_existing=True), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(AuditLog.objects.filter(action='csv_replace').exists())
        self.assertEqual(MonthlyReport.objects.count(), 1)

    def test_too_many_rows_rejected(self):
        lines = ''.join(f'{n},202501,1\n' for n in range(CSV_MAX_ROWS + 1))
        payload = {'csv_text': 'Creator ID,Data Month,Estimated bonus\n' + lines, 'rate': '150'}
        response = self.client.post('/api/v1/reports/import/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('too many rows', response.data['error'])

    def test_missing_csv(self):
        response = self.client.post('/api/v1/reports/import/', {'rate': '150'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('file', response.data)

    def test_non_utf8_file(self):
        upload = SimpleUploadedFile('report.csv', SAMPLE_CSV.encode('utf-16'), content_type='text/csv')
        response = self.client.post('/api/v1/reports/import/', {'file': upload, 'rate': '150'}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list(self):
        report = TestDataFactory.create_report()
        response = self.client.get('/api/v1/reports/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['id'] for row in response.data], [report.id])


class ImportCommandTests(TestCase):
    """import_monthly_csv management command"""

    def setUp(self):
        self.admin = TestDataFactory.create_system_admin()
        handle, self.path = tempfile.mkstemp(suffix='.csv')
        with os.fdopen(handle, 'w', encoding='utf-8-sig') as f:
            f.write(SAMPLE_CSV)
        self.addCleanup(os.remove, self.path)

    def test_import(self):
        out = StringIO()
        call_command('import_monthly_csv', self.path, '--rate', '150', '--user', self.admin.email, stdout=out)
        self.assertIn('Rows: 2', out.getvalue())
        self.assertEqual(MonthlyReport.objects.get().data_month, '2025-01')

    def test_collision_is_command_error(self):
        call_command('import_monthly_csv', self.path, '--rate', '150', '--user', self.admin.email, stdout=StringIO())
        with self.assertRaises(CommandError):
            call_command('import_monthly_csv', self.path, '--rate', '150', '--user', self.admin.email, stdout=StringIO())

    def test_unknown_user(self):
        with self.assertRaises(CommandError):
            call_command('import_monthly_csv', self.path, '--rate', '150', '--user', 'nobody@test.com')


class DashboardTests(TestCase):
    """Scoped rows, refunds and summary figures"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.agency = TestDataFactory.create_agency(name='Alpha')
        self.other_agency = TestDataFactory.create_agency(name='Beta')
        self.liver = TestDataFactory.create_liver(agency=self.agency)
        self.other_liver = TestDataFactory.create_liver(agency=self.other_agency)
        self.report = TestDataFactory.create_report(rate=Decimal('150'))
        TestDataFactory.create_row(self.report, agency=self.agency, liver=self.liver, estimated_bonus=Decimal('100'))
        TestDataFactory.create_row(self.report, agency=self.other_agency, liver=self.other_liver,
                                   estimated_bonus=Decimal('50'))
        TestDataFactory.create_refund(self.report, self.liver, amount_usd=Decimal('10'))
        TestDataFactory.create_refund(self.report, self.liver, amount_usd=Decimal('99'), is_deleted=True)
        self.url = f'/api/v1/reports/{self.report.id}/dashboard/'

    def test_admin_summary(self):
        self.client.authenticate_user(TestDataFactory.create_system_admin())
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['rows']), 2)
        self.assertEqual(len(response.data['refunds']), 1)

        summary = response.data['summary']
        self.assertEqual(summary['total_reward_jpy'], Decimal('22500'))
        self.assertEqual(summary['total_agency_reward_jpy'], Decimal('4500'))
        self.assertEqual(summary['total_refund_jpy'], Decimal('1500'))
        self.assertEqual(summary['net_amount_ex_tax'], Decimal('21000'))
        self.assertEqual(summary['net_amount_inc_tax'], Decimal('23100'))
        self.assertEqual(summary['agency_payment_inc_tax'], Decimal('4950'))
        self.assertEqual(summary['commission_rate'], Decimal('0.2'))

    def test_agency_user_sees_own_agency(self):
        self.client.authenticate_user(TestDataFactory.create_agency_user(agency=self.agency))
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['agency'] for row in response.data['rows']], [self.agency.id])
        summary = response.data['summary']
        self.assertEqual(summary['total_reward_jpy'], Decimal('15000'))
        self.assertEqual(summary['net_amount_inc_tax'], Decimal('14850'))

    def test_agency_filter_outside_scope_forbidden(self):
        self.client.authenticate_user(TestDataFactory.create_agency_user(agency=self.agency))
        response = self.client.get(self.url, {'agency': self.other_agency.id})
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_admin_agency_filter(self):
        self.client.authenticate_user(TestDataFactory.create_system_admin())
        response = self.client.get(self.url, {'agency': self.other_agency.id})
        self.assertEqual(len(response.data['rows']), 1)
        self.assertEqual(response.data['refunds'], [])

    def test_invalid_agency_param(self):
        self.client.authenticate_user(TestDataFactory.create_system_admin())
        response = self.client.get(self.url, {'agency': 'abc'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data, {'error': 'Invalid agency id'})

    def test_empty_report_summary(self):
        report = TestDataFactory.create_report(data_month='2025-02')
        self.client.authenticate_user(TestDataFactory.create_system_admin())
        response = self.client.get(f'/api/v1/reports/{report.id}/dashboard/')
        self.assertEqual(response.data['summary']['total_reward_jpy'], Decimal('0'))
        self.assertEqual(response.data['summary']['commission_rate'], Decimal('0'))


class RefundTests(TestCase):
    """Refund registration, deletion and export"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.agency = TestDataFactory.create_agency(name='Alpha')
        self.liver = TestDataFactory.create_liver(agency=self.agency, name='Hanako')
        self.report = TestDataFactory.create_report(rate=Decimal('150'))
        self.agency_user = TestDataFactory.create_agency_user(agency=self.agency)
        self.admin = TestDataFactory.create_system_admin()

    def refund_payload(self, liver, amount='10.00'):
        return {
            'report': self.report.id,
            'liver': liver.id,
            'target_month': '2025-01-01',
            'amount_usd': amount,
            'reason': 'Chargeback',
        }

    def test_create(self):
        self.client.authenticate_user(self.agency_user)
        response = self.client.post('/api/v1/refunds/', self.refund_payload(self.liver), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['amount_jpy'], '1500.00')
        self.assertEqual(response.data['agency'], self.agency.id)
        self.assertTrue(AuditLog.objects.filter(action='refund_create').exists())

    def test_non_positive_amount_rejected(self):
        self.client.authenticate_user(self.agency_user)
        response = self.client.post('/api/v1/refunds/', self.refund_payload(self.liver, '0'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_other_agency_liver_forbidden(self):
        other_liver = TestDataFactory.create_liver(agency=TestDataFactory.create_agency())
        self.client.authenticate_user(self.agency_user)
        response = self.client.post('/api/v1/refunds/', self.refund_payload(other_liver), format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_unassigned_liver_admin_only(self):
        unassigned = TestDataFactory.create_liver()
        self.client.authenticate_user(self.agency_user)
        response = self.client.post('/api/v1/refunds/', self.refund_payload(unassigned), format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/v1/refunds/', self.refund_payload(unassigned), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIsNone(response.data['agency'])

    def test_delete_is_soft(self):
        refund = TestDataFactory.create_refund(self.report, self.liver)
        self.client.authenticate_user(self.admin)
        response = self.client.delete(f'/api/v1/refunds/{refund.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        refund.refresh_from_db()
        self.assertTrue(refund.is_deleted)

        response = self.client.delete(f'/api/v1/refunds/{refund.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_delete_requires_admin(self):
        refund = TestDataFactory.create_refund(self.report, self.liver)
        self.client.authenticate_user(self.agency_user)
        response = self.client.delete(f'/api/v1/refunds/{refund.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(Refund.objects.get(pk=refund.id).is_deleted)

    def test_export_scoped(self):
        TestDataFactory.create_refund(self.report, self.liver, amount_usd=Decimal('10'))
        TestDataFactory.create_refund(self.report, TestDataFactory.create_liver(agency=TestDataFactory.create_agency()))
        TestDataFactory.create_refund(self.report, self.liver, amount_usd=Decimal('7'), is_deleted=True)

        self.client.authenticate_user(self.agency_user)
        response = self.client.get(f'/api/v1/reports/{self.report.id}/refunds/export/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('refunds_2025-01.csv', response['Content-Disposition'])
        content = response.content.decode('utf-8')
        self.assertTrue(content.startswith('\ufeff'))
        lines = content.lstrip('\ufeff').splitlines()
        self.assertEqual(lines[0], '対象月,ライバー,代理店,返金額(USD),返金額(円),理由,登録日時')
        self.assertEqual(len(lines), 2)
        self.assertIn('Hanako', lines[1])
        self.assertIn('1500.00', lines[1])

    def test_export_invalid_agency_param(self):
        self.client.authenticate_user(self.admin)
        response = self.client.get(f'/api/v1/reports/{self.report.id}/refunds/export/', {'agency': 'abc'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data, {'error': 'Invalid agency id'})


class ExchangeRateTests(TestCase):
    """Exchange-rate preview, recalculation and history"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.admin = TestDataFactory.create_system_admin()
        self.client.authenticate_user(self.admin)
        self.agency = TestDataFactory.create_agency(name='Alpha')
        self.liver = TestDataFactory.create_liver(agency=self.agency)
        self.report = TestDataFactory.create_report(rate=Decimal('150'))
        self.row = TestDataFactory.create_row(self.report, agency=self.agency, liver=self.liver,
                                              estimated_bonus=Decimal('100'))
        self.refund = TestDataFactory.create_refund(self.report, self.liver, amount_usd=Decimal('10'))
        self.deleted_refund = TestDataFactory.create_refund(self.report, self.liver, amount_usd=Decimal('5'),
                                                            is_deleted=True)

    def test_preview(self):
        response = self.client.get(f'/api/v1/reports/{self.report.id}/exchange-rate/preview/', {'new_rate': '160'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['csv_row_count'], 1)
        self.assertEqual(response.data['refund_row_count'], 2)
        self.assertEqual(response.data['old_total_reward_jpy'], Decimal('15000'))
        self.assertEqual(response.data['new_total_reward_jpy'], Decimal('16000'))
        self.assertEqual(response.data['old_total_refund_jpy'], Decimal('1500'))
        self.assertEqual(response.data['new_total_refund_jpy'], Decimal('1600'))
        self.report.refresh_from_db()
        self.assertEqual(self.report.rate, Decimal('150'))

    def test_update_uses_current_commission(self):
        """Test rewards and all refunds are re-priced at the new rate"""
        self.agency.commission_rate = Decimal('0.25')
        self.agency.save()

        response = self.client.post(f'/api/v1/reports/{self.report.id}/exchange-rate/', {'new_rate': '160'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['csv_row_count'], 1)
        self.assertEqual(response.data['refund_row_count'], 2)

        self.row.refresh_from_db()
        self.assertEqual(self.row.total_reward_jpy, Decimal('16000.00'))
        self.assertEqual(self.row.agency_reward_jpy, Decimal('4000.00'))
        self.refund.refresh_from_db()
        self.deleted_refund.refresh_from_db()
        self.assertEqual(self.refund.amount_jpy, Decimal('1600.00'))
        self.assertEqual(self.deleted_refund.amount_jpy, Decimal('800.00'))

        log = ExchangeRateLog.objects.get(report=self.report)
        self.assertEqual(log.old_rate, Decimal('150'))
        self.assertEqual(log.new_rate, Decimal('160'))
        self.assertEqual(log.changed_by, self.admin)
        self.assertTrue(AuditLog.objects.filter(action='rate_change').exists())

    def test_same_rate_rejected(self):
        response = self.client.post(f'/api/v1/reports/{self.report.id}/exchange-rate/', {'new_rate': '150'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(ExchangeRateLog.objects.exists())

    def test_non_positive_rate_rejected(self):
        response = self.client.get(f'/api/v1/reports/{self.report.id}/exchange-rate/preview/', {'new_rate': '0'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_logs(self):
        self.client.post(f'/api/v1/reports/{self.report.id}/exchange-rate/', {'new_rate': '160'}, format='json')
        self.client.post(f'/api/v1/reports/{self.report.id}/exchange-rate/', {'new_rate': '155'}, format='json')
        response = self.client.get(f'/api/v1/reports/{self.report.id}/exchange-rate/logs/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 2)
        self.assertEqual(response.data[0]['changed_by_email'], self.admin.email)

    def test_requires_admin(self):
        self.client.authenticate_user(TestDataFactory.create_agency_user(agency=self.agency))
        response = self.client.post(f'/api/v1/reports/{self.report.id}/exchange-rate/', {'new_rate': '160'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
