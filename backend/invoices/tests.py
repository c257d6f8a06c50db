"""
Tests for invoice totals, numbering, issuing and PDF download
"""
from datetime import date
from decimal import Decimal
from unittest import mock

from django.test import TestCase
from rest_framework import status

from backend.core.exceptions import AccessDenied, Conflict, EmailDeliveryError
from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.invoices.models import Invoice
from backend.invoices.pdf import format_currency, format_percent, render_invoice_pdf
from backend.invoices.services import (
    compute_invoice_totals, create_invoice, get_deductible_rate, invoice_number_prefix, next_invoice_number,
)
from backend.reports.models import CsvDataRow


class InvoiceCalculationTests(TestCase):
    """Deductible rate, totals and numbering"""

    def test_deductible_rate(self):
        self.assertEqual(get_deductible_rate(True, date(2031, 1, 1)), Decimal('1.0'))
        self.assertEqual(get_deductible_rate(False, date(2026, 9, 30)), Decimal('0.8'))
        self.assertEqual(get_deductible_rate(False, date(2026, 10, 1)), Decimal('0.5'))
        self.assertEqual(get_deductible_rate(False, date(2029, 10, 1)), Decimal('0.0'))

    def test_totals_round_tax_half_up(self):
        agency = TestDataFactory.create_agency()
        report = TestDataFactory.create_report()
        row = TestDataFactory.create_row(report, agency=agency)
        CsvDataRow.objects.filter(pk=row.pk).update(agency_reward_jpy=Decimal('1235.00'))
        TestDataFactory.create_row(report, agency=TestDataFactory.create_agency())

        totals = compute_invoice_totals(agency, report)
        self.assertEqual(totals['subtotal_jpy'], Decimal('1235.00'))
        self.assertEqual(totals['tax_amount_jpy'], Decimal('124'))
        self.assertEqual(totals['total_jpy'], Decimal('1359.00'))

    def test_totals_without_rows(self):
        totals = compute_invoice_totals(TestDataFactory.create_agency(), TestDataFactory.create_report())
        self.assertEqual(totals['subtotal_jpy'], Decimal('0'))
        self.assertEqual(totals['total_jpy'], Decimal('0'))

    def test_prefix(self):
        self.assertEqual(invoice_number_prefix('2025-01'), 'INV-202501-')
        fallback = invoice_number_prefix(None)
        self.assertRegex(fallback, r'^INV-\d{6}-$')
        self.assertEqual(invoice_number_prefix('25'), fallback)

    def test_next_number(self):
        self.assertEqual(next_invoice_number('INV-202501-'), 'INV-202501-0001')
        agency = TestDataFactory.create_agency()
        TestDataFactory.create_invoice(agency, TestDataFactory.create_report(data_month='2025-01'),
                                       invoice_number='INV-202501-0009')
        TestDataFactory.create_invoice(agency, TestDataFactory.create_report(data_month='2025-02'),
                                       invoice_number='INV-202502-0042')
        self.assertEqual(next_invoice_number('INV-202501-'), 'INV-202501-0010')

    def test_formatting(self):
        self.assertEqual(format_currency(Decimal('3300.00')), '¥3,300')
        self.assertEqual(format_percent(Decimal('0.10')), '10%')
        self.assertEqual(format_percent(Decimal('0.2'), 1), '20.0%')


@mock.patch('backend.invoices.services.send_invoice_notification_email')
class CreateInvoiceServiceTests(TestCase):
    """Issuing rules and number allocation"""

    def setUp(self):
        self.agency = TestDataFactory.create_agency(
            name='Alpha', invoice_registration_number='T1234567890123', bank_name='みずほ銀行',
        )
        self.agency_user = TestDataFactory.create_agency_user(agency=self.agency)
        self.report = TestDataFactory.create_report(rate=Decimal('150'), data_month='2025-01')
        TestDataFactory.create_row(self.report, agency=self.agency, estimated_bonus=Decimal('100'))

    def test_create_snapshots_agency(self, mock_send):
        invoice = create_invoice(self.agency_user, self.agency, self.report)
        self.assertEqual(invoice.invoice_number, 'INV-202501-0001')
        self.assertEqual(invoice.subtotal_jpy, Decimal('3000.00'))
        self.assertEqual(invoice.tax_amount_jpy, Decimal('300'))
        self.assertEqual(invoice.total_jpy, Decimal('3300.00'))
        self.assertTrue(invoice.is_invoice_registered)
        self.assertEqual(invoice.deductible_rate, Decimal('1.0'))
        self.assertEqual(invoice.bank_name, 'みずほ銀行')
        self.assertEqual(invoice.exchange_rate, Decimal('150'))
        mock_send.assert_called_once()
        self.assertEqual(mock_send.call_args.kwargs['invoice_number'], 'INV-202501-0001')

    def test_duplicate_conflict(self, mock_send):
        create_invoice(self.agency_user, self.agency, self.report)
        with self.assertRaises(Conflict):
            create_invoice(self.agency_user, self.agency, self.report)
        self.assertEqual(Invoice.objects.count(), 1)

    def test_admin_cannot_issue(self, mock_send):
        with self.assertRaises(AccessDenied):
            create_invoice(TestDataFactory.create_system_admin(), self.agency, self.report)

    def test_unviewable_agency(self, mock_send):
        with self.assertRaises(AccessDenied):
            create_invoice(TestDataFactory.create_agency_user(), self.agency, self.report)

    def test_retries_taken_number(self, mock_send):
        other = TestDataFactory.create_agency()
        TestDataFactory.create_invoice(other, self.report, invoice_number='INV-202501-0001')
        with mock.patch('backend.invoices.services.next_invoice_number',
                        side_effect=['INV-202501-0001', 'INV-202501-0002']):
            invoice = create_invoice(self.agency_user, self.agency, self.report)
        self.assertEqual(invoice.invoice_number, 'INV-202501-0002')

    def test_gives_up_after_retries(self, mock_send):
        other = TestDataFactory.create_agency()
        TestDataFactory.create_invoice(other, self.report, invoice_number='INV-202501-0001')
        with mock.patch('backend.invoices.services.next_invoice_number', return_value='INV-202501-0001'):
            with self.assertRaises(Conflict):
                create_invoice(self.agency_user, self.agency, self.report)
        self.assertFalse(Invoice.objects.filter(agency=self.agency).exists())
        mock_send.assert_not_called()

    def test_email_failure_keeps_invoice(self, mock_send):
        mock_send.side_effect = EmailDeliveryError('down')
        invoice = create_invoice(self.agency_user, self.agency, self.report)
        self.assertTrue(Invoice.objects.filter(pk=invoice.pk).exists())


class InvoiceAPITests(TestCase):
    """Preview, issue, list and detail endpoints"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.agency = TestDataFactory.create_agency(name='Alpha')
        self.agency_user = TestDataFactory.create_agency_user(agency=self.agency)
        self.admin = TestDataFactory.create_system_admin()
        self.report = TestDataFactory.create_report(rate=Decimal('150'), data_month='2025-01')
        TestDataFactory.create_row(self.report, agency=self.agency, estimated_bonus=Decimal('100'))
        self.target = {'agency': self.agency.id, 'monthly_report': self.report.id}

    def test_preview(self):
        self.client.authenticate_user(self.agency_user)
        response = self.client.get('/api/v1/invoices/preview/', self.target)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['agency_name'], 'Alpha')
        self.assertEqual(response.data['total_jpy'], Decimal('3300'))
        self.assertFalse(response.data['is_invoice_registered'])
        self.assertEqual(response.data['deductible_rate'], get_deductible_rate(False))
        self.assertFalse(Invoice.objects.exists())

    def test_preview_requires_target(self):
        self.client.authenticate_user(self.agency_user)
        response = self.client.get('/api/v1/invoices/preview/', {'agency': self.agency.id})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('monthly_report', response.data)

    def test_preview_admin_forbidden(self):
        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/invoices/preview/', self.target)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    @mock.patch('backend.invoices.services.send_invoice_notification_email')
    def test_create(self, mock_send):
        self.client.authenticate_user(self.agency_user)
        response = self.client.post('/api/v1/invoices/create/', self.target, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['invoice_number'], 'INV-202501-0001')
        self.assertEqual(response.data['total_jpy'], '3300.00')
        self.assertTrue(AuditLog.objects.filter(action='invoice_create', object_reference='INV-202501-0001').exists())

        response = self.client.post('/api/v1/invoices/create/', self.target, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_create_other_agency_forbidden(self):
        self.client.authenticate_user(TestDataFactory.create_agency_user())
        response = self.client.post('/api/v1/invoices/create/', self.target, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_list_scoped(self):
        own = TestDataFactory.create_invoice(self.agency, self.report)
        other = TestDataFactory.create_invoice(TestDataFactory.create_agency(), self.report)

        self.client.authenticate_user(self.agency_user)
        response = self.client.get('/api/v1/invoices/')
        self.assertEqual([row['id'] for row in response.data], [own.id])

        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/invoices/')
        self.assertEqual({row['id'] for row in response.data}, {own.id, other.id})

        response = self.client.get('/api/v1/invoices/', {'agency': other.agency_id})
        self.assertEqual([row['id'] for row in response.data], [other.id])

        response = self.client.get('/api/v1/invoices/', {'agency': 'abc'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_detail_forbidden_for_other_agency(self):
        invoice = TestDataFactory.create_invoice(TestDataFactory.create_agency(), self.report)
        self.client.authenticate_user(self.agency_user)
        response = self.client.get(f'/api/v1/invoices/{invoice.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class InvoicePdfTests(TestCase):
    """PDF rendering and download"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.agency = TestDataFactory.create_agency(
            name='Alpha', company_address='東京都渋谷区1-2-3', representative_name='山田太郎',
            bank_name='みずほ銀行', bank_branch='渋谷支店', bank_account_type='futsu',
            bank_account_number='1234567', bank_account_holder='ヤマダタロウ',
        )
        self.report = TestDataFactory.create_report()
        self.invoice = TestDataFactory.create_invoice(self.agency, self.report, invoice_number='INV-202501-0001')

    def test_render(self):
        pdf = render_invoice_pdf(self.invoice)
        self.assertTrue(pdf.startswith(b'%PDF'))

    def test_download(self):
        self.client.authenticate_user(TestDataFactory.create_agency_user(agency=self.agency))
        response = self.client.get(f'/api/v1/invoices/{self.invoice.id}/pdf/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'application/pdf')
        self.assertEqual(response['Content-Disposition'], 'attachment; filename="invoice_INV-202501-0001.pdf"')
        self.assertEqual(int(response['Content-Length']), len(response.content))
        self.assertTrue(response.content.startswith(b'%PDF'))

    def test_inline_and_sanitized_filename(self):
        self.invoice.invoice_number = 'INV/2025 01'
        self.invoice.save()
        self.client.authenticate_user(TestDataFactory.create_system_admin())
        response = self.client.get(f'/api/v1/invoices/{self.invoice.id}/pdf/', {'inline': 'true'})
        self.assertEqual(response['Content-Disposition'], 'inline; filename="invoice_INV_2025_01.pdf"')

    def test_other_agency_forbidden(self):
        self.client.authenticate_user(TestDataFactory.create_agency_user())
        response = self.client.get(f'/api/v1/invoices/{self.invoice.id}/pdf/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
