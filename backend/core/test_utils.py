"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from backend.agencies.models import Agency, AgencyHierarchy
from backend.core.auth import get_profile
from backend.core.constants import ROLE_AGENCY_USER, ROLE_SYSTEM_ADMIN
from backend.invoices.models import Invoice
from backend.livers.models import Liver
from backend.reports.models import CsvDataRow, MonthlyReport, Refund
from decimal import Decimal
from django.utils import timezone
import random
import string

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_user(username=None, email=None, password='testpass123', is_staff=False, is_superuser=False):
        """Create a test user (gets an agency_user profile from the signal)"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username}@test.com'
        return User.objects.create_user(
            username=username,
            email=email,
            password=password,
            is_staff=is_staff,
            is_superuser=is_superuser
        )

    @staticmethod
    def create_system_admin(**kwargs):
        user = TestDataFactory.create_user(**kwargs)
        profile = get_profile(user)
        profile.role = ROLE_SYSTEM_ADMIN
        profile.save(update_fields=['role'])
        return user

    @staticmethod
    def create_agency(name=None, commission_rate=None, rank='rank_2', user=None, parents=None, **fields):
        """Create a test agency, optionally linked under parent agencies"""
        if not name:
            name = f'Agency_{TestDataFactory.random_string(6)}'
        if commission_rate is None:
            commission_rate = Decimal('0.2000')
        agency = Agency.objects.create(
            name=name,
            commission_rate=commission_rate,
            rank=rank,
            user=user,
            **fields
        )
        for parent in parents or []:
            AgencyHierarchy.objects.create(agency=agency, parent_agency=parent)
        return agency

    @staticmethod
    def create_agency_user(agency=None, viewable=None, **kwargs):
        """
        Create an agency user that owns agency (a new one when not given)
        and can view it plus any agencies in viewable.
        """
        user = TestDataFactory.create_user(**kwargs)
        if agency is None:
            agency = TestDataFactory.create_agency(user=user)
        elif agency.user_id is None:
            agency.user = user
            agency.save(update_fields=['user'])
        profile = get_profile(user)
        profile.role = ROLE_AGENCY_USER
        profile.agency = agency
        profile.save(update_fields=['role', 'agency'])
        profile.viewable_agencies.add(agency, *(viewable or []))
        return user

    @staticmethod
    def create_liver(agency=None, name=None, liver_id=None, status='authorized', **fields):
        """Create a test liver"""
        if not name:
            name = f'Liver_{TestDataFactory.random_string(6)}'
        if not liver_id:
            liver_id = str(random.randint(10 ** 11, 10 ** 12 - 1))
        return Liver.objects.create(
            name=name,
            liver_id=liver_id,
            account_name=fields.pop('account_name', name.lower()),
            status=status,
            agency=agency,
            **fields
        )

    @staticmethod
    def create_report(rate=None, data_month='2025-01', created_by=None, upload_agency=None):
        """Create a monthly report without rows"""
        if rate is None:
            rate = Decimal('150.0000')
        return MonthlyReport.objects.create(
            rate=rate,
            data_month=data_month,
            created_by=created_by,
            upload_agency=upload_agency,
        )

    @staticmethod
    def create_row(report, agency=None, liver=None, estimated_bonus=None, diamonds=None, creator_id=None):
        """Create a CSV row with rewards priced at the report's rate"""
        if estimated_bonus is None:
            estimated_bonus = Decimal('100.0000')
        if diamonds is None:
            diamonds = Decimal('1000.00')
        total = (estimated_bonus * report.rate).quantize(Decimal('0.01'))
        commission = agency.commission_rate if agency else Decimal('0')
        return CsvDataRow.objects.create(
            report=report,
            creator_id=creator_id or (liver.liver_id if liver else TestDataFactory.random_string(8)),
            creator_network_manager=agency.name if agency else None,
            data_month=report.data_month,
            diamonds=diamonds,
            estimated_bonus=estimated_bonus,
            total_reward_jpy=total,
            agency_reward_jpy=(total * commission).quantize(Decimal('0.01')),
            liver=liver,
            agency=agency,
        )

    @staticmethod
    def create_refund(report, liver, amount_usd=None, is_deleted=False, created_by=None):
        """Create a refund for liver priced at the report's rate"""
        if amount_usd is None:
            amount_usd = Decimal('10.00')
        return Refund.objects.create(
            report=report,
            liver=liver,
            agency=liver.agency,
            target_month=timezone.now().date().replace(day=1),
            amount_usd=amount_usd,
            amount_jpy=(amount_usd * report.rate).quantize(Decimal('0.01')),
            is_deleted=is_deleted,
            created_by=created_by,
        )

    @staticmethod
    def create_invoice(agency, report, invoice_number=None, created_by=None, subtotal=None):
        """Create an issued invoice directly, bypassing numbering"""
        if subtotal is None:
            subtotal = Decimal('3000.00')
        tax = (subtotal * Decimal('0.10')).quantize(Decimal('1'))
        return Invoice.objects.create(
            invoice_number=invoice_number or f'INV-202501-{random.randint(1000, 9999)}',
            agency=agency,
            monthly_report=report,
            subtotal_jpy=subtotal,
            tax_rate=Decimal('0.10'),
            tax_amount_jpy=tax,
            total_jpy=subtotal + tax,
            is_invoice_registered=agency.is_invoice_registered,
            invoice_registration_number=agency.invoice_registration_number,
            deductible_rate=Decimal('1.0') if agency.is_invoice_registered else Decimal('0.8'),
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
            created_by=created_by,
        )


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
