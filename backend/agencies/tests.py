"""
Tests for agency provisioning, hierarchy, visibility and company info
"""
from decimal import Decimal
from unittest import mock

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.test import TestCase
from rest_framework import status

from backend.agencies.models import Agency, AgencyHierarchy
from backend.agencies.services import (
    clean_parent_ids, create_agency, generate_temp_password, get_ancestor_ids, update_agency,
)
from backend.core.auth import get_profile, viewable_agency_ids
from backend.core.cache_utils import AGENCY_LIST_CACHE_KEY
from backend.core.constants import ROLE_AGENCY_USER, TEMP_PASSWORD_ALPHABET
from backend.core.exceptions import Conflict, EmailDeliveryError, ValidationFailed
from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient

User = get_user_model()


class HierarchyTests(TestCase):
    """Parent cleaning and cycle detection"""

    def setUp(self):
        self.top = TestDataFactory.create_agency(name='Top')
        self.middle = TestDataFactory.create_agency(name='Middle', parents=[self.top])
        self.bottom = TestDataFactory.create_agency(name='Bottom', parents=[self.middle])

    def test_ancestors(self):
        self.assertEqual(get_ancestor_ids([self.bottom.id]), {self.middle.id, self.top.id})
        self.assertEqual(get_ancestor_ids([self.top.id]), set())

    def test_self_and_duplicates_dropped(self):
        cleaned = clean_parent_ids(self.bottom.id, [self.bottom.id, self.middle.id, str(self.middle.id)])
        self.assertEqual(cleaned, [self.middle.id])

    def test_cycle_rejected(self):
        with self.assertRaises(ValidationFailed):
            clean_parent_ids(self.top.id, [self.bottom.id])

    def test_missing_parent_rejected(self):
        with self.assertRaises(ValidationFailed) as ctx:
            clean_parent_ids(self.top.id, [999999])
        self.assertEqual(ctx.exception.details['parent_agency_ids'], [999999])


@mock.patch('backend.agencies.services.send_registration_email')
class CreateAgencyServiceTests(TestCase):
    """Agency and login account provisioning"""

    def test_temp_password(self, mock_send):
        password = generate_temp_password()
        self.assertEqual(len(password), 12)
        self.assertTrue(all(ch in TEMP_PASSWORD_ALPHABET for ch in password))

    def test_creates_agency_user_and_visibility(self, mock_send):
        parent_owner = TestDataFactory.create_agency_user()
        parent = get_profile(parent_owner).agency

        agency, temp_password = create_agency(
            name='New Agency', commission_rate=Decimal('0.3'), rank='rank_3',
            email='New@Agency.com', parent_agency_ids=[parent.id],
        )

        user = User.objects.get(email='new@agency.com')
        self.assertEqual(agency.user, user)
        self.assertTrue(user.check_password(temp_password))
        profile = get_profile(user)
        self.assertEqual(profile.role, ROLE_AGENCY_USER)
        self.assertEqual(profile.agency, agency)
        self.assertEqual(viewable_agency_ids(user), {agency.id})
        self.assertTrue(AgencyHierarchy.objects.filter(agency=agency, parent_agency=parent).exists())
        self.assertIn(agency.id, viewable_agency_ids(parent_owner))
        mock_send.assert_called_once_with('new@agency.com', temp_password, 'New Agency')

    def test_duplicate_email_conflict(self, mock_send):
        TestDataFactory.create_user(email='taken@agency.com')
        with self.assertRaises(Conflict):
            create_agency(name='X', commission_rate=Decimal('0.1'), rank='rank_2', email='taken@agency.com')
        self.assertFalse(Agency.objects.filter(name='X').exists())

    def test_invalid_parent_rolls_back(self, mock_send):
        with self.assertRaises(ValidationFailed):
            create_agency(name='Y', commission_rate=Decimal('0.1'), rank='rank_2',
                          email='y@agency.com', parent_agency_ids=[999999])
        self.assertFalse(Agency.objects.filter(name='Y').exists())
        self.assertFalse(User.objects.filter(email='y@agency.com').exists())
        mock_send.assert_not_called()

    def test_email_failure_keeps_agency(self, mock_send):
        mock_send.side_effect = EmailDeliveryError('down')
        agency, _ = create_agency(name='Z', commission_rate=Decimal('0.1'), rank='rank_2', email='z@agency.com')
        self.assertTrue(Agency.objects.filter(pk=agency.pk).exists())


class UpdateAgencyServiceTests(TestCase):
    """Parent changes move visibility"""

    def test_parent_change_moves_visibility(self):
        old_owner = TestDataFactory.create_agency_user()
        new_owner = TestDataFactory.create_agency_user()
        old_parent = get_profile(old_owner).agency
        new_parent = get_profile(new_owner).agency
        agency = TestDataFactory.create_agency(parents=[old_parent])
        get_profile(old_owner).viewable_agencies.add(agency)

        agency, old_ids, new_ids = update_agency(
            agency, name='Renamed', commission_rate=Decimal('0.25'), rank='rank_4',
            parent_agency_ids=[new_parent.id],
        )

        self.assertEqual(old_ids, [old_parent.id])
        self.assertEqual(new_ids, [new_parent.id])
        self.assertEqual(agency.name, 'Renamed')
        self.assertNotIn(agency.id, viewable_agency_ids(old_owner))
        self.assertIn(agency.id, viewable_agency_ids(new_owner))
        self.assertEqual(list(agency.parent_agencies.values_list('id', flat=True)), [new_parent.id])


class AgencyAPITests(TestCase):
    """Agency endpoints"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.admin = TestDataFactory.create_system_admin()
        self.agency = TestDataFactory.create_agency(name='Alpha')
        self.other = TestDataFactory.create_agency(name='Beta', parents=[self.agency])
        self.agency_user = TestDataFactory.create_agency_user(agency=self.agency)

    def test_admin_lists_all_with_parents(self):
        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/agencies/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 2)
        beta = next(row for row in response.data if row['id'] == self.other.id)
        self.assertEqual(beta['parent_agencies'], [{'id': self.agency.id, 'name': 'Alpha'}])

    def test_list_is_cached(self):
        self.client.authenticate_user(self.admin)
        self.client.get('/api/v1/agencies/')
        self.assertIsNotNone(cache.get(AGENCY_LIST_CACHE_KEY))

    def test_agency_user_list_scoped(self):
        self.client.authenticate_user(self.agency_user)
        response = self.client.get('/api/v1/agencies/')
        self.assertEqual([row['id'] for row in response.data], [self.agency.id])

    @mock.patch('backend.agencies.services.send_registration_email')
    def test_create(self, mock_send):
        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/v1/agencies/', {
            'name': '  Gamma  ',
            'commission_rate': '0.1500',
            'rank': 'rank_2',
            'email': 'gamma@test.com',
            'parent_agency_ids': [self.agency.id],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['name'], 'Gamma')
        self.assertEqual(len(response.data['temp_password']), 12)
        self.assertEqual(response.data['user_email'], 'gamma@test.com')
        self.assertTrue(AuditLog.objects.filter(action='agency_create', object_name='Gamma').exists())

    def test_create_requires_admin(self):
        self.client.authenticate_user(self.agency_user)
        response = self.client.post('/api/v1/agencies/', {
            'name': 'Gamma', 'commission_rate': '0.1', 'rank': 'rank_2', 'email': 'gamma@test.com',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_create_rejects_rate_above_one(self):
        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/v1/agencies/', {
            'name': 'Gamma', 'commission_rate': '1.5', 'rank': 'rank_2', 'email': 'gamma@test.com',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('commission_rate', response.data)

    @mock.patch('backend.agencies.services.send_registration_email')
    def test_create_duplicate_email_conflict(self, mock_send):
        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/v1/agencies/', {
            'name': 'Gamma', 'commission_rate': '0.1', 'rank': 'rank_2', 'email': self.agency_user.email,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_update_with_cycle_rejected(self):
        self.client.authenticate_user(self.admin)
        response = self.client.put(f'/api/v1/agencies/{self.agency.id}/', {
            'name': 'Alpha', 'commission_rate': '0.2', 'rank': 'rank_2', 'parent_agency_ids': [self.other.id],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_records_changes(self):
        self.client.authenticate_user(self.admin)
        response = self.client.put(f'/api/v1/agencies/{self.other.id}/', {
            'name': 'Beta', 'commission_rate': '0.3000', 'rank': 'rank_2', 'parent_agency_ids': [],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['parent_agencies'], [])
        log = AuditLog.objects.get(action='agency_update', object_id=str(self.other.id))
        self.assertEqual(log.changes['commission_rate'], {'old': '0.2000', 'new': '0.3000'})
        self.assertEqual(log.changes['parent_agency_ids'], {'old': [self.agency.id], 'new': []})

    def test_detail_forbidden_for_other_agency(self):
        self.client.authenticate_user(TestDataFactory.create_agency_user())
        response = self.client.get(f'/api/v1/agencies/{self.agency.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class CompanyInfoTests(TestCase):
    """Invoice registration and bank details"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.agency = TestDataFactory.create_agency(name='Alpha')
        self.agency_user = TestDataFactory.create_agency_user(agency=self.agency)
        self.client.authenticate_user(self.agency_user)
        self.url = f'/api/v1/agencies/{self.agency.id}/company-info/'

    def test_update(self):
        response = self.client.patch(self.url, {
            'invoice_registration_number': ' T1234567890123 ',
            'bank_name': 'みずほ銀行',
            'bank_account_type': 'futsu',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.agency.refresh_from_db()
        self.assertEqual(self.agency.invoice_registration_number, 'T1234567890123')
        self.assertTrue(self.agency.is_invoice_registered)
        self.assertTrue(AuditLog.objects.filter(action='company_info_update').exists())

    def test_invalid_registration_number(self):
        response = self.client.patch(self.url, {'invoice_registration_number': 'T123'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_blank_registration_number_allowed(self):
        response = self.client.patch(self.url, {'invoice_registration_number': ''}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(AuditLog.objects.filter(action='company_info_update').exists())

    def test_invalid_account_type(self):
        response = self.client.patch(self.url, {'bank_account_type': 'savings'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_other_agency_forbidden(self):
        other = TestDataFactory.create_agency()
        response = self.client.get(f'/api/v1/agencies/{other.id}/company-info/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
