"""
Tests for the liver roster: scoping, edits, status changes and CSV export
"""
from django.test import TestCase
from rest_framework import status

from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.livers.models import Liver


class LiverListTests(TestCase):
    """Listing and filtering"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.agency = TestDataFactory.create_agency(name='Alpha')
        self.other_agency = TestDataFactory.create_agency(name='Beta')
        self.own_liver = TestDataFactory.create_liver(agency=self.agency, name='Hanako', tiktok_username='hana_live')
        self.other_liver = TestDataFactory.create_liver(agency=self.other_agency, name='Taro', status='pending')
        self.unassigned = TestDataFactory.create_liver(name='Jiro')

    def test_admin_sees_all(self):
        self.client.authenticate_user(TestDataFactory.create_system_admin())
        response = self.client.get('/api/v1/livers/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 3)

    def test_agency_user_sees_viewable_only(self):
        self.client.authenticate_user(TestDataFactory.create_agency_user(agency=self.agency))
        response = self.client.get('/api/v1/livers/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['id'] for row in response.data], [self.own_liver.id])
        self.assertEqual(response.data[0]['agency_name'], 'Alpha')

    def test_filters(self):
        self.client.authenticate_user(TestDataFactory.create_system_admin())

        response = self.client.get('/api/v1/livers/', {'status': 'pending'})
        self.assertEqual([row['id'] for row in response.data], [self.other_liver.id])

        response = self.client.get('/api/v1/livers/', {'agency': self.agency.id})
        self.assertEqual([row['id'] for row in response.data], [self.own_liver.id])

        response = self.client.get('/api/v1/livers/', {'search': 'HANA_'})
        self.assertEqual([row['id'] for row in response.data], [self.own_liver.id])

        response = self.client.get('/api/v1/livers/', {'unassigned': 'true'})
        self.assertEqual([row['id'] for row in response.data], [self.unassigned.id])


class LiverUpdateTests(TestCase):
    """Profile edits and status changes"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.agency = TestDataFactory.create_agency()
        self.liver = TestDataFactory.create_liver(agency=self.agency)
        self.agency_user = TestDataFactory.create_agency_user(agency=self.agency)
        self.admin = TestDataFactory.create_system_admin()

    def test_agency_user_updates_own_liver(self):
        self.client.authenticate_user(self.agency_user)
        response = self.client.patch(f'/api/v1/livers/{self.liver.id}/', {
            'contact': '090-0000-0000',
            'email': 'liver@test.com',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.liver.refresh_from_db()
        self.assertEqual(self.liver.contact, '090-0000-0000')
        self.assertTrue(AuditLog.objects.filter(model_name='Liver', object_id=str(self.liver.id)).exists())

    def test_status_and_agency_are_read_only_in_edit(self):
        self.client.authenticate_user(self.agency_user)
        response = self.client.patch(f'/api/v1/livers/{self.liver.id}/', {'status': 'released'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.liver.refresh_from_db()
        self.assertEqual(self.liver.status, 'authorized')

    def test_invalid_email_and_link_rejected(self):
        self.client.authenticate_user(self.agency_user)
        response = self.client.patch(f'/api/v1/livers/{self.liver.id}/', {
            'email': 'not-an-email',
            'link': 'not a url',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('email', response.data)
        self.assertIn('link', response.data)

    def test_other_agency_user_forbidden(self):
        self.client.authenticate_user(TestDataFactory.create_agency_user())
        response = self.client.patch(f'/api/v1/livers/{self.liver.id}/', {'contact': 'x'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_unassigned_liver_admin_only(self):
        liver = TestDataFactory.create_liver()
        self.client.authenticate_user(self.agency_user)
        response = self.client.get(f'/api/v1/livers/{liver.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.client.authenticate_user(self.admin)
        response = self.client.get(f'/api/v1/livers/{liver.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_update_status_admin(self):
        self.client.authenticate_user(self.admin)
        response = self.client.post(f'/api/v1/livers/{self.liver.id}/status/', {'status': 'released'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.liver.refresh_from_db()
        self.assertEqual(self.liver.status, 'released')
        log = AuditLog.objects.get(action='status_change', object_id=str(self.liver.id))
        self.assertEqual(log.changes['status'], {'old': 'authorized', 'new': 'released'})

    def test_update_status_requires_admin(self):
        self.client.authenticate_user(self.agency_user)
        response = self.client.post(f'/api/v1/livers/{self.liver.id}/status/', {'status': 'released'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_update_status_invalid_value(self):
        self.client.authenticate_user(self.admin)
        response = self.client.post(f'/api/v1/livers/{self.liver.id}/status/', {'status': 'gone'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_bulk_update_status(self):
        second = TestDataFactory.create_liver(agency=self.agency)
        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/v1/livers/bulk-status/', {
            'ids': [self.liver.id, second.id, self.liver.id],
            'status': 'completed',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['updated'], 2)
        self.assertEqual(Liver.objects.filter(status='completed').count(), 2)

    def test_bulk_update_empty_ids_rejected(self):
        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/v1/livers/bulk-status/', {'ids': [], 'status': 'completed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class LiverExportTests(TestCase):
    """CSV export"""

    def test_export_has_bom_and_headers(self):
        agency = TestDataFactory.create_agency(name='Alpha')
        TestDataFactory.create_liver(agency=agency, name='Hanako', liver_id='7000000001')
        client = AuthenticatedAPIClient()
        client.authenticate_user(TestDataFactory.create_system_admin())

        response = client.get('/api/v1/livers/export/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'text/csv; charset=utf-8')
        content = response.content.decode('utf-8')
        self.assertTrue(content.startswith('\ufeff'))
        lines = content.lstrip('\ufeff').splitlines()
        self.assertTrue(lines[0].startswith('名前,アカウント名,ライバーID'))
        self.assertIn('Hanako', lines[1])
        self.assertIn('7000000001', lines[1])
        self.assertIn('Alpha', lines[1])
