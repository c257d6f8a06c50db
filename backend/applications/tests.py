"""
Tests for application submission, visibility and the status workflow
"""
from django.test import TestCase
from rest_framework import status

from backend.applications.models import Application
from backend.applications.services import should_create_liver, update_application_status
from backend.core.exceptions import Conflict
from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.livers.models import Liver


class ApplicationSubmitTests(TestCase):
    """Submitting and listing applications"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.agency = TestDataFactory.create_agency(name='Alpha')
        self.agency_user = TestDataFactory.create_agency_user(agency=self.agency)
        self.client.authenticate_user(self.agency_user)

    def test_submit(self):
        response = self.client.post('/api/v1/applications/', {
            'form_tab': 'affiliation_check',
            'name': 'Hanako',
            'email': '',
            'tiktok_username': 'hana_live',
            'agency': self.agency.id,
            'form_data': {'follower_count': 1200},
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'pending')
        self.assertEqual(response.data['agency_name'], 'Alpha')
        application = Application.objects.get(pk=response.data['id'])
        self.assertIsNone(application.email)
        self.assertEqual(application.submitted_by, self.agency_user)
        self.assertTrue(AuditLog.objects.filter(action='application_create', object_id=str(application.id)).exists())

    def test_status_cannot_be_set_on_submit(self):
        response = self.client.post('/api/v1/applications/', {
            'form_tab': 'streaming_auth', 'status': 'authorized',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'pending')

    def test_submit_for_other_agency_forbidden(self):
        other = TestDataFactory.create_agency()
        response = self.client.post('/api/v1/applications/', {
            'form_tab': 'streaming_auth', 'agency': other.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(Application.objects.exists())

    def test_invalid_form_tab(self):
        response = self.client.post('/api/v1/applications/', {'form_tab': 'unknown'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_form_data_must_be_object(self):
        response = self.client.post('/api/v1/applications/', {
            'form_tab': 'objection', 'form_data': ['a', 'b'],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('form_data', response.data)

    def test_list_scoped(self):
        own = Application.objects.create(form_tab='streaming_auth', agency=self.agency)
        mine_without_agency = Application.objects.create(form_tab='objection', submitted_by=self.agency_user)
        Application.objects.create(form_tab='objection', agency=TestDataFactory.create_agency())

        response = self.client.get('/api/v1/applications/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual({row['id'] for row in response.data}, {own.id, mine_without_agency.id})

    def test_list_filters(self):
        Application.objects.create(form_tab='streaming_auth', agency=self.agency)
        rejected = Application.objects.create(form_tab='objection', agency=self.agency, status='rejected')

        response = self.client.get('/api/v1/applications/', {'status': 'rejected'})
        self.assertEqual([row['id'] for row in response.data], [rejected.id])

        response = self.client.get('/api/v1/applications/', {'form_tab': 'objection'})
        self.assertEqual([row['id'] for row in response.data], [rejected.id])

    def test_detail_forbidden_for_other_agency(self):
        application = Application.objects.create(form_tab='objection', agency=TestDataFactory.create_agency())
        response = self.client.get(f'/api/v1/applications/{application.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_detail_visible_to_submitter(self):
        application = Application.objects.create(form_tab='objection', submitted_by=self.agency_user)
        response = self.client.get(f'/api/v1/applications/{application.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['form_tab_display'], '事務所用 異議申し立て')


class ApplicationStatusServiceTests(TestCase):
    """Status transitions and liver creation"""

    def setUp(self):
        self.agency = TestDataFactory.create_agency()
        self.application = Application.objects.create(
            form_tab='affiliation_check',
            name='Hanako',
            tiktok_username='hana_live',
            tiktok_account_link='https://www.tiktok.com/@hana_live',
            agency=self.agency,
        )

    def test_authorizing_affiliation_check_creates_liver(self):
        application, liver = update_application_status(self.application, 'authorized')
        self.assertEqual(application.status, 'authorized')
        self.assertIsNotNone(liver)
        self.assertEqual(liver.agency, self.agency)
        self.assertEqual(liver.status, 'authorized')
        self.assertEqual(liver.tiktok_username, 'hana_live')
        self.assertEqual(liver.link, 'https://www.tiktok.com/@hana_live')
        self.assertEqual(application.liver, liver)

    def test_other_forms_do_not_create_liver(self):
        self.application.form_tab = 'streaming_auth'
        self.application.save()
        _, liver = update_application_status(self.application, 'authorized')
        self.assertIsNone(liver)
        self.assertFalse(Liver.objects.exists())

    def test_no_liver_without_agency(self):
        self.application.agency = None
        self.assertFalse(should_create_liver(self.application, 'authorized'))

    def test_no_second_liver(self):
        update_application_status(self.application, 'authorized')
        self.application.refresh_from_db()
        update_application_status(self.application, 'pending')
        self.application.refresh_from_db()
        _, liver = update_application_status(self.application, 'authorized')
        self.assertIsNone(liver)
        self.assertEqual(Liver.objects.count(), 1)

    def test_stale_expected_status_conflicts(self):
        Application.objects.filter(pk=self.application.pk).update(status='rejected')
        with self.assertRaises(Conflict) as ctx:
            update_application_status(self.application, 'authorized', expected_status='pending')
        self.assertEqual(ctx.exception.details['current_status'], 'rejected')
        self.assertFalse(Liver.objects.exists())


class ApplicationStatusAPITests(TestCase):
    """Status endpoint"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.agency = TestDataFactory.create_agency()
        self.application = Application.objects.create(
            form_tab='affiliation_check', name='Hanako', agency=self.agency,
        )
        self.url = f'/api/v1/applications/{self.application.id}/status/'

    def test_admin_authorizes(self):
        self.client.authenticate_user(TestDataFactory.create_system_admin())
        response = self.client.post(self.url, {'status': 'authorized', 'expected_status': 'pending'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'authorized')
        liver = Liver.objects.get()
        self.assertEqual(response.data['created_liver_id'], liver.id)
        log = AuditLog.objects.get(action='status_change', model_name='Application')
        self.assertEqual(log.changes['status'], {'old': 'pending', 'new': 'authorized'})
        self.assertEqual(log.changes['created_liver_id'], liver.id)

    def test_conflict_reports_current_status(self):
        Application.objects.filter(pk=self.application.pk).update(status='rejected')
        self.client.authenticate_user(TestDataFactory.create_system_admin())
        response = self.client.post(self.url, {'status': 'authorized', 'expected_status': 'pending'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['current_status'], 'rejected')

    def test_invalid_status(self):
        self.client.authenticate_user(TestDataFactory.create_system_admin())
        response = self.client.post(self.url, {'status': 'approved'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_agency_user_forbidden(self):
        self.client.authenticate_user(TestDataFactory.create_agency_user(agency=self.agency))
        response = self.client.post(self.url, {'status': 'authorized'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
