"""
Tests for authentication, profiles, e-mail helpers and audit logging
"""
from io import StringIO
from unittest import mock

from django.contrib.auth import get_user_model
from django.contrib.auth.tokens import default_token_generator
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase, override_settings
from django.utils.encoding import force_bytes
from django.utils.http import urlsafe_base64_encode
from rest_framework import status

import requests

from backend.core.auth import can_view_agency, get_profile, viewable_agency_ids
from backend.core.constants import ROLE_AGENCY_USER, ROLE_SYSTEM_ADMIN
from backend.core.emails import escape_html, get_valid_app_url, send_email
from backend.core.exceptions import EmailDeliveryError
from backend.core.models import AuditLog, Profile
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.core.utils import create_audit_log


class ProfileTests(TestCase):
    """Profile provisioning and agency scope"""

    def test_new_user_gets_agency_user_profile(self):
        user = TestDataFactory.create_user()
        self.assertEqual(Profile.objects.get(user=user).role, ROLE_AGENCY_USER)

    def test_superuser_gets_system_admin_profile(self):
        user = TestDataFactory.create_user(is_superuser=True, is_staff=True)
        self.assertEqual(get_profile(user).role, ROLE_SYSTEM_ADMIN)

    def test_get_profile_creates_missing_profile(self):
        user = TestDataFactory.create_user()
        Profile.objects.filter(user=user).delete()
        profile = get_profile(type(user).objects.get(pk=user.pk))
        self.assertEqual(profile.role, ROLE_AGENCY_USER)

    def test_system_admin_is_unrestricted(self):
        admin = TestDataFactory.create_system_admin()
        agency = TestDataFactory.create_agency()
        self.assertIsNone(viewable_agency_ids(admin))
        self.assertTrue(can_view_agency(admin, agency.id))

    def test_agency_user_scope(self):
        child = TestDataFactory.create_agency()
        user = TestDataFactory.create_agency_user(viewable=[child])
        other = TestDataFactory.create_agency()
        own_agency = get_profile(user).agency
        self.assertEqual(viewable_agency_ids(user), {own_agency.id, child.id})
        self.assertTrue(can_view_agency(user, child.id))
        self.assertFalse(can_view_agency(user, other.id))
        self.assertFalse(can_view_agency(user, None))


class AuthAPITests(TestCase):
    """Login, me and password endpoints"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.user = TestDataFactory.create_agency_user(username='agent', email='agent@test.com')

    def test_login_with_email(self):
        response = self.client.post('/api/v1/auth/login/', {
            'username': 'Agent@test.com',
            'password': 'testpass123',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)
        self.assertEqual(response.data['role'], ROLE_AGENCY_USER)
        self.assertEqual(response.data['agency_id'], get_profile(self.user).agency_id)

    def test_login_wrong_password(self):
        response = self.client.post('/api/v1/auth/login/', {
            'username': 'agent@test.com',
            'password': 'wrong',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_login_inactive_user_rejected(self):
        self.user.is_active = False
        self.user.save()
        response = self.client.post('/api/v1/auth/login/', {
            'username': 'agent',
            'password': 'testpass123',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_refresh(self):
        login = self.client.post('/api/v1/auth/login/', {
            'username': 'agent',
            'password': 'testpass123',
        }, format='json')
        response = self.client.post('/api/v1/auth/refresh/', {'refresh': login.data['refresh']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)

    def test_me(self):
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        profile = get_profile(self.user)
        self.assertEqual(response.data['email'], 'agent@test.com')
        self.assertEqual(response.data['role'], ROLE_AGENCY_USER)
        self.assertFalse(response.data['is_system_admin'])
        self.assertEqual(response.data['agency_id'], profile.agency_id)
        self.assertEqual(response.data['viewable_agency_ids'], [profile.agency_id])

    def test_me_requires_authentication(self):
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_change_password(self):
        self.client.authenticate_user(self.user)
        response = self.client.post('/api/v1/auth/change-password/', {
            'current_password': 'testpass123',
            'new_password': 'Sturdy-Passw0rd!',
            'new_password_confirm': 'Sturdy-Passw0rd!',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('Sturdy-Passw0rd!'))
        self.assertTrue(AuditLog.objects.filter(action='password_change', object_id=str(self.user.id)).exists())

    def test_change_password_wrong_current(self):
        self.client.authenticate_user(self.user)
        response = self.client.post('/api/v1/auth/change-password/', {
            'current_password': 'nope',
            'new_password': 'Sturdy-Passw0rd!',
            'new_password_confirm': 'Sturdy-Passw0rd!',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_change_password_too_weak(self):
        self.client.authenticate_user(self.user)
        response = self.client.post('/api/v1/auth/change-password/', {
            'current_password': 'testpass123',
            'new_password': '123',
            'new_password_confirm': '123',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('testpass123'))


@override_settings(RESEND_API_KEY='re_test', APP_URL='https://app.example.com/some/path')
class PasswordResetTests(TestCase):
    """Password reset request and confirmation"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.user = TestDataFactory.create_user(email='reset@test.com')

    @mock.patch('backend.core.views.send_password_reset_email')
    def test_request_sends_link(self, mock_send):
        response = self.client.post('/api/v1/auth/password-reset/', {'email': 'RESET@test.com'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])
        email, link = mock_send.call_args[0]
        self.assertEqual(email, 'reset@test.com')
        self.assertTrue(link.startswith('https://app.example.com/reset-password?uid='))

    @mock.patch('backend.core.views.send_password_reset_email')
    def test_request_unknown_email_reports_success(self, mock_send):
        response = self.client.post('/api/v1/auth/password-reset/', {'email': 'nobody@test.com'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])
        mock_send.assert_not_called()

    @mock.patch('backend.core.views.send_password_reset_email', side_effect=EmailDeliveryError('down'))
    def test_request_email_failure_still_succeeds(self, mock_send):
        response = self.client.post('/api/v1/auth/password-reset/', {'email': 'reset@test.com'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_confirm(self):
        uid = urlsafe_base64_encode(force_bytes(self.user.pk))
        token = default_token_generator.make_token(self.user)
        response = self.client.post('/api/v1/auth/password-reset/confirm/', {
            'uid': uid,
            'token': token,
            'new_password': 'Another-Passw0rd!',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('Another-Passw0rd!'))

    def test_confirm_bad_token(self):
        uid = urlsafe_base64_encode(force_bytes(self.user.pk))
        response = self.client.post('/api/v1/auth/password-reset/confirm/', {
            'uid': uid,
            'token': 'bad-token',
            'new_password': 'Another-Passw0rd!',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class EmailHelperTests(TestCase):
    """App URL resolution, escaping and the Resend client"""

    def test_escape_html(self):
        self.assertEqual(escape_html('<a href="x">\'&'), '&lt;a href=&quot;x&quot;&gt;&#039;&amp;')

    @override_settings(APP_URL='https://app.example.com/path?q=1')
    def test_valid_app_url_uses_origin(self):
        self.assertEqual(get_valid_app_url(), 'https://app.example.com')

    @override_settings(APP_URL='javascript:alert(1)')
    def test_invalid_scheme_falls_back(self):
        self.assertEqual(get_valid_app_url(), 'http://localhost:3000')

    @override_settings(APP_URL='')
    def test_missing_url_falls_back(self):
        self.assertEqual(get_valid_app_url(), 'http://localhost:3000')

    @override_settings(RESEND_API_KEY='')
    def test_send_without_api_key_raises(self):
        with self.assertRaises(EmailDeliveryError):
            send_email('a@test.com', 'subject', '<p>hi</p>')

    @override_settings(RESEND_API_KEY='re_test', EMAIL_FROM='Tool <noreply@test.com>')
    @mock.patch('backend.core.emails.requests.post')
    def test_send_posts_to_resend(self, mock_post):
        mock_post.return_value = mock.Mock(ok=True, status_code=200)
        send_email('a@test.com', 'subject', '<p>hi</p>')
        kwargs = mock_post.call_args[1]
        self.assertEqual(kwargs['json']['to'], ['a@test.com'])
        self.assertEqual(kwargs['json']['from'], 'Tool <noreply@test.com>')
        self.assertEqual(kwargs['headers']['Authorization'], 'Bearer re_test')

    @override_settings(RESEND_API_KEY='re_test')
    @mock.patch('backend.core.emails.requests.post')
    def test_send_provider_error_raises(self, mock_post):
        mock_post.return_value = mock.Mock(ok=False, status_code=422, text='invalid')
        with self.assertRaises(EmailDeliveryError):
            send_email('a@test.com', 'subject', '<p>hi</p>')

    @override_settings(RESEND_API_KEY='re_test')
    @mock.patch('backend.core.emails.requests.post', side_effect=requests.ConnectionError('refused'))
    def test_send_transport_error_raises(self, mock_post):
        with self.assertRaises(EmailDeliveryError):
            send_email('a@test.com', 'subject', '<p>hi</p>')


class AuditLogTests(TestCase):
    """Audit helper and admin-only listing"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.admin = TestDataFactory.create_system_admin()

    def test_create_audit_log(self):
        log = create_audit_log(action='csv_import', model_name='MonthlyReport', object_id=5,
                               user=self.admin, object_reference='2025-01', changes={'total_rows': 3})
        self.assertEqual(log.object_id, '5')
        self.assertEqual(log.user, self.admin)
        self.assertEqual(log.changes, {'total_rows': 3})

    def test_missing_fields_skipped(self):
        self.assertIsNone(create_audit_log(action='csv_import', model_name='MonthlyReport'))
        self.assertEqual(AuditLog.objects.count(), 0)

    def test_list_requires_admin(self):
        self.client.authenticate_user(TestDataFactory.create_agency_user())
        response = self.client.get('/api/v1/audit-logs/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_list_filters_by_action(self):
        create_audit_log(action='csv_import', model_name='MonthlyReport', object_id=1, user=self.admin)
        create_audit_log(action='rate_change', model_name='MonthlyReport', object_id=1, user=self.admin)
        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/audit-logs/', {'action': 'rate_change'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['action'], 'rate_change')


class ManagementCommandTests(TestCase):
    """sync_profiles and create_system_admin"""

    def test_sync_profiles_links_owned_agency(self):
        user = TestDataFactory.create_user()
        agency = TestDataFactory.create_agency(user=user)
        Profile.objects.filter(user=user).delete()

        out = StringIO()
        call_command('sync_profiles', stdout=out)

        profile = Profile.objects.get(user=user)
        self.assertEqual(profile.role, ROLE_AGENCY_USER)
        self.assertEqual(profile.agency, agency)
        self.assertTrue(profile.viewable_agencies.filter(pk=agency.pk).exists())
        self.assertIn('Profiles created: 1, own-agency grants: 1', out.getvalue())

    def test_sync_profiles_grants_own_agency(self):
        user = TestDataFactory.create_agency_user()
        profile = get_profile(user)
        profile.viewable_agencies.clear()

        call_command('sync_profiles', stdout=StringIO())
        refreshed = Profile.objects.get(user=user)
        self.assertEqual(list(refreshed.viewable_agencies.values_list('id', flat=True)), [profile.agency_id])

    def test_sync_profiles_dry_run_writes_nothing(self):
        user = TestDataFactory.create_user()
        Profile.objects.filter(user=user).delete()

        out = StringIO()
        call_command('sync_profiles', '--dry-run', stdout=out)
        self.assertFalse(Profile.objects.filter(user=user).exists())
        self.assertIn('[dry run]', out.getvalue())

    def test_create_system_admin_new_user(self):
        call_command('create_system_admin', 'Root@Example.com', '--password', 's3cret-pass!', stdout=StringIO())
        user = get_user_model().objects.get(email='root@example.com')
        self.assertTrue(user.check_password('s3cret-pass!'))
        self.assertTrue(user.is_staff)
        self.assertEqual(get_profile(user).role, ROLE_SYSTEM_ADMIN)

    def test_create_system_admin_promotes_existing_user(self):
        user = TestDataFactory.create_agency_user()
        call_command('create_system_admin', user.email, stdout=StringIO())
        self.assertEqual(Profile.objects.get(user=user).role, ROLE_SYSTEM_ADMIN)

    def test_create_system_admin_requires_password_for_new_user(self):
        with self.assertRaises(CommandError):
            call_command('create_system_admin', 'nobody@example.com', stdout=StringIO())
        self.assertFalse(Profile.objects.filter(user__email='nobody@example.com').exists())
