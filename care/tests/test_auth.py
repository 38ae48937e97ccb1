"""
Integration tests for account authentication.

Covers registration, login with lockout, the profile endpoints and
password changes through DRF's APIClient.
"""
from datetime import timedelta

from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from ..models import Account, AdminUser
from ..services.admins import issue_admin_token


class AuthAPITests(APITestCase):
    def setUp(self) -> None:
        self.client = APIClient()
        self.payload = {
            'firstName': 'Ada',
            'lastName': 'Okafor',
            'email': 'a@x.com',
            'password': 'secret1',
            'role': 'doctor',
        }

    def register(self, **overrides):
        return self.client.post('/api/auth/register', {**self.payload, **overrides}, format='json')

    def login(self, email='a@x.com', password='secret1'):
        return self.client.post('/api/auth/login', {'email': email, 'password': password}, format='json')

    def test_register_then_login(self):
        r = self.register()
        self.assertEqual(r.status_code, status.HTTP_201_CREATED)
        self.assertEqual(r.data['status'], 'success')
        self.assertTrue(r.data['data']['token'])
        self.assertEqual(r.data['data']['user']['role'], 'doctor')

        r = self.login()
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertTrue(r.data['data']['token'])

        r = self.login(password='wrong-password')
        self.assertEqual(r.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(r.data['status'], 'error')
        self.assertEqual(r.data['code'], 'InvalidCredentials')

    def test_password_hash_is_never_exposed(self):
        r = self.register()
        user = r.data['data']['user']
        self.assertNotIn('password', user)
        account = Account.objects.get(email='a@x.com')
        self.assertNotEqual(account.password, 'secret1')
        self.assertTrue(account.password.startswith('bcrypt_sha256$'))

        token = r.data['data']['token']
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')
        me = self.client.get('/api/auth/me')
        self.assertEqual(me.status_code, 200)
        self.assertNotIn('password', me.data['data']['user'])
        self.assertNotIn(account.password, str(me.content))

    def test_duplicate_email_is_case_insensitive(self):
        self.assertEqual(self.register().status_code, 201)
        r = self.register(email='A@X.COM')
        self.assertEqual(r.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(r.data['code'], 'DuplicateEmail')

    def test_register_validation_lists_fields(self):
        r = self.client.post('/api/auth/register', {'email': 'bad', 'password': '123', 'role': 'admin'},
                             format='json')
        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.data['code'], 'ValidationError')
        for field in ('firstName', 'lastName', 'email', 'password', 'role'):
            self.assertIn(field, r.data['errors'])

    def test_unknown_email_looks_like_wrong_password(self):
        self.register()
        unknown = self.login(email='nobody@x.com')
        wrong = self.login(password='nope-nope')
        self.assertEqual(unknown.status_code, wrong.status_code)
        self.assertEqual(unknown.data['code'], wrong.data['code'])
        self.assertEqual(unknown.data['message'], wrong.data['message'])

    def test_lockout_after_five_failures_even_with_correct_password(self):
        self.register()
        for _ in range(5):
            self.assertEqual(self.login(password='wrong-pass').status_code, 401)
        r = self.login()
        self.assertEqual(r.status_code, status.HTTP_423_LOCKED)
        self.assertEqual(r.data['code'], 'AccountLocked')

        account = Account.objects.get(email='a@x.com')
        self.assertEqual(account.login_attempts, 5)
        self.assertGreater(account.lock_until, timezone.now() + timedelta(minutes=110))

    def test_failed_logins_from_stale_copies_all_count(self):
        self.register()
        first = Account.objects.get(email='a@x.com')
        second = Account.objects.get(email='a@x.com')
        first.register_failed_login()
        second.register_failed_login()
        self.assertEqual(Account.objects.get(email='a@x.com').login_attempts, 2)
        self.assertEqual(second.login_attempts, 2)

        copies = [Account.objects.get(email='a@x.com') for _ in range(3)]
        for copy in copies:
            copy.register_failed_login()
        account = Account.objects.get(email='a@x.com')
        self.assertEqual(account.login_attempts, 5)
        self.assertTrue(account.is_locked)

    def test_expired_lock_is_cleared(self):
        self.register()
        for _ in range(5):
            self.login(password='wrong-pass')
        Account.objects.filter(email='a@x.com').update(lock_until=timezone.now() - timedelta(seconds=1))

        self.assertEqual(self.login(password='wrong-pass').status_code, 401)
        account = Account.objects.get(email='a@x.com')
        self.assertEqual(account.login_attempts, 1)
        self.assertIsNone(account.lock_until)

        self.assertEqual(self.login().status_code, 200)
        account.refresh_from_db()
        self.assertEqual(account.login_attempts, 0)
        self.assertIsNotNone(account.last_login)

    def test_inactive_account_cannot_log_in(self):
        self.register()
        Account.objects.filter(email='a@x.com').update(is_active=False)
        r = self.login()
        self.assertEqual(r.status_code, 401)
        self.assertEqual(r.data['code'], 'AccountInactive')

    def test_change_password(self):
        token = self.register().data['data']['token']
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')

        r = self.client.put('/api/auth/password', {'currentPassword': 'nope-nope', 'newPassword': 'newsecret'},
                            format='json')
        self.assertEqual(r.status_code, 401)
        self.assertEqual(r.data['code'], 'InvalidCredentials')

        r = self.client.put('/api/auth/password', {'currentPassword': 'secret1', 'newPassword': 'newsecret'},
                            format='json')
        self.assertEqual(r.status_code, 200)
        self.assertTrue(r.data['data']['token'])
        self.assertIsNotNone(Account.objects.get(email='a@x.com').password_changed_at)

        self.client.credentials()
        self.assertEqual(self.login().status_code, 401)
        self.assertEqual(self.login(password='newsecret').status_code, 200)

    def test_profile_update_ignores_role(self):
        token = self.register().data['data']['token']
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')
        r = self.client.put('/api/auth/profile', {'firstName': 'Adaeze', 'phone': '555-0100', 'role': 'admin'},
                            format='json')
        self.assertEqual(r.status_code, 200)
        user = r.data['data']['user']
        self.assertEqual(user['firstName'], 'Adaeze')
        self.assertEqual(user['phone'], '555-0100')
        self.assertEqual(user['role'], 'doctor')

    def test_me_requires_token(self):
        r = self.client.get('/api/auth/me')
        self.assertEqual(r.status_code, 401)
        self.assertEqual(r.data['code'], 'Unauthorized')

    def test_admin_token_rejected_on_account_endpoint(self):
        admin = AdminUser.objects.create_admin('root', 'root@example.com', 'adminpass', role='super_admin')
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {issue_admin_token(admin)}')
        r = self.client.get('/api/auth/me')
        self.assertEqual(r.status_code, 401)

    def test_deactivated_account_token_stops_working(self):
        token = self.register().data['data']['token']
        Account.objects.filter(email='a@x.com').update(is_active=False)
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')
        self.assertEqual(self.client.get('/api/auth/me').status_code, 401)
