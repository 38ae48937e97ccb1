import pytest
from django.core.management import call_command
from rest_framework.test import APIClient

from care.models import Account, AdminUser, PermissionRequest

pytestmark = pytest.mark.django_db


def test_admin_login_and_me(make_admin):
    make_admin(email='boss@example.com', password='adminpass')
    client = APIClient()
    r = client.post('/api/admin/login', {'email': 'BOSS@example.com', 'password': 'adminpass'}, format='json')
    assert r.status_code == 200
    token = r.data['data']['token']
    assert 'password' not in r.data['data']['admin']

    client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')
    r = client.get('/api/admin/me')
    assert r.status_code == 200
    assert r.data['data']['admin']['email'] == 'boss@example.com'

    r = APIClient().post('/api/admin/login', {'email': 'boss@example.com', 'password': 'wrong'}, format='json')
    assert r.status_code == 401
    assert r.data['code'] == 'InvalidCredentials'


def test_account_credentials_do_not_open_admin_login(make_account):
    make_account('mom@example.com', password='secret1')
    r = APIClient().post('/api/admin/login', {'email': 'mom@example.com', 'password': 'secret1'}, format='json')
    assert r.status_code == 401


def test_deactivated_admin_token_rejected(make_admin, client_for):
    admin = make_admin()
    client = client_for(admin)
    AdminUser.objects.filter(pk=admin.pk).update(is_active=False)
    assert client.get('/api/admin/me').status_code == 401


def test_only_super_admin_registers_admins(make_admin, client_for):
    body = {'username': 'helper', 'email': 'helper@example.com', 'password': 'helper1', 'role': 'moderator'}
    plain = client_for(make_admin())
    assert plain.post('/api/admin/register', body, format='json').status_code == 403

    root = client_for(make_admin('root', 'root@example.com', role='super_admin'))
    r = root.post('/api/admin/register', body, format='json')
    assert r.status_code == 201
    assert r.data['data']['admin']['role'] == 'moderator'

    r = root.post('/api/admin/register', body, format='json')
    assert r.status_code == 409


def test_create_admin_command_bootstraps_super_admin():
    call_command('create_admin', username='root', email='Root@Example.com', password='rootpass')
    admin = AdminUser.objects.get(email='root@example.com')
    assert admin.role == 'super_admin'
    assert admin.check_password('rootpass')

    call_command('create_admin', username='root', email='root@example.com', password='newpass')
    admin.refresh_from_db()
    assert admin.check_password('newpass')
    assert AdminUser.objects.count() == 1


def test_user_list_filters_and_stats(admin_client, make_account):
    make_account('mom1@example.com', first_name='Grace')
    make_account('doc1@example.com', role='doctor', first_name='Ngozi')
    make_account('doc2@example.com', role='doctor', is_active=False)

    r = admin_client.get('/api/admin/users', {'role': 'doctor'})
    assert r.status_code == 200
    data = r.data['data']
    assert {u['email'] for u in data['users']} == {'doc1@example.com', 'doc2@example.com'}
    assert data['pagination']['totalUsers'] == 2
    assert data['stats']['totalUsers'] == 3
    assert data['stats']['inactiveUsers'] == 1
    assert data['stats']['byRole']['doctor'] == 2

    r = admin_client.get('/api/admin/users', {'status': 'inactive'})
    assert [u['email'] for u in r.data['data']['users']] == ['doc2@example.com']

    r = admin_client.get('/api/admin/users', {'search': 'grace'})
    assert [u['email'] for u in r.data['data']['users']] == ['mom1@example.com']

    r = admin_client.get('/api/admin/users/stats')
    assert r.status_code == 200
    assert r.data['data']['activeUsers'] == 2


def test_user_status_and_delete(admin_client, make_account):
    account = make_account('doc@example.com', role='doctor')
    PermissionRequest.objects.create(requester_id=account.pk, requester_email=account.email, role='doctor')

    r = admin_client.patch(f'/api/admin/users/{account.pk}/status', {'isActive': False}, format='json')
    assert r.status_code == 200
    assert r.data['data']['user']['isActive'] is False

    r = admin_client.get(f'/api/admin/users/{account.pk}')
    assert r.status_code == 200
    assert 'password' not in r.data['data']['user']

    r = admin_client.delete(f'/api/admin/users/{account.pk}')
    assert r.status_code == 200
    assert not Account.objects.filter(pk=account.pk).exists()
    # requests keep their requester snapshot
    assert PermissionRequest.objects.filter(requester_id=account.pk).count() == 1

    assert admin_client.get(f'/api/admin/users/{account.pk}').status_code == 404


def test_user_management_needs_permission(make_admin, client_for):
    moderator = client_for(make_admin('mod', 'mod@example.com', role='moderator', permissions=[]))
    r = moderator.get('/api/admin/users')
    assert r.status_code == 403
    assert r.data['code'] == 'Forbidden'
    # moderators can still review permission requests
    assert moderator.get('/api/admin/permission-requests').status_code == 200


def test_account_token_rejected_on_user_management(make_account, client_for):
    client = client_for(make_account())
    assert client.get('/api/admin/users').status_code == 401


def test_admin_profile_update(make_admin, client_for):
    make_admin('other', 'other@example.com')
    admin = make_admin()
    client = client_for(admin)

    r = client.put('/api/admin/profile', {'username': 'reviewer', 'email': 'Reviewer@Example.com'}, format='json')
    assert r.status_code == 200
    assert r.data['data']['admin']['username'] == 'reviewer'
    assert r.data['data']['admin']['email'] == 'reviewer@example.com'

    r = client.put('/api/admin/profile', {'email': 'other@example.com'}, format='json')
    assert r.status_code == 409
    assert r.data['code'] == 'DuplicateEmail'

    r = client.put('/api/admin/profile', {'permissions': ['system_config']}, format='json')
    assert r.status_code == 403
    admin.refresh_from_db()
    assert admin.permissions == ['user_management']


def test_super_admin_changes_own_permissions(make_admin, client_for):
    root = client_for(make_admin('root', 'root@example.com', role='super_admin'))
    r = root.put('/api/admin/profile', {'permissions': ['audit_logs', 'system_config']}, format='json')
    assert r.status_code == 200
    assert r.data['data']['admin']['permissions'] == ['audit_logs', 'system_config']


def test_admin_change_password(make_admin, client_for):
    client = client_for(make_admin(email='boss@example.com', password='adminpass'))
    r = client.put('/api/admin/password', {'currentPassword': 'wrong', 'newPassword': 'newadminpass'},
                   format='json')
    assert r.status_code == 401
    assert r.data['code'] == 'InvalidCredentials'

    r = client.put('/api/admin/password', {'currentPassword': 'adminpass', 'newPassword': 'newadminpass'},
                   format='json')
    assert r.status_code == 200
    assert r.data['data']['token']

    login = APIClient().post('/api/admin/login', {'email': 'boss@example.com', 'password': 'adminpass'},
                             format='json')
    assert login.status_code == 401
    login = APIClient().post('/api/admin/login', {'email': 'boss@example.com', 'password': 'newadminpass'},
                             format='json')
    assert login.status_code == 200


def test_admin_logout(make_admin, make_account, client_for):
    assert client_for(make_admin()).post('/api/admin/logout').status_code == 200
    assert client_for(make_account()).post('/api/admin/logout').status_code == 401
