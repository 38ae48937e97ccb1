import pytest
from django.apps import apps
from rest_framework.test import APIClient

from care.models import Account, AdminUser
from care.services.accounts import issue_token
from care.services.admins import issue_admin_token


@pytest.fixture(autouse=True)
def fast_hashing(settings):
    # bcrypt at full cost makes the suite crawl
    settings.BCRYPT_ROUNDS = 4


class RecordingRelay:
    def __init__(self):
        self.events = []

    def publish(self, room, event, payload):
        self.events.append((room, event, payload))

    def publish_many(self, rooms, event, payload):
        for room in dict.fromkeys(rooms):
            self.publish(room, event, payload)


@pytest.fixture
def relay_events(monkeypatch):
    """Capture everything the app's relay publishes."""
    recorder = RecordingRelay()
    relay = apps.get_app_config('care').relay
    monkeypatch.setattr(relay, 'publish', recorder.publish)
    return recorder.events


@pytest.fixture
def make_account(db):
    def _make(email='mom@example.com', password='secret1', role=Account.ROLE_MOM, **extra):
        extra.setdefault('first_name', 'Test')
        extra.setdefault('last_name', 'User')
        return Account.objects.create_user(email, password, role=role, **extra)
    return _make


@pytest.fixture
def make_admin(db):
    def _make(username='admin1', email='admin1@example.com', password='adminpass', role='admin', **extra):
        extra.setdefault('permissions', ['user_management'])
        return AdminUser.objects.create_admin(username, email, password, role=role, **extra)
    return _make


def _client_for(identity):
    client = APIClient()
    token = issue_admin_token(identity) if isinstance(identity, AdminUser) else issue_token(identity)
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')
    return client


@pytest.fixture
def client_for():
    """Return a factory for an APIClient authenticated as an account or admin."""
    return _client_for


@pytest.fixture
def admin_client(make_admin):
    return _client_for(make_admin())
