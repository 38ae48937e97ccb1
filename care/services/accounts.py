"""
Credential verification for platform accounts.

:class:`CredentialVerifier` owns registration, login with lockout,
password changes and token issuing.  It is handed the account store
(a model manager) when the app starts, so tests can substitute their
own.
"""
from __future__ import annotations

import logging
from typing import Any

from django.db import IntegrityError, OperationalError, transaction
from django.utils import timezone
from rest_framework_simplejwt.tokens import AccessToken

from ..exceptions import (
    AccountInactive,
    AccountLocked,
    DuplicateEmail,
    InvalidCredentials,
    InvalidRole,
    ServiceUnavailable,
)
from .audit import log_action

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ('first_name', 'last_name', 'phone', 'avatar', 'address', 'preferences')


def issue_token(account) -> str:
    """Signed access token carrying ``accountId``, ``role`` and ``email``."""
    token = AccessToken.for_user(account)
    token['role'] = account.role
    token['email'] = account.email
    return str(token)


class CredentialVerifier:
    def __init__(self, *, accounts):
        self.accounts = accounts

    def _find(self, email: str):
        return self.accounts.filter(email__iexact=(email or '').strip()).first()

    def register(self, profile: dict[str, Any], role: str, password: str):
        """Create an account and return ``(account, token)``."""
        from ..models import Account

        if role not in Account.REGISTRATION_ROLES:
            raise InvalidRole('Invalid role. Must be mom, doctor, midwife, or service_provider')
        email = profile.pop('email').strip().lower()
        try:
            if self._find(email) is not None:
                raise DuplicateEmail()
            with transaction.atomic():
                account = self.accounts.create_user(email, password, role=role, **profile)
        except IntegrityError:
            # lost a race with a concurrent registration of the same email
            raise DuplicateEmail()
        except OperationalError:
            logger.error('Storage unavailable while registering %s', email, exc_info=True)
            raise ServiceUnavailable()

        logger.info('Registered account %s with role %s', account.pk, role)
        try:
            log_action(user=account, action='register', object_type='account', object_id=account.pk,
                       detail={'role': role})
        except Exception:
            logger.warning('Audit write failed for register', exc_info=True)
        return account, issue_token(account)

    def login(self, email: str, password: str, *, ip: str | None = None):
        """Return ``(account, token)``.

        Unknown e-mail and wrong password fail identically.  A locked
        account fails with :class:`AccountLocked` even when the password
        is correct.
        """
        account = self._find(email)
        if account is None:
            self._audit_failure(None, email, ip)
            raise InvalidCredentials()
        if account.is_locked:
            raise AccountLocked()
        if not account.check_password(password):
            account.register_failed_login()
            self._audit_failure(account, email, ip)
            if account.is_locked:
                logger.warning('Account %s locked after %s failed logins', account.pk, account.login_attempts)
            raise InvalidCredentials()
        if not account.is_active:
            raise AccountInactive()

        account.register_successful_login()
        try:
            log_action(user=account, action='login', object_type='account', object_id=account.pk,
                       detail={'result': 'ok', 'ip': ip})
        except Exception:
            logger.warning('Audit write failed for login', exc_info=True)
        return account, issue_token(account)

    def _audit_failure(self, account, email, ip):
        try:
            log_action(user=account, action='login', object_type='account',
                       object_id=getattr(account, 'pk', None),
                       detail={'result': 'fail', 'email': email, 'ip': ip})
        except Exception:
            logger.warning('Audit write failed for login', exc_info=True)

    def change_password(self, account, current: str, new: str) -> str:
        if not account.check_password(current):
            raise InvalidCredentials('Current password is incorrect')
        account.set_password(new)
        account.password_changed_at = timezone.now()
        account.save(update_fields=['password', 'password_changed_at'])
        logger.info('Password changed for account %s', account.pk)
        return issue_token(account)

    def update_profile(self, account, fields: dict[str, Any]):
        changed = [name for name in PROFILE_FIELDS if name in fields]
        for name in changed:
            setattr(account, name, fields[name])
        if changed:
            account.save(update_fields=changed)
        return account
