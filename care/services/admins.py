"""
Admin credential flow.

Admin users authenticate separately from accounts.  Their tokens use
the same signing key but carry ``isAdmin`` and ``adminId`` claims
instead of ``accountId``.
"""
from __future__ import annotations

import logging

from django.db import IntegrityError, transaction
from django.utils import timezone
from rest_framework.exceptions import PermissionDenied
from rest_framework_simplejwt.tokens import AccessToken

from ..exceptions import AccountInactive, DuplicateEmail, InvalidCredentials
from ..models import AdminUser
from .audit import log_action

logger = logging.getLogger(__name__)


def issue_admin_token(admin: AdminUser) -> str:
    token = AccessToken()
    token['adminId'] = admin.pk
    token['role'] = admin.role
    token['email'] = admin.email
    token['username'] = admin.username
    token['isAdmin'] = True
    return str(token)


def admin_login(email: str, password: str):
    admin = AdminUser.objects.filter(email__iexact=(email or '').strip()).first()
    if admin is None or not admin.check_password(password):
        logger.info('Failed admin login for %s', email)
        raise InvalidCredentials()
    if not admin.is_active:
        raise AccountInactive('Admin account is deactivated')
    admin.last_login = timezone.now()
    admin.save(update_fields=['last_login'])
    try:
        log_action(user=admin, action='admin_login', object_type='admin', object_id=admin.pk)
    except Exception:
        logger.warning('Audit write failed for admin login', exc_info=True)
    return admin, issue_admin_token(admin)


def register_admin(*, username: str, email: str, password: str, role: str = 'admin',
                   permissions: list[str] | None = None, created_by: AdminUser | None = None) -> AdminUser:
    email = email.strip().lower()
    if AdminUser.objects.filter(email__iexact=email).exists() or \
            AdminUser.objects.filter(username=username.strip()).exists():
        raise DuplicateEmail('Admin with this email or username already exists')
    try:
        with transaction.atomic():
            admin = AdminUser.objects.create_admin(username, email, password, role=role,
                                                   permissions=list(permissions or []))
    except IntegrityError:
        raise DuplicateEmail('Admin with this email or username already exists')
    logger.info('Admin %s registered with role %s', admin.pk, role)
    if created_by is not None:
        try:
            log_action(user=created_by, action='admin_register', object_type='admin', object_id=admin.pk)
        except Exception:
            logger.warning('Audit write failed for admin register', exc_info=True)
    return admin


def update_admin_profile(admin: AdminUser, fields: dict) -> AdminUser:
    """Apply username, email and permissions changes to ``admin``.

    Only a super admin may change the permission list.
    """
    changed = []
    if 'username' in fields:
        username = fields['username'].strip()
        if AdminUser.objects.filter(username=username).exclude(pk=admin.pk).exists():
            raise DuplicateEmail('Admin with this email or username already exists')
        admin.username = username
        changed.append('username')
    if 'email' in fields:
        email = fields['email'].strip().lower()
        if AdminUser.objects.filter(email__iexact=email).exclude(pk=admin.pk).exists():
            raise DuplicateEmail('Admin with this email or username already exists')
        admin.email = email
        changed.append('email')
    if 'permissions' in fields:
        if admin.role != 'super_admin':
            raise PermissionDenied('Only a super admin can change permissions')
        admin.permissions = list(fields['permissions'])
        changed.append('permissions')
    if changed:
        try:
            with transaction.atomic():
                admin.save(update_fields=changed)
        except IntegrityError:
            raise DuplicateEmail('Admin with this email or username already exists')
        logger.info('Admin %s updated %s', admin.pk, ', '.join(changed))
    return admin


def change_admin_password(admin: AdminUser, current: str, new: str) -> str:
    if not admin.check_password(current):
        raise InvalidCredentials('Current password is incorrect')
    admin.set_password(new)
    admin.save(update_fields=['password'])
    logger.info('Password changed for admin %s', admin.pk)
    try:
        log_action(user=admin, action='admin_password_change', object_type='admin', object_id=admin.pk)
    except Exception:
        logger.warning('Audit write failed for admin password change', exc_info=True)
    return issue_admin_token(admin)


def admin_payload(admin: AdminUser) -> dict:
    return {
        'id': admin.pk,
        'username': admin.username,
        'email': admin.email,
        'role': admin.role,
        'permissions': list(admin.permissions or []),
        'isActive': admin.is_active,
        'lastLogin': admin.last_login.isoformat() if admin.last_login else None,
        'createdAt': admin.created_at.isoformat() if admin.created_at else None,
    }
