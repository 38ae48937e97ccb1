"""
JWT authentication for account and admin endpoints.

Both classes verify the bearer token signature with simplejwt and then
re-fetch the identity it names, so a deleted or deactivated identity
loses access immediately even though its token is still valid.
Account tokens and admin tokens share a signing key but are told
apart by the ``isAdmin`` claim; neither kind is accepted in place of
the other.
"""
from __future__ import annotations

from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import AuthenticationFailed, InvalidToken

from .models import AdminUser


class AccountJWTAuthentication(JWTAuthentication):
    """Authenticate platform accounts (mom, doctor, midwife, service provider)."""

    def get_user(self, validated_token):
        if validated_token.get('isAdmin'):
            raise InvalidToken('Admin tokens cannot be used for account endpoints')
        return super().get_user(validated_token)


class AdminJWTAuthentication(JWTAuthentication):
    """Authenticate admin users issued a token by the admin login flow."""

    def get_user(self, validated_token):
        if not validated_token.get('isAdmin'):
            raise InvalidToken('Admin token required')
        admin_id = validated_token.get('adminId')
        if admin_id is None:
            raise InvalidToken('Token contained no recognizable admin identification')
        admin = AdminUser.objects.filter(pk=admin_id).first()
        if admin is None:
            raise AuthenticationFailed('Admin user not found', code='user_not_found')
        if not admin.is_active:
            raise AuthenticationFailed('Admin account is deactivated', code='user_inactive')
        return admin
