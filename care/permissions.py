"""
Custom permission classes for admin endpoints.
"""
from __future__ import annotations

from rest_framework.permissions import BasePermission

from .models import AdminUser


class IsAdminUser(BasePermission):
    """Allow access only to identities issued by the admin login flow."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = getattr(request, 'user', None)
        return bool(isinstance(user, AdminUser) and user.is_active)


class IsSuperAdmin(BasePermission):
    """Only super admins (e.g. to register further admins)."""
    def has_permission(self, request, view) -> bool:
        user = getattr(request, 'user', None)
        return bool(isinstance(user, AdminUser) and user.role == 'super_admin')


class HasAdminPermission(BasePermission):
    """Admin must hold ``required_permission``; super admins always pass."""
    required_permission: str | None = None

    def has_permission(self, request, view) -> bool:
        user = getattr(request, 'user', None)
        if not isinstance(user, AdminUser):
            return False
        if user.role == 'super_admin':
            return True
        return self.required_permission is None or self.required_permission in (user.permissions or [])


class CanManageUsers(HasAdminPermission):
    required_permission = 'user_management'
