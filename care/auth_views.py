"""
Authentication views for accounts and admin users.

Accounts register and log in here and receive a bearer token.  Admin
users use the separate ``/api/admin`` login whose tokens are only
accepted by admin endpoints (see ``care.authentication``).
"""
from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from care.authentication import AdminJWTAuthentication
from care.permissions import IsAdminUser, IsSuperAdmin
from care.serializers.admin import (
    AdminChangePasswordSerializer,
    AdminLoginSerializer,
    AdminProfileUpdateSerializer,
    AdminRegisterSerializer,
)
from care.serializers.auth import (
    ChangePasswordSerializer,
    LoginSerializer,
    ProfileUpdateSerializer,
    RegisterSerializer,
    account_payload,
)
from care.services import get_verifier
from care.services.admins import (
    admin_login,
    admin_payload,
    change_admin_password,
    register_admin,
    update_admin_profile,
)


def _client_ip(request):
    return request.META.get('REMOTE_ADDR')


# ---------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------
@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
def register_view(request):
    """
    Create an account.  Required: firstName, lastName, email, password
    (6+ chars) and role (mom, doctor, midwife or service_provider).
    phone, gender, dateOfBirth and address are optional.
    """
    s = RegisterSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    account, token = get_verifier().register(s.to_profile(), s.validated_data['role'], s.validated_data['password'])
    return Response({
        'status': 'success',
        'message': 'User registered successfully',
        'data': {'token': token, 'user': account_payload(account)},
    }, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
def login_view(request):
    s = LoginSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    account, token = get_verifier().login(vd['email'], vd['password'], ip=_client_ip(request))
    return Response({
        'status': 'success',
        'message': 'Login successful',
        'data': {'token': token, 'user': account_payload(account)},
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def logout_view(request):
    # Tokens are stateless; the client discards its copy.
    return Response({'status': 'success', 'message': 'Logged out successfully'})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def me_view(request):
    return Response({'status': 'success', 'data': {'user': account_payload(request.user)}})


@api_view(['PUT'])
@permission_classes([IsAuthenticated])
def profile_view(request):
    s = ProfileUpdateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    account = get_verifier().update_profile(request.user, s.to_fields())
    return Response({
        'status': 'success',
        'message': 'Profile updated successfully',
        'data': {'user': account_payload(account)},
    })


@api_view(['PUT'])
@permission_classes([IsAuthenticated])
def change_password_view(request):
    s = ChangePasswordSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    token = get_verifier().change_password(request.user, vd['currentPassword'], vd['newPassword'])
    return Response({
        'status': 'success',
        'message': 'Password updated successfully',
        'data': {'token': token},
    })


# ---------------------------------------------------------------------
# Admin users
# ---------------------------------------------------------------------
@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
def admin_login_view(request):
    s = AdminLoginSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    admin, token = admin_login(s.validated_data['email'], s.validated_data['password'])
    return Response({
        'status': 'success',
        'message': 'Admin login successful',
        'data': {'token': token, 'admin': admin_payload(admin)},
    })


@api_view(['POST'])
@authentication_classes([AdminJWTAuthentication])
@permission_classes([IsSuperAdmin])
def admin_register_view(request):
    """Create another admin user.  Only a super admin may do this."""
    s = AdminRegisterSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    admin = register_admin(created_by=request.user, **s.validated_data)
    return Response({
        'status': 'success',
        'message': 'Admin registered successfully',
        'data': {'admin': admin_payload(admin)},
    }, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@authentication_classes([AdminJWTAuthentication])
@permission_classes([IsAdminUser])
def admin_me_view(request):
    return Response({'status': 'success', 'data': {'admin': admin_payload(request.user)}})


@api_view(['POST'])
@authentication_classes([AdminJWTAuthentication])
@permission_classes([IsAdminUser])
def admin_logout_view(request):
    return Response({'status': 'success', 'message': 'Admin logged out successfully'})


@api_view(['PUT'])
@authentication_classes([AdminJWTAuthentication])
@permission_classes([IsAdminUser])
def admin_profile_view(request):
    s = AdminProfileUpdateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    admin = update_admin_profile(request.user, s.validated_data)
    return Response({
        'status': 'success',
        'message': 'Admin profile updated successfully',
        'data': {'admin': admin_payload(admin)},
    })


@api_view(['PUT'])
@authentication_classes([AdminJWTAuthentication])
@permission_classes([IsAdminUser])
def admin_change_password_view(request):
    s = AdminChangePasswordSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    token = change_admin_password(request.user, vd['currentPassword'], vd['newPassword'])
    return Response({
        'status': 'success',
        'message': 'Password updated successfully',
        'data': {'token': token},
    })
