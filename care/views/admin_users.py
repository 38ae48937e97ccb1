"""
Admin management of platform accounts.

Deleting an account leaves its permission requests in place; they keep
their requester snapshot.
"""
from __future__ import annotations

import logging
import math
from datetime import timedelta

from django.db.models import Count, Q
from django.utils import timezone
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.response import Response

from ..authentication import AdminJWTAuthentication
from ..exceptions import NotFound
from ..models import Account
from ..permissions import CanManageUsers
from ..serializers.admin import UserListQuerySerializer, UserStatusSerializer
from ..serializers.auth import account_payload
from ..services.audit import log_action

logger = logging.getLogger(__name__)


def _get_account(user_id: int) -> Account:
    account = Account.objects.filter(pk=user_id).first()
    if account is None:
        raise NotFound('User not found')
    return account


def _user_stats() -> dict:
    agg = Account.objects.aggregate(
        total=Count('id'),
        active=Count('id', filter=Q(is_active=True)),
        approved=Count('id', filter=Q(is_approved=True)),
        recent=Count('id', filter=Q(date_joined__gte=timezone.now() - timedelta(days=30))),
    )
    by_role = dict.fromkeys(Account.REGISTRATION_ROLES, 0)
    for row in Account.objects.order_by().values('role').annotate(n=Count('id')):
        by_role[row['role']] = row['n']
    return {
        'totalUsers': agg['total'],
        'activeUsers': agg['active'],
        'inactiveUsers': agg['total'] - agg['active'],
        'approvedUsers': agg['approved'],
        'newUsersLast30Days': agg['recent'],
        'byRole': by_role,
    }


def _audit(request, action, account_id, detail=None):
    try:
        log_action(user=request.user, action=action, object_type='account', object_id=account_id, detail=detail)
    except Exception:
        logger.warning('Audit write failed for %s', action, exc_info=True)


@api_view(['GET'])
@authentication_classes([AdminJWTAuthentication])
@permission_classes([CanManageUsers])
def list_users(request):
    q = UserListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data

    qs = Account.objects.all()
    if vd.get('role'):
        qs = qs.filter(role=vd['role'])
    if vd.get('status'):
        qs = qs.filter(is_active=vd['status'] == 'active')
    term = (vd.get('search') or '').strip()
    if term:
        qs = qs.filter(Q(first_name__icontains=term) | Q(last_name__icontains=term) | Q(email__icontains=term))

    page, limit = vd['page'], vd['limit']
    total = qs.count()
    total_pages = math.ceil(total / limit) if total else 0
    rows = qs.order_by('-date_joined', '-id')[(page - 1) * limit:page * limit]
    return Response({
        'status': 'success',
        'data': {
            'users': [account_payload(a) for a in rows],
            'pagination': {
                'currentPage': page,
                'totalPages': total_pages,
                'totalUsers': total,
                'limit': limit,
                'hasNext': page < total_pages,
                'hasPrev': page > 1,
            },
            'stats': _user_stats(),
        },
    })


@api_view(['GET'])
@authentication_classes([AdminJWTAuthentication])
@permission_classes([CanManageUsers])
def user_stats(request):
    return Response({'status': 'success', 'data': _user_stats()})


@api_view(['GET', 'DELETE'])
@authentication_classes([AdminJWTAuthentication])
@permission_classes([CanManageUsers])
def user_detail(request, user_id: int):
    account = _get_account(user_id)
    if request.method == 'DELETE':
        account_id = account.pk
        account.delete()
        logger.info('Admin %s deleted account %s', request.user.pk, account_id)
        _audit(request, 'account_delete', account_id)
        return Response({'status': 'success', 'message': 'User deleted successfully'})
    return Response({'status': 'success', 'data': {'user': account_payload(account)}})


@api_view(['PATCH'])
@authentication_classes([AdminJWTAuthentication])
@permission_classes([CanManageUsers])
def user_status(request, user_id: int):
    s = UserStatusSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    account = _get_account(user_id)
    account.is_active = s.validated_data['isActive']
    account.save(update_fields=['is_active'])
    _audit(request, 'account_status', account.pk, {'isActive': account.is_active})
    return Response({
        'status': 'success',
        'message': f"User {'activated' if account.is_active else 'deactivated'} successfully",
        'data': {'user': account_payload(account)},
    })
