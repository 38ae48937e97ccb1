"""
Admin review endpoints for permission requests.
"""
from __future__ import annotations

import math

from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.response import Response

from ..authentication import AdminJWTAuthentication
from ..permissions import IsAdminUser
from ..serializers.permission_requests import (
    AdminListQuerySerializer,
    BulkStatusSerializer,
    NoteSerializer,
    StatusUpdateSerializer,
    request_payload,
)
from ..services import get_workflow


def _reviewer(request):
    admin = request.user
    return admin.pk, admin.username


@api_view(['GET'])
@authentication_classes([AdminJWTAuthentication])
@permission_classes([IsAdminUser])
def list_requests(request):
    q = AdminListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    page, limit = vd['page'], vd['limit']
    items, total = get_workflow().list_for_admin(
        status=vd.get('status'), role=vd.get('role'), priority=vd.get('priority'), page=page, limit=limit,
    )
    total_pages = math.ceil(total / limit) if total else 0
    return Response({
        'status': 'success',
        'data': {
            'requests': [request_payload(r) for r in items],
            'pagination': {
                'currentPage': page,
                'totalPages': total_pages,
                'totalRequests': total,
                'limit': limit,
                'hasNext': page < total_pages,
                'hasPrev': page > 1,
            },
        },
    })


@api_view(['GET'])
@authentication_classes([AdminJWTAuthentication])
@permission_classes([IsAdminUser])
def request_detail(request, request_id: int):
    req = get_workflow().get(request_id)
    return Response({'status': 'success', 'data': {'request': request_payload(req)}})


@api_view(['PUT'])
@authentication_classes([AdminJWTAuthentication])
@permission_classes([IsAdminUser])
def set_status(request, request_id: int):
    s = StatusUpdateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    admin_id, admin_name = _reviewer(request)
    req = get_workflow().set_status(
        request_id,
        admin_id=admin_id,
        admin_name=admin_name,
        status=vd['status'],
        rejection_reason=vd.get('rejectionReason') or None,
        note=vd.get('note') or None,
    )
    return Response({
        'status': 'success',
        'message': f"Permission request {req.status} successfully",
        'data': {'request': request_payload(req)},
    })


@api_view(['POST'])
@authentication_classes([AdminJWTAuthentication])
@permission_classes([IsAdminUser])
def add_note(request, request_id: int):
    s = NoteSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    admin_id, admin_name = _reviewer(request)
    req = get_workflow().add_note(request_id, admin_id=admin_id, admin_name=admin_name,
                                  text=s.validated_data['note'])
    return Response({
        'status': 'success',
        'message': 'Note added successfully',
        'data': {'request': request_payload(req)},
    })


@api_view(['PUT'])
@authentication_classes([AdminJWTAuthentication])
@permission_classes([IsAdminUser])
def bulk_update(request):
    s = BulkStatusSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    admin_id, admin_name = _reviewer(request)
    result = get_workflow().bulk_set_status(
        vd['requestIds'],
        admin_id=admin_id,
        admin_name=admin_name,
        status=vd['status'],
        rejection_reason=vd.get('rejectionReason') or None,
        note=vd.get('note') or None,
    )
    return Response({
        'status': 'success',
        'message': f"{result['modifiedCount']} permission requests updated successfully",
        'data': result,
    })


@api_view(['GET'])
@authentication_classes([AdminJWTAuthentication])
@permission_classes([IsAdminUser])
def stats(request):
    return Response({'status': 'success', 'data': get_workflow().stats()})
