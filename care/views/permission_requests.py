"""
Requester endpoints for permission requests.

``<role>`` in the path is the role being requested (doctor, midwife or
service_provider).  A requester only ever sees and touches their own
requests for that role.
"""
from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..exceptions import InvalidRole
from ..models import PermissionRequest
from ..serializers.permission_requests import request_payload, validate_request_body
from ..services import get_workflow


def _check_role(role: str) -> str:
    if role not in PermissionRequest.ROLES:
        raise InvalidRole()
    return role


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def submit_request(request, role: str):
    _check_role(role)
    details, meta = validate_request_body(role, request.data)
    req = get_workflow().submit(
        requester_id=request.user.id,
        requester_email=request.user.email,
        role=role,
        details=details,
        documents=meta.get('documents', []),
        priority=meta.get('priority', 'medium'),
        is_urgent=meta.get('isUrgent', False),
        request_type=meta.get('requestType', 'permission_request'),
    )
    return Response({
        'status': 'success',
        'message': 'Permission request submitted successfully',
        'data': {'request': request_payload(req)},
    }, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def list_my_requests(request, role: str):
    _check_role(role)
    items = get_workflow().list_for_requester(request.user.id, role)
    return Response({
        'status': 'success',
        'data': {'requests': [request_payload(r) for r in items]},
    })


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated])
def my_request_detail(request, role: str, request_id: int):
    _check_role(role)
    workflow = get_workflow()
    if request.method == 'GET':
        req = workflow.get_for_requester(request_id, request.user.id, role)
        return Response({'status': 'success', 'data': {'request': request_payload(req)}})

    if request.method == 'DELETE':
        workflow.cancel(request_id, request.user.id, role)
        return Response({'status': 'success', 'message': 'Permission request cancelled successfully'})

    details, meta = validate_request_body(role, request.data, partial=True)
    req = workflow.update(
        request_id, request.user.id, role,
        details=details,
        documents=meta.get('documents'),
        priority=meta.get('priority'),
        is_urgent=meta.get('isUrgent'),
    )
    return Response({
        'status': 'success',
        'message': 'Permission request updated successfully',
        'data': {'request': request_payload(req)},
    })
