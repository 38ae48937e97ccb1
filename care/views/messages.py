"""
Direct messages between accounts.

New messages are pushed to the recipient's room as ``new_message``.
"""
from __future__ import annotations

from django.db.models import Q
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..exceptions import NotFound
from ..models import Account, Message
from ..serializers.messages import MarkReadSerializer, SendMessageSerializer, message_payload
from ..services import get_relay
from ..services.relay import user_room


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def conversation(request, other_user_id: int):
    """Messages exchanged with one other account, oldest first."""
    me = request.user
    qs = (Message.objects
          .filter(Q(sender=me, recipient_id=other_user_id) | Q(sender_id=other_user_id, recipient=me))
          .order_by('created_at', 'id'))
    return Response({'status': 'success', 'data': {'messages': [message_payload(m) for m in qs]}})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def send_message(request):
    s = SendMessageSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    recipient = Account.objects.filter(pk=vd['receiverId'], is_active=True).first()
    if recipient is None:
        raise NotFound('Recipient not found')
    msg = Message.objects.create(
        sender=request.user,
        recipient=recipient,
        content=vd['content'],
        mtype=vd['type'],
        priority=vd['priority'],
    )
    payload = message_payload(msg)
    get_relay().publish(user_room(recipient.pk), 'new_message', payload)
    return Response({
        'status': 'success',
        'message': 'Message sent successfully',
        'data': {'message': payload},
    }, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def mark_read(request):
    s = MarkReadSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    updated = (Message.objects
               .filter(sender_id=s.validated_data['otherUserId'], recipient=request.user)
               .exclude(status=Message.STATUS_READ)
               .update(status=Message.STATUS_READ, read_at=timezone.now()))
    return Response({'status': 'success', 'data': {'updatedCount': updated}})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def unread_count(request):
    count = Message.objects.filter(recipient=request.user).exclude(status=Message.STATUS_READ).count()
    return Response({'status': 'success', 'data': {'unreadCount': count}})
