import bleach
from rest_framework import serializers

from care.models import Message


class SendMessageSerializer(serializers.Serializer):
    receiverId = serializers.IntegerField(min_value=1)
    content = serializers.CharField(max_length=1000)
    type = serializers.ChoiceField(choices=[t for t, _ in Message.TYPE_CHOICES], default='text')
    priority = serializers.ChoiceField(choices=[p for p, _ in Message.PRIORITY_CHOICES], default='normal')

    def validate_content(self, v):
        v = bleach.clean((v or '').strip(), tags=[], strip=True)
        if not v:
            raise serializers.ValidationError('Message content is required')
        return v


class MarkReadSerializer(serializers.Serializer):
    otherUserId = serializers.IntegerField(min_value=1)


def message_payload(msg: Message) -> dict:
    return {
        'id': msg.pk,
        'senderId': msg.sender_id,
        'receiverId': msg.recipient_id,
        'content': msg.content,
        'type': msg.mtype,
        'status': msg.status,
        'priority': msg.priority,
        'readAt': msg.read_at.isoformat() if msg.read_at else None,
        'createdAt': msg.created_at.isoformat() if msg.created_at else None,
    }
