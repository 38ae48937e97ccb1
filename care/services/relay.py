"""
Fan-out of realtime events to connected WebSocket clients.

Every connected account joins the room ``user_<id>``; connected admins
join ``admins``.  Publishing is fire and forget: callers never learn
whether anybody received the event.
"""
from __future__ import annotations

import logging
from typing import Any

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

logger = logging.getLogger(__name__)

ADMINS_ROOM = 'admins'


def user_room(account_id) -> str:
    return f"user_{account_id}"


class NotificationRelay:
    """Publish ``{event, payload}`` to a room through the channel layer."""

    def __init__(self, layer_alias: str = 'default'):
        self.layer_alias = layer_alias

    def publish(self, room: str, event: str, payload: dict[str, Any]) -> None:
        try:
            layer = get_channel_layer(self.layer_alias)
            if layer is None:
                return
            async_to_sync(layer.group_send)(room, {
                'type': 'relay.event',
                'event': event,
                'payload': payload,
            })
        except Exception:
            logger.warning('Relay publish of %s to %s failed', event, room, exc_info=True)

    def publish_many(self, rooms, event: str, payload: dict[str, Any]) -> None:
        for room in dict.fromkeys(rooms):
            self.publish(room, event, payload)
