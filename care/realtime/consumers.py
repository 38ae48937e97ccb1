import json
import logging
from urllib.parse import parse_qs

from asgiref.sync import sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import AccessToken

from care.models import Account, AdminUser
from care.services.relay import ADMINS_ROOM, user_room

logger = logging.getLogger(__name__)


def _resolve_room(raw_token: str):
    """Room for a bearer token, or None if the token or identity is not valid."""
    token = AccessToken(raw_token)
    if token.get('isAdmin'):
        admin = AdminUser.objects.filter(pk=token.get('adminId'), is_active=True).first()
        return ADMINS_ROOM if admin else None
    account = Account.objects.filter(pk=token.get('accountId'), is_active=True).first()
    return user_room(account.pk) if account else None


class NotificationConsumer(AsyncWebsocketConsumer):
    """
    Push channel for relay events.

    Connect to ``ws/notifications/?token=<jwt>``.  Accounts join their
    own ``user_<id>`` room, admins join ``admins``.
    """

    async def connect(self):
        query = parse_qs(self.scope.get("query_string", b"").decode())
        raw = (query.get("token") or [""])[0]
        if not raw:
            await self.close(code=4001)
            return
        try:
            room = await sync_to_async(_resolve_room)(raw)
        except TokenError:
            await self.close(code=4001)
            return
        if room is None:
            await self.close(code=4003)
            return

        self.room = room
        await self.channel_layer.group_add(self.room, self.channel_name)
        await self.accept()
        await self.send(json.dumps({"type": "welcome", "room": self.room}))

    async def disconnect(self, close_code):
        if hasattr(self, "room"):
            await self.channel_layer.group_discard(self.room, self.channel_name)

    async def relay_event(self, event):
        # event: {"type": "relay.event", "event": "...", "payload": {...}}
        await self.send(json.dumps({"event": event["event"], "payload": event["payload"]}, default=str))
