"""
In-memory presence: which user currently holds which live channel.

The registry lives inside one API process. Running several processes splits
presence between them, so a user connected to one process looks offline to
the others. Nothing is persisted; a restart forgets everyone.
"""

import logging
from typing import Any, Dict, List, Optional, Protocol

from core.models import RealtimeEvent

logger = logging.getLogger(__name__)


class Channel(Protocol):
    async def send_json(self, data: Any) -> None: ...


class PresenceRegistry:
    def __init__(self):
        self._channels: Dict[str, Channel] = {}
        self.running = False

    async def start(self):
        self.running = True
        logger.info("[Presence] Registry started")

    async def close(self):
        """Forget every connection"""
        self._channels.clear()
        self.running = False
        logger.info("[Presence] Registry closed")

    async def connect(self, user_id: str, channel: Channel):
        """Register a channel, replacing any previous one of the same user"""
        previous = self._channels.get(user_id)
        self._channels[user_id] = channel
        if previous is not None and previous is not channel:
            logger.info(f"[Presence] {user_id} reconnected, previous channel replaced")
        else:
            logger.info(f"[Presence] {user_id} connected")

        await self.broadcast("user:online", {"userId": user_id}, exclude=user_id)

    async def disconnect(self, user_id: str, channel: Channel) -> bool:
        """
        Drop a user's channel. A channel that was already replaced by a newer
        connection is ignored and the user stays online.
        """
        if self._channels.get(user_id) is not channel:
            logger.debug(f"[Presence] Stale channel closed for {user_id}")
            return False

        del self._channels[user_id]
        logger.info(f"[Presence] {user_id} disconnected")
        await self.broadcast("user:offline", {"userId": user_id})
        return True

    async def _push(self, user_id: str, channel: Channel, event: str, data: Dict[str, Any]) -> bool:
        """Deliver to a registered channel, unregistering it when the write fails"""
        if await deliver(channel, event, data):
            return True
        await self.disconnect(user_id, channel)
        return False

    def get(self, user_id: str) -> Optional[Channel]:
        return self._channels.get(user_id)

    def is_online(self, user_id: str) -> bool:
        return user_id in self._channels

    def online_user_ids(self) -> List[str]:
        return list(self._channels)

    async def send(self, user_id: str, event: str, data: Dict[str, Any]) -> bool:
        """Push an event to one user's channel; False when offline or the write fails"""
        channel = self._channels.get(user_id)
        if channel is None:
            return False
        return await self._push(user_id, channel, event, data)

    async def broadcast(self, event: str, data: Dict[str, Any], exclude: Optional[str] = None):
        for user_id, channel in list(self._channels.items()):
            if user_id != exclude:
                await self._push(user_id, channel, event, data)


async def deliver(channel: Channel, event: str, data: Dict[str, Any]) -> bool:
    try:
        await channel.send_json(RealtimeEvent(event=event, data=data).to_dict())
        return True
    except Exception as e:
        # A dead socket means no live delivery; history stays in the store
        logger.warning(f"[Presence] Failed to push {event}: {e}")
        return False
