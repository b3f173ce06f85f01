import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from realtime.presence import Channel, PresenceRegistry, deliver

logger = logging.getLogger(__name__)


class MessageRelay:
    """
    Best-effort live forwarding between connected users.

    Nothing here is stored or retried. An offline receiver simply gets no live
    event and reads the message from the store on the next fetch.
    """

    def __init__(self, presence: PresenceRegistry):
        self.presence = presence

    async def relay_message(
        self,
        sender_id: str,
        receiver_id: str,
        message: str,
        timestamp: Optional[str] = None,
        message_id: Optional[str] = None,
    ) -> bool:
        envelope = {
            "senderId": sender_id,
            "message": message,
            "timestamp": timestamp or datetime.now(timezone.utc).isoformat(),
            "id": message_id or uuid.uuid4().hex,
        }

        delivered = await self.presence.send(receiver_id, "message:receive", envelope)
        if delivered:
            logger.info(f"[Relay] Message {envelope['id']} delivered to {receiver_id}")
        else:
            logger.info(f"[Relay] Receiver {receiver_id} is offline")
        return delivered

    async def relay_typing(self, sender_id: str, receiver_id: str, started: bool) -> bool:
        event = "typing:start" if started else "typing:stop"
        return await self.presence.send(receiver_id, event, {"userId": sender_id})

    async def confirm_read(self, channel: Channel, data: Dict[str, Any]) -> bool:
        """Echo a read receipt to the sender's own channel; read state is set over HTTP"""
        return await deliver(channel, "message:read:confirmed", data)
