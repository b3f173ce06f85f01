import logging
from typing import Dict, List, Optional, Any

from core.database import DatabaseManager
from core.errors import ValidationError
from core.models import Message, user_summary
from core.utils import serialize_document

logger = logging.getLogger(__name__)

PARTICIPANT_FIELDS = ["name", "role"]
COUNTERPART_FIELDS = ["name", "role", "specialty", "gender"]


class MessagingService:
    """Durable message log: send, threads, conversation list and read state"""

    def __init__(self, db: DatabaseManager):
        self.db = db

    async def send(self, sender_id: str, receiver_id: Optional[str], message: Optional[str]) -> Dict[str, Any]:
        if not receiver_id or not message:
            raise ValidationError("Receiver ID and message are required")

        message_data = Message(sender_id=sender_id, receiver_id=receiver_id, message=message).to_dict()
        message_data["_id"] = await self.db.create_message(message_data)
        logger.debug(f"[Messages] {sender_id} -> {receiver_id} stored")
        return await self._with_participants(message_data)

    async def conversation(self, user_id: str, other_user_id: str) -> List[Dict[str, Any]]:
        messages = await self.db.get_thread(user_id, other_user_id)
        return [await self._with_participants(msg) for msg in messages]

    async def conversations(self, user_id: str) -> List[Dict[str, Any]]:
        """One entry per counterpart with profile, unread count and latest message"""
        conversations = []
        for other_id in await self.db.get_counterpart_ids(user_id):
            other = await self.db.get_user_by_id(other_id)
            conversations.append(
                {
                    "user": user_summary(other, COUNTERPART_FIELDS),
                    "unread_count": await self.db.count_unread(user_id, sender_id=other_id),
                    "last_message": serialize_document(await self.db.get_last_message(user_id, other_id)),
                }
            )
        return conversations

    async def mark_read(self, receiver_id: str, sender_id: Optional[str]) -> int:
        if not sender_id:
            raise ValidationError("Sender ID is required")
        return await self.db.mark_messages_read(sender_id, receiver_id)

    async def unread_count(self, user_id: str) -> int:
        return await self.db.count_unread(user_id)

    async def _with_participants(self, message: Dict[str, Any]) -> Dict[str, Any]:
        result = serialize_document(message)
        result["sender"] = user_summary(await self.db.get_user_by_id(message["sender_id"]), PARTICIPANT_FIELDS)
        result["receiver"] = user_summary(await self.db.get_user_by_id(message["receiver_id"]), PARTICIPANT_FIELDS)
        return result
