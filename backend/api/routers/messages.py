import logging

from fastapi import APIRouter, Depends, HTTPException

from api.deps import get_current_actor, get_messaging_service
from api.schemas import MarkReadRequest, MessageCreate
from core.errors import ClinicError
from core.messaging import MessagingService
from core.permissions import Actor

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/messages", tags=["messages"])


@router.post("", status_code=201)
async def send_message(
    payload: MessageCreate,
    actor: Actor = Depends(get_current_actor),
    messaging: MessagingService = Depends(get_messaging_service),
):
    """Store a message; live delivery happens separately over the websocket"""
    try:
        return await messaging.send(actor.user_id, payload.receiver_id, payload.message)

    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        logger.error(f"Error sending message: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/conversation/{other_user_id}")
async def get_conversation(
    other_user_id: str,
    actor: Actor = Depends(get_current_actor),
    messaging: MessagingService = Depends(get_messaging_service),
):
    try:
        return await messaging.conversation(actor.user_id, other_user_id)

    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        logger.error(f"Error fetching conversation: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/conversations")
async def get_conversations(
    actor: Actor = Depends(get_current_actor),
    messaging: MessagingService = Depends(get_messaging_service),
):
    try:
        return await messaging.conversations(actor.user_id)

    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        logger.error(f"Error fetching conversations: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.patch("/mark-read")
async def mark_read(
    payload: MarkReadRequest,
    actor: Actor = Depends(get_current_actor),
    messaging: MessagingService = Depends(get_messaging_service),
):
    try:
        updated = await messaging.mark_read(actor.user_id, payload.sender_id)
        return {"success": True, "updated": updated}

    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        logger.error(f"Error marking messages as read: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/unread-count")
async def get_unread_count(
    actor: Actor = Depends(get_current_actor),
    messaging: MessagingService = Depends(get_messaging_service),
):
    try:
        return {"count": await messaging.unread_count(actor.user_id)}

    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        logger.error(f"Error fetching unread count: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")
