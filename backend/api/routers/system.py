import logging
from datetime import datetime

from fastapi import APIRouter, Depends

from api.deps import get_current_actor, get_presence
from core.permissions import Actor
from realtime.presence import PresenceRegistry

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "ok", "timestamp": datetime.utcnow().isoformat()}


@router.get("/api/presence/online")
async def online_users(
    actor: Actor = Depends(get_current_actor),
    presence: PresenceRegistry = Depends(get_presence),
):
    """Users with a live connection to this server process"""
    return {"online": presence.online_user_ids()}
