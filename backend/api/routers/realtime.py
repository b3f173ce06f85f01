import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from core.errors import AuthenticationError
from core.permissions import Actor
from core.security import verify_access_token
from realtime.relay import MessageRelay

logger = logging.getLogger(__name__)
router = APIRouter(tags=["realtime"])


def _handshake_token(websocket: WebSocket) -> Optional[str]:
    token = websocket.query_params.get("token")
    if token:
        return token
    authorization = websocket.headers.get("authorization", "")
    if authorization.startswith("Bearer "):
        return authorization.replace("Bearer ", "", 1)
    return None


def _receiver_id(data: Dict[str, Any]) -> Optional[str]:
    receiver_id = data.get("receiverId")
    return receiver_id if isinstance(receiver_id, str) and receiver_id else None


async def _dispatch(relay: MessageRelay, websocket: WebSocket, actor: Actor, event: str, data: Dict[str, Any]):
    if event == "message:send":
        receiver_id = _receiver_id(data)
        if not receiver_id:
            logger.warning(f"[Realtime] message:send without a valid receiverId from {actor.user_id}")
            return
        await relay.relay_message(
            actor.user_id,
            receiver_id,
            data.get("message"),
            timestamp=data.get("timestamp"),
            message_id=data.get("id"),
        )

    elif event in ("typing:start", "typing:stop"):
        receiver_id = _receiver_id(data)
        if receiver_id:
            await relay.relay_typing(actor.user_id, receiver_id, started=event == "typing:start")

    elif event == "message:read":
        # Read state itself is changed through PATCH /api/messages/mark-read
        await relay.confirm_read(websocket, data)

    else:
        logger.debug(f"[Realtime] Ignoring unknown event {event!r} from {actor.user_id}")


@router.websocket("/ws")
async def realtime_endpoint(websocket: WebSocket):
    """Live channel: presence, message relay and typing indicators"""
    try:
        actor = verify_access_token(_handshake_token(websocket))
    except AuthenticationError:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Authentication error")
        return

    presence = websocket.app.state.presence
    relay = websocket.app.state.relay

    await websocket.accept()
    await presence.connect(actor.user_id, websocket)

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                frame = json.loads(raw)
                event, data = frame["event"], dict(frame.get("data") or {})
            except (ValueError, KeyError, TypeError) as e:
                logger.warning(f"[Realtime] Malformed frame from {actor.user_id}: {e}")
                continue

            await _dispatch(relay, websocket, actor, event, data)

    except WebSocketDisconnect:
        pass
    finally:
        await presence.disconnect(actor.user_id, websocket)
