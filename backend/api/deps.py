from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from core.availability import AvailabilityService
from core.booking import AppointmentService
from core.database import DatabaseManager
from core.messaging import MessagingService
from core.permissions import Actor
from core.security import verify_access_token
from core.slots import SlotAvailabilityEngine
from realtime.presence import PresenceRegistry

security = HTTPBearer(auto_error=False)


def get_db(request: Request) -> DatabaseManager:
    return request.app.state.db


def get_presence(request: Request) -> PresenceRegistry:
    return request.app.state.presence


def get_appointment_service(request: Request) -> AppointmentService:
    return request.app.state.appointments


def get_slot_engine(request: Request) -> SlotAvailabilityEngine:
    return request.app.state.slots


def get_messaging_service(request: Request) -> MessagingService:
    return request.app.state.messaging


def get_availability_service(request: Request) -> AvailabilityService:
    return request.app.state.availability


async def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Actor:
    """Resolve the bearer token into the calling Actor (401 when absent or invalid)"""
    return verify_access_token(credentials.credentials if credentials else None)
