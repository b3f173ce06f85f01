import logging

from fastapi import APIRouter, Depends, HTTPException

from api.deps import get_availability_service, get_current_actor, get_db
from api.schemas import AvailabilityUpdate
from core.availability import AvailabilityService
from core.database import DatabaseManager
from core.errors import ClinicError, NotFoundError
from core.models import Role
from core.permissions import Actor, can_manage_availability, require, require_role

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/availability", tags=["availability"])


@router.get("/doctor/my-availability")
async def get_my_availability(
    actor: Actor = Depends(get_current_actor),
    availability: AvailabilityService = Depends(get_availability_service),
):
    try:
        require_role(actor, Role.DOCTOR)
        return await availability.get(actor.user_id)

    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        logger.error(f"Error getting availability: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/doctor/{doctor_id}")
async def get_doctor_availability(
    doctor_id: str,
    db: DatabaseManager = Depends(get_db),
    availability: AvailabilityService = Depends(get_availability_service),
):
    """Public weekly pattern of a doctor"""
    try:
        doctor = await db.get_user_by_id(doctor_id)
        if not doctor or doctor.get("role") != Role.DOCTOR.value:
            raise NotFoundError("Doctor not found")

        pattern = await availability.get(doctor_id)
        return {
            "doctor_id": doctor_id,
            "doctor_name": doctor.get("name"),
            "available_days": pattern["available_days"],
            "availability": pattern["details"],
        }

    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        logger.error(f"Error getting doctor availability: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/doctor/set-availability", status_code=201)
async def set_availability(
    payload: AvailabilityUpdate,
    actor: Actor = Depends(get_current_actor),
    availability: AvailabilityService = Depends(get_availability_service),
):
    """Replace all of the doctor's weekly slots"""
    try:
        require(can_manage_availability(actor), "Only doctors can set availability")

        total = await availability.replace(actor.user_id, payload.available_days, payload.time_slots)
        return {
            "message": "Availability updated successfully",
            "total_slots": total,
            "available_days": payload.available_days,
            "time_slots": payload.time_slots,
        }

    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        logger.error(f"Error setting availability: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.delete("/doctor/clear-availability")
async def clear_availability(
    actor: Actor = Depends(get_current_actor),
    availability: AvailabilityService = Depends(get_availability_service),
):
    try:
        require(can_manage_availability(actor), "Only doctors can clear availability")

        await availability.clear(actor.user_id)
        return {"message": "Availability cleared successfully"}

    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        logger.error(f"Error clearing availability: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")
