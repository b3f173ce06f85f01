import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from api.deps import get_appointment_service, get_current_actor, get_slot_engine
from api.schemas import AppointmentCreate, AppointmentStatusUpdate
from core.booking import AppointmentService
from core.errors import ClinicError
from core.models import Role
from core.permissions import Actor, require_role
from core.slots import SlotAvailabilityEngine
from core.utils import serialize_document

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/appointments", tags=["appointments"])


@router.get("")
async def list_appointments(
    order: str = "desc",
    actor: Actor = Depends(get_current_actor),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Appointments visible to the caller (admins see all)"""
    try:
        appointments = await service.list_for(actor, ascending=order == "asc")
        return [serialize_document(apt) for apt in appointments]

    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        logger.error(f"Error getting appointments: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/patient/my-appointments")
async def get_patient_appointments(
    actor: Actor = Depends(get_current_actor),
    service: AppointmentService = Depends(get_appointment_service),
):
    try:
        require_role(actor, Role.PATIENT)
        return [serialize_document(apt) for apt in await service.list_for(actor)]

    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        logger.error(f"Error getting patient appointments: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/doctor/my-appointments")
async def get_doctor_appointments(
    actor: Actor = Depends(get_current_actor),
    service: AppointmentService = Depends(get_appointment_service),
):
    try:
        require_role(actor, Role.DOCTOR)
        return [serialize_document(apt) for apt in await service.list_for(actor)]

    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        logger.error(f"Error getting doctor appointments: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/available-slots/{doctor_id}")
async def get_available_slots(
    doctor_id: str,
    date: Optional[str] = None,
    engine: SlotAvailabilityEngine = Depends(get_slot_engine),
):
    """Get free catalogue slots of a doctor on a date"""
    try:
        return await engine.available_slots(doctor_id, date)

    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        logger.error(f"Error getting available slots: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/patient/stats")
async def get_patient_stats(
    actor: Actor = Depends(get_current_actor),
    service: AppointmentService = Depends(get_appointment_service),
):
    try:
        return await service.patient_stats(actor)

    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        logger.error(f"Error getting patient stats: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/patient/upcoming")
async def get_patient_upcoming(
    actor: Actor = Depends(get_current_actor),
    service: AppointmentService = Depends(get_appointment_service),
):
    try:
        return await service.upcoming(actor)

    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        logger.error(f"Error fetching upcoming appointments: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/doctor/stats")
async def get_doctor_stats(
    actor: Actor = Depends(get_current_actor),
    service: AppointmentService = Depends(get_appointment_service),
):
    try:
        return await service.doctor_stats(actor)

    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        logger.error(f"Error getting doctor stats: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/doctor/weekly-schedule")
async def get_weekly_schedule(
    start_date: Optional[str] = None,
    actor: Actor = Depends(get_current_actor),
    service: AppointmentService = Depends(get_appointment_service),
):
    try:
        schedule = await service.weekly_schedule(actor, start_date)
        for day in schedule["days"]:
            day["appointments"] = [serialize_document(apt) for apt in day["appointments"]]
        return schedule

    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        logger.error(f"Error getting weekly schedule: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/{appointment_id}")
async def get_appointment(
    appointment_id: str,
    actor: Actor = Depends(get_current_actor),
    service: AppointmentService = Depends(get_appointment_service),
):
    try:
        return serialize_document(await service.get(actor, appointment_id))

    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        logger.error(f"Error getting appointment: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("", status_code=201)
async def create_appointment(
    appointment: AppointmentCreate,
    actor: Actor = Depends(get_current_actor),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Patient books a slot with a doctor"""
    try:
        created = await service.create(
            actor,
            doctor_id=appointment.doctor_id,
            appointment_date=appointment.appointment_date,
            time_slot=appointment.appointment_time,
            notes=appointment.notes,
        )
        return serialize_document(created)

    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        logger.error(f"Error creating appointment: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.patch("/{appointment_id}/status")
async def update_appointment_status(
    appointment_id: str,
    update: AppointmentStatusUpdate,
    actor: Actor = Depends(get_current_actor),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Doctor (or admin) confirms, completes or cancels"""
    try:
        updated = await service.transition(actor, appointment_id, update.status.value)
        return serialize_document(updated)

    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        logger.error(f"Error updating appointment: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.delete("/{appointment_id}")
async def cancel_appointment(
    appointment_id: str,
    actor: Actor = Depends(get_current_actor),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Cancel an appointment (kept for history, never deleted)"""
    try:
        await service.cancel(actor, appointment_id)
        return {"message": "Appointment cancelled successfully"}

    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        logger.error(f"Error cancelling appointment: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")
