import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from api.deps import get_availability_service, get_current_actor, get_db
from api.schemas import CompleteProfile, DoctorProfileUpdate, PatientProfileUpdate
from core.availability import AvailabilityService
from core.database import DatabaseManager
from core.errors import ClinicError, NotFoundError
from core.models import Role
from core.permissions import Actor, require_role
from core.utils import normalize_date, serialize_document

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/users", tags=["users"])

DOCTOR_LIST_FIELDS = ["id", "name", "email", "specialty", "bio", "hospital", "experience", "created_at"]


def _public(user: dict) -> dict:
    return serialize_document(user, hidden=["password"])


async def _update_profile(db: DatabaseManager, actor: Actor, updates: dict) -> dict:
    user = await db.update_user(actor.user_id, updates)
    if not user:
        raise NotFoundError("User not found")
    return _public(user)


@router.get("/me")
async def get_me(actor: Actor = Depends(get_current_actor), db: DatabaseManager = Depends(get_db)):
    """Get the calling user's profile"""
    try:
        user = await db.get_user_by_id(actor.user_id)
        if not user:
            raise NotFoundError("User not found")
        return _public(user)

    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        logger.error(f"Error getting user: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/doctors")
async def list_doctors(specialty: Optional[str] = None, db: DatabaseManager = Depends(get_db)):
    """List doctors, optionally filtered by specialty"""
    try:
        doctors = await db.list_doctors(specialty)
        return [{key: _public(doc).get(key) for key in DOCTOR_LIST_FIELDS} for doc in doctors]

    except Exception as e:
        logger.error(f"Error listing doctors: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/doctors/{doctor_id}")
async def get_doctor(
    doctor_id: str,
    db: DatabaseManager = Depends(get_db),
    availability: AvailabilityService = Depends(get_availability_service),
):
    """Doctor profile with weekly availability and booking stats"""
    try:
        doctor = await db.get_user_by_id(doctor_id)
        if not doctor:
            raise NotFoundError("Doctor not found")
        if doctor.get("role") != Role.DOCTOR.value:
            raise NotFoundError("User is not a doctor")

        pattern = await availability.get(doctor_id)
        profile = {key: _public(doctor).get(key) for key in DOCTOR_LIST_FIELDS + ["role"]}
        profile["availability"] = {"days": pattern["available_days"], "slots": pattern["details"]}
        profile["stats"] = {
            "total_patients": len(await db.distinct_patient_ids(doctor_id)),
            "total_appointments": await db.count_appointments({"doctor_id": doctor_id}),
        }
        return profile

    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        logger.error(f"Error getting doctor: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.patch("/doctor/complete-profile")
async def complete_doctor_profile(
    payload: CompleteProfile,
    actor: Actor = Depends(get_current_actor),
    db: DatabaseManager = Depends(get_db),
):
    try:
        require_role(actor, Role.DOCTOR, "Only doctors can complete profile")
        return await _update_profile(db, actor, payload.model_dump(exclude_none=True))

    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        logger.error(f"Error completing profile: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.patch("/patient/update-profile")
async def update_patient_profile(
    payload: PatientProfileUpdate,
    actor: Actor = Depends(get_current_actor),
    db: DatabaseManager = Depends(get_db),
):
    try:
        require_role(actor, Role.PATIENT, "Only patients can update patient profile")

        updates = payload.model_dump(exclude_none=True, mode="json")
        if "date_of_birth" in updates:
            updates["date_of_birth"] = normalize_date(updates["date_of_birth"])
        return await _update_profile(db, actor, updates)

    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        logger.error(f"Error updating patient profile: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.patch("/doctor/update-profile")
async def update_doctor_profile(
    payload: DoctorProfileUpdate,
    actor: Actor = Depends(get_current_actor),
    db: DatabaseManager = Depends(get_db),
):
    try:
        require_role(actor, Role.DOCTOR, "Only doctors can update doctor profile")
        return await _update_profile(db, actor, payload.model_dump(exclude_none=True))

    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        logger.error(f"Error updating doctor profile: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")
