"""
Appointment booking and lifecycle.

    PENDING   -> CONFIRMED | CANCELLED
    CONFIRMED -> COMPLETED | CANCELLED

Doctors and admins may set any other status as well; the only guarded move is
COMPLETED, which needs a CONFIRMED appointment dated today or earlier. At most
one PENDING/CONFIRMED appointment may hold a (doctor, date, time) slot; the
store enforces this through a unique index on ``slot_key``.
"""

import logging
from datetime import date, timedelta
from typing import Callable, Dict, List, Optional, Any

from pymongo.errors import DuplicateKeyError

from core.database import DatabaseManager
from core.errors import ConflictError, NotFoundError, ValidationError
from core.models import (
    ACTIVE_STATUSES,
    Appointment,
    AppointmentStatus,
    Role,
    active_slot_key,
    released_slot_key,
    user_summary,
)
from core.permissions import (
    Actor,
    appointment_scope,
    can_book,
    can_cancel,
    can_change_status,
    can_view_appointment,
    require,
    require_role,
)
from core.slots import ensure_valid_slot, slot_order
from core.utils import format_appointment_details, normalize_date, require_date, start_of_week

logger = logging.getLogger(__name__)

DOCTOR_FIELDS = ["name", "email", "specialty"]
PATIENT_FIELDS = ["name", "email", "gender"]
SLOT_TAKEN = "This time slot is already booked"


class AppointmentService:
    def __init__(self, db: DatabaseManager, today: Callable[[], date] = date.today):
        self.db = db
        # Server-local calendar date, injectable for tests
        self.today = today

    async def create(
        self, actor: Actor, doctor_id: str, appointment_date: str, time_slot: str, notes: Optional[str] = None
    ) -> Dict[str, Any]:
        """Book a PENDING appointment for the calling patient"""
        require(can_book(actor), "Only patients can book appointments")

        day = require_date(appointment_date, "Appointment date")
        ensure_valid_slot(time_slot)

        doctor = await self.db.get_user_by_id(doctor_id)
        if not doctor or doctor.get("role") != Role.DOCTOR.value:
            raise NotFoundError("Doctor not found")

        if await self.db.find_active_appointment(doctor_id, day, time_slot):
            raise ConflictError(SLOT_TAKEN)

        appointment = Appointment(
            patient_id=actor.user_id,
            doctor_id=doctor_id,
            date=day,
            time=time_slot,
            notes=notes,
        )
        appointment_data = appointment.to_dict()

        try:
            appointment_id = await self.db.create_appointment(appointment_data)
        except DuplicateKeyError:
            # Lost the race against a concurrent booking of the same slot
            raise ConflictError(SLOT_TAKEN)

        appointment_data["_id"] = appointment_id
        logger.info(
            f"[Booking] {actor.user_id} booked {doctor_id}: {format_appointment_details(appointment_data)}"
        )
        return await self._with_people(appointment_data)

    async def get(self, actor: Actor, appointment_id: str) -> Dict[str, Any]:
        appointment = await self._load(appointment_id)
        require(can_view_appointment(actor, appointment))
        return await self._with_people(appointment)

    async def list_for(self, actor: Actor, ascending: bool = False) -> List[Dict[str, Any]]:
        """Appointments visible to the actor, newest date first unless ascending"""
        appointments = await self.db.find_appointments(appointment_scope(actor), ascending=ascending)
        return [await self._with_people(apt) for apt in appointments]

    async def transition(self, actor: Actor, appointment_id: str, status: str) -> Dict[str, Any]:
        """Doctor or admin sets a new status"""
        target = _parse_status(status)
        appointment = await self._load(appointment_id)
        require(
            can_change_status(actor, appointment),
            "Only the assigned doctor can update appointment status",
        )

        current = appointment["status"]
        if target.value == current:
            return await self._with_people(appointment)

        if target is AppointmentStatus.COMPLETED:
            if current != AppointmentStatus.CONFIRMED.value:
                raise ValidationError("Only confirmed appointments can be marked as completed")
            if date.fromisoformat(appointment["date"]) > self.today():
                raise ValidationError("Cannot mark future appointments as completed")

        updated = await self._set_status(appointment, target)
        logger.info(f"[Booking] {appointment_id}: {current} -> {target.value} by {actor.user_id}")
        return await self._with_people(updated)

    async def cancel(self, actor: Actor, appointment_id: str) -> Dict[str, Any]:
        """Soft-cancel; allowed in any state and repeatable"""
        appointment = await self._load(appointment_id)
        require(can_cancel(actor, appointment))

        updated = await self._set_status(appointment, AppointmentStatus.CANCELLED)
        logger.info(f"[Booking] {appointment_id} cancelled by {actor.user_id}")
        return await self._with_people(updated)

    # Statistics
    async def patient_stats(self, actor: Actor) -> Dict[str, int]:
        require_role(actor, Role.PATIENT)

        appointments = await self.db.find_appointments({"patient_id": actor.user_id})
        statuses = [apt["status"] for apt in appointments]
        return {
            "total_appointments": len(statuses),
            "upcoming_appointments": sum(1 for s in statuses if s in ACTIVE_STATUSES),
            "completed_appointments": statuses.count(AppointmentStatus.COMPLETED.value),
            "cancelled_appointments": statuses.count(AppointmentStatus.CANCELLED.value),
        }

    async def upcoming(self, actor: Actor, limit: int = 5) -> List[Dict[str, Any]]:
        """Next active appointments dated today or later"""
        require_role(actor, Role.PATIENT)

        appointments = await self.db.find_appointments(
            {
                "patient_id": actor.user_id,
                "date": {"$gte": self.today().isoformat()},
                "status": {"$in": ACTIVE_STATUSES},
            },
            ascending=True,
        )
        appointments.sort(key=lambda apt: (apt["date"], slot_order(apt["time"])))

        upcoming = []
        for apt in appointments[:limit]:
            doctor = await self.db.get_user_by_id(apt["doctor_id"])
            upcoming.append(
                {
                    "id": str(apt["_id"]),
                    "doctor_id": apt["doctor_id"],
                    "doctor_name": (doctor or {}).get("name"),
                    "doctor_specialty": (doctor or {}).get("specialty"),
                    "date": apt["date"],
                    "time": apt["time"],
                    "status": apt["status"],
                    "reason": apt.get("notes") or "",
                }
            )
        return upcoming

    async def doctor_stats(self, actor: Actor) -> Dict[str, int]:
        require_role(actor, Role.DOCTOR)

        doctor_id = actor.user_id
        today = self.today()
        week_start = start_of_week(today)
        week_end = week_start + timedelta(days=7)

        today_query = {"doctor_id": doctor_id, "date": today.isoformat()}
        return {
            "total_patients": len(await self.db.distinct_patient_ids(doctor_id)),
            "today_appointments": await self.db.count_appointments(
                {**today_query, "status": {"$in": ACTIVE_STATUSES}}
            ),
            "today_pending": await self.db.count_appointments(
                {**today_query, "status": AppointmentStatus.PENDING.value}
            ),
            "week_appointments": await self.db.count_appointments(
                {
                    "doctor_id": doctor_id,
                    "date": {"$gte": week_start.isoformat(), "$lt": week_end.isoformat()},
                    "status": {"$in": ACTIVE_STATUSES + [AppointmentStatus.COMPLETED.value]},
                }
            ),
            "total_pending": await self.db.count_appointments(
                {"doctor_id": doctor_id, "status": AppointmentStatus.PENDING.value}
            ),
            "total_completed": await self.db.count_appointments(
                {"doctor_id": doctor_id, "status": AppointmentStatus.COMPLETED.value}
            ),
        }

    async def weekly_schedule(self, actor: Actor, start_date: Optional[str] = None) -> Dict[str, Any]:
        """Seven day buckets of the doctor's appointments"""
        require_role(actor, Role.DOCTOR)

        start = date.fromisoformat(normalize_date(start_date) or self.today().isoformat())
        end = start + timedelta(days=7)

        appointments = await self.db.find_appointments(
            {
                "doctor_id": actor.user_id,
                "date": {"$gte": start.isoformat(), "$lt": end.isoformat()},
            },
            ascending=True,
        )
        appointments.sort(key=lambda apt: (apt["date"], slot_order(apt["time"])))

        days = []
        for offset in range(7):
            day = (start + timedelta(days=offset)).isoformat()
            day_appointments = [
                await self._with_people(apt, include_doctor=False)
                for apt in appointments
                if apt["date"] == day
            ]
            days.append(
                {
                    "date": day,
                    "total_appointments": len(day_appointments),
                    "appointments": day_appointments,
                }
            )

        return {"start_date": start.isoformat(), "end_date": end.isoformat(), "days": days}

    async def _load(self, appointment_id: str) -> Dict[str, Any]:
        appointment = await self.db.get_appointment_by_id(appointment_id)
        if not appointment:
            raise NotFoundError("Appointment not found")
        return appointment

    async def _set_status(self, appointment: Dict[str, Any], status: AppointmentStatus) -> Dict[str, Any]:
        if status.value in ACTIVE_STATUSES:
            slot_key = active_slot_key(appointment["doctor_id"], appointment["date"], appointment["time"])
            holder = await self.db.find_active_appointment(
                appointment["doctor_id"], appointment["date"], appointment["time"]
            )
            if holder and holder["_id"] != appointment["_id"]:
                raise ConflictError(SLOT_TAKEN)
        else:
            slot_key = released_slot_key(appointment["_id"])

        try:
            return await self.db.update_appointment_status(appointment["_id"], status.value, slot_key)
        except DuplicateKeyError:
            raise ConflictError(SLOT_TAKEN)

    async def _with_people(self, appointment: Dict[str, Any], include_doctor: bool = True) -> Dict[str, Any]:
        """Appointment without storage internals, plus doctor/patient display fields"""
        result = {key: value for key, value in appointment.items() if key != "slot_key"}
        if include_doctor:
            result["doctor"] = user_summary(await self.db.get_user_by_id(appointment["doctor_id"]), DOCTOR_FIELDS)
        result["patient"] = user_summary(await self.db.get_user_by_id(appointment["patient_id"]), PATIENT_FIELDS)
        return result


def _parse_status(status: str) -> AppointmentStatus:
    try:
        return AppointmentStatus(status)
    except ValueError:
        raise ValidationError(f"Invalid status: {status}")
