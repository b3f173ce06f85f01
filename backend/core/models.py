from datetime import datetime
from typing import Optional, List, Dict, Any
from dataclasses import dataclass, field
from enum import Enum


class Role(Enum):
    PATIENT = "PATIENT"
    DOCTOR = "DOCTOR"
    ADMIN = "ADMIN"


class Gender(Enum):
    MALE = "MALE"
    FEMALE = "FEMALE"
    OTHER = "OTHER"


class Specialty(Enum):
    CARDIOLOGIST = "CARDIOLOGIST"
    DERMATOLOGIST = "DERMATOLOGIST"
    PEDIATRICIAN = "PEDIATRICIAN"
    NEUROLOGIST = "NEUROLOGIST"
    ORTHOPEDIC = "ORTHOPEDIC"
    PSYCHIATRIST = "PSYCHIATRIST"
    GENERAL_PHYSICIAN = "GENERAL_PHYSICIAN"
    GYNECOLOGIST = "GYNECOLOGIST"
    OPHTHALMOLOGIST = "OPHTHALMOLOGIST"
    ENT_SPECIALIST = "ENT_SPECIALIST"
    DENTIST = "DENTIST"
    OTHER = "OTHER"


class AppointmentStatus(Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


# Statuses that hold a (doctor, date, time) slot
ACTIVE_STATUSES = [AppointmentStatus.PENDING.value, AppointmentStatus.CONFIRMED.value]


def active_slot_key(doctor_id: str, date: str, time: str) -> str:
    return f"{doctor_id}|{date}|{time}"


def released_slot_key(appointment_id: Any) -> str:
    return f"released|{appointment_id}"


@dataclass
class User:
    email: str
    password: str  # bcrypt hash
    name: str
    role: Role
    gender: Optional[Gender] = None
    specialty: Optional[Specialty] = None
    profile: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "email": self.email,
            "password": self.password,
            "name": self.name,
            "role": self.role.value,
            "gender": self.gender.value if self.gender else None,
            "specialty": self.specialty.value if self.specialty else None,
            "created_at": self.created_at or datetime.utcnow(),
            "updated_at": self.updated_at or datetime.utcnow(),
        }
        data.update(self.profile)
        return data


@dataclass
class Service:
    name: str
    duration: int  # minutes
    price: float
    description: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "duration": self.duration,
            "price": self.price,
            "is_active": self.is_active,
            "created_at": self.created_at or datetime.utcnow(),
        }


@dataclass
class AvailabilityRule:
    """One recurring weekly slot of a doctor (day_of_week: Sunday=0)."""

    day_of_week: int
    time_slot: str
    is_active: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "day_of_week": self.day_of_week,
            "time_slot": self.time_slot,
            "is_active": self.is_active,
        }


@dataclass
class Appointment:
    patient_id: str
    doctor_id: str
    date: str  # YYYY-MM-DD format
    time: str  # slot label, e.g. "09:00 AM"
    status: AppointmentStatus = AppointmentStatus.PENDING
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "patient_id": self.patient_id,
            "doctor_id": self.doctor_id,
            "date": self.date,
            "time": self.time,
            "status": self.status.value,
            "notes": self.notes,
            "slot_key": active_slot_key(self.doctor_id, self.date, self.time),
            "created_at": self.created_at or datetime.utcnow(),
            "updated_at": self.updated_at or datetime.utcnow(),
        }


@dataclass
class Message:
    sender_id: str
    receiver_id: str
    message: str
    is_read: bool = False
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sender_id": self.sender_id,
            "receiver_id": self.receiver_id,
            "message": self.message,
            "is_read": self.is_read,
            "created_at": self.created_at or datetime.utcnow(),
        }


@dataclass
class RealtimeEvent:
    """Envelope pushed over a live channel"""

    event: str
    data: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {"event": self.event, "data": self.data}


def user_summary(user: Optional[Dict], fields: List[str]) -> Optional[Dict[str, Any]]:
    """Denormalized display fields of a stored user document."""
    if not user:
        return None
    summary = {"id": str(user["_id"])}
    for name in fields:
        summary[name] = user.get(name)
    return summary
