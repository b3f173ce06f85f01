from typing import List, Optional
from pydantic import BaseModel, EmailStr, Field

from core.models import AppointmentStatus, Gender, Specialty


class PatientRegister(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    name: str = Field(min_length=1)
    gender: Gender


class DoctorRegister(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    name: str = Field(min_length=1)
    specialty: Specialty


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class AppointmentCreate(BaseModel):
    doctor_id: str
    appointment_date: str  # ISO date string
    appointment_time: str  # e.g. "09:00 AM"
    notes: Optional[str] = None


class AppointmentStatusUpdate(BaseModel):
    status: AppointmentStatus


class ServiceCreate(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    duration: int = Field(gt=0)
    price: float = Field(ge=0)


class ServiceUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    duration: Optional[int] = Field(default=None, gt=0)
    price: Optional[float] = Field(default=None, ge=0)


class AvailabilityUpdate(BaseModel):
    available_days: List[int]
    time_slots: List[str]


class CompleteProfile(BaseModel):
    bio: Optional[str] = Field(default=None, max_length=500)
    hospital: Optional[str] = Field(default=None, max_length=200)
    experience: Optional[str] = Field(default=None, max_length=100)


class PatientProfileUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=20)
    date_of_birth: Optional[str] = None
    gender: Optional[Gender] = None
    address: Optional[str] = Field(default=None, max_length=500)
    blood_group: Optional[str] = Field(default=None, max_length=10)
    allergies: Optional[str] = Field(default=None, max_length=500)


class DoctorProfileUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=20)
    bio: Optional[str] = Field(default=None, max_length=500)
    hospital: Optional[str] = Field(default=None, max_length=200)
    experience: Optional[str] = Field(default=None, max_length=100)
    address: Optional[str] = Field(default=None, max_length=500)
    license_number: Optional[str] = Field(default=None, max_length=50)
    consultation_fee: Optional[str] = Field(default=None, max_length=20)
    education: Optional[str] = Field(default=None, max_length=300)


class MessageCreate(BaseModel):
    receiver_id: Optional[str] = None
    message: Optional[str] = None


class MarkReadRequest(BaseModel):
    sender_id: Optional[str] = None
