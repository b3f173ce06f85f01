"""
Role-based authorization.

An Actor is the authenticated (user id, role) pair behind a request or a
real-time connection. Every operation that branches on role goes through one
of the predicates below so the authorization contract lives in one place.
"""

from dataclasses import dataclass
from typing import Dict, Any

from core.errors import AuthorizationError
from core.models import Role


@dataclass(frozen=True)
class Actor:
    user_id: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    @property
    def is_doctor(self) -> bool:
        return self.role is Role.DOCTOR

    @property
    def is_patient(self) -> bool:
        return self.role is Role.PATIENT


def can_book(actor: Actor) -> bool:
    return actor.is_patient


def can_view_appointment(actor: Actor, appointment: Dict[str, Any]) -> bool:
    return actor.is_admin or actor.user_id in (
        appointment.get("patient_id"),
        appointment.get("doctor_id"),
    )


def can_change_status(actor: Actor, appointment: Dict[str, Any]) -> bool:
    return actor.is_admin or appointment.get("doctor_id") == actor.user_id


def can_cancel(actor: Actor, appointment: Dict[str, Any]) -> bool:
    return can_view_appointment(actor, appointment)


def can_manage_services(actor: Actor) -> bool:
    return actor.is_admin


def can_manage_availability(actor: Actor) -> bool:
    return actor.is_doctor


def appointment_scope(actor: Actor) -> Dict[str, Any]:
    """Store filter restricting appointment reads to what the actor may see"""
    if actor.is_admin:
        return {}
    if actor.is_doctor:
        return {"doctor_id": actor.user_id}
    return {"patient_id": actor.user_id}


def require(allowed: bool, message: str = "Access denied") -> None:
    if not allowed:
        raise AuthorizationError(message)


def require_role(actor: Actor, role: Role, message: str = None) -> None:
    require(
        actor.role is role,
        message or f"Only {role.value.lower()}s can access this endpoint",
    )
