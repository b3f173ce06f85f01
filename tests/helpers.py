from datetime import date, datetime

from bson import ObjectId

from core.models import ACTIVE_STATUSES, Role, active_slot_key, released_slot_key
from core.permissions import Actor


class FixedToday:
    """Callable server-local date that tests can move"""

    def __init__(self, value: date):
        self.value = value

    def __call__(self) -> date:
        return self.value


class FakeChannel:
    def __init__(self):
        self.sent = []

    async def send_json(self, data):
        self.sent.append(data)

    def events(self, name=None):
        return [frame for frame in self.sent if name is None or frame["event"] == name]


class BrokenChannel:
    async def send_json(self, data):
        raise RuntimeError("socket closed")


async def create_user(db, role: Role, name: str, **fields) -> Actor:
    user_id = await db.create_user(
        {
            "email": f"{name.lower().replace(' ', '.')}@example.com",
            "password": "not-a-real-hash",
            "name": name,
            "role": role.value,
            "created_at": datetime.utcnow(),
            **fields,
        }
    )
    return Actor(user_id=str(user_id), role=role)


async def insert_appointment(db, doctor_id, patient_id, day, time, status="PENDING", notes=None):
    """Store an appointment directly, bypassing the booking rules"""
    appointment_id = ObjectId()
    slot_key = (
        active_slot_key(doctor_id, day, time)
        if status in ACTIVE_STATUSES
        else released_slot_key(appointment_id)
    )
    await db.create_appointment(
        {
            "_id": appointment_id,
            "patient_id": patient_id,
            "doctor_id": doctor_id,
            "date": day,
            "time": time,
            "status": status,
            "notes": notes,
            "slot_key": slot_key,
            "created_at": datetime.utcnow(),
        }
    )
    return str(appointment_id)
