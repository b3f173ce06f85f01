from datetime import date

import pytest
from mongomock_motor import AsyncMongoMockClient

from core.booking import AppointmentService
from core.database import DatabaseManager
from core.models import Role
from tests.helpers import FixedToday, create_user


@pytest.fixture
async def db():
    manager = DatabaseManager(client=AsyncMongoMockClient(), db_name="clinic_test")
    await manager.connect()
    yield manager


@pytest.fixture
def today():
    return FixedToday(date(2025, 6, 10))


@pytest.fixture
def booking(db, today):
    return AppointmentService(db, today=today)


@pytest.fixture
async def patient(db):
    return await create_user(db, Role.PATIENT, "Pat Patient", gender="FEMALE")


@pytest.fixture
async def other_patient(db):
    return await create_user(db, Role.PATIENT, "Olly Other", gender="MALE")


@pytest.fixture
async def doctor(db):
    return await create_user(db, Role.DOCTOR, "Dr Strange", specialty="NEUROLOGIST")


@pytest.fixture
async def other_doctor(db):
    return await create_user(db, Role.DOCTOR, "Dr Who", specialty="GENERAL_PHYSICIAN")


@pytest.fixture
async def admin(db):
    return await create_user(db, Role.ADMIN, "Ada Admin")
