import logging

from fastapi import APIRouter, Depends, HTTPException
from pymongo.errors import DuplicateKeyError

from api.deps import get_db
from api.schemas import DoctorRegister, LoginRequest, PatientRegister
from core.database import DatabaseManager
from core.errors import AuthenticationError, ClinicError, ConflictError
from core.models import Role, User
from core.security import create_access_token, hash_password, verify_password
from core.utils import serialize_document

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/auth", tags=["auth"])

PUBLIC_USER_FIELDS = ["id", "email", "name", "role", "gender", "specialty"]


def _auth_response(user: dict) -> dict:
    data = serialize_document(user)
    return {
        "user": {key: data.get(key) for key in PUBLIC_USER_FIELDS},
        "token": create_access_token(data["id"], data["role"]),
    }


async def _register(db: DatabaseManager, user: User) -> dict:
    if await db.get_user_by_email(user.email):
        raise ConflictError("User already exists")

    user_data = user.to_dict()
    try:
        user_data["_id"] = await db.create_user(user_data)
    except DuplicateKeyError:
        raise ConflictError("User already exists")

    logger.info(f"Registered {user.role.value.lower()} {user.email}")
    return _auth_response(user_data)


@router.post("/register/patient", status_code=201)
async def register_patient(payload: PatientRegister, db: DatabaseManager = Depends(get_db)):
    """Create a patient account"""
    try:
        return await _register(
            db,
            User(
                email=payload.email,
                password=hash_password(payload.password),
                name=payload.name,
                role=Role.PATIENT,
                gender=payload.gender,
            ),
        )

    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        logger.error(f"Error registering patient: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/register/doctor", status_code=201)
async def register_doctor(payload: DoctorRegister, db: DatabaseManager = Depends(get_db)):
    """Create a doctor account"""
    try:
        return await _register(
            db,
            User(
                email=payload.email,
                password=hash_password(payload.password),
                name=payload.name,
                role=Role.DOCTOR,
                specialty=payload.specialty,
            ),
        )

    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        logger.error(f"Error registering doctor: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/login")
async def login(payload: LoginRequest, db: DatabaseManager = Depends(get_db)):
    """Exchange credentials for a token"""
    try:
        user = await db.get_user_by_email(payload.email)
        if not user or not verify_password(payload.password, user["password"]):
            raise AuthenticationError("Invalid credentials")

        return _auth_response(user)

    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        logger.error(f"Error logging in: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")
