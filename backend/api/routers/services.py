import logging

from fastapi import APIRouter, Depends, HTTPException, Response

from api.deps import get_current_actor, get_db
from api.schemas import ServiceCreate, ServiceUpdate
from core.database import DatabaseManager
from core.errors import ClinicError, NotFoundError
from core.models import Service
from core.permissions import Actor, can_manage_services, require
from core.utils import serialize_document

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/services", tags=["services"])

ADMIN_ONLY = "Admin access required"


@router.get("")
async def list_services(db: DatabaseManager = Depends(get_db)):
    """Active services by name"""
    try:
        return [serialize_document(s) for s in await db.list_active_services()]

    except Exception as e:
        logger.error(f"Error listing services: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/{service_id}")
async def get_service(service_id: str, db: DatabaseManager = Depends(get_db)):
    try:
        service = await db.get_service(service_id)
        if not service:
            raise NotFoundError("Service not found")
        return serialize_document(service)

    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        logger.error(f"Error getting service: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("", status_code=201)
async def create_service(
    payload: ServiceCreate,
    actor: Actor = Depends(get_current_actor),
    db: DatabaseManager = Depends(get_db),
):
    try:
        require(can_manage_services(actor), ADMIN_ONLY)

        service_data = Service(**payload.model_dump()).to_dict()
        service_data["_id"] = await db.create_service(service_data)
        return serialize_document(service_data)

    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        logger.error(f"Error creating service: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.put("/{service_id}")
async def update_service(
    service_id: str,
    payload: ServiceUpdate,
    actor: Actor = Depends(get_current_actor),
    db: DatabaseManager = Depends(get_db),
):
    try:
        require(can_manage_services(actor), ADMIN_ONLY)

        updates = payload.model_dump(exclude_none=True)
        if updates and not await db.update_service(service_id, updates):
            raise NotFoundError("Service not found")

        service = await db.get_service(service_id)
        if not service:
            raise NotFoundError("Service not found")
        return serialize_document(service)

    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        logger.error(f"Error updating service: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.delete("/{service_id}", status_code=204)
async def delete_service(
    service_id: str,
    actor: Actor = Depends(get_current_actor),
    db: DatabaseManager = Depends(get_db),
):
    """Soft delete: the service is only deactivated"""
    try:
        require(can_manage_services(actor), ADMIN_ONLY)

        if not await db.update_service(service_id, {"is_active": False}):
            raise NotFoundError("Service not found")
        return Response(status_code=204)

    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        logger.error(f"Error deleting service: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")
