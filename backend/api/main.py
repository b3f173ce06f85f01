import logging
from datetime import date
from typing import Callable, Optional

from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core import config
from core.availability import AvailabilityService
from core.booking import AppointmentService
from core.database import DatabaseManager
from core.errors import ClinicError
from core.messaging import MessagingService
from core.slots import SlotAvailabilityEngine
from realtime.presence import PresenceRegistry
from realtime.relay import MessageRelay
from api.routers import (
    appointments,
    auth,
    availability,
    messages,
    realtime,
    services,
    system,
    users,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)
logging.getLogger("pymongo").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


def create_app(
    db: Optional[DatabaseManager] = None,
    presence: Optional[PresenceRegistry] = None,
    today: Callable[[], date] = date.today,
) -> FastAPI:
    app = FastAPI(
        title="Clinic Booking API",
        description="Backend API for clinic appointments and patient/doctor messaging",
        version="1.0.0",
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[config.FRONTEND_URL, "http://localhost:3000", "http://localhost:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Services shared by every request and connection of this process
    app.state.db = db or DatabaseManager()
    app.state.presence = presence or PresenceRegistry()
    app.state.relay = MessageRelay(app.state.presence)
    app.state.slots = SlotAvailabilityEngine(app.state.db)
    app.state.appointments = AppointmentService(app.state.db, today=today)
    app.state.messaging = MessagingService(app.state.db)
    app.state.availability = AvailabilityService(app.state.db)

    # Include Routers
    app.include_router(system.router)
    app.include_router(auth.router)
    app.include_router(users.router)
    app.include_router(appointments.router)
    app.include_router(services.router)
    app.include_router(availability.router)
    app.include_router(messages.router)
    app.include_router(realtime.router)

    @app.on_event("startup")
    async def startup_event():
        """Initialize database connection and presence on startup"""
        await app.state.db.connect()
        await app.state.presence.start()
        logger.info("API server started successfully")

    @app.on_event("shutdown")
    async def shutdown_event():
        """Drop live connections and close the database on shutdown"""
        await app.state.presence.close()
        await app.state.db.close()
        logger.info("API server shutdown")

    # Error handlers
    @app.exception_handler(ClinicError)
    async def clinic_error_handler(request, exc: ClinicError):
        if exc.status_code >= 500:
            logger.error(f"Internal server error: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})

    @app.exception_handler(404)
    async def not_found_handler(request, exc):
        return JSONResponse(
            status_code=404,
            content={"detail": getattr(exc, "detail", None) or "Resource not found"},
        )

    @app.exception_handler(500)
    async def internal_error_handler(request, exc):
        logger.error(f"Internal server error: {exc}")
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host=config.API_HOST,
        port=config.API_PORT,
        reload=True,
        log_level="info",
    )
