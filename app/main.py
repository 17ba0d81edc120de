import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Import all models to ensure they're registered with SQLAlchemy Base
# This is needed for relationships between models in different files
from . import (
    models,  # noqa: F401
    models_google_calendar,  # noqa: F401
)
from .config import (
    SESSION_REMINDER_INTERVAL_SECONDS,
    SESSION_REMINDER_LOOKAHEAD_HOURS,
    SESSION_REMINDERS_ENABLED,
)
from .database import Base, engine
from .domain.sessions import client_router as client_sessions_router
from .domain.sessions import coach_router as coach_sessions_router
from .domain.sessions import router as sessions_router
from .domain.sessions.exceptions import SessionDomainError
from .routes.google_calendar import router as google_calendar_router
from .routes.notifications import router as notifications_router
from .services.session_reminders import SessionReminderScheduler

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except Exception as e:
        # Ignore "already exists" errors from race conditions between workers
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")

    scheduler = None
    if SESSION_REMINDERS_ENABLED:
        scheduler = SessionReminderScheduler(
            interval_seconds=SESSION_REMINDER_INTERVAL_SECONDS,
            lookahead_hours=SESSION_REMINDER_LOOKAHEAD_HOURS,
        )
        scheduler.start()
    else:
        logger.info("Session reminder scheduler disabled")
    app.state.reminder_scheduler = scheduler

    yield

    logger.info("Application shutting down...")
    if scheduler:
        await scheduler.stop()


app = FastAPI(title="Coaching Portal API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(SessionDomainError)
async def session_domain_exception_handler(request: Request, exc: SessionDomainError):
    """Lifecycle precondition failures: validation, not found, forbidden, invalid transition"""
    logger.warning(f"{request.method} {request.url.path} - {exc.error_code}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.error_code},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Convert 422 validation errors from HTTPBearer to 401 authentication errors
    when the issue is with the Authorization header
    """
    for error in exc.errors():
        if error.get("loc") and "authorization" in str(error.get("loc")).lower():
            logger.warning(
                f"Authentication failed for {request.url.path}: Missing or invalid Authorization header"
            )
            return JSONResponse(
                status_code=401,
                content={
                    "detail": "Not authenticated. Please provide a valid Bearer token in the Authorization header."
                },
            )

    # For other validation errors, return 422 as normal
    logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=422, content={"detail": jsonable_errors(exc)})


def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may carry exception instances that JSONResponse cannot serialise
    return [{k: v for k, v in error.items() if k != "ctx"} for error in exc.errors()]


@app.middleware("http")
async def log_requests(request: Request, call_next):
    try:
        response = await call_next(request)
        return response
    except Exception as e:
        logger.error(f"{request.method} {request.url.path} - Error: {str(e)}")
        raise


# CORS Configuration
ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS",
    "http://localhost:5000,http://localhost:5173,http://localhost:3000",
).split(",")

logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)

# Routes
app.include_router(client_sessions_router)
app.include_router(coach_sessions_router)
app.include_router(sessions_router)
app.include_router(notifications_router)
app.include_router(google_calendar_router)


@app.get("/")
def root():
    return {"message": "Coaching Portal API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}
