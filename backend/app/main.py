import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from app.config import settings
from app.errors import (
    AlreadyResolved,
    AuthenticationError,
    DuplicateName,
    DuplicateValue,
    NotFound,
    PermissionDenied,
    RegistryError,
    ValidationError,
)
from app.routers import apps, auth, jobs, lookups, sets, warnings
from app.services.scheduler import JobScheduler
from app.services.warning_detection import JOB_NAME, WarningDetectionJob

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"

# Checked in order; subclasses before their bases.
_STATUS_BY_ERROR = (
    (NotFound, 404),
    (DuplicateName, 409),
    (DuplicateValue, 409),
    (AlreadyResolved, 400),
    (ValidationError, 400),
    (AuthenticationError, 401),
    (PermissionDenied, 403),
)


def _status_for(exc: RegistryError) -> int:
    for cls, code in _STATUS_BY_ERROR:
        if isinstance(exc, cls):
            return code
    return 500


@asynccontextmanager
async def lifespan(app: FastAPI):
    scheduler = JobScheduler()
    detection = WarningDetectionJob()
    scheduler.register(
        JOB_NAME,
        settings.warning_detection_interval_minutes * 60,
        detection.execute,
    )
    if settings.warning_detection_enabled:
        scheduler.start_all()
    else:
        logger.info("Warning detection disabled; job registered but not started")
    app.state.scheduler = scheduler
    try:
        yield
    finally:
        scheduler.stop_all()


app = FastAPI(title="Registry API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RegistryError)
async def registry_error_handler(request: Request, exc: RegistryError):
    status_code = _status_for(exc)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = [
        {
            "field": ".".join(str(part) for part in err["loc"] if part != "body"),
            "message": err["msg"],
        }
        for err in exc.errors()
    ]
    body = ValidationError("Validation failed", details=details).to_dict()
    return JSONResponse(status_code=400, content=body)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "Internal server error", "code": "INTERNAL_ERROR"},
    )


app.include_router(auth.router, prefix=API_PREFIX)
app.include_router(sets.router, prefix=API_PREFIX)
app.include_router(lookups.router, prefix=API_PREFIX)
app.include_router(warnings.router, prefix=API_PREFIX)
app.include_router(apps.router, prefix=API_PREFIX)
app.include_router(jobs.router, prefix=API_PREFIX)


@app.get("/health")
async def health():
    return {"status": "ok"}
