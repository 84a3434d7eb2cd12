"""
Identity Service - issues, validates and propagates user identity
"""
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging

from .config import settings
from .db import SessionLocal, init_db
from .deps import get_event_publisher
from .errors import IdentityServiceError
from .events import OutboxDispatcher
from .routes import auth, dev_monitor, health

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Initialize database and flush events left pending by a previous run"""
    init_db()
    OutboxDispatcher(
        SessionLocal,
        get_event_publisher(),
        max_attempts=settings.EVENT_MAX_ATTEMPTS,
        batch_size=settings.EVENT_DISPATCH_BATCH_SIZE,
    ).dispatch_pending()
    yield


app = FastAPI(
    title="Identity Service",
    description="Authentication, account creation and identity token validation",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(IdentityServiceError)
async def identity_error_handler(request: Request, exc: IdentityServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.kind)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error_type": exc.kind},
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Field locations only; the submitted body may hold a password
    fields = [".".join(str(part) for part in err.get("loc", ())) for err in exc.errors()]
    logger.info("%s %s rejected: invalid fields %s", request.method, request.url.path, fields)
    return JSONResponse(
        status_code=422,
        content={"detail": "invalid request body", "error_type": "invalid_argument"},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("%s %s failed unexpectedly", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": "internal error", "error_type": "internal"},
    )


app.include_router(auth.router)
app.include_router(health.router)
app.include_router(dev_monitor.router)
