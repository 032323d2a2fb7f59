import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import ALLOWED_ORIGINS, ENVIRONMENT
from .database import Base, engine
from .domain.booking.exceptions import BookingError, BookingValidationError
from .domain.booking.router import public_router
from .domain.booking.router import router as booking_router
from .domain.reservations.router import router as reservations_router
from .security_headers import SecurityHeadersMiddleware

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("botocore").setLevel(logging.WARNING)

SLOW_REQUEST_MS = 2000


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"🏥 Clinic booking API starting ({ENVIRONMENT})")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("✅ Appointment tables ready")
    except Exception as e:
        # Another worker may have created the tables first
        if "already exists" in str(e) or "duplicate key" in str(e):
            logger.info("Appointment tables created by another worker")
        else:
            logger.error(f"❌ Could not create appointment tables: {e}")

    try:
        from .rate_limiter import get_redis_client

        get_redis_client()
    except Exception as e:
        logger.warning(
            f"⚠️ Redis unreachable - rate-limited booking endpoints will answer 503 until it recovers: {e}"
        )

    yield
    logger.info("🏥 Clinic booking API stopped")


app = FastAPI(title="Clinic Booking API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(BookingError)
async def booking_exception_handler(request: Request, exc: BookingError):
    """Map booking domain errors to their HTTP status with a structured body"""
    if isinstance(exc, BookingValidationError):
        logger.info(f"Booking validation failed for {request.url.path}: {exc.field} - {exc.message}")
    elif exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} - {exc.error_type}: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} - {exc.error_type}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_dict()})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=422, content={"detail": jsonable_errors(exc)})


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    # ValueError contexts from field validators are not JSON serializable
    return [
        {key: value for key, value in error.items() if key != "ctx"} for error in exc.errors()
    ]


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(f"💥 {request.method} {request.url.path} failed: {str(e)}")
        raise

    elapsed_ms = (time.perf_counter() - started) * 1000
    if response.status_code >= 500 or elapsed_ms > SLOW_REQUEST_MS:
        logger.warning(
            f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.0f}ms)"
        )
    return response


app.add_middleware(SecurityHeadersMiddleware, exclude_paths=["/health", "/docs", "/openapi.json"])

logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,  # Language preference cookie
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)

app.include_router(booking_router)
app.include_router(public_router)
app.include_router(reservations_router)


@app.get("/")
async def root():
    return {"message": "Clinic Booking API", "environment": ENVIRONMENT}


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


@app.get("/health/redis")
async def redis_health_check():
    """Check that the rate limiter's Redis backend is reachable"""
    try:
        from .rate_limiter import get_redis_client

        get_redis_client().ping()
        return {"status": "healthy", "redis": "connected"}
    except Exception as e:
        logger.error(f"❌ Redis health check failed: {str(e)}")
        return JSONResponse(
            status_code=503, content={"status": "unhealthy", "redis": "unavailable"}
        )
