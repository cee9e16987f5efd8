# camrent/main.py
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from fastapi import FastAPI, HTTPException, Request, status as fastapi_status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import ValidationError
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from camrent.api.v1.api import api_router_v1
from camrent.core.config import PENDING_EXPIRY_INTERVAL_MINUTES, SCHEDULER_TIMEZONE, setup_logging
from camrent.core.errors import PartialFailureError, ServiceError
from camrent.core.rate_limiter import get_rate_limiter, rate_limit_exception_handler
from camrent.db.database import init_db
from camrent.middleware.authentication import AuthMiddleware
from camrent.middleware.logging import RequestLoggingMiddleware
from camrent.models.rental import Rental
from camrent.scheduler.jobs import expire_stale_pending_rentals

setup_logging()

scheduler = AsyncIOScheduler(timezone=SCHEDULER_TIMEZONE)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application startup...")
    await init_db()
    logger.info("Database initialized.")

    scheduler.add_job(
        expire_stale_pending_rentals,
        trigger=IntervalTrigger(minutes=PENDING_EXPIRY_INTERVAL_MINUTES),
        id="expire_pending_rentals_job",
        name="Expire Stale Pending Rentals",
        replace_existing=True,
        misfire_grace_time=60 * 15,
    )
    scheduler.start()
    logger.info(f"Scheduler started with timezone: {scheduler.timezone}")
    yield
    logger.info("Application shutdown...")
    if scheduler.running:
        scheduler.shutdown()


app = FastAPI(
    title="Camera Rental API",
    description="Camera rentals, extensions, payments and booking conflict resolution.",
    version="1.0.0",
    lifespan=lifespan,
)

# --- Error handling ---
app.add_exception_handler(RateLimitExceeded, rate_limit_exception_handler)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    content = {"detail": exc.message}
    if isinstance(exc, PartialFailureError):
        content["extension_id"] = exc.extension_id
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(RequestValidationError)
@app.exception_handler(ValidationError)
async def validation_exception_handler(request: Request, exc: ValidationError):
    logger.warning(f"Validation Error on {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=fastapi_status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": "Validation Error", "errors": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    logger.warning(f"HTTP Exception: Status={exc.status_code}, Detail={exc.detail}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled Exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=fastapi_status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "An internal server error occurred."},
    )


# --- Middleware (last added runs first) ---
app.add_middleware(AuthMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(GZipMiddleware, minimum_size=500)

app.state.limiter = get_rate_limiter()

app.include_router(api_router_v1)


@app.get("/")
async def read_root():
    return {"message": "Camera Rental API"}


@app.get("/health")
async def health_check():
    try:
        await Rental.get_motor_collection().database.command("ping")
    except Exception as e:
        logger.error(f"MongoDB health check failed: {e}")
        raise HTTPException(status_code=503, detail="MongoDB connection failed.")
    return {"status": "ok"}
