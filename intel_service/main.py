"""Issue Intelligence Service FastAPI application."""

import os
import time
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

from intel_service.core import (
    setup_logging, get_logger, get_monitoring_config, validate_required_settings,
)
from intel_service.core.metrics import http_requests_total, http_request_duration_seconds
from intel_service.api.routes import router
from intel_service.jobs import get_cycle_runner, get_investigation_queue
from db.connection import init_db_pool, close_db_pool

load_dotenv()

# Setup logging
log_level = os.getenv("LOG_LEVEL", "INFO")
log_file = os.getenv(
    "LOG_FILE", None
)  # If set, uses exact path; otherwise auto-generates daily log
log_dir = os.getenv("LOG_DIR", None)  # Directory for log files (default: ./logs)
setup_logging(log_level=log_level, log_file=log_file, log_dir=log_dir, service_name="intel_service")
logger = get_logger(__name__)

app = FastAPI(
    title="Issue Intelligence Service",
    version="1.0.0",
    description="Alert investigation, log monitoring and automated issue filing",
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request timing middleware
@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    """Middleware to track HTTP metrics."""
    start_time = time.time()
    response = await call_next(request)
    duration = time.time() - start_time

    # Route template keeps label cardinality bounded (/alerts/{event_id})
    route = request.scope.get("route")
    endpoint = getattr(route, "path", request.url.path)

    http_requests_total.labels(
        method=request.method, endpoint=endpoint, status_code=response.status_code
    ).inc()
    http_request_duration_seconds.labels(method=request.method, endpoint=endpoint).observe(duration)

    logger.debug(f"HTTP {request.method} {request.url.path} - {response.status_code} - {duration:.3f}s")
    return response


# Startup / shutdown hooks
@app.on_event("startup")
async def startup():
    """Validate settings, open the store and start background work."""
    validate_required_settings()

    pool_min = int(os.getenv("DB_POOL_MIN", "2"))
    pool_max = int(os.getenv("DB_POOL_MAX", "10"))
    init_db_pool(min_size=pool_min, max_size=pool_max)

    await get_investigation_queue().start()

    if get_monitoring_config().get("enabled", True):
        await get_cycle_runner().start()
    else:
        logger.info("Log monitoring disabled in config")

    logger.info("Issue Intelligence Service started successfully")


@app.on_event("shutdown")
async def shutdown():
    """Cleanup on shutdown."""
    await get_cycle_runner().stop()
    await get_investigation_queue().stop()
    close_db_pool()
    logger.info("Issue Intelligence Service shutdown complete")


app.include_router(router)


if __name__ == "__main__":
    import uvicorn

    host = os.getenv("INTEL_SERVICE_HOST", "0.0.0.0")
    port = int(os.getenv("INTEL_SERVICE_PORT", "3002"))

    uvicorn.run(app, host=host, port=port)
