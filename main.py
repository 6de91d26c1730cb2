"""
ScoreSmart Sessions service

Entry point for the enrollment engine's HTTP surface. Identity arrives in
headers set by the upstream gateway, so the service itself serves no
browser origin directly.

Run locally with: uvicorn main:app --reload
"""
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request

from scoresmart.api.responses import register_error_handlers
from scoresmart.api.routes import features, sessions
from scoresmart.config import ENABLE_SCHEDULER, LOG_LEVEL
from scoresmart.services.scheduler import start_scheduler, stop_scheduler

logging.basicConfig(
    level=LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

SERVICE_NAME = "scoresmart-sessions"
SERVICE_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run the capacity audit scheduler for as long as the app is up"""
    logger.info(f"{SERVICE_NAME} {SERVICE_VERSION} starting (scheduler={'on' if ENABLE_SCHEDULER else 'off'})")
    if ENABLE_SCHEDULER:
        start_scheduler()

    yield

    if ENABLE_SCHEDULER:
        stop_scheduler()
    logger.info(f"{SERVICE_NAME} stopped")


app = FastAPI(
    title="ScoreSmart Sessions API",
    description="Capacity-limited tutoring sessions: listings, enrollment and cancellation",
    version=SERVICE_VERSION,
    lifespan=lifespan,
    docs_url="/api/docs",
    openapi_url="/api/openapi.json",
)
register_error_handlers(app)
app.include_router(sessions.router)
app.include_router(features.router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info(f"{request.method} {request.url.path} -> {response.status_code} in {elapsed_ms:.1f}ms")
    return response


@app.get("/health", tags=["Health"])
async def health_check():
    """Liveness check for the load balancer"""
    return {
        "status": "ok",
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, log_level=LOG_LEVEL.lower())
