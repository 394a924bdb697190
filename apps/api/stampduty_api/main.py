"""Stamp-duty webhook receiver - Main FastAPI application."""

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app

from stampduty_api.middleware.correlation import CorrelationIDMiddleware
from stampduty_api.routes import webhooks
from stampduty_api.settings import get_settings
from stampduty_api.webhooks.ledger import RedisDeliveryLedger
from stampduty_api.webhooks.service import get_receiver

# Configure logging
logging.basicConfig(
    level=get_settings().log_level,
    format='{"time": "%(asctime)s", "level": "%(levelname)s", "message": "%(message)s", "module": "%(name)s"}',
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info("Starting stamp-duty webhook receiver...")
    try:
        settings.validate_production_settings()
        if not settings.has_secrets:
            logger.warning("No webhook secrets configured; every delivery will be rejected with 404")
        receiver = get_receiver()
        logger.info(f"Delivery ledger: {type(receiver.ledger).__name__}")
    except Exception as e:
        logger.error(f"Configuration validation failed: {e}")
        raise ValueError(f"Invalid configuration: {e}") from e

    yield
    logger.info("Shutting down stamp-duty webhook receiver...")


app = FastAPI(
    title="Stamp-duty Webhook Receiver",
    description="Verifies and handles signed stamp-duty platform webhooks",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(CorrelationIDMiddleware)

# Prometheus metrics
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)

app.include_router(webhooks.router)


@app.get("/health")
async def health_check():
    """Health check endpoint (basic liveness)."""
    return {
        "status": "healthy",
        "service": "stampduty-webhook-receiver",
        "version": "0.1.0",
    }


@app.get("/ready")
async def readiness_check():
    """Readiness check endpoint (verifies secrets and the delivery ledger)."""
    checks = {
        "secrets": settings.has_secrets,
        "ledger": False,
    }

    ledger = get_receiver().ledger
    if isinstance(ledger, RedisDeliveryLedger):
        try:
            checks["ledger"] = ledger.ping()
        except Exception as e:
            logger.error(f"Redis check failed: {e}")
            checks["ledger"] = False
    else:
        checks["ledger"] = True

    all_ready = all(checks.values())

    return JSONResponse(
        content={
            "status": "ready" if all_ready else "not_ready",
            "checks": checks,
        },
        status_code=200 if all_ready else 503,
    )


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "Stamp-duty Webhook Receiver",
        "version": "0.1.0",
        "webhooks": "/v1/webhooks",
        "health": "/health",
    }
