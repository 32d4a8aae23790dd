"""
Admin Metrics API
Dashboard statistics, leaderboards, winner announcements and targeted
notifications for the fitness admin console
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from admin_metrics.core.config import settings
from admin_metrics.api.errors import register_exception_handlers
from admin_metrics.api.router import api_router
from admin_metrics.services.logger import configure_logging

configure_logging()
logger = logging.getLogger("admin_metrics.main")

app = FastAPI(
    title="Admin Metrics API",
    description="Metrics & targeting engine for the admin console",
    version="1.0.0",
    docs_url="/docs" if settings.ENVIRONMENT == "development" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT == "development" else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["Authorization", "Content-Type"],
)

register_exception_handlers(app)

app.include_router(api_router, prefix="/api")


@app.get("/health")
async def health_check():
    """Health check endpoint for uptime monitoring.
    Returns status and component health: database, redis, celery.
    """
    from admin_metrics.core.cache import DummyRedis, get_redis_client
    from admin_metrics.core.database import get_supabase_client
    from admin_metrics.core.celery_client import get_celery_inspect

    health = {
        "status": "ok",
        "service": "admin-metrics",
        "components": {},
    }

    try:
        supabase = get_supabase_client()
        supabase.table("challenges").select("id").limit(1).execute()
        health["components"]["database"] = "ok"
    except Exception as e:
        health["components"]["database"] = f"error: {str(e)}"
        health["status"] = "degraded"

    try:
        client = get_redis_client()
        if client is None or isinstance(client, DummyRedis):
            health["components"]["redis"] = "unavailable"
            health["status"] = "degraded"
        else:
            client.ping()
            health["components"]["redis"] = "ok"
    except Exception as e:
        health["components"]["redis"] = f"error: {str(e)}"
        health["status"] = "degraded"

    try:
        ping = get_celery_inspect().ping()
        if ping:
            health["components"]["celery"] = f"ok ({len(ping)} workers)"
        else:
            health["components"]["celery"] = "no workers online"
    except Exception as e:
        health["components"]["celery"] = f"error: {str(e)}"
        health["status"] = "degraded"

    return health


@app.on_event("startup")
async def startup_event():
    logger.info(f"Admin Metrics API started (environment: {settings.ENVIRONMENT})")


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8002,
        reload=settings.ENVIRONMENT == "development",
    )
