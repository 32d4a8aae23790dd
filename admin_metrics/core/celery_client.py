"""
Celery app for the metrics engine.
Shares the console's Redis broker; all tasks are named admin.* and run on
the "admin" queue so they never mix with main API tasks.
"""

from celery import Celery
from admin_metrics.core.config import settings

redis_url = settings.redis_connection_url

celery_app = Celery(
    "admin_metrics",
    broker=redis_url,
    backend=redis_url,
    include=["admin_metrics.services.tasks"],
)

celery_app.conf.update(
    timezone="UTC",
    enable_utc=True,
    result_expires=3600,  # 1 hour
    result_extended=True,
    # Broker settings for SSL (Upstash)
    broker_use_ssl=(
        {"ssl_cert_reqs": "none"} if redis_url and "rediss://" in redis_url else None
    ),
    redis_backend_use_ssl=(
        {"ssl_cert_reqs": "none"} if redis_url and "rediss://" in redis_url else None
    ),
    task_routes={"admin.*": {"queue": "admin"}},
    task_default_queue="admin",
)


def get_celery_inspect():
    """Get Celery inspect instance for querying workers"""
    return celery_app.control.inspect()
