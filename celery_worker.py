"""
Celery worker entry point

Run from the project root:
    celery -A celery_worker worker -Q admin --loglevel=info

Workers pick up admin.send_push_batch and admin.recompute_dashboard_stats.
"""

from admin_metrics.services.logger import configure_logging
from admin_metrics.core.celery_client import celery_app

configure_logging()

__all__ = ["celery_app"]
