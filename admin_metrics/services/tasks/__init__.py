"""
Admin Metrics Celery Tasks

Tasks run in admin workers (celery -A celery_worker worker -Q admin).
"""

from admin_metrics.services.tasks.analytics_tasks import recompute_dashboard_stats_task
from admin_metrics.services.tasks.push_tasks import send_push_batch_task

__all__ = ["recompute_dashboard_stats_task", "send_push_batch_task"]
