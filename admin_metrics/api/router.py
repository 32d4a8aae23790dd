"""
Admin Metrics Router
Combines all endpoint routers
"""

from fastapi import APIRouter
from admin_metrics.api.endpoints import analytics, leaderboards, notifications

api_router = APIRouter()

api_router.include_router(analytics.router)
api_router.include_router(leaderboards.router)
api_router.include_router(notifications.router)
