"""
Maps engine errors to HTTP responses
"""

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from admin_metrics.core.exceptions import (
    AdminMetricsError,
    AlreadyAnnouncedError,
    ChallengeNotCompletedError,
    ChallengeNotFoundError,
    DataStoreError,
    EmptyLeaderboardError,
    InvalidParameterError,
    MalformedSnapshotError,
    NotificationNotFoundError,
)

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    AlreadyAnnouncedError: 409,
    ChallengeNotFoundError: 404,
    NotificationNotFoundError: 404,
    EmptyLeaderboardError: 422,
    ChallengeNotCompletedError: 422,
    InvalidParameterError: 400,
    MalformedSnapshotError: 502,
    DataStoreError: 502,
}


def status_for(exc: AdminMetricsError) -> int:
    for error_type in type(exc).__mro__:
        if error_type in ERROR_STATUS:
            return ERROR_STATUS[error_type]
    return 500


async def admin_metrics_error_handler(request: Request, exc: AdminMetricsError) -> JSONResponse:
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error(
            f"{type(exc).__name__}: {exc.message}",
            extra={"path": request.url.path, "context": exc.context},
        )
    return JSONResponse(
        status_code=status_code,
        content={"detail": jsonable_encoder(exc.to_dict())},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AdminMetricsError, admin_metrics_error_handler)
