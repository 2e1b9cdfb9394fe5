from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from station_queue.core.exceptions import QueueError
from station_queue.core.logging import get_logger

logger = get_logger(__name__)


async def queue_error_handler(request: Request, exc: Exception) -> JSONResponse:
    error = exc if isinstance(exc, QueueError) else QueueError(str(exc))
    if error.status_code >= 500:
        logger.error("request_storage_failure", kind=error.kind, error=error.message)
    return JSONResponse(
        status_code=error.status_code,
        content={"detail": error.message, "kind": error.kind},
    )


async def general_500_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_exception", error=str(exc))
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Erreur interne du serveur", "kind": "internal_error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(QueueError, queue_error_handler)
    app.add_exception_handler(Exception, general_500_exception_handler)
