from fastapi import Request, status
from fastapi.responses import JSONResponse
from seasonhub.core import exceptions
from seasonhub.core.notify import send_ntfy_notification
import logging

logger = logging.getLogger(__name__)

async def seasonhub_exception_handler(request: Request, exc: exceptions.SeasonHubError):
    status_code = status.HTTP_400_BAD_REQUEST
    content = {"detail": exc.message, "code": exc.code}

    if isinstance(exc, exceptions.SeasonValidationError):
        status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
        content["errors"] = exc.errors

    elif isinstance(exc, exceptions.EntityNotFoundError):
        status_code = status.HTTP_404_NOT_FOUND

    elif isinstance(exc, exceptions.ConflictError):
        status_code = status.HTTP_409_CONFLICT

    elif isinstance(exc, exceptions.AuthError):
        if isinstance(exc, exceptions.PermissionDeniedError):
            status_code = status.HTTP_403_FORBIDDEN
        else:
            status_code = status.HTTP_401_UNAUTHORIZED

    elif isinstance(exc, exceptions.SnapshotIntegrityError):
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        logger.error(f"Snapshot integrity failure on {request.url.path}: {exc.message}")
        # Tampered or corrupted snapshot: operators must look at it
        await send_ntfy_notification(
            message=f"Snapshot integrity error: {exc.message}\nPath: {request.url.path}",
            title="Snapshot Checksum Mismatch",
            priority="high"
        )

    elif isinstance(exc, exceptions.CacheFlushRefusedError):
        status_code = status.HTTP_403_FORBIDDEN

    return JSONResponse(status_code=status_code, content=content)

async def general_exception_handler(request: Request, exc: Exception):
    error_msg = f"Unhandled Exception: {str(exc)}\nPath: {request.url.path}"
    logger.error(error_msg, exc_info=True)

    await send_ntfy_notification(
        message=error_msg,
        title="500 Internal Server Error",
        priority="max"
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal Server Error. Admin has been notified.", "code": "INTERNAL_ERROR"},
    )
