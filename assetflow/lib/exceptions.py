"""Litestar exception handlers mapping engine errors to JSON responses."""

import logging

from litestar import Request, Response
from litestar.status_codes import (
    HTTP_400_BAD_REQUEST,
    HTTP_403_FORBIDDEN,
    HTTP_404_NOT_FOUND,
    HTTP_409_CONFLICT,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_502_BAD_GATEWAY,
)

from assetflow.domain.errors import (
    AssetNotFoundError,
    CascadeDeleteError,
    EngineError,
    InvalidAssetInCarouselError,
    InvalidStateError,
    MissingReasonError,
    PermissionDeniedError,
    ReferentialIntegrityError,
    SelfApprovalError,
    ValidationError,
)
from assetflow.lib import observability

logger = logging.getLogger(__name__)

# Most specific first; the first matching class wins
STATUS_CODES: list[tuple[type[EngineError], int]] = [
    (ValidationError, HTTP_400_BAD_REQUEST),
    (MissingReasonError, HTTP_400_BAD_REQUEST),
    (InvalidAssetInCarouselError, HTTP_400_BAD_REQUEST),
    (SelfApprovalError, HTTP_403_FORBIDDEN),
    (PermissionDeniedError, HTTP_403_FORBIDDEN),
    (AssetNotFoundError, HTTP_404_NOT_FOUND),
    (InvalidStateError, HTTP_409_CONFLICT),
    (CascadeDeleteError, HTTP_502_BAD_GATEWAY),
    (ReferentialIntegrityError, HTTP_500_INTERNAL_SERVER_ERROR),
]


def status_code_for(exc: EngineError) -> int:
    for error_type, status_code in STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return HTTP_500_INTERNAL_SERVER_ERROR


def engine_error_handler(request: Request, exc: EngineError) -> Response:
    """Render an engine error as JSON with its code and structured detail."""
    status_code = status_code_for(exc)

    if status_code >= HTTP_500_INTERNAL_SERVER_ERROR:
        logged = observability.exception(
            "Engine failure on {method} {path}: {code}",
            method=request.method,
            path=request.url.path,
            code=exc.code,
        )
        if not logged:
            logger.error(
                "Engine failure on %s %s: %s", request.method, request.url.path, exc.code,
                exc_info=exc,
            )

    return Response(
        content={"status_code": status_code, "error": exc.code, "detail": exc.to_dict()},
        status_code=status_code,
        media_type="application/json",
    )


def internal_server_error_handler(request: Request, exc: Exception) -> Response:
    """Handle unexpected exceptions with a generic JSON body."""
    status_code = HTTP_500_INTERNAL_SERVER_ERROR

    logged = observability.exception(
        "Unhandled exception on {method} {path}",
        method=request.method,
        path=request.url.path,
    )
    if not logged:
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)

    return Response(
        content={"status_code": status_code, "detail": "Internal Server Error"},
        status_code=status_code,
        media_type="application/json",
    )


exception_handlers = {
    EngineError: engine_error_handler,
    Exception: internal_server_error_handler,
}
