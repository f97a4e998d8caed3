import structlog
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from ..domain.errors import InvalidArgument, NotFound, StoreUnavailable

logger = structlog.get_logger()

RETRY_AFTER_SECONDS = 5

STATUS_BY_ERROR = {
    InvalidArgument: status.HTTP_400_BAD_REQUEST,
    NotFound: status.HTTP_404_NOT_FOUND,
    StoreUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def scheduler_exception_handler(exc, context):
    """
    DRF exception handler that also understands scheduler errors.

    Reads that hit an unavailable store get a Retry-After hint; writes do not,
    since retrying a review is the caller's call (it carries an idempotency key).
    """
    for error_cls, status_code in STATUS_BY_ERROR.items():
        if isinstance(exc, error_cls):
            break
    else:
        return exception_handler(exc, context)

    request = context.get("request")
    method = request.method if request is not None else None
    log = logger.warning if status_code >= 500 else logger.info
    log("api_error",
        error=exc.code,
        detail=str(exc),
        method=method,
        status=status_code,
    )

    response = Response({"error": exc.code, "detail": str(exc)}, status=status_code)
    if isinstance(exc, StoreUnavailable) and method in ("GET", "HEAD"):
        response["Retry-After"] = str(RETRY_AFTER_SECONDS)
    return response
