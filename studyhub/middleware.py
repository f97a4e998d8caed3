import uuid

import structlog
from django.conf import settings

logger = structlog.get_logger()


class RequestContextMiddleware:
    """
    Tags every request with a request_id and the caller's timezone name.

    The request_id is bound into structlog's contextvars so every log line
    emitted while serving the request carries it. The timezone comes from the
    X-Timezone header; it is only validated where a view actually uses it.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request.request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.tz_name = request.headers.get("X-Timezone") or settings.TIME_ZONE

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request.request_id)
        try:
            response = self.get_response(request)
            logger.debug("request_finished",
                method=request.method,
                path=request.path,
                status=response.status_code,
            )
        finally:
            structlog.contextvars.clear_contextvars()

        response["X-Request-ID"] = request.request_id
        return response
