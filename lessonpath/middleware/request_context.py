"""Request id propagation and one access-log line per request.

The id comes from the client's X-Request-ID header or is generated, lives
in a ContextVar for the duration of the request, and is stamped on every
log record by a root-logger filter.  Navigation routes also carry the
lesson and student from the path, so the access line includes them.
"""

from __future__ import annotations

import logging
import time
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")

_PATH_CONTEXT_FIELDS = ("lesson_id", "student_id", "scene_id")


class _RequestContextFilter(logging.Filter):
    """Attach the current request id to every LogRecord."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = request_id_var.get("-")  # type: ignore[attr-defined]
        return True


def install_request_id_filter(target: logging.Filterer) -> None:
    if not any(isinstance(f, _RequestContextFilter) for f in target.filters):
        target.addFilter(_RequestContextFilter())


# Root logger filters only see records logged on the root logger itself,
# so main also installs it on the root handlers after setup_logging.
install_request_id_filter(logging.getLogger())


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assign a request id, time the request, and log its completion."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        req_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        token = request_id_var.set(req_id)
        try:
            start = time.monotonic()
            response = await call_next(request)
            duration_ms = round((time.monotonic() - start) * 1000, 1)

            extra: dict[str, object] = {
                "request_id": req_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            }
            path_params = request.scope.get("path_params") or {}
            for name in _PATH_CONTEXT_FIELDS:
                if name in path_params:
                    extra[name] = path_params[name]

            logger.info(
                "%s %s -> %d (%.1fms)",
                request.method,
                request.url.path,
                response.status_code,
                duration_ms,
                extra=extra,
            )
            response.headers["X-Request-ID"] = req_id
            return response
        finally:
            request_id_var.reset(token)
