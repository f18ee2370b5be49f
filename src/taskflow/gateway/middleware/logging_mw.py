"""LoggingMiddleware -- 请求级日志

每个请求绑定 request_id / actor_id 到 structlog contextvars，
同一请求内的流转、追加、扇出日志都能按 request_id 串联。
"""

import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from ulid import ULID

log = structlog.get_logger()


class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = str(ULID())
        started = time.perf_counter()

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            actor_id=request.headers.get("X-Actor-Id", ""),
        )

        response = await call_next(request)

        elapsed_ms = round((time.perf_counter() - started) * 1000, 1)
        if response.status_code >= 500:
            log.warning("request_failed", status_code=response.status_code, elapsed_ms=elapsed_ms)
        else:
            log.info("request_handled", status_code=response.status_code, elapsed_ms=elapsed_ms)

        response.headers["X-Request-ID"] = request_id
        return response
