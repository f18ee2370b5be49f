"""TraceMiddleware -- 按资源 id 绑定追踪字段

/api/tasks/{task_id}/... 绑定 task_id 与 trace_id=trace-{task_id}；
/api/notifications/{notification_id}/... 绑定 notification_id。
后台扇出任务复制当前 contextvars，通知日志因此带有同一 trace_id。
"""

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from ulid import ULID


def _is_ulid(value: str) -> bool:
    try:
        ULID.from_str(value)
    except ValueError:
        return False
    return True


def trace_fields(path: str) -> dict[str, str]:
    """从请求路径解析需要绑定的追踪字段"""
    parts = path.strip("/").split("/")
    if len(parts) < 3 or parts[0] != "api" or not _is_ulid(parts[2]):
        return {}
    if parts[1] == "tasks":
        return {"task_id": parts[2], "trace_id": f"trace-{parts[2]}"}
    if parts[1] == "notifications":
        return {"notification_id": parts[2]}
    return {}


class TraceMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        fields = trace_fields(request.url.path)
        if fields:
            structlog.contextvars.bind_contextvars(**fields)
        return await call_next(request)
