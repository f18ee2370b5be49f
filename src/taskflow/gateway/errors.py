"""异常 -> HTTP 响应映射

错误响应体统一为 {"error": {"code", "message"}}。
"""

import structlog
from fastapi import FastAPI, Request
from starlette.responses import JSONResponse
from taskflow.core.exceptions import (
    ConcurrentModificationError,
    InvalidTransitionError,
    PermissionDeniedError,
    TaskflowError,
    TaskNotFoundError,
    ValidationError,
)

log = structlog.get_logger()


class ActorRequiredError(TaskflowError):
    """请求缺少可识别的操作者"""

    def __init__(self, message: str = "X-Actor-Id header is required") -> None:
        super().__init__(message)


# 按列表顺序匹配
_ERROR_MAP: list[tuple[type[TaskflowError], int, str]] = [
    (ActorRequiredError, 401, "ACTOR_REQUIRED"),
    (PermissionDeniedError, 403, "PERMISSION_DENIED"),
    (TaskNotFoundError, 404, "TASK_NOT_FOUND"),
    (InvalidTransitionError, 409, "INVALID_TRANSITION"),
    (ConcurrentModificationError, 409, "CONCURRENT_MODIFICATION"),
    (ValidationError, 422, "VALIDATION_ERROR"),
]


def error_response(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message}},
    )


def to_http(exc: TaskflowError) -> tuple[int, str]:
    """返回 (status_code, code)；未登记的引擎异常视为 500"""
    for exc_type, status_code, code in _ERROR_MAP:
        if isinstance(exc, exc_type):
            return status_code, code
    return 500, "INTERNAL_ERROR"


async def taskflow_error_handler(request: Request, exc: TaskflowError) -> JSONResponse:
    status_code, code = to_http(exc)
    log_method = log.error if status_code >= 500 else log.info
    log_method(
        "request_rejected",
        code=code,
        status_code=status_code,
        error=str(exc),
        recoverable=exc.recoverable,
    )
    return error_response(status_code, code, str(exc))


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(TaskflowError, taskflow_error_handler)
