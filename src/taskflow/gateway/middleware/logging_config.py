"""structlog 配置

TASKFLOW_LOG_FORMAT=json 输出单行 JSON（日志采集），其余取值输出带颜色的控制台格式。
stdlib logging（uvicorn、aiosqlite）经 ProcessorFormatter 走同一条渲染链。
"""

import logging
import os

import structlog

# 第三方库默认压到 WARNING，避免淹没流转 / 扇出日志
_NOISY_LOGGERS = ("aiosqlite", "httpx", "uvicorn.access")


def _shared_processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(log_format: str) -> structlog.types.Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer(ensure_ascii=False)
    return structlog.dev.ConsoleRenderer()


def setup_logging() -> None:
    """初始化日志

    环境变量:
        TASKFLOW_LOG_FORMAT: "json" 或 "dev"（默认）
        TASKFLOW_LOG_LEVEL: 根日志级别（默认 INFO）
        TASKFLOW_LIB_LOG_LEVEL: 第三方库日志级别（默认 WARNING）
    """
    log_format = os.environ.get("TASKFLOW_LOG_FORMAT", "dev").lower()
    level = getattr(logging, os.environ.get("TASKFLOW_LOG_LEVEL", "INFO").upper(), logging.INFO)
    lib_level = getattr(
        logging, os.environ.get("TASKFLOW_LIB_LOG_LEVEL", "WARNING").upper(), logging.WARNING
    )

    shared = _shared_processors()
    if log_format == "json":
        shared.append(structlog.processors.format_exc_info)

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=_renderer(log_format),
            foreign_pre_chain=shared,
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(lib_level)
