"""FastAPI 应用主文件

app 创建 + lifespan 管理：DB 初始化/关闭 + 通知扇出组件初始化 + 路由注册。
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from taskflow.core.config import get_app_base_url, get_db_path
from taskflow.core.store import create_store_group
from taskflow.notify import NotificationDispatcher, build_email_gateway, load_notify_config

from .errors import register_error_handlers
from .middleware.logging_config import setup_logging
from .middleware.logging_mw import LoggingMiddleware
from .middleware.trace_mw import TraceMiddleware
from .routes import health, notifications, tasks
from .services.dispatch_runner import DispatchRunner

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """启动时初始化 Store 与扇出组件；关闭时等待未完成的扇出再关闭连接"""
    store_group = await create_store_group(get_db_path())
    app.state.store_group = store_group

    notify_config = load_notify_config()
    app.state.notify_config = notify_config

    dispatcher = NotificationDispatcher(
        identity=store_group.user_store,
        notification_store=store_group.notification_store,
        email_gateway=build_email_gateway(notify_config),
        email_timeout_s=notify_config.email_timeout_s,
        max_concurrency=notify_config.max_concurrency,
        app_base_url=get_app_base_url(),
    )
    app.state.dispatch_runner = DispatchRunner(dispatcher)
    log.info(
        "notify_initialized",
        email_mode=notify_config.email_mode,
        max_concurrency=notify_config.max_concurrency,
        email_timeout_s=notify_config.email_timeout_s,
    )

    yield

    await app.state.dispatch_runner.drain()
    if hasattr(app.state, "store_group") and app.state.store_group:
        await app.state.store_group.conn.close()


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    app = FastAPI(
        title="TaskFlow Gateway",
        version="0.1.0",
        description="TaskFlow 任务工作流与通知 API",
        lifespan=lifespan,
    )

    # 注册中间件（顺序：先 Trace 后 Logging）
    app.add_middleware(TraceMiddleware)
    app.add_middleware(LoggingMiddleware)

    setup_logging()
    register_error_handlers(app)

    app.include_router(tasks.router, tags=["tasks"])
    app.include_router(notifications.router, tags=["notifications"])
    app.include_router(health.router, tags=["health"])

    return app


# 默认 app 实例（uvicorn 入口）
app = create_app()
