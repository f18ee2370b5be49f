"""健康检查路由

GET /health: Liveness 检查，永远返回 200。
GET /ready: Readiness 检查，包含 SQLite 连通性与 WAL 模式。
"""

import structlog
from fastapi import APIRouter, Request
from starlette.responses import JSONResponse
from taskflow.core.store import verify_wal_mode

log = structlog.get_logger()

router = APIRouter()


@router.get("/health")
async def health():
    """Liveness 检查 -- 永远返回 200"""
    return {"status": "ok"}


@router.get("/ready")
async def ready(request: Request):
    """Readiness 检查

    检查项：
    1. sqlite: 数据库连通性
    2. wal_mode: 并发追加依赖 WAL 模式
    3. email_mode: 当前邮件发送模式（仅展示）
    4. pending_dispatches: 尚未完成的后台扇出数（仅展示）
    """
    checks: dict = {}
    all_ok = True

    store_group = getattr(request.app.state, "store_group", None)
    try:
        cursor = await store_group.conn.execute("SELECT 1")
        await cursor.fetchone()
        checks["sqlite"] = "ok"
    except Exception as e:
        log.warning("readiness_sqlite_failed", error=str(e))
        checks["sqlite"] = f"error: {e}"
        all_ok = False

    if all_ok:
        try:
            checks["wal_mode"] = "ok" if await verify_wal_mode(store_group.conn) else "disabled"
        except Exception as e:
            checks["wal_mode"] = f"error: {e}"
            all_ok = False

    notify_config = getattr(request.app.state, "notify_config", None)
    checks["email_mode"] = notify_config.email_mode if notify_config else "unknown"
    runner = getattr(request.app.state, "dispatch_runner", None)
    checks["pending_dispatches"] = runner.pending_count if runner else 0

    return JSONResponse(
        status_code=200 if all_ok else 503,
        content={"status": "ready" if all_ok else "not_ready", "checks": checks},
    )
