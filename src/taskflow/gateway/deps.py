"""依赖注入模块 -- 通过 FastAPI Depends 注入 Store / Service / 当前操作者

Store 与 DispatchRunner 通过 app.state 管理，在 lifespan 中初始化/清理。
"""

from fastapi import Depends, Header, Request
from taskflow.core.models import Actor
from taskflow.core.store import StoreGroup

from .errors import ActorRequiredError
from .services.dispatch_runner import DispatchRunner
from .services.workflow_service import WorkflowService


def get_store_group(request: Request) -> StoreGroup:
    """从 app.state 获取 StoreGroup 实例"""
    return request.app.state.store_group


def get_dispatch_runner(request: Request) -> DispatchRunner:
    return request.app.state.dispatch_runner


def get_workflow_service(
    request: Request,
    store_group: StoreGroup = Depends(get_store_group),
    runner: DispatchRunner = Depends(get_dispatch_runner),
) -> WorkflowService:
    return WorkflowService(store_group, runner, request.app.state.notify_config)


async def get_current_actor(
    x_actor_id: str | None = Header(default=None),
    store_group: StoreGroup = Depends(get_store_group),
) -> Actor:
    """按 X-Actor-Id 头解析当前操作者（鉴权本身不在本服务内）"""
    if not x_actor_id:
        raise ActorRequiredError()
    actor = await store_group.user_store.get_actor(x_actor_id)
    if actor is None:
        raise ActorRequiredError(f"Unknown actor {x_actor_id}")
    return actor
