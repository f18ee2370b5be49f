"""集成测试共享 fixture -- 完整 app + 管理员 / 两名成员"""

import os
from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from taskflow.core.models import UserProfile
from taskflow.gateway.services.dispatch_runner import DispatchRunner
from taskflow.notify import NotificationDispatcher, load_notify_config

PROFILES = [
    UserProfile(user_id="root", display_name="Root", email="root@example.com", is_admin=True),
    UserProfile(user_id="ops", display_name="Ops Lead", email="ops@example.com", is_admin=True),
    UserProfile(user_id="A", display_name="Avery", email="avery@example.com"),
    UserProfile(user_id="B", display_name="Blake", email="blake@example.com"),
    # 没有邮箱
    UserProfile(user_id="C", display_name="Casey", email=""),
]


@pytest_asyncio.fixture
async def outbox() -> AsyncMock:
    """记录所有外发邮件"""
    return AsyncMock()


@pytest_asyncio.fixture
async def integration_app(store_factory, outbox: AsyncMock):
    """集成测试用 FastAPI app"""
    os.environ["TASKFLOW_NOTIFY_ON_WORK_LOG"] = "true"

    from taskflow.gateway.main import create_app

    app = create_app()

    store_group = await store_factory(PROFILES)

    notify_config = load_notify_config()
    app.state.store_group = store_group
    app.state.notify_config = notify_config
    app.state.dispatch_runner = DispatchRunner(
        NotificationDispatcher(
            identity=store_group.user_store,
            notification_store=store_group.notification_store,
            email_gateway=outbox,
            email_timeout_s=notify_config.email_timeout_s,
            max_concurrency=notify_config.max_concurrency,
            app_base_url="http://app.test",
        )
    )

    yield app

    await app.state.dispatch_runner.drain()
    os.environ.pop("TASKFLOW_NOTIFY_ON_WORK_LOG", None)


@pytest_asyncio.fixture
async def client(integration_app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=integration_app),
        base_url="http://test",
    ) as ac:
        yield ac
