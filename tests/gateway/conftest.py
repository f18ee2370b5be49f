"""tests/gateway 测试配置 -- FastAPI app + httpx AsyncClient"""

from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from taskflow.core.models import UserProfile
from taskflow.gateway.services.dispatch_runner import DispatchRunner
from taskflow.notify import NotificationDispatcher, NotifyConfig

PROFILES = [
    UserProfile(
        user_id="admin-1", display_name="Ada Admin", email="ada@example.com", is_admin=True
    ),
    UserProfile(user_id="alice", display_name="Alice", email="alice@example.com"),
    UserProfile(user_id="bob", display_name="Bob Stone", email="bob@example.com"),
    UserProfile(user_id="carol", display_name="Carol", email=""),
]


@pytest_asyncio.fixture
async def email_gateway() -> AsyncMock:
    return AsyncMock()


@pytest_asyncio.fixture
async def notify_config() -> NotifyConfig:
    return NotifyConfig()


@pytest_asyncio.fixture
async def test_app(store_factory, email_gateway: AsyncMock, notify_config: NotifyConfig):
    """测试用 app：手动初始化 app.state（绕过 lifespan）"""
    from taskflow.gateway.main import create_app

    app = create_app()

    store_group = await store_factory(PROFILES)

    app.state.store_group = store_group
    app.state.notify_config = notify_config
    app.state.dispatch_runner = DispatchRunner(
        NotificationDispatcher(
            identity=store_group.user_store,
            notification_store=store_group.notification_store,
            email_gateway=email_gateway,
            app_base_url="http://app.test",
        )
    )

    yield app

    await app.state.dispatch_runner.drain()


@pytest_asyncio.fixture
async def client(test_app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=test_app),
        base_url="http://test",
    ) as ac:
        yield ac
