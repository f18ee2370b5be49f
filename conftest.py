"""全局 pytest 配置 -- 临时 SQLite StoreGroup 工厂"""

from collections.abc import AsyncGenerator, Awaitable, Callable, Iterable
from pathlib import Path

import pytest_asyncio
from taskflow.core.models import UserProfile
from taskflow.core.store import StoreGroup, create_store_group

StoreFactory = Callable[[Iterable[UserProfile]], Awaitable[StoreGroup]]


@pytest_asyncio.fixture
async def store_factory(tmp_path: Path) -> AsyncGenerator[StoreFactory, None]:
    """创建临时库上的 StoreGroup 并预置用户档案，测试结束统一关闭连接"""
    created: list[StoreGroup] = []

    async def _create(profiles: Iterable[UserProfile] = ()) -> StoreGroup:
        store_group = await create_store_group(str(tmp_path / f"test_{len(created)}.db"))
        created.append(store_group)
        for profile in profiles:
            await store_group.user_store.upsert_user(profile)
        return store_group

    yield _create

    for store_group in created:
        await store_group.conn.close()
