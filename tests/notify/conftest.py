"""tests/notify 测试配置 -- 扇出测试用 StoreGroup、任务与事件构造"""

from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from taskflow.core.models import (
    Actor,
    DomainEvent,
    DomainEventType,
    Recipient,
    Task,
    UserProfile,
)
from taskflow.core.store import StoreGroup
from ulid import ULID

PROFILES = [
    UserProfile(
        user_id="admin-1", display_name="Ada Admin", email="ada@example.com", is_admin=True
    ),
    UserProfile(user_id="u1", display_name="Uma", email="uma@example.com"),
    UserProfile(user_id="u2", display_name="Victor", email="victor@example.com"),
    UserProfile(user_id="u3", display_name="Wen", email="wen@example.com"),
    UserProfile(user_id="u4", display_name="Xia", email="xia@example.com"),
    # 没有邮箱：只收站内通知
    UserProfile(user_id="u5", display_name="Yusuf", email=""),
]


@pytest_asyncio.fixture
async def notify_stores(store_factory) -> StoreGroup:
    return await store_factory(PROFILES)


@pytest_asyncio.fixture
async def stored_task(notify_stores: StoreGroup) -> Task:
    """已落盘任务，指派给 u1..u5"""
    now = datetime.now(UTC)
    task = Task(
        task_id=str(ULID()),
        title="Migrate billing exports",
        created_at=now,
        updated_at=now,
        assignee_ids={"u1", "u2", "u3", "u4", "u5"},
        creator_id="admin-1",
    )
    await notify_stores.task_store.create_task(task)
    return task


@pytest.fixture
def admin() -> Actor:
    return PROFILES[0].to_actor()


@pytest.fixture
def make_event(admin: Actor):
    """领域事件构造工厂"""

    def _make(
        task: Task,
        recipient_ids: list[str],
        event_type: DomainEventType = DomainEventType.TASK_ASSIGNED,
        triggered_by: Actor | None = None,
        mentioned: set[str] | None = None,
        **extra,
    ) -> DomainEvent:
        mentioned = mentioned or set()
        return DomainEvent.create(
            event_type,
            task,
            triggered_by or admin,
            [Recipient(user_id=uid, mentioned=uid in mentioned) for uid in recipient_ids],
            **extra,
        )

    return _make


@pytest.fixture
def email_gateway() -> AsyncMock:
    """记录调用的邮件网关"""
    return AsyncMock()
