"""tests/core 测试配置 -- 共享 StoreGroup + 预置用户与任务"""

from datetime import UTC, datetime

import pytest
import pytest_asyncio
from taskflow.core.models import Actor, Task, TaskStatus, UserProfile
from taskflow.core.store import StoreGroup
from ulid import ULID

ADMIN = UserProfile(
    user_id="admin-1", display_name="Ada Admin", email="ada@example.com", is_admin=True
)
ALICE = UserProfile(user_id="alice", display_name="Alice", email="alice@example.com")
BOB = UserProfile(user_id="bob", display_name="Bob Stone", email="bob@example.com")
CAROL = UserProfile(user_id="carol", display_name="Carol", email="")


@pytest_asyncio.fixture
async def core_stores(store_factory) -> StoreGroup:
    """核心层已初始化的 StoreGroup，预置 admin / alice / bob / carol"""
    return await store_factory((ADMIN, ALICE, BOB, CAROL))


def _make_task(
    assignee_ids: set[str] | None = None,
    status: TaskStatus = TaskStatus.PENDING,
    creator_id: str = "admin-1",
    title: str = "Prepare quarterly report",
) -> Task:
    now = datetime.now(UTC)
    return Task(
        task_id=str(ULID()),
        title=title,
        created_at=now,
        updated_at=now,
        status=status,
        assignee_ids=assignee_ids if assignee_ids is not None else {"alice"},
        creator_id=creator_id,
    )


@pytest.fixture
def make_task():
    """任务构造工厂（未落盘）"""
    return _make_task


@pytest_asyncio.fixture
async def pending_task(core_stores: StoreGroup) -> Task:
    """已落盘的 Pending 任务，指派给 alice"""
    task = _make_task()
    await core_stores.task_store.create_task(task)
    return task


@pytest_asyncio.fixture
async def admin_actor() -> Actor:
    return ADMIN.to_actor()


@pytest_asyncio.fixture
async def alice_actor() -> Actor:
    return ALICE.to_actor()


@pytest_asyncio.fixture
async def bob_actor() -> Actor:
    return BOB.to_actor()
