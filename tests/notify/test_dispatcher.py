"""NotificationDispatcher 测试

测试内容：
1. 5 个收件人其中 1 个无邮箱：5 条站内通知，4 封邮件
2. 触发者永远不收到自己操作的通知
3. 单封邮件失败 / 超时只记入 email_failed
4. 站内写入部分失败 / 整体抛错不影响邮件
5. 档案解析失败的收件人被跳过；批量查询失败退化为逐个查询
6. 重复收件人合并，mentioned 标记保留
7. 并发投递受 max_concurrency 约束
"""

import asyncio
from datetime import UTC, datetime
from unittest.mock import AsyncMock

from taskflow.core.models import (
    Comment,
    DomainEventType,
    InsertOutcome,
    NotificationKind,
)
from taskflow.notify import EmailDeliveryError, NotificationDispatcher, OutboundEmail

ASSIGNEES = ["u1", "u2", "u3", "u4", "u5"]


def _dispatcher(stores, email_gateway, **kwargs) -> NotificationDispatcher:
    kwargs.setdefault("app_base_url", "http://app.test")
    return NotificationDispatcher(
        identity=kwargs.pop("identity", stores.user_store),
        notification_store=kwargs.pop("notification_store", stores.notification_store),
        email_gateway=email_gateway,
        **kwargs,
    )


def _sent_to(email_gateway: AsyncMock) -> set[str]:
    return {call.args[0].to for call in email_gateway.send.await_args_list}


class TestFanOut:
    async def test_five_recipients_one_without_email(
        self, notify_stores, stored_task, make_event, email_gateway
    ):
        dispatcher = _dispatcher(notify_stores, email_gateway)
        event = make_event(stored_task, ASSIGNEES)

        result = await dispatcher.dispatch(event)

        records = await notify_stores.notification_store.list_for_task(stored_task.task_id)
        assert sorted(r.recipient_id for r in records) == ASSIGNEES
        assert email_gateway.send.await_count == 4
        assert _sent_to(email_gateway) == {
            "uma@example.com",
            "victor@example.com",
            "wen@example.com",
            "xia@example.com",
        }
        assert result.recipient_count == 5
        assert result.delivered == 5
        assert result.emails_sent == 4
        assert result.is_partial is False
        assert result.warning_message() is None

    async def test_record_contents(self, notify_stores, stored_task, make_event, email_gateway):
        dispatcher = _dispatcher(notify_stores, email_gateway)
        await dispatcher.dispatch(make_event(stored_task, ["u1"]))

        [record] = await notify_stores.notification_store.list_for_recipient("u1")
        assert record.kind == NotificationKind.TASK_ASSIGNED
        assert record.link == f"/tasks/{stored_task.task_id}"
        assert record.related_task_id == stored_task.task_id
        assert record.triggered_by_user_id == "admin-1"
        assert record.message == 'Ada Admin assigned you to task "Migrate billing exports".'
        assert record.is_read is False

        email: OutboundEmail = email_gateway.send.await_args.args[0]
        assert email.subject == 'New task assigned: "Migrate billing exports"'
        assert f"http://app.test/tasks/{stored_task.task_id}" in email.html_body
        assert "Hello Uma" in email.html_body

    async def test_actor_is_excluded(self, notify_stores, stored_task, make_event, email_gateway):
        dispatcher = _dispatcher(notify_stores, email_gateway)
        event = make_event(stored_task, ["admin-1", "u1"])

        result = await dispatcher.dispatch(event)

        assert result.recipient_count == 1
        assert await notify_stores.notification_store.list_for_recipient("admin-1") == []
        assert _sent_to(email_gateway) == {"uma@example.com"}

    async def test_no_recipients(self, notify_stores, stored_task, make_event, email_gateway):
        dispatcher = _dispatcher(notify_stores, email_gateway)
        result = await dispatcher.dispatch(make_event(stored_task, ["admin-1"]))

        assert result.recipient_count == 0
        assert result.delivered == 0
        email_gateway.send.assert_not_awaited()

    async def test_duplicates_merged_keeping_mention(
        self, notify_stores, stored_task, make_event, email_gateway
    ):
        dispatcher = _dispatcher(notify_stores, email_gateway)
        comment = Comment(
            comment_id="c-1",
            author_id="admin-1",
            author_name="Ada Admin",
            body="Please double check the totals",
            created_at=datetime.now(UTC),
        )
        event = make_event(
            stored_task,
            ["u1", "u1", "u2"],
            event_type=DomainEventType.COMMENT_ADDED,
            mentioned={"u1"},
            comment=comment,
        )
        # 第二个 u1 带 mentioned，第一个不带
        event.recipients[0] = event.recipients[0].model_copy(update={"mentioned": False})

        result = await dispatcher.dispatch(event)

        assert result.recipient_count == 2
        [uma] = await notify_stores.notification_store.list_for_recipient("u1")
        [victor] = await notify_stores.notification_store.list_for_recipient("u2")
        assert uma.message.startswith("Ada Admin mentioned you")
        assert victor.message == (
            'Ada Admin commented on task "Migrate billing exports": '
            '"Please double check the totals"'
        )


class TestEmailFailures:
    async def test_one_bad_address_does_not_block_others(
        self, notify_stores, stored_task, make_event, email_gateway
    ):
        async def send(message: OutboundEmail) -> None:
            if message.to == "wen@example.com":
                raise EmailDeliveryError(message.to, "mailbox unavailable")

        email_gateway.send.side_effect = send
        dispatcher = _dispatcher(notify_stores, email_gateway)

        result = await dispatcher.dispatch(make_event(stored_task, ASSIGNEES))

        assert result.delivered == 5
        assert result.emails_sent == 3
        assert [f.user_id for f in result.email_failed] == ["u3"]
        assert "mailbox unavailable" in result.email_failed[0].reason
        assert result.is_partial is True
        assert result.warning_message() == (
            "Your action succeeded, but 1 of 5 people may not have been notified."
        )

    async def test_slow_gateway_times_out(
        self, notify_stores, stored_task, make_event, email_gateway
    ):
        async def send(message: OutboundEmail) -> None:
            if message.to == "uma@example.com":
                await asyncio.sleep(5)

        email_gateway.send.side_effect = send
        dispatcher = _dispatcher(notify_stores, email_gateway, email_timeout_s=0.05)

        result = await dispatcher.dispatch(make_event(stored_task, ASSIGNEES))

        assert result.delivered == 5
        assert result.emails_sent == 3
        assert [f.user_id for f in result.email_failed] == ["u1"]
        assert "timed out" in result.email_failed[0].reason

    async def test_concurrency_is_bounded(
        self, notify_stores, stored_task, make_event, email_gateway
    ):
        in_flight = 0
        peak = 0

        async def send(message: OutboundEmail) -> None:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1

        email_gateway.send.side_effect = send
        dispatcher = _dispatcher(notify_stores, email_gateway, max_concurrency=2)

        result = await dispatcher.dispatch(make_event(stored_task, ASSIGNEES))

        assert result.emails_sent == 4
        assert peak == 2


class TestInAppFailures:
    async def test_single_insert_failure(
        self, notify_stores, stored_task, make_event, email_gateway
    ):
        """站内写入单条失败：其余照常，邮件照发"""
        store = AsyncMock()

        async def insert_many(records):
            return [
                InsertOutcome(
                    notification_id=r.notification_id,
                    ok=r.recipient_id != "u2",
                    error="disk I/O error" if r.recipient_id == "u2" else "",
                )
                for r in records
            ]

        store.insert_many.side_effect = insert_many
        dispatcher = _dispatcher(notify_stores, email_gateway, notification_store=store)

        result = await dispatcher.dispatch(make_event(stored_task, ASSIGNEES))

        assert result.delivered == 4
        assert [(f.user_id, f.reason) for f in result.in_app_failed] == [("u2", "disk I/O error")]
        assert result.emails_sent == 4
        assert "victor@example.com" in _sent_to(email_gateway)

    async def test_insert_many_raises(
        self, notify_stores, stored_task, make_event, email_gateway
    ):
        store = AsyncMock()
        store.insert_many.side_effect = RuntimeError("database is locked")
        dispatcher = _dispatcher(notify_stores, email_gateway, notification_store=store)

        result = await dispatcher.dispatch(make_event(stored_task, ASSIGNEES))

        assert result.delivered == 0
        assert len(result.in_app_failed) == 5
        assert result.emails_sent == 4

    async def test_real_store_rejects_unknown_task(
        self, notify_stores, stored_task, make_event, email_gateway
    ):
        """外键约束失败被逐条记录，不抛出"""
        ghost = stored_task.model_copy(update={"task_id": "ghost-task"})
        dispatcher = _dispatcher(notify_stores, email_gateway)

        result = await dispatcher.dispatch(make_event(ghost, ["u1", "u2"]))

        assert result.delivered == 0
        assert {f.user_id for f in result.in_app_failed} == {"u1", "u2"}
        assert result.emails_sent == 2


class TestRecipientResolution:
    async def test_unknown_recipient_skipped(
        self, notify_stores, stored_task, make_event, email_gateway
    ):
        dispatcher = _dispatcher(notify_stores, email_gateway)

        result = await dispatcher.dispatch(make_event(stored_task, ["u1", "ghost"]))

        assert [u.user_id for u in result.unresolved] == ["ghost"]
        assert result.delivered == 1
        assert result.emails_sent == 1

    async def test_batch_failure_falls_back_to_single_lookups(
        self, notify_stores, stored_task, make_event, email_gateway
    ):
        """批量查询抛错后逐个查询；单个查询失败只影响该收件人"""
        real = notify_stores.user_store

        async def get_users_by_ids(user_ids):
            if len(user_ids) > 1:
                raise ConnectionError("identity service timeout")
            if user_ids == {"u4"}:
                raise ConnectionError("identity service timeout")
            return await real.get_users_by_ids(user_ids)

        identity = AsyncMock()
        identity.get_users_by_ids.side_effect = get_users_by_ids
        dispatcher = _dispatcher(notify_stores, email_gateway, identity=identity)

        result = await dispatcher.dispatch(make_event(stored_task, ASSIGNEES))

        assert [u.user_id for u in result.unresolved] == ["u4"]
        assert result.delivered == 4
        assert result.emails_sent == 3
