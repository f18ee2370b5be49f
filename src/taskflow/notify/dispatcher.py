"""NotificationDispatcher -- 领域事件扇出

对每个收件人（始终排除触发者）：
1. 通过身份提供方解析档案；解析失败的收件人被跳过并记入 unresolved
2. 按事件类型渲染 NotificationRecord 并写入；单条写入失败不影响其他收件人
3. 有邮箱则渲染并发送邮件（带超时）；邮件失败不回滚站内通知
4. 汇总为 DispatchResult 返回，调用方据此提示 "部分人可能未收到通知"

一个坏邮箱或一次瞬时的档案查询失败，永远不能阻止其他收件人收到通知。
"""

import asyncio
from datetime import UTC, datetime

import structlog
from taskflow.core.config import get_app_base_url
from taskflow.core.models import (
    EVENT_NOTIFICATION_KINDS,
    DomainEvent,
    NotificationKind,
    NotificationRecord,
    UserProfile,
)
from taskflow.core.store.protocols import IdentityProvider, NotificationStore
from ulid import ULID

from .exceptions import EmailTimeoutError
from .mailer import EmailGateway
from .models import DeliveryFailure, DispatchResult, RecipientResolutionFailure
from .templates import render_email, render_message, task_link

log = structlog.get_logger()


def _merge_recipients(event: DomainEvent) -> dict[str, bool]:
    """按 user_id 去重（合并 mentioned 标记），排除触发者"""
    merged: dict[str, bool] = {}
    for r in event.recipients:
        if r.user_id == event.triggered_by.user_id:
            continue
        merged[r.user_id] = merged.get(r.user_id, False) or r.mentioned
    return merged


class NotificationDispatcher:
    """通知扇出调度器"""

    def __init__(
        self,
        identity: IdentityProvider,
        notification_store: NotificationStore,
        email_gateway: EmailGateway,
        email_timeout_s: float = 10.0,
        max_concurrency: int = 6,
        app_base_url: str | None = None,
    ) -> None:
        """初始化调度器

        Args:
            identity: 身份提供方（收件人档案解析）
            notification_store: 站内通知存储
            email_gateway: 邮件网关
            email_timeout_s: 单封邮件超时（秒）
            max_concurrency: 并发投递上限
            app_base_url: 邮件中绝对链接的前缀，None 时读取环境变量
        """
        self._identity = identity
        self._store = notification_store
        self._email = email_gateway
        self._email_timeout_s = email_timeout_s
        self._max_concurrency = max_concurrency
        self._app_base_url = app_base_url if app_base_url is not None else get_app_base_url()

    async def dispatch(self, event: DomainEvent) -> DispatchResult:
        """扇出一个领域事件，从不抛出投递类异常"""
        kind = EVENT_NOTIFICATION_KINDS[event.type]
        recipients = _merge_recipients(event)
        result = DispatchResult(
            event_id=event.event_id,
            event_type=event.type.value,
            task_id=event.task.task_id,
            recipient_count=len(recipients),
        )
        if not recipients:
            log.debug("dispatch_no_recipients", event_id=event.event_id, event_type=event.type)
            return result

        profiles = await self._resolve(set(recipients), result)

        # 站内通知：权威记录
        records = [
            self._build_record(kind, event, profile, recipients[profile.user_id])
            for profile in profiles
        ]
        await self._persist(records, result)

        # 邮件：尽力而为，有界并发
        semaphore = asyncio.Semaphore(self._max_concurrency)
        await asyncio.gather(
            *(
                self._send_email(
                    semaphore,
                    kind,
                    event,
                    profile,
                    record.message,
                    recipients[profile.user_id],
                    result,
                )
                for profile, record in zip(profiles, records, strict=True)
                if profile.email
            )
        )

        log_method = log.warning if result.is_partial else log.info
        log_method(
            "dispatch_completed",
            event_id=event.event_id,
            event_type=event.type.value,
            task_id=event.task.task_id,
            recipients=result.recipient_count,
            delivered=result.delivered,
            emails_sent=result.emails_sent,
            in_app_failed=len(result.in_app_failed),
            email_failed=len(result.email_failed),
            unresolved=len(result.unresolved),
        )
        return result

    async def _resolve(self, user_ids: set[str], result: DispatchResult) -> list[UserProfile]:
        """批量解析档案；批量查询失败时退化为逐个查询，互不影响"""
        try:
            found = await self._identity.get_users_by_ids(user_ids)
        except Exception as e:
            log.warning(
                "recipient_batch_lookup_failed",
                recipient_count=len(user_ids),
                error_type=type(e).__name__,
            )
            found = []
            for uid in sorted(user_ids):
                try:
                    found.extend(await self._identity.get_users_by_ids({uid}))
                except Exception as inner:
                    log.warning(
                        "recipient_lookup_failed",
                        user_id=uid,
                        error_type=type(inner).__name__,
                    )

        by_id = {p.user_id: p for p in found if p.user_id in user_ids}
        for uid in sorted(user_ids - by_id.keys()):
            result.unresolved.append(
                RecipientResolutionFailure(user_id=uid, reason="profile not found")
            )
        return [by_id[uid] for uid in sorted(by_id)]

    def _build_record(
        self,
        kind: NotificationKind,
        event: DomainEvent,
        profile: UserProfile,
        mentioned: bool,
    ) -> NotificationRecord:
        return NotificationRecord(
            notification_id=str(ULID()),
            recipient_id=profile.user_id,
            message=render_message(kind, event, mentioned),
            link=task_link(event.task.task_id),
            kind=kind,
            related_task_id=event.task.task_id,
            triggered_by_user_id=event.triggered_by.user_id,
            created_at=datetime.now(UTC),
        )

    async def _persist(self, records: list[NotificationRecord], result: DispatchResult) -> None:
        if not records:
            return
        try:
            outcomes = await self._store.insert_many(records)
        except Exception as e:
            log.error(
                "notification_batch_insert_failed",
                record_count=len(records),
                error_type=type(e).__name__,
            )
            result.in_app_failed.extend(
                DeliveryFailure(user_id=r.recipient_id, reason=f"{type(e).__name__}: {e}")
                for r in records
            )
            return

        by_id = {o.notification_id: o for o in outcomes}
        for record in records:
            outcome = by_id.get(record.notification_id)
            if outcome is not None and outcome.ok:
                result.delivered += 1
            else:
                reason = outcome.error if outcome is not None else "no insert outcome"
                result.in_app_failed.append(
                    DeliveryFailure(user_id=record.recipient_id, reason=reason)
                )

    async def _send_email(
        self,
        semaphore: asyncio.Semaphore,
        kind: NotificationKind,
        event: DomainEvent,
        profile: UserProfile,
        message: str,
        mentioned: bool,
        result: DispatchResult,
    ) -> None:
        """发送单封邮件，所有失败都记入 email_failed"""
        async with semaphore:
            try:
                email = render_email(
                    kind, event, profile, message, self._app_base_url, mentioned
                )
                try:
                    await asyncio.wait_for(self._email.send(email), self._email_timeout_s)
                except TimeoutError as e:
                    raise EmailTimeoutError(profile.email, self._email_timeout_s) from e
            except Exception as e:
                log.warning(
                    "notification_email_failed",
                    event_id=event.event_id,
                    user_id=profile.user_id,
                    error_type=type(e).__name__,
                )
                result.email_failed.append(
                    DeliveryFailure(user_id=profile.user_id, reason=str(e))
                )
                return
            result.emails_sent += 1

