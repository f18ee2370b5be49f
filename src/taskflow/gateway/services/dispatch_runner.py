"""DispatchRunner -- 在后台扇出领域事件

主操作提交后立即返回响应，扇出放入后台任务执行；
runner 持有任务引用直到完成，关闭时 drain() 等待未完成的扇出。
"""

import asyncio

import structlog
from taskflow.core.models import DomainEvent
from taskflow.notify import DispatchResult, NotificationDispatcher

log = structlog.get_logger()


class DispatchRunner:
    """后台扇出执行器"""

    def __init__(self, dispatcher: NotificationDispatcher) -> None:
        self._dispatcher = dispatcher
        self._pending: set[asyncio.Task] = set()

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def submit(self, event: DomainEvent) -> asyncio.Task:
        """提交事件到后台扇出，立即返回"""
        task = asyncio.create_task(self._run(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def dispatch_now(self, event: DomainEvent) -> DispatchResult | None:
        """等待扇出完成（需要把部分失败提示返回给调用方时使用）

        请求被取消时扇出仍在后台跑完，drain 会等到它。
        """
        return await asyncio.shield(self.submit(event))

    async def drain(self) -> None:
        """等待全部未完成的扇出"""
        if self._pending:
            log.info("dispatch_runner_draining", pending=len(self._pending))
            await asyncio.gather(*self._pending, return_exceptions=True)

    async def _run(self, event: DomainEvent) -> DispatchResult | None:
        try:
            result = await self._dispatcher.dispatch(event)
        except Exception as e:
            # dispatch 本身不抛投递类异常，这里只兜住编程错误
            log.error(
                "dispatch_crashed",
                event_id=event.event_id,
                event_type=event.type.value,
                error_type=type(e).__name__,
                error=str(e),
            )
            return None
        if result.is_partial:
            log.warning(
                "dispatch_partial_failure",
                event_id=event.event_id,
                task_id=result.task_id,
                warning=result.warning_message(),
            )
        return result
