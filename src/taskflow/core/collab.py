"""CollaborationLog -- 评论与工时记录的并发安全追加

追加采用 "读当前长度 -> 以该长度为条件写入" 的乐观并发：
两个同时评论的人不会互相覆盖，冲突方重读后重试一次。
调用方提供 comment_id / log_id 时按 id 去重，重试请求不会重复追加。
"""

import math
from datetime import UTC, datetime

import structlog
from pydantic import BaseModel, Field
from ulid import ULID

from .config import CAS_MAX_ATTEMPTS, MAX_HOURS_PER_LOG, MIN_LOG_DESCRIPTION_LENGTH
from .exceptions import ConcurrentModificationError, TaskNotFoundError, ValidationError
from .mentions import extract_mentions
from .models.actor import Actor
from .models.event import Recipient
from .models.task import Comment, Task, WorkLog
from .store.protocols import IdentityProvider, TaskStore

log = structlog.get_logger()


class CommentOutcome(BaseModel):
    """追加评论结果"""

    task: Task
    comment: Comment
    recipients: list[Recipient] = Field(default_factory=list)
    created: bool = Field(default=True, description="False 表示 comment_id 去重命中")


class WorkLogOutcome(BaseModel):
    """追加工时结果"""

    task: Task
    work_log: WorkLog
    created: bool = True


def validate_comment_body(body: str) -> str:
    if not body or not body.strip():
        raise ValidationError("body", "Comment cannot be empty")
    return body.strip()


def validate_work_log(hours_spent: float, description: str) -> tuple[float, str]:
    """校验工时：0 < hours <= 100，描述去空白后至少 10 个字符"""
    if isinstance(hours_spent, bool) or not isinstance(hours_spent, int | float):
        raise ValidationError("hours_spent", "Hours spent must be a number")
    hours = float(hours_spent)
    if math.isnan(hours) or hours <= 0:
        raise ValidationError("hours_spent", "Hours spent must be greater than 0")
    if hours > MAX_HOURS_PER_LOG:
        raise ValidationError(
            "hours_spent",
            f"Hours spent cannot exceed {MAX_HOURS_PER_LOG:g}",
        )
    text = (description or "").strip()
    if len(text) < MIN_LOG_DESCRIPTION_LENGTH:
        raise ValidationError(
            "description",
            f"Work description must be at least {MIN_LOG_DESCRIPTION_LENGTH} characters",
        )
    return hours, text


def collaborator_recipients(task: Task, actor: Actor, mentioned: set[str]) -> list[Recipient]:
    """收件人 = (指派人 ∪ 创建者) \\ {actor}，并为被提及者打标记"""
    ids = (task.participant_ids - {actor.user_id}) | (mentioned & task.participant_ids)
    return [Recipient(user_id=uid, mentioned=uid in mentioned) for uid in sorted(ids)]


class CollaborationLog:
    """评论 / 工时追加管理器"""

    def __init__(
        self,
        task_store: TaskStore,
        identity: IdentityProvider,
        mention_by_display_name: bool = True,
    ) -> None:
        self._task_store = task_store
        self._identity = identity
        self._mention_by_display_name = mention_by_display_name

    async def append_comment(
        self,
        task_id: str,
        actor: Actor,
        body: str,
        comment_id: str | None = None,
    ) -> CommentOutcome:
        """追加评论并计算需要通知的参与者

        Raises:
            ValidationError: 评论为空
            TaskNotFoundError: 任务不存在
            ConcurrentModificationError: 重试后仍冲突
        """
        text = validate_comment_body(body)
        comment = Comment(
            comment_id=comment_id or str(ULID()),
            author_id=actor.user_id,
            author_name=actor.display_name,
            author_avatar=actor.avatar_url,
            body=text,
            created_at=datetime.now(UTC),
        )

        for attempt in range(1, CAS_MAX_ATTEMPTS + 1):
            task = await self._load(task_id)
            if task.has_comment(comment.comment_id):
                log.info(
                    "comment_deduplicated",
                    task_id=task_id,
                    comment_id=comment.comment_id,
                )
                existing = next(c for c in task.comments if c.comment_id == comment.comment_id)
                return CommentOutcome(task=task, comment=existing, created=False)
            try:
                updated = await self._task_store.append_comment(
                    task_id, len(task.comments), comment
                )
                break
            except ConcurrentModificationError:
                if attempt < CAS_MAX_ATTEMPTS:
                    log.warning("comment_append_cas_retry", task_id=task_id, attempt=attempt)
                    continue
                raise
        else:
            raise ConcurrentModificationError(task_id, "comment append retries exhausted")

        mentioned = await self._resolve_mentions(updated, text)
        log.info(
            "comment_appended",
            task_id=task_id,
            comment_id=comment.comment_id,
            actor_id=actor.user_id,
            mention_count=len(mentioned),
        )
        return CommentOutcome(
            task=updated,
            comment=comment,
            recipients=collaborator_recipients(updated, actor, mentioned),
        )

    async def append_work_log(
        self,
        task_id: str,
        actor: Actor,
        hours_spent: float,
        description: str,
        log_id: str | None = None,
    ) -> WorkLogOutcome:
        """追加工时记录（本身不产生通知）

        Raises:
            ValidationError: 工时或描述不合法
            TaskNotFoundError: 任务不存在
            ConcurrentModificationError: 重试后仍冲突
        """
        hours, text = validate_work_log(hours_spent, description)
        work_log = WorkLog(
            log_id=log_id or str(ULID()),
            author_id=actor.user_id,
            author_name=actor.display_name,
            hours_spent=hours,
            description=text,
            logged_at=datetime.now(UTC),
        )

        for attempt in range(1, CAS_MAX_ATTEMPTS + 1):
            task = await self._load(task_id)
            if task.has_log(work_log.log_id):
                log.info("work_log_deduplicated", task_id=task_id, log_id=work_log.log_id)
                existing = next(e for e in task.logs if e.log_id == work_log.log_id)
                return WorkLogOutcome(task=task, work_log=existing, created=False)
            try:
                updated = await self._task_store.append_work_log(
                    task_id, len(task.logs), work_log
                )
            except ConcurrentModificationError:
                if attempt < CAS_MAX_ATTEMPTS:
                    log.warning("work_log_append_cas_retry", task_id=task_id, attempt=attempt)
                    continue
                raise
            log.info(
                "work_log_appended",
                task_id=task_id,
                log_id=work_log.log_id,
                actor_id=actor.user_id,
                hours_spent=hours,
            )
            return WorkLogOutcome(task=updated, work_log=work_log)

        raise ConcurrentModificationError(task_id, "work log append retries exhausted")

    async def _load(self, task_id: str) -> Task:
        task = await self._task_store.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    async def _resolve_mentions(self, task: Task, body: str) -> set[str]:
        """按参与者档案解析提及；档案查询失败时只识别 id 记号"""
        participants = {uid: "" for uid in task.participant_ids}
        if self._mention_by_display_name:
            try:
                profiles = await self._identity.get_users_by_ids(task.participant_ids)
            except Exception as e:
                log.warning(
                    "mention_profile_lookup_failed",
                    task_id=task.task_id,
                    error_type=type(e).__name__,
                )
            else:
                participants.update({p.user_id: p.display_name for p in profiles})
        return extract_mentions(body, participants, self._mention_by_display_name)
