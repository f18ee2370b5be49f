"""Task Domain Model

comments / logs 为 append-only 序列，元素一经追加不可修改。
持久化时两者各自存放在以 task_id 为键的独立追加表中。
"""

from datetime import datetime

from pydantic import BaseModel, Field, field_serializer

from ..config import MAX_HOURS_PER_LOG
from .actor import Actor
from .enums import ActorRole, TaskPriority, TaskStatus


class Comment(BaseModel):
    """任务评论（追加后不可变）"""

    comment_id: str = Field(description="客户端生成的 ULID")
    author_id: str
    author_name: str
    author_avatar: str | None = None
    body: str
    created_at: datetime


class WorkLog(BaseModel):
    """工时记录（追加后不可变）"""

    log_id: str = Field(description="客户端生成的 ULID")
    author_id: str
    author_name: str
    hours_spent: float = Field(gt=0, le=MAX_HOURS_PER_LOG, description="工时（小时）")
    description: str
    logged_at: datetime


class Task(BaseModel):
    """Task 数据模型

    status 只能沿 VALID_TRANSITIONS 流转；assignee_ids 允许为空（未指派）。
    version 每次 status / assignee_ids 变更时递增，用于条件更新。
    """

    task_id: str = Field(description="唯一标识，ULID 格式")
    title: str = Field(description="任务标题")
    description: str = Field(default="", description="任务描述")
    due_date: datetime | None = Field(default=None, description="截止时间")
    created_at: datetime = Field(description="创建时间")
    updated_at: datetime = Field(description="更新时间")
    project_id: str = Field(default="", description="所属项目 ID")
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM, description="优先级")
    status: TaskStatus = Field(default=TaskStatus.PENDING, description="当前状态")
    assignee_ids: set[str] = Field(default_factory=set, description="指派人集合")
    creator_id: str = Field(description="创建者 ID")
    comments: list[Comment] = Field(default_factory=list, description="评论，按追加顺序")
    logs: list[WorkLog] = Field(default_factory=list, description="工时记录，按追加顺序")
    version: int = Field(default=1, ge=1, description="乐观并发版本号")

    @field_serializer("assignee_ids")
    def _serialize_assignee_ids(self, value: set[str]) -> list[str]:
        return sorted(value)

    @property
    def participant_ids(self) -> set[str]:
        """任务参与者：全部指派人 + 创建者"""
        return set(self.assignee_ids) | {self.creator_id}

    def is_assignee(self, user_id: str) -> bool:
        return user_id in self.assignee_ids

    def roles_of(self, actor: Actor) -> set[ActorRole]:
        """计算 actor 相对本任务的角色集合"""
        roles: set[ActorRole] = set()
        if self.is_assignee(actor.user_id):
            roles.add(ActorRole.ASSIGNEE)
        if actor.is_admin:
            roles.add(ActorRole.ADMIN)
        return roles

    def has_comment(self, comment_id: str) -> bool:
        return any(c.comment_id == comment_id for c in self.comments)

    def has_log(self, log_id: str) -> bool:
        return any(entry.log_id == log_id for entry in self.logs)
