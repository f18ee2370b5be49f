"""任务路由

POST /api/tasks: 创建任务（管理员）
GET  /api/tasks: 任务列表，支持 status 筛选
GET  /api/tasks/{task_id}: 任务详情，含评论与工时
POST /api/tasks/{task_id}/transition: 状态流转
POST /api/tasks/{task_id}/comments: 追加评论
POST /api/tasks/{task_id}/logs: 追加工时
PUT  /api/tasks/{task_id}/assignees: 替换指派人（管理员）
"""

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from starlette.responses import JSONResponse
from taskflow.core.models import Actor, Task, TaskPriority, TaskStatus

from ..deps import get_current_actor, get_workflow_service
from ..services.workflow_service import ActionResult, WorkflowService

router = APIRouter()


class CreateTaskRequest(BaseModel):
    """创建任务请求体"""

    title: str
    description: str = ""
    assignee_ids: list[str] = Field(default_factory=list)
    due_date: datetime | None = None
    project_id: str = ""
    priority: TaskPriority = TaskPriority.MEDIUM


class TransitionRequest(BaseModel):
    to_status: TaskStatus


class CommentRequest(BaseModel):
    body: str
    comment_id: str | None = Field(default=None, description="客户端生成的 ULID，用于去重")


class WorkLogRequest(BaseModel):
    # 不在此处做范围约束，统一由引擎校验并返回 VALIDATION_ERROR
    hours_spent: float
    description: str
    log_id: str | None = Field(default=None, description="客户端生成的 ULID，用于去重")


class AssigneesRequest(BaseModel):
    assignee_ids: list[str]


class TaskSummary(BaseModel):
    """任务摘要（列表项）"""

    task_id: str
    title: str
    status: str
    priority: str
    assignee_ids: list[str]
    due_date: str | None
    updated_at: str


def _action_response(result: ActionResult, status_code: int = 200) -> JSONResponse:
    content: dict = {"task": result.task.model_dump(mode="json")}
    if result.comment is not None:
        content["comment"] = result.comment.model_dump(mode="json")
    if result.work_log is not None:
        content["work_log"] = result.work_log.model_dump(mode="json")
    content["created"] = result.created
    content["notification_warning"] = result.notification_warning
    return JSONResponse(status_code=status_code, content=content)


def _summary(task: Task) -> TaskSummary:
    return TaskSummary(
        task_id=task.task_id,
        title=task.title,
        status=task.status.value,
        priority=task.priority.value,
        assignee_ids=sorted(task.assignee_ids),
        due_date=task.due_date.isoformat() if task.due_date else None,
        updated_at=task.updated_at.isoformat(),
    )


@router.post("/api/tasks")
async def create_task(
    body: CreateTaskRequest,
    actor: Actor = Depends(get_current_actor),
    service: WorkflowService = Depends(get_workflow_service),
):
    """创建任务，初始状态 Pending"""
    result = await service.create_task(
        actor,
        title=body.title,
        description=body.description,
        assignee_ids=set(body.assignee_ids),
        due_date=body.due_date,
        project_id=body.project_id,
        priority=body.priority,
    )
    return _action_response(result, status_code=201)


@router.get("/api/tasks")
async def list_tasks(
    status: str | None = Query(default=None, description="按状态筛选"),
    service: WorkflowService = Depends(get_workflow_service),
):
    tasks = await service.list_tasks(status)
    return {"tasks": [_summary(t).model_dump() for t in tasks]}


@router.get("/api/tasks/{task_id}")
async def get_task_detail(
    task_id: str,
    service: WorkflowService = Depends(get_workflow_service),
):
    """任务详情，评论与工时按追加顺序返回"""
    task = await service.get_task(task_id)
    return {"task": task.model_dump(mode="json")}


@router.post("/api/tasks/{task_id}/transition")
async def transition_task(
    task_id: str,
    body: TransitionRequest,
    actor: Actor = Depends(get_current_actor),
    service: WorkflowService = Depends(get_workflow_service),
):
    result = await service.transition(task_id, actor, body.to_status)
    return _action_response(result)


@router.post("/api/tasks/{task_id}/comments")
async def add_comment(
    task_id: str,
    body: CommentRequest,
    actor: Actor = Depends(get_current_actor),
    service: WorkflowService = Depends(get_workflow_service),
):
    """追加评论；comment_id 已存在时返回 200 + created=false"""
    result = await service.add_comment(task_id, actor, body.body, body.comment_id)
    return _action_response(result, status_code=201 if result.created else 200)


@router.post("/api/tasks/{task_id}/logs")
async def log_work(
    task_id: str,
    body: WorkLogRequest,
    actor: Actor = Depends(get_current_actor),
    service: WorkflowService = Depends(get_workflow_service),
):
    result = await service.log_work(
        task_id, actor, body.hours_spent, body.description, body.log_id
    )
    return _action_response(result, status_code=201 if result.created else 200)


@router.put("/api/tasks/{task_id}/assignees")
async def update_assignees(
    task_id: str,
    body: AssigneesRequest,
    actor: Actor = Depends(get_current_actor),
    service: WorkflowService = Depends(get_workflow_service),
):
    result = await service.update_assignees(task_id, actor, set(body.assignee_ids))
    return _action_response(result)
