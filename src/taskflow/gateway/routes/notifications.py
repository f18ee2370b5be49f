"""站内通知路由

GET  /api/notifications: 当前操作者的通知，按时间倒序
POST /api/notifications/{notification_id}/read: 标记已读（仅收件人本人）
"""

from fastapi import APIRouter, Depends, Query
from taskflow.core.models import Actor

from ..deps import get_current_actor, get_workflow_service
from ..errors import error_response
from ..services.workflow_service import WorkflowService

router = APIRouter()


@router.get("/api/notifications")
async def list_notifications(
    unread_only: bool = Query(default=False),
    limit: int = Query(default=50, ge=1, le=200),
    actor: Actor = Depends(get_current_actor),
    service: WorkflowService = Depends(get_workflow_service),
):
    records = await service.list_notifications(actor, unread_only=unread_only, limit=limit)
    return {
        "notifications": [
            {**r.model_dump(mode="json"), "is_read": r.is_read} for r in records
        ]
    }


@router.post("/api/notifications/{notification_id}/read")
async def mark_read(
    notification_id: str,
    actor: Actor = Depends(get_current_actor),
    service: WorkflowService = Depends(get_workflow_service),
):
    if not await service.mark_notification_read(actor, notification_id):
        return error_response(
            404,
            "NOTIFICATION_NOT_FOUND",
            f"Notification with id {notification_id} does not exist",
        )
    return {"notification_id": notification_id, "is_read": True}
