"""通知模板 -- 站内通知文本 + 邮件主题 / HTML 正文

每种 NotificationKind 对应一条站内文本和一条邮件主题；
评论通知对被 @ 的收件人使用更直接的措辞。
"""

from html import escape

from taskflow.core.config import COMMENT_PREVIEW_LENGTH, TITLE_PREVIEW_LENGTH
from taskflow.core.models import DomainEvent, NotificationKind, UserProfile

from .models import OutboundEmail

_MESSAGES: dict[NotificationKind, str] = {
    NotificationKind.TASK_ASSIGNED: '{actor} assigned you to task "{title}".',
    NotificationKind.TASK_COMPLETED_FOR_APPROVAL: (
        '{actor} marked task "{title}" as completed. It is awaiting your approval.'
    ),
    NotificationKind.TASK_APPROVED: 'Your task "{title}" has been approved by {actor}.',
    NotificationKind.TASK_REJECTED: (
        'Your task "{title}" was sent back to In Progress by {actor}.'
    ),
    NotificationKind.NEW_COMMENT_ON_TASK: '{actor} commented on task "{title}": "{preview}"',
    NotificationKind.NEW_LOG: '{actor} logged {hours:g}h on task "{title}".',
    NotificationKind.TASK_UNASSIGNED: '{actor} removed you from task "{title}".',
}

_MENTION_MESSAGE = '{actor} mentioned you in a comment on task "{title}": "{preview}"'

_SUBJECTS: dict[NotificationKind, str] = {
    NotificationKind.TASK_ASSIGNED: 'New task assigned: "{title}"',
    NotificationKind.TASK_COMPLETED_FOR_APPROVAL: 'Task awaiting approval: "{title}"',
    NotificationKind.TASK_APPROVED: 'Your task "{title}" has been approved!',
    NotificationKind.TASK_REJECTED: 'Update on your task "{title}"',
    NotificationKind.NEW_COMMENT_ON_TASK: 'New comment on "{title}"',
    NotificationKind.NEW_LOG: 'Work logged on "{title}"',
    NotificationKind.TASK_UNASSIGNED: 'You were unassigned from "{title}"',
}

_MENTION_SUBJECT = 'You were mentioned on "{title}"'


def _truncate(text: str, limit: int) -> str:
    text = " ".join(text.split())
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + "..."


def task_link(task_id: str) -> str:
    """站内相对链接"""
    return f"/tasks/{task_id}"


def _context(event: DomainEvent) -> dict:
    preview = ""
    if event.comment is not None:
        preview = _truncate(event.comment.body, COMMENT_PREVIEW_LENGTH)
    return {
        "actor": event.triggered_by.display_name,
        "title": _truncate(event.task.title, TITLE_PREVIEW_LENGTH),
        "preview": preview,
        "hours": event.work_log.hours_spent if event.work_log else 0,
    }


def render_message(kind: NotificationKind, event: DomainEvent, mentioned: bool = False) -> str:
    """渲染站内通知文本"""
    template = _MESSAGES[kind]
    if mentioned and kind == NotificationKind.NEW_COMMENT_ON_TASK:
        template = _MENTION_MESSAGE
    return template.format(**_context(event))


def render_subject(kind: NotificationKind, event: DomainEvent, mentioned: bool = False) -> str:
    template = _SUBJECTS[kind]
    if mentioned and kind == NotificationKind.NEW_COMMENT_ON_TASK:
        template = _MENTION_SUBJECT
    return template.format(**_context(event))


def render_email(
    kind: NotificationKind,
    event: DomainEvent,
    recipient: UserProfile,
    message: str,
    app_base_url: str,
    mentioned: bool = False,
) -> OutboundEmail:
    """渲染邮件：问候 + 通知文本 + 任务按钮 + 纯文本链接"""
    url = f"{app_base_url.rstrip('/')}{task_link(event.task.task_id)}"
    html_body = (
        f"<p>Hello {escape(recipient.display_name)},</p>\n"
        f"<p>{escape(message)}</p>\n"
        f'<a href="{escape(url)}" class="button">View Task</a>\n'
        "<p>If the button doesn't work, please copy and paste this URL into your browser:</p>\n"
        f"<p>{escape(url)}</p>"
    )
    return OutboundEmail(
        to=recipient.email,
        subject=render_subject(kind, event, mentioned),
        html_body=html_body,
        recipient_name=recipient.display_name,
    )
