"""数据模型 -- OutboundEmail + DispatchResult

DispatchResult 是部分失败的载体：主操作已经成功，
通知失败只以结果对象的形式返回，不抛异常。
"""

from pydantic import BaseModel, Field


class OutboundEmail(BaseModel):
    """待发送邮件"""

    to: str
    subject: str
    html_body: str
    recipient_name: str = ""


class RecipientResolutionFailure(BaseModel):
    """收件人档案解析失败（该收件人被跳过）"""

    user_id: str
    reason: str


class DeliveryFailure(BaseModel):
    """单个收件人在某一通道上的投递失败"""

    user_id: str
    reason: str


class DispatchResult(BaseModel):
    """一次扇出的汇总结果"""

    event_id: str
    event_type: str
    task_id: str
    recipient_count: int = Field(default=0, description="排除触发者后的收件人数")
    delivered: int = Field(default=0, description="成功写入的站内通知数")
    emails_sent: int = Field(default=0, description="成功发送的邮件数")
    in_app_failed: list[DeliveryFailure] = Field(default_factory=list)
    email_failed: list[DeliveryFailure] = Field(default_factory=list)
    unresolved: list[RecipientResolutionFailure] = Field(default_factory=list)

    @property
    def is_partial(self) -> bool:
        """存在任何通道上的失败即为部分投递"""
        return bool(self.in_app_failed or self.email_failed or self.unresolved)

    def warning_message(self) -> str | None:
        """面向用户的部分失败提示；全部成功时返回 None"""
        if not self.is_partial:
            return None
        failed = len(
            {f.user_id for f in self.in_app_failed}
            | {f.user_id for f in self.email_failed}
            | {f.user_id for f in self.unresolved}
        )
        return (
            f"Your action succeeded, but {failed} of {self.recipient_count} "
            "people may not have been notified."
        )
