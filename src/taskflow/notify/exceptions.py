"""Notify 异常体系

这些异常只在单个收件人的投递内部出现，
Dispatcher 捕获后记入 DispatchResult，不会中断整批扇出。
"""


class NotifyError(Exception):
    """Notify 包基础异常"""

    def __init__(self, message: str, recoverable: bool = True) -> None:
        """
        Args:
            message: 错误描述
            recoverable: 是否可通过重试恢复
        """
        super().__init__(message)
        self.recoverable = recoverable


class EmailDeliveryError(NotifyError):
    """邮件网关拒绝或发送失败"""

    def __init__(self, recipient: str, reason: str) -> None:
        super().__init__(f"邮件发送失败: {recipient} -- {reason}")
        self.recipient = recipient
        self.reason = reason


class EmailTimeoutError(EmailDeliveryError):
    """邮件网关在超时时间内未返回"""

    def __init__(self, recipient: str, timeout_s: float) -> None:
        super().__init__(recipient, f"timed out after {timeout_s:g}s")
        self.timeout_s = timeout_s
