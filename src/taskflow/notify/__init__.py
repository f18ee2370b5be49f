"""TaskFlow Notify -- 领域事件通知扇出

站内通知 + 邮件双通道；单个收件人的失败只记入 DispatchResult，
永远不会回滚触发它的主操作。
"""

from .config import NotifyConfig, load_notify_config
from .dispatcher import NotificationDispatcher
from .exceptions import EmailDeliveryError, EmailTimeoutError, NotifyError
from .mailer import ConsoleEmailGateway, EmailGateway, SmtpEmailGateway, build_email_gateway
from .models import DeliveryFailure, DispatchResult, OutboundEmail, RecipientResolutionFailure

__all__ = [
    "NotifyConfig",
    "load_notify_config",
    "NotificationDispatcher",
    "NotifyError",
    "EmailDeliveryError",
    "EmailTimeoutError",
    "EmailGateway",
    "SmtpEmailGateway",
    "ConsoleEmailGateway",
    "build_email_gateway",
    "OutboundEmail",
    "DispatchResult",
    "DeliveryFailure",
    "RecipientResolutionFailure",
]
