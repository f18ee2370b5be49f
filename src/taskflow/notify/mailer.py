"""邮件网关 -- SMTP 实现 + Console 实现

两种实现都满足 EmailGateway 协议：send() 成功返回 None，失败抛 EmailDeliveryError。
超时由 Dispatcher 统一施加（asyncio.wait_for），SMTP 连接自身也带 socket 超时。
"""

import asyncio
import smtplib
from email.message import EmailMessage
from typing import Protocol

import structlog

from .config import NotifyConfig
from .exceptions import EmailDeliveryError
from .models import OutboundEmail

log = structlog.get_logger()


class EmailGateway(Protocol):
    """邮件投递网关接口"""

    async def send(self, message: OutboundEmail) -> None:
        """发送一封邮件，失败抛出 EmailDeliveryError"""
        ...


class SmtpEmailGateway:
    """SMTP 邮件网关

    smtplib 是阻塞调用，放到线程中执行，避免阻塞事件循环。
    """

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str = "",
        password: str = "",
        from_addr: str = "noreply@taskflow.ai",
        starttls: bool = True,
        timeout_s: float = 10.0,
    ) -> None:
        if not host:
            raise ValueError("SMTP host is required")
        self._host = host
        self._port = port
        self._username = username
        self._password = password
        self._from_addr = from_addr
        self._starttls = starttls
        self._timeout_s = timeout_s

    async def send(self, message: OutboundEmail) -> None:
        try:
            await asyncio.to_thread(self._send_sync, message)
        except (smtplib.SMTPException, OSError) as e:
            raise EmailDeliveryError(message.to, f"{type(e).__name__}: {e}") from e
        log.debug("smtp_email_sent", to=message.to, subject=message.subject)

    def _send_sync(self, message: OutboundEmail) -> None:
        m = EmailMessage()
        m["Subject"] = message.subject
        m["From"] = self._from_addr
        m["To"] = message.to
        m.set_content("This message requires an HTML-capable email client.")
        m.add_alternative(message.html_body, subtype="html")
        with smtplib.SMTP(host=self._host, port=self._port, timeout=self._timeout_s) as s:
            s.ehlo()
            if self._starttls:
                s.starttls()
                s.ehlo()
            if self._username and self._password:
                s.login(self._username, self._password)
            s.send_message(m)


class ConsoleEmailGateway:
    """Console 邮件网关 -- 只写日志，不真正发送

    未配置 SMTP 时的默认实现（开发 / 测试环境）。
    """

    async def send(self, message: OutboundEmail) -> None:
        log.info(
            "email_simulated",
            to=message.to,
            recipient_name=message.recipient_name,
            subject=message.subject,
            body_length=len(message.html_body),
        )


def build_email_gateway(config: NotifyConfig) -> EmailGateway:
    """根据配置选择邮件网关"""
    if config.email_mode == "smtp":
        return SmtpEmailGateway(
            host=config.smtp_host,
            port=config.smtp_port,
            username=config.smtp_username,
            password=config.smtp_password.get_secret_value(),
            from_addr=config.smtp_from,
            starttls=config.smtp_starttls,
            timeout_s=config.email_timeout_s,
        )
    return ConsoleEmailGateway()
