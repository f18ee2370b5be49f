"""NotifyConfig -- 通知扇出配置加载

从环境变量加载配置，不硬编码 SMTP 服务器。
"""

import os
from typing import Literal

import structlog
from pydantic import BaseModel, Field, SecretStr

log = structlog.get_logger()


class NotifyConfig(BaseModel):
    """通知包配置 -- 从环境变量加载

    环境变量:
        TASKFLOW_EMAIL_MODE: 邮件发送模式（smtp/console）
        TASKFLOW_SMTP_HOST / _PORT / _USERNAME / _PASSWORD / _FROM / _STARTTLS
        TASKFLOW_EMAIL_TIMEOUT_S: 单封邮件发送超时（秒，默认 10）
        TASKFLOW_NOTIFY_MAX_CONCURRENCY: 并发投递上限（默认 6）
        TASKFLOW_NOTIFY_ON_WORK_LOG: 工时记录是否通知（默认 false）
        TASKFLOW_NOTIFY_ON_UNASSIGN: 移除指派是否通知（默认 false）
        TASKFLOW_MENTION_BY_DISPLAY_NAME: 是否按显示名识别 @（默认 true）
        TASKFLOW_NOTIFY_AWAIT_DISPATCH: 响应前是否等待扇出完成（默认 false）
    """

    email_mode: Literal["smtp", "console"] = Field(
        default="console",
        description="邮件发送模式：smtp / console（仅写日志）",
    )
    smtp_host: str = Field(default="", description="SMTP 主机")
    smtp_port: int = Field(default=587, ge=1, le=65535)
    smtp_username: str = Field(default="")
    smtp_password: SecretStr = Field(default=SecretStr(""))
    smtp_from: str = Field(default="noreply@taskflow.ai", description="发件人地址")
    smtp_starttls: bool = Field(default=True)
    email_timeout_s: float = Field(
        default=10.0,
        gt=0,
        description="单封邮件发送超时（秒），超时记为 email_failed",
    )
    max_concurrency: int = Field(
        default=6,
        ge=1,
        le=32,
        description="单次扇出的并发投递上限",
    )
    notify_on_work_log: bool = Field(default=False)
    notify_on_unassign: bool = Field(default=False)
    mention_by_display_name: bool = Field(default=True)
    await_dispatch: bool = Field(
        default=False,
        description="是否在响应前等待扇出完成，以便把部分失败提示返回给调用方",
    )


def _env_bool(name: str) -> bool | None:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return None
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_number(name: str, cast, kwargs: dict, key: str) -> None:
    val = os.environ.get(name)
    if not val:
        return
    try:
        kwargs[key] = cast(val)
    except ValueError:
        log.warning(
            "invalid_notify_config",
            env_var=name,
            value=val,
            fallback=NotifyConfig.model_fields[key].default,
        )
        # 使用默认值，不阻塞启动


def load_notify_config() -> NotifyConfig:
    """从环境变量加载通知配置

    Returns:
        NotifyConfig 实例
    """
    kwargs: dict = {}

    if val := os.environ.get("TASKFLOW_EMAIL_MODE"):
        kwargs["email_mode"] = val
    if val := os.environ.get("TASKFLOW_SMTP_HOST"):
        kwargs["smtp_host"] = val
    if val := os.environ.get("TASKFLOW_SMTP_USERNAME"):
        kwargs["smtp_username"] = val
    if val := os.environ.get("TASKFLOW_SMTP_PASSWORD"):
        kwargs["smtp_password"] = SecretStr(val)
    if val := os.environ.get("TASKFLOW_SMTP_FROM"):
        kwargs["smtp_from"] = val

    _env_number("TASKFLOW_SMTP_PORT", int, kwargs, "smtp_port")
    _env_number("TASKFLOW_EMAIL_TIMEOUT_S", float, kwargs, "email_timeout_s")
    _env_number("TASKFLOW_NOTIFY_MAX_CONCURRENCY", int, kwargs, "max_concurrency")

    for env_var, key in (
        ("TASKFLOW_SMTP_STARTTLS", "smtp_starttls"),
        ("TASKFLOW_NOTIFY_ON_WORK_LOG", "notify_on_work_log"),
        ("TASKFLOW_NOTIFY_ON_UNASSIGN", "notify_on_unassign"),
        ("TASKFLOW_MENTION_BY_DISPLAY_NAME", "mention_by_display_name"),
        ("TASKFLOW_NOTIFY_AWAIT_DISPATCH", "await_dispatch"),
    ):
        flag = _env_bool(env_var)
        if flag is not None:
            kwargs[key] = flag

    return NotifyConfig(**kwargs)
