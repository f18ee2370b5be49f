"""配置常量模块 -- 路径类配置可通过环境变量覆盖，校验阈值为固定常量

包含数据库路径、应用基础 URL、工时 / 评论校验阈值等可配置常量。
"""

import os
from pathlib import Path


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("TASKFLOW_DATA_DIR", "data"))


def get_db_path() -> str:
    """获取 SQLite 数据库路径"""
    return os.environ.get(
        "TASKFLOW_DB_PATH",
        str(_get_base_dir() / "sqlite" / "taskflow.db"),
    )


def get_app_base_url() -> str:
    """获取前端应用基础 URL（邮件中的绝对链接使用）"""
    return os.environ.get("TASKFLOW_APP_BASE_URL", "http://localhost:3000").rstrip("/")


# 单条工时记录上限（小时，含）
MAX_HOURS_PER_LOG: float = 100.0

# 工时描述最少字符数（去除首尾空白后）
MIN_LOG_DESCRIPTION_LENGTH: int = 10

# 通知消息中评论预览截断长度
COMMENT_PREVIEW_LENGTH: int = 100

# 通知消息中任务标题截断长度
TITLE_PREVIEW_LENGTH: int = 50

# 条件更新最多尝试次数（首次 + 重读重试一次）
CAS_MAX_ATTEMPTS: int = 2
