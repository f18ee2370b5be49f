"""工作流引擎异常体系

状态流转与追加操作同步执行，硬失败直接抛给调用方。
通知扇出的失败不走异常，见 taskflow.notify.models.DispatchResult。
"""


class TaskflowError(Exception):
    """引擎基础异常"""

    def __init__(self, message: str, recoverable: bool = False) -> None:
        """
        Args:
            message: 错误描述
            recoverable: 是否可通过重试恢复
        """
        super().__init__(message)
        self.recoverable = recoverable


class TaskNotFoundError(TaskflowError):
    """任务不存在"""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task with id {task_id} does not exist")
        self.task_id = task_id


class InvalidTransitionError(TaskflowError):
    """请求的流转边不在状态图中（与角色无关）"""

    def __init__(self, task_id: str, from_status: str, to_status: str) -> None:
        super().__init__(f"Cannot transition task {task_id} from {from_status} to {to_status}")
        self.task_id = task_id
        self.from_status = from_status
        self.to_status = to_status


class PermissionDeniedError(TaskflowError):
    """操作者缺少执行该操作所需的角色"""

    def __init__(self, actor_id: str, action: str) -> None:
        super().__init__(f"User {actor_id} is not allowed to {action}")
        self.actor_id = actor_id
        self.action = action


class ConcurrentModificationError(TaskflowError):
    """条件更新失败：存储中的值已被并发写入者修改

    引擎内部会重读重试一次，仍失败才抛给调用方。
    """

    def __init__(self, task_id: str, detail: str = "") -> None:
        message = f"Task {task_id} was modified concurrently"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message, recoverable=True)
        self.task_id = task_id


class ValidationError(TaskflowError):
    """评论 / 工时等输入不合法"""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field
