"""TodoAgent 异常体系

校验错误、未找到、冲突、存储不可用四类分开，调用方据此区分
“输入有误”“无可操作对象”“幂等保护”与“基础设施故障”。
"""


class TodoError(Exception):
    """TodoAgent 基础异常"""

    code = "TODO_ERROR"

    def __init__(self, message: str, recoverable: bool = True) -> None:
        """
        Args:
            message: 错误描述
            recoverable: 调用方是否可通过修正输入或重试恢复
        """
        super().__init__(message)
        self.message = message
        self.recoverable = recoverable


class TodoValidationError(TodoError):
    """字段缺失或取值非法，未访问存储即拒绝"""

    code = "VALIDATION_ERROR"


class InvalidOutcomeError(TodoValidationError):
    """未知的积分结果类型，不允许静默按 0 分处理"""

    code = "INVALID_OUTCOME"

    def __init__(self, outcome: object) -> None:
        super().__init__(f"Unknown completion outcome: {outcome!r}")
        self.outcome = outcome


class TaskNotFoundError(TodoError):
    """任务不存在"""

    code = "TASK_NOT_FOUND"

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task with id {task_id} does not exist")
        self.task_id = task_id


class TaskConflictError(TodoError):
    """任务当前状态不允许该操作（幂等保护，非致命）"""

    code = "TASK_CONFLICT"

    def __init__(self, task_id: str, message: str) -> None:
        super().__init__(message)
        self.task_id = task_id


class AlreadyCompletedError(TaskConflictError):
    """任务已完成"""

    code = "TASK_ALREADY_COMPLETED"

    def __init__(self, task_id: str) -> None:
        super().__init__(task_id, f"Task {task_id} is already completed")


class AlreadyIncompleteError(TaskConflictError):
    """任务尚未完成"""

    code = "TASK_NOT_COMPLETED"

    def __init__(self, task_id: str) -> None:
        super().__init__(task_id, f"Task {task_id} is already not completed")


class DuplicateTaskError(TaskConflictError):
    """同一 room 已有同名的未完成任务"""

    code = "TASK_DUPLICATE"

    def __init__(self, task_id: str, name: str) -> None:
        super().__init__(task_id, f'You already have an active task named "{name}".')
        self.name = name


class StoreUnavailableError(TodoError):
    """存储连接不可用 -- 构造期致命错误"""

    code = "STORE_UNAVAILABLE"

    def __init__(self, message: str = "Backing store connection is not available") -> None:
        super().__init__(message, recoverable=False)
