"""任务监控异常定义模块."""

from ..exceptions import MigrationError


class TaskMonitorError(MigrationError):
    """任务监控基础异常类."""

    def __init__(self, message: str, task_id: str | None = None):
        super().__init__(message, step="reindex")
        self.task_id = task_id


class TaskApiError(TaskMonitorError):
    """任务 API 本身返回错误（致命，终止监控）."""

    pass


class TaskFailedError(TaskMonitorError):
    """任务已结束，但状态文档中报告了任务级错误.

    Attributes:
        error_type: 集群报告的错误类型
        error_reason: 集群报告的错误原因
    """

    def __init__(
        self,
        message: str,
        task_id: str | None = None,
        error_type: str | None = None,
        error_reason: str | None = None,
    ):
        super().__init__(message, task_id=task_id)
        self.error_type = error_type
        self.error_reason = error_reason


class MonitoringCancelledError(TaskMonitorError):
    """本地监控被取消.

    只停止本地轮询，集群上的任务不会被中止。
    """

    pass


class MonitoringTimeoutError(TaskMonitorError):
    """超过整体截止时间，停止本地监控.

    集群上的任务不会被中止，已写入目标索引的数据也不会回滚。
    """

    pass
