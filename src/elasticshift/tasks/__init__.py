"""重建索引与长任务监控模块.

示例用法:
    >>> from elasticshift.tasks import TaskMonitor
    >>> monitor = TaskMonitor(gateway, sink=print)
    >>> submission = monitor.submit(spec)
    >>> result = monitor.monitor(submission.task, poll_interval=5)
    >>> if result.is_partial_failure:
    ...     print(f"{result.document_failure_count} 个文档失败")
"""

from .exceptions import (
    MonitoringCancelledError,
    MonitoringTimeoutError,
    TaskApiError,
    TaskFailedError,
    TaskMonitorError,
)
from .models import (
    DocumentFailure,
    MonitorState,
    PollTick,
    ProgressRecord,
    RecordKind,
    TaskResult,
    evaluate_poll,
    extract_failures,
)
from .tool import ProgressSink, TaskMonitor

__all__ = [
    # 核心类
    "TaskMonitor",
    "ProgressSink",
    # 数据模型
    "DocumentFailure",
    "MonitorState",
    "PollTick",
    "ProgressRecord",
    "RecordKind",
    "TaskResult",
    "evaluate_poll",
    "extract_failures",
    # 异常类
    "TaskMonitorError",
    "TaskApiError",
    "TaskFailedError",
    "MonitoringCancelledError",
    "MonitoringTimeoutError",
]
