"""重建索引提交与任务监控核心工具类."""

import logging
import threading
import time
from collections.abc import Callable
from typing import Any

from ..gateway import (
    ClusterGateway,
    ClusterRequestError,
    ReindexSpec,
    ReindexSubmission,
    TaskHandle,
    TransientClusterError,
)
from .exceptions import (
    MonitoringCancelledError,
    MonitoringTimeoutError,
    TaskApiError,
    TaskFailedError,
)
from .models import (
    DocumentFailure,
    MonitorState,
    PollTick,
    ProgressRecord,
    RecordKind,
    TaskResult,
    evaluate_poll,
)

logger = logging.getLogger(__name__)

ProgressSink = Callable[[ProgressRecord], None]


class TaskMonitor:
    """重建索引提交与任务监控工具.

    异步任务的监控流程:
    - 先立即轮询一次，快速完成的任务无需等待一个完整间隔
    - 网络或传输层的临时错误只记录日志，在下一个间隔重试，不设内部重试上限
    - 任务 API 返回错误、或任务状态中报告任务级错误时立即终止
    - 每个新发现的文档级失败都作为单独的进度记录输出，且只输出一次
    - 取消信号在一个间隔内生效，只停止本地监控，不会中止集群上的任务

    Args:
        gateway: 集群网关
        sink: 进度记录输出回调（可选）
        clock: 单调时钟，用于截止时间判断，默认为 time.monotonic
    """

    def __init__(
        self,
        gateway: ClusterGateway,
        sink: ProgressSink | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.gateway = gateway
        self.sink = sink
        self.clock = clock

    def _emit(self, record: ProgressRecord) -> None:
        if self.sink is None:
            return
        try:
            self.sink(record)
        except Exception as e:
            # 输出失败不影响监控本身
            logger.warning(f"输出进度记录失败: {str(e)}")

    def _emit_failures(self, failures: tuple[DocumentFailure, ...] | list[DocumentFailure]) -> None:
        for failure in failures:
            logger.warning(
                f"文档失败: index={failure.index}, id={failure.document_id}, "
                f"status={failure.status_code}, {failure.cause_type}: {failure.cause_reason}"
            )
            self._emit(
                ProgressRecord(
                    kind=RecordKind.FAILURE,
                    message="文档重建失败",
                    fields=failure.to_row(),
                )
            )

    def submit(self, spec: ReindexSpec) -> ReindexSubmission:
        """提交重建索引请求.

        Args:
            spec: 重建索引请求描述

        Returns:
            异步时包含任务句柄，同步时包含结果文档

        Raises:
            ClusterRequestError: 集群拒绝请求时抛出
        """
        logger.info(
            f"开始重建索引 '{spec.source_index}' -> '{spec.destination_index}' "
            f"(wait_for_completion={spec.wait_for_completion})"
        )
        submission = self.gateway.submit_reindex(spec)
        self._emit(
            ProgressRecord(
                kind=RecordKind.STEP,
                message="重建索引已提交",
                fields={
                    "source_index": spec.source_index,
                    "destination_index": spec.destination_index,
                    "task_id": submission.task.task_id if submission.task else None,
                },
            )
        )
        return submission

    def process_sync_result(self, result: dict[str, Any]) -> TaskResult:
        """处理同步重建索引的结果文档.

        Args:
            result: 集群返回的结果文档

        Returns:
            任务结果，文档级失败同样逐条输出
        """
        _, state = evaluate_poll({**result, "completed": True}, MonitorState())
        self._emit_failures(state.failures)
        if state.failures:
            logger.warning(f"同步重建索引完成，但有 {len(state.failures)} 个文档失败")
        else:
            logger.info("同步重建索引完成")
        return TaskResult(
            task_id=None,
            final_status=result,
            failures=list(state.failures),
            polls=0,
        )

    def _progress_fields(
        self, task_id: str, document: dict[str, Any], poll_status: str
    ) -> dict[str, Any]:
        task = document.get("task") or {}
        fields: dict[str, Any] = {
            "task_id": task_id,
            "completed": bool(document.get("completed", False)),
            "poll_status": poll_status,
            "action": task.get("action"),
            "node": task.get("node"),
            "running_time_ns": task.get("running_time_in_nanos"),
        }
        status = task.get("status")
        if isinstance(status, dict):
            for key, value in status.items():
                if key == "failures":
                    continue
                fields[f"status_{key}"] = value
        return fields

    def poll_once(
        self, handle: TaskHandle, state: MonitorState
    ) -> tuple[PollTick | None, MonitorState, dict[str, Any] | None]:
        """执行一次轮询.

        Args:
            handle: 任务句柄
            state: 上一次轮询后的累积状态

        Returns:
            (轮询结果, 新的累积状态, 状态文档)。遇到临时错误时轮询结果和文档为 None，
            状态保持不变。

        Raises:
            TaskApiError: 任务 API 返回错误
            TaskFailedError: 任务报告了任务级错误
        """
        task_id = handle.task_id
        logger.debug(f"轮询任务 {task_id} 状态...")
        try:
            document = self.gateway.get_task_status(handle)
        except TransientClusterError as e:
            logger.warning(f"获取任务 {task_id} 状态失败: {str(e)}，下次轮询时重试")
            return None, state, None
        except ClusterRequestError as e:
            logger.error(f"任务 API 返回错误 (任务 {task_id}): {str(e)}")
            self._emit(
                ProgressRecord(
                    kind=RecordKind.PROGRESS,
                    message="任务 API 返回错误",
                    fields={
                        "task_id": task_id,
                        "completed": False,
                        "poll_status": "api_error",
                        "status_code": e.status_code,
                        "error_body": str(e),
                    },
                )
            )
            raise TaskApiError(f"任务 {task_id} 的任务 API 返回错误: {str(e)}", task_id=task_id) from e

        if not isinstance(document, dict):
            logger.warning(f"任务 {task_id} 状态响应无法解析，下次轮询时重试")
            return None, state, None

        error = document.get("error")
        if error:
            error = error if isinstance(error, dict) else {"reason": str(error)}
            error_type = error.get("type")
            error_reason = error.get("reason")
            message = f"任务 {task_id} 失败: {error_type} - {error_reason}"
            logger.error(message)
            fields = self._progress_fields(task_id, document, "task_error")
            fields.update({"completed": True, "error_type": error_type, "error_reason": error_reason})
            self._emit(ProgressRecord(kind=RecordKind.PROGRESS, message="任务报告错误", fields=fields))
            raise TaskFailedError(
                message,
                task_id=task_id,
                error_type=error_type,
                error_reason=error_reason,
            )

        tick, new_state = evaluate_poll(document, state)
        if tick.completed:
            self._emit(
                ProgressRecord(
                    kind=RecordKind.PROGRESS,
                    message="任务已完成",
                    fields=self._progress_fields(task_id, document, "success"),
                )
            )
        elif tick.status_changed:
            self._emit(
                ProgressRecord(
                    kind=RecordKind.PROGRESS,
                    fields=self._progress_fields(task_id, document, "in_progress"),
                )
            )
        self._emit_failures(tick.new_failures)
        return tick, new_state, document

    def monitor(
        self,
        handle: TaskHandle,
        poll_interval: float = 5.0,
        cancel_event: threading.Event | None = None,
        deadline: float | None = None,
    ) -> TaskResult:
        """轮询任务直到完成.

        Args:
            handle: 任务句柄
            poll_interval: 轮询间隔（秒）
            cancel_event: 取消信号，被设置后在一个间隔内停止监控
            deadline: 整体截止时间（clock 时钟上的绝对值），None 表示不限

        Returns:
            任务结果。文档失败数大于 0 表示部分失败，调用方必须检查该数值。

        Raises:
            TaskApiError: 任务 API 返回错误
            TaskFailedError: 任务报告了任务级错误
            MonitoringCancelledError: 监控被取消
            MonitoringTimeoutError: 超过截止时间
        """
        if poll_interval < 0:
            raise ValueError(f"poll_interval 必须 >= 0，当前值: {poll_interval}")

        cancel_event = cancel_event or threading.Event()
        task_id = handle.task_id
        state = MonitorState()
        logger.info(f"开始监控任务 {task_id} (间隔: {poll_interval}s)")

        while True:
            if cancel_event.is_set():
                logger.warning(f"监控已取消，停止监控任务 {task_id}（集群上的任务仍在运行）")
                raise MonitoringCancelledError(f"任务 {task_id} 的监控已取消", task_id=task_id)
            if deadline is not None and self.clock() >= deadline:
                logger.warning(f"超过截止时间，停止监控任务 {task_id}（集群上的任务仍在运行）")
                raise MonitoringTimeoutError(f"任务 {task_id} 监控超时", task_id=task_id)

            tick, state, document = self.poll_once(handle, state)
            if tick is not None and tick.completed:
                if state.failures:
                    logger.warning(f"任务 {task_id} 已完成，但有 {len(state.failures)} 个文档失败")
                else:
                    logger.info(f"任务 {task_id} 已成功完成")
                return TaskResult(
                    task_id=task_id,
                    final_status=document or {},
                    failures=list(state.failures),
                    polls=state.polls,
                )

            wait = poll_interval
            if deadline is not None:
                wait = max(0.0, min(wait, deadline - self.clock()))
            # 被取消时 wait 提前返回，由下一轮循环开头处理
            cancel_event.wait(wait)
