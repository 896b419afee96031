"""迁移编排数据模型定义模块."""

import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..config import parse_bool, resolve_layers
from ..exceptions import ConfigurationError, MigrationError
from ..planner import MigrationPlan
from ..tasks import ProgressRecord


class MigrationState(Enum):
    """迁移状态机状态枚举.

    INIT → PLANNING_DONE → (DONE | REINDEXING → CUTOVER → (DONE | CLEANUP_WARNING))，
    任意步骤致命失败时进入 FAILED。
    """

    INIT = "init"
    PLANNING_DONE = "planning_done"
    REINDEXING = "reindexing"
    CUTOVER = "cutover"
    DONE = "done"
    CLEANUP_WARNING = "cleanup_warning"
    FAILED = "failed"


# 可通过 flag / 环境变量 / 默认值分层配置的选项
_LAYERED_DEFAULTS: dict[str, Any] = {
    "zero_downtime_allowed": True,
    "force_alias": False,
    "delete_old_index": False,
    "batch_size": 1000,
    "write_index_only": False,
    "poll_interval": 5.0,
    "timeout_seconds": 0.0,
    "wait_for_completion": False,
}

_ENV_NAMES = {
    "batch_size": "ELASTICSHIFT_BATCH_SIZE",
    "poll_interval": "ELASTICSHIFT_POLL_INTERVAL",
    "timeout_seconds": "ELASTICSHIFT_UPDATE_TIMEOUT",
    "zero_downtime_allowed": "ELASTICSHIFT_ZERO_DOWNTIME",
}

_CONVERTERS = {
    "batch_size": int,
    "poll_interval": float,
    "timeout_seconds": float,
    "zero_downtime_allowed": parse_bool,
}


@dataclass
class MigrationOptions:
    """迁移选项.

    Attributes:
        zero_downtime_allowed: 原地更新失败时是否允许重建索引，默认 True
        force_alias: 是否要求迁移后目标名称必须是别名
        delete_old_index: 别名切换成功后是否删除旧索引（仅对别名目标生效）
        batch_size: 重建索引每批次文档数，默认 1000
        write_index_only: 原地更新时是否只作用于写索引
        poll_interval: 任务轮询间隔（秒），默认 5
        timeout_seconds: 整体截止时间（秒），0 表示不限
        wait_for_completion: 是否同步执行重建索引，默认异步提交后轮询
        confirm: 确认回调，接收操作描述，返回 False 时取消迁移
        cancel_event: 取消信号

    Raises:
        ConfigurationError: 参数不合法时抛出
    """

    zero_downtime_allowed: bool = True
    force_alias: bool = False
    delete_old_index: bool = False
    batch_size: int = 1000
    write_index_only: bool = False
    poll_interval: float = 5.0
    timeout_seconds: float = 0.0
    wait_for_completion: bool = False
    confirm: Callable[[str], bool] | None = None
    cancel_event: threading.Event | None = None

    def __post_init__(self) -> None:
        if self.batch_size <= 0:
            raise ConfigurationError(f"batch_size 必须 > 0，当前值: {self.batch_size}")
        if self.poll_interval < 0:
            raise ConfigurationError(f"poll_interval 必须 >= 0，当前值: {self.poll_interval}")
        if self.timeout_seconds < 0:
            raise ConfigurationError(f"timeout_seconds 必须 >= 0，当前值: {self.timeout_seconds}")

    @classmethod
    def from_sources(
        cls,
        explicit: Mapping[str, Any] | None = None,
        environ: Mapping[str, str] | None = None,
        confirm: Callable[[str], bool] | None = None,
        cancel_event: threading.Event | None = None,
    ) -> "MigrationOptions":
        """按 flag > 环境变量 > 默认值 的顺序构建迁移选项.

        Args:
            explicit: 显式指定的选项，值为 None 表示未指定
            environ: 环境变量来源，默认为 os.environ
            confirm: 确认回调
            cancel_event: 取消信号

        Returns:
            迁移选项实例
        """
        resolved = resolve_layers(
            explicit,
            _LAYERED_DEFAULTS,
            env_names=_ENV_NAMES,
            converters=_CONVERTERS,
            environ=environ,
        )
        return cls(**resolved, confirm=confirm, cancel_event=cancel_event)


@dataclass
class MigrationOutcome:
    """迁移最终结果，是返回给调用方的唯一值.

    success 为 True 时仍可能带有 warnings（清理类警告不影响成功判定）。
    document_failure_count 大于 0 时 success 一定为 False。

    Attributes:
        success: 是否成功
        document_failure_count: 文档级失败数
        error: 致命错误（成功时为 None）
        alias_swapped: 别名是否已指向新索引
        state: 状态机最终状态
        plan: 迁移规划（规划前失败时为 None）
        new_index: 新建的目标索引（未走重建索引路径时为 None）
        source_indices: 解析出的源索引
        warnings: 非致命警告
        trace: 迁移过程中输出的进度记录
    """

    success: bool
    document_failure_count: int = 0
    error: MigrationError | None = None
    alias_swapped: bool = False
    state: MigrationState = MigrationState.INIT
    plan: MigrationPlan | None = None
    new_index: str | None = None
    source_indices: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    trace: list[ProgressRecord] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """转换为摘要字典（不含 trace）."""
        return {
            "success": self.success,
            "state": self.state.value,
            "plan": self.plan.kind.value if self.plan else None,
            "new_index": self.new_index,
            "source_indices": list(self.source_indices),
            "alias_swapped": self.alias_swapped,
            "document_failure_count": self.document_failure_count,
            "warnings": list(self.warnings),
            "error": str(self.error) if self.error else None,
            "error_step": self.error.step if self.error else None,
        }


@dataclass
class ReindexJobOutcome:
    """独立重建索引任务结果.

    Attributes:
        success: 是否成功（存在文档失败时为 False）
        task_id: 异步任务 ID（同步执行时为 None）
        document_failure_count: 文档级失败数
        alias_swapped: 是否已把别名从源索引切换到目标索引
        warnings: 非致命警告
        error: 致命错误
        final_status: 最终状态文档
    """

    success: bool
    task_id: str | None = None
    document_failure_count: int = 0
    alias_swapped: bool = False
    warnings: list[str] = field(default_factory=list)
    error: MigrationError | None = None
    final_status: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """转换为摘要字典（不含最终状态文档）."""
        return {
            "success": self.success,
            "task_id": self.task_id,
            "document_failure_count": self.document_failure_count,
            "alias_swapped": self.alias_swapped,
            "warnings": list(self.warnings),
            "error": str(self.error) if self.error else None,
        }
