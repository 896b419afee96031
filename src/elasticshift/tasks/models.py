"""任务监控数据模型定义模块."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


def utc_timestamp() -> str:
    """返回当前 UTC 时间的 ISO 8601 字符串."""
    return datetime.now(UTC).isoformat(timespec="seconds")


class RecordKind(Enum):
    """进度记录类型枚举."""

    STEP = "step"
    PROGRESS = "progress"
    FAILURE = "failure"
    WARNING = "warning"


@dataclass
class ProgressRecord:
    """进度记录数据类.

    每个关键步骤、每次状态发生变化的轮询、每个新发现的文档失败都会产生一条记录。

    Attributes:
        kind: 记录类型
        message: 可读描述
        fields: 结构化字段
        timestamp: 记录时间（ISO 8601）
    """

    kind: RecordKind
    message: str = ""
    fields: dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=utc_timestamp)

    def to_row(self) -> dict[str, Any]:
        """转换为输出行."""
        row: dict[str, Any] = {"kind": self.kind.value}
        if self.message:
            row["message"] = self.message
        row.update(self.fields)
        row["@timestamp"] = self.timestamp
        return row


@dataclass(frozen=True)
class DocumentFailure:
    """单个文档级失败.

    Attributes:
        index: 索引名称
        document_id: 文档 ID
        status_code: HTTP 状态码
        cause_type: 失败原因类型
        cause_reason: 失败原因描述
        shard: 分片编号（search 失败）
        node: 节点 ID（search 失败）
    """

    index: str | None
    document_id: str | None
    status_code: int | None
    cause_type: str | None
    cause_reason: str | None
    shard: int | None = None
    node: str | None = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> DocumentFailure:
        """从 _reindex 的 failures 条目解析.

        兼容 bulk 失败（cause 字段）和 search 失败（reason 字段）两种结构。
        """
        cause = raw.get("cause")
        if not isinstance(cause, dict):
            cause = raw.get("reason") if isinstance(raw.get("reason"), dict) else {}
        document_id = raw.get("id")
        status = raw.get("status")
        shard = raw.get("shard")
        return cls(
            index=raw.get("index") or cause.get("index"),
            document_id=str(document_id) if document_id is not None else None,
            status_code=int(status) if status is not None else None,
            cause_type=cause.get("type"),
            cause_reason=cause.get("reason"),
            shard=int(shard) if shard is not None else None,
            node=raw.get("node"),
        )

    @property
    def key(self) -> tuple[Any, ...]:
        """用于跨轮询去重的键."""
        return (
            self.index,
            self.document_id,
            self.status_code,
            self.cause_type,
            self.cause_reason,
            self.shard,
            self.node,
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "document_id": self.document_id,
            "status_code": self.status_code,
            "cause_type": self.cause_type,
            "cause_reason": self.cause_reason,
            "shard": self.shard,
            "node": self.node,
        }


def extract_failures(document: dict[str, Any]) -> list[DocumentFailure]:
    """从任务状态文档或同步结果文档中提取全部文档级失败.

    依次查看 response.failures、task.status.failures 和顶层 failures。
    """
    raw_failures: list[Any] = []
    response = document.get("response")
    if isinstance(response, dict):
        raw_failures.extend(response.get("failures") or [])
    status = (document.get("task") or {}).get("status")
    if isinstance(status, dict):
        raw_failures.extend(status.get("failures") or [])
    raw_failures.extend(document.get("failures") or [])
    return [DocumentFailure.from_dict(f) for f in raw_failures if isinstance(f, dict)]


def status_signature(document: dict[str, Any]) -> str:
    """计算任务状态签名，用于判断两次轮询之间状态是否变化."""
    status = (document.get("task") or {}).get("status") or {}
    return json.dumps(
        {"completed": bool(document.get("completed")), "status": status},
        sort_keys=True,
        default=str,
    )


@dataclass(frozen=True)
class MonitorState:
    """轮询累积状态.

    在轮询循环中显式传递，每次轮询返回新的状态值。

    Attributes:
        seen_failures: 已输出过的失败键
        failures: 已累积的失败（按发现顺序）
        last_signature: 上一次输出的状态签名
        polls: 已完成的轮询次数
    """

    seen_failures: frozenset[tuple[Any, ...]] = frozenset()
    failures: tuple[DocumentFailure, ...] = ()
    last_signature: str | None = None
    polls: int = 0


@dataclass(frozen=True)
class PollTick:
    """单次轮询的评估结果.

    Attributes:
        new_failures: 本次新发现的文档失败
        status_changed: 状态是否相对上一次发生变化
        completed: 任务是否已完成
    """

    new_failures: tuple[DocumentFailure, ...]
    status_changed: bool
    completed: bool


def evaluate_poll(
    document: dict[str, Any], state: MonitorState
) -> tuple[PollTick, MonitorState]:
    """评估一次轮询得到的任务状态文档.

    纯函数：不访问集群、不输出，只根据文档与上一次状态计算本次的增量。

    Args:
        document: 任务状态文档
        state: 上一次轮询后的累积状态

    Returns:
        (本次轮询结果, 新的累积状态)
    """
    seen = set(state.seen_failures)
    new_failures: list[DocumentFailure] = []
    for failure in extract_failures(document):
        if failure.key in seen:
            continue
        seen.add(failure.key)
        new_failures.append(failure)

    signature = status_signature(document)
    tick = PollTick(
        new_failures=tuple(new_failures),
        status_changed=signature != state.last_signature,
        completed=bool(document.get("completed", False)),
    )
    new_state = MonitorState(
        seen_failures=frozenset(seen),
        failures=state.failures + tuple(new_failures),
        last_signature=signature,
        polls=state.polls + 1,
    )
    return tick, new_state


@dataclass
class TaskResult:
    """任务终态结果.

    Attributes:
        task_id: 任务 ID（同步执行时为 None）
        final_status: 最终状态文档
        failures: 累积的文档级失败
        polls: 轮询次数（同步执行时为 0）
    """

    task_id: str | None
    final_status: dict[str, Any] = field(default_factory=dict)
    failures: list[DocumentFailure] = field(default_factory=list)
    polls: int = 0

    @property
    def document_failure_count(self) -> int:
        return len(self.failures)

    @property
    def is_partial_failure(self) -> bool:
        """任务已完成但存在文档级失败，不能视为成功."""
        return self.document_failure_count > 0
