"""集群网关数据模型定义模块."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


@dataclass
class AliasBinding:
    """别名绑定信息数据类.

    每次使用前都需要重新从集群读取，迁移步骤会修改别名状态，不能跨步骤缓存。

    Attributes:
        alias_name: 别名名称
        target_indices: 别名当前指向的具体索引（保持集群返回顺序）
    """

    alias_name: str
    target_indices: list[str] = field(default_factory=list)


class AliasLookupStatus(Enum):
    """别名查询结果状态枚举."""

    FOUND = "found"
    NOT_FOUND = "not_found"
    ERROR = "error"


@dataclass
class AliasLookup:
    """别名查询的三值结果.

    调用方根据 status 判断名称是否为别名，不再通过捕获通用异常来推断。

    Attributes:
        name: 查询的名称
        status: 查询结果状态
        binding: 找到别名时的绑定信息
        cause: 查询出错时的原始异常
    """

    name: str
    status: AliasLookupStatus
    binding: AliasBinding | None = None
    cause: Exception | None = None

    @classmethod
    def found(cls, binding: AliasBinding) -> AliasLookup:
        return cls(name=binding.alias_name, status=AliasLookupStatus.FOUND, binding=binding)

    @classmethod
    def not_found(cls, name: str) -> AliasLookup:
        return cls(name=name, status=AliasLookupStatus.NOT_FOUND)

    @classmethod
    def error(cls, name: str, cause: Exception) -> AliasLookup:
        return cls(name=name, status=AliasLookupStatus.ERROR, cause=cause)

    @property
    def is_alias(self) -> bool:
        return self.status == AliasLookupStatus.FOUND


class AliasActionType(Enum):
    """别名批量操作类型枚举."""

    ADD = "add"
    REMOVE = "remove"


@dataclass(frozen=True)
class AliasAction:
    """别名批量更新中的单个动作.

    Attributes:
        action: 动作类型
        index: 索引名称
        alias: 别名名称
    """

    action: AliasActionType
    index: str
    alias: str

    @classmethod
    def add(cls, index: str, alias: str) -> AliasAction:
        return cls(AliasActionType.ADD, index, alias)

    @classmethod
    def remove(cls, index: str, alias: str) -> AliasAction:
        return cls(AliasActionType.REMOVE, index, alias)

    def to_dict(self) -> dict[str, Any]:
        """转换为 _aliases API 所需的动作字典."""
        return {self.action.value: {"index": self.index, "alias": self.alias}}


@dataclass(frozen=True)
class ReindexSpec:
    """重建索引请求描述.

    提交给任务监控器后不再修改。

    Attributes:
        source_index: 源索引名称
        destination_index: 目标索引名称
        query: 源文档过滤条件（可选）
        script: 文档转换脚本（可选）
        pipeline: 写入目标索引时使用的 ingest pipeline（可选）
        batch_size: 每批次读取的文档数（source.size）
        slices: 并行切片数，1 表示不切片
        requests_per_second: 限流速率，-1 表示不限流
        wait_for_completion: 是否同步等待完成
        op_type: 目标写入类型（如 "create"），None 表示使用集群默认值
        timeout: 请求协调超时（如 "1m"），None 表示使用集群默认值
    """

    source_index: str
    destination_index: str
    query: dict[str, Any] | None = None
    script: dict[str, Any] | None = None
    pipeline: str | None = None
    batch_size: int = 1000
    slices: int = 1
    requests_per_second: float = -1
    wait_for_completion: bool = False
    op_type: str | None = None
    timeout: str | None = None

    def to_body(self) -> dict[str, Any]:
        """构建 _reindex 请求体."""
        source: dict[str, Any] = {"index": self.source_index, "size": self.batch_size}
        if self.query:
            source["query"] = self.query

        dest: dict[str, Any] = {"index": self.destination_index}
        if self.pipeline:
            dest["pipeline"] = self.pipeline
        if self.op_type:
            dest["op_type"] = self.op_type

        body: dict[str, Any] = {"source": source, "dest": dest}
        if self.script:
            body["script"] = self.script
        return body

    def to_params(self) -> dict[str, Any]:
        """构建 _reindex 请求的 URL 参数，只包含与集群默认值不同的项."""
        params: dict[str, Any] = {"wait_for_completion": self.wait_for_completion}
        if self.slices > 1:
            params["slices"] = self.slices
        if self.requests_per_second >= 0:
            params["requests_per_second"] = self.requests_per_second
        if self.timeout:
            params["timeout"] = self.timeout
        return params


@dataclass(frozen=True)
class TaskHandle:
    """异步长任务句柄.

    Attributes:
        task_id: 集群返回的任务 ID（形如 "node:123"）
    """

    task_id: str

    def __str__(self) -> str:
        return self.task_id


@dataclass
class ReindexSubmission:
    """重建索引提交结果.

    异步提交时 task 不为空；同步提交时 result 为集群返回的完整结果文档。

    Attributes:
        task: 任务句柄
        result: 同步结果文档
    """

    task: TaskHandle | None = None
    result: dict[str, Any] | None = None

    @property
    def is_async(self) -> bool:
        return self.task is not None
