"""测试共享 fixtures.

FakeClusterGateway 是一个有状态的内存集群，实现 ClusterGateway 的全部能力，
并支持故障注入：整批别名更新失败、删除索引失败、别名查询出错、脚本化的任务状态序列等。
"""

import copy
from collections.abc import Sequence
from typing import Any

import pytest

from elasticshift.gateway import (
    AliasAction,
    AliasActionType,
    AliasBinding,
    AliasLookup,
    ClusterGateway,
    ClusterRequestError,
    ReindexSpec,
    ReindexSubmission,
    TaskHandle,
)


class FakeClusterGateway(ClusterGateway):
    """内存中的集群网关.

    Attributes:
        indices: 具体索引 -> {"mapping": ..., "settings": ..., "docs": 文档数}
        aliases: 别名 -> 指向的具体索引列表
        calls: 按顺序记录的调用 (方法名, 参数)
        put_mapping_error: 原地更新映射时抛出的异常
        create_index_error: 创建索引时抛出的异常
        reindex_error: 提交重建索引时抛出的异常
        alias_lookup_errors: 查询时返回 ERROR 的名称
        delete_failures: 删除时失败的索引名称
        alias_call_failures: 第 N 次（从 1 开始）update_aliases 调用整批失败
        task_statuses: get_task_status 依次返回的文档或抛出的异常，最后一项会重复返回
        sync_result: 同步重建索引返回的结果文档
    """

    def __init__(self) -> None:
        self.indices: dict[str, dict[str, Any]] = {}
        self.aliases: dict[str, list[str]] = {}
        self.calls: list[tuple[str, Any]] = []
        self.reindex_specs: list[ReindexSpec] = []
        self.put_mapping_error: Exception | None = None
        self.create_index_error: Exception | None = None
        self.reindex_error: Exception | None = None
        self.alias_lookup_errors: set[str] = set()
        self.delete_failures: set[str] = set()
        self.alias_call_failures: set[int] = set()
        self.task_statuses: list[Any] = []
        self.sync_result: dict[str, Any] | None = None
        self.task_polls = 0
        self._alias_calls = 0

    # ------------------------------------------------------------
    # 测试辅助
    # ------------------------------------------------------------

    def add_index(self, name: str, docs: int = 0, mapping: dict[str, Any] | None = None) -> None:
        self.indices[name] = {"mapping": mapping or {}, "settings": {}, "docs": docs}

    def add_alias(self, alias: str, *indices: str) -> None:
        self.aliases[alias] = list(indices)

    def resolve(self, name: str) -> list[str]:
        """名称当前解析到的具体索引，无法解析时返回空列表."""
        if name in self.indices:
            return [name]
        return list(self.aliases.get(name, []))

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]

    # ------------------------------------------------------------
    # ClusterGateway 实现
    # ------------------------------------------------------------

    def index_exists(self, name: str) -> bool:
        self.calls.append(("index_exists", name))
        return name in self.indices or name in self.aliases

    def get_alias(self, name: str) -> AliasLookup:
        self.calls.append(("get_alias", name))
        if name in self.alias_lookup_errors:
            return AliasLookup.error(name, ClusterRequestError("模拟的别名查询错误", status_code=500))
        if name in self.aliases and self.aliases[name]:
            return AliasLookup.found(
                AliasBinding(alias_name=name, target_indices=list(self.aliases[name]))
            )
        return AliasLookup.not_found(name)

    def put_mapping(
        self, index: str, mapping: dict[str, Any], write_index_only: bool = False
    ) -> None:
        self.calls.append(("put_mapping", (index, write_index_only)))
        if self.put_mapping_error is not None:
            raise self.put_mapping_error
        for name in self.resolve(index):
            self.indices[name]["mapping"] = copy.deepcopy(mapping)

    def create_index(
        self,
        name: str,
        mapping: dict[str, Any] | None = None,
        settings: dict[str, Any] | None = None,
    ) -> None:
        self.calls.append(("create_index", name))
        if self.create_index_error is not None:
            raise self.create_index_error
        if name in self.indices or name in self.aliases:
            raise ClusterRequestError(
                f"索引 '{name}' 已存在", status_code=400, error_type="resource_already_exists_exception"
            )
        self.indices[name] = {
            "mapping": copy.deepcopy(mapping or {}),
            "settings": copy.deepcopy(settings or {}),
            "docs": 0,
        }

    def delete_index(self, name: str) -> None:
        self.calls.append(("delete_index", name))
        if name in self.delete_failures:
            raise ClusterRequestError(f"删除索引 '{name}' 失败（模拟）", status_code=500)
        if name not in self.indices:
            raise ClusterRequestError(f"索引 '{name}' 不存在", status_code=404)
        del self.indices[name]
        for alias in list(self.aliases):
            self.aliases[alias] = [i for i in self.aliases[alias] if i != name]
            if not self.aliases[alias]:
                del self.aliases[alias]

    def update_aliases(self, actions: Sequence[AliasAction]) -> None:
        self._alias_calls += 1
        self.calls.append(("update_aliases", [a.to_dict() for a in actions]))
        if self._alias_calls in self.alias_call_failures:
            raise ClusterRequestError("别名批量更新失败（模拟）", status_code=500)

        # 先在副本上应用，全部合法后再提交
        staged = copy.deepcopy(self.aliases)
        for action in actions:
            if action.action == AliasActionType.ADD:
                if action.index not in self.indices:
                    raise ClusterRequestError(f"索引 '{action.index}' 不存在", status_code=404)
                if action.alias in self.indices:
                    raise ClusterRequestError(
                        f"别名 '{action.alias}' 与具体索引同名",
                        status_code=400,
                        error_type="invalid_alias_name_exception",
                    )
                targets = staged.setdefault(action.alias, [])
                if action.index not in targets:
                    targets.append(action.index)
            else:
                targets = staged.get(action.alias, [])
                if action.index not in targets:
                    raise ClusterRequestError(
                        f"别名 '{action.alias}' 未指向 '{action.index}'", status_code=404
                    )
                targets.remove(action.index)
                if not targets:
                    del staged[action.alias]
        self.aliases = staged

    def submit_reindex(self, spec: ReindexSpec) -> ReindexSubmission:
        self.calls.append(("submit_reindex", (spec.source_index, spec.destination_index)))
        self.reindex_specs.append(spec)
        if self.reindex_error is not None:
            raise self.reindex_error
        copied = self.indices.get(spec.source_index, {}).get("docs", 0)
        if spec.destination_index in self.indices:
            self.indices[spec.destination_index]["docs"] += copied
        if spec.wait_for_completion:
            result = self.sync_result
            if result is None:
                result = {"total": copied, "created": copied, "failures": []}
            return ReindexSubmission(result=result)
        return ReindexSubmission(task=TaskHandle("node-1:42"))

    def get_task_status(self, handle: TaskHandle) -> dict[str, Any]:
        self.calls.append(("get_task_status", handle.task_id))
        self.task_polls += 1
        if not self.task_statuses:
            return make_task_status(completed=True)
        item = self.task_statuses.pop(0) if len(self.task_statuses) > 1 else self.task_statuses[0]
        if isinstance(item, Exception):
            raise item
        return item


def make_failure(doc_id: str, index: str = "products_new", reason: str = "mapper_parsing_exception") -> dict[str, Any]:
    """构造一条 _reindex 文档级失败."""
    return {
        "index": index,
        "id": doc_id,
        "status": 400,
        "cause": {"type": reason, "reason": f"文档 {doc_id} 解析失败", "index": index},
    }


def make_task_status(
    completed: bool,
    created: int = 0,
    total: int = 100,
    failures: list[dict[str, Any]] | None = None,
    error: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """构造一个 GET _tasks/<id> 的响应文档."""
    document: dict[str, Any] = {
        "completed": completed,
        "task": {
            "node": "node-1",
            "id": 42,
            "action": "indices:data/write/reindex",
            "running_time_in_nanos": 1_000_000,
            "status": {"total": total, "created": created, "updated": 0, "batches": 1},
        },
    }
    if completed:
        document["response"] = {
            "total": total,
            "created": created,
            "failures": list(failures or []),
        }
    elif failures:
        document["task"]["status"]["failures"] = list(failures)
    if error is not None:
        document["error"] = error
    return document


@pytest.fixture
def fake_gateway() -> FakeClusterGateway:
    """空的内存集群."""
    return FakeClusterGateway()


@pytest.fixture
def records() -> list:
    """收集进度记录的列表，配合 records.append 作为 sink 使用."""
    return []


@pytest.fixture
def task_status():
    """返回任务状态文档构造函数."""
    return make_task_status


@pytest.fixture
def doc_failure():
    """返回文档失败构造函数."""
    return make_failure
