"""集群网关核心工具类.

ClusterGateway 定义迁移引擎依赖的全部集群能力；ElasticsearchGateway
基于官方 elasticsearch 客户端实现这些能力，并把客户端异常统一转换为
ClusterRequestError（集群拒绝）或 TransientClusterError（可重试）。
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

from elasticsearch import Elasticsearch
from elasticsearch.exceptions import ApiError, NotFoundError, TransportError

from .exceptions import ClusterRequestError, TransientClusterError
from .models import (
    AliasAction,
    AliasBinding,
    AliasLookup,
    ReindexSpec,
    ReindexSubmission,
    TaskHandle,
)

logger = logging.getLogger(__name__)


def validate_index_name(index_name: str) -> bool:
    """验证索引名称是否符合 Elasticsearch 规范.

    Args:
        index_name: 索引名称

    Returns:
        是否有效

    Note:
        Elasticsearch 索引名称限制：
        - 不能以 . 或 _ 开头（也不能以 - 或 + 开头）
        - 不能包含 , # / \\ * ? " < > | 空格
        - 不能是 . 或 ..
        - 长度不能超过 255 字节
    """
    if not index_name or not isinstance(index_name, str):
        return False

    if len(index_name.encode("utf-8")) > 255:
        return False

    if index_name[0] in "._-+":
        return False

    if index_name in (".", ".."):
        return False

    invalid_chars = {",", "#", "/", "\\", '"', "<", ">", "|", " ", "*", "?", "\t", "\n", "\r"}
    if any(char in invalid_chars for char in index_name):
        return False

    return True


def _response_body(response: Any) -> dict[str, Any]:
    """取出客户端响应中的 JSON 文档."""
    body = getattr(response, "body", response)
    return dict(body) if body else {}


def _to_request_error(e: ApiError, action: str) -> ClusterRequestError:
    """把客户端 ApiError 转换为带上下文的 ClusterRequestError."""
    status_code = getattr(e, "status_code", None)
    error_type = None
    body = getattr(e, "body", None)
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        error_type = body["error"].get("type")
    return ClusterRequestError(
        f"{action}失败: {str(e)}",
        status_code=status_code,
        error_type=error_type,
    )


class ClusterGateway(ABC):
    """迁移引擎依赖的集群能力接口.

    所有修改集群状态的方法在集群拒绝时抛出 ClusterRequestError。
    """

    @abstractmethod
    def index_exists(self, name: str) -> bool:
        """检查索引或别名是否存在."""

    @abstractmethod
    def get_alias(self, name: str) -> AliasLookup:
        """按名称查询别名，返回三值结果，不抛出异常."""

    @abstractmethod
    def put_mapping(
        self, index: str, mapping: dict[str, Any], write_index_only: bool = False
    ) -> None:
        """原地更新索引映射."""

    @abstractmethod
    def create_index(
        self,
        name: str,
        mapping: dict[str, Any] | None = None,
        settings: dict[str, Any] | None = None,
    ) -> None:
        """创建索引."""

    @abstractmethod
    def delete_index(self, name: str) -> None:
        """删除索引."""

    @abstractmethod
    def update_aliases(self, actions: Sequence[AliasAction]) -> None:
        """原子地批量执行别名动作：要么全部生效，要么全部不生效."""

    @abstractmethod
    def submit_reindex(self, spec: ReindexSpec) -> ReindexSubmission:
        """提交重建索引请求."""

    @abstractmethod
    def get_task_status(self, handle: TaskHandle) -> dict[str, Any]:
        """获取任务状态文档.

        Raises:
            TransientClusterError: 网络或传输层故障，可在下一次轮询时重试
            ClusterRequestError: 任务 API 返回错误响应
        """


class ElasticsearchGateway(ClusterGateway):
    """基于 elasticsearch 客户端的集群网关实现.

    Args:
        es_client: Elasticsearch 客户端实例

    Example:
        >>> gateway = ElasticsearchGateway(es_client)
        >>> lookup = gateway.get_alias("products")
        >>> if lookup.is_alias:
        ...     print(lookup.binding.target_indices)
    """

    def __init__(self, es_client: Elasticsearch):
        if es_client is None:
            raise ValueError("es_client 不能为 None")
        self.es_client = es_client

    def index_exists(self, name: str) -> bool:
        try:
            return bool(self.es_client.indices.exists(index=name))
        except ApiError as e:
            raise _to_request_error(e, f"检查索引 '{name}' 是否存在") from e
        except TransportError as e:
            raise TransientClusterError(
                f"检查索引 '{name}' 是否存在时连接失败: {str(e)}"
            ) from e

    def get_alias(self, name: str) -> AliasLookup:
        try:
            response = self.es_client.indices.get_alias(name=name)
        except NotFoundError:
            return AliasLookup.not_found(name)
        except Exception as e:
            logger.warning(f"查询别名 '{name}' 失败: {str(e)}")
            return AliasLookup.error(name, e)

        indices = list(_response_body(response).keys())
        if not indices:
            return AliasLookup.not_found(name)
        return AliasLookup.found(AliasBinding(alias_name=name, target_indices=indices))

    def put_mapping(
        self, index: str, mapping: dict[str, Any], write_index_only: bool = False
    ) -> None:
        params: dict[str, Any] = {}
        if write_index_only:
            params["write_index_only"] = True
        try:
            self.es_client.indices.put_mapping(index=index, body=mapping, **params)
        except ApiError as e:
            raise _to_request_error(e, f"更新索引 '{index}' 映射") from e
        except TransportError as e:
            raise ClusterRequestError(
                f"更新索引 '{index}' 映射时连接失败: {str(e)}"
            ) from e
        logger.info(f"索引 '{index}' 映射原地更新成功")

    def create_index(
        self,
        name: str,
        mapping: dict[str, Any] | None = None,
        settings: dict[str, Any] | None = None,
    ) -> None:
        if not validate_index_name(name):
            raise ValueError(f"索引名称 '{name}' 不符合 Elasticsearch 规范")

        body: dict[str, Any] = {}
        if mapping:
            body["mappings"] = mapping
        if settings:
            body["settings"] = settings

        try:
            response = self.es_client.indices.create(index=name, body=body)
        except ApiError as e:
            raise _to_request_error(e, f"创建索引 '{name}'") from e
        except TransportError as e:
            raise ClusterRequestError(f"创建索引 '{name}' 时连接失败: {str(e)}") from e

        if not _response_body(response).get("acknowledged", False):
            raise ClusterRequestError(f"创建索引 '{name}' 未被集群确认")
        logger.info(f"索引 '{name}' 创建成功")

    def delete_index(self, name: str) -> None:
        try:
            response = self.es_client.indices.delete(index=name)
        except ApiError as e:
            raise _to_request_error(e, f"删除索引 '{name}'") from e
        except TransportError as e:
            raise ClusterRequestError(f"删除索引 '{name}' 时连接失败: {str(e)}") from e

        if not _response_body(response).get("acknowledged", False):
            raise ClusterRequestError(f"删除索引 '{name}' 未被集群确认")
        logger.info(f"索引 '{name}' 删除成功")

    def update_aliases(self, actions: Sequence[AliasAction]) -> None:
        if not actions:
            raise ValueError("actions 不能为空")

        body = {"actions": [action.to_dict() for action in actions]}
        description = ", ".join(
            f"{a.action.value} {a.alias} -> {a.index}" for a in actions
        )
        try:
            response = self.es_client.indices.update_aliases(body=body)
        except ApiError as e:
            raise _to_request_error(e, f"更新别名 [{description}]") from e
        except TransportError as e:
            raise ClusterRequestError(
                f"更新别名 [{description}] 时连接失败: {str(e)}"
            ) from e

        if not _response_body(response).get("acknowledged", False):
            raise ClusterRequestError(f"更新别名 [{description}] 未被集群确认")
        logger.info(f"别名更新成功: [{description}]")

    def submit_reindex(self, spec: ReindexSpec) -> ReindexSubmission:
        try:
            response = self.es_client.reindex(body=spec.to_body(), **spec.to_params())
        except NotFoundError as e:
            raise ClusterRequestError(
                f"源索引 '{spec.source_index}' 不存在", status_code=404
            ) from e
        except ApiError as e:
            raise _to_request_error(
                e, f"重建索引 '{spec.source_index}' 到 '{spec.destination_index}'"
            ) from e
        except TransportError as e:
            raise ClusterRequestError(
                f"重建索引 '{spec.source_index}' 到 '{spec.destination_index}' "
                f"时连接失败: {str(e)}"
            ) from e

        body = _response_body(response)
        if spec.wait_for_completion:
            logger.info(
                f"索引 '{spec.source_index}' 重建到 '{spec.destination_index}' 完成: "
                f"total={body.get('total', 0)}, "
                f"created={body.get('created', 0)}, "
                f"updated={body.get('updated', 0)}"
            )
            return ReindexSubmission(result=body)

        task_id = body.get("task")
        if not task_id:
            raise ClusterRequestError("异步重建索引响应中缺少任务 ID")
        logger.info(
            f"索引 '{spec.source_index}' 重建到 '{spec.destination_index}' 已提交，"
            f"任务ID: {task_id}"
        )
        return ReindexSubmission(task=TaskHandle(str(task_id)))

    def get_task_status(self, handle: TaskHandle) -> dict[str, Any]:
        try:
            response = self.es_client.tasks.get(task_id=handle.task_id)
        except ApiError as e:
            raise _to_request_error(e, f"获取任务 '{handle}' 状态") from e
        except TransportError as e:
            raise TransientClusterError(
                f"获取任务 '{handle}' 状态时连接失败: {str(e)}"
            ) from e
        return _response_body(response)
