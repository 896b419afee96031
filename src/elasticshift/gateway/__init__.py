"""集群网关模块.

迁移引擎只通过 ClusterGateway 接口访问集群：存在性检查、映射读写、索引创建与删除、
别名查询与原子批量更新、重建索引提交和任务状态轮询。

示例用法:
    >>> from elasticshift.gateway import ElasticsearchGateway
    >>> gateway = ElasticsearchGateway(es_client)
    >>> gateway.index_exists("products")
"""

from .exceptions import ClusterRequestError, GatewayError, TransientClusterError
from .models import (
    AliasAction,
    AliasActionType,
    AliasBinding,
    AliasLookup,
    AliasLookupStatus,
    ReindexSpec,
    ReindexSubmission,
    TaskHandle,
)
from .tool import ClusterGateway, ElasticsearchGateway, validate_index_name

__all__ = [
    # 接口与实现
    "ClusterGateway",
    "ElasticsearchGateway",
    "validate_index_name",
    # 数据模型
    "AliasAction",
    "AliasActionType",
    "AliasBinding",
    "AliasLookup",
    "AliasLookupStatus",
    "ReindexSpec",
    "ReindexSubmission",
    "TaskHandle",
    # 异常类
    "GatewayError",
    "ClusterRequestError",
    "TransientClusterError",
]
