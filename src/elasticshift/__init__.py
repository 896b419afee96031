"""elasticshift - Elasticsearch/OpenSearch 零停机映射迁移与长任务编排工具.

主要功能:
    - MigrationPlanner: 判断原地更新映射是否足够，还是需要重建索引
    - AliasCutover: 基于别名的原子切换（以及具体索引替换为别名的四步流程）
    - TaskMonitor: 提交重建索引并轮询任务状态，流式输出进度和文档级失败
    - MigrationOrchestrator: 按顺序编排以上步骤，返回唯一的迁移结果

使用示例:
    from elasticshift import (
        ConnectionSettings,
        ESClientFactory,
        ElasticsearchGateway,
        MigrationOptions,
        MigrationOrchestrator,
    )

    with ESClientFactory(ConnectionSettings.from_sources()) as factory:
        gateway = ElasticsearchGateway(factory.get_client())
        outcome = MigrationOrchestrator(gateway).migrate(
            "products", mapping, MigrationOptions(force_alias=True)
        )
"""

__version__ = "0.1.0"

# 导出连接与网关
from elasticshift.connection import ConnectionSettings, ESClientFactory
from elasticshift.gateway import ClusterGateway, ElasticsearchGateway, ReindexSpec, TaskHandle

# 导出核心组件
from elasticshift.cutover import AliasCutover
from elasticshift.mapping import load_mapping_file, normalize_mapping
from elasticshift.migration import (
    MigrationOptions,
    MigrationOrchestrator,
    MigrationOutcome,
    MigrationState,
    ReindexJob,
)
from elasticshift.planner import MigrationPlan, MigrationPlanner, PlanKind
from elasticshift.tasks import ProgressRecord, TaskMonitor

# 导出异常
from elasticshift.exceptions import ConfigurationError, ElasticShiftError, MigrationError

__all__ = [
    # 版本
    "__version__",
    # 连接与网关
    "ConnectionSettings",
    "ESClientFactory",
    "ClusterGateway",
    "ElasticsearchGateway",
    "ReindexSpec",
    "TaskHandle",
    # 核心组件
    "MigrationPlanner",
    "MigrationPlan",
    "PlanKind",
    "AliasCutover",
    "TaskMonitor",
    "ProgressRecord",
    "MigrationOrchestrator",
    "MigrationOptions",
    "MigrationOutcome",
    "MigrationState",
    "ReindexJob",
    "load_mapping_file",
    "normalize_mapping",
    # 异常
    "ElasticShiftError",
    "ConfigurationError",
    "MigrationError",
]
