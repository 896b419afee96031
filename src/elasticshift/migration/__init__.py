"""零停机映射迁移编排模块.

示例用法:
    >>> from elasticshift.migration import MigrationOrchestrator, MigrationOptions
    >>> orchestrator = MigrationOrchestrator(gateway)
    >>> outcome = orchestrator.migrate(
    ...     "products_alias",
    ...     mapping,
    ...     MigrationOptions(zero_downtime_allowed=True, delete_old_index=True),
    ... )
    >>> outcome.success, outcome.new_index
"""

from .exceptions import (
    DocumentFailuresError,
    MigrationStepError,
    MigrationTimeoutError,
    OperationCancelledError,
    TargetNotFoundError,
)
from .models import (
    MigrationOptions,
    MigrationOutcome,
    MigrationState,
    ReindexJobOutcome,
)
from .tool import (
    TIMESTAMP_FORMAT,
    MigrationOrchestrator,
    ReindexJob,
    timestamped_index_name,
)

__all__ = [
    # 核心类
    "MigrationOrchestrator",
    "ReindexJob",
    "timestamped_index_name",
    "TIMESTAMP_FORMAT",
    # 数据模型
    "MigrationOptions",
    "MigrationOutcome",
    "MigrationState",
    "ReindexJobOutcome",
    # 异常类
    "TargetNotFoundError",
    "OperationCancelledError",
    "MigrationStepError",
    "DocumentFailuresError",
    "MigrationTimeoutError",
]
