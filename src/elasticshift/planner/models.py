"""迁移规划数据模型定义模块."""

from dataclasses import dataclass
from enum import Enum


class PlanKind(Enum):
    """迁移规划结果类型枚举.

    Attributes:
        IN_PLACE_SUCCEEDED: 原地更新成功，无需重建索引
        IN_PLACE_FAILED_FALLBACK_TO_REINDEX: 原地更新失败，改走重建索引
        REINDEX_FORCED_BY_ALIAS_REQUIREMENT: 原地更新成功，但目标是具体索引且要求必须为别名
        REINDEX_DISALLOWED_AND_IN_PLACE_FAILED: 原地更新失败且不允许重建索引（终止）
    """

    IN_PLACE_SUCCEEDED = "in_place_succeeded"
    IN_PLACE_FAILED_FALLBACK_TO_REINDEX = "in_place_failed_fallback_to_reindex"
    REINDEX_FORCED_BY_ALIAS_REQUIREMENT = "reindex_forced_by_alias_requirement"
    REINDEX_DISALLOWED_AND_IN_PLACE_FAILED = "reindex_disallowed_and_in_place_failed"


@dataclass(frozen=True)
class MigrationPlan:
    """迁移规划结果.

    Attributes:
        kind: 规划类型
        in_place_error: 原地更新失败时的异常（成功时为 None）
    """

    kind: PlanKind
    in_place_error: Exception | None = None

    @property
    def requires_reindex(self) -> bool:
        """是否需要走重建索引路径."""
        return self.kind in (
            PlanKind.IN_PLACE_FAILED_FALLBACK_TO_REINDEX,
            PlanKind.REINDEX_FORCED_BY_ALIAS_REQUIREMENT,
        )

    @property
    def is_refusal(self) -> bool:
        """是否为终止性的拒绝结果."""
        return self.kind == PlanKind.REINDEX_DISALLOWED_AND_IN_PLACE_FAILED
