"""迁移规划模块.

决定一次映射变更能否原地完成，还是需要基于重建索引的零停机迁移。
"""

from .exceptions import AliasLookupError, PlanningRefusedError
from .models import MigrationPlan, PlanKind
from .tool import MigrationPlanner, decide_plan, resolve_is_alias

__all__ = [
    "MigrationPlanner",
    "decide_plan",
    "resolve_is_alias",
    "MigrationPlan",
    "PlanKind",
    "PlanningRefusedError",
    "AliasLookupError",
]
