"""迁移规划异常定义模块."""

from ..exceptions import MigrationError


class PlanningRefusedError(MigrationError):
    """规划拒绝异常.

    原地映射更新失败且不允许零停机重建索引。除被拒绝的映射写入外，集群没有任何变化。

    Attributes:
        cause: 原地更新失败的原始异常
    """

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message, step="planning")
        self.cause = cause


class AliasLookupError(MigrationError):
    """别名查询失败异常.

    查询别名时集群返回了既不是"找到"也不是"不存在"的错误，不能当作"不是别名"处理。
    """

    pass
