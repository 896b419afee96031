"""迁移编排异常定义模块."""

from ..exceptions import MigrationError


class TargetNotFoundError(MigrationError):
    """迁移目标（索引或别名）不存在."""

    def __init__(self, message: str):
        super().__init__(message, step="existence_check")


class OperationCancelledError(MigrationError):
    """操作被取消.

    在确认环节取消时 step 为 "confirm"，此时没有发起任何集群调用；
    运行中通过取消信号停止时 step 为下一个未执行的步骤，已完成的步骤不会回滚。
    """

    def __init__(self, message: str, step: str = "confirm"):
        super().__init__(message, step=step)


class MigrationStepError(MigrationError):
    """迁移中某个集群步骤被拒绝（解析源索引、创建目标索引、提交重建索引等）.

    Attributes:
        index: 相关索引名称
    """

    def __init__(self, message: str, step: str, index: str | None = None):
        super().__init__(message, step=step)
        self.index = index


class DocumentFailuresError(MigrationError):
    """重建索引已完成，但存在文档级失败.

    已创建并部分写入的目标索引不会回滚。

    Attributes:
        count: 文档失败数
        index: 目标索引名称
    """

    def __init__(self, message: str, count: int, index: str | None = None):
        super().__init__(message, step="reindex")
        self.count = count
        self.index = index


class MigrationTimeoutError(MigrationError):
    """在两个步骤之间超过了整体截止时间.

    已完成的步骤（例如已创建的目标索引）不会回滚。
    """

    pass
