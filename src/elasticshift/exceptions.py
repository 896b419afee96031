"""elasticshift 异常定义模块."""


class ElasticShiftError(Exception):
    """elasticshift 基础异常类."""

    pass


class ConfigurationError(ElasticShiftError):
    """配置异常.

    在发起任何集群调用之前即可发现的错误，例如映射文件无法解析、连接参数不合法。
    """

    pass


class MigrationError(ElasticShiftError):
    """迁移过程异常基类.

    MigrationOutcome.error 中出现的异常都继承自此类。

    Attributes:
        step: 出错的步骤名称（可选）
    """

    def __init__(self, message: str, step: str | None = None):
        super().__init__(message)
        self.step = step
