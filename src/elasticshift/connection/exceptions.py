"""ES 连接层异常定义模块."""

from ..exceptions import ConfigurationError, ElasticShiftError


class ConnectionConfigError(ConfigurationError):
    """连接配置校验异常.

    当连接配置参数不合法时抛出，例如 hosts 为空、request_timeout 为负数等。
    """

    pass


class HealthCheckError(ElasticShiftError):
    """健康检查异常.

    当集群不可达或健康状态为 red 时由 ensure_healthy 抛出。
    """

    pass
