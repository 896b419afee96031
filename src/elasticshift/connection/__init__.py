"""ES 连接层模块 - 解析连接配置并创建 Elasticsearch 客户端.

主要组件:
    - ConnectionSettings: 连接配置模型（flag > 环境变量 > 默认值）
    - ESClientFactory: 客户端工厂，负责创建、缓存、关闭客户端以及健康检查

使用示例:
    from elasticshift.connection import ConnectionSettings, ESClientFactory

    settings = ConnectionSettings.from_sources({"hosts": ["http://localhost:9200"]})
    with ESClientFactory(settings) as factory:
        client = factory.get_client()
"""

from .exceptions import ConnectionConfigError, HealthCheckError
from .models import ConnectionSettings
from .tool import ESClientFactory

__all__ = [
    # 工厂
    "ESClientFactory",
    # 模型
    "ConnectionSettings",
    # 异常
    "ConnectionConfigError",
    "HealthCheckError",
]
