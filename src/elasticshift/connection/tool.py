"""ES 客户端工厂工具模块.

提供 ESClientFactory 类，根据 ConnectionSettings 创建 Elasticsearch 客户端，
负责客户端的惰性创建、缓存、关闭以及健康检查。

使用示例:
    from elasticshift.connection import ConnectionSettings, ESClientFactory

    with ESClientFactory(ConnectionSettings()) as factory:
        client = factory.get_client()
"""

from __future__ import annotations

import logging
from typing import Any

from elasticsearch import Elasticsearch

from .exceptions import HealthCheckError
from .models import ConnectionSettings

logger = logging.getLogger(__name__)


class ESClientFactory:
    """Elasticsearch 客户端工厂.

    Attributes:
        _settings: 连接配置
        _client: 已缓存的客户端（惰性创建）

    Examples:
        >>> factory = ESClientFactory(ConnectionSettings(hosts=["http://es:9200"]))
        >>> client = factory.get_client()
    """

    def __init__(self, settings: ConnectionSettings | None = None) -> None:
        """初始化客户端工厂.

        Args:
            settings: 连接配置，默认使用 ConnectionSettings 的默认值
        """
        self._settings = settings or ConnectionSettings()
        self._client: Elasticsearch | None = None

    @property
    def settings(self) -> ConnectionSettings:
        """当前连接配置."""
        return self._settings

    def _create_client(self) -> Elasticsearch:
        """根据连接配置创建 Elasticsearch 客户端实例.

        根据认证方式（Basic Auth / API Key / Bearer Token / 无认证）
        和 SSL 配置构建客户端。
        """
        settings = self._settings
        kwargs: dict[str, Any] = {
            "hosts": list(settings.hosts),
            "max_retries": settings.max_retries,
            "retry_on_status": list(settings.retry_on_status),
            "retry_on_timeout": settings.retry_on_timeout,
            "request_timeout": settings.request_timeout,
        }

        # Basic Auth 认证
        if settings.username and settings.password:
            kwargs["basic_auth"] = (settings.username, settings.password)

        # API Key 认证
        if settings.api_key:
            kwargs["api_key"] = settings.api_key

        # Bearer Token 认证
        if settings.bearer_token:
            kwargs["bearer_auth"] = settings.bearer_token

        # SSL/TLS 配置
        if settings.ca_certs:
            kwargs["ca_certs"] = settings.ca_certs
        kwargs["verify_certs"] = settings.verify_certs

        logger.info(f"创建 Elasticsearch 客户端: hosts={settings.hosts}")
        return Elasticsearch(**kwargs)

    def get_client(self) -> Elasticsearch:
        """获取客户端，首次调用时创建并缓存.

        Returns:
            Elasticsearch 客户端实例
        """
        if self._client is None:
            self._client = self._create_client()
        return self._client

    # ============================================================
    # 生命周期管理
    # ============================================================

    def __enter__(self) -> ESClientFactory:
        """上下文管理器入口."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """上下文管理器退出，自动关闭客户端."""
        self.close()

    def close(self) -> None:
        """关闭已创建的客户端连接并清空缓存.

        关闭后可重新调用 get_client() 创建新的客户端。
        """
        if self._client is None:
            return
        try:
            self._client.close()
        except Exception as e:
            logger.warning(f"关闭 Elasticsearch 客户端失败: {str(e)}")
        self._client = None

    # ============================================================
    # 健康检查
    # ============================================================

    def health_check(self) -> dict[str, Any]:
        """检查集群健康状态.

        Returns:
            包含 cluster_name、status、number_of_nodes 的字典。
            集群不可达时 status 为 "unreachable" 并附带 error 字段。
        """
        try:
            health = self.get_client().cluster.health()
            return {
                "cluster_name": health.get("cluster_name", "unknown"),
                "status": health.get("status", "unknown"),
                "number_of_nodes": health.get("number_of_nodes", 0),
            }
        except Exception as e:
            return {
                "cluster_name": "unknown",
                "status": "unreachable",
                "error": str(e),
            }

    def ensure_healthy(self) -> dict[str, Any]:
        """确认集群可用（green 或 yellow），否则抛出异常.

        Returns:
            健康信息字典

        Raises:
            HealthCheckError: 集群不可达或状态为 red 时抛出
        """
        health = self.health_check()
        if health.get("status") not in ("green", "yellow"):
            raise HealthCheckError(
                f"集群不可用: status={health.get('status')}, "
                f"error={health.get('error', '')}"
            )
        return health
