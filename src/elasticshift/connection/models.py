"""ES 连接配置数据模型定义模块."""

from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from typing import Any

from ..config import parse_bool, parse_list, resolve_layers
from .exceptions import ConnectionConfigError

# 与 ES 官方客户端一致的默认重试状态码
DEFAULT_RETRY_ON_STATUS = (429, 502, 503, 504)

_ENV_NAMES = {
    "hosts": "ES_HOSTS",
    "username": "ES_USERNAME",
    "password": "ES_PASSWORD",
    "api_key": "ES_API_KEY",
    "bearer_token": "ES_BEARER_TOKEN",
    "ca_certs": "ES_CA_CERTS",
    "verify_certs": "ES_VERIFY_CERTS",
    "request_timeout": "ES_REQUEST_TIMEOUT",
    "max_retries": "ES_MAX_RETRIES",
}

_CONVERTERS = {
    "hosts": parse_list,
    "verify_certs": parse_bool,
    "request_timeout": float,
    "max_retries": int,
}


@dataclass
class ConnectionSettings:
    """集群连接配置模型.

    一次迁移只面向一个集群，因此这里只描述单个集群的地址、认证和重试策略。

    Attributes:
        hosts: ES 节点地址列表（必需，不可为空）
        username: Basic Auth 用户名
        password: Basic Auth 密码
        api_key: API Key 认证
        bearer_token: Bearer Token 认证
        ca_certs: CA 证书文件路径
        verify_certs: 是否验证 SSL 证书，默认 True
        request_timeout: 单次请求超时时间（秒），默认 30
        max_retries: 客户端层面的最大重试次数，默认 3
        retry_on_status: 需要客户端自动重试的 HTTP 状态码
        retry_on_timeout: 超时是否重试，默认 True

    Raises:
        ConnectionConfigError: 当参数不合法时抛出

    Examples:
        >>> settings = ConnectionSettings(
        ...     hosts=["http://localhost:9200"],
        ...     username="elastic",
        ...     password="changeme",
        ... )
    """

    hosts: list[str] = field(default_factory=lambda: ["http://localhost:9200"])
    username: str | None = None
    password: str | None = None
    api_key: str | None = None
    bearer_token: str | None = None
    ca_certs: str | None = None
    verify_certs: bool = True
    request_timeout: float = 30
    max_retries: int = 3
    retry_on_status: tuple[int, ...] = DEFAULT_RETRY_ON_STATUS
    retry_on_timeout: bool = True

    def __post_init__(self) -> None:
        """校验连接配置参数合法性."""
        if not self.hosts:
            raise ConnectionConfigError("hosts 不能为空，请提供至少一个 ES 节点地址")
        if self.request_timeout < 0:
            raise ConnectionConfigError(
                f"request_timeout 必须 >= 0，当前值: {self.request_timeout}"
            )
        if self.max_retries < 0:
            raise ConnectionConfigError(
                f"max_retries 必须 >= 0，当前值: {self.max_retries}"
            )
        if bool(self.username) != bool(self.password):
            raise ConnectionConfigError("username 和 password 必须同时提供")

    @classmethod
    def from_sources(
        cls,
        explicit: Mapping[str, Any] | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> "ConnectionSettings":
        """按 flag > 环境变量 > 默认值 的顺序构建连接配置.

        Args:
            explicit: 显式指定的配置项，值为 None 表示未指定
            environ: 环境变量来源，默认为 os.environ

        Returns:
            连接配置实例
        """
        defaults = {f.name: getattr(cls(), f.name) for f in fields(cls)}
        resolved = resolve_layers(
            explicit,
            defaults,
            env_names=_ENV_NAMES,
            converters=_CONVERTERS,
            environ=environ,
        )
        return cls(**resolved)
