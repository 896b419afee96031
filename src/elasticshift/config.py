"""分层配置合并模块.

所有配置项都通过同一个有序合并函数得到最终值，优先级固定为：

    显式参数（命令行 flag） > 环境变量 > 默认值

调用方只需提供三层来源，不会在多处增量修改同一个配置对象。
"""

import logging
import os
from collections.abc import Callable, Mapping
from typing import Any

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def parse_bool(value: str) -> bool:
    """将环境变量字符串解析为布尔值.

    Args:
        value: 原始字符串（大小写不敏感）

    Returns:
        布尔值

    Raises:
        ValueError: 字符串无法识别时抛出
    """
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ValueError(f"无法解析布尔值: '{value}'")


def parse_list(value: str) -> list[str]:
    """将逗号分隔的字符串解析为列表，忽略空项."""
    return [item.strip() for item in value.split(",") if item.strip()]


def resolve_layers(
    explicit: Mapping[str, Any] | None,
    defaults: Mapping[str, Any],
    env_names: Mapping[str, str] | None = None,
    converters: Mapping[str, Callable[[str], Any]] | None = None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """按固定优先级合并配置.

    对 defaults 中的每个键依次检查：显式值（不为 None）、环境变量、默认值。
    不在 defaults 中的显式键视为非法配置。

    Args:
        explicit: 显式传入的配置（值为 None 表示未指定）
        defaults: 默认值，同时定义了合法的配置键集合
        env_names: 配置键到环境变量名的映射
        converters: 配置键到环境变量转换函数的映射，未指定时保留字符串
        environ: 环境变量来源，默认为 os.environ

    Returns:
        合并后的配置字典

    Raises:
        ConfigurationError: 出现未知配置键或环境变量无法转换时抛出

    Example:
        >>> resolve_layers(
        ...     {"batch_size": None},
        ...     {"batch_size": 1000},
        ...     env_names={"batch_size": "ELASTICSHIFT_BATCH_SIZE"},
        ...     converters={"batch_size": int},
        ...     environ={"ELASTICSHIFT_BATCH_SIZE": "500"},
        ... )
        {'batch_size': 500}
    """
    explicit = explicit or {}
    env_names = env_names or {}
    converters = converters or {}
    environ = os.environ if environ is None else environ

    unknown = set(explicit) - set(defaults)
    if unknown:
        raise ConfigurationError(f"未知的配置项: {sorted(unknown)}")

    resolved: dict[str, Any] = {}
    for key, default in defaults.items():
        value = explicit.get(key)
        if value is not None:
            resolved[key] = value
            continue

        env_name = env_names.get(key)
        raw = environ.get(env_name) if env_name else None
        if raw is not None and raw != "":
            converter = converters.get(key, str)
            try:
                resolved[key] = converter(raw)
            except (TypeError, ValueError) as e:
                raise ConfigurationError(
                    f"环境变量 {env_name}='{raw}' 无法解析: {str(e)}"
                ) from e
            logger.debug(f"配置项 '{key}' 取自环境变量 {env_name}")
            continue

        resolved[key] = default

    return resolved
