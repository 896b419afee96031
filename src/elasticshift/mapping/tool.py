"""映射文档加载与规范化工具.

映射文件通常来自三种来源，规范化后统一为"裸映射"结构:

1. 直接的映射定义（推荐）::

    {"_meta": {"version": "1.2.3"}, "properties": {"name": {"type": "keyword"}}}

2. GET /index/_mapping 的输出（索引名作为顶层键）::

    {"products": {"mappings": {"properties": {...}}}}

3. 以 "mappings" 作为顶层键::

    {"mappings": {"properties": {...}}}
"""

import copy
import json
import logging
from pathlib import Path
from typing import Any

import yaml

from .exceptions import MappingFileError

logger = logging.getLogger(__name__)

# 出现任一键即视为裸映射
BARE_MAPPING_KEYS = ("properties", "_meta", "dynamic", "dynamic_templates")


def normalize_mapping(
    raw: dict[str, Any], index_name: str | None = None
) -> dict[str, Any]:
    """把映射文档规范化为裸映射结构.

    纯函数：不访问集群，不修改入参，返回深拷贝。对已规范化的结果再次调用
    会原样返回（幂等）。

    Args:
        raw: 原始映射文档
        index_name: 目标索引名称，用于识别 {index_name: {mappings: ...}} 结构

    Returns:
        裸映射字典

    Raises:
        MappingFileError: 映射文档不是 JSON 对象时抛出

    Example:
        >>> normalize_mapping({"mappings": {"properties": {"a": {"type": "keyword"}}}})
        {'properties': {'a': {'type': 'keyword'}}}
    """
    if not isinstance(raw, dict):
        raise MappingFileError(f"映射文档必须是 JSON 对象，实际类型: {type(raw).__name__}")

    if any(key in raw for key in BARE_MAPPING_KEYS):
        return copy.deepcopy(raw)

    # {index_name: {"mappings": {...}}}
    if index_name and isinstance(raw.get(index_name), dict):
        inner = raw[index_name].get("mappings")
        if isinstance(inner, dict):
            logger.debug(f"从 {{{index_name}: {{mappings: ...}}}} 结构中提取映射")
            return copy.deepcopy(inner)

    # 单个任意键包裹 {"mappings": {...}}，例如 GET /_mapping/other_index 的输出
    if len(raw) == 1:
        (value,) = raw.values()
        if isinstance(value, dict) and isinstance(value.get("mappings"), dict):
            logger.debug("从 {<索引名>: {mappings: ...}} 结构中提取映射")
            return copy.deepcopy(value["mappings"])

    if isinstance(raw.get("mappings"), dict):
        logger.debug("从 {mappings: ...} 结构中提取映射")
        return copy.deepcopy(raw["mappings"])

    if raw:
        logger.warning("无法识别映射文档结构，按裸映射处理，交由集群校验")
    return copy.deepcopy(raw)


def load_document_file(path: str | Path) -> dict[str, Any]:
    """读取 JSON 或 YAML 文档文件（映射、查询、脚本、索引设置等）.

    .json 按 JSON 解析，.yaml/.yml 按 YAML 解析，其他后缀先尝试 JSON 再尝试 YAML。

    Args:
        path: 文件路径

    Returns:
        文档字典

    Raises:
        MappingFileError: 文件无法读取、无法解析或顶层不是对象时抛出
    """
    path = Path(path)
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise MappingFileError(f"无法读取文件 '{path}': {str(e)}") from e

    suffix = path.suffix.lower()
    try:
        if suffix == ".json":
            data = json.loads(content)
        elif suffix in (".yaml", ".yml"):
            data = yaml.safe_load(content)
        else:
            try:
                data = json.loads(content)
            except json.JSONDecodeError:
                data = yaml.safe_load(content)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise MappingFileError(f"文件 '{path}' 解析失败: {str(e)}") from e

    if not isinstance(data, dict):
        raise MappingFileError(f"文件 '{path}' 的顶层必须是对象")
    return data


def load_mapping_file(path: str | Path) -> dict[str, Any]:
    """读取映射文件，返回原始文档，不做规范化."""
    logger.debug(f"读取映射文件: {path}")
    return load_document_file(path)
