"""映射文档加载与规范化模块.

示例用法:
    >>> from elasticshift.mapping import load_mapping_file, normalize_mapping
    >>> raw = load_mapping_file("mappings.yaml")
    >>> mapping = normalize_mapping(raw, index_name="products")
"""

from .exceptions import MappingFileError
from .tool import load_document_file, load_mapping_file, normalize_mapping

__all__ = [
    "load_document_file",
    "load_mapping_file",
    "normalize_mapping",
    "MappingFileError",
]
