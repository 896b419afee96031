"""别名切换数据模型定义模块."""

from dataclasses import dataclass, field


@dataclass
class CutoverResult:
    """别名切换结果数据类.

    Attributes:
        alias_name: 最终别名名称
        new_index: 别名指向的新索引
        replaced_indices: 切换前别名指向（或被别名替换掉）的索引
        leaked_aliases: 未能清理的临时别名，需要人工或稍后清理
        warnings: 非致命警告信息
    """

    alias_name: str
    new_index: str
    replaced_indices: list[str] = field(default_factory=list)
    leaked_aliases: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
