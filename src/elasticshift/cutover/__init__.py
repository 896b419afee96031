"""别名切换模块.

提供两种切换方式:
    - swap_alias: 一次原子批量更新，把别名从旧索引移到新索引
    - replace_concrete_index_with_alias: 把具体索引替换为同名别名（四步，非原子）
"""

from .exceptions import CutoverError
from .models import CutoverResult
from .tool import TEMP_ALIAS_SUFFIX, AliasCutover

__all__ = [
    "AliasCutover",
    "TEMP_ALIAS_SUFFIX",
    "CutoverResult",
    "CutoverError",
]
