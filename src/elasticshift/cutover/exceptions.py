"""别名切换异常定义模块."""

from ..exceptions import MigrationError


class CutoverError(MigrationError):
    """别名切换致命异常.

    Attributes:
        cutover_step: 失败的步骤序号（原子切换为 1，具体索引替换为 1-3）
        indices: 相关索引名称
        target_unavailable: 失败时原名称是否已无法解析（旧索引已删除、新别名尚未创建）
    """

    def __init__(
        self,
        message: str,
        cutover_step: int,
        indices: list[str] | None = None,
        target_unavailable: bool = False,
    ):
        super().__init__(message, step="cutover")
        self.cutover_step = cutover_step
        self.indices = indices or []
        self.target_unavailable = target_unavailable

    @property
    def retryable(self) -> bool:
        """失败发生在删除旧索引之前时，旧数据完好，可以安全重试."""
        return not self.target_unavailable
