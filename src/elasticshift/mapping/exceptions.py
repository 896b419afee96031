"""映射文件异常定义模块."""

from ..exceptions import ConfigurationError


class MappingFileError(ConfigurationError):
    """映射文件无法读取或解析异常."""

    pass
