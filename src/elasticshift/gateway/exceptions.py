"""集群网关异常定义模块."""

from ..exceptions import ElasticShiftError


class GatewayError(ElasticShiftError):
    """集群网关基础异常类."""

    pass


class ClusterRequestError(GatewayError):
    """集群拒绝请求异常.

    集群返回了错误响应（如字段类型不兼容、索引已存在、别名更新被拒绝）。

    Attributes:
        status_code: HTTP 状态码（可选）
        error_type: 集群返回的错误类型（可选）
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_type: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.error_type = error_type


class TransientClusterError(GatewayError):
    """可重试的集群异常.

    网络或传输层故障，请求可能根本没有到达集群，下一次轮询时重试即可。
    """

    pass
