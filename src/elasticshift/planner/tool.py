"""迁移规划核心工具类."""

import logging
from typing import Any

from ..gateway import AliasLookupStatus, ClusterGateway, GatewayError
from ..mapping import normalize_mapping
from .exceptions import AliasLookupError
from .models import MigrationPlan, PlanKind

logger = logging.getLogger(__name__)


def resolve_is_alias(gateway: ClusterGateway, name: str) -> bool:
    """判断名称当前是否为别名.

    Args:
        gateway: 集群网关
        name: 索引或别名名称

    Returns:
        找到别名返回 True，集群明确回答不存在返回 False

    Raises:
        AliasLookupError: 查询本身出错时抛出
    """
    lookup = gateway.get_alias(name)
    if lookup.status == AliasLookupStatus.ERROR:
        raise AliasLookupError(f"检查 '{name}' 是否为别名失败: {lookup.cause}")
    return lookup.status == AliasLookupStatus.FOUND


def decide_plan(
    in_place_error: Exception | None,
    force_alias: bool,
    zero_downtime_allowed: bool,
    is_alias: bool | None = None,
) -> MigrationPlan:
    """根据原地更新结果和调用方要求得出迁移规划.

    纯函数：相同输入总是得到相同的规划类型。

    Args:
        in_place_error: 原地更新失败的异常，成功时为 None
        force_alias: 是否要求迁移后目标名称必须是别名
        zero_downtime_allowed: 是否允许走重建索引路径
        is_alias: 目标当前是否为别名，仅在原地更新成功且 force_alias 为 True 时需要

    Returns:
        迁移规划

    Raises:
        ValueError: 需要 is_alias 但未提供时抛出
    """
    if in_place_error is None:
        if not force_alias:
            return MigrationPlan(PlanKind.IN_PLACE_SUCCEEDED)
        if is_alias is None:
            raise ValueError("force_alias 为 True 时必须提供 is_alias")
        if is_alias:
            return MigrationPlan(PlanKind.IN_PLACE_SUCCEEDED)
        # 具体索引 + force_alias 会覆盖 zero_downtime_allowed=False
        return MigrationPlan(PlanKind.REINDEX_FORCED_BY_ALIAS_REQUIREMENT)

    if not zero_downtime_allowed:
        return MigrationPlan(
            PlanKind.REINDEX_DISALLOWED_AND_IN_PLACE_FAILED,
            in_place_error=in_place_error,
        )
    return MigrationPlan(
        PlanKind.IN_PLACE_FAILED_FALLBACK_TO_REINDEX,
        in_place_error=in_place_error,
    )


class MigrationPlanner:
    """迁移规划器.

    先尝试一次原地映射更新，再结合 force_alias 与 zero_downtime_allowed 做出决定。
    注意：即使最终规划为重建索引，原地更新也可能已经写入成功。

    Args:
        gateway: 集群网关

    Example:
        >>> planner = MigrationPlanner(gateway)
        >>> plan = planner.plan("products", mapping, force_alias=True)
        >>> if plan.requires_reindex:
        ...     print("需要重建索引")
    """

    def __init__(self, gateway: ClusterGateway):
        self.gateway = gateway

    def plan(
        self,
        target: str,
        desired_mapping: dict[str, Any],
        force_alias: bool = False,
        zero_downtime_allowed: bool = True,
        write_index_only: bool = False,
    ) -> MigrationPlan:
        """为目标生成迁移规划.

        Args:
            target: 目标名称（别名或具体索引）
            desired_mapping: 期望的映射（任意支持的包裹结构）
            force_alias: 是否要求迁移后目标名称必须是别名
            zero_downtime_allowed: 是否允许走重建索引路径
            write_index_only: 原地更新时是否只作用于写索引

        Returns:
            迁移规划

        Raises:
            AliasLookupError: force_alias 检查时别名查询出错
        """
        mapping = normalize_mapping(desired_mapping, index_name=target)

        in_place_error: Exception | None = None
        try:
            self.gateway.put_mapping(target, mapping, write_index_only=write_index_only)
        except GatewayError as e:
            in_place_error = e
            logger.warning(f"索引 '{target}' 原地更新映射失败: {str(e)}")

        is_alias: bool | None = None
        if in_place_error is None and force_alias:
            is_alias = resolve_is_alias(self.gateway, target)

        plan = decide_plan(
            in_place_error,
            force_alias=force_alias,
            zero_downtime_allowed=zero_downtime_allowed,
            is_alias=is_alias,
        )
        logger.info(f"索引 '{target}' 迁移规划: {plan.kind.value}")
        return plan
