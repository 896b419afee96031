"""别名切换核心工具类."""

import logging

from ..gateway import AliasAction, ClusterGateway, GatewayError
from .exceptions import CutoverError
from .models import CutoverResult

logger = logging.getLogger(__name__)

TEMP_ALIAS_SUFFIX = "_temp"


class AliasCutover:
    """别名切换协议.

    原子性完全依赖集群的批量别名更新接口，客户端不做任何事务保证。

    Args:
        gateway: 集群网关
    """

    def __init__(self, gateway: ClusterGateway):
        self.gateway = gateway

    def swap_alias(self, old_index: str, new_index: str, alias_name: str) -> CutoverResult:
        """原子地把别名从旧索引切换到新索引.

        remove 与 add 两个动作在同一次 _aliases 请求中提交，集群要么全部应用，要么全部不应用。

        Args:
            old_index: 别名当前指向的旧索引
            new_index: 新索引
            alias_name: 别名名称

        Returns:
            切换结果

        Raises:
            CutoverError: 集群拒绝批量更新时抛出，此时别名仍指向旧索引
        """
        try:
            self.gateway.update_aliases(
                [
                    AliasAction.remove(old_index, alias_name),
                    AliasAction.add(new_index, alias_name),
                ]
            )
        except GatewayError as e:
            raise CutoverError(
                f"别名 '{alias_name}' 从 '{old_index}' 切换到 '{new_index}' 失败: {str(e)}",
                cutover_step=1,
                indices=[old_index, new_index],
            ) from e

        logger.info(f"别名 '{alias_name}' 已原子切换: '{old_index}' -> '{new_index}'")
        return CutoverResult(
            alias_name=alias_name,
            new_index=new_index,
            replaced_indices=[old_index],
        )

    def replace_concrete_index_with_alias(
        self, old_concrete_index: str, new_index: str, final_alias_name: str
    ) -> CutoverResult:
        """把具体索引替换为指向新索引的同名别名.

        集群不允许同一个名称同时是具体索引和别名，因此分四步执行:

        1. 创建临时别名 "{final_alias_name}_temp" -> new_index
        2. 删除旧的具体索引
        3. 创建别名 final_alias_name -> new_index
        4. 删除临时别名

        第 1-3 步失败为致命错误。第 2 步之前失败时旧数据完好，可以安全重试；
        第 2 步完成到第 3 步完成之间，原名称短暂无法解析，这是已知的短暂不可用窗口。
        第 4 步失败只产生警告，临时别名会被保留并记录在结果中。

        Args:
            old_concrete_index: 旧的具体索引（与最终别名同名）
            new_index: 新索引
            final_alias_name: 最终别名名称

        Returns:
            切换结果

        Raises:
            CutoverError: 第 1-3 步失败时抛出
        """
        temp_alias = f"{final_alias_name}{TEMP_ALIAS_SUFFIX}"

        logger.info(f"创建临时别名 '{temp_alias}' 指向 '{new_index}'")
        try:
            self.gateway.update_aliases([AliasAction.add(new_index, temp_alias)])
        except GatewayError as e:
            raise CutoverError(
                f"创建临时别名 '{temp_alias}' 失败: {str(e)}",
                cutover_step=1,
                indices=[new_index],
            ) from e

        logger.info(f"删除原具体索引 '{old_concrete_index}'")
        logger.warning(
            f"'{final_alias_name}' 在别名创建完成前将短暂不可用，"
            f"期间可通过临时别名 '{temp_alias}' 访问新索引"
        )
        try:
            self.gateway.delete_index(old_concrete_index)
        except GatewayError as e:
            raise CutoverError(
                f"删除原索引 '{old_concrete_index}' 失败: {str(e)}",
                cutover_step=2,
                indices=[old_concrete_index, new_index],
                target_unavailable=True,
            ) from e

        logger.info(f"创建别名 '{final_alias_name}' 指向 '{new_index}'")
        try:
            self.gateway.update_aliases([AliasAction.add(new_index, final_alias_name)])
        except GatewayError as e:
            raise CutoverError(
                f"原索引 '{old_concrete_index}' 已删除，但创建别名 '{final_alias_name}' "
                f"失败，该名称当前不可用，新数据位于 '{new_index}'"
                f"（临时别名 '{temp_alias}'）: {str(e)}",
                cutover_step=3,
                indices=[new_index],
                target_unavailable=True,
            ) from e

        result = CutoverResult(
            alias_name=final_alias_name,
            new_index=new_index,
            replaced_indices=[old_concrete_index],
        )

        logger.info(f"删除临时别名 '{temp_alias}'")
        try:
            self.gateway.update_aliases([AliasAction.remove(new_index, temp_alias)])
        except GatewayError as e:
            warning = f"删除临时别名 '{temp_alias}' 失败，请稍后手动清理: {str(e)}"
            logger.warning(warning)
            result.leaked_aliases.append(temp_alias)
            result.warnings.append(warning)

        logger.info(f"具体索引 '{old_concrete_index}' 已替换为指向 '{new_index}' 的别名")
        return result
