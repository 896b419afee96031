"""零停机映射迁移编排核心工具类."""

import logging
import threading
import time
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from ..cutover import AliasCutover, CutoverResult
from ..exceptions import ConfigurationError, MigrationError
from ..gateway import (
    AliasLookupStatus,
    ClusterGateway,
    GatewayError,
    ReindexSpec,
)
from ..mapping import normalize_mapping
from ..planner import AliasLookupError, MigrationPlanner, PlanKind, PlanningRefusedError
from ..tasks import ProgressRecord, ProgressSink, RecordKind, TaskMonitor, TaskResult
from .exceptions import (
    DocumentFailuresError,
    MigrationStepError,
    MigrationTimeoutError,
    OperationCancelledError,
    TargetNotFoundError,
)
from .models import MigrationOptions, MigrationOutcome, MigrationState, ReindexJobOutcome

logger = logging.getLogger(__name__)

# 新索引名称中的时间戳格式（UTC，秒级精度）
TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"


def timestamped_index_name(name: str, now: datetime) -> str:
    """生成带时间戳的新索引名称.

    同一目标在同一秒内启动的两次迁移会得到相同的名称，第二次创建索引时集群
    会返回 "already exists" 错误。

    Example:
        >>> timestamped_index_name("products", datetime(2024, 5, 1, 8, 30, tzinfo=UTC))
        'products_20240501083000'
    """
    return f"{name}_{now.astimezone(UTC).strftime(TIMESTAMP_FORMAT)}"


def _utc_now() -> datetime:
    return datetime.now(UTC)


class _RunRecorder:
    """单次运行的进度记录器，记录 trace 并转发给外部输出."""

    def __init__(self, sink: ProgressSink | None):
        self.sink = sink
        self.trace: list[ProgressRecord] = []

    def __call__(self, record: ProgressRecord) -> None:
        self.trace.append(record)
        if self.sink is None:
            return
        try:
            self.sink(record)
        except Exception as e:
            logger.warning(f"输出进度记录失败: {str(e)}")

    def step(self, message: str, **fields: Any) -> None:
        self(ProgressRecord(kind=RecordKind.STEP, message=message, fields=fields))

    def warning(self, message: str, **fields: Any) -> None:
        logger.warning(message)
        self(ProgressRecord(kind=RecordKind.WARNING, message=message, fields=fields))


class MigrationOrchestrator:
    """零停机映射迁移编排器.

    按固定顺序执行：存在性检查 → 规划 → 解析源索引 → 创建新索引 → 重建索引并监控 →
    别名切换 → 可选的旧索引清理。每一步都在上一步结果确定后才开始。

    只有编排器决定最终的成功/失败结论：清理类警告不会把成功变为失败，文档级失败
    一定会导致失败。任何失败都不会回滚已完成的步骤，结果中会给出新索引名称以便人工清理。

    同一目标的并发迁移不安全：两次运行都能通过存在性检查，各自创建不同时间戳的新索引，
    最后在别名切换上竞争。

    Args:
        gateway: 集群网关
        sink: 进度记录输出回调（可选）
        clock: 单调时钟，用于截止时间判断
        now: 当前 UTC 时间，用于生成新索引名称

    Example:
        >>> orchestrator = MigrationOrchestrator(gateway, sink=print)
        >>> outcome = orchestrator.migrate(
        ...     "products",
        ...     {"properties": {"title": {"type": "text"}}},
        ...     MigrationOptions(force_alias=True),
        ... )
        >>> if not outcome.success:
        ...     print(outcome.error)
    """

    def __init__(
        self,
        gateway: ClusterGateway,
        sink: ProgressSink | None = None,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = _utc_now,
    ):
        self.gateway = gateway
        self.sink = sink
        self.clock = clock
        self.now = now

    def migrate(
        self,
        target: str,
        desired_mapping: dict[str, Any],
        options: MigrationOptions | None = None,
    ) -> MigrationOutcome:
        """执行映射迁移.

        Args:
            target: 目标名称（别名或具体索引）
            desired_mapping: 期望的映射（任意支持的包裹结构）
            options: 迁移选项，默认使用 MigrationOptions()

        Returns:
            迁移结果。致命错误记录在 outcome.error 中，不会抛出。

        Raises:
            ConfigurationError: 映射文档不合法时抛出（不会发起任何集群调用）
        """
        options = options or MigrationOptions()
        mapping = normalize_mapping(desired_mapping, index_name=target)
        recorder = _RunRecorder(self.sink)
        outcome = MigrationOutcome(success=False, trace=recorder.trace)

        try:
            self._run(target, mapping, options, outcome, recorder)
        except MigrationError as e:
            logger.error(f"'{target}' 迁移失败 (步骤: {e.step}): {str(e)}")
            outcome.success = False
            outcome.error = e
            outcome.state = MigrationState.FAILED
            recorder.step(
                "迁移失败",
                target=target,
                step=e.step,
                error=str(e),
                new_index=outcome.new_index,
            )
        return outcome

    def _check_interrupted(
        self, options: MigrationOptions, deadline: float | None, next_step: str
    ) -> None:
        if options.cancel_event is not None and options.cancel_event.is_set():
            raise OperationCancelledError(f"迁移在步骤 '{next_step}' 之前被取消", step=next_step)
        if deadline is not None and self.clock() >= deadline:
            raise MigrationTimeoutError(
                f"超过整体截止时间，迁移在步骤 '{next_step}' 之前停止", step=next_step
            )

    def _run(
        self,
        target: str,
        mapping: dict[str, Any],
        options: MigrationOptions,
        outcome: MigrationOutcome,
        recorder: _RunRecorder,
    ) -> None:
        if options.confirm is not None:
            description = (
                f"即将更新 '{target}' 的映射"
                f"（zero_downtime={options.zero_downtime_allowed}, "
                f"force_alias={options.force_alias}, "
                f"delete_old_index={options.delete_old_index}）"
            )
            if not options.confirm(description):
                raise OperationCancelledError("用户取消了映射更新操作")

        deadline = self.clock() + options.timeout_seconds if options.timeout_seconds > 0 else None

        # 1. 目标必须存在
        try:
            exists = self.gateway.index_exists(target)
        except GatewayError as e:
            raise MigrationStepError(
                f"检查 '{target}' 是否存在失败: {str(e)}", step="existence_check", index=target
            ) from e
        if not exists:
            raise TargetNotFoundError(f"索引或别名 '{target}' 不存在")
        recorder.step("目标已确认存在", target=target)

        # 2. 规划
        plan = MigrationPlanner(self.gateway).plan(
            target,
            mapping,
            force_alias=options.force_alias,
            zero_downtime_allowed=options.zero_downtime_allowed,
            write_index_only=options.write_index_only,
        )
        outcome.plan = plan
        outcome.state = MigrationState.PLANNING_DONE
        recorder.step("迁移规划完成", target=target, plan=plan.kind.value)

        if plan.kind == PlanKind.IN_PLACE_SUCCEEDED:
            logger.info(f"'{target}' 映射已原地更新成功")
            outcome.success = True
            outcome.state = MigrationState.DONE
            recorder.step("映射已原地更新", target=target)
            return

        # 3. 不允许重建索引时原样返回规划错误
        if plan.is_refusal:
            raise PlanningRefusedError(
                f"'{target}' 原地更新映射失败，且未启用零停机迁移，"
                f"可启用 zero_downtime 通过重建索引完成迁移: {plan.in_place_error}",
                cause=plan.in_place_error,
            )

        if plan.kind == PlanKind.REINDEX_FORCED_BY_ALIAS_REQUIREMENT:
            logger.info(f"'{target}' 是具体索引且要求为别名，改走重建索引路径")

        # 4. 解析源索引，别名状态每次使用前都重新读取
        self._check_interrupted(options, deadline, "resolve_sources")
        lookup = self.gateway.get_alias(target)
        if lookup.status == AliasLookupStatus.ERROR:
            raise AliasLookupError(f"检查 '{target}' 是否为别名失败: {lookup.cause}")
        target_is_alias = lookup.status == AliasLookupStatus.FOUND
        if target_is_alias:
            source_indices = list(lookup.binding.target_indices) if lookup.binding else []
            if not source_indices:
                raise MigrationStepError(
                    f"别名 '{target}' 没有指向任何索引", step="resolve_sources", index=target
                )
        else:
            source_indices = [target]
        outcome.source_indices = source_indices
        source_index = source_indices[0]

        if len(source_indices) > 1:
            recorder.warning(
                f"别名 '{target}' 指向多个索引 {source_indices}，只会迁移第一个索引 "
                f"'{source_index}'，其余索引的数据不会进入新索引",
                target=target,
                source_indices=source_indices,
            )
            outcome.warnings.append(
                f"只迁移了 '{source_index}'，忽略了 {source_indices[1:]}"
            )
        recorder.step(
            "源索引已解析",
            target=target,
            is_alias=target_is_alias,
            source_indices=source_indices,
        )

        # 5. 创建带时间戳的新索引
        self._check_interrupted(options, deadline, "create_index")
        new_index = timestamped_index_name(target, self.now())
        outcome.state = MigrationState.REINDEXING
        try:
            self.gateway.create_index(new_index, mapping=mapping)
        except (GatewayError, ValueError) as e:
            raise MigrationStepError(
                f"创建新索引 '{new_index}' 失败: {str(e)}", step="create_index", index=new_index
            ) from e
        outcome.new_index = new_index
        recorder.step("新索引已创建", new_index=new_index)

        # 6-7. 重建索引并监控
        spec = ReindexSpec(
            source_index=source_index,
            destination_index=new_index,
            batch_size=options.batch_size,
            wait_for_completion=options.wait_for_completion,
        )
        result = self._reindex(spec, options, deadline, recorder)
        outcome.document_failure_count = result.document_failure_count
        if result.is_partial_failure:
            raise DocumentFailuresError(
                f"从 '{source_index}' 重建到 '{new_index}' 完成，但有 "
                f"{result.document_failure_count} 个文档失败，别名未切换",
                count=result.document_failure_count,
                index=new_index,
            )
        recorder.step("重建索引完成", source_index=source_index, new_index=new_index)

        # 8. 按原目标类型选择别名切换方式
        self._check_interrupted(options, deadline, "cutover")
        outcome.state = MigrationState.CUTOVER
        cutover = AliasCutover(self.gateway)
        cutover_result: CutoverResult
        if target_is_alias:
            cutover_result = cutover.swap_alias(source_index, new_index, target)
        else:
            cutover_result = cutover.replace_concrete_index_with_alias(target, new_index, target)
        outcome.alias_swapped = True
        recorder.step(
            "别名已切换",
            alias=target,
            new_index=new_index,
            replaced_indices=cutover_result.replaced_indices,
        )

        cleanup_warnings = list(cutover_result.warnings)
        for leaked in cutover_result.leaked_aliases:
            recorder(
                ProgressRecord(
                    kind=RecordKind.WARNING,
                    message="临时别名未能删除",
                    fields={"alias": leaked, "index": new_index},
                )
            )

        # 9. 可选的旧索引清理，失败只产生警告
        if options.delete_old_index:
            if target_is_alias:
                # 别名指向的全部旧索引都会被删除，包括未迁移的索引
                for old_index in source_indices:
                    try:
                        self.gateway.delete_index(old_index)
                        recorder.step("旧索引已删除", index=old_index)
                    except GatewayError as e:
                        warning = f"删除旧索引 '{old_index}' 失败，请手动清理: {str(e)}"
                        recorder.warning(warning, index=old_index)
                        cleanup_warnings.append(warning)
            else:
                logger.info(f"原具体索引 '{target}' 已在别名切换中删除")

        # 10. 汇总结果
        outcome.warnings.extend(cleanup_warnings)
        outcome.success = True
        outcome.state = (
            MigrationState.CLEANUP_WARNING if cleanup_warnings else MigrationState.DONE
        )
        logger.info(f"'{target}' 已迁移到新索引 '{new_index}'")
        recorder.step("迁移完成", target=target, new_index=new_index, state=outcome.state.value)

    def _reindex(
        self,
        spec: ReindexSpec,
        options: MigrationOptions,
        deadline: float | None,
        recorder: _RunRecorder,
    ) -> TaskResult:
        monitor = TaskMonitor(self.gateway, sink=recorder, clock=self.clock)
        try:
            submission = monitor.submit(spec)
        except GatewayError as e:
            raise MigrationStepError(
                f"提交重建索引 '{spec.source_index}' -> '{spec.destination_index}' 失败: {str(e)}",
                step="reindex_submit",
                index=spec.destination_index,
            ) from e

        if submission.task is None:
            return monitor.process_sync_result(submission.result or {})
        return monitor.monitor(
            submission.task,
            poll_interval=options.poll_interval,
            cancel_event=options.cancel_event,
            deadline=deadline,
        )


class ReindexJob:
    """独立的重建索引任务.

    可选地创建目标索引，提交重建索引（目标写入类型为 "create"），同步处理结果或异步轮询，
    成功后可选地把别名从源索引原子切换到目标索引。别名切换失败只产生警告。

    Args:
        gateway: 集群网关
        sink: 进度记录输出回调（可选）
        clock: 单调时钟，用于截止时间判断
    """

    def __init__(
        self,
        gateway: ClusterGateway,
        sink: ProgressSink | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.gateway = gateway
        self.sink = sink
        self.clock = clock

    def run(
        self,
        spec: ReindexSpec,
        create_target: bool = False,
        target_settings: dict[str, Any] | None = None,
        target_mappings: dict[str, Any] | None = None,
        swap_alias: str | None = None,
        poll_interval: float = 5.0,
        cancel_event: threading.Event | None = None,
        deadline: float | None = None,
    ) -> ReindexJobOutcome:
        """执行重建索引.

        Args:
            spec: 重建索引请求描述
            create_target: 目标索引不存在时是否创建
            target_settings: 创建目标索引时使用的 settings
            target_mappings: 创建目标索引时使用的映射（任意支持的包裹结构）
            swap_alias: 成功后从源索引切换到目标索引的别名名称
            poll_interval: 异步任务轮询间隔（秒）
            cancel_event: 取消信号
            deadline: 整体截止时间（clock 时钟上的绝对值）

        Returns:
            重建索引结果

        Raises:
            ConfigurationError: create_target 为 True 但未提供 settings 或映射时抛出
        """
        if create_target and not target_settings and not target_mappings:
            raise ConfigurationError("create_target 需要同时提供 target_settings 或 target_mappings")

        recorder = _RunRecorder(self.sink)
        outcome = ReindexJobOutcome(success=False)
        try:
            if create_target:
                self._ensure_target(spec.destination_index, target_settings, target_mappings, recorder)
            self._run(spec, poll_interval, cancel_event, deadline, recorder, outcome)
        except MigrationError as e:
            logger.error(f"重建索引失败: {str(e)}")
            outcome.success = False
            outcome.error = e
            return outcome

        if swap_alias:
            self._swap_alias(spec, swap_alias, recorder, outcome)
        logger.info("重建索引任务结束")
        return outcome

    def _ensure_target(
        self,
        index: str,
        settings: dict[str, Any] | None,
        mappings: dict[str, Any] | None,
        recorder: _RunRecorder,
    ) -> None:
        try:
            if self.gateway.index_exists(index):
                logger.info(f"目标索引 '{index}' 已存在，跳过创建")
                return
            mapping = normalize_mapping(mappings, index_name=index) if mappings else None
            self.gateway.create_index(index, mapping=mapping, settings=settings)
        except (GatewayError, ValueError) as e:
            raise MigrationStepError(
                f"创建目标索引 '{index}' 失败: {str(e)}", step="create_target", index=index
            ) from e
        recorder.step("目标索引已创建", index=index)

    def _run(
        self,
        spec: ReindexSpec,
        poll_interval: float,
        cancel_event: threading.Event | None,
        deadline: float | None,
        recorder: _RunRecorder,
        outcome: ReindexJobOutcome,
    ) -> None:
        monitor = TaskMonitor(self.gateway, sink=recorder, clock=self.clock)
        try:
            submission = monitor.submit(spec)
        except GatewayError as e:
            raise MigrationStepError(
                f"重建索引请求失败: {str(e)}", step="reindex_submit", index=spec.destination_index
            ) from e

        if submission.task is None:
            result = monitor.process_sync_result(submission.result or {})
        else:
            outcome.task_id = submission.task.task_id
            result = monitor.monitor(
                submission.task,
                poll_interval=poll_interval,
                cancel_event=cancel_event,
                deadline=deadline,
            )

        outcome.final_status = result.final_status
        outcome.document_failure_count = result.document_failure_count
        if result.is_partial_failure:
            raise DocumentFailuresError(
                f"重建索引完成，但有 {result.document_failure_count} 个文档失败",
                count=result.document_failure_count,
                index=spec.destination_index,
            )
        outcome.success = True

    def _swap_alias(
        self,
        spec: ReindexSpec,
        alias_name: str,
        recorder: _RunRecorder,
        outcome: ReindexJobOutcome,
    ) -> None:
        logger.info(
            f"重建索引成功，把别名 '{alias_name}' 从 '{spec.source_index}' 切换到 '{spec.destination_index}'"
        )
        try:
            AliasCutover(self.gateway).swap_alias(
                spec.source_index, spec.destination_index, alias_name
            )
        except MigrationError as e:
            warning = f"切换别名 '{alias_name}' 失败: {str(e)}"
            recorder.warning(warning, operation="alias_swap", alias=alias_name, status="failed")
            outcome.warnings.append(warning)
            return
        outcome.alias_swapped = True
        recorder.step("别名已切换", operation="alias_swap", alias=alias_name, status="success")
