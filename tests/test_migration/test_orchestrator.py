"""迁移编排器端到端测试（内存集群）."""

import itertools
import re
import threading
from datetime import UTC, datetime

import pytest

from elasticshift.cutover import CutoverError
from elasticshift.gateway import ClusterRequestError
from elasticshift.mapping import MappingFileError
from elasticshift.migration import (
    DocumentFailuresError,
    MigrationOptions,
    MigrationOrchestrator,
    MigrationState,
    MigrationStepError,
    MigrationTimeoutError,
    OperationCancelledError,
    TargetNotFoundError,
    timestamped_index_name,
)
from elasticshift.planner import AliasLookupError, PlanKind, PlanningRefusedError
from elasticshift.tasks import RecordKind, TaskFailedError

MAPPING = {"properties": {"title": {"type": "text"}, "price": {"type": "float"}}}
FIXED_NOW = datetime(2024, 5, 1, 8, 30, 0, tzinfo=UTC)
TS = "20240501083000"


def mapping_conflict() -> ClusterRequestError:
    return ClusterRequestError(
        "mapper [price] cannot be changed from type [long] to [float]",
        status_code=400,
        error_type="illegal_argument_exception",
    )


@pytest.fixture
def orchestrator(fake_gateway, records):
    return MigrationOrchestrator(fake_gateway, sink=records.append, now=lambda: FIXED_NOW)


def options(**kwargs) -> MigrationOptions:
    kwargs.setdefault("poll_interval", 0)
    return MigrationOptions(**kwargs)


class TestTimestampedIndexName:
    def test_format(self) -> None:
        assert timestamped_index_name("products", FIXED_NOW) == f"products_{TS}"

    def test_converted_to_utc(self) -> None:
        local = datetime.fromisoformat("2024-05-01T16:30:00+08:00")
        assert timestamped_index_name("products", local) == f"products_{TS}"

    def test_current_time_shape(self) -> None:
        name = timestamped_index_name("products", datetime.now(UTC))
        assert re.fullmatch(r"products_\d{14}", name)


class TestScenarios:
    """端到端场景."""

    def test_scenario_a_in_place_update(self, fake_gateway, orchestrator) -> None:
        """具体索引，原地更新成功，不要求别名：直接成功，不重建索引."""
        fake_gateway.add_index("products", docs=10)

        outcome = orchestrator.migrate("products", MAPPING, options())

        assert outcome.success
        assert outcome.state == MigrationState.DONE
        assert outcome.plan.kind == PlanKind.IN_PLACE_SUCCEEDED
        assert outcome.error is None
        assert not outcome.alias_swapped
        assert outcome.new_index is None
        assert "submit_reindex" not in fake_gateway.call_names()
        assert "create_index" not in fake_gateway.call_names()

    def test_scenario_b_force_alias_on_concrete_index(self, fake_gateway, orchestrator) -> None:
        """具体索引，原地更新成功，要求别名：重建索引并把名称替换为别名."""
        fake_gateway.add_index("products", docs=10)

        outcome = orchestrator.migrate("products", MAPPING, options(force_alias=True))

        new_index = f"products_{TS}"
        assert outcome.success, outcome.error
        assert outcome.state == MigrationState.DONE
        assert outcome.plan.kind == PlanKind.REINDEX_FORCED_BY_ALIAS_REQUIREMENT
        assert outcome.alias_swapped
        assert outcome.new_index == new_index
        assert outcome.source_indices == ["products"]
        assert fake_gateway.aliases == {"products": [new_index]}
        assert "products_temp" not in fake_gateway.aliases
        assert "products" not in fake_gateway.indices
        assert fake_gateway.indices[new_index]["mapping"] == MAPPING
        assert fake_gateway.indices[new_index]["docs"] == 10

    def test_scenario_c_alias_with_in_place_failure(self, fake_gateway, orchestrator) -> None:
        """别名目标，原地更新失败，允许零停机：新索引 + 原子切换，旧索引保留."""
        fake_gateway.add_index("products_v1", docs=25)
        fake_gateway.add_alias("products_alias", "products_v1")
        fake_gateway.put_mapping_error = mapping_conflict()

        outcome = orchestrator.migrate("products_alias", MAPPING, options())

        new_index = f"products_alias_{TS}"
        assert outcome.success, outcome.error
        assert outcome.plan.kind == PlanKind.IN_PLACE_FAILED_FALLBACK_TO_REINDEX
        assert outcome.new_index == new_index
        assert outcome.source_indices == ["products_v1"]
        assert fake_gateway.reindex_specs[0].source_index == "products_v1"
        assert fake_gateway.reindex_specs[0].destination_index == new_index
        assert fake_gateway.aliases == {"products_alias": [new_index]}
        assert "products_v1" in fake_gateway.indices
        assert fake_gateway.indices[new_index]["docs"] == 25

    def test_scenario_c_with_delete_old_index(self, fake_gateway, orchestrator) -> None:
        fake_gateway.add_index("products_v1", docs=25)
        fake_gateway.add_alias("products_alias", "products_v1")
        fake_gateway.put_mapping_error = mapping_conflict()

        outcome = orchestrator.migrate("products_alias", MAPPING, options(delete_old_index=True))

        assert outcome.success
        assert outcome.state == MigrationState.DONE
        assert "products_v1" not in fake_gateway.indices
        assert fake_gateway.call_names()[-1] == "delete_index"

    def test_uses_batch_size(self, fake_gateway, orchestrator) -> None:
        fake_gateway.add_index("products")
        orchestrator.migrate("products", MAPPING, options(force_alias=True, batch_size=250))
        assert fake_gateway.reindex_specs[0].batch_size == 250

    def test_steps_strictly_ordered(self, fake_gateway, orchestrator) -> None:
        fake_gateway.add_index("products_v1")
        fake_gateway.add_alias("products", "products_v1")
        fake_gateway.put_mapping_error = mapping_conflict()

        orchestrator.migrate("products", MAPPING, options(delete_old_index=True))

        assert fake_gateway.call_names() == [
            "index_exists",
            "put_mapping",
            "get_alias",
            "create_index",
            "submit_reindex",
            "get_task_status",
            "update_aliases",
            "delete_index",
        ]


class TestFailures:
    """致命失败路径."""

    def test_target_not_found(self, fake_gateway, orchestrator) -> None:
        outcome = orchestrator.migrate("missing", MAPPING, options())

        assert not outcome.success
        assert outcome.state == MigrationState.FAILED
        assert isinstance(outcome.error, TargetNotFoundError)
        assert fake_gateway.call_names() == ["index_exists"]

    def test_planning_refusal(self, fake_gateway, orchestrator) -> None:
        """原地更新失败且不允许零停机：返回规划错误，不创建任何索引."""
        fake_gateway.add_index("products")
        fake_gateway.put_mapping_error = mapping_conflict()

        outcome = orchestrator.migrate("products", MAPPING, options(zero_downtime_allowed=False))

        assert not outcome.success
        assert isinstance(outcome.error, PlanningRefusedError)
        assert outcome.error.cause is fake_gateway.put_mapping_error
        assert outcome.plan.is_refusal
        assert fake_gateway.call_names() == ["index_exists", "put_mapping"]

    def test_document_failures_fail_migration(self, fake_gateway, orchestrator, task_status, doc_failure) -> None:
        fake_gateway.add_index("products_v1")
        fake_gateway.add_alias("products", "products_v1")
        fake_gateway.put_mapping_error = mapping_conflict()
        failures = [doc_failure("7"), doc_failure("9")]
        fake_gateway.task_statuses = [
            task_status(completed=False, failures=failures[:1]),
            task_status(completed=True, failures=failures),
        ]

        outcome = orchestrator.migrate("products", MAPPING, options())

        assert not outcome.success
        assert isinstance(outcome.error, DocumentFailuresError)
        assert outcome.error.count == 2
        assert outcome.document_failure_count == 2
        assert not outcome.alias_swapped
        # 已创建的新索引不会回滚，别名保持不变
        assert outcome.new_index in fake_gateway.indices
        assert fake_gateway.aliases == {"products": ["products_v1"]}
        assert len([r for r in outcome.trace if r.kind == RecordKind.FAILURE]) == 2

    def test_sync_reindex_document_failures(self, fake_gateway, orchestrator, doc_failure) -> None:
        fake_gateway.add_index("products")
        fake_gateway.sync_result = {"total": 3, "created": 2, "failures": [doc_failure("1")]}

        outcome = orchestrator.migrate(
            "products", MAPPING, options(force_alias=True, wait_for_completion=True)
        )

        assert not outcome.success
        assert outcome.document_failure_count == 1
        assert "get_task_status" not in fake_gateway.call_names()
        assert "products" in fake_gateway.indices

    def test_task_failure(self, fake_gateway, orchestrator, task_status) -> None:
        fake_gateway.add_index("products")
        fake_gateway.task_statuses = [
            task_status(completed=True, error={"type": "search_phase_execution_exception", "reason": "boom"})
        ]

        outcome = orchestrator.migrate("products", MAPPING, options(force_alias=True))

        assert isinstance(outcome.error, TaskFailedError)
        assert outcome.state == MigrationState.FAILED

    def test_new_index_collision(self, fake_gateway, orchestrator) -> None:
        """同一秒内的第二次迁移：新索引名称冲突，创建失败."""
        fake_gateway.add_index("products")
        fake_gateway.add_index(f"products_{TS}")

        outcome = orchestrator.migrate("products", MAPPING, options(force_alias=True))

        assert isinstance(outcome.error, MigrationStepError)
        assert outcome.error.step == "create_index"
        assert outcome.new_index is None

    def test_reindex_submission_rejected(self, fake_gateway, orchestrator) -> None:
        fake_gateway.add_index("products")
        fake_gateway.reindex_error = ClusterRequestError("rejected", status_code=429)

        outcome = orchestrator.migrate("products", MAPPING, options(force_alias=True))

        assert isinstance(outcome.error, MigrationStepError)
        assert outcome.error.step == "reindex_submit"
        assert outcome.new_index == f"products_{TS}"

    def test_alias_lookup_error_is_fatal(self, fake_gateway, orchestrator) -> None:
        fake_gateway.add_index("products")
        fake_gateway.put_mapping_error = mapping_conflict()
        fake_gateway.alias_lookup_errors.add("products")

        outcome = orchestrator.migrate("products", MAPPING, options())

        assert isinstance(outcome.error, AliasLookupError)
        assert "create_index" not in fake_gateway.call_names()

    def test_swap_failure_keeps_old_alias(self, fake_gateway, orchestrator) -> None:
        fake_gateway.add_index("products_v1")
        fake_gateway.add_alias("products", "products_v1")
        fake_gateway.put_mapping_error = mapping_conflict()
        fake_gateway.alias_call_failures.add(1)

        outcome = orchestrator.migrate("products", MAPPING, options(delete_old_index=True))

        assert isinstance(outcome.error, CutoverError)
        assert not outcome.alias_swapped
        assert fake_gateway.aliases == {"products": ["products_v1"]}
        assert "products_v1" in fake_gateway.indices

    def test_concrete_replacement_window_reported(self, fake_gateway, orchestrator) -> None:
        fake_gateway.add_index("products")
        fake_gateway.alias_call_failures.add(2)

        outcome = orchestrator.migrate("products", MAPPING, options(force_alias=True))

        assert isinstance(outcome.error, CutoverError)
        assert outcome.error.target_unavailable
        assert fake_gateway.resolve("products") == []
        assert outcome.new_index in outcome.error.indices

    def test_invalid_mapping_raises_before_cluster_calls(self, fake_gateway, orchestrator) -> None:
        with pytest.raises(MappingFileError):
            orchestrator.migrate("products", ["not", "a", "mapping"], options())
        assert fake_gateway.calls == []


class TestWarnings:
    """清理类警告不影响成功判定."""

    def test_old_index_delete_failure_is_warning(self, fake_gateway, orchestrator) -> None:
        fake_gateway.add_index("products_v1")
        fake_gateway.add_alias("products", "products_v1")
        fake_gateway.put_mapping_error = mapping_conflict()
        fake_gateway.delete_failures.add("products_v1")

        outcome = orchestrator.migrate("products", MAPPING, options(delete_old_index=True))

        assert outcome.success
        assert outcome.state == MigrationState.CLEANUP_WARNING
        assert outcome.alias_swapped
        assert any("products_v1" in w for w in outcome.warnings)

    def test_temp_alias_leak_is_warning(self, fake_gateway, orchestrator) -> None:
        fake_gateway.add_index("products")
        fake_gateway.alias_call_failures.add(3)

        outcome = orchestrator.migrate("products", MAPPING, options(force_alias=True))

        assert outcome.success
        assert outcome.state == MigrationState.CLEANUP_WARNING
        assert fake_gateway.resolve("products") == [outcome.new_index]
        assert "products_temp" in fake_gateway.aliases
        assert any("products_temp" in w for w in outcome.warnings)

    def test_multi_index_alias_migrates_first_only(self, fake_gateway, orchestrator) -> None:
        fake_gateway.add_index("products_v1", docs=5)
        fake_gateway.add_index("products_v2", docs=7)
        fake_gateway.add_alias("products", "products_v1", "products_v2")
        fake_gateway.put_mapping_error = mapping_conflict()

        outcome = orchestrator.migrate("products", MAPPING, options())

        assert outcome.success
        assert outcome.source_indices == ["products_v1", "products_v2"]
        assert len(fake_gateway.reindex_specs) == 1
        assert fake_gateway.reindex_specs[0].source_index == "products_v1"
        assert any("products_v2" in w for w in outcome.warnings)
        assert any(r.kind == RecordKind.WARNING for r in outcome.trace)

    def test_multi_index_alias_delete_old_indices(self, fake_gateway, orchestrator) -> None:
        """delete_old_index 删除别名原来指向的全部索引."""
        fake_gateway.add_index("products_v1", docs=5)
        fake_gateway.add_index("products_v2", docs=7)
        fake_gateway.add_alias("products", "products_v1", "products_v2")
        fake_gateway.put_mapping_error = mapping_conflict()

        outcome = orchestrator.migrate("products", MAPPING, options(delete_old_index=True))

        assert outcome.success
        assert outcome.state == MigrationState.DONE
        assert set(fake_gateway.indices) == {f"products_{TS}"}
        assert fake_gateway.aliases == {"products": [f"products_{TS}"]}
        assert [arg for name, arg in fake_gateway.calls if name == "delete_index"] == [
            "products_v1",
            "products_v2",
        ]

    def test_delete_failure_on_one_old_index(self, fake_gateway, orchestrator) -> None:
        fake_gateway.add_index("products_v1")
        fake_gateway.add_index("products_v2")
        fake_gateway.add_alias("products", "products_v1", "products_v2")
        fake_gateway.put_mapping_error = mapping_conflict()
        fake_gateway.delete_failures.add("products_v1")

        outcome = orchestrator.migrate("products", MAPPING, options(delete_old_index=True))

        assert outcome.success
        assert outcome.state == MigrationState.CLEANUP_WARNING
        assert "products_v2" not in fake_gateway.indices
        assert "products_v1" in fake_gateway.indices
        assert any("products_v1" in w for w in outcome.warnings)

    def test_delete_old_index_on_concrete_target(self, fake_gateway, orchestrator) -> None:
        """具体索引在切换过程中已被删除，不再重复删除."""
        fake_gateway.add_index("products")

        outcome = orchestrator.migrate(
            "products", MAPPING, options(force_alias=True, delete_old_index=True)
        )

        assert outcome.success
        assert fake_gateway.call_names().count("delete_index") == 1


class TestInterruption:
    """确认、取消与截止时间."""

    def test_confirm_declined(self, fake_gateway, orchestrator) -> None:
        descriptions = []

        def decline(description):
            descriptions.append(description)
            return False

        outcome = orchestrator.migrate("products", MAPPING, options(confirm=decline))

        assert isinstance(outcome.error, OperationCancelledError)
        assert outcome.error.step == "confirm"
        assert fake_gateway.calls == []
        assert "products" in descriptions[0]

    def test_confirm_accepted(self, fake_gateway, orchestrator) -> None:
        fake_gateway.add_index("products")
        outcome = orchestrator.migrate("products", MAPPING, options(confirm=lambda _: True))
        assert outcome.success

    def test_cancelled_between_steps(self, fake_gateway, orchestrator) -> None:
        fake_gateway.add_index("products")
        cancel_event = threading.Event()
        cancel_event.set()

        outcome = orchestrator.migrate(
            "products", MAPPING, options(force_alias=True, cancel_event=cancel_event)
        )

        assert isinstance(outcome.error, OperationCancelledError)
        assert outcome.error.step == "resolve_sources"
        assert "create_index" not in fake_gateway.call_names()

    def test_cancelled_before_cutover(self, fake_gateway) -> None:
        """重建索引后取消：错误步骤为 cutover，新索引保留且别名未切换."""
        fake_gateway.add_index("products_v1")
        fake_gateway.add_alias("products", "products_v1")
        fake_gateway.put_mapping_error = mapping_conflict()
        cancel_event = threading.Event()

        def sink(record):
            if record.message == "重建索引完成":
                cancel_event.set()

        orchestrator = MigrationOrchestrator(fake_gateway, sink=sink, now=lambda: FIXED_NOW)
        outcome = orchestrator.migrate("products", MAPPING, options(cancel_event=cancel_event))

        assert isinstance(outcome.error, OperationCancelledError)
        assert outcome.error.step == "cutover"
        assert outcome.to_dict()["error_step"] == "cutover"
        assert outcome.new_index == f"products_{TS}"
        assert fake_gateway.aliases == {"products": ["products_v1"]}

    def test_deadline_between_steps(self, fake_gateway, records) -> None:
        fake_gateway.add_index("products")
        clock = itertools.count(0, 100)
        orchestrator = MigrationOrchestrator(
            fake_gateway, sink=records.append, clock=lambda: float(next(clock)), now=lambda: FIXED_NOW
        )

        outcome = orchestrator.migrate(
            "products", MAPPING, options(force_alias=True, timeout_seconds=10)
        )

        assert isinstance(outcome.error, MigrationTimeoutError)
        assert outcome.state == MigrationState.FAILED


class TestOutcome:
    def test_trace_forwarded_to_sink(self, fake_gateway, orchestrator, records) -> None:
        fake_gateway.add_index("products")
        outcome = orchestrator.migrate("products", MAPPING, options(force_alias=True))
        assert outcome.trace == records
        assert records[-1].message == "迁移完成"

    def test_to_dict(self, fake_gateway, orchestrator) -> None:
        outcome = orchestrator.migrate("missing", MAPPING, options())
        summary = outcome.to_dict()
        assert summary["success"] is False
        assert summary["state"] == "failed"
        assert summary["error_step"] == "existence_check"
        assert summary["plan"] is None
