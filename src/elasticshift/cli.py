"""elasticshift 命令行入口.

进度记录以 JSON lines 形式写到 stdout，日志和警告写到 stderr。
致命错误或存在文档级失败时以状态码 1 退出，警告不影响退出状态。
"""

import json
import logging
import sys
from typing import Any

import click

from . import __version__
from .config import parse_list
from .connection import ConnectionSettings, ESClientFactory, HealthCheckError
from .exceptions import ConfigurationError
from .gateway import ElasticsearchGateway, ReindexSpec
from .mapping import load_document_file, load_mapping_file
from .migration import MigrationOptions, MigrationOrchestrator, ReindexJob
from .tasks import ProgressRecord

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _echo_row(row: dict[str, Any]) -> None:
    click.echo(json.dumps(row, ensure_ascii=False, default=str))


def _echo_record(record: ProgressRecord) -> None:
    _echo_row(record.to_row())


def _fail(message: str) -> None:
    click.echo(f"错误: {message}", err=True)
    sys.exit(1)


def _prompt_confirm(description: str) -> bool:
    click.echo(description, err=True)
    answer = click.prompt("输入 'yes' 继续", default="", show_default=False, err=True)
    return answer.strip() == "yes"


def _build_factory(ctx: click.Context) -> ESClientFactory:
    try:
        settings = ConnectionSettings.from_sources(ctx.obj["connection"])
    except ConfigurationError as e:
        _fail(str(e))
    return ESClientFactory(settings)


@click.group()
@click.version_option(version=__version__)
@click.option("--hosts", help="ES 节点地址，逗号分隔（环境变量 ES_HOSTS）")
@click.option("--username", help="Basic Auth 用户名（ES_USERNAME）")
@click.option("--password", help="Basic Auth 密码（ES_PASSWORD）")
@click.option("--api-key", help="API Key（ES_API_KEY）")
@click.option("--bearer-token", help="Bearer Token（ES_BEARER_TOKEN）")
@click.option("--ca-certs", type=click.Path(dir_okay=False), help="CA 证书路径（ES_CA_CERTS）")
@click.option(
    "--verify-certs/--no-verify-certs", default=None, help="是否验证 SSL 证书（ES_VERIFY_CERTS）"
)
@click.option("--request-timeout", type=float, help="单次请求超时秒数（ES_REQUEST_TIMEOUT）")
@click.option("--max-retries", type=int, help="客户端最大重试次数（ES_MAX_RETRIES）")
@click.option(
    "--log-level",
    default="WARNING",
    show_default=True,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="日志级别，日志输出到 stderr",
)
@click.pass_context
def main(
    ctx: click.Context,
    hosts: str | None,
    username: str | None,
    password: str | None,
    api_key: str | None,
    bearer_token: str | None,
    ca_certs: str | None,
    verify_certs: bool | None,
    request_timeout: float | None,
    max_retries: int | None,
    log_level: str,
) -> None:
    """elasticshift - Elasticsearch/OpenSearch 零停机映射迁移与重建索引工具.

    \b
    - update-mappings: 更新索引映射，必要时通过重建索引和别名切换实现零停机迁移
    - reindex: 重建索引并监控任务进度
    """
    logging.basicConfig(level=log_level.upper(), format=LOG_FORMAT, stream=sys.stderr)
    ctx.ensure_object(dict)
    ctx.obj["connection"] = {
        "hosts": parse_list(hosts) if hosts else None,
        "username": username,
        "password": password,
        "api_key": api_key,
        "bearer_token": bearer_token,
        "ca_certs": ca_certs,
        "verify_certs": verify_certs,
        "request_timeout": request_timeout,
        "max_retries": max_retries,
    }


@main.command("update-mappings")
@click.option("--index", "index_name", required=True, help="目标索引或别名名称")
@click.option(
    "--mappings",
    "mappings_path",
    required=True,
    type=click.Path(dir_okay=False),
    help="映射文件（JSON 或 YAML）",
)
@click.option(
    "--zero-downtime/--no-zero-downtime",
    default=None,
    help="原地更新失败时是否通过重建索引迁移（默认启用，ELASTICSHIFT_ZERO_DOWNTIME）",
)
@click.option("--delete-old-index", is_flag=True, help="别名切换成功后删除旧索引")
@click.option("--force-alias", is_flag=True, help="要求迁移后目标名称必须是别名")
@click.option("--batch-size", type=int, help="重建索引每批次文档数（默认 1000）")
@click.option("--update-timeout", type=float, help="整体截止时间秒数，0 表示不限")
@click.option("--poll-interval", type=float, help="任务轮询间隔秒数（默认 5）")
@click.option("--write-index-only", is_flag=True, help="原地更新时只作用于写索引")
@click.option("--wait-for-completion", is_flag=True, help="同步执行重建索引")
@click.option("--non-interactive", is_flag=True, help="跳过 'yes' 确认")
@click.pass_context
def update_mappings(
    ctx: click.Context,
    index_name: str,
    mappings_path: str,
    zero_downtime: bool | None,
    delete_old_index: bool,
    force_alias: bool,
    batch_size: int | None,
    update_timeout: float | None,
    poll_interval: float | None,
    write_index_only: bool,
    wait_for_completion: bool,
    non_interactive: bool,
) -> None:
    """更新索引映射.

    先尝试原地更新；失败（或要求目标为别名而目标是具体索引）时创建带时间戳的新索引，
    重建索引后通过别名切换完成迁移。
    """
    try:
        raw_mapping = load_mapping_file(mappings_path)
        options = MigrationOptions.from_sources(
            {
                "zero_downtime_allowed": zero_downtime,
                "force_alias": force_alias or None,
                "delete_old_index": delete_old_index or None,
                "batch_size": batch_size,
                "write_index_only": write_index_only or None,
                "poll_interval": poll_interval,
                "timeout_seconds": update_timeout,
                "wait_for_completion": wait_for_completion or None,
            },
            confirm=None if non_interactive else _prompt_confirm,
        )
    except ConfigurationError as e:
        _fail(str(e))

    factory = _build_factory(ctx)
    try:
        with factory:
            factory.ensure_healthy()
            gateway = ElasticsearchGateway(factory.get_client())
            outcome = MigrationOrchestrator(gateway, sink=_echo_record).migrate(
                index_name, raw_mapping, options
            )
    except (ConfigurationError, HealthCheckError) as e:
        _fail(str(e))

    _echo_row({"kind": "result", **outcome.to_dict()})
    for warning in outcome.warnings:
        click.echo(f"警告: {warning}", err=True)
    if not outcome.success:
        _fail(str(outcome.error))


@main.command("reindex")
@click.option("--source-index", required=True, help="源索引")
@click.option("--target-index", required=True, help="目标索引")
@click.option("--query", "query_path", type=click.Path(dir_okay=False), help="源文档过滤查询文件")
@click.option("--script", "script_path", type=click.Path(dir_okay=False), help="文档转换脚本文件")
@click.option("--pipeline", help="写入目标索引时使用的 ingest pipeline")
@click.option("--batch-size", type=int, default=1000, show_default=True, help="每批次文档数")
@click.option("--slices", type=int, default=1, show_default=True, help="并行切片数")
@click.option(
    "--requests-per-second", type=float, default=-1, show_default=True, help="限流速率，-1 表示不限"
)
@click.option("--wait-for-completion", is_flag=True, help="同步等待重建完成")
@click.option("--poll-interval", type=float, default=5.0, show_default=True, help="轮询间隔秒数")
@click.option("--create-target", is_flag=True, help="目标索引不存在时创建")
@click.option("--target-settings", type=click.Path(dir_okay=False), help="目标索引 settings 文件")
@click.option("--target-mappings", type=click.Path(dir_okay=False), help="目标索引映射文件")
@click.option("--swap-alias", help="成功后从源索引切换到目标索引的别名")
@click.option("--timeout", default="1m", show_default=True, help="重建索引请求超时")
@click.pass_context
def reindex(
    ctx: click.Context,
    source_index: str,
    target_index: str,
    query_path: str | None,
    script_path: str | None,
    pipeline: str | None,
    batch_size: int,
    slices: int,
    requests_per_second: float,
    wait_for_completion: bool,
    poll_interval: float,
    create_target: bool,
    target_settings: str | None,
    target_mappings: str | None,
    swap_alias: str | None,
    timeout: str,
) -> None:
    """从源索引重建到目标索引，异步执行时持续输出任务进度."""
    try:
        query = load_document_file(query_path) if query_path else None
        script = load_document_file(script_path) if script_path else None
        settings = load_document_file(target_settings) if target_settings else None
        mappings = load_mapping_file(target_mappings) if target_mappings else None
    except ConfigurationError as e:
        _fail(str(e))

    spec = ReindexSpec(
        source_index=source_index,
        destination_index=target_index,
        query=query,
        script=script,
        pipeline=pipeline,
        batch_size=batch_size,
        slices=slices,
        requests_per_second=requests_per_second,
        wait_for_completion=wait_for_completion,
        op_type="create",
        timeout=timeout,
    )

    factory = _build_factory(ctx)
    try:
        with factory:
            factory.ensure_healthy()
            gateway = ElasticsearchGateway(factory.get_client())
            outcome = ReindexJob(gateway, sink=_echo_record).run(
                spec,
                create_target=create_target,
                target_settings=settings,
                target_mappings=mappings,
                swap_alias=swap_alias,
                poll_interval=poll_interval,
            )
    except (ConfigurationError, HealthCheckError) as e:
        _fail(str(e))

    _echo_row({"kind": "result", **outcome.to_dict()})
    for warning in outcome.warnings:
        click.echo(f"警告: {warning}", err=True)
    if not outcome.success:
        _fail(str(outcome.error))


if __name__ == "__main__":
    main()
