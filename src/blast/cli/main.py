"""Blast CLI: validate, run and render pipelines from the local repository."""

from __future__ import annotations
import asyncio
import os
from datetime import datetime
from pathlib import Path
from typing import NoReturn, Optional

import typer
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from blast import __version__
from blast.connections.config import Config, load_or_create
from blast.connections.manager import ConnectionManager
from blast.connectors.bigquery import BigQueryConnector
from blast.connectors.snowflake import SnowflakeConnector
from blast.core.config import BlastSettings, get_settings
from blast.core.dates import parse_datetime
from blast.core.errors import BlastError, BuildError, format_error_tree
from blast.core.fs import CachedFileSystem
from blast.core.log import setup_logging
from blast.executor.concurrent import Concurrent
from blast.executor.operator import TaskTypeMap, default_executors
from blast.lint.linter import Linter, Rule
from blast.lint.printer import Printer
from blast.lint.query import QueryValidatorRule
from blast.lint.rules import get_rules
from blast.materializations.engine import Materializer
from blast.operators import bigquery as bq_operators
from blast.operators import snowflake as sf_operators
from blast.operators.python import LocalOperator, RepoFinder
from blast.pipeline import BuilderConfig, new_builder
from blast.pipeline.models import Asset, Pipeline
from blast.pipeline.paths import get_pipeline_paths, get_pipeline_root_from_task
from blast.query.extract import FileQuerySplitterExtractor, WholeFileExtractor
from blast.query.render import JinjaRenderer, default_date_range, jinja_context_from_dates
from blast.scheduler.instance import TaskInstanceStatus, TaskInstanceType
from blast.scheduler.scheduler import Scheduler, TaskExecutionResult

app = typer.Typer(
    name="blast",
    help="Build, validate and run data pipelines",
    no_args_is_help=True,
)
console = Console()

STATUS_STYLES = {
    TaskInstanceStatus.SUCCEEDED: "green",
    TaskInstanceStatus.FAILED: "red",
    TaskInstanceStatus.UPSTREAM_FAILED: "yellow",
}


@app.callback()
def main(debug: bool = typer.Option(False, "--debug", help="Show debug logs")):
    settings = get_settings()
    setup_logging(debug=debug, level=settings.log_level)


# ─── Helpers ───


def _fail(err: BaseException) -> NoReturn:
    console.print("[red]Error:[/red]")
    console.print(format_error_tree(err), markup=False, highlight=False, soft_wrap=True)
    raise typer.Exit(1)


def _load_config(path: str, settings: BlastSettings) -> Config:
    """Config file at the root of the repository containing ``path``.

    Outside a git repository there is nothing to load and no connection is configured.
    """
    try:
        repo = RepoFinder().repo(path)
    except BlastError:
        return Config()
    return load_or_create(Path(repo.path) / settings.config_file_name)


def _connections_for(path: str, settings: BlastSettings, environment: Optional[str]) -> ConnectionManager:
    config = _load_config(path, settings)
    return ConnectionManager.from_environment(config.select_environment(environment))


def _date_range(start_date: Optional[str], end_date: Optional[str]) -> tuple[datetime, datetime]:
    default_start, default_end = default_date_range()
    try:
        start = parse_datetime(start_date) if start_date else default_start
        end = parse_datetime(end_date) if end_date else default_end
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    return start, end


def _find_asset(pipeline: Pipeline, path: str) -> Asset:
    path = os.path.realpath(path)
    for asset in pipeline.tasks:
        candidates = (asset.executable_file.path, asset.definition_file.path)
        if path in (os.path.realpath(p) for p in candidates if p):
            return asset
    raise BuildError(f"no task found for file '{path}' in pipeline '{pipeline.name}'")


def _query_rules(connections: ConnectionManager, fs, settings: BlastSettings, renderer) -> list[Rule]:
    rules: list[Rule] = []

    bq_names = connections.names_of_type(BigQueryConnector)
    if bq_names:
        name = bq_operators.DEFAULT_CONNECTION_NAME if bq_operators.DEFAULT_CONNECTION_NAME in bq_names else bq_names[0]
        rules.append(QueryValidatorRule(
            "valid-query", "bq.sql",
            connections.get_bq_connection(name),
            WholeFileExtractor(fs, renderer),
            worker_count=settings.validator_workers,
        ))

    sf_names = connections.names_of_type(SnowflakeConnector)
    if sf_names:
        name = sf_operators.DEFAULT_CONNECTION_NAME if sf_operators.DEFAULT_CONNECTION_NAME in sf_names else sf_names[0]
        rules.append(QueryValidatorRule(
            "valid-snowflake-query", "sf.sql",
            connections.get_sf_connection(name),
            FileQuerySplitterExtractor(fs, renderer, group_variables=True),
            worker_count=settings.validator_workers,
        ))
    return rules


def _print_results(results: list[TaskExecutionResult]) -> int:
    table = Table(title="Run summary")
    table.add_column("Task", style="bold")
    table.add_column("Type")
    table.add_column("Status")
    table.add_column("Error", overflow="fold")

    failed = 0
    for result in results:
        status = result.instance.status
        if not result.succeeded:
            failed += 1
        style = STATUS_STYLES.get(status, "white")
        table.add_row(
            result.instance.name,
            result.instance.asset.type,
            f"[{style}]{status.value}[/{style}]",
            str(result.error) if result.error else "",
        )

    console.print(table)
    return failed


# ─── Commands ───


@app.command()
def validate(
    path: str = typer.Argument(".", help="Pipeline directory, or a directory containing pipelines"),
    environment: Optional[str] = typer.Option(None, "--environment", "-e", help="Environment from the config file"),
):
    """Lint every pipeline found under a path."""
    settings = get_settings()
    fs = CachedFileSystem()
    builder = new_builder(BuilderConfig.from_settings(settings), fs)

    async def _validate():
        connections = _connections_for(path, settings, environment)
        renderer = JinjaRenderer(jinja_context_from_dates(*default_date_range()))
        rules = get_rules(fs) + _query_rules(connections, fs, settings, renderer)
        linter = Linter(get_pipeline_paths, builder, rules)
        try:
            return await linter.lint(path, settings.pipeline_file_name)
        finally:
            await connections.close_all()

    try:
        result = asyncio.run(_validate())
    except BlastError as e:
        _fail(e)

    printer = Printer(console)
    printer.print_issues(result)
    if not printer.print_summary(result):
        raise typer.Exit(1)


def _build_executors(
    scheduler: Scheduler,
    connections: ConnectionManager,
    fs,
    renderer,
    settings: BlastSettings,
) -> TaskTypeMap:
    executors = default_executors()
    main_operators = executors[TaskInstanceType.MAIN]
    checks = executors[TaskInstanceType.COLUMN_CHECK]

    if scheduler.will_run_task_of_type("bq.sql"):
        main_operators["bq.sql"] = bq_operators.BasicOperator(
            connections, WholeFileExtractor(fs, renderer), Materializer(),
        )
        checks["bq.sql"] = bq_operators.ColumnCheckOperator(connections)

    if scheduler.will_run_task_of_type("sf.sql"):
        main_operators["sf.sql"] = sf_operators.QueryOperator(
            connections, FileQuerySplitterExtractor(fs, renderer),
        )

    if scheduler.will_run_task_of_type("python"):
        main_operators["python"] = LocalOperator(home_dir=settings.home_dir)

    return executors


@app.command()
def run(
    path: str = typer.Argument(".", help="Pipeline directory, or a single task file"),
    downstream: bool = typer.Option(False, "--downstream", help="Also run every task downstream of the given task"),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", help="Number of concurrent workers"),
    start_date: Optional[str] = typer.Option(None, "--start-date", help="Interval start, YYYY-MM-DD[ HH:MM:SS]"),
    end_date: Optional[str] = typer.Option(None, "--end-date", help="Interval end, YYYY-MM-DD[ HH:MM:SS]"),
    environment: Optional[str] = typer.Option(None, "--environment", "-e", help="Environment from the config file"),
):
    """Run a pipeline, or a single task with --downstream optionally."""
    settings = get_settings()
    worker_count = workers if workers is not None else settings.workers
    if worker_count < 1:
        console.print("[red]Error:[/red] --workers must be at least 1")
        raise typer.Exit(1)

    start, end = _date_range(start_date, end_date)
    fs = CachedFileSystem()
    builder = new_builder(BuilderConfig.from_settings(settings), fs)
    task_path = path if os.path.isfile(path) else None

    try:
        pipeline_root = (
            get_pipeline_root_from_task(task_path, settings.pipeline_file_name) if task_path else path
        )
        pipeline = builder.create_pipeline_from_path(pipeline_root)
        task = _find_asset(pipeline, task_path) if task_path else None
    except BlastError as e:
        _fail(e)

    if task is None:
        try:
            issues = asyncio.run(Linter(get_pipeline_paths, builder, get_rules(fs)).lint_pipelines([pipeline]))
        except BlastError as e:
            _fail(e)
        if issues.error_count() > 0:
            printer = Printer(console)
            printer.print_issues(issues)
            printer.print_summary(issues)
            raise typer.Exit(1)

    async def _run() -> list[TaskExecutionResult]:
        scheduler = Scheduler(pipeline, work_queue_size=settings.work_queue_size)
        if task is not None:
            scheduler.mark_all(TaskInstanceStatus.SUCCEEDED)
            scheduler.mark_asset(task, TaskInstanceStatus.PENDING, downstream=downstream)

        connections = _connections_for(pipeline_root, settings, environment)
        renderer = JinjaRenderer(jinja_context_from_dates(start, end))
        executor = Concurrent(
            _build_executors(scheduler, connections, fs, renderer, settings),
            worker_count=worker_count,
        )

        console.print(
            f"Running [bold]{pipeline.name}[/bold] "
            f"({len(scheduler.get_task_instances_by_status(TaskInstanceStatus.PENDING))} task instances, "
            f"{worker_count} workers)"
        )
        executor.start(scheduler.work_queue, scheduler.results)
        try:
            results = await scheduler.run()
            await executor.wait()
        except BaseException:
            await executor.cancel()
            raise
        finally:
            await connections.close_all()
        return results

    try:
        results = asyncio.run(_run())
    except BlastError as e:
        _fail(e)

    failed = _print_results(results)
    if failed:
        console.print(f"\n[red]✘ {failed} of {len(results)} task instances did not succeed[/red]")
        raise typer.Exit(1)
    console.print(f"\n[green]✓ Successfully ran {len(results)} task instances[/green]")


@app.command()
def render(
    path: str = typer.Argument(..., help="Task file to render"),
    start_date: Optional[str] = typer.Option(None, "--start-date", help="Interval start, YYYY-MM-DD[ HH:MM:SS]"),
    end_date: Optional[str] = typer.Option(None, "--end-date", help="Interval end, YYYY-MM-DD[ HH:MM:SS]"),
):
    """Print the SQL a task would run, materialization included."""
    settings = get_settings()
    start, end = _date_range(start_date, end_date)
    fs = CachedFileSystem()
    renderer = JinjaRenderer(jinja_context_from_dates(start, end))

    try:
        pipeline_root = get_pipeline_root_from_task(path, settings.pipeline_file_name)
        pipeline = new_builder(BuilderConfig.from_settings(settings), fs).create_pipeline_from_path(pipeline_root)
        asset = _find_asset(pipeline, path)

        if asset.type == "bq.sql":
            queries = WholeFileExtractor(fs, renderer).extract_queries_from_file(asset.executable_file.path)
            sql = "\n".join(Materializer().render(asset, q.query) for q in queries)
        elif asset.type.endswith(".sql"):
            queries = FileQuerySplitterExtractor(fs, renderer).extract_queries_from_file(asset.executable_file.path)
            sql = "\n".join(q.to_script() for q in queries)
        else:
            raise BuildError(f"only SQL tasks can be rendered, '{asset.name}' is of type '{asset.type}'")
    except BlastError as e:
        _fail(e)

    console.print(Syntax(sql, "sql", theme="monokai", line_numbers=False))


@app.command()
def version():
    """Show blast version."""
    console.print(f"blast-pipelines v{__version__}")


if __name__ == "__main__":
    app()
