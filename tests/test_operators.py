"""Tests for the BigQuery, Snowflake and Python operators."""

import logging
import os
from unittest.mock import AsyncMock, MagicMock

import pytest

from blast.core.errors import ExecutionError
from blast.materializations.engine import Materializer
from blast.materializations.strategies import Materialization
from blast.operators.bigquery import BasicOperator, ColumnCheckOperator, connection_name_for
from blast.operators.python import (
    CommandRunner,
    LocalOperator,
    LocalPythonRunner,
    ModulePathFinder,
    Repo,
    RepoFinder,
    VirtualEnvInstaller,
)
from blast.operators.snowflake import QueryOperator
from blast.pipeline.models import Column, ColumnTest, ExecutableFile
from blast.query.extract import Query
from blast.scheduler.instance import AssetInstance, ColumnTestInstance
from conftest import make_pipeline, write_file


def instance_for(asset):
    return AssetInstance(pipeline=asset.pipeline, asset=asset)


def column_test_for(asset, column="id", test="not_null", value=None):
    return ColumnTestInstance(
        parent=instance_for(asset),
        column=Column(name=column),
        test=ColumnTest(name=test, value=value),
    )


def mock_connections(client):
    connections = MagicMock()
    connections.get_bq_connection.return_value = client
    connections.get_sf_connection.return_value = client
    return connections


def mock_client(rows=None):
    client = MagicMock()
    client.run_query_without_result = AsyncMock()
    client.select = AsyncMock(return_value=rows)
    return client


class TestConnectionName:
    def test_precedence(self):
        pipeline = make_pipeline(("a", "bq.sql", []))
        asset = pipeline.tasks[0]
        assert connection_name_for(asset) == "gcp-default"

        pipeline.default_connections = {"google_cloud_platform": "gcp-pipeline"}
        assert connection_name_for(asset) == "gcp-pipeline"

        asset.connections = {"google_cloud_platform": "gcp-task"}
        assert connection_name_for(asset) == "gcp-task"

        asset.connection = "gcp-explicit"
        assert connection_name_for(asset) == "gcp-explicit"


class TestBigQueryOperator:
    @pytest.mark.asyncio
    async def test_runs_materialized_query(self):
        asset = make_pipeline(("my.asset", "bq.sql", [])).tasks[0]
        asset.materialization = Materialization.parse(type="view")
        client = mock_client()
        extractor = MagicMock()
        extractor.extract_queries_from_file.return_value = [Query("SELECT 1")]

        operator = BasicOperator(mock_connections(client), extractor, Materializer())
        await operator.run(instance_for(asset))

        query = client.run_query_without_result.await_args.args[0]
        assert query.query == "CREATE OR REPLACE VIEW `my.asset` AS\nSELECT 1"

    @pytest.mark.asyncio
    async def test_no_query_is_a_noop(self):
        asset = make_pipeline(("a", "bq.sql", [])).tasks[0]
        client = mock_client()
        extractor = MagicMock()
        extractor.extract_queries_from_file.return_value = []

        await BasicOperator(mock_connections(client), extractor, Materializer()).run(instance_for(asset))
        client.run_query_without_result.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_multiple_queries_rejected(self):
        asset = make_pipeline(("a", "bq.sql", [])).tasks[0]
        extractor = MagicMock()
        extractor.extract_queries_from_file.return_value = [Query("SELECT 1"), Query("SELECT 2")]

        operator = BasicOperator(mock_connections(mock_client()), extractor, Materializer())
        with pytest.raises(ExecutionError, match="expected a single script"):
            await operator.run(instance_for(asset))


class TestColumnCheckOperator:
    @pytest.mark.asyncio
    async def test_not_null_passes(self):
        asset = make_pipeline(("orders", "bq.sql", [])).tasks[0]
        client = mock_client(rows=[[0]])
        await ColumnCheckOperator(mock_connections(client)).run(column_test_for(asset))

        query = client.select.await_args.args[0]
        assert query.query == "SELECT count(*) FROM `orders` WHERE `id` IS NULL"

    @pytest.mark.asyncio
    async def test_unique_fails_with_count(self):
        asset = make_pipeline(("orders", "bq.sql", [])).tasks[0]
        client = mock_client(rows=[[4]])
        with pytest.raises(ExecutionError, match="has 4 non-unique values"):
            await ColumnCheckOperator(mock_connections(client)).run(column_test_for(asset, test="unique"))

    @pytest.mark.asyncio
    async def test_accepted_values_query(self):
        asset = make_pipeline(("orders", "bq.sql", [])).tasks[0]
        client = mock_client(rows=[[0]])
        instance = column_test_for(asset, column="status", test="accepted_values", value=["open", 1])
        await ColumnCheckOperator(mock_connections(client)).run(instance)

        query = client.select.await_args.args[0]
        assert query.query == (
            'SELECT COUNT(*) FROM `orders` WHERE CAST(`status` as STRING) NOT IN ("open", "1")'
        )

    @pytest.mark.asyncio
    async def test_accepted_values_requires_list(self):
        asset = make_pipeline(("orders", "bq.sql", [])).tasks[0]
        instance = column_test_for(asset, test="accepted_values", value="open")
        with pytest.raises(ExecutionError, match="must be a list"):
            await ColumnCheckOperator(mock_connections(mock_client(rows=[[0]]))).run(instance)

    @pytest.mark.asyncio
    async def test_unexpected_result_shape(self):
        asset = make_pipeline(("orders", "bq.sql", [])).tasks[0]
        client = mock_client(rows=[["zero"]])
        with pytest.raises(ExecutionError, match="cannot cast result to integer"):
            await ColumnCheckOperator(mock_connections(client)).run(column_test_for(asset, test="positive"))

    @pytest.mark.asyncio
    async def test_unknown_check(self):
        asset = make_pipeline(("orders", "bq.sql", [])).tasks[0]
        with pytest.raises(ExecutionError, match="no column check named 'fresh'"):
            await ColumnCheckOperator(mock_connections(mock_client())).run(column_test_for(asset, test="fresh"))

    @pytest.mark.asyncio
    async def test_rejects_asset_instances(self):
        asset = make_pipeline(("orders", "bq.sql", [])).tasks[0]
        with pytest.raises(ExecutionError, match="is not a column test"):
            await ColumnCheckOperator(mock_connections(mock_client())).run(instance_for(asset))


class TestSnowflakeOperator:
    @pytest.mark.asyncio
    async def test_runs_queries_in_order(self):
        asset = make_pipeline(("a", "sf.sql", [])).tasks[0]
        client = mock_client()
        extractor = MagicMock()
        extractor.extract_queries_from_file.return_value = [Query("CREATE TABLE x (id INT)"), Query("INSERT INTO x VALUES (1)")]

        connections = mock_connections(client)
        await QueryOperator(connections, extractor).run(instance_for(asset))

        connections.get_sf_connection.assert_called_once_with("snowflake-default")
        ran = [call.args[0].query for call in client.run_query_without_result.await_args_list]
        assert ran == ["CREATE TABLE x (id INT)", "INSERT INTO x VALUES (1)"]

    @pytest.mark.asyncio
    async def test_materialization_not_supported(self):
        asset = make_pipeline(("a", "sf.sql", [])).tasks[0]
        asset.materialization = Materialization.parse(type="table")
        with pytest.raises(ExecutionError, match="materialization is not supported"):
            await QueryOperator(mock_connections(mock_client()), MagicMock()).run(instance_for(asset))


@pytest.fixture
def repo(tmp_path):
    (tmp_path / ".git").mkdir()
    write_file(tmp_path / "pipelines" / "daily" / "tasks" / "load.py", "print('loaded')\n")
    return tmp_path


class TestPythonPaths:
    def test_repo_finder(self, repo):
        found = RepoFinder().repo(str(repo / "pipelines" / "daily" / "tasks" / "load.py"))
        assert found.path == str(repo.resolve())

    def test_repo_finder_outside_git(self, tmp_path):
        path = write_file(tmp_path / "load.py", "")
        # tmp directories are not expected to live inside a git checkout
        if any((p / ".git").exists() for p in tmp_path.resolve().parents):
            pytest.skip("temporary directory is inside a git repository")
        with pytest.raises(ExecutionError, match="not inside a git repository"):
            RepoFinder().repo(str(path))

    def test_module_path(self, repo):
        executable = ExecutableFile(path=str(repo / "pipelines" / "daily" / "tasks" / "load.py"))
        module = ModulePathFinder().find_module_path(Repo(str(repo)), executable)
        assert module == "pipelines.daily.tasks.load"

    def test_module_outside_repo(self, repo, tmp_path_factory):
        other = tmp_path_factory.mktemp("other") / "x.py"
        with pytest.raises(ExecutionError, match="not in the repository"):
            ModulePathFinder().find_module_path(Repo(str(repo)), ExecutableFile(path=str(other)))

    def test_closest_requirements(self, repo):
        executable = ExecutableFile(path=str(repo / "pipelines" / "daily" / "tasks" / "load.py"))
        finder = ModulePathFinder()
        write_file(repo / "requirements.txt", "requests\n")
        assert finder.find_requirements_txt(Repo(str(repo)), executable) == str(repo / "requirements.txt")

        write_file(repo / "pipelines" / "daily" / "requirements.txt", "pandas\n")
        assert finder.find_requirements_txt(Repo(str(repo)), executable) == str(
            repo / "pipelines" / "daily" / "requirements.txt"
        )

    def test_no_requirements(self, repo):
        executable = ExecutableFile(path=str(repo / "pipelines" / "daily" / "tasks" / "load.py"))
        with pytest.raises(ExecutionError, match="no requirements.txt"):
            ModulePathFinder().find_requirements_txt(Repo(str(repo)), executable)


class TestPythonRunner:
    @pytest.mark.asyncio
    async def test_without_requirements(self):
        cmd = MagicMock()
        cmd.run = AsyncMock()
        runner = LocalPythonRunner(cmd, MagicMock())

        await runner.run(Repo("/repo"), "pipelines.load", None, label="load")
        cmd.run.assert_awaited_once_with(Repo("/repo"), "python3", ["-u", "-m", "pipelines.load"], label="load")

    @pytest.mark.asyncio
    async def test_with_requirements_uses_virtualenv(self, tmp_path):
        cmd = MagicMock()
        cmd.run = AsyncMock()
        installer = MagicMock()
        venv = tmp_path / "my venv"
        installer.ensure_virtualenv_exists = AsyncMock(return_value=venv)
        runner = LocalPythonRunner(cmd, installer)

        await runner.run(Repo("/repo"), "pipelines.load", "/repo/requirements.txt", label="load")

        assert [c.args[1:] for c in cmd.run.await_args_list] == [
            (str(venv / "bin" / "pip"), ["install", "-r", "/repo/requirements.txt", "--quiet", "--quiet"]),
            (str(venv / "bin" / "python"), ["-u", "-m", "pipelines.load"]),
        ]
        assert all(c.kwargs["label"] == "load" for c in cmd.run.await_args_list)

    @pytest.mark.asyncio
    async def test_failed_install_skips_execution(self, tmp_path):
        cmd = MagicMock()
        cmd.run = AsyncMock(side_effect=ExecutionError("command 'pip' exited with code 1"))
        installer = MagicMock()
        installer.ensure_virtualenv_exists = AsyncMock(return_value=tmp_path / "venv")
        runner = LocalPythonRunner(cmd, installer)

        with pytest.raises(ExecutionError, match="exited with code 1"):
            await runner.run(Repo("/repo"), "pipelines.load", "/repo/requirements.txt")
        cmd.run.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_virtualenv_created_once(self, tmp_path):
        cmd = MagicMock()

        async def create(repo, name, args, label=""):
            os.makedirs(args[-1])

        cmd.run = AsyncMock(side_effect=create)
        installer = VirtualEnvInstaller(cmd, home_dir=tmp_path)
        repo = Repo(str(tmp_path / "repo"))

        first = await installer.ensure_virtualenv_exists(repo, str(tmp_path / "repo" / "requirements.txt"))
        second = await installer.ensure_virtualenv_exists(repo, str(tmp_path / "repo" / "requirements.txt"))

        assert first == second
        assert first.parent == tmp_path / "virtualenvs"
        assert len(first.name) == 64
        cmd.run.assert_awaited_once()


class TestCommandRunner:
    @pytest.mark.asyncio
    async def test_logs_output(self, tmp_path, caplog, monkeypatch):
        monkeypatch.setattr(logging.getLogger("blast"), "propagate", True)
        caplog.set_level(logging.INFO, logger="blast.operators.python")

        await CommandRunner().run(Repo(str(tmp_path)), "/bin/sh", ["-c", "echo hello; echo oops >&2"], label="t")

        assert "[t] >> hello" in caplog.text
        assert "[t] >> oops" in caplog.text

    @pytest.mark.asyncio
    async def test_non_zero_exit(self, tmp_path):
        with pytest.raises(ExecutionError, match="exited with code 3"):
            await CommandRunner().run(Repo(str(tmp_path)), "/bin/sh", ["-c", "exit 3"])


class TestLocalOperator:
    @pytest.mark.asyncio
    async def test_runs_module_from_repo_root(self, repo):
        pipeline = make_pipeline(("load", "python", []))
        asset = pipeline.tasks[0]
        asset.executable_file = ExecutableFile(path=str((repo / "pipelines" / "daily" / "tasks" / "load.py").resolve()))

        runner = MagicMock()
        runner.run = AsyncMock()
        await LocalOperator(runner=runner).run(instance_for(asset))

        runner.run.assert_awaited_once_with(
            Repo(str(repo.resolve())), "pipelines.daily.tasks.load", None, label="load"
        )

    @pytest.mark.asyncio
    async def test_runner_failure_is_wrapped(self, repo):
        asset = make_pipeline(("load", "python", [])).tasks[0]
        asset.executable_file = ExecutableFile(path=str((repo / "pipelines" / "daily" / "tasks" / "load.py").resolve()))

        runner = MagicMock()
        runner.run = AsyncMock(side_effect=ExecutionError("command 'python3' exited with code 1"))
        with pytest.raises(ExecutionError, match="failed to execute Python script"):
            await LocalOperator(runner=runner).run(instance_for(asset))
