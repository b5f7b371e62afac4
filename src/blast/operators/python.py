"""Runs ``python`` assets as modules of the repository they live in."""

from __future__ import annotations
import asyncio
import hashlib
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from blast.core.errors import ExecutionError
from blast.pipeline.models import ExecutableFile
from blast.scheduler.instance import AnyTaskInstance

logger = logging.getLogger("blast.operators.python")

OUTPUT_PREFIX = ">> "


@dataclass
class Repo:
    path: str


class RepoFinder:
    """Finds the git repository that contains a path."""

    def repo(self, path: str) -> Repo:
        current = Path(path).resolve()
        if current.is_file():
            current = current.parent
        for directory in (current, *current.parents):
            if (directory / ".git").exists():
                return Repo(path=str(directory))
        raise ExecutionError(f"'{path}' is not inside a git repository")


class NoRequirementsFoundError(ExecutionError):
    def __init__(self):
        super().__init__("no requirements.txt file found for the given module")


class ModulePathFinder:
    def _relative_to_repo(self, repo: Repo, executable: ExecutableFile) -> str:
        executable_path = os.path.normpath(executable.path)
        if os.path.commonpath([executable_path, repo.path]) != repo.path:
            raise ExecutionError("executable is not in the repository")
        return os.path.relpath(executable_path, repo.path)

    def find_module_path(self, repo: Repo, executable: ExecutableFile) -> str:
        """``pipelines/ingest/orders.py`` becomes ``pipelines.ingest.orders``."""
        module = self._relative_to_repo(repo, executable).replace(os.sep, ".")
        if module.endswith(".py"):
            module = module[: -len(".py")]
        return module

    def find_requirements_txt(self, repo: Repo, executable: ExecutableFile) -> str:
        """Closest requirements.txt walking up from the executable to the repo root."""
        self._relative_to_repo(repo, executable)
        directory = os.path.dirname(os.path.normpath(executable.path))
        while True:
            candidate = os.path.join(directory, "requirements.txt")
            if os.path.isfile(candidate):
                return candidate
            if directory == repo.path or directory == os.path.dirname(directory):
                break
            directory = os.path.dirname(directory)
        raise NoRequirementsFoundError()


class CommandRunner:
    """Spawns a subprocess in the repository and logs its output line by line."""

    async def run(self, repo: Repo, name: str, args: list[str], label: str = "") -> None:
        process = await asyncio.create_subprocess_exec(
            name, *args,
            cwd=repo.path,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )

        async def consume(stream: asyncio.StreamReader) -> None:
            while True:
                line = await stream.readline()
                if not line:
                    return
                text = line.decode(errors="replace").rstrip("\n")
                logger.info(f"[{label}] {OUTPUT_PREFIX}{text}" if label else f"{OUTPUT_PREFIX}{text}")

        await asyncio.gather(consume(process.stdout), consume(process.stderr))
        code = await process.wait()
        if code != 0:
            raise ExecutionError(f"command '{name}' exited with code {code}")


class VirtualEnvInstaller:
    """Creates one virtualenv per requirements.txt under the blast home."""

    def __init__(self, cmd: CommandRunner, home_dir: str | Path = "~/.blast"):
        self.cmd = cmd
        self.venvs_dir = Path(home_dir).expanduser() / "virtualenvs"
        self._lock = asyncio.Lock()

    def venv_path(self, repo: Repo, requirements_txt: str) -> Path:
        rel_path = os.path.relpath(requirements_txt, repo.path)
        return self.venvs_dir / hashlib.sha256(rel_path.encode()).hexdigest()

    async def ensure_virtualenv_exists(self, repo: Repo, requirements_txt: str) -> Path:
        venv = self.venv_path(repo, requirements_txt)
        async with self._lock:
            if venv.is_dir():
                return venv
            self.venvs_dir.mkdir(mode=0o755, parents=True, exist_ok=True)
            await self.cmd.run(repo, "python3", ["-m", "venv", str(venv)])
        return venv


class LocalPythonRunner:
    def __init__(self, cmd: CommandRunner, installer: VirtualEnvInstaller):
        self.cmd = cmd
        self.installer = installer

    async def run(self, repo: Repo, module: str, requirements_txt: str | None, label: str = "") -> None:
        if not requirements_txt:
            await self.cmd.run(repo, "python3", ["-u", "-m", module], label=label)
            return

        logger.info(f"[{label}] asset has dependencies, installing the packages to an isolated environment...")
        venv = await self.installer.ensure_virtualenv_exists(repo, requirements_txt)
        logger.info(f"[{label}] virtualenv is ready, installing the requirements and starting execution...")

        bin_dir = venv / "bin"
        await self.cmd.run(
            repo, str(bin_dir / "pip"),
            ["install", "-r", requirements_txt, "--quiet", "--quiet"],
            label=label,
        )
        await self.cmd.run(repo, str(bin_dir / "python"), ["-u", "-m", module], label=label)


class LocalOperator:
    """Runs a Python asset with ``python3 -m`` from its repository root."""

    def __init__(
        self,
        repo_finder: RepoFinder | None = None,
        module_finder: ModulePathFinder | None = None,
        runner: LocalPythonRunner | None = None,
        home_dir: str | Path = "~/.blast",
    ):
        cmd = CommandRunner()
        self.repo_finder = repo_finder or RepoFinder()
        self.module_finder = module_finder or ModulePathFinder()
        self.runner = runner or LocalPythonRunner(cmd, VirtualEnvInstaller(cmd, home_dir))

    async def run(self, instance: AnyTaskInstance) -> None:
        executable = instance.asset.executable_file
        try:
            repo = self.repo_finder.repo(executable.path)
            module = self.module_finder.find_module_path(repo, executable)
        except ExecutionError as e:
            raise ExecutionError(f"failed to locate module for '{instance.name}': {e}") from e

        try:
            requirements_txt = self.module_finder.find_requirements_txt(repo, executable)
        except NoRequirementsFoundError:
            requirements_txt = None

        try:
            await self.runner.run(repo, module, requirements_txt, label=instance.name)
        except ExecutionError as e:
            raise ExecutionError(f"failed to execute Python script: {e}") from e
