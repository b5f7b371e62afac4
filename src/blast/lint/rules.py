"""Built-in lint rules."""

from __future__ import annotations
import re
import stat
from collections import Counter

from apscheduler.triggers.cron import CronTrigger

from blast.core.fs import FileSystem
from blast.dag.resolver import DAGResolver
from blast.executor.operator import DEFAULT_TASK_TYPES
from blast.lint.linter import Issue, Rule, SimpleRule
from blast.pipeline.models import Pipeline

TASK_NAME_PATTERN = re.compile(r"^[\w.\-]+$", re.ASCII)
PIPELINE_NAME_PATTERN = re.compile(r"^[\w\-]+$", re.ASCII)
VALID_EXECUTABLE_MODES = (0o644, 0o755)

CRON_ALIASES = {
    "@yearly": "0 0 1 1 *",
    "@annually": "0 0 1 1 *",
    "@monthly": "0 0 1 * *",
    "@weekly": "0 0 * * 0",
    "@daily": "0 0 * * *",
    "@midnight": "0 0 * * *",
    "@hourly": "0 * * * *",
}


def ensure_task_name_is_valid(pipeline: Pipeline) -> list[Issue]:
    issues = []
    for task in pipeline.tasks:
        if not task.name:
            issues.append(Issue(task, "A task must have a name"))
        elif not TASK_NAME_PATTERN.match(task.name):
            issues.append(Issue(
                task,
                "A task name must only contain letters, digits, underscores, dashes and dots",
            ))
    return issues


def ensure_task_name_is_unique(pipeline: Pipeline) -> list[Issue]:
    counts = Counter(task.name for task in pipeline.tasks if task.name)
    return [
        Issue(task, f"Task name '{task.name}' is used by {counts[task.name]} tasks, names must be unique")
        for task in pipeline.tasks
        if task.name and counts[task.name] > 1
    ]


def ensure_dependency_exists(pipeline: Pipeline) -> list[Issue]:
    issues = []
    for task in pipeline.tasks:
        for dep in task.depends_on:
            if pipeline.get_asset_by_name(dep) is None:
                issues.append(Issue(task, f"Dependency '{dep}' does not exist"))
    return issues


def ensure_executable_file_is_valid(fs: FileSystem):
    def checker(pipeline: Pipeline) -> list[Issue]:
        issues = []
        for task in pipeline.tasks:
            if task.is_comment_task or not task.executable_file.path:
                continue

            path = task.executable_file.path
            if not fs.exists(path):
                issues.append(Issue(task, f"Executable file does not exist: {path}"))
                continue
            if fs.is_dir(path):
                issues.append(Issue(task, f"Executable file is a directory: {path}"))
                continue

            st = fs.stat(path)
            if st.st_size == 0:
                issues.append(Issue(task, f"Executable file is empty: {path}"))

            mode = stat.S_IMODE(st.st_mode)
            if mode not in VALID_EXECUTABLE_MODES:
                issues.append(Issue(
                    task,
                    f"Executable file must have 0644 or 0755 permissions, found {mode:04o}: {path}",
                ))
        return issues

    return checker


def ensure_pipeline_schedule_is_valid(pipeline: Pipeline) -> list[Issue]:
    schedule = (pipeline.schedule or "").strip()
    if not schedule:
        return []

    try:
        CronTrigger.from_crontab(CRON_ALIASES.get(schedule, schedule))
    except ValueError as e:
        return [Issue(None, f"Invalid cron schedule '{schedule}': {e}")]
    return []


def ensure_pipeline_name_is_valid(pipeline: Pipeline) -> list[Issue]:
    if not pipeline.name:
        return [Issue(None, "A pipeline must have a name")]
    if not PIPELINE_NAME_PATTERN.match(pipeline.name):
        return [Issue(
            None,
            f"Invalid pipeline name '{pipeline.name}', use letters, digits, underscores and dashes only",
        )]
    return []


def ensure_task_type_is_valid(pipeline: Pipeline) -> list[Issue]:
    known = set(DEFAULT_TASK_TYPES)
    issues = []
    for task in pipeline.tasks:
        if not task.type:
            issues.append(Issue(task, "A task must have a type"))
        elif task.type not in known:
            issues.append(Issue(task, f"Invalid task type '{task.type}'"))
    return issues


def ensure_pipeline_is_acyclic(pipeline: Pipeline) -> list[Issue]:
    cycle = DAGResolver.from_pipeline(pipeline).detect_cycles()
    if cycle is None:
        return []
    return [Issue(
        pipeline.get_asset_by_name(cycle[0]),
        f"The pipeline has a dependency cycle: {' -> '.join(cycle)}",
    )]


def get_rules(fs: FileSystem | None = None) -> list[Rule]:
    """The rules every pipeline is checked against."""
    fs = fs or FileSystem()
    return [
        SimpleRule("task-name-valid", ensure_task_name_is_valid),
        SimpleRule("task-name-unique", ensure_task_name_is_unique),
        SimpleRule("dependency-exists", ensure_dependency_exists),
        SimpleRule("valid-executable-file", ensure_executable_file_is_valid(fs)),
        SimpleRule("valid-pipeline-schedule", ensure_pipeline_schedule_is_valid),
        SimpleRule("valid-pipeline-name", ensure_pipeline_name_is_valid),
        SimpleRule("valid-task-type", ensure_task_type_is_valid),
        SimpleRule("acyclic-pipeline", ensure_pipeline_is_acyclic),
    ]
