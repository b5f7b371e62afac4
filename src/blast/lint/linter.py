"""Linter: builds every pipeline under a path and runs rules over them."""

from __future__ import annotations
import logging
import os
from dataclasses import dataclass, field
from typing import Callable, Protocol

from blast.core.errors import BlastError, LintError, NestingError
from blast.pipeline.builder import Builder
from blast.pipeline.models import Asset, Pipeline

logger = logging.getLogger("blast.lint")

PipelineFinder = Callable[[str, str], "list[str]"]


@dataclass
class Issue:
    task: Asset | None
    description: str


class Rule(Protocol):
    name: str

    async def validate(self, pipeline: Pipeline) -> list[Issue]:
        """Return the issues found; raise to abort linting."""
        ...


@dataclass(eq=False)
class SimpleRule:
    """A rule backed by a plain function."""
    name: str
    checker: Callable[[Pipeline], list[Issue]]

    async def validate(self, pipeline: Pipeline) -> list[Issue]:
        return self.checker(pipeline)


@dataclass
class PipelineIssues:
    pipeline: Pipeline
    issues: dict[str, list[Issue]] = field(default_factory=dict)

    def count(self) -> int:
        return sum(len(issues) for issues in self.issues.values())


@dataclass
class PipelineAnalysisResult:
    pipelines: list[PipelineIssues] = field(default_factory=list)

    def error_count(self) -> int:
        return sum(p.count() for p in self.pipelines)


def ensure_no_nested_pipelines(pipeline_paths: list[str]) -> None:
    """Raise NestingError if any pipeline root sits inside another one."""
    for i, parent in enumerate(pipeline_paths):
        prefix = parent.rstrip(os.sep) + os.sep
        for child in pipeline_paths[i + 1:]:
            if child.startswith(prefix):
                raise NestingError(parent, child)


class Linter:
    """Runs a list of rules over every pipeline found under a root path.

    Usage:
        linter = Linter(get_pipeline_paths, builder, get_rules())
        result = await linter.lint("pipelines/", "pipeline.yml")
        print(result.error_count())
    """

    def __init__(self, find_pipelines: PipelineFinder, builder: Builder, rules: list[Rule]):
        self.find_pipelines = find_pipelines
        self.builder = builder
        self.rules = rules

    async def lint(self, root_path: str, pipeline_definition_file_name: str) -> PipelineAnalysisResult:
        if not os.path.exists(root_path):
            raise LintError(
                f"the given pipeline path '{root_path}' does not exist, please make sure you gave the right path"
            )

        pipeline_paths = sorted(self.find_pipelines(root_path, pipeline_definition_file_name))
        if not pipeline_paths:
            raise LintError(f"no pipelines found in path '{root_path}'")

        ensure_no_nested_pipelines(pipeline_paths)

        pipelines = []
        for path in pipeline_paths:
            logger.debug(f"Building pipeline at '{path}'")
            pipelines.append(self.builder.create_pipeline_from_path(path))

        return await self.lint_pipelines(pipelines)

    async def lint_pipelines(self, pipelines: list[Pipeline]) -> PipelineAnalysisResult:
        result = PipelineAnalysisResult()
        for pipeline in pipelines:
            result.pipelines.append(await self.lint_pipeline(pipeline))
        return result

    async def lint_pipeline(self, pipeline: Pipeline) -> PipelineIssues:
        pipeline_issues = PipelineIssues(pipeline=pipeline)
        for rule in self.rules:
            logger.debug(f"Checking rule '{rule.name}' on pipeline '{pipeline.name}'")
            try:
                issues = await rule.validate(pipeline)
            except BlastError as e:
                raise LintError(f"failed to validate rule '{rule.name}' on pipeline '{pipeline.name}': {e}") from e

            if issues:
                pipeline_issues.issues[rule.name] = issues
        return pipeline_issues
