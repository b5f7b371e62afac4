"""Console output for lint results."""

from __future__ import annotations
import os

from rich.console import Console
from rich.markup import escape

from blast.lint.linter import Issue, PipelineAnalysisResult


class Printer:
    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    def print_issues(self, analysis: PipelineAnalysisResult) -> None:
        for pipeline_issues in analysis.pipelines:
            pipeline = pipeline_issues.pipeline
            pipeline_dir = os.path.dirname(pipeline.definition_file.path)
            self.console.print()
            self.console.print(
                f"[bold blue]Pipeline: {escape(pipeline.name)}[/bold blue] ({escape(pipeline_dir)})"
            )

            if not pipeline_issues.issues:
                self.console.print("[green]  No issues found[/green]")
                continue

            # Group by task, keeping the first-seen order.
            grouped: dict[int, tuple[object, list[tuple[str, Issue]]]] = {}
            for rule_name, issues in pipeline_issues.issues.items():
                for issue in issues:
                    key = id(issue.task)
                    if key not in grouped:
                        grouped[key] = (issue.task, [])
                    grouped[key][1].append((rule_name, issue))

            for task, task_issues in grouped.values():
                if task is None:
                    header = f"  {escape(pipeline.name)} ({escape(pipeline.definition_file.path)})"
                else:
                    header = f"  {escape(task.name)} ({escape(pipeline.relative_task_path(task))})"
                self.console.print(f"[bold yellow]{header}[/bold yellow]")

                for index, (rule_name, issue) in enumerate(task_issues):
                    connector = "└──" if index == len(task_issues) - 1 else "├──"
                    self.console.print(
                        f"[red]    {connector} {escape(issue.description)}[/red] [dim]({rule_name})[/dim]"
                    )
                self.console.print()

    def print_summary(self, analysis: PipelineAnalysisResult) -> bool:
        """Print the closing line; returns True when no issues were found."""
        pipeline_count = len(analysis.pipelines)
        pipeline_str = "pipeline" if pipeline_count == 1 else "pipelines"
        error_count = analysis.error_count()

        if error_count > 0:
            issue_str = "issue" if error_count == 1 else "issues"
            self.console.print(
                f"\n[red]✘ Checked {pipeline_count} {pipeline_str} and found "
                f"{error_count} {issue_str}, please check above.[/red]"
            )
            return False

        task_count = sum(len(p.pipeline.tasks) for p in analysis.pipelines)
        self.console.print(
            f"\n[green]✓ Successfully validated {task_count} tasks across "
            f"{pipeline_count} {pipeline_str}, all good.[/green]"
        )
        return True
