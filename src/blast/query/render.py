"""Template rendering for SQL files."""

from __future__ import annotations
import re
import threading
from datetime import datetime, timedelta
from typing import Any, Protocol

from jinja2 import Environment, Template, TemplateError

from blast.core.errors import BuildError

VARIABLE_PATTERN = re.compile(r"\{\{(.*?)\}\}", re.DOTALL)


class QueryRenderer(Protocol):
    def render(self, query: str) -> str: ...


class Renderer:
    """Replaces ``{{ name }}`` with values from a mapping.

    Variables without a value are left in place.
    """

    def __init__(self, args: dict[str, str] | None = None):
        self.args = args or {}

    def render(self, query: str) -> str:
        def replace(match: re.Match) -> str:
            name = match.group(1).strip(" ")
            if name in self.args:
                return str(self.args[name])
            return match.group(0)

        return VARIABLE_PATTERN.sub(replace, query)


class JinjaRenderer:
    """Renders queries as Jinja templates against a fixed context.

    Compiling a template goes through a lock; compiled templates are cached
    and rendered without it.
    """

    def __init__(self, context: dict[str, Any] | None = None):
        self.context = context or {}
        self._env = Environment(keep_trailing_newline=True)
        self._templates: dict[str, Template] = {}
        self._compile_lock = threading.Lock()

    def _compile(self, source: str) -> Template:
        with self._compile_lock:
            template = self._templates.get(source)
            if template is None:
                template = self._env.from_string(source)
                self._templates[source] = template
            return template

    def render(self, query: str) -> str:
        try:
            return self._compile(query).render(**self.context)
        except TemplateError as e:
            raise BuildError(f"failed to render query template: {e}") from e


def jinja_context_from_dates(start: datetime, end: datetime) -> dict[str, str]:
    """Template variables describing the interval a run covers."""
    return {
        "ds": start.strftime("%Y-%m-%d"),
        "ds_nodash": start.strftime("%Y%m%d"),
        "start_date": start.strftime("%Y-%m-%d"),
        "start_date_nodash": start.strftime("%Y%m%d"),
        "start_datetime": start.strftime("%Y-%m-%dT%H:%M:%S"),
        "end_date": end.strftime("%Y-%m-%d"),
        "end_date_nodash": end.strftime("%Y%m%d"),
        "end_datetime": end.strftime("%Y-%m-%dT%H:%M:%S"),
    }


def default_date_range(now: datetime | None = None) -> tuple[datetime, datetime]:
    """Yesterday midnight to today midnight."""
    today = (now or datetime.now()).replace(hour=0, minute=0, second=0, microsecond=0)
    return today - timedelta(days=1), today
