"""Extracting runnable queries out of SQL files."""

from __future__ import annotations
from dataclasses import dataclass, field

from blast.core.errors import BuildError
from blast.core.fs import FileSystem
from blast.query.render import QueryRenderer, Renderer

VARIABLE_PREFIXES = ("set", "declare")
SKIPPED_PREFIXES = ("use",)


@dataclass
class Query:
    """A single statement, plus the variable definitions it relies on."""
    query: str
    variable_definitions: list[str] = field(default_factory=list)

    def _with_variables(self, statement: str) -> str:
        prefix = ""
        if self.variable_definitions:
            prefix = ";\n".join(self.variable_definitions) + ";\n"
        statement = prefix + statement
        if not statement.endswith(";"):
            statement += ";"
        return statement

    def to_explain_query(self) -> str:
        return self._with_variables("EXPLAIN " + self.query)

    def to_script(self) -> str:
        return self._with_variables(self.query)

    def __str__(self) -> str:
        return self.query


def _clean_statement(statement: str) -> str:
    lines = [
        line for line in statement.split("\n")
        if line.strip() and not line.strip().startswith("--")
    ]
    return "\n".join(lines).strip()


def split_queries(content: str, group_variables: bool = False) -> list[Query]:
    """Split on ``;`` and drop blank lines, ``--`` comment lines and empty statements.

    With ``group_variables`` set, ``set``/``declare`` statements are attached
    to every later query instead of being returned themselves, and ``use``
    statements are skipped.
    """
    queries: list[Query] = []
    variables: list[str] = []
    for statement in content.split(";"):
        cleaned = _clean_statement(statement)
        if not cleaned:
            continue

        if group_variables:
            lowered = cleaned.lower()
            if lowered.startswith(VARIABLE_PREFIXES):
                variables.append(cleaned)
                continue
            if lowered.startswith(SKIPPED_PREFIXES):
                continue

        queries.append(Query(query=cleaned, variable_definitions=list(variables)))
    return queries


class FileQuerySplitterExtractor:
    """Renders a SQL file, then splits it into individual queries."""

    def __init__(
        self,
        fs: FileSystem | None = None,
        renderer: QueryRenderer | None = None,
        group_variables: bool = False,
    ):
        self.fs = fs or FileSystem()
        self.renderer = renderer or Renderer()
        self.group_variables = group_variables

    def extract_queries_from_string(self, content: str) -> list[Query]:
        return split_queries(self.renderer.render(content), self.group_variables)

    def extract_queries_from_file(self, path: str) -> list[Query]:
        try:
            content = self.fs.read_text(path)
        except OSError as e:
            raise BuildError(f"could not read file '{path}'") from e
        return self.extract_queries_from_string(content)


class WholeFileExtractor:
    """Renders a SQL file and returns it as one script."""

    def __init__(self, fs: FileSystem | None = None, renderer: QueryRenderer | None = None):
        self.fs = fs or FileSystem()
        self.renderer = renderer or Renderer()

    def extract_queries_from_string(self, content: str) -> list[Query]:
        rendered = self.renderer.render(content).strip()
        # Wrapped by the materializer, so no trailing terminator.
        rendered = rendered.rstrip(";").rstrip()
        if not rendered:
            return []
        return [Query(query=rendered)]

    def extract_queries_from_file(self, path: str) -> list[Query]:
        try:
            content = self.fs.read_text(path)
        except OSError as e:
            raise BuildError(f"could not read file '{path}'") from e
        return self.extract_queries_from_string(content)
