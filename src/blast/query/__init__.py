"""Query extraction from SQL files and template rendering."""

from blast.query.extract import FileQuerySplitterExtractor, Query, WholeFileExtractor
from blast.query.render import JinjaRenderer, Renderer, jinja_context_from_dates

__all__ = [
    "FileQuerySplitterExtractor",
    "JinjaRenderer",
    "Query",
    "Renderer",
    "WholeFileExtractor",
    "jinja_context_from_dates",
]
