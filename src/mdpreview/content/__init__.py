"""Content layer — markdown rendering and file watching.

Turns the previewed markdown file into HTML and reports changes to it
(and, in development mode, to the source tree).
"""

from mdpreview.content.renderer import MarkdownRenderer, highlight_css
from mdpreview.content.watcher import (
    DEFAULT_SOURCE_EXTENSIONS,
    ChangeWatcher,
    ContentFilter,
    SourceFilter,
    is_source_change,
)

__all__ = [
    "DEFAULT_SOURCE_EXTENSIONS",
    "ChangeWatcher",
    "ContentFilter",
    "MarkdownRenderer",
    "SourceFilter",
    "highlight_css",
    "is_source_change",
]
