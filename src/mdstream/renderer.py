"""
Markdown to HTML rendering.

The pipeline treats a renderer as any callable taking the full text of a
document and returning HTML. The converter is not streaming-aware, so it is
always handed a complete document.
"""

from typing import Callable, Iterable, Optional

import markdown

Renderer = Callable[[str], str]

DEFAULT_EXTENSIONS = ("tables", "fenced_code")


class MarkdownRenderer:
    """Renders Markdown with the ``markdown`` package."""

    def __init__(self, extensions: Optional[Iterable[str]] = None):
        self.extensions = list(DEFAULT_EXTENSIONS if extensions is None else extensions)

    def __call__(self, text: str) -> str:
        return markdown.markdown(text, extensions=self.extensions)
