"""
Fixed-format HTML fragments written around each document.

Every document in a run produces exactly two fragments: a header, then either
the rendered body or an error notice.
"""

from html import escape


class FragmentFormatter:
    """Builds the header, body and error-notice fragments for a document."""

    HEADER_TEMPLATE = "<hr><h3>Contents of {name}</h3>\n"
    BODY_TEMPLATE = "<hr><h3>Contents of {name} (Formatted)</h3>\n{html}"
    ERROR_TEMPLATE = '<p class="error">Error loading {name}</p>'

    def header(self, identifier: str) -> str:
        """Separator written before a document is read."""
        return self.HEADER_TEMPLATE.format(name=escape(identifier))

    def body(self, identifier: str, html: str) -> str:
        """Second header followed by the rendered HTML of a document."""
        return self.BODY_TEMPLATE.format(name=escape(identifier), html=html)

    def error_notice(self, identifier: str) -> str:
        """User-visible notice written in place of an unreadable document."""
        return self.ERROR_TEMPLATE.format(name=escape(identifier))
