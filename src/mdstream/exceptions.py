"""
Exception hierarchy for mdstream.

Only ``DocumentUnreadableError`` is ever recovered inside the pipeline; every
other error is handled by whichever layer owns the resource involved.
"""


class MdstreamError(Exception):
    """Base class for all mdstream errors."""


class ConfigurationError(MdstreamError):
    """Raised when configuration values or files are invalid."""


class DocumentUnreadableError(MdstreamError):
    """A single document could not be read from its source."""

    def __init__(self, identifier: str, reason: str):
        super().__init__(f"Cannot read document {identifier}: {reason}")
        self.identifier = identifier
        self.reason = reason


class SinkUnavailableError(MdstreamError):
    """The output sink no longer accepts writes."""


class TopicNotFoundError(MdstreamError):
    """Raised when a topic key has no configured document list."""

    def __init__(self, topic: str):
        super().__init__(f"Unknown topic: {topic}")
        self.topic = topic


class PipelineStateError(MdstreamError):
    """Raised when a pipeline run is driven from an invalid state."""
