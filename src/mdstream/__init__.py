"""
mdstream - serves Markdown documents as HTML, streamed one document at a time.

Topics map to ordered lists of Markdown files. A request for a topic reads
each file in turn, converts it to HTML and writes it to the response before
touching the next file, so the output order always matches the list and only
one document is held in memory at once.
"""

__version__ = "1.0.0"

from .config import ServerConfig, TopicCatalog, load_config
from .document_source import FileDocumentSource
from .fragments import FragmentFormatter
from .pipeline import PipelineRun, PipelineState, SequentialPipeline
from .renderer import MarkdownRenderer
from .server import ContentServer
from .sinks import QueueSink, TextStreamSink

__all__ = [
    "__version__",
    "ContentServer",
    "FileDocumentSource",
    "FragmentFormatter",
    "MarkdownRenderer",
    "PipelineRun",
    "PipelineState",
    "QueueSink",
    "SequentialPipeline",
    "ServerConfig",
    "TextStreamSink",
    "TopicCatalog",
    "load_config",
]
