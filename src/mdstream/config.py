"""
Server configuration and the topic catalogue.

Values are layered: built-in defaults, then an optional TOML file, then
``MDSTREAM_*`` environment variables, then explicit overrides (command-line
flags). The TOML file may contain ``[server]``, ``[pipeline]`` and
``[topics]`` tables::

    [server]
    host = "0.0.0.0"
    port = 8080
    content_dir = "content"

    [pipeline]
    chunk_size = 65536
    reader_workers = 4
    markdown_extensions = ["tables", "fenced_code"]

    [topics]
    intro = ["welcome.md", "install.md"]
"""

import os
import tomllib
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from mdstream.exceptions import ConfigurationError, TopicNotFoundError

STATIC_DIR = Path(__file__).parent / "static"

# The order of each list is the order documents are streamed in
DEFAULT_TOPICS: Dict[str, Tuple[str, ...]] = {
    "tema1": ("tema1_doc1.md", "tema1_doc2.md", "tema1_doc3.md"),
    "tema2": ("tema2_doc1.md", "tema2_doc2.md", "tema2_doc3.md"),
}


class TopicCatalog:
    """Maps topic keys to their ordered document lists."""

    def __init__(self, topics: Mapping[str, Any]):
        self._topics: Dict[str, Tuple[str, ...]] = {}
        for topic, documents in topics.items():
            if isinstance(documents, str) or not all(
                isinstance(doc, str) for doc in documents
            ):
                raise ConfigurationError(
                    f"Topic {topic!r} must be a list of document names"
                )
            self._topics[str(topic)] = tuple(documents)

    def documents_for(self, topic: Optional[str]) -> Tuple[str, ...]:
        """
        Get the ordered document list for a topic.

        Raises:
            TopicNotFoundError: If the topic is missing or unknown
        """
        if topic is None or topic not in self._topics:
            raise TopicNotFoundError(str(topic))
        return self._topics[topic]

    def topics(self) -> List[str]:
        return list(self._topics)

    def __contains__(self, topic: object) -> bool:
        return topic in self._topics

    def __len__(self) -> int:
        return len(self._topics)


@dataclass(frozen=True)
class ServerConfig:
    """Complete server configuration."""

    host: str = "127.0.0.1"
    port: int = 8080
    content_dir: Path = Path("content")
    static_dir: Path = STATIC_DIR
    chunk_size: int = 64 * 1024
    reader_workers: int = 4
    sink_queue_size: int = 1
    markdown_extensions: Tuple[str, ...] = ("tables", "fenced_code")
    topics: Mapping[str, Tuple[str, ...]] = field(
        default_factory=lambda: dict(DEFAULT_TOPICS)
    )

    def __post_init__(self) -> None:
        if not 0 < self.port < 65536:
            raise ConfigurationError(f"Port out of range: {self.port}")
        for name in ("chunk_size", "reader_workers", "sink_queue_size"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive")
        # Validates the topic lists
        TopicCatalog(self.topics)

    @property
    def catalog(self) -> TopicCatalog:
        return TopicCatalog(self.topics)

    def with_overrides(self, **overrides: Any) -> "ServerConfig":
        """Return a copy with the non-None overrides applied."""
        return replace(self, **_coerce(overrides))


_SECTIONS = {
    "server": ("host", "port", "content_dir", "static_dir"),
    "pipeline": ("chunk_size", "reader_workers", "sink_queue_size", "markdown_extensions"),
}

_ENVIRONMENT = {
    "MDSTREAM_HOST": "host",
    "MDSTREAM_PORT": "port",
    "MDSTREAM_CONTENT_DIR": "content_dir",
}


def _coerce(values: Mapping[str, Any]) -> Dict[str, Any]:
    """Convert raw values to the field types of ServerConfig, dropping None."""
    types = {f.name: f.type for f in fields(ServerConfig)}
    coerced: Dict[str, Any] = {}
    for name, value in values.items():
        if value is None:
            continue
        if name not in types:
            raise ConfigurationError(f"Unknown configuration option: {name}")
        try:
            if name in ("content_dir", "static_dir"):
                value = Path(value).expanduser()
            elif name in ("port", "chunk_size", "reader_workers", "sink_queue_size"):
                value = int(value)
            elif name == "markdown_extensions":
                if isinstance(value, str) or not all(isinstance(v, str) for v in value):
                    raise ConfigurationError(
                        "markdown_extensions must be a list of extension names"
                    )
                value = tuple(value)
            elif name == "topics":
                value = {key: tuple(docs) for key, docs in value.items()}
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid value for {name}: {value!r}") from e
        coerced[name] = value
    return coerced


def load_config_file(path: Path) -> Dict[str, Any]:
    """
    Read a TOML configuration file into a flat option dictionary.

    Raises:
        ConfigurationError: If the file is missing, unparsable or has unknown keys
    """
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except OSError as e:
        raise ConfigurationError(f"Cannot read configuration file {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid configuration file {path}: {e}") from e

    options: Dict[str, Any] = {}
    for section, allowed in _SECTIONS.items():
        table = data.get(section, {})
        if not isinstance(table, dict):
            raise ConfigurationError(f"[{section}] must be a table")
        for key, value in table.items():
            if key not in allowed:
                raise ConfigurationError(f"Unknown option [{section}] {key}")
            options[key] = value

    if "topics" in data:
        topics = data["topics"]
        if not isinstance(topics, dict):
            raise ConfigurationError("[topics] must be a table")
        for topic, documents in topics.items():
            if not isinstance(documents, list):
                raise ConfigurationError(
                    f"Topic {topic!r} must be a list of document names"
                )
        options["topics"] = topics

    # Relative directories in a config file are relative to the file itself
    for key in ("content_dir", "static_dir"):
        if key in options and not Path(options[key]).expanduser().is_absolute():
            options[key] = Path(path).parent / options[key]

    return options


def load_config(
    config_file: Optional[Path] = None, **overrides: Any
) -> ServerConfig:
    """
    Build the effective configuration.

    Args:
        config_file: TOML file to read; defaults to ``$MDSTREAM_CONFIG`` if set
        **overrides: Explicit values (None entries are ignored)

    Returns:
        The validated ServerConfig
    """
    values: Dict[str, Any] = {}

    if config_file is None and os.getenv("MDSTREAM_CONFIG"):
        config_file = Path(os.environ["MDSTREAM_CONFIG"])
    if config_file is not None:
        values.update(load_config_file(Path(config_file)))

    for variable, name in _ENVIRONMENT.items():
        if variable in os.environ:
            values[name] = os.environ[variable]

    values.update({k: v for k, v in overrides.items() if v is not None})
    return ServerConfig(**_coerce(values))
