"""
Command-line interface for mdstream using Click.

``mdstream`` starts the HTTP server; ``mdstream-tools`` groups offline
helpers for inspecting topics and rendering a topic to stdout.
"""

import asyncio
import sys
from pathlib import Path
from typing import Optional

import click

from .app_logger import set_default_logger
from .config import ServerConfig, load_config
from .exceptions import ConfigurationError, TopicNotFoundError
from .logging_config import ConfigurableAppLogger, build_logging_config
from .server import ContentServer
from .sinks import TextStreamSink


def _configure_logging(
    verbose: int,
    quiet: bool,
    log_level: Optional[str] = None,
    log_format: str = "simple",
    log_file: Optional[str] = None,
    log_handlers: Optional[str] = None,
) -> None:
    """Configure the default application logger from CLI options."""
    config = build_logging_config(
        verbose=verbose,
        quiet=quiet,
        log_level=log_level,
        log_format=log_format,
        log_file=log_file,
        log_handlers=log_handlers,
    )
    set_default_logger(ConfigurableAppLogger(config))


def _load_config(config_file: Optional[Path], **overrides) -> ServerConfig:
    try:
        return load_config(config_file, **overrides)
    except ConfigurationError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)


def version_callback(ctx, _, value):
    """Callback for the version option that prints the version and exits."""
    if not value or ctx.resilient_parsing:
        return
    from . import __version__

    click.echo(f"mdstream version {__version__}")
    ctx.exit()


config_option = click.option(
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="TOML configuration file (default: $MDSTREAM_CONFIG)",
)
content_dir_option = click.option(
    "--content-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory holding the Markdown documents",
)


@click.command()
@config_option
@content_dir_option
@click.option("--host", help="Interface to bind (default 127.0.0.1)")
@click.option("--port", type=int, help="Port to listen on (default 8080)")
@click.option(
    "--verbose",
    "-v",
    count=True,
    help="Increase verbosity (use -v, -vv for more verbose)",
)
@click.option(
    "--quiet", "-q", is_flag=True, help="Reduce output to warnings and errors only"
)
@click.option(
    "--log-level",
    type=click.Choice(
        ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False
    ),
    help="Set explicit log level (overrides verbose/quiet)",
)
@click.option(
    "--log-format",
    type=click.Choice(["json", "simple", "detailed"], case_sensitive=False),
    default="simple",
    help="Log output format",
)
@click.option(
    "--json",
    "json_format",
    is_flag=True,
    help="Use JSON log format (alias for --log-format json)",
)
@click.option(
    "--log-file", type=click.Path(), help="Write logs to file (in addition to console)"
)
@click.option(
    "--log-handlers",
    help="Comma-separated list of log handlers (console,file,rotating,null)",
)
@click.option(
    "--version",
    is_flag=True,
    expose_value=False,
    is_eager=True,
    callback=version_callback,
    help="Show version and exit",
)
@click.help_option("--help", "-h")
def main(
    config_file: Optional[Path],
    content_dir: Optional[Path],
    host: Optional[str],
    port: Optional[int],
    verbose: int,
    quiet: bool,
    log_level: Optional[str],
    log_format: str,
    json_format: bool,
    log_file: Optional[str],
    log_handlers: Optional[str],
) -> None:
    """
    Serve Markdown documents as HTML, streamed one document at a time.

    Each topic maps to an ordered list of documents in the content directory.
    A request to /content?topic=NAME renders the topic's documents in order
    and streams them to the browser as they are converted.

    Examples:

        mdstream --content-dir ~/notes

        mdstream --config mdstream.toml --port 9000 -v

        mdstream --json --log-file logs/mdstream.log
    """
    if json_format:
        log_format = "json"

    _configure_logging(verbose, quiet, log_level, log_format, log_file, log_handlers)

    config = _load_config(config_file, host=host, port=port, content_dir=content_dir)

    try:
        server = ContentServer(config)
        sys.exit(server.run())
    except KeyboardInterrupt:
        if verbose:
            click.echo("\nReceived interrupt signal, shutting down...")
        sys.exit(0)


@click.group()
@click.option("--verbose", "-v", count=True, help="Increase verbosity")
@click.option("--quiet", "-q", is_flag=True, help="Only log warnings and errors")
def cli(verbose: int, quiet: bool):
    """mdstream - Markdown document tools."""
    _configure_logging(verbose, quiet)


@cli.command()
@config_option
@content_dir_option
def info(config_file: Optional[Path], content_dir: Optional[Path]) -> None:
    """Show the configured topics and whether their documents can be read."""
    config = _load_config(config_file, content_dir=content_dir)
    server = ContentServer(config)

    try:
        server.source.validate_directory()
        click.echo(f"Content directory: {server.source.base_directory}")

        assigned = set()
        for topic in server.catalog.topics():
            documents = server.catalog.documents_for(topic)
            click.echo(f"\nTopic {topic} ({len(documents)} documents):")
            for document in documents:
                assigned.add(document)
                status = "ok" if server.source.is_readable(document) else "MISSING"
                click.echo(f"  - {document} [{status}]")

        unassigned = [d for d in server.source.list_documents() if d not in assigned]
        if unassigned:
            click.echo("\nDocuments not in any topic:")
            for document in unassigned:
                click.echo(f"  - {document}")

    except (FileNotFoundError, NotADirectoryError, PermissionError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    finally:
        server.cleanup()


@cli.command()
@click.argument("topic")
@config_option
@content_dir_option
def render(topic: str, config_file: Optional[Path], content_dir: Optional[Path]) -> None:
    """Render the documents of TOPIC and write the HTML to stdout."""
    config = _load_config(config_file, content_dir=content_dir)
    server = ContentServer(config)

    try:
        documents = server.catalog.documents_for(topic)
        asyncio.run(server.pipeline.run(documents, TextStreamSink(sys.stdout)))
        click.echo()
    except TopicNotFoundError:
        click.echo(f"Topic not found: {topic}", err=True)
        sys.exit(1)
    finally:
        server.cleanup()


if __name__ == "__main__":
    main()
