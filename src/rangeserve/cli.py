"""CLI implementation for rangeserve."""

import json
import logging
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from .core.model import InvalidRangeSyntax, RangeOutOfBounds
from .core.options import CacheMode, Disposition, DownloadOptions
from .core.ranges import check_bounds, parse_range_header
from .server import make_server

console = Console(stderr=True)
log = logging.getLogger("rangeserve")

app = typer.Typer(add_completion=False, help="Serve a file over HTTP with byte-range, caching and throttling support.")


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


@app.command()
def serve(
    source: str = typer.Argument(..., help="File path or http(s) URL to serve"),
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind"),
    port: int = typer.Option(8000, "--port", "-p", min=0, max=65535, help="Port to listen on"),
    inline: bool = typer.Option(False, "--inline", help="Use inline instead of attachment disposition"),
    no_ranges: bool = typer.Option(False, "--no-ranges", help="Ignore Range requests"),
    no_multipart: bool = typer.Option(False, "--no-multipart", help="Reject multi-range requests"),
    cache_mode: CacheMode = typer.Option(CacheMode.REVALIDATE, "--cache-mode", help="Caching headers to emit"),
    max_bps: int = typer.Option(0, "--max-bps", min=0, help="Throttle to N bytes/second (0 = off)"),
    name: Optional[str] = typer.Option(None, "--name", help="Download file name"),
    mime: Optional[str] = typer.Option(None, "--mime", help="Override the content type"),
    read_time_limit: float = typer.Option(30, "--read-time-limit", help="Seconds per read, <= 0 disables"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Serve SOURCE on every path until interrupted."""
    _setup_logging(verbose)
    options = DownloadOptions(
        byte_ranges_enabled=not no_ranges,
        multipart_enabled=not no_multipart,
        disposition=Disposition.INLINE if inline else Disposition.ATTACHMENT,
        cache_mode=cache_mode,
        read_time_limit=read_time_limit,
        max_bytes_per_second=max_bps,
        download_file_name=name,
    )
    try:
        server = make_server(source, options, host=host, port=port, mime=mime)
    except (IOError, OSError) as e:
        log.error("Cannot serve %s: %s", source, e)
        raise typer.Exit(code=1)

    log.info("Serving %s on http://%s:%d/", source, host, server.port)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        log.info("Shutting down")
    finally:
        server.server_close()


@app.command()
def ranges(
    header: str = typer.Argument(..., help="Range field value, e.g. 'bytes=0-99,200-'"),
    size: int = typer.Option(..., "--size", min=0, help="Resource size in bytes"),
    jsonl: bool = typer.Option(False, "--jsonl", help="Emit one JSON line per range"),
):
    """Resolve a Range header against a resource size and print the result as JSON."""
    try:
        resolved = parse_range_header(header, default_end=size - 1)
        if resolved:
            check_bounds(resolved, size)
    except (InvalidRangeSyntax, RangeOutOfBounds) as e:
        typer.echo(json.dumps({"status": 416, "error": str(e)}))
        raise typer.Exit(code=1)

    payload = [r.as_dict() for r in resolved or []]
    if jsonl:
        for item in payload:
            typer.echo(json.dumps(item))
        return

    if not payload or (len(payload) == 1 and payload[0]["length"] == size):
        status = 200
    else:
        status = 206
    typer.echo(json.dumps({"status": status, "ranges": payload}, indent=2))


if __name__ == "__main__":
    app()
