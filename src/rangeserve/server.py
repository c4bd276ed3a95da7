"""Threaded HTTP server serving a single resource through the orchestrator."""

import logging
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Callable, Optional

from .core.model import DownloadRequest
from .core.options import DownloadOptions
from .core.orchestrator import DownloadOrchestrator
from .io import HandlerSink, open_resource

log = logging.getLogger(__name__)


class ResourceRequestHandler(BaseHTTPRequestHandler):
    """Answers GET and HEAD on any path with the server's resource."""

    protocol_version = "HTTP/1.1"
    server: "ResourceServer"

    def log_message(self, format, *args):
        log.debug("%s - %s", self.address_string(), format % args)

    def _download(self, method: str):
        request = DownloadRequest(
            method=method,
            range_header=self.headers.get("Range"),
            if_modified_since=self.headers.get("If-Modified-Since"),
            if_none_match=self.headers.get("If-None-Match"),
        )
        resource = self.server.open_resource()
        try:
            plan = self.server.orchestrator.download(resource, HandlerSink(self), request)
        finally:
            resource.close()
        if plan.aborted or plan.truncated:
            # body is shorter than its Content-Length
            self.close_connection = True

    def do_GET(self):
        self._download("GET")

    def do_HEAD(self):
        self._download("HEAD")

    def _not_allowed(self):
        self.send_error(405, "Method Not Allowed")

    do_POST = do_PUT = do_DELETE = do_PATCH = _not_allowed


class ResourceServer(ThreadingHTTPServer):
    """HTTP server bound to one resource factory and one orchestrator."""

    allow_reuse_address = True
    daemon_threads = True

    def __init__(self, address, resource_factory: Callable, orchestrator: DownloadOrchestrator):
        super().__init__(address, ResourceRequestHandler)
        self.open_resource = resource_factory
        self.orchestrator = orchestrator

    @property
    def port(self) -> int:
        return self.server_address[1]


def make_server(
    source,
    options: Optional[DownloadOptions] = None,
    host: str = "127.0.0.1",
    port: int = 0,
    mime: Optional[str] = None,
) -> ResourceServer:
    """Create a server for ``source`` (path, URL, or a zero-argument resource factory).

    A resource is opened for every request and closed once it is answered.
    Port 0 picks a free port; read it back from ``server.port``.
    """
    if callable(source) and not hasattr(source, 'read'):
        factory = source
    else:
        # fail early on a missing file rather than on the first request
        open_resource(source, mime=mime).close()

        def factory():
            return open_resource(source, mime=mime)

    return ResourceServer((host, port), factory, DownloadOrchestrator(options))


def serve_in_thread(server: ResourceServer) -> threading.Thread:
    """Start ``server.serve_forever`` on a daemon thread."""
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    log.info("Serving on http://%s:%d/", server.server_address[0], server.port)
    return thread
