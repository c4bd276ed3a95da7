"""Output sinks: an in-memory recorder and an http.server adapter."""

import logging
from typing import List, Optional, Tuple

from ..core.model import ChannelClosed

log = logging.getLogger(__name__)


class _HeaderQueue:
    """Status and header bookkeeping shared by the sinks."""

    def __init__(self):
        self.status: Optional[int] = None
        self.reason: Optional[str] = None
        self.headers: List[Tuple[str, str]] = []
        self.headers_sent = False

    def set_status(self, code: int, reason: str) -> None:
        if self.headers_sent:
            raise RuntimeError('Headers have been already sent')
        self.status = code
        self.reason = reason

    def add_header(self, name: str, value: str) -> None:
        if self.headers_sent:
            raise RuntimeError('Headers have been already sent')
        self.headers.append((name, value))

    def get_header(self, name: str) -> Optional[str]:
        wanted = name.lower()
        for key, value in self.headers:
            if key.lower() == wanted:
                return value
        return None


class MemorySink(_HeaderQueue):
    """Sink that stores everything written to it.

    ``close_after`` simulates a client that disconnects once that many body
    bytes have been accepted.
    """

    def __init__(self, close_after: Optional[int] = None):
        super().__init__()
        self.chunks: List[bytes] = []
        self.flush_count = 0
        self.ended = False
        self._close_after = close_after
        self._closed = False

    @property
    def body(self) -> bytes:
        return b''.join(self.chunks)

    @property
    def size(self) -> int:
        return sum(len(c) for c in self.chunks)

    @property
    def is_closed(self) -> bool:
        return self._closed

    def write(self, data: bytes) -> int:
        if self._closed:
            raise ChannelClosed('Output channel is closed')
        self.headers_sent = True

        if self._close_after is not None:
            room = self._close_after - self.size
            if room <= 0:
                self._closed = True
                raise ChannelClosed('Output channel is closed')
            data = data[:room]

        self.chunks.append(bytes(data))
        return len(data)

    def flush(self) -> None:
        self.headers_sent = True
        self.flush_count += 1

    def end(self) -> None:
        self.headers_sent = True
        self.ended = True


class HandlerSink(_HeaderQueue):
    """Sink writing to a ``http.server.BaseHTTPRequestHandler``.

    The status line and headers are sent on the first write, flush or end.
    """

    def __init__(self, handler):
        super().__init__()
        self.handler = handler
        self.bytes_written = 0
        self._closed = False

    @property
    def is_closed(self) -> bool:
        return self._closed

    def _mark_closed(self, exc: Exception) -> None:
        log.debug('Client disconnected: %s', exc)
        self._closed = True
        self.handler.close_connection = True

    def _send_headers(self) -> None:
        if self.headers_sent:
            return
        self.headers_sent = True
        self.handler.send_response(self.status or 200, self.reason)
        for name, value in self.headers:
            self.handler.send_header(name, value)
        self.handler.end_headers()

    def write(self, data: bytes) -> int:
        if self._closed:
            raise ChannelClosed('Output channel is closed')
        try:
            self._send_headers()
            self.handler.wfile.write(data)
        except (ConnectionResetError, BrokenPipeError) as e:
            self._mark_closed(e)
            raise ChannelClosed(f'Client disconnected: {e}') from e
        self.bytes_written += len(data)
        return len(data)

    def flush(self) -> None:
        if self._closed:
            return
        try:
            self._send_headers()
            self.handler.wfile.flush()
        except (ConnectionResetError, BrokenPipeError) as e:
            self._mark_closed(e)

    def end(self) -> None:
        self.flush()
