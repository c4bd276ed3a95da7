"""Base protocols and shared types for resources and output sinks."""

from datetime import datetime
from typing import Optional, Protocol, runtime_checkable


class RangeNotSupportedError(RuntimeError):
    """Raised when a remote origin rejects Range and its size > RANGE_FALLBACK_MAX."""


DEFAULT_CHUNK_SIZE = 8 * 1024
RANGE_FALLBACK_MAX = 10 * 1024 * 1024  # 10 MB
DEFAULT_MIME = "application/octet-stream"


@runtime_checkable
class DownloadableResource(Protocol):
    """Protocol for the byte source being served."""

    name: Optional[str]             # suggested download file name
    chunk_size: int                 # default read size when not throttled
    read_timeout: Optional[float]   # per-read time limit, re-armed before every read

    @property
    def size(self) -> int: ...

    @property
    def mime(self) -> str: ...

    @property
    def last_modified(self) -> Optional[datetime]: ...

    @property
    def entity_tag(self) -> Optional[str]: ...

    def read_bytes(self, offset: int, length: int) -> Optional[bytes]:
        """Return up to `length` bytes starting at absolute offset `offset`.
        Return None when there is no data at `offset`.
        """
        ...

    def close(self) -> None: ...


@runtime_checkable
class OutputSink(Protocol):
    """Protocol for the response channel."""

    @property
    def is_closed(self) -> bool:
        """True once the client connection has been aborted or terminated."""
        ...

    def set_status(self, code: int, reason: str) -> None: ...

    def add_header(self, name: str, value: str) -> None:
        """Queue a header field; raises RuntimeError once headers have been sent."""
        ...

    def write(self, data: bytes) -> int:
        """Write body bytes, sending pending headers first.
        Raises ChannelClosed if the connection has gone away.
        """
        ...

    def flush(self) -> None: ...

    def end(self) -> None:
        """Finish the response; headers are sent if nothing was written."""
        ...
