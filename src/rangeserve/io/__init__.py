"""I/O layer for rangeserve - resources to read from and sinks to write to."""

# Re-export these for import convenience
from .base import DownloadableResource, OutputSink, RangeNotSupportedError, DEFAULT_CHUNK_SIZE
from .local import FileResource, BytesResource, open_local_resource
from .http_sync import HTTPResource, open_http_resource
from .sinks import MemorySink, HandlerSink


def open_resource(source, mime=None):
    """Factory function to create the appropriate resource based on source type."""
    if hasattr(source, 'read'):  # BinaryIO
        return open_local_resource(source, mime=mime)

    source_str = str(source)
    if source_str.startswith(('http://', 'https://')):
        return open_http_resource(source_str, mime=mime)
    else:
        return open_local_resource(source, mime=mime)


__all__ = [
    "open_resource",
    "DownloadableResource", "OutputSink", "RangeNotSupportedError", "DEFAULT_CHUNK_SIZE",
    "FileResource", "BytesResource", "HTTPResource",
    "MemorySink", "HandlerSink",
]
