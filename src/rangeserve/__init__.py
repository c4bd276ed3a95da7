"""rangeserve - serve a single resource over HTTP with byte ranges, revalidation and throttling."""

from .core.model import (                                              # re-export
    ByteRange, DownloadRequest, StatusClass, TransferPlan,
    RangeServeError, ConfigurationError, InvalidRangeSyntax,
    RangeOutOfBounds, UnsupportedRequest, ChannelClosed,
)
from .core.options import CacheMode, Disposition, DownloadOptions
from .core.orchestrator import DownloadOrchestrator
from .core.ranges import parse_range_header, join_ranges, check_bounds
from .io import open_resource, FileResource, BytesResource, HTTPResource, MemorySink, HandlerSink


def download(resource, sink, request: DownloadRequest | None = None,
             options: DownloadOptions | None = None) -> TransferPlan:
    """Answer ``request`` for ``resource`` through ``sink`` with a one-off orchestrator."""
    return DownloadOrchestrator(options).download(resource, sink, request)


__all__ = [
    "download", "DownloadOrchestrator", "DownloadOptions", "DownloadRequest", "TransferPlan",
    "ByteRange", "StatusClass", "CacheMode", "Disposition",
    "parse_range_header", "join_ranges", "check_bounds",
    "open_resource", "FileResource", "BytesResource", "HTTPResource", "MemorySink", "HandlerSink",
    "RangeServeError", "ConfigurationError", "InvalidRangeSyntax",
    "RangeOutOfBounds", "UnsupportedRequest", "ChannelClosed",
]
