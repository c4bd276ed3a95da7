"""
Request classification, header emission and the throttled streaming loop.
"""

from __future__ import annotations
import logging
import time
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple

from .model import (
    ByteRange,
    ChannelClosed,
    ConfigurationError,
    DownloadRequest,
    InvalidRangeSyntax,
    RangeOutOfBounds,
    RangeSet,
    StatusClass,
    TransferPlan,
    UnsupportedRequest,
)
from .options import CacheMode, DownloadOptions
from .ranges import check_bounds, format_content_range, is_whole_resource, parse_range_header
from .throttle import ThrottleState
from .util import (
    MULTIPART_TYPE,
    closing_delimiter,
    content_disposition,
    etag_matches,
    http_date,
    make_boundary,
    multipart_length,
    parse_http_date,
    part_header,
)
from ..io.base import DEFAULT_CHUNK_SIZE

log = logging.getLogger(__name__)

Headers = List[Tuple[str, str]]

_NEVER_CACHE_HEADERS: Headers = [
    ("Cache-Control", "no-cache, no-store, must-revalidate"),
    ("Pragma", "no-cache"),
    ("Expires", "0"),
]


class DownloadOrchestrator:
    """
    Serves one resource per call, honouring Range, If-Modified-Since and If-None-Match.

    The orchestrator only holds its options; all per-response state lives in the
    :class:`TransferPlan` returned by :meth:`plan` and :meth:`download`, so one
    instance can be shared by concurrent request handlers.
    """

    def __init__(
        self,
        options: Optional[DownloadOptions] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        """
        Args:
            options: Download options, defaults to ``DownloadOptions()``.
            clock: Monotonic clock used by the throttle.
            sleep: Sleep used by the throttle.
            now: Wall clock used to reject If-Modified-Since dates in the future.
        """
        self.options = options or DownloadOptions()
        self._clock = clock
        self._sleep = sleep
        self._now = now

    # ------------------------------------------------------------------ #
    def plan(self, resource, request: Optional[DownloadRequest] = None) -> TransferPlan:
        """Classify ``request`` against ``resource`` and compute the response headers."""
        if resource is None:
            raise ConfigurationError("No resource set for download")
        request = request or DownloadRequest()
        opts = self.options
        size = resource.size

        ranges: Optional[RangeSet] = None
        if opts.byte_ranges_enabled:
            try:
                ranges = parse_range_header(request.range_header, default_end=size - 1)
                if ranges:
                    check_bounds(ranges, size)
            except (InvalidRangeSyntax, RangeOutOfBounds) as e:
                log.debug("Unsatisfiable range request: %s", e)
                return TransferPlan(
                    status=StatusClass.RANGE_NOT_SATISFIABLE,
                    headers=[("Content-Range", format_content_range(None, size))]
                    + self._accept_ranges_header() + [("Content-Length", "0")],
                )

        if self._not_modified(resource, request):
            return TransferPlan(
                status=StatusClass.NOT_MODIFIED,
                ranges=ranges or [],
                headers=self._accept_ranges_header() + self._caching_headers(resource),
            )

        if not ranges or is_whole_resource(ranges, size):
            plan = TransferPlan(status=StatusClass.OK, content_length=size)
            plan.headers = self._common_headers(resource, resource.mime)
        elif len(ranges) == 1:
            plan = TransferPlan(status=StatusClass.PARTIAL_CONTENT, ranges=ranges,
                                content_length=ranges[0].length)
            plan.headers = self._common_headers(resource, resource.mime)
            plan.headers.append(("Content-Range", format_content_range(ranges[0], size)))
        else:
            try:
                plan = self._multipart_plan(resource, ranges, size)
            except UnsupportedRequest as e:
                log.debug("%s", e)
                return TransferPlan(status=StatusClass.UNSUPPORTED, ranges=ranges,
                                    headers=self._accept_ranges_header() + [("Content-Length", "0")])

        plan.headers.append(("Content-Length", str(plan.content_length)))
        return plan

    def _multipart_plan(self, resource, ranges: RangeSet, size: int) -> TransferPlan:
        if not self.options.multipart_enabled:
            raise UnsupportedRequest(f"{len(ranges)} ranges requested but multipart responses are disabled")
        boundary = self.options.multipart_boundary or make_boundary(self._file_name(resource), size)
        plan = TransferPlan(
            status=StatusClass.PARTIAL_CONTENT,
            ranges=ranges,
            multipart=True,
            boundary=boundary,
            content_length=multipart_length(boundary, resource.mime, ranges, size),
        )
        plan.headers = self._common_headers(resource, f"{MULTIPART_TYPE}; boundary={boundary}")
        return plan

    def download(self, resource, sink, request: Optional[DownloadRequest] = None) -> TransferPlan:
        """Write the full response for ``request`` to ``sink``.

        Raises:
            ConfigurationError: no resource was given; nothing is written.
        """
        request = request or DownloadRequest()
        plan = self.plan(resource, request)
        log.debug("%s %r -> %d (%d ranges)", request.method, request.range_header,
                  plan.status.code, len(plan.ranges))

        sink.set_status(plan.status.code, plan.status.reason)
        for name, value in plan.headers:
            sink.add_header(name, value)

        try:
            if plan.status.has_body and request.wants_body:
                self._send_data(resource, sink, plan)
        finally:
            sink.end()
        return plan

    # ------------------------------------------------------------------ #
    def _not_modified(self, resource, request: DownloadRequest) -> bool:
        # If-None-Match takes precedence over If-Modified-Since
        if request.if_none_match:
            return etag_matches(request.if_none_match, resource.entity_tag)

        since = parse_http_date(request.if_modified_since)
        if since is None or since > self._now():
            return False
        last_modified = resource.last_modified
        if last_modified is None:
            return False
        if last_modified.tzinfo is None:
            last_modified = last_modified.replace(tzinfo=timezone.utc)
        # HTTP dates have one second resolution
        return last_modified.replace(microsecond=0) <= since

    def _file_name(self, resource) -> str:
        return self.options.download_file_name or getattr(resource, "name", None) or "download"

    def _accept_ranges_header(self) -> Headers:
        return [("Accept-Ranges", "bytes" if self.options.byte_ranges_enabled else "none")]

    def _caching_headers(self, resource) -> Headers:
        mode = self.options.cache_mode
        if mode is CacheMode.NONE:
            return []
        if mode is CacheMode.NEVER:
            return list(_NEVER_CACHE_HEADERS)

        validators: Headers = []
        if resource.last_modified is not None:
            validators.append(("Last-Modified", http_date(resource.last_modified)))
        if resource.entity_tag:
            validators.append(("ETag", resource.entity_tag))
        if not validators:
            # nothing for the client to revalidate against
            return list(_NEVER_CACHE_HEADERS)
        return [
            ("Cache-Control", "must-revalidate, post-check=0, pre-check=0"),
            ("Pragma", "public"),
        ] + validators

    def _common_headers(self, resource, content_type: str) -> Headers:
        headers: Headers = [
            ("Content-Type", content_type),
            ("Content-Disposition", content_disposition(self.options.disposition.value,
                                                        self._file_name(resource))),
            ("Content-Transfer-Encoding", "binary"),
        ]
        return headers + self._accept_ranges_header() + self._caching_headers(resource)

    # ------------------------------------------------------------------ #
    def _send_data(self, resource, sink, plan: TransferPlan) -> None:
        opts = self.options
        size = resource.size
        ranges = plan.ranges or ([ByteRange(0, size - 1)] if size > 0 else [])
        throttle = ThrottleState(opts.max_bytes_per_second, clock=self._clock, sleep=self._sleep)
        default_chunk = getattr(resource, "chunk_size", None) or DEFAULT_CHUNK_SIZE
        has_time_limit = hasattr(resource, "read_timeout")
        previous_time_limit = getattr(resource, "read_timeout", None)

        try:
            for byte_range in ranges:
                if plan.multipart:
                    self._send_framing(sink, plan, throttle,
                                       part_header(plan.boundary, resource.mime, byte_range, size))
                if not self._send_range(resource, sink, plan, byte_range, throttle, default_chunk,
                                        has_time_limit):
                    plan.truncated = True
                    return
            if plan.multipart:
                self._send_framing(sink, plan, throttle, closing_delimiter(plan.boundary))
        except ChannelClosed:
            plan.aborted = True
            log.info("Client closed the connection after %d of %d bytes",
                     plan.bytes_sent, plan.content_length)
        finally:
            if opts.restore_previous_time_limit and has_time_limit:
                resource.read_timeout = previous_time_limit
            if throttle.total_slept:
                log.debug("Throttled for %.2fs at %d B/s", throttle.total_slept,
                          opts.max_bytes_per_second)

    def _send_range(self, resource, sink, plan, byte_range, throttle, default_chunk,
                    has_time_limit) -> bool:
        """Stream one range; False when the resource ran out of data."""
        offset = byte_range.start
        remaining = byte_range.length
        time_limit = self.options.read_time_limit

        while remaining > 0:
            if time_limit and time_limit > 0 and has_time_limit:
                resource.read_timeout = time_limit
            data = resource.read_bytes(offset, throttle.chunk_size(remaining, default_chunk))
            if not data:
                log.warning("No data at offset %d, %d bytes of range %d-%d left unsent",
                            offset, remaining, byte_range.start, byte_range.end)
                return False
            data = data[:remaining]

            self._write(sink, plan, data)
            offset += len(data)
            remaining -= len(data)

            if throttle.enabled:
                sink.flush()
                throttle.pace(len(data))
        return True

    def _send_framing(self, sink, plan, throttle, data: bytes) -> None:
        self._write(sink, plan, data)
        if throttle.enabled:
            throttle.pace(len(data))

    @staticmethod
    def _write(sink, plan: TransferPlan, data: bytes) -> None:
        if sink.is_closed:
            raise ChannelClosed("Output channel is closed")
        plan.bytes_sent += sink.write(data)
