from datetime import datetime, timezone

import pytest

from rangeserve.core.model import ByteRange, ConfigurationError, DownloadRequest, StatusClass, TransferPlan
from rangeserve.core.options import CacheMode, Disposition, DownloadOptions
from rangeserve.core.throttle import ThrottleState
from rangeserve.core.util import (
    closing_delimiter,
    content_disposition,
    etag_matches,
    http_date,
    make_boundary,
    multipart_length,
    parse_http_date,
    part_header,
)


class FakeClock:
    """Monotonic clock whose sleep advances time instantly."""

    def __init__(self, start: float = 100.0):
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class TestModel:
    """Test the core data model."""

    def test_byte_range_length(self):
        r = ByteRange(10, 19)
        assert r.length == 10
        assert r.as_dict() == {"start": 10, "end": 19, "length": 10}

    def test_byte_range_invariants(self):
        with pytest.raises(ValueError):
            ByteRange(5, 4)
        with pytest.raises(ValueError):
            ByteRange(-1, 4)

    def test_byte_range_is_immutable(self):
        r = ByteRange(0, 1)
        with pytest.raises(AttributeError):
            r.start = 3

    def test_status_class(self):
        assert StatusClass.PARTIAL_CONTENT.code == 206
        assert StatusClass.RANGE_NOT_SATISFIABLE.code == 416
        assert StatusClass.OK.has_body
        assert not StatusClass.NOT_MODIFIED.has_body
        assert not StatusClass.UNSUPPORTED.has_body

    def test_request_wants_body(self):
        assert DownloadRequest().wants_body
        assert not DownloadRequest(method="head").wants_body

    def test_plan_header_lookup(self):
        plan = TransferPlan(status=StatusClass.OK, headers=[("Content-Length", "3")])
        assert plan.header("content-length") == "3"
        assert plan.header("ETag") is None


class TestOptions:
    """Test DownloadOptions validation."""

    def test_defaults(self):
        opts = DownloadOptions()
        assert opts.byte_ranges_enabled
        assert opts.disposition is Disposition.ATTACHMENT
        assert opts.cache_mode is CacheMode.REVALIDATE
        assert opts.read_time_limit == 30
        assert not opts.throttled

    def test_string_enums_are_coerced(self):
        opts = DownloadOptions(disposition="inline", cache_mode="none")
        assert opts.disposition is Disposition.INLINE
        assert opts.cache_mode is CacheMode.NONE

    def test_invalid_values(self):
        with pytest.raises(ConfigurationError):
            DownloadOptions(cache_mode="sometimes")
        with pytest.raises(ConfigurationError):
            DownloadOptions(max_bytes_per_second=-1)
        with pytest.raises(ConfigurationError):
            DownloadOptions(multipart_boundary="has space")
        with pytest.raises(ConfigurationError):
            DownloadOptions(multipart_boundary="x" * 71)

    def test_replace(self):
        opts = DownloadOptions().replace(max_bytes_per_second=10)
        assert opts.throttled
        with pytest.raises(ConfigurationError):
            opts.replace(disposition="sideways")


class TestUtil:
    """Test HTTP helper functions."""

    def test_http_date_round_trip(self):
        stamp = datetime(2015, 10, 21, 7, 28, tzinfo=timezone.utc)
        assert http_date(stamp) == "Wed, 21 Oct 2015 07:28:00 GMT"
        assert parse_http_date("Wed, 21 Oct 2015 07:28:00 GMT") == stamp

    def test_parse_http_date_garbage(self):
        assert parse_http_date(None) is None
        assert parse_http_date("") is None
        assert parse_http_date("yesterday") is None

    def test_boundaries_are_unique(self):
        boundaries = {make_boundary("foo.txt", 100) for _ in range(50)}
        assert len(boundaries) == 50

    def test_content_disposition(self):
        assert content_disposition("attachment", "foo.txt") == 'attachment; filename="foo.txt"'
        assert content_disposition("inline", 'a"b.txt') == 'inline; filename="a\\"b.txt"'
        value = content_disposition("attachment", "niño.txt")
        assert value.startswith('attachment; filename="ni_o.txt"')
        assert "filename*=UTF-8''ni%C3%B1o.txt" in value

    def test_part_header(self):
        header = part_header("B", "text/plain", ByteRange(0, 2), 60)
        assert header == b"\r\n--B\r\nContent-Type: text/plain\r\nContent-Range: bytes 0-2/60\r\n\r\n"
        assert closing_delimiter("B") == b"\r\n--B--\r\n"

    def test_multipart_length(self):
        ranges = [ByteRange(0, 2), ByteRange(10, 19)]
        expected = sum(len(part_header("B", "text/plain", r, 60)) + r.length for r in ranges)
        expected += len(closing_delimiter("B"))
        assert multipart_length("B", "text/plain", ranges, 60) == expected

    def test_etag_matches(self):
        assert etag_matches('"abc"', '"abc"')
        assert etag_matches('"x", W/"abc"', '"abc"')
        assert etag_matches("*", '"abc"')
        assert etag_matches("*", None)
        assert not etag_matches('"x"', '"abc"')
        assert not etag_matches('"abc"', None)
        assert not etag_matches(None, '"abc"')


class TestThrottleState:
    """Test bandwidth pacing."""

    def test_disabled(self):
        clock = FakeClock()
        throttle = ThrottleState(0, clock=clock, sleep=clock.sleep)
        assert not throttle.enabled
        assert throttle.chunk_size(100_000, 8192) == 8192
        assert throttle.chunk_size(10, 8192) == 10
        assert throttle.pace(10_000) == 0.0
        assert clock.sleeps == []

    def test_chunk_size_capped_by_rate(self):
        throttle = ThrottleState(100)
        assert throttle.chunk_size(1000, 8192) == 100
        assert throttle.chunk_size(30, 8192) == 30

    def test_sleeps_out_the_window(self):
        clock = FakeClock()
        throttle = ThrottleState(100, clock=clock, sleep=clock.sleep)
        clock.now += 0.25                   # read + write took a quarter second
        assert throttle.pace(100) == pytest.approx(0.75)
        assert throttle.window_bytes == 0   # new window

    def test_partial_window(self):
        clock = FakeClock()
        throttle = ThrottleState(100, clock=clock, sleep=clock.sleep)
        throttle.pace(50)
        assert clock.sleeps == [pytest.approx(0.5)]
        assert throttle.window_bytes == 50

    def test_sustained_rate(self):
        clock = FakeClock()
        throttle = ThrottleState(100, clock=clock, sleep=clock.sleep)
        start = clock()
        remaining = 250
        while remaining:
            chunk = throttle.chunk_size(remaining, 8192)
            remaining -= chunk
            throttle.pace(chunk)
        assert clock() - start >= 2.5
        assert throttle.total_slept == pytest.approx(2.5)

    def test_slow_writes_do_not_sleep(self):
        clock = FakeClock()
        throttle = ThrottleState(100, clock=clock, sleep=clock.sleep)
        clock.now += 2.0
        assert throttle.pace(100) == 0.0
        assert clock.sleeps == []
