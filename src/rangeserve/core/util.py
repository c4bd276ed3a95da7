from __future__ import annotations
import hashlib
import os
import time
from datetime import datetime, timezone
from email.utils import format_datetime, parsedate_to_datetime
from typing import Iterable, Optional
from urllib.parse import quote

from .model import ByteRange
from .ranges import format_content_range

CRLF = "\r\n"
MULTIPART_TYPE = "multipart/byteranges"


def http_date(value: datetime) -> str:
    """Format ``value`` as an IMF-fixdate (``Sun, 06 Nov 1994 08:49:37 GMT``)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return format_datetime(value.astimezone(timezone.utc), usegmt=True)


def parse_http_date(text: str | None) -> datetime | None:
    """Parse an HTTP date into an aware UTC datetime; ``None`` if unparseable."""
    if not text:
        return None
    try:
        parsed = parsedate_to_datetime(text.strip())
    except (TypeError, ValueError, IndexError):
        return None
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def make_boundary(name: str | None, size: int) -> str:
    """Fresh multipart boundary from the file name, size, current time and random bytes."""
    seed = f"{name or ''}|{size}|{time.time_ns()}|".encode() + os.urandom(16)
    return hashlib.sha1(seed).hexdigest()


def content_disposition(disposition: str, filename: str) -> str:
    try:
        filename.encode("ascii")
    except UnicodeEncodeError:
        fallback = filename.encode("ascii", "replace").decode().replace("?", "_")
        return f"{disposition}; filename=\"{_quote(fallback)}\"; filename*=UTF-8''{quote(filename)}"
    return f"{disposition}; filename=\"{_quote(filename)}\""


def _quote(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def part_header(boundary: str, mime: str, byte_range: ByteRange, size: int) -> bytes:
    """Framing written before each part of a multipart/byteranges body."""
    return (
        f"{CRLF}--{boundary}{CRLF}"
        f"Content-Type: {mime}{CRLF}"
        f"Content-Range: {format_content_range(byte_range, size)}{CRLF}{CRLF}"
    ).encode("latin-1")


def closing_delimiter(boundary: str) -> bytes:
    return f"{CRLF}--{boundary}--{CRLF}".encode("latin-1")


def multipart_length(boundary: str, mime: str, ranges: Iterable[ByteRange], size: int) -> int:
    """Exact body length of a multipart/byteranges response, framing included."""
    total = len(closing_delimiter(boundary))
    for r in ranges:
        total += len(part_header(boundary, mime, r, size)) + r.length
    return total


def etag_matches(if_none_match: Optional[str], entity_tag: Optional[str]) -> bool:
    """Weak comparison of an If-None-Match list against ``entity_tag``."""
    if not if_none_match:
        return False
    candidates = [tag.strip() for tag in if_none_match.split(",") if tag.strip()]
    # "*" matches any current representation, tagged or not
    if "*" in candidates:
        return True
    if not entity_tag:
        return False
    own = _strip_weak(entity_tag)
    return any(_strip_weak(tag) == own for tag in candidates)


def _strip_weak(tag: str) -> str:
    return tag[2:] if tag.startswith("W/") else tag
