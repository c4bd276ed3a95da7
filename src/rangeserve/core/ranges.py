"""Parsing and normalisation of the HTTP ``Range`` request field (RFC 7233)."""

from __future__ import annotations
from typing import Iterable, List, Optional

from .model import ByteRange, InvalidRangeSyntax, RangeOutOfBounds, RangeSet

BYTES_UNIT = "bytes"


class _MalformedPiece(ValueError):
    """A single range piece could not be parsed; fails its whole group."""


def _is_number(text: str) -> bool:
    return text.isascii() and text.isdigit()


def _parse_piece(piece: str, default_start: Optional[int], default_end: Optional[int]) -> ByteRange:
    first, sep, last = piece.partition("-")
    first, last = first.strip(), last.strip()
    if not sep or (not first and not last):
        raise _MalformedPiece(f"Invalid range piece: {piece!r}")
    if (first and not _is_number(first)) or (last and not _is_number(last)):
        raise _MalformedPiece(f"Invalid range piece: {piece!r}")

    if not first:
        # "-N"
        if default_start is not None:
            start, end = default_start, int(last)
        else:
            suffix = int(last)
            if suffix == 0 or default_end is None or default_end < 0:
                raise _MalformedPiece(f"Unsatisfiable suffix range: {piece!r}")
            start, end = max(0, default_end - suffix + 1), default_end
    elif not last:
        # "N-"
        if default_end is None:
            raise _MalformedPiece(f"Open range without a known end: {piece!r}")
        start, end = int(first), default_end
    else:
        start, end = int(first), int(last)

    if start < 0 or start > end:
        raise _MalformedPiece(f"Range start after end: {piece!r}")
    return ByteRange(start, end)


def _parse_group(spec: str, default_start: Optional[int], default_end: Optional[int]) -> List[ByteRange]:
    ranges = [
        _parse_piece(piece, default_start, default_end)
        for piece in spec.split(",")
        if piece.strip()
    ]
    if not ranges:
        raise _MalformedPiece("Empty byte range set")
    return ranges


def parse_range_header(
    header: Optional[str],
    default_start: Optional[int] = None,
    default_end: Optional[int] = None,
) -> Optional[RangeSet]:
    """Parse a raw Range field value into a sorted, merged RangeSet.

    Returns ``None`` when the header is absent or only names units other than
    ``bytes``. Raises :class:`InvalidRangeSyntax` when the header is present
    but no ``bytes`` group in it could be parsed.

    ``default_end`` completes open ranges (``bytes=19-``) and is normally
    ``size - 1``. ``default_start`` completes ``bytes=-N``; when it is not
    given, ``-N`` is read as the last ``N`` bytes ending at ``default_end``.
    """
    if header is None or not header.strip():
        return None

    collected: List[ByteRange] = []
    parsed_any = False
    malformed = False

    for group in header.split(";"):
        group = group.strip()
        if not group:
            continue
        unit, sep, spec = group.partition("=")
        unit = unit.strip().lower()
        if not sep or not unit:
            malformed = True
            continue
        if unit != BYTES_UNIT:
            # well-formed specifier for a unit we don't serve
            continue
        try:
            collected.extend(_parse_group(spec, default_start, default_end))
            parsed_any = True
        except _MalformedPiece:
            malformed = True

    if parsed_any:
        return join_ranges(collected)
    if malformed:
        raise InvalidRangeSyntax(f"Malformed Range header: {header!r}")
    return None


def join_ranges(ranges: Iterable[ByteRange]) -> RangeSet:
    """Sort ranges by (start, end) and merge the overlapping or contiguous ones."""
    ordered = sorted(ranges, key=lambda r: (r.start, r.end))
    merged: RangeSet = []
    for current in ordered:
        if merged:
            prev = merged[-1]
            # sorted by start, so overlap/adjacency reduces to this check
            if current.start - prev.end <= 1:
                merged[-1] = ByteRange(min(prev.start, current.start), max(prev.end, current.end))
                continue
        merged.append(current)
    return merged


def check_bounds(ranges: Iterable[ByteRange], size: int) -> None:
    """Raise RangeOutOfBounds if any range falls outside a resource of ``size`` bytes."""
    for r in ranges:
        if r.start < 0 or r.end >= size:
            raise RangeOutOfBounds(f"Invalid range: [{r.start},{r.end}] for size {size}")


def is_whole_resource(ranges: RangeSet, size: int) -> bool:
    return len(ranges) == 1 and ranges[0].start == 0 and ranges[0].end == size - 1


def format_content_range(byte_range: Optional[ByteRange], size: int) -> str:
    """Value for a Content-Range field; ``None`` gives the unsatisfiable form."""
    if byte_range is None:
        return f"{BYTES_UNIT} */{size}"
    return f"{BYTES_UNIT} {byte_range.start}-{byte_range.end}/{size}"
