from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple


@dataclass(frozen=True, slots=True)
class ByteRange:
    """Inclusive ``[start, end]`` span of a resource's bytes."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 0:
            raise ValueError(f"Range start cannot be negative: {self.start}")
        if self.start > self.end:
            raise ValueError(f"Range start {self.start} is after end {self.end}")

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    def as_dict(self) -> dict:
        return {"start": self.start, "end": self.end, "length": self.length}


RangeSet = List[ByteRange]          # sorted, non-overlapping, non-adjacent


class StatusClass(Enum):
    OK = (200, "OK")
    PARTIAL_CONTENT = (206, "Partial Content")
    NOT_MODIFIED = (304, "Not Modified")
    RANGE_NOT_SATISFIABLE = (416, "Range Not Satisfiable")
    UNSUPPORTED = (500, "Multiple Ranges Not Supported")

    @property
    def code(self) -> int:
        return self.value[0]

    @property
    def reason(self) -> str:
        return self.value[1]

    @property
    def has_body(self) -> bool:
        return self in (StatusClass.OK, StatusClass.PARTIAL_CONTENT)


@dataclass(slots=True)
class DownloadRequest:
    """Request-side inputs taken from the surrounding HTTP layer."""

    method: str = "GET"
    range_header: Optional[str] = None
    if_modified_since: Optional[str] = None
    if_none_match: Optional[str] = None

    @property
    def wants_body(self) -> bool:
        return self.method.upper() != "HEAD"


@dataclass(slots=True)
class TransferPlan:
    """Transient state for one request/response cycle."""

    status: StatusClass
    ranges: RangeSet = field(default_factory=list)   # empty means whole resource
    multipart: bool = False
    boundary: Optional[str] = None
    content_length: int = 0
    headers: List[Tuple[str, str]] = field(default_factory=list)
    bytes_sent: int = 0
    aborted: bool = False
    truncated: bool = False                          # resource ran out of data mid-body

    def header(self, name: str) -> Optional[str]:
        wanted = name.lower()
        for key, value in self.headers:
            if key.lower() == wanted:
                return value
        return None


class RangeServeError(RuntimeError):
    """Base class for all rangeserve errors."""


class ConfigurationError(RangeServeError):
    """Raised when the orchestrator is misconfigured (no resource, bad options)."""


class InvalidRangeSyntax(RangeServeError):
    """Raised when a Range field is present but structurally malformed."""


class RangeOutOfBounds(RangeServeError):
    """Raised when a well-formed range falls outside the resource."""


class UnsupportedRequest(RangeServeError):
    """Raised when several ranges are requested but multipart responses are disabled."""


class ChannelClosed(RangeServeError):
    """Raised by output sinks when the client connection has gone away."""
