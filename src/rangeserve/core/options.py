"""Per-orchestrator configuration."""

from __future__ import annotations
import dataclasses
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .model import ConfigurationError

# RFC 2046 bchars, without the trailing-space allowance
_BOUNDARY_RE = re.compile(r"^[0-9A-Za-z'()+_,\-./:=?]{1,70}$")


class Disposition(str, Enum):
    ATTACHMENT = "attachment"
    INLINE = "inline"


class CacheMode(str, Enum):
    NEVER = "never"              # force revalidation on every request
    REVALIDATE = "revalidate"    # must-revalidate + Last-Modified/ETag
    NONE = "none"                # no caching headers at all


@dataclass(frozen=True)
class DownloadOptions:
    """Options consumed by :class:`~rangeserve.core.orchestrator.DownloadOrchestrator`.

    Args:
        byte_ranges_enabled: Honour Range requests and advertise ``Accept-Ranges: bytes``.
        multipart_enabled: Answer multi-range requests with ``multipart/byteranges``;
            when disabled they get a 500 "unsupported" response.
        disposition: ``attachment`` or ``inline`` Content-Disposition.
        cache_mode: See :class:`CacheMode`.
        read_time_limit: Seconds allowed for a single resource read; ``<= 0`` disables it.
        restore_previous_time_limit: Put back the resource's previous read limit once
            streaming ends.
        max_bytes_per_second: Throttle cap; 0 disables throttling.
        download_file_name: Name sent in Content-Disposition (defaults to the resource name).
        multipart_boundary: Fixed multipart boundary; a fresh one is generated per
            response when unset.
    """

    byte_ranges_enabled: bool = True
    multipart_enabled: bool = True
    disposition: Disposition = Disposition.ATTACHMENT
    cache_mode: CacheMode = CacheMode.REVALIDATE
    read_time_limit: float = 30
    restore_previous_time_limit: bool = False
    max_bytes_per_second: int = 0
    download_file_name: Optional[str] = None
    multipart_boundary: Optional[str] = None

    def __post_init__(self):
        try:
            object.__setattr__(self, "disposition", Disposition(self.disposition))
            object.__setattr__(self, "cache_mode", CacheMode(self.cache_mode))
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

        if self.max_bytes_per_second < 0:
            raise ConfigurationError("max_bytes_per_second cannot be negative")
        if self.multipart_boundary is not None and not _BOUNDARY_RE.match(self.multipart_boundary):
            raise ConfigurationError(f"Invalid multipart boundary: {self.multipart_boundary!r}")

    @property
    def throttled(self) -> bool:
        return self.max_bytes_per_second > 0

    def replace(self, **changes) -> "DownloadOptions":
        """Return a copy with ``changes`` applied (and validated)."""
        return dataclasses.replace(self, **changes)
