"""Remote resource proxied over HTTP using requests."""

import logging
from datetime import datetime
from typing import Optional
from urllib.parse import unquote, urlparse

import requests

from ..core.util import parse_http_date
from .base import DEFAULT_CHUNK_SIZE, DEFAULT_MIME, RANGE_FALLBACK_MAX, RangeNotSupportedError

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30

# Shared by every HTTPResource so proxied requests reuse connections
_session = None


def _get_session():
    """Get or create the global requests session."""
    global _session
    if _session is None:
        _session = requests.Session()
    return _session


def _decide_full_get(content_length: Optional[int], accept_ranges: bool) -> bool:
    """Whether an origin without Range support is small enough to download whole."""
    return (not accept_ranges and
            content_length is not None and
            content_length < RANGE_FALLBACK_MAX)


class HTTPResource:
    """Remote resource whose bytes are fetched with Range requests."""

    def __init__(self, url: str, mime: Optional[str] = None, chunk_size: int = DEFAULT_CHUNK_SIZE):
        self.url = url
        self.name: Optional[str] = unquote(urlparse(url).path.rsplit('/', 1)[-1]) or None
        self.chunk_size = chunk_size
        self.read_timeout: Optional[float] = None
        self.bytes_read = 0
        self.requests_made = 0
        self.content_length: Optional[int] = None
        self._mime = mime
        self._last_modified: Optional[datetime] = None
        self._entity_tag: Optional[str] = None
        self._accept_ranges = False
        self._full_content: Optional[bytes] = None
        self._session = _get_session()

        # size and validators are needed before the first response is planned
        self._perform_head()

    @property
    def _timeout(self) -> float:
        return self.read_timeout if self.read_timeout and self.read_timeout > 0 else DEFAULT_TIMEOUT

    def _perform_head(self):
        """Perform HEAD request to collect metadata and check capabilities."""
        self.requests_made += 1
        try:
            response = self._session.head(self.url, timeout=DEFAULT_TIMEOUT, allow_redirects=True)
            if response.status_code >= 400:
                raise IOError(f"HEAD request failed with status {response.status_code}")

            content_length_header = response.headers.get('content-length')
            if content_length_header:
                self.content_length = int(content_length_header)

            accept_ranges = response.headers.get('accept-ranges', '').lower()
            self._accept_ranges = accept_ranges == 'bytes'

            if self._mime is None:
                content_type = response.headers.get('content-type')
                self._mime = content_type.split(';')[0].strip() if content_type else DEFAULT_MIME
            self._last_modified = parse_http_date(response.headers.get('last-modified'))
            self._entity_tag = response.headers.get('etag')

        except requests.RequestException as e:
            raise IOError(f"HEAD request failed: {e}")

    @property
    def size(self) -> int:
        if self.content_length is None:
            self._fetch_full_content()
        return self.content_length

    @property
    def mime(self) -> str:
        return self._mime or DEFAULT_MIME

    @property
    def last_modified(self) -> Optional[datetime]:
        return self._last_modified

    @property
    def entity_tag(self) -> Optional[str]:
        return self._entity_tag

    def _fetch_full_content(self):
        """Download entire content for small origins without range support."""
        if self._full_content is not None:
            return

        self.requests_made += 1
        try:
            response = self._session.get(self.url, timeout=self._timeout)
            if response.status_code >= 400:
                raise IOError(f"GET request failed with status {response.status_code}")

            self._full_content = response.content
            self.content_length = len(self._full_content)
            log.debug("Fetched %d bytes from %s without ranges", self.content_length, self.url)

        except requests.RequestException as e:
            raise IOError(f"GET request failed: {e}")

    def _fetch_range(self, start: int, length: int, continued: bool = False) -> bytes:
        """Fetch a specific byte range; a failed request is not retried."""
        end = start + length - 1
        headers = {'Range': f'bytes={start}-{end}'}

        self.requests_made += 1
        try:
            response = self._session.get(self.url, headers=headers, timeout=self._timeout)

            if response.status_code == 200:
                # Origin ignored the range and sent everything
                if self.content_length and self.content_length >= RANGE_FALLBACK_MAX:
                    raise RangeNotSupportedError("Origin doesn't support ranges and resource is too large")

                self._full_content = response.content
                return self._full_content[start:start + length]

            elif response.status_code == 206:
                data = response.content

                # origin sent a prefix of the range; ask once for the rest
                if data and len(data) < length and not continued:
                    remaining = length - len(data)
                    data += self._fetch_range(start + len(data), remaining, continued=True)

                return data

            elif response.status_code == 416:
                return b''

            else:
                raise IOError(f"Range request failed with status {response.status_code}")

        except requests.RequestException as e:
            log.debug("Range %d-%d of %s failed: %s", start, end, self.url, e)
            raise IOError(f"Range request failed: {e}")

    def read_bytes(self, offset: int, length: int) -> Optional[bytes]:
        """Return up to `length` bytes starting at `offset`, None past the end."""
        if length <= 0:
            raise ValueError("Length must be positive")
        if offset < 0 or offset >= self.size:
            return None

        if self._full_content is not None:
            data = self._full_content[offset:offset + length]
        elif _decide_full_get(self.content_length, self._accept_ranges):
            self._fetch_full_content()
            data = self._full_content[offset:offset + length]
        elif not self._accept_ranges:
            raise RangeNotSupportedError("Origin doesn't support ranges and resource is too large")
        else:
            data = self._fetch_range(offset, length)

        self.bytes_read += len(data)
        return data or None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        # Session is shared, don't close it here
        self._full_content = None


def open_http_resource(url: str, mime: Optional[str] = None) -> HTTPResource:
    """Create a remote HTTP resource."""
    return HTTPResource(url, mime=mime)
