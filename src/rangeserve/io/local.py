"""Local file and in-memory resources."""

import mimetypes
import mmap
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, Optional, Union

from .base import DEFAULT_CHUNK_SIZE, DEFAULT_MIME


def _guess_mime(name: Optional[str]) -> str:
    if not name:
        return DEFAULT_MIME
    mime, _ = mimetypes.guess_type(name)
    return mime or DEFAULT_MIME


class FileResource:
    """Local file resource read through mmap."""

    def __init__(self, path: Union[Path, str], mime: Optional[str] = None, chunk_size: int = DEFAULT_CHUNK_SIZE):
        self.path = Path(path)
        try:
            stat = self.path.stat()
        except OSError as e:
            raise IOError(f"Could not read from file: {self.path}") from e
        if not self.path.is_file():
            raise IOError(f"Not a regular file: {self.path}")

        self.name: Optional[str] = self.path.name
        self.chunk_size = chunk_size
        self.read_timeout: Optional[float] = None
        self.bytes_read = 0
        self.requests_made = 0
        self._size = stat.st_size
        self._mtime_ns = stat.st_mtime_ns
        self._mime = mime or _guess_mime(self.path.name)
        self._file = None
        self._mmap = None

    def _ensure_mmap(self):
        """Open and map the file on first access."""
        if self._mmap is not None:
            return
        if self._file is None:
            self._file = open(self.path, 'rb')
        self._mmap = mmap.mmap(self._file.fileno(), 0, access=mmap.ACCESS_READ)

    @property
    def size(self) -> int:
        return self._size

    @property
    def mime(self) -> str:
        return self._mime

    @property
    def last_modified(self) -> datetime:
        return datetime.fromtimestamp(self._mtime_ns / 1e9, tz=timezone.utc)

    @property
    def entity_tag(self) -> str:
        return f'"{self._size:x}-{self._mtime_ns:x}"'

    def read_bytes(self, offset: int, length: int) -> Optional[bytes]:
        """Return up to `length` bytes starting at `offset`, None past the end."""
        self.requests_made += 1
        if length <= 0:
            raise ValueError("Length must be positive")
        if offset < 0 or offset >= self._size:
            return None

        self._ensure_mmap()
        data = self._mmap[offset:offset + length]
        self.bytes_read += len(data)
        return data or None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        """Close mmap and file."""
        if self._mmap is not None:
            self._mmap.close()
            self._mmap = None
        if self._file is not None:
            self._file.close()
            self._file = None


class BytesResource:
    """In-memory resource."""

    def __init__(
        self,
        data: Union[bytes, bytearray, memoryview, str, BinaryIO],
        mime: Optional[str] = None,
        name: Optional[str] = None,
        last_modified: Optional[datetime] = None,
        entity_tag: Optional[str] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        if hasattr(data, 'read'):
            # BinaryIO: keep the caller's position
            current_pos = data.tell() if data.seekable() else None
            if current_pos is not None:
                data.seek(0)
            raw = data.read()
            if current_pos is not None:
                data.seek(current_pos)
            data = raw
        if isinstance(data, str):
            data = data.encode("utf-8")
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise TypeError(f"Unsupported data type: {type(data).__name__}")

        self._data = bytes(data)
        self.name = name
        self.chunk_size = chunk_size
        self.read_timeout: Optional[float] = None
        self.bytes_read = 0
        self._mime = mime or _guess_mime(name)
        self._last_modified = last_modified
        self._entity_tag = entity_tag

    @property
    def size(self) -> int:
        return len(self._data)

    @property
    def mime(self) -> str:
        return self._mime

    @property
    def last_modified(self) -> Optional[datetime]:
        return self._last_modified

    @property
    def entity_tag(self) -> Optional[str]:
        return self._entity_tag

    def read_bytes(self, offset: int, length: int) -> Optional[bytes]:
        if length <= 0:
            raise ValueError("Length must be positive")
        if offset < 0 or offset >= len(self._data):
            return None
        data = self._data[offset:offset + length]
        self.bytes_read += len(data)
        return data

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        pass


def open_local_resource(source: Union[Path, str, BinaryIO], mime: Optional[str] = None):
    """Create a resource for a local path or an in-memory file object."""
    if hasattr(source, 'read'):
        name = getattr(source, 'name', None)
        if isinstance(name, str):
            name = os.path.basename(name)
        else:
            name = None
        return BytesResource(source, mime=mime, name=name)
    return FileResource(source, mime=mime)
