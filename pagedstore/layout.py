"""On-disk layout constants and the paged file header."""

from __future__ import annotations

import struct
from dataclasses import dataclass

from .errors import HeaderReadError

PAGE_SIZE = 4092
"""Usable bytes in a page, after the per-page header."""

PAGE_HEADER_SIZE = 4
"""Size of the per-page header holding the free-list link."""

FILE_HEADER_SIZE = PAGE_SIZE + PAGE_HEADER_SIZE
"""Bytes reserved at the start of every paged file for its header."""

BUFFER_SIZE = 40
"""Number of pages in the buffer pool."""

HASH_TABLE_SIZE = 20
"""Number of buckets in the buffer hash table."""

ALL_PAGES = -1
"""Page number meaning every page of a file."""

PAGE_USED = -2
"""Free-list link value marking a page as in use."""

PAGE_LIST_END = -1
"""Free-list link value ending the list."""

NO_FREE_PAGE = -1
"""Record-layer link value ending a free-page list."""

RM_PAGE_HEADER_SIZE = 4
"""Size of the record-layer page header holding the next free page."""

_INT = struct.Struct("<i")


@dataclass
class FileHeader:
    """Header stored at the start of a paged file."""

    first_free: int = PAGE_LIST_END
    num_pages: int = 0

    _STRUCT = struct.Struct("<ii")
    SIZE = _STRUCT.size

    def pack(self) -> bytes:
        return self._STRUCT.pack(self.first_free, self.num_pages)

    @classmethod
    def unpack(cls, data: bytes) -> "FileHeader":
        if len(data) < cls.SIZE:
            raise HeaderReadError(
                f"file header needs {cls.SIZE} bytes, got {len(data)}"
            )
        first_free, num_pages = cls._STRUCT.unpack_from(data, 0)
        return cls(first_free, num_pages)


def read_page_link(buf) -> int:
    """Return the link integer stored at the start of a page buffer."""
    return _INT.unpack_from(buf, 0)[0]


def write_page_link(buf, value: int) -> None:
    """Store a link integer at the start of a writable page buffer."""
    _INT.pack_into(buf, 0, value)