"""Paged files: fixed-size pages reached through a shared buffer pool."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Iterator

from .buffer import BufferManager
from .errors import (
    FileClosedError,
    HeaderReadError,
    HeaderWriteError,
    InvalidPageError,
    PageFreeError,
    PFEndOfFile,
    PFOSError,
)
from .layout import (
    ALL_PAGES,
    BUFFER_SIZE,
    FILE_HEADER_SIZE,
    PAGE_HEADER_SIZE,
    PAGE_LIST_END,
    PAGE_SIZE,
    PAGE_USED,
    FileHeader,
    read_page_link,
    write_page_link,
)

_CREATION_MODE = 0o600
_BINARY = getattr(os, "O_BINARY", 0)


@dataclass(frozen=True)
class PageHandle:
    """A pinned page: its number and a writable view of its data area."""

    page_num: int
    data: memoryview


class PagedFile:
    """An open paged file. Pages handed out are pinned until unpinned."""

    def __init__(self, fd: int, header: FileHeader, buffer: BufferManager) -> None:
        self._fd = fd
        self._header = header
        self._buffer = buffer
        self._open = True
        self._header_changed = False

    @property
    def fd(self) -> int:
        return self._fd

    @property
    def is_open(self) -> bool:
        return self._open

    def _check_open(self) -> None:
        if not self._open:
            raise FileClosedError("paged file is closed")

    def _handle(self, page_num: int, frame: bytearray) -> PageHandle:
        return PageHandle(page_num, memoryview(frame)[PAGE_HEADER_SIZE:])

    def _write_header(self) -> None:
        if not self._header_changed:
            return
        packed = self._header.pack()
        try:
            os.lseek(self._fd, 0, os.SEEK_SET)
            written = os.write(self._fd, packed)
        except OSError as exc:
            raise PFOSError(str(exc)) from exc
        if written != len(packed):
            raise HeaderWriteError(
                f"wrote {written} of {len(packed)} header bytes"
            )
        self._header_changed = False

    def _mark_closed(self) -> None:
        self._open = False

    # --- page access ----------------------------------------------------

    def is_valid_page_num(self, page_num: int) -> bool:
        """Tell whether ``page_num`` lies among the allocated pages."""
        return 0 <= page_num < self._header.num_pages

    def num_pages(self) -> int:
        """Number of pages allocated in the file, free ones included."""
        return self._header.num_pages

    def page(self, page_num: int) -> PageHandle:
        """Pin and return a page that is in use."""
        self._check_open()
        if not self.is_valid_page_num(page_num):
            raise InvalidPageError(f"page {page_num} is out of range")
        frame = self._buffer.get_page(self._fd, page_num)
        if read_page_link(frame) == PAGE_USED:
            return self._handle(page_num, frame)
        self.unpin_page(page_num)
        raise InvalidPageError(f"page {page_num} is free")

    def next_page(self, current: int) -> PageHandle:
        """Pin and return the first page in use after ``current``.

        ``current`` may be -1 to start from the beginning of the file.
        """
        self._check_open()
        if current != -1 and not self.is_valid_page_num(current):
            raise InvalidPageError(f"page {current} is out of range")
        for page_num in range(current + 1, self._header.num_pages):
            try:
                return self.page(page_num)
            except InvalidPageError:
                continue
        raise PFEndOfFile("no further page in use")

    def prev_page(self, current: int) -> PageHandle:
        """Pin and return the last page in use before ``current``.

        ``current`` may equal ``num_pages()`` to start from the end.
        """
        self._check_open()
        if current != self._header.num_pages and not self.is_valid_page_num(current):
            raise InvalidPageError(f"page {current} is out of range")
        for page_num in range(current - 1, -1, -1):
            try:
                return self.page(page_num)
            except InvalidPageError:
                continue
        raise PFEndOfFile("no earlier page in use")

    def first_page(self) -> PageHandle:
        """Pin and return the first page in use."""
        return self.next_page(-1)

    def last_page(self) -> PageHandle:
        """Pin and return the last page in use."""
        return self.prev_page(self._header.num_pages)

    def pages(self) -> Iterator[PageHandle]:
        """Yield every page in use in order.

        Each page stays pinned while the caller holds it and is unpinned
        before the next one is fetched.
        """
        current = -1
        while True:
            try:
                handle = self.next_page(current)
            except PFEndOfFile:
                return
            try:
                yield handle
            finally:
                self.unpin_page(handle.page_num)
            current = handle.page_num

    # --- allocation -----------------------------------------------------

    def allocate_page(self) -> PageHandle:
        """Allocate a zeroed page, reusing a free one if there is one."""
        self._check_open()
        if self._header.first_free != PAGE_LIST_END:
            page_num = self._header.first_free
            frame = self._buffer.get_page(self._fd, page_num)
            self._header.first_free = read_page_link(frame)
        else:
            page_num = self._header.num_pages
            frame = self._buffer.allocate_page(self._fd, page_num)
            self._header.num_pages += 1
        self._header_changed = True

        write_page_link(frame, PAGE_USED)
        frame[PAGE_HEADER_SIZE:PAGE_HEADER_SIZE + PAGE_SIZE] = bytes(PAGE_SIZE)
        self.mark_dirty(page_num)
        return self._handle(page_num, frame)

    def dispose_page(self, page_num: int) -> None:
        """Put an unpinned page in use back on the free list."""
        self._check_open()
        if not self.is_valid_page_num(page_num):
            raise InvalidPageError(f"page {page_num} is out of range")
        frame = self._buffer.get_page(self._fd, page_num, multiple_pins=False)
        if read_page_link(frame) != PAGE_USED:
            self.unpin_page(page_num)
            raise PageFreeError(f"page {page_num} is already free")
        write_page_link(frame, self._header.first_free)
        self._header.first_free = page_num
        self._header_changed = True
        self.mark_dirty(page_num)
        self.unpin_page(page_num)

    # --- buffer control -------------------------------------------------

    def mark_dirty(self, page_num: int) -> None:
        """Mark a pinned page as modified."""
        self._check_open()
        if not self.is_valid_page_num(page_num):
            raise InvalidPageError(f"page {page_num} is out of range")
        self._buffer.mark_dirty(self._fd, page_num)

    def unpin_page(self, page_num: int) -> None:
        """Release one pin on a page."""
        self._check_open()
        if not self.is_valid_page_num(page_num):
            raise InvalidPageError(f"page {page_num} is out of range")
        self._buffer.unpin_page(self._fd, page_num)

    def flush_pages(self) -> None:
        """Write the header and dirty pages, and release unpinned pages."""
        self._check_open()
        self._write_header()
        self._buffer.flush_pages(self._fd)

    def force_pages(self, page_num: int = ALL_PAGES) -> None:
        """Write the header and one or all dirty pages, keeping them buffered."""
        self._check_open()
        self._write_header()
        if page_num == ALL_PAGES:
            self._buffer.force_pages(self._fd)
        else:
            self._buffer.force_single_page(self._fd, page_num)


class PagedFileManager:
    """Creates, opens, closes and removes paged files over one buffer pool."""

    def __init__(self, buffer_pages: int = BUFFER_SIZE) -> None:
        self._buffer = BufferManager(buffer_pages)

    def create_file(self, filename: str) -> None:
        """Create a new file holding only an empty header."""
        try:
            fd = os.open(
                filename,
                os.O_CREAT | os.O_EXCL | os.O_WRONLY | _BINARY,
                _CREATION_MODE,
            )
        except OSError as exc:
            raise PFOSError(str(exc)) from exc

        block = bytearray(FILE_HEADER_SIZE)
        header = FileHeader().pack()
        block[: len(header)] = header
        try:
            written = os.write(fd, bytes(block))
        except OSError as exc:
            os.close(fd)
            os.unlink(filename)
            raise PFOSError(str(exc)) from exc
        if written != FILE_HEADER_SIZE:
            os.close(fd)
            os.unlink(filename)
            raise HeaderWriteError(
                f"wrote {written} of {FILE_HEADER_SIZE} header bytes"
            )
        try:
            os.close(fd)
        except OSError as exc:
            raise PFOSError(str(exc)) from exc

    def destroy_file(self, filename: str) -> None:
        """Remove a file."""
        try:
            os.unlink(filename)
        except OSError as exc:
            raise PFOSError(str(exc)) from exc

    def open_file(self, filename: str) -> PagedFile:
        """Open a file for reading and writing and return its handle."""
        try:
            fd = os.open(filename, os.O_RDWR | _BINARY)
        except OSError as exc:
            raise PFOSError(str(exc)) from exc
        try:
            data = os.read(fd, FileHeader.SIZE)
        except OSError as exc:
            os.close(fd)
            raise PFOSError(str(exc)) from exc
        if len(data) != FileHeader.SIZE:
            os.close(fd)
            raise HeaderReadError(
                f"read {len(data)} of {FileHeader.SIZE} header bytes"
            )
        return PagedFile(fd, FileHeader.unpack(data), self._buffer)

    def close_file(self, handle: PagedFile) -> None:
        """Flush the file's pages and close it."""
        if not handle.is_open:
            raise FileClosedError("paged file is already closed")
        handle.flush_pages()
        try:
            os.close(handle.fd)
        except OSError as exc:
            raise PFOSError(str(exc)) from exc
        handle._mark_closed()

    def describe_buffer(self) -> str:
        """Describe the buffer pool contents."""
        return self._buffer.describe()