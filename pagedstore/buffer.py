"""Buffer pool of file pages with least-recently-used replacement."""

from __future__ import annotations

import os
import threading
from collections import OrderedDict, deque
from dataclasses import dataclass, field

from .errors import (
    HashNotFoundError,
    IncompleteReadError,
    IncompleteWriteError,
    NoBufferError,
    PageInBufferError,
    PageNotInBufferError,
    PagePinnedError,
    PageUnpinnedError,
    PFOSError,
)
from .hashtable import BufferHashTable
from .layout import BUFFER_SIZE, FILE_HEADER_SIZE, HASH_TABLE_SIZE, PAGE_HEADER_SIZE, PAGE_SIZE

MEMORY_FD = -1
"""File descriptor recorded for a slot that holds no file page."""


@dataclass
class _Frame:
    data: bytearray
    fd: int = MEMORY_FD
    page_num: int = -1
    dirty: bool = False
    pin_count: int = 0


@dataclass
class _UsedList:
    """Slots in use, kept from least to most recently used."""

    order: "OrderedDict[int, None]" = field(default_factory=OrderedDict)

    def link_head(self, slot: int) -> None:
        self.order[slot] = None
        self.order.move_to_end(slot)

    def unlink(self, slot: int) -> None:
        self.order.pop(slot, None)

    def from_tail(self) -> list[int]:
        return list(self.order)

    def from_head(self) -> list[int]:
        return list(reversed(self.order))


class BufferManager:
    """Holds a fixed number of page frames shared by every open file."""

    def __init__(self, num_pages: int = BUFFER_SIZE) -> None:
        if num_pages <= 0:
            raise ValueError("num_pages must be positive")
        self._num_pages = num_pages
        self._page_size = PAGE_SIZE + PAGE_HEADER_SIZE
        self._frames = [_Frame(bytearray(self._page_size)) for _ in range(num_pages)]
        self._hash = BufferHashTable(HASH_TABLE_SIZE)
        self._free: deque[int] = deque(range(num_pages))
        self._used = _UsedList()
        self._lock = threading.RLock()

    # --- public operations ----------------------------------------------

    def get_page(self, fd: int, page_num: int, multiple_pins: bool = True) -> bytearray:
        """Pin a page of file ``fd`` and return its frame, reading it if needed."""
        with self._lock:
            try:
                slot = self._hash.find(fd, page_num)
            except HashNotFoundError:
                slot = self._buffer_alloc()
                try:
                    self._read_page(fd, page_num, self._frames[slot].data)
                    self._hash.insert(fd, page_num, slot)
                    self._init_frame(fd, page_num, slot)
                except Exception:
                    self._used.unlink(slot)
                    self._free.appendleft(slot)
                    raise
                return self._frames[slot].data

            frame = self._frames[slot]
            if not multiple_pins and frame.pin_count > 0:
                raise PagePinnedError(f"page ({fd}, {page_num}) is pinned")
            frame.pin_count += 1
            self._used.unlink(slot)
            self._used.link_head(slot)
            return frame.data

    def allocate_page(self, fd: int, page_num: int) -> bytearray:
        """Pin a frame for a new page that is not yet in the file."""
        with self._lock:
            if (fd, page_num) in self._hash:
                raise PageInBufferError(f"page ({fd}, {page_num}) is already buffered")
            slot = self._buffer_alloc()
            try:
                self._hash.insert(fd, page_num, slot)
                self._init_frame(fd, page_num, slot)
            except Exception:
                self._used.unlink(slot)
                self._free.appendleft(slot)
                raise
            return self._frames[slot].data

    def mark_dirty(self, fd: int, page_num: int) -> None:
        """Mark a pinned page as modified and make it most recently used."""
        with self._lock:
            slot = self._find_resident(fd, page_num)
            frame = self._frames[slot]
            if frame.pin_count == 0:
                raise PageUnpinnedError(f"page ({fd}, {page_num}) is not pinned")
            frame.dirty = True
            self._used.unlink(slot)
            self._used.link_head(slot)

    def unpin_page(self, fd: int, page_num: int) -> None:
        """Drop one pin from a page."""
        with self._lock:
            slot = self._find_resident(fd, page_num)
            frame = self._frames[slot]
            if frame.pin_count == 0:
                raise PageUnpinnedError(f"page ({fd}, {page_num}) is already unpinned")
            frame.pin_count -= 1
            if frame.pin_count == 0:
                self._used.unlink(slot)
                self._used.link_head(slot)

    def flush_pages(self, fd: int) -> None:
        """Write back and release every unpinned page of ``fd``.

        Pinned pages stay buffered; PagePinnedError is raised after the
        others have been released.
        """
        with self._lock:
            pinned = False
            for slot in self._used.from_head():
                frame = self._frames[slot]
                if frame.fd != fd:
                    continue
                if frame.pin_count:
                    pinned = True
                    continue
                if frame.dirty:
                    self._write_page(fd, frame.page_num, frame.data)
                    frame.dirty = False
                self._hash.remove(fd, frame.page_num)
                self._used.unlink(slot)
                self._free.appendleft(slot)
            if pinned:
                raise PagePinnedError(f"file {fd} still has pinned pages")

    def force_pages(self, fd: int) -> None:
        """Write back every dirty page of ``fd`` without releasing it."""
        with self._lock:
            for slot in self._used.from_head():
                frame = self._frames[slot]
                if frame.fd == fd and frame.dirty:
                    self._write_page(fd, frame.page_num, frame.data)
                    frame.dirty = False

    def force_single_page(self, fd: int, page_num: int) -> None:
        """Write back one page without releasing it.

        The search stops at the most recently used frame holding
        ``page_num``, whichever file it belongs to.
        """
        with self._lock:
            for slot in self._used.from_head():
                frame = self._frames[slot]
                if frame.page_num != page_num:
                    continue
                if frame.fd == fd and frame.dirty:
                    self._write_page(fd, frame.page_num, frame.data)
                    frame.dirty = False
                break

    def block_size(self) -> int:
        """Size of one frame, page header included."""
        return self._page_size

    def describe(self) -> str:
        """Describe the frames in use, most recently used first."""
        with self._lock:
            lines = [
                f"Buffer contains {self._num_pages} pages of size {self._page_size}.",
                "Contents in order from most recently used to least recently used.",
            ]
            used = self._used.from_head()
            for slot in used:
                frame = self._frames[slot]
                lines.extend(
                    [
                        f"{slot} :: ",
                        f"  fd = {frame.fd}",
                        f"  pageNum = {frame.page_num}",
                        f"  bDirty = {int(frame.dirty)}",
                        f"  pinCount = {frame.pin_count}",
                    ]
                )
            lines.append("Buffer is empty!" if not used else "All remaining slots are freeHead.")
            return "\n".join(lines) + "\n"

    # --- internals ------------------------------------------------------

    def _find_resident(self, fd: int, page_num: int) -> int:
        try:
            return self._hash.find(fd, page_num)
        except HashNotFoundError:
            raise PageNotInBufferError(f"page ({fd}, {page_num}) is not buffered") from None

    def _buffer_alloc(self) -> int:
        if self._free:
            slot = self._free.popleft()
        else:
            slot = next(
                (s for s in self._used.from_tail() if self._frames[s].pin_count == 0),
                None,
            )
            if slot is None:
                raise NoBufferError("every buffer page is pinned")
            frame = self._frames[slot]
            if frame.dirty:
                self._write_page(frame.fd, frame.page_num, frame.data)
                frame.dirty = False
            self._hash.remove(frame.fd, frame.page_num)
            self._used.unlink(slot)
        self._used.link_head(slot)
        return slot

    def _init_frame(self, fd: int, page_num: int, slot: int) -> None:
        frame = self._frames[slot]
        frame.fd = fd
        frame.page_num = page_num
        frame.dirty = False
        frame.pin_count = 1

    def _offset(self, page_num: int) -> int:
        return page_num * self._page_size + FILE_HEADER_SIZE

    def _read_page(self, fd: int, page_num: int, dest: bytearray) -> None:
        try:
            os.lseek(fd, self._offset(page_num), os.SEEK_SET)
            data = os.read(fd, self._page_size)
        except OSError as exc:
            raise PFOSError(str(exc)) from exc
        if len(data) != self._page_size:
            raise IncompleteReadError(
                f"read {len(data)} of {self._page_size} bytes of page {page_num}"
            )
        dest[:] = data

    def _write_page(self, fd: int, page_num: int, source: bytearray) -> None:
        try:
            os.lseek(fd, self._offset(page_num), os.SEEK_SET)
            written = os.write(fd, bytes(source))
        except OSError as exc:
            raise PFOSError(str(exc)) from exc
        if written != self._page_size:
            raise IncompleteWriteError(
                f"wrote {written} of {self._page_size} bytes of page {page_num}"
            )