"""Attribute file holding variable-length values in size-classed blocks."""

from __future__ import annotations

import struct
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator

from .bitmap import first_zero_bit, is_full, set_bit, unset_bit
from .errors import RMFileClosedError
from .layout import NO_FREE_PAGE, RM_PAGE_HEADER_SIZE, read_page_link, write_page_link
from .paged_file import PagedFile, PageHandle
from .rid import VarLenAttr

NUMBER_ATTRBLOCK_SPECIES = 7
ATTRBLOCK_BITMAP_SIZE = (8, 4, 2, 1, 1, 1, 1)
ATTRBLOCK_SLOT_SIZE = (70, 127, 255, 510, 1021, 2041, 4087)
ATTRBLOCK_NUM_RECORDS = (58, 32, 16, 8, 4, 2, 1)


def block_index_for(length: int) -> int:
    """Return the index of the smallest block class holding ``length`` bytes."""
    for index, slot_size in enumerate(ATTRBLOCK_SLOT_SIZE):
        if slot_size >= length:
            return index
    raise ValueError(
        f"value of {length} bytes exceeds the largest block of "
        f"{ATTRBLOCK_SLOT_SIZE[-1]} bytes"
    )


@dataclass
class AttrFileHeader:
    """First free page of each block class."""

    first_free_pages: list[int] = field(
        default_factory=lambda: [NO_FREE_PAGE] * NUMBER_ATTRBLOCK_SPECIES
    )

    _STRUCT = struct.Struct(f"<{NUMBER_ATTRBLOCK_SPECIES}i")
    SIZE = _STRUCT.size

    def pack(self) -> bytes:
        return self._STRUCT.pack(*self.first_free_pages)

    @classmethod
    def unpack(cls, data) -> "AttrFileHeader":
        if len(data) < cls.SIZE:
            raise ValueError(
                f"attribute file header needs {cls.SIZE} bytes, got {len(data)}"
            )
        return cls(list(cls._STRUCT.unpack_from(data, 0)))


def _as_bytes(value) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


class AttrFile:
    """Stores variable-length values in fixed-size slots of an open paged file."""

    def __init__(self, paged_file: PagedFile, header: AttrFileHeader | None = None) -> None:
        self.paged_file = paged_file
        self.header = header if header is not None else AttrFileHeader()
        self.is_open = True
        self.header_changed = False

    def _check_open(self) -> None:
        if not self.is_open:
            raise RMFileClosedError("attribute file is closed")

    @contextmanager
    def _pinned(self, page_num: int) -> Iterator[PageHandle]:
        handle = self.paged_file.page(page_num)
        try:
            yield handle
        finally:
            self.paged_file.unpin_page(page_num)

    @staticmethod
    def _bitmap(handle: PageHandle, index: int) -> memoryview:
        size = ATTRBLOCK_BITMAP_SIZE[index]
        return handle.data[RM_PAGE_HEADER_SIZE:RM_PAGE_HEADER_SIZE + size]

    @staticmethod
    def _slot_offset(index: int, slot_num: int) -> int:
        return (
            RM_PAGE_HEADER_SIZE
            + ATTRBLOCK_BITMAP_SIZE[index]
            + (slot_num - 1) * ATTRBLOCK_SLOT_SIZE[index]
        )

    def _new_block_page(self, index: int) -> int:
        handle = self.paged_file.allocate_page()
        try:
            write_page_link(handle.data, NO_FREE_PAGE)
            size = ATTRBLOCK_BITMAP_SIZE[index]
            handle.data[RM_PAGE_HEADER_SIZE:RM_PAGE_HEADER_SIZE + size] = bytes(size)
        finally:
            self.paged_file.unpin_page(handle.page_num)
        self.header.first_free_pages[index] = handle.page_num
        self.header_changed = True
        return handle.page_num

    def insert(self, value, length: int | None = None) -> VarLenAttr:
        """Store a value and return where it was put.

        ``length`` selects the block class and defaults to the value's size.
        """
        self._check_open()
        data = _as_bytes(value)
        if length is None:
            length = len(data)
        index = block_index_for(length)
        slot_size = ATTRBLOCK_SLOT_SIZE[index]

        page_num = self.header.first_free_pages[index]
        if page_num == NO_FREE_PAGE:
            page_num = self._new_block_page(index)

        with self._pinned(page_num) as handle:
            self.paged_file.mark_dirty(page_num)
            bitmap = self._bitmap(handle, index)
            slot_num = first_zero_bit(bitmap, ATTRBLOCK_BITMAP_SIZE[index])
            offset = self._slot_offset(index, slot_num)
            handle.data[offset:offset + slot_size] = data[:slot_size].ljust(slot_size, b"\0")
            set_bit(bitmap, slot_num)
            if is_full(bitmap, ATTRBLOCK_NUM_RECORDS[index]):
                self.header.first_free_pages[index] = read_page_link(handle.data)
                self.header_changed = True
                write_page_link(handle.data, NO_FREE_PAGE)

        return VarLenAttr(page_num, slot_num, index)

    def update(self, value, length: int | None, attr: VarLenAttr) -> VarLenAttr:
        """Replace the value at ``attr`` and return the new location."""
        self.delete(attr)
        return self.insert(value, length)

    def delete(self, attr: VarLenAttr) -> None:
        """Free the slot holding the value at ``attr``."""
        self._check_open()
        page_num, slot_num, index = attr.location()
        with self._pinned(page_num) as handle:
            self.paged_file.mark_dirty(page_num)
            bitmap = self._bitmap(handle, index)
            was_full = is_full(bitmap, ATTRBLOCK_NUM_RECORDS[index])
            unset_bit(bitmap, slot_num)
            if was_full:
                write_page_link(handle.data, self.header.first_free_pages[index])
                self.header.first_free_pages[index] = page_num
                self.header_changed = True

    def get(self, attr: VarLenAttr) -> bytes:
        """Return the whole slot holding the value at ``attr``."""
        self._check_open()
        page_num, slot_num, index = attr.location()
        offset = self._slot_offset(index, slot_num)
        with self._pinned(page_num) as handle:
            return bytes(handle.data[offset:offset + ATTRBLOCK_SLOT_SIZE[index]])