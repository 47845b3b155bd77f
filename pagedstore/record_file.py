"""Fixed-size record files with slot bitmaps and a free-page list."""

from __future__ import annotations

import struct
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

from .attr_file import AttrFile
from .bitmap import bitmap_size, first_zero_bit, is_full, set_bit, unset_bit
from .errors import (
    InvalidPageNumberError,
    InvalidSlotError,
    NullRecordError,
    RMFileClosedError,
)
from .layout import ALL_PAGES, NO_FREE_PAGE, RM_PAGE_HEADER_SIZE, read_page_link, write_page_link
from .paged_file import PagedFile, PageHandle
from .rid import RID, Record, VarLenAttr


@dataclass
class RecordFileHeader:
    """Header page contents of a record file."""

    record_size: int = 0
    number_records: int = 0
    first_free_page: int = NO_FREE_PAGE
    total_number_records: int = 0

    _STRUCT = struct.Struct("<iiii")
    SIZE = _STRUCT.size

    def pack(self) -> bytes:
        return self._STRUCT.pack(
            self.record_size,
            self.number_records,
            self.first_free_page,
            self.total_number_records,
        )

    @classmethod
    def unpack(cls, data) -> "RecordFileHeader":
        if len(data) < cls.SIZE:
            raise ValueError(
                f"record file header needs {cls.SIZE} bytes, got {len(data)}"
            )
        return cls(*cls._STRUCT.unpack_from(data, 0))


def _as_bytes(value) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


class RecordFile:
    """An open record file together with its attribute file."""

    def __init__(
        self,
        paged_file: PagedFile,
        header: RecordFileHeader,
        attr_file: AttrFile,
    ) -> None:
        self.paged_file = paged_file
        self.header = header
        self.attr_file = attr_file
        self.is_open = True
        self.header_changed = False

    # --- helpers --------------------------------------------------------

    def _check_open(self) -> None:
        if not self.is_open:
            raise RMFileClosedError("record file is closed")

    @contextmanager
    def _pinned(self, page_num: int) -> Iterator[PageHandle]:
        handle = self.paged_file.page(page_num)
        try:
            yield handle
        finally:
            self.paged_file.unpin_page(page_num)

    def _bitmap(self, handle: PageHandle) -> memoryview:
        size = bitmap_size(self.header.number_records)
        return handle.data[RM_PAGE_HEADER_SIZE:RM_PAGE_HEADER_SIZE + size]

    def _checked_location(self, rid: RID) -> tuple[int, int]:
        page_num, slot_num = rid.location()
        if page_num <= 0:
            raise InvalidPageNumberError(f"page {page_num} is not a data page")
        if not 1 <= slot_num <= self.header.number_records:
            raise InvalidSlotError(f"slot {slot_num} is out of range")
        return page_num, slot_num

    def _fit(self, data: bytes) -> bytes:
        size = self.header.record_size
        return data[:size].ljust(size, b"\0")

    def _write_attr_pointer(self, rid: RID, offset: int, attr: VarLenAttr) -> None:
        page_num, slot_num = rid.location()
        with self._pinned(page_num) as handle:
            self.paged_file.mark_dirty(page_num)
            start = self.record_offset(slot_num) + offset
            handle.data[start:start + VarLenAttr.SIZE] = attr.pack()

    # --- records --------------------------------------------------------

    def record_offset(self, slot_num: int) -> int:
        """Byte offset of slot ``slot_num`` within a page's data area."""
        return (
            RM_PAGE_HEADER_SIZE
            + bitmap_size(self.header.number_records)
            + (slot_num - 1) * self.header.record_size
        )

    def get_record(self, rid: RID) -> Record:
        """Return a copy of the record at ``rid``."""
        self._check_open()
        page_num, slot_num = rid.location()
        offset = self.record_offset(slot_num)
        with self._pinned(page_num) as handle:
            data = bytes(handle.data[offset:offset + self.header.record_size])
        return Record(rid, data)

    def insert_record(self, data) -> RID:
        """Store a record and return its identifier."""
        self._check_open()
        if data is None:
            raise NullRecordError("no record data given")
        payload = self._fit(_as_bytes(data))

        page_num = self.header.first_free_page
        if page_num == NO_FREE_PAGE:
            handle = self.paged_file.allocate_page()
            try:
                write_page_link(handle.data, NO_FREE_PAGE)
                size = bitmap_size(self.header.number_records)
                handle.data[RM_PAGE_HEADER_SIZE:RM_PAGE_HEADER_SIZE + size] = bytes(size)
            finally:
                self.paged_file.unpin_page(handle.page_num)
            page_num = handle.page_num
            self.header.first_free_page = page_num
            self.header_changed = True

        with self._pinned(page_num) as handle:
            bitmap = self._bitmap(handle)
            slot_num = first_zero_bit(bitmap, len(bitmap))
            self.paged_file.mark_dirty(page_num)
            offset = self.record_offset(slot_num)
            handle.data[offset:offset + self.header.record_size] = payload
            set_bit(bitmap, slot_num)
            if is_full(bitmap, self.header.number_records):
                self.header.first_free_page = read_page_link(handle.data)
                self.header_changed = True
                write_page_link(handle.data, NO_FREE_PAGE)

        self.header.total_number_records += 1
        self.header_changed = True
        return RID(page_num, slot_num)

    def update_record(self, record: Record) -> None:
        """Overwrite the stored record with ``record.data``."""
        self._check_open()
        page_num, slot_num = self._checked_location(record.rid)
        payload = self._fit(_as_bytes(record.data))
        with self._pinned(page_num) as handle:
            self.paged_file.mark_dirty(page_num)
            offset = self.record_offset(slot_num)
            handle.data[offset:offset + self.header.record_size] = payload

    def delete_record(self, rid: RID) -> None:
        """Free the slot of the record at ``rid``."""
        self._check_open()
        page_num, slot_num = self._checked_location(rid)
        with self._pinned(page_num) as handle:
            self.paged_file.mark_dirty(page_num)
            bitmap = self._bitmap(handle)
            was_full = is_full(bitmap, self.header.number_records)
            unset_bit(bitmap, slot_num)
            if was_full:
                write_page_link(handle.data, self.header.first_free_page)
                self.header.first_free_page = page_num
                self.header_changed = True
        self.header.total_number_records -= 1
        self.header_changed = True

    # --- variable-length values ----------------------------------------

    def insert_var_value(self, rid: RID, offset: int, value, length: int | None = None) -> VarLenAttr:
        """Store a value and write its locator at ``offset`` in record ``rid``."""
        self._check_open()
        attr = self.attr_file.insert(value, length)
        self._write_attr_pointer(rid, offset, attr)
        return attr

    def delete_var_value(self, rid: RID, offset: int, attr: VarLenAttr) -> None:
        """Free the stored value at ``attr``."""
        self._check_open()
        self.attr_file.delete(attr)

    def update_var_value(
        self, rid: RID, offset: int, value, length: int | None, attr: VarLenAttr
    ) -> VarLenAttr:
        """Replace the value at ``attr`` and rewrite the locator in the record."""
        self._check_open()
        new_attr = self.attr_file.update(value, length, attr)
        self._write_attr_pointer(rid, offset, new_attr)
        return new_attr

    def get_var_value(self, attr: VarLenAttr) -> bytes:
        """Return the slot holding the value at ``attr``."""
        self._check_open()
        return self.attr_file.get(attr)

    # --- file-level -----------------------------------------------------

    def force_pages(self, page_num: int = ALL_PAGES) -> None:
        """Write dirty pages back to disk, keeping them buffered."""
        self._check_open()
        self.paged_file.force_pages(page_num)

    def num_pages(self) -> int:
        """Pages allocated for records, the header page excluded."""
        return self.paged_file.num_pages() - 1

    def num_tuples(self) -> int:
        """Number of records stored in the file."""
        return self.header.total_number_records