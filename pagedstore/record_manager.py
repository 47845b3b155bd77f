"""Creation, opening, closing and removal of record files."""

from __future__ import annotations

from .attr_file import AttrFile, AttrFileHeader
from .bitmap import bitmap_size
from .errors import (
    InvalidFileNameError,
    RecordTooLargeError,
    RecordTooSmallError,
    RMFileClosedError,
)
from .layout import NO_FREE_PAGE, PAGE_SIZE, RM_PAGE_HEADER_SIZE
from .paged_file import PagedFile, PagedFileManager
from .record_file import RecordFile, RecordFileHeader


def records_per_page(record_size: int) -> int:
    """Most records of ``record_size`` bytes that fit on a page with their bitmap."""
    if record_size <= 0:
        raise ValueError("record_size must be positive")
    count = 0
    while (
        RM_PAGE_HEADER_SIZE + bitmap_size(count + 1) + (count + 1) * record_size
        <= PAGE_SIZE
    ):
        count += 1
    return count


def _attr_file_name(filename: str) -> str:
    return f"{filename}_attr"


class RecordManager:
    """Manages record files, each paired with an attribute file."""

    def __init__(self, paged_manager: PagedFileManager | None = None) -> None:
        self._pf = paged_manager if paged_manager is not None else PagedFileManager()

    def create_file(self, filename: str, record_size: int) -> None:
        """Create a record file and its attribute file with empty headers."""
        if record_size <= 0:
            raise RecordTooSmallError(f"record size {record_size} is not positive")
        if record_size > PAGE_SIZE:
            raise RecordTooLargeError(
                f"record size {record_size} exceeds the page size {PAGE_SIZE}"
            )
        if filename is None:
            raise InvalidFileNameError("no file name given")
        attr_name = _attr_file_name(filename)
        self._pf.create_file(filename)
        self._pf.create_file(attr_name)
        header = RecordFileHeader(
            record_size=record_size,
            number_records=records_per_page(record_size),
            first_free_page=NO_FREE_PAGE,
            total_number_records=0,
        )
        self._write_new_header(filename, header.pack())
        self._write_new_header(attr_name, AttrFileHeader().pack())

    def destroy_file(self, filename: str) -> None:
        """Remove a record file and its attribute file."""
        if filename is None:
            raise InvalidFileNameError("no file name given")
        self._pf.destroy_file(filename)
        self._pf.destroy_file(_attr_file_name(filename))

    def open_file(self, filename: str) -> RecordFile:
        """Open a record file and its attribute file."""
        if filename is None:
            raise InvalidFileNameError("no file name given")
        rec_pf = self._pf.open_file(filename)
        try:
            attr_pf = self._pf.open_file(_attr_file_name(filename))
        except Exception:
            self._pf.close_file(rec_pf)
            raise
        header = RecordFileHeader.unpack(self._read_header(rec_pf))
        attr_header = AttrFileHeader.unpack(self._read_header(attr_pf))
        return RecordFile(rec_pf, header, AttrFile(attr_pf, attr_header))

    def close_file(self, record_file: RecordFile) -> None:
        """Write back changed headers and close both files."""
        if not record_file.is_open:
            raise RMFileClosedError("record file is already closed")
        attr_file = record_file.attr_file
        if record_file.header_changed:
            self._store_header(record_file.paged_file, record_file.header.pack())
        if attr_file.header_changed:
            self._store_header(attr_file.paged_file, attr_file.header.pack())
        self._pf.close_file(record_file.paged_file)
        self._pf.close_file(attr_file.paged_file)
        record_file.is_open = False
        record_file.header_changed = False
        attr_file.is_open = False
        attr_file.header_changed = False

    # --- internals ------------------------------------------------------

    def _write_new_header(self, filename: str, packed: bytes) -> None:
        paged_file = self._pf.open_file(filename)
        try:
            handle = paged_file.allocate_page()
            try:
                handle.data[: len(packed)] = packed
            finally:
                paged_file.unpin_page(handle.page_num)
        finally:
            self._pf.close_file(paged_file)

    @staticmethod
    def _read_header(paged_file: PagedFile) -> bytes:
        handle = paged_file.first_page()
        try:
            return bytes(handle.data)
        finally:
            paged_file.unpin_page(handle.page_num)

    @staticmethod
    def _store_header(paged_file: PagedFile, packed: bytes) -> None:
        handle = paged_file.first_page()
        try:
            handle.data[: len(packed)] = packed
            paged_file.mark_dirty(handle.page_num)
        finally:
            paged_file.unpin_page(handle.page_num)