"""Sequential scans over a record file with an optional attribute condition."""

from __future__ import annotations

import operator
import struct
from enum import Enum
from typing import Callable, Iterator

from .bitmap import bitmap_size, is_set
from .errors import (
    AttributeInconsistentError,
    InvalidAttributeError,
    InvalidOffsetError,
    InvalidOperatorError,
    PFEndOfFile,
    RMEndOfFile,
    RMFileClosedError,
    ScanClosedError,
)
from .layout import NO_FREE_PAGE, RM_PAGE_HEADER_SIZE
from .record_file import RecordFile
from .rid import RID, Record, VarLenAttr

_INT = struct.Struct("<i")
_FLOAT = struct.Struct("<f")


class AttrType(Enum):
    """Type of the attribute a scan compares."""

    INT = "int"
    FLOAT = "float"
    STRING = "string"
    VARCHAR = "varchar"


class CompOp(Enum):
    """Comparison applied between a record's attribute and the given value."""

    NO_OP = "no_op"
    EQ = "=="
    NE = "!="
    LT = "<"
    GT = ">"
    LE = "<="
    GE = ">="


_OPERATORS: dict[CompOp, Callable[[object, object], bool]] = {
    CompOp.EQ: operator.eq,
    CompOp.NE: operator.ne,
    CompOp.LT: operator.lt,
    CompOp.GT: operator.gt,
    CompOp.LE: operator.le,
    CompOp.GE: operator.ge,
}


def _c_string(data) -> bytes:
    """Return the bytes of ``data`` up to the first NUL byte."""
    raw = bytes(data)
    end = raw.find(b"\0")
    return raw if end < 0 else raw[:end]


def _as_bytes(value) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


class FileScan:
    """Walks the records of a file that satisfy ``attribute <op> value``."""

    def __init__(self) -> None:
        self._open = False
        self._record_file: RecordFile | None = None
        self._attr_type = AttrType.INT
        self._attr_length = 0
        self._attr_offset = 0
        self._comp_op = CompOp.NO_OP
        self._given: object = None
        self._page_num = NO_FREE_PAGE
        self._slot_num = 1

    @property
    def is_open(self) -> bool:
        return self._open

    def open(
        self,
        record_file: RecordFile,
        attr_type,
        attr_length: int,
        attr_offset: int,
        comp_op=CompOp.NO_OP,
        value=None,
    ) -> None:
        """Start a scan positioned before the first record of the file."""
        try:
            attr_type = AttrType(attr_type)
        except ValueError:
            raise InvalidAttributeError(f"unknown attribute type {attr_type!r}") from None
        if not record_file.is_open:
            raise RMFileClosedError("record file is closed")
        if attr_offset < 0 or attr_offset > record_file.header.record_size:
            raise InvalidOffsetError(f"attribute offset {attr_offset} is outside the record")
        try:
            comp_op = CompOp(comp_op)
        except ValueError:
            raise InvalidOperatorError(f"unknown operator {comp_op!r}") from None
        if attr_type in (AttrType.INT, AttrType.FLOAT) and attr_length != 4:
            raise AttributeInconsistentError(
                f"{attr_type.value} attributes are 4 bytes, not {attr_length}"
            )
        if comp_op is not CompOp.NO_OP and value is None:
            comp_op = CompOp.NO_OP

        self._record_file = record_file
        self._attr_type = attr_type
        self._attr_length = attr_length
        self._attr_offset = attr_offset
        self._comp_op = comp_op
        self._given = self._convert(value) if comp_op is not CompOp.NO_OP else None
        self._open = True
        self._slot_num = 1

        paged_file = record_file.paged_file
        header_page = paged_file.first_page()
        try:
            try:
                first_data = paged_file.next_page(header_page.page_num)
            except PFEndOfFile:
                self._page_num = NO_FREE_PAGE
            else:
                self._page_num = first_data.page_num
                paged_file.unpin_page(first_data.page_num)
        finally:
            paged_file.unpin_page(header_page.page_num)

    def close(self) -> None:
        """End the scan."""
        if not self._open:
            raise ScanClosedError("scan is not open")
        self._open = False

    def next_record(self) -> Record:
        """Return the next matching record, or raise RMEndOfFile."""
        if not self._open:
            raise ScanClosedError("scan is not open")
        record_file = self._record_file
        paged_file = record_file.paged_file
        per_page = record_file.header.number_records
        record_size = record_file.header.record_size
        map_size = bitmap_size(per_page)

        while self._page_num != NO_FREE_PAGE:
            page_num = self._page_num
            found: Record | None = None
            handle = paged_file.page(page_num)
            try:
                bitmap = handle.data[RM_PAGE_HEADER_SIZE:RM_PAGE_HEADER_SIZE + map_size]
                while found is None and self._slot_num <= per_page:
                    slot = self._slot_num
                    self._slot_num += 1
                    if not is_set(bitmap, slot):
                        continue
                    offset = record_file.record_offset(slot)
                    data = bytes(handle.data[offset:offset + record_size])
                    if self._matches(data):
                        found = Record(RID(page_num, slot), data)
            finally:
                paged_file.unpin_page(page_num)
            if self._slot_num > per_page:
                self._advance_page(page_num)
            if found is not None:
                return found
        raise RMEndOfFile("no further matching record")

    def __iter__(self) -> Iterator[Record]:
        while True:
            try:
                yield self.next_record()
            except RMEndOfFile:
                return

    # --- internals ------------------------------------------------------

    def _advance_page(self, page_num: int) -> None:
        paged_file = self._record_file.paged_file
        try:
            handle = paged_file.next_page(page_num)
        except PFEndOfFile:
            self._page_num = NO_FREE_PAGE
            return
        paged_file.unpin_page(handle.page_num)
        self._page_num = handle.page_num
        self._slot_num = 1

    def _convert(self, value):
        if self._attr_type is AttrType.INT:
            return int(value)
        if self._attr_type is AttrType.FLOAT:
            return _FLOAT.unpack(_FLOAT.pack(float(value)))[0]
        return _c_string(_as_bytes(value))

    def _field(self, data: bytes):
        offset = self._attr_offset
        if self._attr_type is AttrType.INT:
            return _INT.unpack_from(data, offset)[0]
        if self._attr_type is AttrType.FLOAT:
            return _FLOAT.unpack_from(data, offset)[0]
        if self._attr_type is AttrType.STRING:
            return _c_string(data[offset:])
        attr = VarLenAttr.unpack(data[offset:offset + VarLenAttr.SIZE])
        return _c_string(self._record_file.get_var_value(attr))

    def _matches(self, data: bytes) -> bool:
        if self._comp_op is CompOp.NO_OP:
            return True
        return _OPERATORS[self._comp_op](self._field(data), self._given)