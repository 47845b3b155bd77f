"""Record identifiers, variable-length attribute locators and records."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field

from .errors import RIDNotViableError

_UNSET = -1


@dataclass(frozen=True)
class RID:
    """Identifies a record by page number and 1-based slot number."""

    page_num: int = _UNSET
    slot_num: int = _UNSET

    def location(self) -> tuple[int, int]:
        """Return ``(page_num, slot_num)``; the RID must have been set."""
        if self.page_num == _UNSET:
            raise RIDNotViableError("record identifier is not set")
        return self.page_num, self.slot_num


@dataclass(frozen=True)
class VarLenAttr:
    """Locates a variable-length value in the attribute file."""

    page_num: int = _UNSET
    slot_num: int = _UNSET
    block_index: int = _UNSET

    _STRUCT = struct.Struct("<iii")
    SIZE = _STRUCT.size

    def location(self) -> tuple[int, int, int]:
        """Return ``(page_num, slot_num, block_index)``; it must be set."""
        if self.page_num == _UNSET:
            raise RIDNotViableError("attribute locator is not set")
        return self.page_num, self.slot_num, self.block_index

    def pack(self) -> bytes:
        return self._STRUCT.pack(self.page_num, self.slot_num, self.block_index)

    @classmethod
    def unpack(cls, data) -> "VarLenAttr":
        if len(data) < cls.SIZE:
            raise ValueError(
                f"attribute locator needs {cls.SIZE} bytes, got {len(data)}"
            )
        return cls(*cls._STRUCT.unpack_from(data, 0))


@dataclass
class Record:
    """A copy of a record's bytes together with its identifier."""

    rid: RID = field(default_factory=RID)
    data: bytes = b""

    @property
    def record_size(self) -> int:
        return len(self.data)