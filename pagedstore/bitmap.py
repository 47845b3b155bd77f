"""Slot bitmaps: bit numbers start at 1, most significant bit first."""

from __future__ import annotations

from .errors import InconsistentBitmapError


def _locate(bit: int) -> tuple[int, int]:
    index = bit - 1
    return index // 8, 0x80 >> (index % 8)


def bitmap_size(num_records: int) -> int:
    """Bytes needed for a bitmap of ``num_records`` bits."""
    return (num_records + 7) // 8


def is_set(bitmap, bit: int) -> bool:
    """Tell whether slot ``bit`` is marked as used."""
    byte, mask = _locate(bit)
    return bool(bitmap[byte] & mask)


def first_zero_bit(bitmap, size: int) -> int:
    """Return the first clear bit among the first ``size`` bytes."""
    for byte_index, byte in enumerate(bitmap[:size]):
        for offset in range(8):
            if not byte & (0x80 >> offset):
                return byte_index * 8 + offset + 1
    raise InconsistentBitmapError("bitmap has no free slot")


def set_bit(bitmap, bit: int) -> None:
    """Mark slot ``bit`` as used; it must be clear."""
    byte, mask = _locate(bit)
    if bitmap[byte] & mask:
        raise InconsistentBitmapError(f"bit {bit} is already set")
    bitmap[byte] |= mask


def unset_bit(bitmap, bit: int) -> None:
    """Mark slot ``bit`` as free; it must be set."""
    byte, mask = _locate(bit)
    if not bitmap[byte] & mask:
        raise InconsistentBitmapError(f"bit {bit} is not set")
    bitmap[byte] &= ~mask & 0xFF


def is_full(bitmap, num_records: int) -> bool:
    """Tell whether all of the first ``num_records`` bits are set."""
    return all(is_set(bitmap, bit) for bit in range(1, num_records + 1))