import pytest

from pagedstore.bitmap import (
    bitmap_size,
    first_zero_bit,
    is_full,
    is_set,
    set_bit,
    unset_bit,
)
from pagedstore.errors import InconsistentBitmapError


@pytest.mark.parametrize(
    "records, size", [(58, 8), (32, 4), (16, 2), (8, 1), (4, 1), (1, 1)]
)
def test_bitmap_size_matches_block_table(records, size):
    assert bitmap_size(records) == size


def test_set_first_bit_is_most_significant():
    bitmap = bytearray(2)
    set_bit(bitmap, 1)
    assert bitmap[0] == 0x80
    assert is_set(bitmap, 1)
    assert not is_set(bitmap, 2)


def test_set_twice_raises():
    bitmap = bytearray(1)
    set_bit(bitmap, 3)
    with pytest.raises(InconsistentBitmapError):
        set_bit(bitmap, 3)


def test_unset_clear_bit_raises():
    with pytest.raises(InconsistentBitmapError):
        unset_bit(bytearray(1), 1)


def test_set_unset_round_trip():
    bitmap = bytearray(2)
    for bit in (1, 5, 9, 16):
        set_bit(bitmap, bit)
    unset_bit(bitmap, 9)
    assert [b for b in range(1, 17) if is_set(bitmap, b)] == [1, 5, 16]


def test_first_zero_bit_progresses():
    bitmap = bytearray(2)
    for expected in range(1, 17):
        bit = first_zero_bit(bitmap, 2)
        assert bit == expected
        set_bit(bitmap, bit)


def test_first_zero_bit_finds_hole():
    bitmap = bytearray(2)
    for bit in range(1, 12):
        set_bit(bitmap, bit)
    unset_bit(bitmap, 4)
    assert first_zero_bit(bitmap, 2) == 4


def test_first_zero_bit_full_raises():
    with pytest.raises(InconsistentBitmapError):
        first_zero_bit(bytearray(b"\xff\xff"), 2)


def test_is_full_counts_only_used_bits():
    bitmap = bytearray(1)
    for bit in range(1, 5):
        assert not is_full(bitmap, 4)
        set_bit(bitmap, bit)
    assert is_full(bitmap, 4)
    assert not is_full(bitmap, 5)


def test_is_full_spanning_bytes():
    bitmap = bytearray(2)
    for bit in range(1, 11):
        set_bit(bitmap, bit)
    assert is_full(bitmap, 10)
    unset_bit(bitmap, 10)
    assert not is_full(bitmap, 10)