import os

import pytest

from pagedstore.buffer import BufferManager
from pagedstore.errors import (
    IncompleteReadError,
    NoBufferError,
    PageInBufferError,
    PageNotInBufferError,
    PagePinnedError,
    PageUnpinnedError,
)
from pagedstore.layout import FILE_HEADER_SIZE, PAGE_HEADER_SIZE, PAGE_SIZE

FRAME = PAGE_SIZE + PAGE_HEADER_SIZE


def _page_offset(page_num):
    return FILE_HEADER_SIZE + page_num * FRAME


@pytest.fixture
def paged_fd(tmp_path):
    path = tmp_path / "data.pf"
    content = bytes(FILE_HEADER_SIZE) + b"".join(
        bytes([ord("a") + n]) * FRAME for n in range(4)
    )
    path.write_bytes(content)
    fd = os.open(path, os.O_RDWR | getattr(os, "O_BINARY", 0))
    yield fd, path
    os.close(fd)


def _read_page_on_disk(path, page_num):
    data = path.read_bytes()
    return data[_page_offset(page_num):_page_offset(page_num) + FRAME]


def test_block_size_covers_page_and_header():
    assert BufferManager(3).block_size() == 4096


def test_get_page_reads_file_contents(paged_fd):
    fd, _ = paged_fd
    mgr = BufferManager(3)
    assert bytes(mgr.get_page(fd, 1)) == b"b" * FRAME
    assert bytes(mgr.get_page(fd, 3)) == b"d" * FRAME


def test_get_page_past_end_is_incomplete_and_frees_slot(paged_fd):
    fd, _ = paged_fd
    mgr = BufferManager(1)
    with pytest.raises(IncompleteReadError):
        mgr.get_page(fd, 10)
    assert bytes(mgr.get_page(fd, 0)) == b"a" * FRAME


def test_unpin_unknown_page_raises(paged_fd):
    fd, _ = paged_fd
    with pytest.raises(PageNotInBufferError):
        BufferManager(2).unpin_page(fd, 0)


def test_unpin_twice_raises(paged_fd):
    fd, _ = paged_fd
    mgr = BufferManager(2)
    mgr.get_page(fd, 0)
    mgr.unpin_page(fd, 0)
    with pytest.raises(PageUnpinnedError):
        mgr.unpin_page(fd, 0)


def test_mark_dirty_requires_pin(paged_fd):
    fd, _ = paged_fd
    mgr = BufferManager(2)
    mgr.get_page(fd, 0)
    mgr.unpin_page(fd, 0)
    with pytest.raises(PageUnpinnedError):
        mgr.mark_dirty(fd, 0)
    with pytest.raises(PageNotInBufferError):
        mgr.mark_dirty(fd, 2)


def test_single_pin_request_on_pinned_page(paged_fd):
    fd, _ = paged_fd
    mgr = BufferManager(2)
    mgr.get_page(fd, 0)
    with pytest.raises(PagePinnedError):
        mgr.get_page(fd, 0, False)


def test_repeated_get_counts_pins(paged_fd):
    fd, _ = paged_fd
    mgr = BufferManager(2)
    mgr.get_page(fd, 0)
    mgr.get_page(fd, 0)
    assert "pinCount = 2" in mgr.describe()
    mgr.unpin_page(fd, 0)
    mgr.unpin_page(fd, 0)
    assert "pinCount = 0" in mgr.describe()


def test_allocate_existing_page_raises(paged_fd):
    fd, _ = paged_fd
    mgr = BufferManager(2)
    mgr.get_page(fd, 0)
    with pytest.raises(PageInBufferError):
        mgr.allocate_page(fd, 0)


def test_force_pages_writes_dirty_page(paged_fd):
    fd, path = paged_fd
    mgr = BufferManager(2)
    frame = mgr.get_page(fd, 2)
    frame[:] = b"z" * FRAME
    mgr.mark_dirty(fd, 2)
    mgr.force_pages(fd)
    assert _read_page_on_disk(path, 2) == b"z" * FRAME
    # page stays buffered and pinned
    mgr.unpin_page(fd, 2)


def test_force_single_page_writes_only_that_page(paged_fd):
    fd, path = paged_fd
    mgr = BufferManager(3)
    first = mgr.get_page(fd, 0)
    second = mgr.get_page(fd, 1)
    first[:] = b"x" * FRAME
    second[:] = b"y" * FRAME
    mgr.mark_dirty(fd, 0)
    mgr.mark_dirty(fd, 1)
    mgr.force_single_page(fd, 1)
    assert _read_page_on_disk(path, 1) == b"y" * FRAME
    assert _read_page_on_disk(path, 0) == b"a" * FRAME


def test_flush_releases_unpinned_pages(paged_fd):
    fd, path = paged_fd
    mgr = BufferManager(2)
    frame = mgr.get_page(fd, 1)
    frame[:] = b"q" * FRAME
    mgr.mark_dirty(fd, 1)
    mgr.unpin_page(fd, 1)
    mgr.flush_pages(fd)
    assert _read_page_on_disk(path, 1) == b"q" * FRAME
    with pytest.raises(PageNotInBufferError):
        mgr.unpin_page(fd, 1)
    assert "Buffer is empty!" in mgr.describe()


def test_flush_with_pinned_page_warns_and_keeps_it(paged_fd):
    fd, _ = paged_fd
    mgr = BufferManager(3)
    mgr.get_page(fd, 0)
    mgr.get_page(fd, 1)
    mgr.unpin_page(fd, 1)
    with pytest.raises(PagePinnedError):
        mgr.flush_pages(fd)
    mgr.unpin_page(fd, 0)
    with pytest.raises(PageNotInBufferError):
        mgr.unpin_page(fd, 1)


def test_eviction_writes_back_dirty_page(paged_fd):
    fd, path = paged_fd
    mgr = BufferManager(2)
    frame = mgr.get_page(fd, 0)
    frame[:] = b"e" * FRAME
    mgr.mark_dirty(fd, 0)
    mgr.unpin_page(fd, 0)
    mgr.get_page(fd, 1)
    mgr.unpin_page(fd, 1)
    mgr.get_page(fd, 2)
    assert _read_page_on_disk(path, 0) == b"e" * FRAME
    with pytest.raises(PageNotInBufferError):
        mgr.unpin_page(fd, 0)


def test_all_pinned_means_no_buffer(paged_fd):
    fd, _ = paged_fd
    mgr = BufferManager(2)
    mgr.get_page(fd, 0)
    mgr.get_page(fd, 1)
    with pytest.raises(NoBufferError):
        mgr.get_page(fd, 2)


def test_allocated_page_is_written_on_flush(paged_fd):
    fd, path = paged_fd
    mgr = BufferManager(2)
    frame = mgr.allocate_page(fd, 4)
    frame[:] = b"n" * FRAME
    mgr.mark_dirty(fd, 4)
    mgr.unpin_page(fd, 4)
    mgr.flush_pages(fd)
    assert os.path.getsize(path) == _page_offset(5)
    assert _read_page_on_disk(path, 4) == b"n" * FRAME


def test_describe_lists_most_recent_first(paged_fd):
    fd, _ = paged_fd
    mgr = BufferManager(3)
    mgr.get_page(fd, 0)
    mgr.get_page(fd, 3)
    text = mgr.describe()
    assert text.index("pageNum = 3") < text.index("pageNum = 0")
    assert "All remaining slots are freeHead." in text