import os
import struct

import pytest

from pagedstore.errors import (
    FileClosedError,
    HeaderReadError,
    InvalidPageError,
    PageFreeError,
    PagePinnedError,
    PageUnpinnedError,
    PFEndOfFile,
    PFOSError,
)
from pagedstore.layout import FILE_HEADER_SIZE, PAGE_HEADER_SIZE, PAGE_USED
from pagedstore.paged_file import PagedFileManager


@pytest.fixture
def manager():
    return PagedFileManager()


@pytest.fixture
def path(tmp_path, manager):
    p = tmp_path / "data.pf"
    manager.create_file(str(p))
    return p


@pytest.fixture
def handle(manager, path):
    h = manager.open_file(str(path))
    yield h
    if h.is_open:
        os.close(h.fd)


def test_created_file_holds_only_header(path):
    assert os.path.getsize(path) == FILE_HEADER_SIZE


def test_new_file_has_no_pages(handle):
    assert handle.num_pages() == 0
    with pytest.raises(PFEndOfFile):
        handle.first_page()


def test_create_existing_file_fails(manager, path):
    with pytest.raises(PFOSError):
        manager.create_file(str(path))


def test_open_missing_file_fails(manager, tmp_path):
    with pytest.raises(PFOSError):
        manager.open_file(str(tmp_path / "missing.pf"))


def test_open_truncated_header_fails(manager, tmp_path):
    p = tmp_path / "short.pf"
    p.write_bytes(b"abc")
    with pytest.raises(HeaderReadError):
        manager.open_file(str(p))


def test_allocated_data_survives_reopen(manager, path, handle):
    page = handle.allocate_page()
    assert page.page_num == 0
    page.data[:5] = b"hello"
    handle.unpin_page(page.page_num)
    manager.close_file(handle)

    reopened = manager.open_file(str(path))
    try:
        assert reopened.num_pages() == 1
        again = reopened.page(0)
        assert bytes(again.data[:5]) == b"hello"
        reopened.unpin_page(0)
    finally:
        manager.close_file(reopened)


def test_force_pages_writes_page_to_disk(handle, path):
    page = handle.allocate_page()
    page.data[:3] = b"xyz"
    handle.unpin_page(page.page_num)
    handle.force_pages()
    raw = path.read_bytes()
    link = struct.unpack_from("<i", raw, FILE_HEADER_SIZE)[0]
    assert link == PAGE_USED
    start = FILE_HEADER_SIZE + PAGE_HEADER_SIZE
    assert raw[start:start + 3] == b"xyz"


def test_disposed_page_is_reused_and_zeroed(handle):
    for _ in range(2):
        page = handle.allocate_page()
        page.data[:4] = b"full"
        handle.unpin_page(page.page_num)
    handle.dispose_page(0)
    reused = handle.allocate_page()
    assert reused.page_num == 0
    assert bytes(reused.data[:4]) == bytes(4)
    assert handle.num_pages() == 2
    handle.unpin_page(0)


def test_disposed_page_is_not_readable(handle):
    page = handle.allocate_page()
    handle.unpin_page(page.page_num)
    handle.dispose_page(page.page_num)
    with pytest.raises(InvalidPageError):
        handle.page(page.page_num)


def test_dispose_twice_fails(handle):
    page = handle.allocate_page()
    handle.unpin_page(page.page_num)
    handle.dispose_page(page.page_num)
    with pytest.raises(PageFreeError):
        handle.dispose_page(page.page_num)


def test_dispose_pinned_page_fails(handle):
    page = handle.allocate_page()
    with pytest.raises(PagePinnedError):
        handle.dispose_page(page.page_num)
    handle.unpin_page(page.page_num)


def test_out_of_range_page_is_invalid(handle):
    with pytest.raises(InvalidPageError):
        handle.page(3)
    with pytest.raises(InvalidPageError):
        handle.next_page(3)


def test_navigation_skips_free_pages(handle):
    for _ in range(4):
        page = handle.allocate_page()
        handle.unpin_page(page.page_num)
    handle.dispose_page(1)
    handle.dispose_page(3)

    first = handle.first_page()
    handle.unpin_page(first.page_num)
    nxt = handle.next_page(first.page_num)
    handle.unpin_page(nxt.page_num)
    last = handle.last_page()
    handle.unpin_page(last.page_num)
    prev = handle.prev_page(nxt.page_num)
    handle.unpin_page(prev.page_num)

    assert (first.page_num, nxt.page_num, last.page_num, prev.page_num) == (0, 2, 2, 0)
    with pytest.raises(PFEndOfFile):
        handle.next_page(2)


def test_pages_yields_pages_in_use(handle):
    for _ in range(3):
        page = handle.allocate_page()
        handle.unpin_page(page.page_num)
    handle.dispose_page(1)
    assert [p.page_num for p in handle.pages()] == [0, 2]
    # every yielded page was unpinned again
    handle.dispose_page(0)
    assert [p.page_num for p in handle.pages()] == [2]


def test_unpin_twice_fails(handle):
    page = handle.allocate_page()
    handle.unpin_page(page.page_num)
    with pytest.raises(PageUnpinnedError):
        handle.unpin_page(page.page_num)


def test_close_with_pinned_page_fails(manager, handle):
    handle.allocate_page()
    with pytest.raises(PagePinnedError):
        manager.close_file(handle)
    assert handle.is_open


def test_closed_file_rejects_operations(manager, handle):
    manager.close_file(handle)
    assert not handle.is_open
    with pytest.raises(FileClosedError):
        handle.allocate_page()
    with pytest.raises(FileClosedError):
        manager.close_file(handle)


def test_destroy_file(manager, path):
    manager.destroy_file(str(path))
    assert not path.exists()
    with pytest.raises(PFOSError):
        manager.destroy_file(str(path))


def test_describe_buffer_empty_and_used(manager, handle):
    assert "Buffer is empty!" in manager.describe_buffer()
    page = handle.allocate_page()
    text = manager.describe_buffer()
    assert "pinCount = 1" in text
    assert "Buffer is empty!" not in text
    handle.unpin_page(page.page_num)