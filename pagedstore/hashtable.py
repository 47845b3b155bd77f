"""Hash table mapping a file page to its buffer slot."""

from __future__ import annotations

import threading
from dataclasses import dataclass

from .errors import HashNotFoundError, HashPageExistsError


@dataclass
class _Entry:
    fd: int
    page_num: int
    slot: int


class BufferHashTable:
    """Maps ``(fd, page_num)`` to the buffer slot holding that page."""

    def __init__(self, num_buckets: int) -> None:
        if num_buckets <= 0:
            raise ValueError("num_buckets must be positive")
        self._num_buckets = num_buckets
        self._buckets: list[list[_Entry]] = [[] for _ in range(num_buckets)]
        self._lock = threading.RLock()

    def _bucket(self, fd: int, page_num: int) -> int | None:
        key = fd + page_num
        # A negative key has no bucket, as with truncating remainder.
        if key < 0:
            return None
        return key % self._num_buckets

    def _lookup(self, fd: int, page_num: int) -> tuple[list[_Entry], _Entry] | None:
        bucket = self._bucket(fd, page_num)
        if bucket is None:
            return None
        chain = self._buckets[bucket]
        for entry in chain:
            if entry.fd == fd and entry.page_num == page_num:
                return chain, entry
        return None

    def find(self, fd: int, page_num: int) -> int:
        """Return the slot of the page, or raise HashNotFoundError."""
        with self._lock:
            found = self._lookup(fd, page_num)
        if found is None:
            raise HashNotFoundError(f"page ({fd}, {page_num}) is not buffered")
        return found[1].slot

    def insert(self, fd: int, page_num: int, slot: int) -> None:
        """Add a mapping; the key must not be present already."""
        with self._lock:
            bucket = self._bucket(fd, page_num)
            if bucket is None:
                raise ValueError(f"key ({fd}, {page_num}) has no bucket")
            if self._lookup(fd, page_num) is not None:
                raise HashPageExistsError(
                    f"page ({fd}, {page_num}) is already mapped"
                )
            self._buckets[bucket].insert(0, _Entry(fd, page_num, slot))

    def remove(self, fd: int, page_num: int) -> None:
        """Drop a mapping, or raise HashNotFoundError."""
        with self._lock:
            found = self._lookup(fd, page_num)
            if found is None:
                raise HashNotFoundError(f"page ({fd}, {page_num}) is not buffered")
            chain, entry = found
            chain.remove(entry)

    def show(self, bucket: int) -> str:
        """Describe one bucket's chain, newest entry first."""
        with self._lock:
            chain = list(self._buckets[bucket])
        if not chain:
            return "null"
        return " -> ".join(f"({e.fd}, {e.page_num}, {e.slot})" for e in chain)

    def __len__(self) -> int:
        with self._lock:
            return sum(len(chain) for chain in self._buckets)

    def __contains__(self, key: tuple[int, int]) -> bool:
        with self._lock:
            return self._lookup(*key) is not None