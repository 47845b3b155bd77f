"""Paged file storage with an LRU buffer pool, record files, variable-length attribute storage and scans."""

__version__ = "0.1.0"