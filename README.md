# pagedstore

A small storage engine built in layers, using only the standard library.

- **Paged files** (`pagedstore.paged_file`): files divided into pages of 4092
  usable bytes, with a free-page list kept in a file header.
  `PagedFileManager` creates, opens, closes and destroys them, and
  `describe_buffer()` returns a text description of the buffer pool.
  `PagedFile` allocates, disposes, pins, unpins, marks dirty, flushes and
  forces pages. `page()`, `first_page()`, `last_page()`, `next_page()` and
  `prev_page()` return a pinned `PageHandle` (`page_num` and a writable
  `data` view), and `pages()` yields every page in use, unpinning each one
  before it fetches the next.
- **Buffer pool** (`pagedstore.buffer`): `BufferManager` caches pages in a
  fixed number of slots (40 by default). It evicts the least recently used
  unpinned page and writes a dirty page back when it evicts it. Slots are
  found through `BufferHashTable` (`pagedstore.hashtable`).
- **Record files** (`pagedstore.record_file`, `pagedstore.record_manager`):
  fixed-size records held in slots that a bitmap on each page tracks
  (`pagedstore.bitmap`), addressed by `RID` (`pagedstore.rid`).
  `RecordManager` creates, opens, closes and destroys record files;
  `records_per_page()` gives how many records of a size fit on a page.
  `RecordFile` gets, inserts, updates and deletes records and reports
  `num_pages()` and `num_tuples()`.
- **Variable-length values** (`pagedstore.attr_file`): each record file has
  a companion `<name>_attr` file. `AttrFile` stores a value in the smallest
  of seven slot sizes (70 to 4087 bytes) that holds it and returns a
  `VarLenAttr` locator. `RecordFile.insert_var_value()` and
  `update_var_value()` also write that locator into a record at a given
  offset; `get_var_value()` returns the whole slot, padded with NUL bytes.
- **Scans** (`pagedstore.scan`): `FileScan` walks a record file and returns
  the records whose attribute (`AttrType.INT`, `FLOAT`, `STRING` or
  `VARCHAR`) satisfies a comparison (`CompOp.EQ`, `NE`, `LT`, `GT`, `LE`,
  `GE`, or `NO_OP` for every record) against a given value. Strings are
  compared as bytes up to the first NUL.

Failures are raised as exceptions from `pagedstore.errors`. `PFError` (paged
file and buffer layer) and `RMError` (record layer) both derive from
`StorageError`; the end of a scan is `RMEndOfFile`.

## Installation

```
pip install .
```

## Example

```python
from pagedstore.paged_file import PagedFileManager
from pagedstore.record_manager import RecordManager
from pagedstore.scan import AttrType, CompOp, FileScan

pf = PagedFileManager()
rm = RecordManager(pf)

rm.create_file("people.db", 8)          # also creates people.db_attr
table = rm.open_file("people.db")

rid = table.insert_record((42).to_bytes(4, "little") + b"abcd")
record = table.get_record(rid)
print(record.data)

scan = FileScan()
scan.open(table, AttrType.INT, 4, 0, CompOp.EQ, 42)
for match in scan:
    print(match.rid.location())
scan.close()

rm.close_file(table)
```

Header changes are written back when the file is closed with
`RecordManager.close_file`; `RecordFile.force_pages()` writes dirty pages
without closing.

## What it does not do

This is a storage library only. It has no indexes, no query language, no
transactions or recovery log, and no command-line tool or server. Callers
lay out record bytes themselves and pin and unpin pages through the
classes above.

## Running the tests

```
pip install .[test]
pytest
```