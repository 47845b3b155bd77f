"""Exceptions raised by the paged file and record layers."""


class StorageError(Exception):
    """Base class of every error raised by the storage layers."""


# --- paged file layer -------------------------------------------------------


class PFError(StorageError):
    """Base class of errors raised by the paged file and buffer layer."""


class PagePinnedError(PFError):
    """The page is pinned and cannot be used for the requested operation."""


class PageNotInBufferError(PFError):
    """The page is not resident in the buffer pool."""


class InvalidPageError(PFError):
    """The page number is out of range or the page is not in use."""


class FileAlreadyOpenError(PFError):
    """The file handle is already open."""


class FileClosedError(PFError):
    """The file handle is closed."""


class PageFreeError(PFError):
    """The page is already on the free list."""


class PageUnpinnedError(PFError):
    """The page is already unpinned."""


class PFEndOfFile(PFError):
    """No further page in use was found."""


class NoBufferError(PFError):
    """Every buffer slot is pinned, so no page can be brought in."""


class IncompleteReadError(PFError):
    """A page could not be read completely."""


class IncompleteWriteError(PFError):
    """A page could not be written completely."""


class HeaderReadError(PFError):
    """The file header could not be read completely."""


class HeaderWriteError(PFError):
    """The file header could not be written completely."""


class PageInBufferError(PFError):
    """The page to allocate is already in the buffer pool."""


class HashNotFoundError(PFError):
    """No buffer hash table entry exists for the key."""


class HashPageExistsError(PFError):
    """A buffer hash table entry already exists for the key."""


class PFOSError(PFError):
    """An operating-system call failed."""


# --- record layer -----------------------------------------------------------


class RMError(StorageError):
    """Base class of errors raised by the record layer."""


class RecordTooLargeError(RMError):
    """The record does not fit in a page."""


class RecordTooSmallError(RMError):
    """The record size is not positive."""


class RMFileOpenError(RMError):
    """The record file handle is already open."""


class RMFileClosedError(RMError):
    """The record file handle is closed."""


class InvalidRecordError(RMError):
    """The record holds no valid data."""


class InvalidSlotError(RMError):
    """The slot number is out of range."""


class InvalidPageNumberError(RMError):
    """The page number does not name a data page."""


class AttributeInconsistentError(RMError):
    """The attribute length does not match its type."""


class ScanClosedError(RMError):
    """The scan is not open."""


class InvalidFileNameError(RMError):
    """No file name was given."""


class InvalidAttributeError(RMError):
    """The attribute type is unknown."""


class InvalidOffsetError(RMError):
    """The attribute offset lies outside the record."""


class InvalidOperatorError(RMError):
    """The comparison operator is unknown."""


class NullRecordError(RMError):
    """No record data was given."""


class RMEndOfFile(RMError):
    """The scan reached the end of the file."""


class RIDNotViableError(RMError):
    """The record or attribute identifier has not been set."""


class InconsistentBitmapError(RMError):
    """A slot bitmap is in a state the operation does not allow."""