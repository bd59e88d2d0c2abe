"""Exception hierarchy for zipscan.

Archive-level failures (`NotAnArchive`, `SourceReadError`) end an iteration.
Per-entry failures derive from `ExtractionError` and leave the cursor able to
move on to the next entry.
"""


class ZipScanError(Exception):
    """Base class for every error raised by zipscan."""


class NotAnArchive(ZipScanError):
    """The byte source could not be opened or is not readable/seekable."""


class SourceReadError(ZipScanError):
    """The byte source became unreadable while iterating."""


class CorruptHeader(ZipScanError):
    """A local file header could not be decoded at a matched offset.

    Attributes:
        offset (int): Absolute offset the header was expected at.
    """

    def __init__(self, message: str, offset: int):
        super().__init__(message)
        self.offset = offset


class CursorUsageError(ZipScanError):
    """An operation was called in a cursor state that does not allow it."""


class UnsafeEntryPath(ZipScanError):
    """An entry name would be written outside the output directory."""


class ExtractionError(ZipScanError):
    """Failure while consuming a single entry's payload.

    Attributes:
        entry (EntryMetadata | None): Entry being consumed.
        bytes_consumed (int): Archive bytes consumed before the failure,
            counted from the entry's data offset.
    """

    def __init__(self, message: str, entry=None, bytes_consumed: int = 0):
        super().__init__(message)
        self.entry = entry
        self.bytes_consumed = bytes_consumed


class TruncatedEntry(ExtractionError):
    """Entry data extends past the available bytes, or a read failed."""


class CorruptStream(ExtractionError):
    """The inflate engine rejected the DEFLATE bitstream."""


class UnsupportedMethod(ExtractionError):
    """The entry uses a compression method that cannot be decoded here."""
