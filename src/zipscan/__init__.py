"""zipscan package initializer.

zipscan extracts ZIP archives by scanning forward for local file headers
instead of trusting the central directory, so truncated or damaged archives
can still be recovered entry by entry.

Exports:

- __version__: Package version string.
- open_archive / ArchiveCursor: The forward-only entry cursor.
- extract_all: Extract a whole archive into a directory.
- EntryMetadata / CompressionMethod: Decoded local header data.
- RemoteStream: HTTP-backed byte source.
- The exception hierarchy rooted at ZipScanError.

Example:
    from zipscan import open_archive
    with open_archive("broken.zip") as cursor:
        for entry in cursor:
            print(entry.name)
"""

__version__ = "0.1.0"

from .ArchiveEngine import ExtractionReport, extract_all, open_archive, safe_destination
from .Cursor import ArchiveCursor, CursorState
from .EntryData import ConsumeResult, consume_entry
from .Errors import (
    CorruptHeader,
    CorruptStream,
    CursorUsageError,
    ExtractionError,
    NotAnArchive,
    SourceReadError,
    TruncatedEntry,
    UnsafeEntryPath,
    UnsupportedMethod,
    ZipScanError,
)
from .FileIO import RemoteStream
from .Header import CompressionMethod, EntryMetadata, decode_local_header
from .Scanner import find_next_structural_signature

__all__ = [
    "__version__",
    "ArchiveCursor",
    "CursorState",
    "open_archive",
    "extract_all",
    "safe_destination",
    "ExtractionReport",
    "consume_entry",
    "ConsumeResult",
    "decode_local_header",
    "find_next_structural_signature",
    "EntryMetadata",
    "CompressionMethod",
    "RemoteStream",
    "ZipScanError",
    "NotAnArchive",
    "SourceReadError",
    "CorruptHeader",
    "CursorUsageError",
    "UnsafeEntryPath",
    "ExtractionError",
    "TruncatedEntry",
    "CorruptStream",
    "UnsupportedMethod",
]
