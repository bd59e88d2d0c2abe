"""Sequential archive cursor.

`ArchiveCursor` walks a ZIP byte stream front to back:

    open -> advance() -> [extract(sink) | skip()] -> advance() -> ... -> close()

The cursor never reads backwards. After each entry it resumes scanning at
the end of that entry's data, as measured while consuming it.
"""

import logging
from enum import Enum
from typing import Iterator, Optional

from .EntryData import ConsumeResult, consume_entry, raw_inflate_engine
from .Errors import CorruptHeader, CursorUsageError, ExtractionError, NotAnArchive, SourceReadError
from .Header import EntryMetadata, decode_local_header
from .Protocols import ByteSourceProtocol, InflateFactory
from .Scanner import BUFFER_SIZE, CHUNK_OVERLAP, find_next_structural_signature

logger = logging.getLogger(__name__)


class CursorState(Enum):
    NO_ENTRY = "no_entry"
    HEADER_FOUND = "header_found"
    DATA_CONSUMED = "data_consumed"
    EXHAUSTED = "exhausted"


class ArchiveCursor:
    """Forward-only iterator over the entries of a ZIP byte stream.

    The cursor owns `source` and closes it on `close()`. It is not thread
    safe; one cursor must only be driven from one thread.

    Attributes:
        source (ByteSourceProtocol): Seekable binary stream over the archive.
        scan_cursor (int): Offset the next structural scan starts from.
        state (CursorState): Position in the iteration protocol.
    """

    def __init__(self, source: ByteSourceProtocol, *, chunk_size: int = BUFFER_SIZE,
                 inflate_factory: InflateFactory = raw_inflate_engine) -> None:
        """
        Args:
            source: Seekable, readable binary stream positioned anywhere.
            chunk_size (int): Bytes read per scan/decode step.
            inflate_factory (callable): Creates one inflate engine per entry.

        Raises:
            NotAnArchive: If `source` is not a readable, seekable stream.
        """
        readable = getattr(source, "readable", None)
        seekable = getattr(source, "seekable", None)
        try:
            usable = (readable is None or readable()) and (seekable is None or seekable())
        except (OSError, ValueError) as e:
            raise NotAnArchive(f"Byte source is not usable: {e}") from e
        if not usable:
            raise NotAnArchive("Byte source must be readable and seekable")
        if chunk_size <= CHUNK_OVERLAP:
            raise ValueError(f"chunk_size must be larger than {CHUNK_OVERLAP}")

        self.source = source
        self.chunk_size = chunk_size
        self.inflate_factory = inflate_factory
        self.scan_cursor = 0
        self.state = CursorState.NO_ENTRY
        self._entry: Optional[EntryMetadata] = None

    def __enter__(self) -> "ArchiveCursor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __iter__(self) -> Iterator[EntryMetadata]:
        while self.advance():
            yield self._entry

    @property
    def current_entry(self) -> Optional[EntryMetadata]:
        """Entry found by the last successful `advance()`, if any."""
        return self._entry

    @property
    def current_name(self) -> str:
        if self._entry is None:
            raise CursorUsageError("No current entry")
        return self._entry.name

    def _move_scan_cursor(self, offset: int) -> None:
        # The archive is read strictly forward.
        self.scan_cursor = max(self.scan_cursor, offset)

    def _exhaust(self) -> None:
        self.state = CursorState.EXHAUSTED
        self._entry = None

    def advance(self) -> bool:
        """Move to the next entry.

        A pending entry whose data was never consumed is skipped first so
        scanning resumes after its data, not inside it.

        Returns:
            bool: True if an entry was found, False once the archive is
            exhausted (and on every call after that).

        Raises:
            CorruptHeader: The matched header could not be decoded. The
                cursor has moved past it and `advance()` may be called again.
            SourceReadError: The source became unreadable; iteration ends.
        """
        if self.state is CursorState.EXHAUSTED:
            return False

        if self.state is CursorState.HEADER_FOUND:
            try:
                self.skip()
            except ExtractionError as e:
                logger.warning("Could not skip %s (%s), rescanning from offset %d",
                               self._entry.name, e, self.scan_cursor)

        try:
            offset = find_next_structural_signature(self.source, self.scan_cursor, self.chunk_size)
            if offset is None:
                logger.debug("No more entries after offset %d", self.scan_cursor)
                self._exhaust()
                return False
            entry = decode_local_header(self.source, offset)
        except CorruptHeader as e:
            logger.warning("%s", e)
            self._entry = None
            self._move_scan_cursor(e.offset + 1)
            self.state = CursorState.DATA_CONSUMED
            raise
        except (OSError, ValueError) as e:
            self._exhaust()
            raise SourceReadError(f"Archive source unreadable at offset {self.scan_cursor}: {e}") from e

        self._entry = entry
        self._move_scan_cursor(entry.data_offset)
        self.state = CursorState.HEADER_FOUND
        logger.debug("Entry %r: header at %d, data at %d", entry.name, entry.header_offset, entry.data_offset)
        return True

    def _consume(self, sink, progress_callback=None) -> ConsumeResult:
        if self.state is not CursorState.HEADER_FOUND:
            raise CursorUsageError(f"No entry data to consume in state {self.state.name}")

        entry = self._entry
        try:
            result = consume_entry(self.source, entry, sink, inflate_factory=self.inflate_factory,
                                   chunk_size=self.chunk_size, progress_callback=progress_callback)
        except ExtractionError as e:
            self._move_scan_cursor(entry.data_offset + e.bytes_consumed)
            self.state = CursorState.DATA_CONSUMED
            raise
        except (OSError, ValueError) as e:
            self._exhaust()
            raise SourceReadError(f"Archive source unreadable while reading {entry.name}: {e}") from e

        self._move_scan_cursor(entry.data_offset + result.bytes_consumed)
        self.state = CursorState.DATA_CONSUMED
        return result

    def extract(self, sink, progress_callback=None) -> ConsumeResult:
        """Write the current entry's uncompressed data to `sink`.

        Args:
            sink: Object with a ``write(bytes)`` method.
            progress_callback (callable|None): Called with the number of bytes
                written on each write.

        Raises:
            CursorUsageError: No entry is pending (not in HEADER_FOUND).
            ExtractionError: The entry could not be decoded. The cursor
                stays usable and the next `advance()` rescans.
        """
        return self._consume(sink, progress_callback)

    def skip(self) -> ConsumeResult:
        """Discard the current entry's data, moving past it."""
        return self._consume(None)

    def close(self) -> None:
        """Close the byte source. Further `advance()` calls return False."""
        self.source.close()
        self._exhaust()
