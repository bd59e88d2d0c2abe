"""Forward signature scanning over a byte source.

Instead of reading the central directory, zipscan walks the archive by
looking for the next local file header signature. Any central directory or
end-of-archive record ends the linear entry region.
"""

import logging
import struct
from enum import IntEnum
from typing import Optional

from .FileIO import read_fully

logger = logging.getLogger(__name__)

BUFFER_SIZE = 4096
SIGNATURE_SIZE = 4
# Consecutive chunks overlap by this much so a signature split across a
# chunk boundary is still seen whole.
CHUNK_OVERLAP = SIGNATURE_SIZE - 1


class Signature(IntEnum):
    LOCAL_FILE_HEADER = 0x04034b50
    CENTRAL_DIRECTORY_HEADER = 0x02014b50
    END_OF_CENTRAL_DIRECTORY = 0x06054b50
    DIGITAL_SIGNATURE = 0x05054b50
    ARCHIVE_EXTRA_DATA = 0x07064b50
    ZIP64_END_OF_CENTRAL_DIRECTORY = 0x06064b50

    def to_bytes_le(self) -> bytes:
        return struct.pack("<I", self.value)


SIGNATURE_BY_BYTES = {sig.to_bytes_le(): sig for sig in Signature}
TERMINATORS = frozenset(sig for sig in Signature if sig is not Signature.LOCAL_FILE_HEADER)
# Every ZIP structural signature starts with "PK".
_SIGNATURE_PREFIX = b"PK"


def _match_in_chunk(chunk: bytes) -> Optional[tuple]:
    """Return (index, Signature) of the first known signature in `chunk`."""
    i = chunk.find(_SIGNATURE_PREFIX)
    while i != -1 and i + SIGNATURE_SIZE <= len(chunk):
        sig = SIGNATURE_BY_BYTES.get(chunk[i:i + SIGNATURE_SIZE])
        if sig is not None:
            return i, sig
        i = chunk.find(_SIGNATURE_PREFIX, i + 1)
    return None


def find_next_structural_signature(source, start_offset: int, chunk_size: int = BUFFER_SIZE) -> Optional[int]:
    """Find the next local file header at or after `start_offset`.

    Every byte offset is checked, not only aligned ones.

    Args:
        source: Seekable binary byte source.
        start_offset (int): Absolute offset to start scanning from.
        chunk_size (int): Bytes read per step; must exceed the overlap.

    Returns:
        int | None: Offset of the local file header, or None when a
        terminator record or end of stream is reached first.
    """
    if chunk_size <= CHUNK_OVERLAP:
        raise ValueError(f"chunk_size must be larger than {CHUNK_OVERLAP}")

    position = start_offset
    while True:
        source.seek(position)
        chunk = read_fully(source, chunk_size)
        if len(chunk) < SIGNATURE_SIZE:
            logger.debug("End of stream reached at offset %d while scanning", position + len(chunk))
            return None

        match = _match_in_chunk(chunk)
        if match is not None:
            index, sig = match
            offset = position + index
            if sig is Signature.LOCAL_FILE_HEADER:
                return offset
            logger.debug("Found %s at offset %d, no more entries", sig.name, offset)
            return None

        if len(chunk) < chunk_size:
            logger.debug("End of stream reached at offset %d while scanning", position + len(chunk))
            return None
        position += len(chunk) - CHUNK_OVERLAP
