"""Entry payload consumption.

`consume_entry` streams one entry's payload to a sink, or discards it, and
reports how many archive bytes the payload occupies. For deflate entries
that number comes from the inflate engine itself: with a data descriptor the
header's sizes may be zero, so only the decoder knows where the data ends.
"""

import io
import logging
import zlib
from dataclasses import dataclass

from .Errors import CorruptStream, TruncatedEntry, UnsupportedMethod
from .FileIO import read_fully
from .Header import CompressionMethod, EntryMetadata
from .Protocols import InflateFactory
from .Scanner import BUFFER_SIZE

logger = logging.getLogger(__name__)

OUTPUT_CHUNK_SIZE = 64 * 1024


def raw_inflate_engine():
    """Default inflate engine: zlib with a negative window for raw DEFLATE."""
    return zlib.decompressobj(-zlib.MAX_WBITS)


@dataclass(frozen=True)
class ConsumeResult:
    """Outcome of consuming one entry.

    Attributes:
        bytes_consumed (int): Archive bytes occupied by the payload, so the
            next structural scan starts at ``data_offset + bytes_consumed``.
        bytes_written (int): Uncompressed bytes produced.
    """
    bytes_consumed: int
    bytes_written: int


def _write(sink, data: bytes, progress_callback) -> None:
    if sink is not None:
        sink.write(data)
    if progress_callback:
        progress_callback(len(data))


def _consume_stored(source, entry: EntryMetadata, sink, chunk_size: int, progress_callback) -> ConsumeResult:
    if not entry.sizes_known:
        raise UnsupportedMethod(
            f"{entry.name}: stored entry with a data descriptor has no known size", entry)

    size = entry.declared_compressed_size
    if sink is None and not progress_callback:
        # Plain skip: only confirm the declared bytes exist.
        if size:
            source.seek(entry.data_offset + size - 1)
            if not read_fully(source, 1):
                available = max(source.seek(0, io.SEEK_END) - entry.data_offset, 0)
                raise TruncatedEntry(
                    f"{entry.name}: stored data truncated after {available} of {size} bytes", entry, available)
        return ConsumeResult(size, size)

    source.seek(entry.data_offset)
    done = 0
    while done < size:
        try:
            data = read_fully(source, min(chunk_size, size - done))
        except OSError as e:
            raise TruncatedEntry(f"{entry.name}: read failed: {e}", entry, done) from e
        if not data:
            raise TruncatedEntry(
                f"{entry.name}: stored data truncated after {done} of {size} bytes", entry, done)
        _write(sink, data, progress_callback)
        done += len(data)
    return ConsumeResult(size, size)


def _consume_deflated(source, entry: EntryMetadata, sink, chunk_size: int,
                      inflate_factory: InflateFactory, progress_callback) -> ConsumeResult:
    engine = inflate_factory()
    source.seek(entry.data_offset)
    consumed = 0
    written = 0

    while not engine.eof:
        try:
            chunk = read_fully(source, chunk_size)
        except OSError as e:
            raise TruncatedEntry(f"{entry.name}: read failed: {e}", entry, consumed) from e
        if not chunk:
            raise TruncatedEntry(
                f"{entry.name}: deflate stream ends early after {consumed} bytes", entry, consumed)

        data = chunk
        while True:
            try:
                out = engine.decompress(data, OUTPUT_CHUNK_SIZE)
            except zlib.error as e:
                raise CorruptStream(f"{entry.name}: {e}", entry, consumed) from e
            if out:
                _write(sink, out, progress_callback)
                written += len(out)
            data = engine.unconsumed_tail
            # A full output buffer may leave decoded bytes pending in the
            # engine even when the input is used up.
            if engine.eof or (not data and len(out) < OUTPUT_CHUNK_SIZE):
                break

        leftover = engine.unused_data if engine.eof else data
        consumed += len(chunk) - len(leftover)

    if entry.sizes_known and consumed != entry.declared_compressed_size:
        logger.debug("%s: header declares %d compressed bytes, stream used %d",
                     entry.name, entry.declared_compressed_size, consumed)
    return ConsumeResult(consumed, written)


def consume_entry(source, entry: EntryMetadata, sink=None, *, inflate_factory: InflateFactory = raw_inflate_engine,
                  chunk_size: int = BUFFER_SIZE, progress_callback=None) -> ConsumeResult:
    """Stream an entry's payload to `sink`, or skip it when `sink` is None.

    Args:
        source: Seekable binary byte source.
        entry (EntryMetadata): Entry to consume.
        sink: Object with a ``write(bytes)`` method, or None to discard.
        inflate_factory (callable): Returns a fresh inflate engine per call.
        chunk_size (int): Archive bytes read per step.
        progress_callback (callable|None): Called with the number of bytes
            produced on each write.

    Returns:
        ConsumeResult: Bytes consumed from the archive and bytes produced.

    Raises:
        UnsupportedMethod: Method is neither store nor deflate, or a stored
            entry has no usable size. Nothing is read in that case.
        TruncatedEntry: The source ended or failed before the data did.
        CorruptStream: The inflate engine rejected the data.
    """
    if entry.compression_method is CompressionMethod.STORE:
        return _consume_stored(source, entry, sink, chunk_size, progress_callback)
    if entry.compression_method is CompressionMethod.DEFLATE:
        return _consume_deflated(source, entry, sink, chunk_size, inflate_factory, progress_callback)
    raise UnsupportedMethod(f"{entry.name}: compression method {entry.method_id} is not supported", entry)
