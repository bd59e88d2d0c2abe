"""Collaborator protocol definitions.

This module declares the two interfaces the archive cursor relies on but does
not implement itself: the byte source it reads the archive from, and the
inflate engine it feeds DEFLATE data through. Keeping them as protocols lets
tests and callers plug in their own implementations.
"""

from typing import Callable, Protocol


class ByteSourceProtocol(Protocol):
    """A seekable, readable binary stream positioned over archive bytes.

    Local files opened in ``rb`` mode, ``io.BytesIO`` and
    `zipscan.FileIO.RemoteStream` all satisfy this protocol.
    """

    def read(self, size: int = -1) -> bytes:
        """Read up to `size` bytes; may return fewer, returns b"" at EOF."""
        ...

    def seek(self, offset: int, whence: int = 0) -> int:
        ...

    def tell(self) -> int:
        ...

    def close(self) -> None:
        ...


class InflateEngineProtocol(Protocol):
    """Incremental raw DEFLATE decoder.

    The attribute names follow ``zlib.decompressobj`` so the standard library
    object is a valid engine without any wrapping.

    Attributes:
        eof (bool): True once the end of the DEFLATE stream has been decoded.
        unconsumed_tail (bytes): Input held back because the output bound
            given to `decompress` was reached.
        unused_data (bytes): Input found after the end of the stream.
    """
    eof: bool
    unconsumed_tail: bytes
    unused_data: bytes

    def decompress(self, data: bytes, max_length: int = 0) -> bytes:
        """Decode `data`, returning at most `max_length` bytes of output.

        Raises:
            zlib.error: If the bitstream is invalid.
        """
        ...


InflateFactory = Callable[[], InflateEngineProtocol]
