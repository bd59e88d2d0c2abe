import io
import struct
import zipfile
import zlib

import pytest

LOCAL_HEADER = struct.Struct("<IHHHHHIIIHH")
LOCAL_SIG = b"PK\x03\x04"
CENTRAL_SIG = b"PK\x01\x02"
DD_SIG = 0x08074b50


def local_header(name: bytes, method: int = 0, flags: int = 0, csize: int = 0, usize: int = 0,
                 extra: bytes = b"", crc: int = 0, mod_time: int = 0, mod_date: int = 0) -> bytes:
    return LOCAL_HEADER.pack(0x04034b50, 20, flags, method, mod_time, mod_date, crc,
                             csize, usize, len(name), len(extra)) + name + extra


def raw_deflate(data: bytes, level: int = 6) -> bytes:
    compressor = zlib.compressobj(level, zlib.DEFLATED, -zlib.MAX_WBITS)
    return compressor.compress(data) + compressor.flush()


def data_descriptor(data: bytes, compressed: bytes) -> bytes:
    return struct.pack("<IIII", DD_SIG, zlib.crc32(data), len(compressed), len(data))


def stored_entry(name: bytes, data: bytes) -> bytes:
    return local_header(name, 0, 0, len(data), len(data), crc=zlib.crc32(data)) + data


def streamed_deflate_entry(name: bytes, data: bytes, level: int = 6) -> bytes:
    """Deflate entry with bit 3 set and zero sizes, followed by a data descriptor."""
    compressed = raw_deflate(data, level)
    return local_header(name, 8, 0x08, 0, 0) + compressed + data_descriptor(data, compressed)


def central_directory_stub() -> bytes:
    return CENTRAL_SIG + b"\x00" * 42


def make_zip(entries, compression=zipfile.ZIP_STORED) -> bytes:
    """Build an archive with the standard library; entries is [(name, data)]."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=compression) as zf:
        for name, data in entries:
            zf.writestr(name, data)
    return buf.getvalue()


@pytest.fixture
def three_entry_zip():
    """Directory marker, 10-byte stored file, deflated file of 1000 bytes."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        zf.writestr("docs/", b"")
        zf.writestr("docs/stored.txt", b"0123456789", compress_type=zipfile.ZIP_STORED)
        zf.writestr("docs/deflated.txt", b"abcdefghij" * 100, compress_type=zipfile.ZIP_DEFLATED)
    return buf.getvalue()
