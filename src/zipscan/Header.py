"""Local file header decoding.

`decode_local_header` turns the 30-byte fixed record plus the name and extra
field at a given offset into an immutable `EntryMetadata`.
"""

import struct
from dataclasses import dataclass
from enum import Enum

from .Errors import CorruptHeader
from .FileIO import read_fully
from .Scanner import Signature

# signature, version, flags, method, mod time, mod date, crc32,
# compressed size, uncompressed size, name length, extra length
LOCAL_HEADER_STRUCT = struct.Struct("<IHHHHHIIIHH")
LOCAL_HEADER_SIZE = LOCAL_HEADER_STRUCT.size  # 30

METHOD_STORE = 0
METHOD_DEFLATE = 8

FLAG_DATA_DESCRIPTOR = 0x08
FLAG_UTF8 = 0x800


class CompressionMethod(Enum):
    STORE = "store"
    DEFLATE = "deflate"
    UNSUPPORTED = "unsupported"

    @classmethod
    def from_id(cls, method_id: int) -> "CompressionMethod":
        if method_id == METHOD_STORE:
            return cls.STORE
        if method_id == METHOD_DEFLATE:
            return cls.DEFLATE
        return cls.UNSUPPORTED


@dataclass(frozen=True)
class EntryMetadata:
    """Metadata of one archive entry, as declared by its local header.

    Attributes:
        name (str): Entry path, decoded from exactly the declared name length.
        compression_method (CompressionMethod): Decodable method, if any.
        method_id (int): Raw method number from the header.
        flags (int): General purpose bit flags.
        declared_compressed_size (int): Compressed size from the header, or 0
            when it is deferred to a data descriptor.
        declared_uncompressed_size (int): Uncompressed size, same caveat.
        header_offset (int): Absolute offset of the header signature.
        data_offset (int): Absolute offset of the first payload byte.
    """
    name: str
    compression_method: CompressionMethod
    method_id: int
    flags: int
    declared_compressed_size: int
    declared_uncompressed_size: int
    header_offset: int
    data_offset: int
    version_needed: int = 0
    crc32: int = 0
    mod_time: int = 0
    mod_date: int = 0

    @property
    def has_data_descriptor(self) -> bool:
        return bool(self.flags & FLAG_DATA_DESCRIPTOR)

    @property
    def sizes_known(self) -> bool:
        """False when the sizes only appear in a trailing data descriptor."""
        return not (self.has_data_descriptor and self.declared_compressed_size == 0)

    @property
    def is_dir(self) -> bool:
        return self.name.endswith("/")

    @property
    def date_time(self) -> tuple:
        # Same layout as zipfile.ZipInfo.date_time
        d, t = self.mod_date, self.mod_time
        return ((d >> 9) + 1980, (d >> 5) & 0xF, d & 0x1F,
                t >> 11, (t >> 5) & 0x3F, (t & 0x1F) * 2)


def _decode_name(raw: bytes, flags: int) -> str:
    if flags & FLAG_UTF8:
        return raw.decode("utf-8", errors="replace")
    return raw.decode("cp437")


def decode_local_header(source, offset: int) -> EntryMetadata:
    """Decode the local file header that starts at `offset`.

    The extra field is skipped without being interpreted. When bit 3 is set
    and the header's compressed size is zero, both sizes are left at zero
    and the true extent is found while consuming the data.

    Args:
        source: Seekable binary byte source.
        offset (int): Absolute offset of the header signature.

    Returns:
        EntryMetadata: The decoded entry.

    Raises:
        CorruptHeader: On a signature mismatch or a header cut short.
    """
    source.seek(offset)
    raw = read_fully(source, LOCAL_HEADER_SIZE)
    if len(raw) < LOCAL_HEADER_SIZE:
        raise CorruptHeader(f"Local header at offset {offset} is truncated", offset)

    (signature, version, flags, method_id, mod_time, mod_date, crc32,
     compressed_size, uncompressed_size, name_length, extra_length) = LOCAL_HEADER_STRUCT.unpack(raw)
    if signature != Signature.LOCAL_FILE_HEADER:
        raise CorruptHeader(f"Bad local header signature 0x{signature:08x} at offset {offset}", offset)

    raw_name = read_fully(source, name_length)
    if len(raw_name) < name_length:
        raise CorruptHeader(f"Entry name at offset {offset} is truncated", offset)

    data_offset = offset + LOCAL_HEADER_SIZE + name_length + extra_length

    if flags & FLAG_DATA_DESCRIPTOR and compressed_size == 0:
        compressed_size = uncompressed_size = 0

    return EntryMetadata(
        name=_decode_name(raw_name, flags),
        compression_method=CompressionMethod.from_id(method_id),
        method_id=method_id,
        flags=flags,
        declared_compressed_size=compressed_size,
        declared_uncompressed_size=uncompressed_size,
        header_offset=offset,
        data_offset=data_offset,
        version_needed=version,
        crc32=crc32,
        mod_time=mod_time,
        mod_date=mod_date,
    )
