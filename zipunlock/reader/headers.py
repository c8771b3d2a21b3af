"""
zipunlock Zip Headers
Local file header framing as it appears in a forward-only zip stream.
"""
import struct
from dataclasses import dataclass
from typing import List, Optional, Tuple

from ..errors import MalformedArchive


LOCAL_FILE_HEADER = b'PK\x03\x04'
CENTRAL_DIRECTORY = b'PK\x01\x02'
END_OF_CENTRAL_DIRECTORY = b'PK\x05\x06'
ZIP64_END_OF_CENTRAL_DIRECTORY = b'PK\x06\x06'
ZIP64_END_LOCATOR = b'PK\x06\x07'
ARCHIVE_EXTRA_DATA = b'PK\x06\x08'
DIGITAL_SIGNATURE = b'PK\x05\x05'
DATA_DESCRIPTOR = b'PK\x07\x08'
SINGLE_SEGMENT_MARKER = b'PK00'

# Any of these after the last entry means the entries are over
TRAILER_SIGNATURES = frozenset({
    CENTRAL_DIRECTORY,
    END_OF_CENTRAL_DIRECTORY,
    ZIP64_END_OF_CENTRAL_DIRECTORY,
    ZIP64_END_LOCATOR,
    ARCHIVE_EXTRA_DATA,
    DIGITAL_SIGNATURE,
})

FLAG_ENCRYPTED = 0x0001
FLAG_DATA_DESCRIPTOR = 0x0008
FLAG_STRONG_ENCRYPTION = 0x0040
FLAG_UTF8 = 0x0800
FLAG_MASKED_HEADERS = 0x2000

STORED = 0
DEFLATED = 8
AES_ENCRYPTED = 99
SUPPORTED_METHODS = {STORED: 'stored', DEFLATED: 'deflated'}

EXTRA_ZIP64 = 0x0001
EXTRA_WINZIP_AES = 0x9901

LOCAL_HEADER_STRUCT = struct.Struct('<HHHHHIIIHH')
EXTRA_HEADER_STRUCT = struct.Struct('<HH')
AES_EXTRA_STRUCT = struct.Struct('<H2sBH')

SIZE_MASK_32 = 0xFFFFFFFF


@dataclass
class AesExtra:
    version: int
    vendor: bytes
    strength: int
    method: int


@dataclass
class LocalFileHeader:
    version: int
    flags: int
    method: int
    mod_time: int
    mod_date: int
    crc: int
    compressed_size: int
    uncompressed_size: int
    name: str
    aes: Optional[AesExtra] = None
    zip64: bool = False

    @property
    def encrypted(self) -> bool:
        return bool(self.flags & FLAG_ENCRYPTED)

    @property
    def has_data_descriptor(self) -> bool:
        return bool(self.flags & FLAG_DATA_DESCRIPTOR)

    @property
    def is_dir(self) -> bool:
        return self.name.endswith('/')

    @property
    def sizes_known(self) -> bool:
        return not self.has_data_descriptor or self.compressed_size > 0

    @property
    def encryption(self) -> str:
        if not self.encrypted:
            return 'none'
        if self.aes is not None:
            return f"aes-{64 + 64 * self.aes.strength}"
        return 'zipcrypto'

    @property
    def date_time(self) -> Tuple[int, int, int, int, int, int]:
        d, t = self.mod_date, self.mod_time
        return (
            ((d >> 9) & 0x7F) + 1980,
            (d >> 5) & 0x0F,
            d & 0x1F,
            t >> 11,
            (t >> 5) & 0x3F,
            (t & 0x1F) * 2,
        )


def split_extra(data: bytes) -> List[Tuple[int, bytes]]:
    """Split an extra field blob into (header id, payload) records."""
    records = []
    pos = 0
    while pos + EXTRA_HEADER_STRUCT.size <= len(data):
        header_id, size = EXTRA_HEADER_STRUCT.unpack_from(data, pos)
        pos += EXTRA_HEADER_STRUCT.size
        if pos + size > len(data):
            raise MalformedArchive(f"Extra field 0x{header_id:04x} overruns its header")
        records.append((header_id, data[pos:pos + size]))
        pos += size
    return records


def decode_name(raw: bytes, flags: int) -> str:
    if flags & FLAG_UTF8:
        try:
            return raw.decode('utf-8')
        except UnicodeDecodeError as e:
            raise MalformedArchive(f"Entry name is not valid UTF-8: {e}")
    return raw.decode('cp437')


def parse_local_header(body: bytes, raw_name: bytes, extra: bytes) -> LocalFileHeader:
    """
    Build a LocalFileHeader from the 26 bytes following the signature,
    the raw file name and the raw extra field.
    """
    (version, flags, method, mod_time, mod_date,
     crc, csize, usize, _, _) = LOCAL_HEADER_STRUCT.unpack(body)

    header = LocalFileHeader(
        version=version,
        flags=flags,
        method=method,
        mod_time=mod_time,
        mod_date=mod_date,
        crc=crc,
        compressed_size=csize,
        uncompressed_size=usize,
        name=decode_name(raw_name, flags),
    )

    for header_id, payload in split_extra(extra):
        if header_id == EXTRA_ZIP64:
            _apply_zip64(header, payload)
        elif header_id == EXTRA_WINZIP_AES:
            if len(payload) < AES_EXTRA_STRUCT.size:
                raise MalformedArchive("Truncated WinZip AES extra field")
            header.aes = AesExtra(*AES_EXTRA_STRUCT.unpack_from(payload))

    if header.flags & (FLAG_STRONG_ENCRYPTION | FLAG_MASKED_HEADERS):
        raise MalformedArchive(f"Strong encryption is not supported: {header.name}")

    if header.method == AES_ENCRYPTED:
        if header.aes is None:
            raise MalformedArchive(f"AES method without AES extra field: {header.name}")
        header.method = header.aes.method
    elif header.aes is not None:
        raise MalformedArchive(f"AES extra field with method {header.method}: {header.name}")

    if header.method not in SUPPORTED_METHODS:
        raise MalformedArchive(
            f"Unsupported compression method {header.method}: {header.name}"
        )
    return header


def _apply_zip64(header: LocalFileHeader, payload: bytes):
    header.zip64 = True
    pos = 0
    if header.uncompressed_size == SIZE_MASK_32 and pos + 8 <= len(payload):
        header.uncompressed_size = struct.unpack_from('<Q', payload, pos)[0]
        pos += 8
    if header.compressed_size == SIZE_MASK_32 and pos + 8 <= len(payload):
        header.compressed_size = struct.unpack_from('<Q', payload, pos)[0]
        pos += 8


__all__ = [
    "LocalFileHeader",
    "AesExtra",
    "parse_local_header",
    "split_extra",
    "decode_name",
]
