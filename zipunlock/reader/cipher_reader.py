"""
zipunlock Cipher Reader
Walks a password-protected zip archive front to back, one local header
frame at a time, without seeking and without buffering the archive.
Each entry exposes a stream of decrypted, decompressed bytes.
"""
import struct
import zlib
from typing import Iterator, Optional

from ..errors import (
    ArchiveError,
    AuthenticationFailure,
    InitializationFailure,
    MalformedArchive,
)
from ..utils.checksum import RunningCrc32
from ..utils.logger import logger
from . import headers as zh
from .ciphers import SecretPassword, WinZipAesDecrypter, ZipCryptoDecrypter


class _ForwardReader:
    """Forward-only view over a raw byte source, with push-back for over-reads."""

    def __init__(self, raw):
        self._raw = raw
        self._pending = b''
        self.position = 0

    def read(self, n: int) -> bytes:
        if self._pending:
            data, self._pending = self._pending[:n], self._pending[n:]
        else:
            data = self._raw.read(n) or b''
        self.position += len(data)
        return data

    def read_upto(self, n: int) -> bytes:
        """Up to n bytes; fewer only at end of input"""
        parts = []
        missing = n
        while missing:
            chunk = self.read(missing)
            if not chunk:
                break
            parts.append(chunk)
            missing -= len(chunk)
        return b''.join(parts)

    def read_exactly(self, n: int, what: str) -> bytes:
        data = self.read_upto(n)
        if len(data) < n:
            raise MalformedArchive(f"Truncated archive while reading {what}")
        return data

    def unread(self, data: bytes):
        self._pending = bytes(data) + self._pending
        self.position -= len(data)


class EntryStream:
    """
    Decrypted content of one entry. Read it with read(n) until it returns b''.

    The stream belongs to the reader: moving to the next entry drains what
    is left, closing the reader abandons it.
    """

    def __init__(self, reader: "ArchiveCipherReader", header: zh.LocalFileHeader, decrypter):
        self._reader = reader
        self._header = header
        self._decrypter = decrypter
        self._chunk_size = reader.chunk_size
        self._buffer = bytearray()
        self._chunks = self._generate()
        self.exhausted = False
        self.closed = False

    # ── Consumer side ──────────────────────────────────────────────────────

    def read(self, size: int = -1) -> bytes:
        if self.closed:
            raise ValueError("I/O operation on closed entry stream")
        if size is None or size < 0:
            parts = [bytes(self._buffer)]
            self._buffer.clear()
            while not self.exhausted:
                parts.append(self._pull())
            return b''.join(parts)

        while len(self._buffer) < size and not self.exhausted:
            self._buffer += self._pull()
        data = bytes(self._buffer[:size])
        del self._buffer[:size]
        return data

    def readable(self) -> bool:
        return True

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # ── Reader side ────────────────────────────────────────────────────────

    def skip(self):
        """Consume the rest of the entry so the next frame can be read."""
        self._buffer.clear()
        while not self.exhausted:
            self._pull()

    def abandon(self):
        self.closed = True
        self._buffer.clear()
        self._chunks.close()

    def _pull(self) -> bytes:
        try:
            return next(self._chunks)
        except StopIteration:
            self.exhausted = True
            return b''
        except Exception:
            self.exhausted = True
            self._reader._mark_failed()
            raise

    # ── Decoding ───────────────────────────────────────────────────────────

    def _content_error(self, message: str) -> ArchiveError:
        if self._header.encrypted:
            return AuthenticationFailure(f"{message}: {self._header.name}")
        return MalformedArchive(f"{message}: {self._header.name}")

    def _payload_size(self) -> int:
        h = self._header
        size = h.compressed_size
        if h.encrypted and h.aes is not None:
            size -= WinZipAesDecrypter.header_size(h.aes.strength)
            size -= WinZipAesDecrypter.AUTH_CODE_SIZE
        elif h.encrypted:
            size -= ZipCryptoDecrypter.HEADER_SIZE
        if size < 0:
            raise MalformedArchive(f"Compressed size too small for its cipher: {h.name}")
        return size

    def _inflate(self, inflater, data: bytes):
        try:
            out = inflater.decompress(data, self._chunk_size)
            while True:
                if out:
                    yield out
                if inflater.eof:
                    break
                if not inflater.unconsumed_tail and len(out) < self._chunk_size:
                    break
                out = inflater.decompress(inflater.unconsumed_tail, self._chunk_size)
        except zlib.error as e:
            raise self._content_error(f"Corrupt deflate data ({e})")

    def _decode(self, raw: bytes, inflater) -> Iterator[bytes]:
        data = self._decrypter.decrypt(raw) if self._decrypter else raw
        if inflater is None:
            yield data
        else:
            yield from self._inflate(inflater, data)

    def _generate(self) -> Iterator[bytes]:
        h = self._header
        source = self._reader._source
        decrypter = self._decrypter
        inflater = zlib.decompressobj(-15) if h.method == zh.DEFLATED else None
        crc = RunningCrc32()

        if h.sizes_known:
            remaining = self._payload_size()
            while remaining:
                raw = source.read(min(self._chunk_size, remaining))
                if not raw:
                    raise MalformedArchive(f"Truncated archive inside entry: {h.name}")
                remaining -= len(raw)
                if decrypter:
                    decrypter.update_mac(raw)
                for piece in self._decode(raw, inflater):
                    crc.update(piece)
                    yield piece
            if inflater is not None:
                try:
                    tail = inflater.flush()
                except zlib.error as e:
                    raise self._content_error(f"Corrupt deflate data ({e})")
                if tail:
                    crc.update(tail)
                    yield tail
                if not inflater.eof:
                    raise self._content_error("Deflate stream ended early")
        else:
            if inflater is None:
                raise MalformedArchive(
                    f"Stored entry with sizes only in a data descriptor: {h.name}"
                )
            while not inflater.eof:
                raw = source.read(self._chunk_size)
                if not raw:
                    raise MalformedArchive(f"Truncated archive inside entry: {h.name}")
                used = len(raw)
                for piece in self._decode(raw, inflater):
                    crc.update(piece)
                    yield piece
                if inflater.eof and inflater.unused_data:
                    used -= len(inflater.unused_data)
                    source.unread(raw[used:])
                if decrypter:
                    decrypter.update_mac(raw[:used])

        if decrypter:
            code = source.read_exactly(decrypter.AUTH_CODE_SIZE, "authentication code")
            if not decrypter.verify(code):
                raise AuthenticationFailure(f"Authentication code mismatch: {h.name}")

        expected_crc = h.crc
        expected_size = h.uncompressed_size
        if h.has_data_descriptor:
            expected_crc, expected_size = self._read_descriptor()

        # AE-2 entries carry no CRC, the HMAC stands in for it
        check_crc = not (h.aes is not None and h.aes.version == 2)
        if check_crc and not crc.matches(expected_crc):
            raise self._content_error("CRC mismatch")
        if expected_size != crc.count:
            raise self._content_error(
                f"Size mismatch (declared {expected_size}, got {crc.count})"
            )

        logger.debug(f"   entry {h.name}: {crc.count} bytes")

    def _read_descriptor(self):
        source = self._reader._source
        first = source.read_exactly(4, "data descriptor")
        if first == zh.DATA_DESCRIPTOR:
            first = source.read_exactly(4, "data descriptor")
        crc = struct.unpack('<I', first)[0]
        if self._header.zip64:
            _, usize = struct.unpack('<QQ', source.read_exactly(16, "data descriptor"))
        else:
            _, usize = struct.unpack('<II', source.read_exactly(8, "data descriptor"))
        return crc, usize


class ArchiveEntry:
    """One entry of the archive, as announced by its local header."""

    def __init__(self, header: zh.LocalFileHeader, stream: EntryStream):
        self.header = header
        self.name = header.name
        self.is_dir = header.is_dir
        self.size = header.uncompressed_size if header.sizes_known else None
        self.compressed_size = header.compressed_size if header.sizes_known else None
        self.method = zh.SUPPORTED_METHODS[header.method]
        self.encryption = header.encryption
        self.date_time = header.date_time
        self.crc = header.crc
        self.stream = stream

    def read(self, size: int = -1) -> bytes:
        return self.stream.read(size)

    def __repr__(self):
        return f"ArchiveEntry(name={self.name!r}, size={self.size}, encryption={self.encryption!r})"


class ArchiveCipherReader:
    """
    Lazy, forward-only sequence of ArchiveEntry over an encrypted zip stream.

        with ArchiveCipherReader(stream, password) as reader:
            for entry in reader:
                while chunk := entry.read(65536):
                    ...

    next_entry() raises MalformedArchive or AuthenticationFailure; after
    either the reader is unusable and should be closed.
    """

    DEFAULT_CHUNK_SIZE = 65536

    def __init__(self, source, password, chunk_size: int = None):
        # Own copy, wiped on close
        self.password = SecretPassword(password)
        if not self.password:
            raise InitializationFailure("Password must not be empty")
        if source is None or not hasattr(source, 'read'):
            raise InitializationFailure("Archive source must be a readable byte stream")

        self.chunk_size = chunk_size or self.DEFAULT_CHUNK_SIZE
        self._source = _ForwardReader(source)
        self._current: Optional[EntryStream] = None
        self._entries = 0
        self._done = False
        self._failed = False
        self._closed = False

    @property
    def entries_read(self) -> int:
        return self._entries

    def _mark_failed(self):
        self._failed = True

    def next_entry(self) -> Optional[ArchiveEntry]:
        if self._closed:
            raise ValueError("Reader is closed")
        if self._failed:
            raise MalformedArchive("Archive stream is out of frame after an earlier failure")
        if self._done:
            return None

        try:
            if self._current is not None:
                self._current.skip()
                self._current = None
            entry = self._read_entry()
        except Exception:
            self._failed = True
            raise

        if entry is None:
            self._done = True
            logger.debug(f"   end of entries after {self._entries} entries")
        return entry

    def _read_entry(self) -> Optional[ArchiveEntry]:
        signature = self._source.read_upto(4)
        if signature == zh.SINGLE_SEGMENT_MARKER and self._source.position == 4:
            signature = self._source.read_upto(4)

        if not signature:
            if self._source.position == 0:
                raise MalformedArchive("Input is empty, not a zip archive")
            raise MalformedArchive("Archive ended without a central directory")
        if len(signature) < 4:
            raise MalformedArchive("Truncated archive while reading a signature")
        if signature in zh.TRAILER_SIGNATURES:
            return None
        if signature == zh.DATA_DESCRIPTOR and self._entries == 0:
            raise MalformedArchive("Split archives are not supported")
        if signature != zh.LOCAL_FILE_HEADER:
            raise MalformedArchive(f"Not a zip local file header: {signature!r}")

        body = self._source.read_exactly(zh.LOCAL_HEADER_STRUCT.size, "local file header")
        name_len, extra_len = struct.unpack_from('<HH', body, 22)
        raw_name = self._source.read_exactly(name_len, "entry name")
        extra = self._source.read_exactly(extra_len, "extra field")
        header = zh.parse_local_header(body, raw_name, extra)

        decrypter = self._open_decrypter(header)
        self._current = EntryStream(self, header, decrypter)
        self._entries += 1
        return ArchiveEntry(header, self._current)

    def _open_decrypter(self, header: zh.LocalFileHeader):
        if not header.encrypted:
            return None

        if header.aes is not None:
            strength = header.aes.strength
            if strength not in WinZipAesDecrypter.SALT_SIZES:
                raise MalformedArchive(f"Unsupported AES strength {strength}: {header.name}")
            salt = self._source.read_exactly(WinZipAesDecrypter.SALT_SIZES[strength], "AES salt")
            verifier = self._source.read_exactly(WinZipAesDecrypter.VERIFIER_SIZE, "AES verifier")
            return WinZipAesDecrypter(self.password, strength, salt, verifier)

        decrypter = ZipCryptoDecrypter(self.password)
        encryption_header = self._source.read_exactly(
            ZipCryptoDecrypter.HEADER_SIZE, "encryption header"
        )
        if header.has_data_descriptor:
            check_byte = (header.mod_time >> 8) & 0xFF
        else:
            check_byte = (header.crc >> 24) & 0xFF
        decrypter.check_header(encryption_header, check_byte)
        return decrypter

    def __iter__(self):
        while True:
            entry = self.next_entry()
            if entry is None:
                return
            yield entry

    def close(self):
        if self._closed:
            return
        self._closed = True
        if self._current is not None:
            self._current.abandon()
            self._current = None
        self.password.clear()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


__all__ = ["ArchiveCipherReader", "ArchiveEntry", "EntryStream"]
