"""
zipunlock Archive Schemes
Capability interface over the supported cipher schemes. Call sites ask
for a scheme by name and never touch the concrete reader or writers.
"""
from typing import Dict, List, Type

from .errors import InitializationFailure
from .flowunit import MIME_TYPE, ZIP_MIME_TYPE, FlowUnit
from .packager.repacker import ArchiveRepacker
from .reader.cipher_reader import ArchiveCipherReader
from .reader.ciphers import SecretPassword
from .unpacker.entry_filter import EntryFilter
from .unpacker.grouper import FragmentGrouper
from .unpacker.splitter import EntrySplitter


class ArchiveScheme:
    """Decrypt / unpack capabilities for one password-protected archive format."""

    name: str = None

    def __init__(self, password, chunk_size: int = None, absolute_base: str = None):
        self.password = SecretPassword(password)
        if not self.password:
            raise InitializationFailure("Password must not be empty")
        self.chunk_size = chunk_size
        self.absolute_base = absolute_base

    def encrypt(self, source, sink):
        raise NotImplementedError(f"{self.name}: encryption is not supported")

    def decrypt(self, source, sink, entry_filter: EntryFilter = None) -> int:
        """Write an unencrypted copy of source to sink; returns entries written"""
        raise NotImplementedError

    def unpack(self, source: FlowUnit, entry_filter: EntryFilter, grouper: FragmentGrouper) -> List[FlowUnit]:
        """Split source into one unit per matching entry"""
        raise NotImplementedError

    def update_attributes(self, attributes: Dict[str, str]):
        """Adjust the attributes of a decrypted copy"""

    def close(self):
        self.password.clear()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class ZipScheme(ArchiveScheme):
    """Zip archives protected with ZipCrypto or WinZip AES."""

    name = 'zip'

    def _open_reader(self, stream) -> ArchiveCipherReader:
        return ArchiveCipherReader(stream, self.password, chunk_size=self.chunk_size)

    def decrypt(self, source, sink, entry_filter: EntryFilter = None) -> int:
        repacker = ArchiveRepacker(chunk_size=self.chunk_size, entry_filter=entry_filter)
        with self._open_reader(source) as reader:
            return repacker.repack(reader, sink)

    def unpack(self, source: FlowUnit, entry_filter: EntryFilter, grouper: FragmentGrouper) -> List[FlowUnit]:
        splitter = EntrySplitter(
            entry_filter,
            grouper,
            chunk_size=self.chunk_size,
            absolute_base=self.absolute_base
        )
        with source.open() as stream, self._open_reader(stream) as reader:
            return splitter.split(reader, source)

    def update_attributes(self, attributes: Dict[str, str]):
        attributes[MIME_TYPE] = ZIP_MIME_TYPE


SCHEMES: Dict[str, Type[ArchiveScheme]] = {
    ZipScheme.name: ZipScheme,
}


def create_scheme(name: str, password, **kwargs) -> ArchiveScheme:
    scheme_cls = SCHEMES.get((name or '').lower())
    if scheme_cls is None:
        raise InitializationFailure(
            f"Unknown archive scheme {name!r} (supported: {', '.join(sorted(SCHEMES))})"
        )
    return scheme_cls(password, **kwargs)


__all__ = ["ArchiveScheme", "ZipScheme", "SCHEMES", "create_scheme"]
