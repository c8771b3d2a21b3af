from .cipher_reader import ArchiveCipherReader, ArchiveEntry, EntryStream
from .ciphers import SecretPassword

__all__ = ["ArchiveCipherReader", "ArchiveEntry", "EntryStream", "SecretPassword"]
