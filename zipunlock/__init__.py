"""
zipunlock
Streaming decryption of password-protected zip archives.
"""
from .errors import (
    ArchiveError,
    AuthenticationFailure,
    EmptyArchive,
    InitializationFailure,
    MalformedArchive,
    RepackFailure,
)
from .flowunit import FlowUnit
from .processor import (
    DECRYPT_ONLY_MODE,
    DECRYPT_UNPACK_MODE,
    DecryptArchive,
    ProcessResult,
)
from .reader import ArchiveCipherReader

__version__ = "1.0.0"

__all__ = [
    "DecryptArchive",
    "ProcessResult",
    "FlowUnit",
    "ArchiveCipherReader",
    "DECRYPT_ONLY_MODE",
    "DECRYPT_UNPACK_MODE",
    "ArchiveError",
    "InitializationFailure",
    "EmptyArchive",
    "AuthenticationFailure",
    "MalformedArchive",
    "RepackFailure",
]
