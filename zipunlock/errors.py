"""
zipunlock Errors
Failure taxonomy shared by the reader, the writers and the processor.
"""

class ArchiveError(Exception):
    """Base class for every failure raised while handling an archive."""

class InitializationFailure(ArchiveError):
    """Decryption could not be set up (empty password, bad filter, unknown scheme)."""

class EmptyArchive(ArchiveError):
    """No entries survived decryption and filtering."""

class AuthenticationFailure(ArchiveError):
    """Password check failed: wrong password or corrupted data."""

class MalformedArchive(ArchiveError):
    """Framing is inconsistent, truncated or uses an unsupported feature."""

class RepackFailure(ArchiveError):
    """Writing the output failed or produced a size mismatch."""

__all__ = [
    "ArchiveError",
    "InitializationFailure",
    "EmptyArchive",
    "AuthenticationFailure",
    "MalformedArchive",
    "RepackFailure",
]
