from .repacker import ArchiveRepacker

__all__ = ["ArchiveRepacker"]
