"""
zipunlock Entry Filter
Decides which archive entries make it into the output.
"""
import re
from typing import Optional

from ..errors import InitializationFailure


class EntryFilter:
    MATCH_ALL = '.*'

    def __init__(self, pattern: Optional[str] = MATCH_ALL):
        self.pattern = pattern or self.MATCH_ALL
        try:
            self._regex = re.compile(self.pattern)
        except re.error as e:
            raise InitializationFailure(f"Invalid file filter {self.pattern!r}: {e}")

    def matches(self, entry) -> bool:
        """
        Directories never match. Anything else matches when the pattern
        is found anywhere in the entry name.
        """
        if entry.is_dir:
            return False
        return self._regex.search(entry.name) is not None

    def __repr__(self):
        return f"EntryFilter({self.pattern!r})"


__all__ = ["EntryFilter"]
