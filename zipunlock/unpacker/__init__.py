from .entry_filter import EntryFilter
from .grouper import FragmentGrouper
from .splitter import EntrySplitter

__all__ = ["EntryFilter", "FragmentGrouper", "EntrySplitter"]
