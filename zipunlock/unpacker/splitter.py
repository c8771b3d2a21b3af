"""
zipunlock Entry Splitter
Turns each matching archive entry into its own FlowUnit.
"""
from pathlib import Path
from typing import List, Tuple

from ..errors import RepackFailure
from ..flowunit import ABSOLUTE_PATH, FILENAME, MIME_TYPE, OCTET_STREAM, PATH, FlowUnit
from ..utils.logger import logger
from .entry_filter import EntryFilter
from .grouper import FragmentGrouper


class EntrySplitter:
    CHUNK_SIZE = 65536

    def __init__(
        self,
        entry_filter: EntryFilter,
        grouper: FragmentGrouper,
        chunk_size: int = None,
        absolute_base: str = None
    ):
        self.entry_filter = entry_filter
        self.grouper = grouper
        self.chunk_size = chunk_size or self.CHUNK_SIZE
        self.absolute_base = absolute_base

    def derive_paths(self, name: str) -> Tuple[str, str, str]:
        """
        (filename, path, absolute-path) for an entry name.
        e.g. 'folder/a.txt' -> ('a.txt', 'folder', '<base>/folder/')

        The parent is kept as written in the archive, not normalised.
        """
        parent, _, filename = name.rpartition('/')
        if name.startswith('/'):
            # already absolute
            absolute = parent + '/'
        else:
            base = (self.absolute_base or Path.cwd().as_posix()).rstrip('/')
            absolute = f"{base}/{parent}/" if parent else f"{base}/"
        return filename, parent or '/', absolute

    def split(self, reader, source: FlowUnit) -> List[FlowUnit]:
        """
        One unit per matching entry, in stream order.

        Any failure discards every unit produced so far and re-raises:
        a partial unpack is never returned.
        """
        unpacked: List[FlowUnit] = []
        try:
            for entry in reader:
                if not self.entry_filter.matches(entry):
                    logger.debug(f"   skipping {entry.name}")
                    continue
                unpacked.append(self._unpack_entry(entry, source))
        except BaseException:
            for unit in unpacked:
                unit.discard()
            raise
        return unpacked

    def _unpack_entry(self, entry, source: FlowUnit) -> FlowUnit:
        filename, path, absolute = self.derive_paths(entry.name)

        unit = source.create_child()
        unit.put_all_attributes({
            FILENAME: filename,
            PATH: path,
            ABSOLUTE_PATH: absolute,
            MIME_TYPE: OCTET_STREAM,
        })
        # Index follows discovery order, taken before any content is read
        self.grouper.assign(unit)

        try:
            with unit.writer() as out:
                while chunk := entry.read(self.chunk_size):
                    try:
                        out.write(chunk)
                    except OSError as e:
                        raise RepackFailure(f"Failed to write {entry.name}: {e}") from e
        except BaseException:
            unit.discard()
            raise

        logger.debug(f"   unpacked {entry.name} ({unit.size} bytes)")
        return unit


__all__ = ["EntrySplitter"]
