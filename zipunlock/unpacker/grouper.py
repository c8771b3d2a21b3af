"""
zipunlock Fragment Grouper
Correlates every unit split out of one archive: a shared identifier,
a one-up index in discovery order, and, once all are known, the count.
"""
import uuid
from typing import List

from ..flowunit import FILENAME, FlowUnit
from ..utils.logger import logger

FRAGMENT_ID = 'fragment.identifier'
FRAGMENT_INDEX = 'fragment.index'
FRAGMENT_COUNT = 'fragment.count'
SEGMENT_ORIGINAL_FILENAME = 'segment.original.filename'


class FragmentGrouper:
    def __init__(self, fragment_id: str = None):
        self.fragment_id = fragment_id or str(uuid.uuid4())
        self._next_index = 0

    @property
    def assigned(self) -> int:
        return self._next_index

    def assign(self, unit: FlowUnit) -> int:
        """First pass: tag a unit as it is discovered"""
        self._next_index += 1
        unit.put_attribute(FRAGMENT_ID, self.fragment_id)
        unit.put_attribute(FRAGMENT_INDEX, self._next_index)
        return self._next_index

    @staticmethod
    def original_filename(source: FlowUnit) -> str:
        filename = source.get(FILENAME) or ''
        if filename.endswith('.zip'):
            filename = filename[:-4]
        return filename

    def finalize(self, units: List[FlowUnit], source: FlowUnit) -> bool:
        """
        Second pass: write the count onto every unit and onto the source.

        When any unit is missing its index the units are left untouched and
        False is returned. The source is tagged with the group either way.
        """
        count = str(len(units))
        original_filename = self.original_filename(source)

        missing = [u for u in units if u.get(FRAGMENT_INDEX) is None]
        if missing:
            logger.error(
                f"Fragment {self.fragment_id}: {len(missing)} of {len(units)} units "
                f"have no index; count not written"
            )
        else:
            for unit in units:
                unit.put_all_attributes({
                    FRAGMENT_COUNT: count,
                    SEGMENT_ORIGINAL_FILENAME: original_filename,
                })

        source.put_all_attributes({
            FRAGMENT_ID: self.fragment_id,
            FRAGMENT_COUNT: count,
            SEGMENT_ORIGINAL_FILENAME: original_filename,
        })
        return not missing


__all__ = [
    "FragmentGrouper",
    "FRAGMENT_ID",
    "FRAGMENT_INDEX",
    "FRAGMENT_COUNT",
    "SEGMENT_ORIGINAL_FILENAME",
]
