"""
zipunlock Checksum Utility
Running CRC-32 used to verify entry content as it streams past.
"""
import zlib
from typing import Union


class RunningCrc32:
    """Accumulates CRC-32 and byte count over successive chunks."""

    def __init__(self):
        self.value = 0
        self.count = 0

    def update(self, data: Union[bytes, bytearray, memoryview]):
        self.value = zlib.crc32(data, self.value)
        self.count += len(data)

    def matches(self, expected: int) -> bool:
        return (self.value & 0xFFFFFFFF) == (expected & 0xFFFFFFFF)


def calculate_bytes_crc32(data: Union[bytes, str]) -> int:
    """
    Calculates the CRC-32 of a byte string or text string.

    Args:
        data: The input data (bytes or string)

    Returns:
        int: unsigned 32-bit checksum
    """
    if isinstance(data, str):
        data = data.encode('utf-8')
    return zlib.crc32(data) & 0xFFFFFFFF


__all__ = ["RunningCrc32", "calculate_bytes_crc32"]
