"""
zipunlock CLI Commands
Contains the executable modules for decrypting, unpacking and inspecting.
"""

from . import batch
from . import decrypt
from . import inspect
from . import unpack

__all__ = ["batch", "decrypt", "inspect", "unpack"]
