"""
zipunlock Flow Unit
A unit of work handed between the host pipeline and the processor:
string attributes plus a byte payload. Payloads live in a spooled
temporary file, so large members never sit fully in memory.
"""
import os
import shutil
import tempfile
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Optional

from .config import config

# Attribute keys
UUID = 'uuid'
FILENAME = 'filename'
PATH = 'path'
ABSOLUTE_PATH = 'absolute-path'
MIME_TYPE = 'mime.type'

OCTET_STREAM = 'application/octet-stream'
ZIP_MIME_TYPE = 'application/zip'


class FlowUnit:
    CHUNK_SIZE = 65536

    def __init__(self, attributes: Optional[Dict[str, str]] = None, spool_max_size: int = None):
        self.attributes: Dict[str, str] = dict(attributes or {})
        self.attributes[UUID] = str(uuid.uuid4())
        self.spool_max_size = spool_max_size or config.spool_max_size

        self._path: Optional[Path] = None
        self._spool = None
        self._size = 0
        self.discarded = False

    # ── Construction ───────────────────────────────────────────────────────

    @classmethod
    def from_path(cls, path, attributes: Optional[Dict[str, str]] = None) -> "FlowUnit":
        """Unit whose content is an existing file, read in place"""
        file_path = Path(path)
        unit = cls({
            FILENAME: file_path.name,
            PATH: file_path.parent.as_posix() + '/',
            ABSOLUTE_PATH: file_path.resolve().parent.as_posix().rstrip('/') + '/',
        })
        unit.put_all_attributes(attributes or {})
        unit._path = file_path
        unit._size = file_path.stat().st_size
        return unit

    @classmethod
    def from_bytes(cls, data: bytes, attributes: Optional[Dict[str, str]] = None) -> "FlowUnit":
        unit = cls(attributes)
        with unit.writer() as out:
            out.write(data)
        return unit

    def create_child(self) -> "FlowUnit":
        """New empty unit inheriting this unit's attributes (fresh uuid)"""
        attributes = {k: v for k, v in self.attributes.items() if k != UUID}
        return FlowUnit(attributes, spool_max_size=self.spool_max_size)

    def clone(self) -> "FlowUnit":
        """Copy of this unit, attributes and content, with a fresh uuid"""
        child = self.create_child()
        with self.open() as src, child.writer() as out:
            while chunk := src.read(self.CHUNK_SIZE):
                out.write(chunk)
        return child

    # ── Attributes ─────────────────────────────────────────────────────────

    def get(self, key: str, default=None):
        return self.attributes.get(key, default)

    def put_attribute(self, key: str, value) -> "FlowUnit":
        self.attributes[key] = str(value)
        return self

    def put_all_attributes(self, attributes: Dict[str, str]) -> "FlowUnit":
        for key, value in attributes.items():
            self.put_attribute(key, value)
        return self

    @property
    def filename(self) -> Optional[str]:
        return self.attributes.get(FILENAME)

    # ── Content ────────────────────────────────────────────────────────────

    @property
    def size(self) -> int:
        return self._size

    @contextmanager
    def open(self):
        """Binary reader over the content, positioned at the start"""
        if self.discarded:
            raise ValueError(f"Unit {self.filename} has been discarded")
        if self._path is not None:
            with open(self._path, 'rb') as f:
                yield f
        elif self._spool is not None:
            self._spool.seek(0)
            yield self._spool
        else:
            yield _EmptyReader()

    @contextmanager
    def writer(self):
        """
        Binary writer that replaces the content once the block exits cleanly.
        On error the partial content is dropped and the old content kept.
        """
        spool = tempfile.SpooledTemporaryFile(max_size=self.spool_max_size)
        try:
            yield spool
        except BaseException:
            spool.close()
            raise
        self._release()
        spool.seek(0, os.SEEK_END)
        self._size = spool.tell()
        self._spool = spool
        self._path = None

    def read_bytes(self) -> bytes:
        with self.open() as src:
            return src.read()

    def export(self, target) -> Path:
        """Write content to target via a temp file in the same directory"""
        target = Path(target)
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp_fd, tmp_path = tempfile.mkstemp(dir=target.parent, suffix='.tmp')
        try:
            with os.fdopen(tmp_fd, 'wb') as out_f, self.open() as src:
                while chunk := src.read(self.CHUNK_SIZE):
                    out_f.write(chunk)
            shutil.move(tmp_path, target)
            tmp_path = None
        finally:
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)
        return target

    def discard(self):
        """Drop the content; the unit can no longer be read"""
        self._release()
        self._path = None
        self._size = 0
        self.discarded = True

    def _release(self):
        if self._spool is not None:
            self._spool.close()
            self._spool = None

    def __repr__(self):
        return f"FlowUnit(filename={self.filename!r}, size={self._size})"


class _EmptyReader:
    def read(self, size: int = -1) -> bytes:
        return b''


__all__ = [
    "FlowUnit",
    "UUID", "FILENAME", "PATH", "ABSOLUTE_PATH", "MIME_TYPE",
    "OCTET_STREAM", "ZIP_MIME_TYPE",
]
