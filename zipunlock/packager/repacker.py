"""
zipunlock Repacker
Writes decrypted entries into a plain zip container: stored, unencrypted,
one entry at a time as they stream out of the cipher reader.
"""
import zipfile

from ..errors import RepackFailure
from ..utils.logger import logger


class ArchiveRepacker:
    CHUNK_SIZE = 65536
    DIR_ATTRIBUTES = (0o40775 << 16) | 0x10

    def __init__(self, chunk_size: int = None, entry_filter=None):
        self.chunk_size = chunk_size or self.CHUNK_SIZE
        # None keeps every entry, directories included
        self.entry_filter = entry_filter

    def repack(self, reader, sink) -> int:
        """
        Copy every entry of reader into a new zip written to sink.

        Returns the number of entries written. On failure the sink holds
        an incomplete archive and must be thrown away by the caller.
        """
        written = 0
        try:
            zip_out = zipfile.ZipFile(sink, 'w', compression=zipfile.ZIP_STORED, allowZip64=True)
        except OSError as e:
            raise RepackFailure(f"Cannot open output archive: {e}") from e

        try:
            for entry in reader:
                if self.entry_filter is not None and not self.entry_filter.matches(entry):
                    logger.debug(f"   skipping {entry.name}")
                    continue
                self._copy_entry(zip_out, entry)
                written += 1
        except BaseException:
            self._abort(zip_out)
            raise

        try:
            zip_out.close()
        except OSError as e:
            raise RepackFailure(f"Failed to finish output archive: {e}") from e
        return written

    def _copy_entry(self, zip_out: zipfile.ZipFile, entry):
        info = zipfile.ZipInfo(entry.name, date_time=entry.date_time)
        info.compress_type = zipfile.ZIP_STORED

        if entry.is_dir:
            info.external_attr = self.DIR_ATTRIBUTES
            try:
                zip_out.writestr(info, b'')
            except OSError as e:
                raise RepackFailure(f"Failed to write {entry.name}: {e}") from e
            return

        if entry.size is not None:
            info.file_size = entry.size
        force_zip64 = entry.size is None or entry.size >= zipfile.ZIP64_LIMIT

        copied = 0
        try:
            with zip_out.open(info, 'w', force_zip64=force_zip64) as dest:
                while chunk := entry.read(self.chunk_size):
                    dest.write(chunk)
                    copied += len(chunk)
        except OSError as e:
            raise RepackFailure(f"Failed to write {entry.name}: {e}") from e

        if entry.size is not None and copied != entry.size:
            raise RepackFailure(
                f"Size mismatch for {entry.name}: declared {entry.size}, wrote {copied}"
            )
        logger.debug(f"   repacked {entry.name} ({copied} bytes)")

    @staticmethod
    def _abort(zip_out: zipfile.ZipFile):
        try:
            zip_out.close()
        except (OSError, ValueError) as e:
            logger.debug(f"   output archive left unfinished: {e}")


__all__ = ["ArchiveRepacker"]
