"""
zipunlock Archive Inspector
Peek inside an encrypted archive: walks every entry with the password
but writes nothing.
"""
from pathlib import Path

from ..reader.cipher_reader import ArchiveCipherReader
from ..unpacker.entry_filter import EntryFilter
from ..utils.logger import logger


class Inspector:
    def __init__(self, chunk_size: int = 65536):
        self.chunk_size = chunk_size

    def inspect(self, archive_path: str, password, file_filter: str = None) -> dict:
        """
        List entries, sizes and ciphers. Content is decrypted and verified
        but discarded.
        """
        path = Path(archive_path)
        if not path.exists():
            raise ValueError(f"Archive not found: {archive_path}")

        entry_filter = EntryFilter(file_filter)
        entries = []

        with open(path, 'rb') as f, ArchiveCipherReader(f, password, chunk_size=self.chunk_size) as reader:
            for entry in reader:
                size = 0
                while chunk := entry.read(self.chunk_size):
                    size += len(chunk)
                entries.append({
                    'name': entry.name,
                    'is_dir': entry.is_dir,
                    'size': size,
                    'compressed_size': entry.compressed_size,
                    'method': entry.method,
                    'encryption': entry.encryption,
                    'selected': entry_filter.matches(entry),
                })

        files = [e for e in entries if not e['is_dir']]
        info = {
            'archive_path': str(path),
            'archive_size': path.stat().st_size,
            'entry_count': len(entries),
            'file_count': len(files),
            'selected_count': sum(1 for e in files if e['selected']),
            'total_size': sum(e['size'] for e in files),
            'ciphers': sorted({e['encryption'] for e in entries}),
            'entries': entries,
        }
        logger.debug(f"Inspected {path.name}: {info['entry_count']} entries")

        self._print(info)
        return info

    def _print(self, info: dict):
        def fmt_size(b):
            if b is None:
                return 'unknown'
            if b >= 1024 * 1024:
                return f"{b/1024/1024:.2f} MB"
            return f"{b/1024:.1f} KB"

        print(f"\n{'='*50}")
        print(f"  Archive Inspection")
        print(f"{'='*50}")
        print(f"  File:        {info['archive_path']}")
        print(f"  Size:        {fmt_size(info['archive_size'])}")
        print(f"  Entries:     {info['entry_count']} ({info['file_count']} files)")
        print(f"  Selected:    {info['selected_count']}")
        print(f"  Unpacked:    {fmt_size(info['total_size'])}")
        print(f"  Ciphers:     {', '.join(info['ciphers']) or 'none'}")
        print()
        for e in info['entries']:
            marker = 'd' if e['is_dir'] else ('*' if e['selected'] else ' ')
            print(f"  {marker} {e['name']:<40} {fmt_size(e['size']):>10}  {e['method']:<8} {e['encryption']}")
        print(f"{'='*50}\n")


__all__ = ["Inspector"]
