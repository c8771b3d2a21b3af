import io
import unittest
import zipfile

from tests.archives import (
    PASSWORD,
    SAMPLE_ENTRIES,
    FailingSink,
    aes_archive,
    read_plain_zip,
    zipcrypto_archive,
)
from zipunlock.errors import AuthenticationFailure, RepackFailure
from zipunlock.packager import ArchiveRepacker
from zipunlock.reader import ArchiveCipherReader
from zipunlock.unpacker import EntryFilter


def repack(data, **kwargs):
    sink = io.BytesIO()
    with ArchiveCipherReader(io.BytesIO(data), PASSWORD) as reader:
        written = ArchiveRepacker(**kwargs).repack(reader, sink)
    return written, sink.getvalue()


class ArchiveRepackerTests(unittest.TestCase):
    def test_repacked_archive_is_plain_and_stored(self):
        written, out = repack(zipcrypto_archive())
        self.assertEqual(written, len(SAMPLE_ENTRIES))
        with zipfile.ZipFile(io.BytesIO(out)) as zf:
            for info in zf.infolist():
                self.assertEqual(info.compress_type, zipfile.ZIP_STORED)
                self.assertFalse(info.flag_bits & 0x1)
            self.assertTrue(zf.getinfo('folder/').is_dir())
            self.assertEqual(zf.getinfo('readme.txt').date_time, (2024, 5, 17, 12, 30, 0))

    def test_content_survives(self):
        for data in (zipcrypto_archive(), zipcrypto_archive(data_descriptor=True), aes_archive()):
            with self.subTest():
                _, out = repack(data)
                self.assertEqual(read_plain_zip(out), dict(SAMPLE_ENTRIES))

    def test_entry_filter(self):
        written, out = repack(zipcrypto_archive(), entry_filter=EntryFilter(r'^folder/'))
        self.assertEqual(written, 2)
        self.assertEqual(sorted(read_plain_zip(out)), ['folder/a.txt', 'folder/b.txt'])

    def test_failure_propagates(self):
        with self.assertRaises(AuthenticationFailure):
            repack(zipcrypto_archive(bad_crc_for='data/blob.bin'))

    def test_sink_write_fault(self):
        with ArchiveCipherReader(io.BytesIO(zipcrypto_archive()), PASSWORD) as reader:
            with self.assertRaises(RepackFailure):
                ArchiveRepacker().repack(reader, FailingSink(limit=300))

    def test_short_entry(self):
        class ShortEntry:
            name = 'short.txt'
            is_dir = False
            size = 10
            date_time = (2024, 5, 17, 12, 30, 0)

            def __init__(self):
                self._data = io.BytesIO(b'only5')

            def read(self, size=-1):
                return self._data.read(size)

        with self.assertRaises(RepackFailure):
            ArchiveRepacker().repack([ShortEntry()], io.BytesIO())

    def test_small_chunks(self):
        _, out = repack(zipcrypto_archive(), chunk_size=17)
        self.assertEqual(read_plain_zip(out), dict(SAMPLE_ENTRIES))


if __name__ == '__main__':
    unittest.main()
