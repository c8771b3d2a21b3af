"""The hand-written ZipCrypto fixtures must be readable by the stdlib zipfile."""
import io
import unittest
import zipfile

from tests.archives import PASSWORD, SAMPLE_ENTRIES, zipcrypto_archive


class ZipCryptoFixtureTests(unittest.TestCase):
    def _read(self, data):
        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            zf.setpassword(PASSWORD.encode('utf-8'))
            self.assertIsNone(zf.testzip())
            return {info.filename: zf.read(info) for info in zf.infolist()}

    def test_deflated(self):
        self.assertEqual(self._read(zipcrypto_archive()), dict(SAMPLE_ENTRIES))

    def test_stored(self):
        self.assertEqual(self._read(zipcrypto_archive(compress=False)), dict(SAMPLE_ENTRIES))

    def test_data_descriptor(self):
        self.assertEqual(self._read(zipcrypto_archive(data_descriptor=True)), dict(SAMPLE_ENTRIES))


if __name__ == '__main__':
    unittest.main()
