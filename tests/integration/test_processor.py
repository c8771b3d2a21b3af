import unittest
from unittest import mock

from tests.archives import (
    PASSWORD,
    SAMPLE_ENTRIES,
    FailingSink,
    aes_archive,
    empty_archive,
    files_of,
    read_plain_zip,
    zipcrypto_archive,
)
from zipunlock.errors import (
    AuthenticationFailure,
    EmptyArchive,
    InitializationFailure,
    MalformedArchive,
    RepackFailure,
)
from zipunlock.flowunit import ABSOLUTE_PATH, FILENAME, MIME_TYPE, PATH, UUID, FlowUnit
from zipunlock.processor import (
    DECRYPT_ONLY_MODE,
    DECRYPT_UNPACK_MODE,
    REL_FAILURE,
    REL_ORIGINAL,
    REL_ROLLBACK,
    REL_SUCCESS,
    DecryptArchive,
    State,
)
from zipunlock.unpacker.grouper import (
    FRAGMENT_COUNT,
    FRAGMENT_ID,
    FRAGMENT_INDEX,
    SEGMENT_ORIGINAL_FILENAME,
)

BASE = '/srv/incoming'


def archive_unit(data, filename='bundle.zip'):
    return FlowUnit.from_bytes(data, {FILENAME: filename, 'source': 'sftp'})


def run(data, mode=DECRYPT_ONLY_MODE, password=PASSWORD, **kwargs):
    kwargs.setdefault('absolute_base', BASE)
    with DecryptArchive(password, mode=mode, **kwargs) as processor:
        return processor.process(archive_unit(data))


class DecryptOnlyTests(unittest.TestCase):
    def test_round_trip(self):
        for label, data in (('zipcrypto', zipcrypto_archive()), ('aes', aes_archive())):
            with self.subTest(label):
                result = run(data)
                self.assertTrue(result.ok)
                self.assertEqual(len(result.success), 1)
                self.assertEqual(result.original, [result.source])
                self.assertEqual(read_plain_zip(result.success[0].read_bytes()), dict(SAMPLE_ENTRIES))

    def test_decrypted_unit_attributes(self):
        result = run(zipcrypto_archive())
        decrypted = result.success[0]
        self.assertEqual(decrypted.filename, 'bundle.zip')
        self.assertEqual(decrypted.get('source'), 'sftp')
        self.assertEqual(decrypted.get(MIME_TYPE), 'application/zip')
        self.assertNotEqual(decrypted.get(UUID), result.source.get(UUID))

    def test_idempotent_content(self):
        data = aes_archive()
        first = read_plain_zip(run(data).success[0].read_bytes())
        second = read_plain_zip(run(data).success[0].read_bytes())
        self.assertEqual(first, second)

    def test_filter_ignored_by_default(self):
        result = run(zipcrypto_archive(), file_filter='matches-nothing')
        self.assertEqual(read_plain_zip(result.success[0].read_bytes()), dict(SAMPLE_ENTRIES))

    def test_filter_applied_when_enabled(self):
        result = run(zipcrypto_archive(), file_filter=r'\.txt$', filter_on_decrypt=True)
        self.assertEqual(
            sorted(read_plain_zip(result.success[0].read_bytes())),
            ['folder/a.txt', 'folder/b.txt', 'readme.txt'],
        )

    def test_data_descriptor_archive(self):
        result = run(zipcrypto_archive(data_descriptor=True))
        self.assertEqual(read_plain_zip(result.success[0].read_bytes()), dict(SAMPLE_ENTRIES))


class DecryptAndUnpackTests(unittest.TestCase):
    def test_one_unit_per_file(self):
        result = run(aes_archive(), mode=DECRYPT_UNPACK_MODE)
        self.assertTrue(result.ok)
        expected = files_of()
        self.assertEqual(len(result.success), len(expected))
        unpacked = {
            unit.filename if unit.get(PATH) == '/' else f"{unit.get(PATH)}/{unit.filename}": unit.read_bytes()
            for unit in result.success
        }
        self.assertEqual(unpacked, expected)

    def test_fragment_attributes(self):
        result = run(zipcrypto_archive(), mode=DECRYPT_UNPACK_MODE)
        count = str(len(result.success))
        fragment_id = result.source.get(FRAGMENT_ID)

        self.assertIsNotNone(fragment_id)
        self.assertEqual(
            sorted(int(u.get(FRAGMENT_INDEX)) for u in result.success),
            list(range(1, len(result.success) + 1)),
        )
        for unit in result.success:
            self.assertEqual(unit.get(FRAGMENT_ID), fragment_id)
            self.assertEqual(unit.get(FRAGMENT_COUNT), count)
            self.assertEqual(unit.get(SEGMENT_ORIGINAL_FILENAME), 'bundle')
            self.assertEqual(unit.get(MIME_TYPE), 'application/octet-stream')

        self.assertEqual(result.source.get(FRAGMENT_COUNT), count)
        self.assertEqual(result.source.get(SEGMENT_ORIGINAL_FILENAME), 'bundle')
        self.assertEqual(result.original, [result.source])

    def test_paths(self):
        result = run(zipcrypto_archive(), mode=DECRYPT_UNPACK_MODE, file_filter='^folder/')
        self.assertEqual([u.filename for u in result.success], ['a.txt', 'b.txt'])
        for unit in result.success:
            self.assertEqual(unit.get(PATH), 'folder')
            self.assertEqual(unit.get(ABSOLUTE_PATH), BASE + '/folder/')

    def test_index_follows_stream_order(self):
        entries = [('zulu.txt', b'z'), ('alpha.txt', b'a'), ('mike.txt', b'm')]
        result = run(zipcrypto_archive(entries), mode=DECRYPT_UNPACK_MODE)
        self.assertEqual(
            [(u.filename, u.get(FRAGMENT_INDEX)) for u in result.success],
            [('zulu.txt', '1'), ('alpha.txt', '2'), ('mike.txt', '3')],
        )

    def test_filter_matching_nothing_fails(self):
        result = run(zipcrypto_archive(), mode=DECRYPT_UNPACK_MODE, file_filter=r'\.exe$')
        self.assertEqual(result.state, State.FAILURE)
        self.assertIsInstance(result.error, EmptyArchive)
        self.assertEqual(result.success, [])

    def test_small_chunks_with_data_descriptors(self):
        for chunk_size in (20, 21, 37):
            with self.subTest(chunk_size=chunk_size):
                result = run(zipcrypto_archive(data_descriptor=True), mode=DECRYPT_UNPACK_MODE, chunk_size=chunk_size)
                self.assertTrue(result.ok)
                self.assertEqual(len(result.success), len(files_of()))

    def test_each_run_gets_a_new_group(self):
        data = zipcrypto_archive()
        first = run(data, mode=DECRYPT_UNPACK_MODE)
        second = run(data, mode=DECRYPT_UNPACK_MODE)
        self.assertNotEqual(first.source.get(FRAGMENT_ID), second.source.get(FRAGMENT_ID))
        self.assertEqual([u.read_bytes() for u in first.success], [u.read_bytes() for u in second.success])


class FailureRoutingTests(unittest.TestCase):
    def assertRoutedToFailure(self, result, original_bytes, error_type):
        routes = result.routes()
        self.assertEqual(result.state, State.FAILURE)
        self.assertEqual(routes[REL_SUCCESS], [])
        self.assertEqual(routes[REL_ORIGINAL], [])
        self.assertEqual(routes[REL_ROLLBACK], [])
        self.assertEqual(routes[REL_FAILURE], [result.source])
        self.assertEqual(result.source.read_bytes(), original_bytes)
        self.assertIsInstance(result.error, error_type)

    def test_wrong_password(self):
        for mode in (DECRYPT_ONLY_MODE, DECRYPT_UNPACK_MODE):
            for data in (zipcrypto_archive(), aes_archive()):
                with self.subTest(mode=mode):
                    result = run(data, mode=mode, password='wrong password')
                    self.assertRoutedToFailure(result, data, AuthenticationFailure)

    def test_wrong_password_leaves_attributes_alone(self):
        result = run(zipcrypto_archive(), mode=DECRYPT_UNPACK_MODE, password='wrong password')
        self.assertIsNone(result.source.get(FRAGMENT_ID))
        self.assertEqual(result.source.get('source'), 'sftp')

    def test_not_a_zip(self):
        data = b'GIF89a this is an image, not an archive'
        for mode in (DECRYPT_ONLY_MODE, DECRYPT_UNPACK_MODE):
            with self.subTest(mode=mode):
                self.assertRoutedToFailure(run(data, mode=mode), data, MalformedArchive)

    def test_empty_archive(self):
        data = empty_archive()
        for mode in (DECRYPT_ONLY_MODE, DECRYPT_UNPACK_MODE):
            with self.subTest(mode=mode):
                self.assertRoutedToFailure(run(data, mode=mode), data, EmptyArchive)

    def test_output_write_fault(self):
        data = zipcrypto_archive()
        unit = archive_unit(data)
        with DecryptArchive(PASSWORD) as processor, \
                mock.patch('tempfile.SpooledTemporaryFile', side_effect=lambda **kwargs: FailingSink(300)):
            result = processor.process(unit)
        self.assertRoutedToFailure(result, data, RepackFailure)

    def test_corrupted_entry_discards_partial_output(self):
        data = zipcrypto_archive(bad_crc_for='data/blob.bin')
        for mode in (DECRYPT_ONLY_MODE, DECRYPT_UNPACK_MODE):
            with self.subTest(mode=mode):
                self.assertRoutedToFailure(run(data, mode=mode), data, AuthenticationFailure)


class RollbackTests(unittest.TestCase):
    def test_empty_password(self):
        data = zipcrypto_archive()
        for mode in (DECRYPT_ONLY_MODE, DECRYPT_UNPACK_MODE):
            with self.subTest(mode=mode):
                result = run(data, mode=mode, password='')
                self.assertEqual(result.state, State.ROLLBACK)
                self.assertEqual(result.rollback, [result.source])
                self.assertEqual(result.failure, [])
                self.assertIsInstance(result.error, InitializationFailure)

    def test_invalid_filter(self):
        result = run(zipcrypto_archive(), mode=DECRYPT_UNPACK_MODE, file_filter='(unclosed')
        self.assertEqual(result.state, State.ROLLBACK)

    def test_invalid_filter_only_matters_when_filtering(self):
        self.assertTrue(run(zipcrypto_archive(), file_filter='(unclosed').ok)
        result = run(zipcrypto_archive(), file_filter='(unclosed', filter_on_decrypt=True)
        self.assertEqual(result.state, State.ROLLBACK)

    def test_unknown_scheme(self):
        result = run(zipcrypto_archive(), scheme='rar')
        self.assertEqual(result.state, State.ROLLBACK)

    def test_unknown_mode(self):
        with self.assertRaises(ValueError):
            DecryptArchive(PASSWORD, mode='decrypt-and-dance')


if __name__ == '__main__':
    unittest.main()
