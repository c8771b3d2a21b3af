import json
import os
import unittest
from pathlib import Path
from tempfile import TemporaryDirectory
from unittest import mock

from zipunlock.config import DECRYPT_ONLY_MODE, DECRYPT_UNPACK_MODE, ZipUnlockConfig


class ZipUnlockConfigTests(unittest.TestCase):
    def setUp(self):
        self.tmpdir = TemporaryDirectory()
        self.config_path = Path(self.tmpdir.name) / 'zipunlock.config.json'

    def tearDown(self):
        self.tmpdir.cleanup()

    def test_defaults(self):
        cfg = ZipUnlockConfig(str(self.config_path))
        self.assertEqual(cfg.mode, DECRYPT_ONLY_MODE)
        self.assertEqual(cfg.file_filter, '.*')
        self.assertFalse(cfg.filter_on_decrypt)
        self.assertEqual(cfg.scheme, 'zip')
        self.assertEqual(cfg.chunk_size, 64 * 1024)
        self.assertIsNone(cfg.absolute_base)
        self.assertEqual(cfg.batch_pattern, '*.zip')
        self.assertEqual(cfg.spool_max_size, 8 * 1024 * 1024)

    def test_file_is_merged_over_defaults(self):
        self.config_path.write_text(json.dumps({
            'archive': {'mode': DECRYPT_UNPACK_MODE, 'chunk_size_kb': 4},
            'batch': {'max_workers': 3},
        }), encoding='utf-8')
        cfg = ZipUnlockConfig(str(self.config_path))
        self.assertEqual(cfg.mode, DECRYPT_UNPACK_MODE)
        self.assertEqual(cfg.chunk_size, 4096)
        self.assertEqual(cfg.max_workers, 3)
        # untouched keys of a merged section survive
        self.assertEqual(cfg.file_filter, '.*')

    def test_invalid_json_keeps_defaults(self):
        self.config_path.write_text('{not json', encoding='utf-8')
        cfg = ZipUnlockConfig(str(self.config_path))
        self.assertEqual(cfg.mode, DECRYPT_ONLY_MODE)

    def test_get_set_and_save(self):
        cfg = ZipUnlockConfig(str(self.config_path))
        cfg.set('archive', 'file_filter', r'\.csv$')
        self.assertEqual(cfg.get('archive', 'file_filter'), r'\.csv$')
        self.assertEqual(cfg.get('archive', 'missing', default='x'), 'x')
        cfg.save()
        reloaded = ZipUnlockConfig(str(self.config_path))
        self.assertEqual(reloaded.file_filter, r'\.csv$')

    def test_password_from_env(self):
        cfg = ZipUnlockConfig(str(self.config_path))
        with mock.patch.dict(os.environ, {'ZIPUNLOCK_PASSWORD': 'from-env'}):
            self.assertEqual(cfg.password_from_env(), 'from-env')
        with mock.patch.dict(os.environ, {}, clear=True):
            self.assertIsNone(cfg.password_from_env())


if __name__ == '__main__':
    unittest.main()
