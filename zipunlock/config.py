"""
zipunlock Configuration
Single source of truth for all settings.
Load once at startup, pass to all components.
"""
import json
import os
from pathlib import Path
from .utils.logger import logger


DECRYPT_ONLY_MODE = "decrypt-only"
DECRYPT_UNPACK_MODE = "decrypt-and-unpack"
MODES = (DECRYPT_ONLY_MODE, DECRYPT_UNPACK_MODE)

# Default config values
DEFAULTS = {
    "archive": {
        "mode": DECRYPT_ONLY_MODE,
        "file_filter": ".*",
        "filter_on_decrypt": False,
        "scheme": "zip",
        "chunk_size_kb": 64,
        "absolute_base": None  # None = current working directory
    },
    "batch": {
        "max_workers": None,  # None = auto detect
        "pattern": "*.zip"
    },
    "storage": {
        "output_dir": "output",
        "spool_max_size_mb": 8
    },
    "security": {
        "password_env": "ZIPUNLOCK_PASSWORD"
    }
}


class ZipUnlockConfig:
    def __init__(self, config_path: str = None):
        self._config = self._deep_copy(DEFAULTS)

        if config_path:
            self.config_path = Path(config_path)
        else:
            # Look for config in project root
            self.config_path = Path(__file__).parent.parent / 'zipunlock.config.json'

        if self.config_path.exists():
            self._load()
        else:
            logger.debug(f"No config file found at {self.config_path}, using defaults")

    def _load(self):
        """Load and merge config file over defaults"""
        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                user_config = json.load(f)
            self._deep_merge(self._config, user_config)
            logger.info(f"Loaded config from {self.config_path}")
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON in config file: {e}, using defaults")
        except OSError as e:
            logger.error(f"Failed to load config: {e}, using defaults")

    def save(self, path: str = None):
        """Save current config to file"""
        out_path = Path(path) if path else self.config_path
        with open(out_path, 'w', encoding='utf-8') as f:
            json.dump(self._config, f, indent=2)
        logger.info(f"Config saved to {out_path}")

    def get(self, *keys, default=None):
        """
        Get a nested config value by key path.
        e.g. config.get('archive', 'mode')
        """
        value = self._config
        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default
        return value

    def set(self, *keys_and_value):
        """
        Set a nested config value.
        e.g. config.set('archive', 'mode', 'decrypt-and-unpack')
        """
        *keys, value = keys_and_value
        target = self._config
        for key in keys[:-1]:
            target = target.setdefault(key, {})
        target[keys[-1]] = value

    # ── Convenience properties ─────────────────────────────────────────────

    @property
    def mode(self) -> str:
        return self.get('archive', 'mode', default=DECRYPT_ONLY_MODE)

    @property
    def file_filter(self) -> str:
        return self.get('archive', 'file_filter', default='.*')

    @property
    def filter_on_decrypt(self) -> bool:
        return bool(self.get('archive', 'filter_on_decrypt', default=False))

    @property
    def scheme(self) -> str:
        return self.get('archive', 'scheme', default='zip')

    @property
    def chunk_size(self) -> int:
        return self.get('archive', 'chunk_size_kb', default=64) * 1024

    @property
    def absolute_base(self):
        return self.get('archive', 'absolute_base', default=None)

    @property
    def max_workers(self):
        return self.get('batch', 'max_workers', default=None)

    @property
    def batch_pattern(self) -> str:
        return self.get('batch', 'pattern', default='*.zip')

    @property
    def output_dir(self) -> str:
        return self.get('storage', 'output_dir', default='output')

    @property
    def spool_max_size(self) -> int:
        return self.get('storage', 'spool_max_size_mb', default=8) * 1024 * 1024

    @property
    def password_env(self) -> str:
        return self.get('security', 'password_env', default='ZIPUNLOCK_PASSWORD')

    def password_from_env(self):
        """Password from the configured environment variable, or None"""
        return os.environ.get(self.password_env) or None

    # ── Helpers ────────────────────────────────────────────────────────────

    @staticmethod
    def _deep_copy(d: dict) -> dict:
        import copy
        return copy.deepcopy(d)

    @staticmethod
    def _deep_merge(base: dict, override: dict):
        """Merge override into base recursively, modifies base in place"""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                ZipUnlockConfig._deep_merge(base[key], value)
            else:
                base[key] = value


# Singleton, import this everywhere
config = ZipUnlockConfig()

__all__ = [
    "ZipUnlockConfig", "config",
    "DECRYPT_ONLY_MODE", "DECRYPT_UNPACK_MODE", "MODES",
]
