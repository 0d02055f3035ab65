#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Configuration management for TrackFix runs.
Loads YAML config with environment variable and command-line overrides.
"""

import copy
import os
import yaml
from pathlib import Path
from typing import Any, Dict, Mapping, Optional


DEFAULT_CONFIG: Dict[str, Any] = {
    'library': {
        'root': '/mnt/HDD/Media/Music'
    },
    'workers': {
        'threads': 8
    },
    'features': {
        'fix_perms': False,
        'delete_failed': False,
        'auto_rename': False,
        'embed_cover': False,
        'fetch_genre_year': True,
        'auto_dry_real': False,
        'resumable': True
    },
    'run': {
        'dry_run': False,
        'dry_run_sample': 20,
        'max_failure_ratio': 0.5,
        'save_every': 25
    },
    'output': {
        'state_file': None,
        'log_file': './trackfix.log'
    },
    'api': {
        'musicbrainz': {
            'user_agent': 'TrackFix/1.0 ( trackfix@example.com )',
            'timeout': 10,
            'rate_limit': 1.0
        },
        'coverart': {
            'size': 500,
            'timeout': 10
        }
    },
    'web': {
        'enabled': False,
        'host': '0.0.0.0',
        'port': 5000
    },
    'permissions': {
        'mode': 0o777
    }
}

# TRACKFIX_* variable -> config key
ENV_KEYS = {
    'TRACKFIX_MUSIC_FOLDER': 'library.root',
    'TRACKFIX_THREADS': 'workers.threads',
    'TRACKFIX_FIX_PERMS': 'features.fix_perms',
    'TRACKFIX_DELETE_FAILED': 'features.delete_failed',
    'TRACKFIX_AUTO_RENAME': 'features.auto_rename',
    'TRACKFIX_EMBED_COVER': 'features.embed_cover',
    'TRACKFIX_FETCH_GENRE_YEAR': 'features.fetch_genre_year',
    'TRACKFIX_AUTO_DRY_REAL': 'features.auto_dry_real',
    'TRACKFIX_RESUMABLE': 'features.resumable',
    'TRACKFIX_LOG_FILE': 'output.log_file',
}


class ConfigError(ValueError):
    """Raised when a config value cannot be coerced to its expected type"""


class ConfigManager:
    """
    Configuration manager that loads settings from a YAML file.

    Values are layered: built-in defaults, then the YAML file, then
    TRACKFIX_* environment variables, then explicit ``set()`` calls
    (used by the CLI for its flags).
    """

    def __init__(self, config_path: str = "trackfix.yaml", environ: Optional[Mapping[str, str]] = None):
        self.config_path = Path(config_path)
        self._config: Dict[str, Any] = {}
        self.warnings = []
        self.load()
        self.apply_env(os.environ if environ is None else environ)

    def load(self) -> None:
        """Load configuration file on top of the defaults"""
        self._config = copy.deepcopy(DEFAULT_CONFIG)

        if self.config_path.exists():
            with open(self.config_path, 'r', encoding='utf-8') as f:
                loaded = yaml.safe_load(f) or {}
            self._merge(self._config, loaded)
        else:
            self.warnings.append(f"Config file not found: {self.config_path}, using defaults")

    def _merge(self, target: Dict[str, Any], source: Dict[str, Any]) -> None:
        for key, value in source.items():
            if isinstance(value, dict) and isinstance(target.get(key), dict):
                self._merge(target[key], value)
            else:
                target[key] = value

    def apply_env(self, environ: Mapping[str, str]) -> None:
        """Apply TRACKFIX_* environment overrides"""
        for env_var, key in ENV_KEYS.items():
            if env_var in environ and environ[env_var] != '':
                self.set(key, environ[env_var])

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get config value with dot notation.

        Examples:
            config.get('workers.threads')
            config.get('api.musicbrainz.user_agent')

        Environment variables are expanded if value is like ${VAR_NAME}
        """
        keys = key.split('.')
        value = self._config

        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default
            if value is None:
                return default

        if isinstance(value, str) and value.startswith('${') and value.endswith('}'):
            env_var = value[2:-1]
            return os.environ.get(env_var, default)

        return value

    def set(self, key: str, value: Any) -> None:
        """Set config value with dot notation, creating sections as needed"""
        keys = key.split('.')
        target = self._config
        for k in keys[:-1]:
            target = target.setdefault(k, {})
        target[keys[-1]] = value

    def _bool(self, key: str, default: bool) -> bool:
        value = self.get(key, default)
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in ('true', 'yes', 'y', '1', 'on'):
                return True
            if lowered in ('false', 'no', 'n', '0', 'off'):
                return False
        if isinstance(value, int):
            return bool(value)
        raise ConfigError(f"{key}: expected a boolean, got {value!r}")

    def _int(self, key: str, default: int) -> int:
        value = self.get(key, default)
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ConfigError(f"{key}: expected an integer, got {value!r}")

    def _float(self, key: str, default: float) -> float:
        value = self.get(key, default)
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ConfigError(f"{key}: expected a number, got {value!r}")

    @property
    def library_root(self) -> Path:
        return Path(self.get('library.root', DEFAULT_CONFIG['library']['root']))

    @property
    def threads(self) -> int:
        return max(1, self._int('workers.threads', 8))

    @property
    def fix_perms(self) -> bool:
        return self._bool('features.fix_perms', False)

    @property
    def delete_failed(self) -> bool:
        return self._bool('features.delete_failed', False)

    @property
    def auto_rename(self) -> bool:
        return self._bool('features.auto_rename', False)

    @property
    def embed_cover(self) -> bool:
        return self._bool('features.embed_cover', False)

    @property
    def fetch_genre_year(self) -> bool:
        return self._bool('features.fetch_genre_year', True)

    @property
    def auto_dry_real(self) -> bool:
        return self._bool('features.auto_dry_real', False)

    @property
    def resumable(self) -> bool:
        return self._bool('features.resumable', True)

    @property
    def dry_run(self) -> bool:
        return self._bool('run.dry_run', False)

    @property
    def dry_run_sample(self) -> int:
        return max(1, self._int('run.dry_run_sample', 20))

    @property
    def max_failure_ratio(self) -> float:
        return self._float('run.max_failure_ratio', 0.5)

    @property
    def save_every(self) -> int:
        return max(1, self._int('run.save_every', 25))

    @property
    def state_file(self) -> Path:
        value = self.get('output.state_file')
        if value:
            return Path(value)
        return self.library_root / '.trackfix_state.json'

    @property
    def log_file(self) -> Path:
        return Path(self.get('output.log_file', './trackfix.log'))

    @property
    def user_agent(self) -> str:
        return self.get('api.musicbrainz.user_agent', DEFAULT_CONFIG['api']['musicbrainz']['user_agent'])

    @property
    def lookup_timeout(self) -> float:
        return self._float('api.musicbrainz.timeout', 10)

    @property
    def lookup_rate_limit(self) -> float:
        return self._float('api.musicbrainz.rate_limit', 1.0)

    @property
    def cover_size(self) -> int:
        return self._int('api.coverart.size', 500)

    @property
    def cover_timeout(self) -> float:
        return self._float('api.coverart.timeout', 10)

    @property
    def web_enabled(self) -> bool:
        return self._bool('web.enabled', False)

    @property
    def web_host(self) -> str:
        return self.get('web.host', '0.0.0.0')

    @property
    def web_port(self) -> int:
        return self._int('web.port', 5000)

    @property
    def permissions_mode(self) -> int:
        value = self.get('permissions.mode', 0o777)
        if isinstance(value, str):
            return int(value, 8)
        return int(value)

    def __repr__(self) -> str:
        return f"ConfigManager(config={self.config_path}, root={self.library_root})"
