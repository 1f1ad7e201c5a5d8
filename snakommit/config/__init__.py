"""
Configuration management for snakommit.

This module resolves the configuration directory, reads the debug flag and
handles loading, validation and persistence of the commit convention
settings (commit types, scopes and length limits) stored as YAML.
"""

import os
import copy
import shutil
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv

from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_DIR_ENV = 'SNAKOMMIT_CONFIG_DIR'
DEBUG_ENV = 'SNAKOMMIT_DEBUG'
CONFIG_FILENAME = 'config.yml'

DEFAULT_TYPES = [
    {'name': 'feat', 'description': 'A new feature'},
    {'name': 'fix', 'description': 'A bug fix'},
    {'name': 'docs', 'description': 'Documentation changes'},
    {'name': 'style', 'description': 'Changes that do not affect the meaning of the code'},
    {'name': 'refactor', 'description': 'A code change that neither fixes a bug nor adds a feature'},
    {'name': 'perf', 'description': 'A code change that improves performance'},
    {'name': 'test', 'description': 'Adding missing tests or correcting existing tests'},
    {'name': 'build', 'description': 'Changes that affect the build system or external dependencies'},
    {'name': 'ci/cd', 'description': 'Changes to our CI/CD configuration files and scripts'},
    {'name': 'chore', 'description': "Other changes that don't modify src or test files"},
]

DEFAULT_CONFIG: Dict[str, Any] = {
    'types': DEFAULT_TYPES,
    'scopes': [],
    'max_subject_length': 100,
    'max_body_line_length': 72,
}


def config_dir() -> Path:
    """Directory holding snakommit settings, logs and session state."""
    override = os.environ.get(CONFIG_DIR_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / '.snakommit'


def debug_enabled() -> bool:
    """Check whether diagnostic output was requested through the environment."""
    return os.environ.get(DEBUG_ENV, '').strip().lower() in ('1', 'true', 'yes', 'on')


def load_environment(env_file: Optional[Path] = None) -> bool:
    """
    Load SNAKOMMIT_* variables from a .env file.

    Existing environment variables take precedence over the file.

    Args:
        env_file: Explicit .env path, defaults to .env in the current directory

    Returns:
        True if a file was found and loaded
    """
    env_path = env_file or Path.cwd() / '.env'
    if not env_path.exists():
        return False
    loaded = load_dotenv(env_path, override=False)
    logger.debug(f"Loaded environment from {env_path}")
    return loaded


@dataclass
class CommitConfig:
    """Commit convention settings."""

    types: List[Dict[str, str]] = field(default_factory=lambda: copy.deepcopy(DEFAULT_TYPES))
    scopes: List[str] = field(default_factory=list)
    max_subject_length: int = 100
    max_body_line_length: int = 72

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ConfigurationError: If configuration is invalid
        """
        if not isinstance(self.types, list):
            raise ConfigurationError("Invalid configuration format: 'types' must be a list")
        if not self.types:
            raise ConfigurationError("Configuration error: no commit types defined")
        for commit_type in self.types:
            if not isinstance(commit_type, dict) or not commit_type.get('name'):
                raise ConfigurationError(f"Invalid commit type entry: {commit_type!r}")

        if not isinstance(self.scopes, list):
            raise ConfigurationError("Invalid configuration format: 'scopes' must be a list")

        for key in ('max_subject_length', 'max_body_line_length'):
            value = getattr(self, key)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ConfigurationError(f"{key} must be a positive integer, got {value!r}")

    @property
    def type_names(self) -> List[str]:
        return [commit_type['name'] for commit_type in self.types]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CommitConfig':
        """Create CommitConfig from a mapping, ignoring unknown keys and filling defaults."""
        values = {
            'types': data.get('types') or copy.deepcopy(DEFAULT_TYPES),
            'scopes': data.get('scopes') or [],
            'max_subject_length': data.get('max_subject_length') or DEFAULT_CONFIG['max_subject_length'],
            'max_body_line_length': data.get('max_body_line_length') or DEFAULT_CONFIG['max_body_line_length'],
        }
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'types': copy.deepcopy(self.types),
            'scopes': list(self.scopes),
            'max_subject_length': self.max_subject_length,
            'max_body_line_length': self.max_body_line_length,
        }


class ConfigurationLoader:
    """Loads and persists the YAML configuration file."""

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize configuration loader.

        Args:
            config_path: Optional explicit config file path
        """
        self._explicit_path = Path(config_path) if config_path else None
        self._cache: Optional[Dict[str, Any]] = None
        self._cache_mtime: Optional[float] = None

    @property
    def config_path(self) -> Path:
        return self._explicit_path or config_dir() / CONFIG_FILENAME

    def load(self) -> Dict[str, Any]:
        """
        Load the raw configuration mapping, creating the default file if needed.

        The parsed file is cached until its modification time changes.

        Returns:
            Copy of the configuration mapping

        Raises:
            ConfigurationError: If the file cannot be read or parsed
        """
        path = self.config_path
        if not path.exists():
            self.create_default_config()

        try:
            mtime = path.stat().st_mtime
            if self._cache is not None and self._cache_mtime == mtime:
                return copy.deepcopy(self._cache)

            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except OSError as e:
            raise ConfigurationError(f"Could not load configuration: {e}")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}")

        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration in {path} must be a mapping")

        self._cache = data
        self._cache_mtime = mtime
        logger.debug(f"Loaded configuration from {path}")
        return copy.deepcopy(data)

    def load_config(self) -> CommitConfig:
        """Load and validate the configuration."""
        return CommitConfig.from_dict(self.load())

    def get(self, key: str, default: Any = None) -> Any:
        return self.load().get(key, default)

    def create_default_config(self) -> Path:
        """Write the default configuration unless a file already exists."""
        path = self.config_path
        if path.exists():
            return path
        self._write(DEFAULT_CONFIG)
        logger.info(f"Created default configuration: {path}")
        return path

    def update(self, updates: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge ``updates`` into the stored configuration.

        Returns:
            The updated configuration mapping

        Raises:
            ConfigurationError: If the merged configuration is invalid or cannot be written
        """
        config = self.load()
        config.update(updates)
        CommitConfig.from_dict(config)

        self._backup()
        self._write(config)
        return copy.deepcopy(config)

    def reset(self) -> Dict[str, Any]:
        """Restore the default configuration, keeping a backup of the current file."""
        if self.config_path.exists():
            self._backup()
        self._write(DEFAULT_CONFIG)
        return copy.deepcopy(DEFAULT_CONFIG)

    def _write(self, config: Dict[str, Any]) -> None:
        path = self.config_path
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, 'w', encoding='utf-8') as f:
                yaml.safe_dump(config, f, default_flow_style=False, sort_keys=False, allow_unicode=True)
        except OSError as e:
            raise ConfigurationError(f"Failed to write configuration {path}: {e}")

        self._cache = copy.deepcopy(config)
        try:
            self._cache_mtime = path.stat().st_mtime
        except OSError:
            self._cache_mtime = None

    def _backup(self) -> Optional[Path]:
        backup_path = self.config_path.with_name(self.config_path.name + '.bak')
        try:
            shutil.copyfile(self.config_path, backup_path)
            return backup_path
        except OSError as e:
            logger.warning(f"Failed to backup configuration: {e}")
            return None
