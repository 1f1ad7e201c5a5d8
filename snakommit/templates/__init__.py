"""
Commit message templates for snakommit.

Builds conventional commit messages from the answers collected by the
workflow and manages the optional emoji decoration of commit types.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import yaml

from ..config import config_dir
from ..exceptions import ValidationError

logger = logging.getLogger(__name__)

EMOJI_CONFIG_FILENAME = 'emoji_config.yml'

DEFAULT_EMOJI_MAP = {
    'feat': '✨',
    'fix': '🐛',
    'docs': '📝',
    'style': '💄',
    'refactor': '♻️',
    'perf': '⚡️',
    'test': '✅',
    'build': '🔧',
    'ci/cd': '👷',
    'chore': '🔨',
    'revert': '⏪️',
}


@dataclass
class CommitMessage:
    """Answers collected for one commit."""
    type: str
    subject: str
    scope: Optional[str] = None
    body: List[str] = field(default_factory=list)
    breaking: Optional[str] = None
    issues: Optional[str] = None


def validate_subject(subject: str, max_length: int) -> str:
    """
    Validate the short description of a commit.

    Returns:
        The stripped subject

    Raises:
        ValidationError: If the subject is empty or too long
    """
    subject = (subject or '').strip()
    if not subject:
        raise ValidationError("Subject cannot be empty")
    if len(subject) > max_length:
        raise ValidationError(f"Subject must be at most {max_length} characters")
    return subject


def format_commit_message(message: CommitMessage, templates: Optional['Templates'] = None) -> str:
    """
    Format a commit message according to the conventional commit layout.

    Args:
        message: Collected commit details
        templates: Emoji settings used to decorate the type, if any

    Returns:
        Complete commit message text
    """
    commit_type = templates.format_commit_type(message.type) if templates else message.type

    if message.scope:
        header = f"{commit_type}({message.scope}): {message.subject}"
    else:
        header = f"{commit_type}: {message.subject}"

    parts = [header]
    if message.body:
        parts.append('\n'.join(message.body))
    if message.breaking:
        parts.append(f"BREAKING CHANGE: {message.breaking}")
    if message.issues:
        parts.append(message.issues)

    return '\n\n'.join(parts)


class Templates:
    """Manages emoji decoration of commit types."""

    def __init__(self, config_path: Optional[Path] = None):
        self._explicit_path = Path(config_path) if config_path else None
        self._formatted_types: Dict[str, str] = {}
        self._emoji_map: Dict[str, str] = dict(DEFAULT_EMOJI_MAP)
        self._emoji_enabled = False
        self._load_config()

    @property
    def config_path(self) -> Path:
        return self._explicit_path or config_dir() / EMOJI_CONFIG_FILENAME

    def emoji_enabled(self) -> bool:
        return self._emoji_enabled

    def toggle_emoji(self, enable: Optional[bool] = None) -> bool:
        """
        Enable, disable or flip emoji decoration.

        Args:
            enable: Desired state, or None to flip the current one

        Returns:
            The new state
        """
        self._emoji_enabled = (not self._emoji_enabled) if enable is None else bool(enable)
        self._formatted_types.clear()
        self._save_config()
        return self._emoji_enabled

    def format_commit_type(self, commit_type: str) -> str:
        if not self._emoji_enabled or commit_type not in self._emoji_map:
            return commit_type

        if commit_type not in self._formatted_types:
            self._formatted_types[commit_type] = f"{self._emoji_map[commit_type]} {commit_type}"
        return self._formatted_types[commit_type]

    def get_emoji_for_type(self, commit_type: str) -> Optional[str]:
        return self._emoji_map.get(commit_type)

    def list_emoji_mappings(self) -> List[Dict[str, str]]:
        return [{'type': commit_type, 'emoji': emoji} for commit_type, emoji in self._emoji_map.items()]

    def update_emoji_mapping(self, commit_type: str, emoji: str) -> None:
        """
        Change the emoji used for a known commit type.

        Raises:
            ValidationError: If the commit type is unknown
        """
        if commit_type not in self._emoji_map:
            raise ValidationError(f"Unknown commit type: {commit_type}")

        self._emoji_map[commit_type] = emoji
        self._formatted_types.pop(commit_type, None)
        self._save_config()

    def reset_emoji_mappings(self) -> None:
        self._emoji_map = dict(DEFAULT_EMOJI_MAP)
        self._formatted_types.clear()
        self._save_config()

    def _load_config(self) -> None:
        path = self.config_path
        if not path.exists():
            self._save_config()
            return

        try:
            with open(path, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f) or {}
            emoji_map = config.get('emoji_map') if isinstance(config, dict) else None
            if isinstance(emoji_map, dict) and emoji_map:
                self._emoji_map = {str(k): str(v) for k, v in emoji_map.items()}
            self._emoji_enabled = bool(config.get('emoji_enabled')) if isinstance(config, dict) else False
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Failed to load emoji config: {e}")
            self._emoji_map = dict(DEFAULT_EMOJI_MAP)
            self._emoji_enabled = False

    def _save_config(self) -> None:
        path = self.config_path
        config = {
            'emoji_map': self._emoji_map,
            'emoji_enabled': self._emoji_enabled,
        }
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, 'w', encoding='utf-8') as f:
                yaml.safe_dump(config, f, allow_unicode=True, default_flow_style=False)
        except OSError as e:
            logger.warning(f"Failed to save emoji config: {e}")
