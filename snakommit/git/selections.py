"""
Persistence of the last file selection.

When a user picks files to stage, the selection is written to the
configuration directory so that a later run in the same repository can offer
to resume it. The record is a convenience only: every failure here is
reported through logging (in debug mode) and otherwise ignored.
"""

import json
import time
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ..config import config_dir, debug_enabled
from ..exceptions import GitOperationError, PersistenceError

logger = logging.getLogger(__name__)

SELECTIONS_FILENAME = 'selections.json'
SELECTION_TTL = 30 * 60


class SelectionStore:
    """File-backed record of the files last selected for staging."""

    def __init__(self, repo_root_resolver: Callable[[], str], path: Optional[Path] = None,
                 ttl: float = SELECTION_TTL):
        """
        Initialize the store.

        Args:
            repo_root_resolver: Returns the root of the current repository
            path: Record location, defaults to selections.json in the config directory
            ttl: Seconds after which a saved selection is ignored
        """
        self._resolve_repo_root = repo_root_resolver
        self._explicit_path = Path(path) if path else None
        self.ttl = ttl

    @property
    def path(self) -> Path:
        return self._explicit_path or config_dir() / SELECTIONS_FILENAME

    def save(self, selected_files: Optional[Sequence[str]]) -> bool:
        """
        Record the selection for the current repository.

        Args:
            selected_files: Files chosen for staging; nothing is written when empty

        Returns:
            True if the record was written
        """
        if not selected_files:
            return False

        repo_root, error = self._current_repo_root('save selections for')
        if error is None:
            record = {
                'repo': repo_root,
                'selected': list(selected_files),
                'timestamp': time.time(),
            }
            error = self._write(record)

        if error is not None:
            self._report(error)
            return False

        logger.debug(f"Saved {len(selected_files)} selected files to {self.path}")
        return True

    def load(self) -> Optional[List[str]]:
        """
        Get the saved selection if it belongs to this repository and is fresh.

        Returns:
            List of files, or None when there is no usable selection
        """
        record, error = self._read()
        if error is None and record is not None:
            repo_root, error = self._current_repo_root('load selections for')
            if error is None:
                if record['repo'] != repo_root:
                    logger.debug("Saved selection belongs to another repository")
                    return None
                if time.time() - record['timestamp'] >= self.ttl:
                    logger.debug("Saved selection has expired")
                    return None
                return list(record['selected'])

        if error is not None:
            self._report(error)
        return None

    def clear(self) -> bool:
        """Delete the saved selection. Returns False if it could not be removed."""
        try:
            self.path.unlink()
        except FileNotFoundError:
            return True
        except OSError as e:
            self._report(PersistenceError('clear', str(self.path), e))
            return False
        logger.debug(f"Cleared saved selection {self.path}")
        return True

    def _current_repo_root(self, action: str) -> Tuple[Optional[str], Optional[PersistenceError]]:
        try:
            return self._resolve_repo_root(), None
        except GitOperationError as e:
            return None, PersistenceError(action, str(self.path), e)

    def _write(self, record: Dict[str, Any]) -> Optional[PersistenceError]:
        path = self.path
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, 'w', encoding='utf-8') as f:
                json.dump(record, f)
        except (OSError, TypeError) as e:
            return PersistenceError('write', str(path), e)
        return None

    def _read(self) -> Tuple[Optional[Dict[str, Any]], Optional[PersistenceError]]:
        path = self.path
        try:
            with open(path, 'r', encoding='utf-8') as f:
                record = json.load(f)
        except FileNotFoundError:
            return None, None
        except (OSError, ValueError) as e:
            return None, PersistenceError('read', str(path), e)

        if not self._is_valid_record(record):
            return None, PersistenceError('parse', str(path), ValueError("unexpected record layout"))
        return record, None

    @staticmethod
    def _is_valid_record(record: Any) -> bool:
        if not isinstance(record, dict):
            return False
        selected = record.get('selected')
        timestamp = record.get('timestamp')
        return (isinstance(record.get('repo'), str)
                and isinstance(selected, list)
                and all(isinstance(item, str) for item in selected)
                and isinstance(timestamp, (int, float))
                and not isinstance(timestamp, bool))

    @staticmethod
    def _report(error: PersistenceError) -> None:
        if debug_enabled():
            logger.warning(f"Warning: {error}")
