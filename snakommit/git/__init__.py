"""
Git operations module for snakommit.

This module wraps the git executable for the interactive workflow: status
queries (staged, unstaged and untracked files), staging, unstaging and
committing, plus persistence of the last file selection.

Two caches sit in front of git. The shared CommandPool collapses identical
commands issued within about a second; the status cache here keeps the
parsed file lists for a few seconds and is invalidated by every mutation.
"""

import logging
import threading
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from ..exceptions import GitCommandError, GitOperationError, ValidationError
from ..performance import BatchProcessor, Cache, ParallelHelper
from .command_pool import CommandPool, format_command
from .selections import SelectionStore

logger = logging.getLogger(__name__)

STATUS_CACHE_TTL = 5.0
STATUS_CACHE_SIZE = 10
STAGE_PARALLEL_THRESHOLD = 5


class StatusKey(Enum):
    """Semantic status queries backed by the status cache."""
    STAGED = 'staged'
    UNSTAGED = 'unstaged'
    UNTRACKED = 'untracked'


STATUS_COMMANDS = {
    StatusKey.STAGED: 'git diff --name-only -z --cached',
    StatusKey.UNSTAGED: 'git diff --name-only -z',
    StatusKey.UNTRACKED: 'git ls-files -z --others --exclude-standard',
}

IN_REPO_COMMAND = 'git rev-parse --is-inside-work-tree'
REPO_ROOT_COMMAND = 'git rev-parse --show-toplevel'


class GitOperations:
    """Handles git operations for snakommit."""

    def __init__(self, pool: CommandPool, selection_store: Optional[SelectionStore] = None,
                 status_ttl: float = STATUS_CACHE_TTL):
        """
        Initialize Git operations handler.

        Args:
            pool: Shared command pool all git invocations go through
            selection_store: Store for the last selection, defaults to one
                scoped to this repository
            status_ttl: Seconds the parsed status lists stay cached
        """
        self._pool = pool
        self._status_cache = Cache(max_size=STATUS_CACHE_SIZE, ttl=status_ttl)
        self._repo_root: Optional[str] = None
        self._index_lock = threading.Lock()
        self.selections = selection_store or SelectionStore(self.repo_root)

    def is_repository(self) -> bool:
        """Check if the working directory is inside a git work tree."""
        try:
            return self._pool.execute(IN_REPO_COMMAND) == 'true'
        except GitCommandError:
            return False

    def validate_repository(self) -> None:
        """
        Validate that current directory is a git repository.

        Raises:
            GitOperationError: If not in a git repository
        """
        if not self.is_repository():
            raise GitOperationError(
                "Not a git repository. Please run this command from within a git repository."
            )

    def repo_root(self) -> str:
        """
        Get the absolute path of the repository root.

        Raises:
            GitCommandError: If git cannot resolve the root
        """
        if self._repo_root is None:
            self._repo_root = self._pool.execute(REPO_ROOT_COMMAND)
            logger.debug(f"Git repository root: {self._repo_root}")
        return self._repo_root

    def staged_files(self) -> List[str]:
        """Files staged for the next commit."""
        return self._status_files(StatusKey.STAGED)

    def unstaged_files(self) -> List[str]:
        """Tracked files modified but not staged."""
        return self._status_files(StatusKey.UNSTAGED)

    def untracked_files(self) -> List[str]:
        """Untracked files not excluded by ignore rules."""
        return self._status_files(StatusKey.UNTRACKED)

    def status(self) -> Dict[str, List[str]]:
        """Get all three file lists keyed by status name."""
        return {key.value: self._status_files(key) for key in StatusKey}

    def add(self, path: str) -> str:
        """
        Stage a single file.

        Raises:
            GitCommandError: If git add fails
        """
        return self._mutate(format_command('git', 'add', '--', path))

    def reset(self, path: str) -> str:
        """
        Unstage a single file.

        Raises:
            GitCommandError: If git reset fails
        """
        return self._mutate(format_command('git', 'reset', 'HEAD', '--', path))

    def commit(self, message: str) -> str:
        """
        Commit staged changes with the provided message.

        A successful commit also clears the saved selection.

        Args:
            message: The commit message to use

        Returns:
            Output of git commit

        Raises:
            ValidationError: If the message is empty
            GitCommandError: If commit fails
        """
        if not message or not message.strip():
            raise ValidationError("Commit message cannot be empty")

        output = self._mutate(format_command('git', 'commit', '-m', message))
        logger.info("Changes committed successfully")
        self.selections.clear()
        return output

    def stage_files(self, files: Sequence[str], batch_processor: Optional[BatchProcessor] = None,
                    threshold: int = STAGE_PARALLEL_THRESHOLD) -> List[str]:
        """
        Stage many files, batch by batch, fanning each batch out to worker threads.

        Args:
            files: Files to stage
            batch_processor: Processor to use, a default one is created if omitted
            threshold: Batch size above which a batch is staged in parallel

        Returns:
            Output of each git add, in input order

        Raises:
            GitCommandError: If staging any file fails
        """
        if not files:
            logger.debug("No files to stage")
            return []

        processor = batch_processor or BatchProcessor()
        try:
            outputs = processor.process(
                files,
                lambda batch: ParallelHelper.process(batch, self._add_uncached, threshold=threshold)
            )
        finally:
            self.invalidate_status_cache()

        logger.info(f"Successfully staged {len(files)} files")
        return outputs

    def unstage_files(self, files: Sequence[str],
                      batch_processor: Optional[BatchProcessor] = None) -> List[str]:
        """Unstage many files sequentially, batch by batch."""
        if not files:
            return []

        processor = batch_processor or BatchProcessor()
        try:
            outputs = processor.process(
                files,
                lambda batch: [self._write_index(format_command('git', 'reset', 'HEAD', '--', path))
                               for path in batch]
            )
        finally:
            self.invalidate_status_cache()

        logger.info(f"Unstaged {len(files)} files")
        return outputs

    def invalidate_status_cache(self) -> None:
        """Drop every cached status list, parsed and raw."""
        for key, command in STATUS_COMMANDS.items():
            self._status_cache.invalidate(key)
            self._pool.invalidate(command)

    def save_selections(self, files: Sequence[str]) -> bool:
        return self.selections.save(files)

    def get_saved_selections(self) -> Optional[List[str]]:
        return self.selections.load()

    def clear_saved_selections(self) -> bool:
        return self.selections.clear()

    def cache_stats(self) -> Dict[str, Any]:
        """Get cache performance statistics."""
        return {
            'status_cache': self._status_cache.stats(),
            'command_pool': self._pool.stats(),
        }

    def _status_files(self, key: StatusKey) -> List[str]:
        cached = self._status_cache.get(key)
        if cached is not None:
            return list(cached)

        # -z output is NUL separated and never C-quoted
        output = self._pool.execute(STATUS_COMMANDS[key])
        files = [path for path in output.split('\0') if path]
        self._status_cache.set(key, files)
        return list(files)

    def _add_uncached(self, path: str) -> str:
        return self._write_index(format_command('git', 'add', '--', path))

    def _write_index(self, command: str) -> str:
        # git allows a single index writer; staging workers take turns
        with self._index_lock:
            return self._pool.execute(command, use_cache=False)

    def _mutate(self, command: str) -> str:
        try:
            return self._write_index(command)
        finally:
            self.invalidate_status_cache()
