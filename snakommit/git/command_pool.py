"""
Shared executor for git commands.

Read-only git queries issued in quick succession (for example while one
prompt is being rendered) are collapsed into a single process invocation by
caching the output per literal command text for a very short window.
"""

import shlex
import logging
import subprocess
import threading
import time
from collections import defaultdict
from typing import Any, Dict, Optional

from ..exceptions import GitCommandError
from ..performance import CacheEntry

logger = logging.getLogger(__name__)


def format_command(*args: str) -> str:
    """Join arguments into a command string, quoting each one for the shell grammar."""
    return ' '.join(shlex.quote(str(arg)) for arg in args)


class CommandPool:
    """
    Runs git commands and caches their output by command text.

    One instance is created by the entry point and shared by everything that
    talks to git. The cache map is guarded by a lock because staging runs
    commands from several worker threads at once.
    """

    DEFAULT_TTL = 1.0
    MAX_ENTRIES = 100
    DEFAULT_TIMEOUT = 30

    def __init__(self, ttl: float = DEFAULT_TTL, max_entries: int = MAX_ENTRIES,
                 timeout: Optional[float] = DEFAULT_TIMEOUT, cwd: Optional[str] = None):
        """
        Initialize the command pool.

        Args:
            ttl: Seconds during which a cached output is reused
            max_entries: Cache size above which the oldest half is pruned
            timeout: Seconds before a git process is abandoned (None waits forever)
            cwd: Working directory for the git processes
        """
        self.ttl = ttl
        self.max_entries = max_entries
        self.timeout = timeout
        self.cwd = cwd
        self._cache: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._executions = 0
        self._command_stats: Dict[str, Dict[str, float]] = defaultdict(lambda: {
            'count': 0, 'total_time': 0.0, 'avg_time': 0.0
        })

    def execute(self, command: str, use_cache: bool = True) -> str:
        """
        Run a git command and return its trimmed standard output.

        Args:
            command: Literal command text, e.g. ``git diff --name-only``
            use_cache: Reuse output younger than the pool TTL; mutating
                commands must pass False

        Returns:
            Trimmed standard output

        Raises:
            GitCommandError: If the command exits non-zero, times out or
                cannot be started
        """
        if use_cache:
            with self._lock:
                entry = self._cache.get(command)
                if entry is not None and entry.age() < self.ttl:
                    self._hits += 1
                    logger.debug(f"Command cache hit: {command}")
                    return entry.value
                self._misses += 1

        output = self._run(command)

        if use_cache:
            with self._lock:
                self._cache[command] = CacheEntry(value=output, timestamp=time.time())
                if len(self._cache) > self.max_entries:
                    self._prune()

        return output

    def invalidate(self, command: Optional[str] = None) -> None:
        """Forget the cached output of one command, or of all commands."""
        with self._lock:
            if command is None:
                self._cache.clear()
            else:
                self._cache.pop(command, None)

    def stats(self) -> Dict[str, Any]:
        """Get pool statistics."""
        with self._lock:
            return {
                'size': len(self._cache),
                'hits': self._hits,
                'misses': self._misses,
                'executions': self._executions,
                'command_stats': {name: dict(values) for name, values in self._command_stats.items()},
            }

    def _run(self, command: str) -> str:
        try:
            argv = shlex.split(command)
        except ValueError as e:
            raise GitCommandError(f"Malformed git command: {command} ({e})", command=command)

        if not argv:
            raise GitCommandError("Empty git command", command=command)

        start_time = time.time()
        try:
            result = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                encoding='utf-8',
                errors='replace',
                timeout=self.timeout,
                cwd=self.cwd
            )
        except FileNotFoundError:
            raise GitCommandError(f"{argv[0]} is not installed or not in PATH", command=command)
        except subprocess.TimeoutExpired:
            raise GitCommandError(f"Git command timed out after {self.timeout}s: {command}",
                                  command=command)
        except OSError as e:
            raise GitCommandError(f"Could not run git command: {command} ({e})", command=command)

        self._record_command_stats(argv[0], time.time() - start_time)

        if result.returncode != 0:
            stderr = (result.stderr or '').strip()
            raise GitCommandError(
                f"Git command failed: {command}\n{stderr}",
                command=command,
                returncode=result.returncode,
                stderr=stderr
            )

        return (result.stdout or '').strip()

    def _record_command_stats(self, name: str, execution_time: float) -> None:
        with self._lock:
            self._executions += 1
            stats = self._command_stats[name]
            stats['count'] += 1
            stats['total_time'] += execution_time
            stats['avg_time'] = stats['total_time'] / stats['count']

    def _prune(self) -> None:
        """Evict the older half of the cache. Caller holds the lock."""
        oldest_first = sorted(self._cache.items(), key=lambda item: item[1].timestamp)
        evicted = oldest_first[:len(oldest_first) // 2]
        for command, _ in evicted:
            del self._cache[command]
        logger.debug(f"Pruned {len(evicted)} cached command outputs")
