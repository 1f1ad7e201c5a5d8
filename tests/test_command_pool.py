"""
Tests for the shared git command pool.
"""

import subprocess
import unittest
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import patch, MagicMock

from snakommit.exceptions import GitCommandError
from snakommit.git.command_pool import CommandPool, format_command


def completed(stdout='', returncode=0, stderr=''):
    return MagicMock(stdout=stdout, returncode=returncode, stderr=stderr)


class TestFormatCommand(unittest.TestCase):
    """Test cases for command text construction."""

    def test_plain_arguments(self):
        self.assertEqual(format_command('git', 'add', '--', 'file.py'), 'git add -- file.py')

    def test_arguments_with_spaces_and_quotes(self):
        """Test that unusual file names survive a round trip through shlex."""
        command = format_command('git', 'add', '--', "my file's.py")
        self.assertTrue(command.startswith('git add -- '))
        self.assertNotEqual(command, "git add -- my file's.py")

    def test_multiline_commit_message(self):
        command = format_command('git', 'commit', '-m', "feat: add\n\nbody")
        self.assertIn("'feat: add\n\nbody'", command)


class TestCommandPool(unittest.TestCase):
    """Test cases for CommandPool."""

    @patch('snakommit.git.command_pool.subprocess.run')
    def test_execute_returns_trimmed_output(self, mock_run):
        mock_run.return_value = completed(stdout='  file1.py\nfile2.py\n\n')
        pool = CommandPool()

        self.assertEqual(pool.execute('git diff --name-only'), 'file1.py\nfile2.py')

        args, kwargs = mock_run.call_args
        self.assertEqual(args[0], ['git', 'diff', '--name-only'])
        self.assertTrue(kwargs['capture_output'])
        self.assertTrue(kwargs['text'])
        self.assertEqual(kwargs['timeout'], CommandPool.DEFAULT_TIMEOUT)
        self.assertNotIn('shell', kwargs)

    @patch('snakommit.git.command_pool.subprocess.run')
    def test_output_reused_within_ttl(self, mock_run):
        """Test that identical commands within the TTL run git once."""
        mock_run.return_value = completed(stdout='a.py')
        pool = CommandPool(ttl=60)

        pool.execute('git diff --name-only')
        mock_run.return_value = completed(stdout='b.py')
        self.assertEqual(pool.execute('git diff --name-only'), 'a.py')

        self.assertEqual(mock_run.call_count, 1)
        stats = pool.stats()
        self.assertEqual(stats['hits'], 1)
        self.assertEqual(stats['misses'], 1)
        self.assertEqual(stats['executions'], 1)

    @patch('snakommit.git.command_pool.subprocess.run')
    def test_output_refreshed_after_ttl(self, mock_run):
        mock_run.return_value = completed(stdout='a.py')
        pool = CommandPool(ttl=0)

        pool.execute('git diff --name-only')
        pool.execute('git diff --name-only')

        self.assertEqual(mock_run.call_count, 2)

    @patch('snakommit.git.command_pool.subprocess.run')
    def test_uncached_execution(self, mock_run):
        """Test that mutating commands bypass and do not populate the cache."""
        mock_run.return_value = completed()
        pool = CommandPool(ttl=60)

        pool.execute('git add -- a.py', use_cache=False)
        pool.execute('git add -- a.py', use_cache=False)

        self.assertEqual(mock_run.call_count, 2)
        self.assertEqual(pool.stats()['size'], 0)

    @patch('snakommit.git.command_pool.subprocess.run')
    def test_non_zero_exit_raises(self, mock_run):
        mock_run.return_value = completed(returncode=128, stderr='fatal: not a git repository\n')
        pool = CommandPool()

        with self.assertRaises(GitCommandError) as context:
            pool.execute('git diff --name-only')

        error = context.exception
        self.assertEqual(error.returncode, 128)
        self.assertEqual(error.stderr, 'fatal: not a git repository')
        self.assertEqual(error.command, 'git diff --name-only')
        self.assertIn('Git command failed: git diff --name-only', str(error))
        self.assertEqual(pool.stats()['size'], 0)

    @patch('snakommit.git.command_pool.subprocess.run')
    def test_missing_git_executable(self, mock_run):
        mock_run.side_effect = FileNotFoundError()
        pool = CommandPool()

        with self.assertRaises(GitCommandError) as context:
            pool.execute('git status')
        self.assertIn('not installed', str(context.exception))

    @patch('snakommit.git.command_pool.subprocess.run')
    def test_timeout(self, mock_run):
        mock_run.side_effect = subprocess.TimeoutExpired(cmd='git status', timeout=30)
        pool = CommandPool()

        with self.assertRaises(GitCommandError) as context:
            pool.execute('git status')
        self.assertIn('timed out', str(context.exception))

    @patch('snakommit.git.command_pool.subprocess.run')
    def test_malformed_command(self, mock_run):
        pool = CommandPool()

        with self.assertRaises(GitCommandError):
            pool.execute("git commit -m 'unterminated")
        with self.assertRaises(GitCommandError):
            pool.execute('')
        mock_run.assert_not_called()

    @patch('snakommit.git.command_pool.subprocess.run')
    def test_prune_drops_oldest_half(self, mock_run):
        mock_run.return_value = completed(stdout='out')
        pool = CommandPool(ttl=60, max_entries=4)

        for i in range(5):
            pool.execute(f'git log -{i}')

        self.assertEqual(pool.stats()['size'], 3)

        mock_run.reset_mock()
        pool.execute('git log -0')
        self.assertEqual(mock_run.call_count, 1)
        pool.execute('git log -4')
        self.assertEqual(mock_run.call_count, 1)

    @patch('snakommit.git.command_pool.subprocess.run')
    def test_invalidate(self, mock_run):
        mock_run.return_value = completed(stdout='out')
        pool = CommandPool(ttl=60)
        pool.execute('git diff --name-only')
        pool.execute('git diff --name-only --cached')

        pool.invalidate('git diff --name-only')
        pool.execute('git diff --name-only')
        pool.execute('git diff --name-only --cached')
        self.assertEqual(mock_run.call_count, 3)

        pool.invalidate()
        self.assertEqual(pool.stats()['size'], 0)
        pool.invalidate('never-cached')

    @patch('snakommit.git.command_pool.subprocess.run')
    def test_command_stats(self, mock_run):
        mock_run.return_value = completed()
        pool = CommandPool()

        pool.execute('git status', use_cache=False)
        pool.execute('git status', use_cache=False)

        command_stats = pool.stats()['command_stats']
        self.assertEqual(command_stats['git']['count'], 2)
        self.assertGreaterEqual(command_stats['git']['avg_time'], 0.0)

    @patch('snakommit.git.command_pool.subprocess.run')
    def test_concurrent_execution(self, mock_run):
        """Test that the pool can be used from many threads at once."""
        mock_run.side_effect = lambda argv, **kwargs: completed(stdout=argv[-1])
        pool = CommandPool(ttl=60)

        commands = [format_command('git', 'add', '--', f'file_{i}.py') for i in range(50)]
        with ThreadPoolExecutor(max_workers=8) as executor:
            results = list(executor.map(lambda c: pool.execute(c, use_cache=False), commands))

        self.assertEqual(results, [f'file_{i}.py' for i in range(50)])
        self.assertEqual(pool.stats()['executions'], 50)


if __name__ == '__main__':
    unittest.main()
