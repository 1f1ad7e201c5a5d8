"""
Tests for commit message templates and emoji settings.
"""

import shutil
import tempfile
import unittest
from pathlib import Path

import yaml

from snakommit.exceptions import ValidationError
from snakommit.templates import (
    CommitMessage, DEFAULT_EMOJI_MAP, Templates, format_commit_message, validate_subject
)


class TestFormatCommitMessage(unittest.TestCase):
    """Test cases for conventional commit formatting."""

    def test_header_only(self):
        message = CommitMessage(type='feat', subject='add login')
        self.assertEqual(format_commit_message(message), 'feat: add login')

    def test_header_with_scope(self):
        message = CommitMessage(type='fix', subject='handle timeouts', scope='git')
        self.assertEqual(format_commit_message(message), 'fix(git): handle timeouts')

    def test_full_message(self):
        message = CommitMessage(
            type='feat',
            scope='cli',
            subject='resume previous selection',
            body=['Offer the files selected in the last run.', 'Selections expire after 30 minutes.'],
            breaking='selections.json replaces the old state file',
            issues='Closes #12',
        )

        self.assertEqual(format_commit_message(message), (
            "feat(cli): resume previous selection\n"
            "\n"
            "Offer the files selected in the last run.\n"
            "Selections expire after 30 minutes.\n"
            "\n"
            "BREAKING CHANGE: selections.json replaces the old state file\n"
            "\n"
            "Closes #12"
        ))

    def test_validate_subject(self):
        self.assertEqual(validate_subject('  add login  ', 100), 'add login')
        with self.assertRaises(ValidationError):
            validate_subject('   ', 100)
        with self.assertRaises(ValidationError):
            validate_subject('x' * 11, 10)


class TestTemplates(unittest.TestCase):
    """Test cases for emoji decoration."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.config_path = Path(self.temp_dir) / 'emoji_config.yml'
        self.templates = Templates(self.config_path)

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_defaults(self):
        self.assertFalse(self.templates.emoji_enabled())
        self.assertTrue(self.config_path.exists())
        self.assertEqual(self.templates.format_commit_type('feat'), 'feat')
        self.assertEqual(self.templates.get_emoji_for_type('fix'), DEFAULT_EMOJI_MAP['fix'])
        self.assertEqual(len(self.templates.list_emoji_mappings()), len(DEFAULT_EMOJI_MAP))

    def test_toggle_emoji(self):
        self.assertTrue(self.templates.toggle_emoji())
        self.assertEqual(self.templates.format_commit_type('feat'), f"{DEFAULT_EMOJI_MAP['feat']} feat")
        self.assertEqual(self.templates.format_commit_type('unknown'), 'unknown')

        self.assertFalse(self.templates.toggle_emoji(False))
        self.assertEqual(self.templates.format_commit_type('feat'), 'feat')

    def test_setting_persists(self):
        self.templates.toggle_emoji(True)
        self.assertTrue(Templates(self.config_path).emoji_enabled())

    def test_emoji_in_formatted_message(self):
        self.templates.toggle_emoji(True)
        message = CommitMessage(type='docs', subject='update readme')

        self.assertEqual(format_commit_message(message, self.templates),
                         f"{DEFAULT_EMOJI_MAP['docs']} docs: update readme")

    def test_update_and_reset_mapping(self):
        self.templates.toggle_emoji(True)
        self.templates.format_commit_type('feat')

        self.templates.update_emoji_mapping('feat', '🚀')
        self.assertEqual(self.templates.format_commit_type('feat'), '🚀 feat')
        self.assertEqual(Templates(self.config_path).get_emoji_for_type('feat'), '🚀')

        with self.assertRaises(ValidationError):
            self.templates.update_emoji_mapping('nonsense', '❓')

        self.templates.reset_emoji_mappings()
        self.assertEqual(self.templates.get_emoji_for_type('feat'), DEFAULT_EMOJI_MAP['feat'])

    def test_unreadable_config_falls_back(self):
        self.config_path.write_text('emoji_map: [broken', encoding='utf-8')

        with self.assertLogs('snakommit.templates', level='WARNING'):
            templates = Templates(self.config_path)

        self.assertFalse(templates.emoji_enabled())
        self.assertEqual(templates.get_emoji_for_type('feat'), DEFAULT_EMOJI_MAP['feat'])

    def test_partial_config(self):
        self.config_path.write_text(yaml.safe_dump({'emoji_enabled': True}), encoding='utf-8')

        templates = Templates(self.config_path)

        self.assertTrue(templates.emoji_enabled())
        self.assertEqual(templates.get_emoji_for_type('feat'), DEFAULT_EMOJI_MAP['feat'])


if __name__ == '__main__':
    unittest.main()
