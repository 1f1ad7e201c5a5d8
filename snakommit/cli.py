"""
CLI module for snakommit.

This module provides the command-line interface and the interactive commit
workflow: pick files to stage, describe the change, preview and commit.
"""

import argparse
import logging
import sys
import textwrap
from typing import Any, Dict, List, Optional

from . import __version__
from .config import ConfigurationLoader, CommitConfig, debug_enabled, load_environment
from .exceptions import (
    ConfigurationError, FileOperationError, GitOperationError,
    PromptError, SnakommitError, ValidationError
)
from .git import GitOperations
from .git.command_pool import CommandPool
from .performance import BatchProcessor, Monitor
from .templates import CommitMessage, Templates, format_commit_message, validate_subject
from .ui import Colors, InteractivePrompt, StatusDisplay
from .utils import LoggingManager, ProgressManager

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog='snakommit',
        description='Interactive conventional commit CLI'
    )
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Show verbose output')
    parser.add_argument('--stats', action='store_true',
                        help='Print timing and cache statistics after the commit flow')
    parser.add_argument('--version', action='version', version=f'snakommit {__version__}')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    subparsers.add_parser('commit', help='Create a commit using the interactive prompt (default)')
    subparsers.add_parser('version', help='Show version information')

    config_parser = subparsers.add_parser('config', help='Configuration management')
    config_subparsers = config_parser.add_subparsers(dest='config_action')
    config_subparsers.add_parser('show', help='Show current configuration')
    config_subparsers.add_parser('reset', help='Restore the default configuration')

    emoji_parser = subparsers.add_parser('emoji', help='Emoji decoration of commit types')
    emoji_subparsers = emoji_parser.add_subparsers(dest='emoji_action')
    emoji_subparsers.add_parser('on', help='Prefix commit types with an emoji')
    emoji_subparsers.add_parser('off', help='Use plain commit types')
    emoji_subparsers.add_parser('list', help='List emoji mappings')

    return parser.parse_args(argv)


class CommitWorkflow:
    """Main workflow orchestrator for the interactive commit."""

    BANNER = "SNAKOMMIT - A commit manager"
    STAGE_BATCH_SIZE = 20
    STAGE_PARALLEL_THRESHOLD = 5

    def __init__(self, git_ops: GitOperations, config: CommitConfig,
                 templates: Optional[Templates] = None, monitor: Optional[Monitor] = None,
                 batch_processor: Optional[BatchProcessor] = None,
                 progress: Optional[ProgressManager] = None, prompt=InteractivePrompt):
        """
        Initialize workflow.

        Args:
            git_ops: Git wrapper shared for the whole session
            config: Commit convention settings
            templates: Emoji settings for commit types
            monitor: Timing collector
            batch_processor: Processor used for staging and unstaging
            progress: Progress feedback
            prompt: Prompt implementation (InteractivePrompt interface)
        """
        self.git_ops = git_ops
        self.config = config
        self.templates = templates
        self.monitor = monitor or Monitor()
        self.batch_processor = batch_processor or BatchProcessor(self.STAGE_BATCH_SIZE)
        self.progress = progress or ProgressManager()
        self.prompt = prompt

    def run(self) -> Dict[str, Any]:
        """
        Execute the commit workflow until a commit is made or the user gives up.

        Returns:
            ``{'success': True, 'message': ...}`` or ``{'error': ...}``
        """
        try:
            if not self.git_ops.is_repository():
                return {'error': 'Not in a Git repository'}

            while True:
                result = self._run_once()
                if result is not None:
                    return result

        except PromptError as e:
            self.progress.show_error(str(e))
            return {'error': str(e)}
        except KeyboardInterrupt:
            self.progress.cleanup()
            print("\nCommit process interrupted by user.")
            return {'error': 'Commit aborted by user'}
        except GitOperationError as e:
            self.progress.show_error(str(e))
            return {'error': f"Git error: {e}"}
        finally:
            self.progress.cleanup()

    def _run_once(self) -> Optional[Dict[str, Any]]:
        """One pass of the flow. Returns None to start over."""
        StatusDisplay.show_header(self.BANNER)

        with self.monitor.measure('repository_status'):
            status = self.git_ops.status()

        staged, unstaged, untracked = status['staged'], status['unstaged'], status['untracked']
        if not (staged or unstaged or untracked):
            return {'error': 'No changes detected in the repository'}

        StatusDisplay.show_files_status(staged, unstaged, untracked)
        self._show_debug_report("Performance report")

        saved_selections = self.git_ops.get_saved_selections()
        if saved_selections:
            print("\nFound selections from a previous session.")
            if self.prompt.confirm("Would you like to use your previous file selections?", True):
                self.stage_files(saved_selections)
            else:
                self.git_ops.clear_saved_selections()
                self.select_files()
        else:
            self.select_files()

        if not self.git_ops.staged_files():
            self.progress.show_error("No changes staged for commit. Please select files to commit.")
            if self.prompt.confirm("Do you want to select files again?", True):
                return None
            return {'error': 'No changes staged for commit. Please select files to commit.'}

        try:
            with self.monitor.measure('get_commit_info'):
                commit_info = self.collect_commit_info()
        except KeyboardInterrupt:
            return self._handle_commit_info_interrupt()

        message = format_commit_message(commit_info, self.templates)

        StatusDisplay.show_file_list("Files to be committed", self.git_ops.staged_files())
        StatusDisplay.show_commit_message(message)

        if not self.prompt.confirm("Do you want to proceed with this commit?", True):
            if self.prompt.confirm("Do you want to start over?", True):
                return None
            return {'error': 'Commit aborted by user'}

        self.progress.show_operation("Committing changes...")
        with self.monitor.measure('git_commit'):
            self.git_ops.commit(message)
        self.progress.complete_operation("Changes committed successfully!")

        self._show_debug_report("Final performance report")
        return {'success': True, 'message': message}

    def select_files(self) -> None:
        """
        Let the user choose unstaged and untracked files to stage.

        Raises:
            PromptError: If the selection is interrupted and the user gives up
        """
        try:
            self._select_files()
        except KeyboardInterrupt:
            self.progress.cleanup()
            print("\nFile selection interrupted.")
            try:
                carry_on = self.prompt.confirm("Do you want to continue with the commit process?", False)
            except KeyboardInterrupt:
                carry_on = False
            if not carry_on:
                print("Commit process aborted by user.")
                raise PromptError("Commit aborted by user")

    def _select_files(self) -> None:
        with self.monitor.measure('get_files_for_selection'):
            status = self.git_ops.status()

        staged, unstaged, untracked = status['staged'], status['unstaged'], status['untracked']
        stageable = unstaged + untracked

        if not stageable and not staged:
            print("No changes detected in the repository.")
            return

        if not stageable:
            StatusDisplay.show_file_list("Currently staged files", staged)
            if self.prompt.confirm("Do you want to unstage any files?", False):
                self.unstage_files(staged)
            return

        if staged:
            StatusDisplay.show_file_list("Currently staged files", staged)

        options = ["[ ALL FILES ]"]
        options.extend(f"Modified: {file}" for file in unstaged)
        options.extend(f"Untracked: {file}" for file in untracked)

        indices = self.prompt.select_multiple(options, "Select files to stage for commit")
        if not indices:
            print("No files selected for staging.")
            if staged:
                print(f"You already have {len(staged)} file(s) staged.")
                if self.prompt.confirm("Do you want to select files again?", True):
                    self.select_files()
            return

        if 0 in indices:
            selected = stageable
            print(f"\nSelected files to stage:\n- All files ({len(selected)})")
        else:
            selected = [stageable[index - 1] for index in indices]
            StatusDisplay.show_file_list("Selected files to stage", selected)

        if not self.prompt.confirm("Proceed with staging these files?", True):
            print("Staging canceled by user.")
            return

        self.stage_files(selected)

        newly_staged = self.git_ops.staged_files()
        if newly_staged and self.prompt.confirm("Do you want to unstage any files?", False):
            self.unstage_files(newly_staged)

    def stage_files(self, selected: List[str]) -> None:
        """
        Stage the selected files and remember the selection.

        Raises:
            PromptError: If staging fails or nothing ends up staged
        """
        self.git_ops.save_selections(selected)

        self.progress.show_operation("Adding files...")
        try:
            with self.monitor.measure('batch_stage_files'):
                self.git_ops.stage_files(selected, self.batch_processor,
                                         threshold=self.STAGE_PARALLEL_THRESHOLD)
            newly_staged = self.git_ops.staged_files()
        except GitOperationError as e:
            self.progress.fail_operation("Failed to stage files!")
            raise PromptError(f"Failed to stage files: {e}")

        if not newly_staged:
            self.progress.fail_operation("Failed to stage files!")
            print("No files appear to be staged after add operation. "
                  "This might be a Git or permission issue.")
            raise PromptError("Failed to stage files")

        self.progress.complete_operation(f"Files added to staging area ({len(newly_staged)} file(s))")

    def unstage_files(self, staged: List[str]) -> None:
        """
        Let the user pick staged files to unstage.

        Raises:
            PromptError: If unstaging fails
        """
        if not staged:
            return

        indices = self.prompt.select_multiple(staged, "Select files to unstage")
        to_unstage = [staged[index] for index in indices]
        if not to_unstage:
            return

        remaining = self._unstage(to_unstage)

        if not remaining:
            print(Colors.colorize("Note: All files have been unstaged.", Colors.YELLOW))
            if ((self.git_ops.unstaged_files() or self.git_ops.untracked_files())
                    and self.prompt.confirm("Do you want to select new files now?", True)):
                self.select_files()

    def _unstage(self, files: List[str]) -> List[str]:
        """Unstage ``files`` and return what is still staged afterwards."""
        self.progress.show_operation("Unstaging files...")
        try:
            with self.monitor.measure('batch_unstage_files'):
                self.git_ops.unstage_files(files, self.batch_processor)
            remaining = self.git_ops.staged_files()
        except GitOperationError as e:
            self.progress.fail_operation("Failed to unstage files!")
            raise PromptError(f"Failed to unstage files: {e}")
        self.progress.complete_operation("Files unstaged")
        return remaining

    def collect_commit_info(self) -> CommitMessage:
        """Ask for type, scope, subject, body, breaking change and issue references."""
        print("\nCommit Details:")

        commit_type = self._select_type()

        if self.config.scopes:
            index = self.prompt.select_one(
                self.config.scopes,
                "Select the scope of this change (optional, press Enter to skip)",
                allow_skip=True
            )
            scope = self.config.scopes[index] if index is not None else None
        else:
            scope = self.prompt.ask("Enter the scope of this change (optional, press Enter to skip):")

        subject = self.prompt.ask("Enter a short description:", required=True,
                                  validator=self._validate_subject)

        print("Enter a longer description (optional, press Enter to skip):")
        print("Type your message and press Enter when done. Leave empty to skip.")
        body_lines = []
        while True:
            line = self.prompt.ask("")
            if not line:
                break
            body_lines.append(line)

        breaking = None
        if self.prompt.confirm("Is this a breaking change?", False):
            breaking = self.prompt.ask("Enter breaking change description:", required=True)

        issues = None
        if self.prompt.confirm("Does this commit close any issues?", False):
            issues = self.prompt.ask('Enter issue references (e.g., "fix #123, close #456"):',
                                     required=True)

        return CommitMessage(
            type=commit_type,
            subject=subject,
            scope=scope or None,
            body=self._wrap_body(body_lines),
            breaking=breaking,
            issues=issues
        )

    def _select_type(self) -> str:
        choices = []
        for commit_type in self.config.types:
            name = commit_type['name']
            description = commit_type.get('description', '')
            emoji = self.templates.get_emoji_for_type(name) if self.templates and self.templates.emoji_enabled() else None
            label = f"{name}: {description}" if description else name
            choices.append(f"{emoji} {label}" if emoji else label)

        index = self.prompt.select_one(choices, "Choose a type")
        return self.config.types[index or 0]['name']

    def _validate_subject(self, subject: str) -> str:
        try:
            return validate_subject(subject, self.config.max_subject_length)
        except ValidationError as e:
            raise ValueError(str(e))

    def _wrap_body(self, lines: List[str]) -> List[str]:
        wrapped = []
        for line in lines:
            wrapped.extend(textwrap.wrap(line, self.config.max_body_line_length) or [''])
        return wrapped

    def _handle_commit_info_interrupt(self) -> Optional[Dict[str, Any]]:
        """Decide what happens to the staged files after an interrupt. Returns None to start over."""
        print(Colors.colorize("\nInterruption: Commit process interrupted.", Colors.YELLOW))
        staged = self.git_ops.staged_files()
        if not staged:
            if self.prompt.confirm("Do you want to start over?", True):
                return None
            return {'error': 'Commit aborted'}

        print(f"\nThere are still {len(staged)} file(s) staged.")
        if self.prompt.confirm("Do you want to continue with these staged files?", True):
            return None
        if self.prompt.confirm("Do you want to unstage all files?", False):
            self._unstage(staged)
            print("All files have been unstaged.")
            return None
        return {'error': 'Commit aborted'}

    def _show_debug_report(self, title: str) -> None:
        if not debug_enabled():
            return
        print(f"\n{title}:")
        for line in self.monitor.report():
            print(f"  {line}")


def handle_config_commands(args: argparse.Namespace) -> None:
    """Handle configuration-related commands."""
    progress = ProgressManager()
    loader = ConfigurationLoader()

    if args.config_action == 'reset':
        loader.reset()
        progress.show_success(f"Configuration reset to defaults ({loader.config_path})")
        return

    config = loader.load_config()
    print(f"\nConfiguration ({loader.config_path}):")
    print("=" * 40)
    print("Commit types:")
    for commit_type in config.types:
        print(f"  {commit_type['name']}: {commit_type.get('description', '')}")
    print(f"Scopes: {', '.join(config.scopes) if config.scopes else '(free text)'}")
    print(f"max_subject_length: {config.max_subject_length}")
    print(f"max_body_line_length: {config.max_body_line_length}")
    print("=" * 40)


def handle_emoji_commands(args: argparse.Namespace) -> None:
    """Handle emoji-related commands."""
    templates = Templates()
    progress = ProgressManager()

    if args.emoji_action == 'on':
        templates.toggle_emoji(True)
        progress.show_success("Emoji enabled for commit types")
    elif args.emoji_action == 'off':
        templates.toggle_emoji(False)
        progress.show_success("Emoji disabled for commit types")
    else:
        state = "enabled" if templates.emoji_enabled() else "disabled"
        print(f"\nEmoji are {state}:")
        for mapping in templates.list_emoji_mappings():
            print(f"  {mapping['emoji']}  {mapping['type']}")


def _print_stats(workflow: CommitWorkflow, git_ops: GitOperations) -> None:
    print("\nTimings:")
    for line in workflow.monitor.report():
        print(f"  {line}")
    stats = git_ops.cache_stats()
    status = stats['status_cache']
    pool = stats['command_pool']
    print(f"Status cache: {status['hits']} hits, {status['misses']} misses "
          f"({status['hit_rate']:.1f}% hit rate)")
    print(f"Command pool: {pool['executions']} git runs, {pool['hits']} reused outputs")
    batch = workflow.batch_processor.stats()
    print(f"Batches: {batch['batch_count']} ({batch['total_processed']} files)")


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the snakommit CLI."""
    args = parse_args(argv)
    load_environment()

    try:
        logging_manager = LoggingManager()
        logging_manager.set_verbose(args.verbose or debug_enabled())
    except FileOperationError as e:
        logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
        logger.warning(f"File logging disabled: {e}")

    try:
        if args.command == 'version':
            print(f"snakommit version {__version__}")
            return
        if args.command == 'config':
            handle_config_commands(args)
            return
        if args.command == 'emoji':
            handle_emoji_commands(args)
            return

        config = ConfigurationLoader().load_config()
        git_ops = GitOperations(CommandPool())
        workflow = CommitWorkflow(git_ops, config, templates=Templates())
        result = workflow.run()

        if args.stats:
            _print_stats(workflow, git_ops)

        if result.get('error'):
            print(Colors.colorize(f"Error: {result['error']}", Colors.RED))
            sys.exit(1)

        print(f"\nSuccessfully committed: {result['message'].splitlines()[0]}")

    except ConfigurationError as e:
        print(f"Configuration error: {e}")
        sys.exit(1)
    except SnakommitError as e:
        print(f"Error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        sys.exit(1)
    except Exception as e:
        logger.debug("Unexpected error", exc_info=True)
        print(f"Unexpected error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
