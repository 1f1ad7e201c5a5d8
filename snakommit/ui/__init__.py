"""
Terminal UI components for snakommit.

This module provides the spinner, prompts and status displays used by the
interactive commit workflow.
"""

import sys
import itertools
import threading
from typing import Callable, List, Optional, Sequence


class AnimatedSpinner:
    """Braille spinner drawn from a background thread while git is busy."""

    FRAMES = '⠋⠙⠹⠸⠼⠴⠦⠧⠇⠏'
    INTERVAL = 0.1

    def __init__(self):
        self.message = ""
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_spinning(self) -> bool:
        return self._thread is not None

    def start(self, message: str = "Working") -> None:
        """Start spinning next to ``message``, replacing any running spinner."""
        if self.is_spinning:
            self.stop()
        self.message = message
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._spin, daemon=True)
        self._thread.start()

    def stop(self, final_message: str = "") -> None:
        """Stop spinning, erase the spinner line and print ``final_message`` if given."""
        thread, self._thread = self._thread, None
        if thread is not None:
            self._stop_event.set()
            thread.join()
            sys.stdout.write('\r' + ' ' * (len(self.message) + 2) + '\r')
        if final_message:
            print(final_message)
        sys.stdout.flush()

    def _spin(self) -> None:
        for frame in itertools.cycle(self.FRAMES):
            if self._stop_event.is_set():
                break
            sys.stdout.write(f'\r{frame} {self.message}')
            sys.stdout.flush()
            self._stop_event.wait(self.INTERVAL)


class Colors:
    """ANSI escape sequences used for terminal output."""

    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    BLUE = "\033[94m"
    CYAN = "\033[96m"

    BOLD = "\033[1m"
    DIM = "\033[2m"

    RESET = "\033[0m"

    @classmethod
    def colorize(cls, text: str, color: str) -> str:
        return f"{color}{text}{cls.RESET}"


def _print_options(title: str, options: Sequence[str]) -> None:
    print(f"\n{Colors.colorize(title, Colors.BOLD)}")
    width = len(str(len(options)))
    for number, option in enumerate(options, 1):
        print(f"  {str(number).rjust(width)}) {option}")


def _warn(text: str) -> None:
    print(Colors.colorize(text, Colors.YELLOW))


class InteractivePrompt:
    """
    Line-based interactive prompts.

    KeyboardInterrupt is left to propagate so the workflow can abort;
    end of input is treated as accepting the default.
    """

    @staticmethod
    def confirm(message: str, default: bool = False) -> bool:
        """Ask a yes/no question."""
        suffix = "[Y/n]" if default else "[y/N]"
        try:
            answer = input(f"\n{message} {suffix} ").strip().lower()
        except EOFError:
            return default
        return answer in ('y', 'yes') if answer else default

    @staticmethod
    def select_multiple(options: Sequence[str], prompt: str = "Select options") -> List[int]:
        """
        Let the user pick any number of options.

        Numbers may be separated by spaces or commas; ``all`` picks every
        option and an empty answer picks none.

        Returns:
            Zero-based indices of the selected options, in the order given
        """
        _print_options(prompt, options)
        try:
            answer = input("\nNumbers (all = everything, enter = none): ").strip().lower()
        except EOFError:
            return []

        if answer == 'all':
            return list(range(len(options)))

        selected: List[int] = []
        for token in answer.replace(',', ' ').split():
            if not token.isdigit():
                _warn(f"Ignoring '{token}'")
                continue
            index = int(token) - 1
            if 0 <= index < len(options) and index not in selected:
                selected.append(index)
        return selected

    @staticmethod
    def select_one(options: Sequence[str], prompt: str = "Select an option",
                   allow_skip: bool = False) -> Optional[int]:
        """
        Let the user pick exactly one option.

        Returns:
            Zero-based index, or None when skipping is allowed and chosen
        """
        _print_options(prompt, options)
        question = "\nNumber (enter = skip): " if allow_skip else "\nNumber: "

        while True:
            try:
                answer = input(question).strip()
            except EOFError:
                return None if allow_skip else 0

            if not answer and allow_skip:
                return None
            if answer.isdigit() and 0 < int(answer) <= len(options):
                return int(answer) - 1
            _warn(f"Enter a number between 1 and {len(options)}")

    @staticmethod
    def ask(message: str, required: bool = False,
            validator: Optional[Callable[[str], str]] = None) -> str:
        """
        Ask for a line of text.

        Args:
            message: Question to display
            required: Re-ask until a non-empty answer is given
            validator: Callable returning the cleaned value or raising ValueError

        Returns:
            The answer, stripped
        """
        while True:
            try:
                answer = input(f"{message} " if message else "").strip()
            except EOFError:
                answer = ''

            if not answer:
                if required:
                    _warn("A value is required")
                    continue
                return answer

            if validator is None:
                return answer
            try:
                return validator(answer)
            except ValueError as e:
                _warn(str(e))


class StatusDisplay:
    """Status displays for the commit workflow."""

    @staticmethod
    def show_header(title: str) -> None:
        rule = Colors.colorize('=' * (len(title) + 4), Colors.CYAN)
        print(f"\n{rule}\n  {Colors.colorize(title, Colors.BOLD)}\n{rule}")

    @staticmethod
    def show_files_status(staged: List[str], unstaged: List[str], untracked: List[str]) -> None:
        """Print how many files are in each state."""
        print("\nRepository status:")
        for count, label in ((len(staged), "staged for commit"),
                             (len(unstaged), "modified, not staged"),
                             (len(untracked), "untracked")):
            print(f"  {count:>4}  {label}")

    @staticmethod
    def show_file_list(title: str, files: List[str]) -> None:
        print(f"\n{title}:")
        print('\n'.join(f"  - {path}" for path in files))

    @staticmethod
    def show_commit_message(message: str) -> None:
        """Print the commit message between two rules."""
        rule = Colors.colorize('-' * 50, Colors.DIM)
        print(f"\n{Colors.colorize('Commit message:', Colors.BOLD)}\n{rule}\n{message}\n{rule}")
