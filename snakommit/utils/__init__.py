"""
Utility modules for snakommit.

This module contains logging configuration and progress feedback helpers.
"""

import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

from ..exceptions import FileOperationError
from ..ui import AnimatedSpinner, Colors

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_RETENTION_DAYS = 30

FILE_LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s\nDetails: %(details)s\n'


class LoggingManager:
    """
    Configures the ``snakommit`` logger once per process.

    Records go to a daily file under the configuration directory and, from
    WARNING up (DEBUG in verbose mode), to the console.
    """

    _instance = None
    _initialized = False

    def __new__(cls, log_path: Optional[Path] = None):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, log_path: Optional[Path] = None):
        """
        Set up handlers on first construction; later calls return the same manager.

        Args:
            log_path: Directory for log files, defaults to logs/ in the config directory

        Raises:
            FileOperationError: If the log directory or file cannot be opened
        """
        if self._initialized:
            return

        if log_path is None:
            from ..config import config_dir
            log_path = config_dir() / 'logs'

        self.log_path = Path(log_path)
        self.logger = logging.getLogger('snakommit')
        self.console_handler: Optional[logging.Handler] = None
        self._configure()
        self._initialized = True

    def _configure(self) -> None:
        try:
            self.log_path.mkdir(parents=True, exist_ok=True)
            log_file = self._todays_log_file()
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
        except OSError as e:
            raise FileOperationError(f"Cannot open log file in {self.log_path} ({e})")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(SafeFormatter(FILE_LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))

        self.console_handler = logging.StreamHandler()
        self.console_handler.setLevel(logging.WARNING)
        self.console_handler.setFormatter(ColoredFormatter('%(message)s'))

        logger = self.logger
        logger.setLevel(logging.DEBUG)
        logger.handlers.clear()
        logger.addHandler(self.console_handler)
        logger.addHandler(file_handler)

        self._remove_expired_logs()

        logger.debug(f"Logging to {log_file}", extra={'details': 'System initialization'})

    def _todays_log_file(self) -> Path:
        """Path of today's log, moving an oversized one aside first."""
        today = datetime.now()
        log_file = self.log_path / f"snakommit_{today:%Y%m%d}.log"

        if log_file.exists() and log_file.stat().st_size > LOG_FILE_MAX_BYTES:
            log_file.rename(self.log_path / f"snakommit_{today:%Y%m%d_%H%M%S}.log")

        return log_file

    def _remove_expired_logs(self) -> None:
        cutoff = (datetime.now() - timedelta(days=LOG_RETENTION_DAYS)).timestamp()
        try:
            for log_file in self.log_path.glob('snakommit_*.log'):
                if log_file.stat().st_mtime < cutoff:
                    log_file.unlink()
                    self.logger.debug(f"Removed expired log file: {log_file}")
        except OSError as e:
            self.logger.debug(f"Log cleanup failed: {e}")

    @classmethod
    def get_instance(cls, log_path: Optional[Path] = None) -> 'LoggingManager':
        if cls._instance is None:
            cls._instance = cls(log_path)
        return cls._instance

    def get_logger(self) -> logging.Logger:
        return self.logger

    def set_verbose(self, verbose: bool = True) -> None:
        """Show debug output on the console."""
        if self.console_handler:
            self.console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)

    def log_with_details(self, level: int, message: str, details: Optional[str] = None) -> None:
        self.logger.log(level, message, extra={'details': details or 'No additional details'})


class SafeFormatter(logging.Formatter):
    """Formatter for the file log; fills in ``details`` for records logged without it."""

    def format(self, record):
        if not hasattr(record, 'details'):
            record.details = 'No additional details'
        return super().format(record)


class ColoredFormatter(logging.Formatter):
    """Console formatter that tints each record by level."""

    LEVEL_COLORS = {
        logging.DEBUG: Colors.DIM,
        logging.INFO: Colors.BLUE,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.BOLD + Colors.RED,
    }

    def format(self, record):
        message = super().format(record)
        color = self.LEVEL_COLORS.get(record.levelno)
        return Colors.colorize(message, color) if color else message


class ProgressManager:
    """Spinner-backed progress feedback for long git operations."""

    def __init__(self):
        self.current_operation: Optional[str] = None
        self.spinner = AnimatedSpinner()

    def show_operation(self, operation: str) -> None:
        self.current_operation = operation
        self.spinner.start(operation)

    def complete_operation(self, success_message: Optional[str] = None) -> None:
        """Stop the spinner with a success line."""
        self._finish(f"✓ {success_message or f'{self.current_operation} done'}", Colors.GREEN)

    def fail_operation(self, message: str) -> None:
        self._finish(f"✗ {message}", Colors.RED)

    def show_success(self, message: str) -> None:
        print(Colors.colorize(f"✓ {message}", Colors.GREEN))

    def show_warning(self, message: str) -> None:
        print(Colors.colorize(f"Warning: {message}", Colors.YELLOW))

    def show_error(self, message: str) -> None:
        """Print an error, first clearing any running spinner."""
        self.spinner.stop()
        print(Colors.colorize(f"Error: {message}", Colors.RED))

    def show_info(self, message: str) -> None:
        print(Colors.colorize(message, Colors.BLUE))

    def cleanup(self) -> None:
        self.spinner.stop()
        self.current_operation = None

    def _finish(self, line: str, color: str) -> None:
        self.spinner.stop(Colors.colorize(line, color))
        self.current_operation = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.cleanup()
