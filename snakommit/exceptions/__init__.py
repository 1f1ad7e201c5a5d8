"""
Snakommit exceptions module.

This module defines custom exceptions for the snakommit tool.
"""

from typing import Optional


class SnakommitError(Exception):
    """Base exception for all snakommit related errors."""
    pass


class ConfigurationError(SnakommitError):
    """Raised when there are configuration-related issues."""
    pass


class GitOperationError(SnakommitError):
    """Raised when git operations fail."""
    pass


class GitCommandError(GitOperationError):
    """Raised when the git executable exits non-zero or cannot be invoked."""

    def __init__(self, message: str, command: Optional[str] = None,
                 returncode: Optional[int] = None, stderr: str = ""):
        """
        Initialize GitCommandError with the failing command details.

        Args:
            message: Error message
            command: The literal command text that failed
            returncode: Exit status, None when the process never ran
            stderr: Captured error output
        """
        super().__init__(message)
        self.command = command
        self.returncode = returncode
        self.stderr = stderr


class PersistenceError(SnakommitError):
    """
    Describes a failed read/write of on-disk convenience state.

    Instances are reported through logging and never raised to callers.
    """

    def __init__(self, action: str, path: str, cause: Exception):
        super().__init__(f"Failed to {action} {path}: {cause}")
        self.action = action
        self.path = path
        self.cause = cause


class ValidationError(SnakommitError):
    """Raised when input validation fails."""
    pass


class FileOperationError(SnakommitError):
    """Raised when file operations fail."""
    pass


class PromptError(SnakommitError):
    """Raised when the interactive workflow cannot continue."""
    pass
