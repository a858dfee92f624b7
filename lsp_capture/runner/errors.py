"""Exceptions raised while setting up a capture session."""

from __future__ import annotations

__all__ = [
    "BaseDirectoryError",
    "CaptureStartupError",
    "ChildStartError",
    "LogFileError",
    "PipeSetupError",
]


class CaptureStartupError(RuntimeError):
    """Raised when the capture session cannot be set up."""


class BaseDirectoryError(CaptureStartupError):
    """Raised when neither the entry point nor the working directory is usable."""


class LogFileError(CaptureStartupError):
    """Raised when one of the capture log files cannot be opened."""


class PipeSetupError(CaptureStartupError):
    """Raised when the child's standard stream pipes cannot be created."""


class ChildStartError(RuntimeError):
    """Raised when the child process cannot be spawned."""
