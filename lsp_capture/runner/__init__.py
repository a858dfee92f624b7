"""Stream relays, log files, and the child process supervisor."""

from .errors import (
    BaseDirectoryError,
    CaptureStartupError,
    ChildStartError,
    LogFileError,
    PipeSetupError,
)
from .filtering import JDWP_BANNER, FilteringReader, drop_chunks_containing, identity
from .log_files import CaptureLayout, CaptureLogs, resolve_base_dir
from .relay import Relay
from .supervisor import CaptureSupervisor, ExitOutcome, SupervisorState, exit_code_for
from .tee import TeeWriter

__all__ = [
    "BaseDirectoryError",
    "CaptureLayout",
    "CaptureLogs",
    "CaptureStartupError",
    "CaptureSupervisor",
    "ChildStartError",
    "ExitOutcome",
    "FilteringReader",
    "JDWP_BANNER",
    "LogFileError",
    "PipeSetupError",
    "Relay",
    "SupervisorState",
    "TeeWriter",
    "drop_chunks_containing",
    "exit_code_for",
    "identity",
    "resolve_base_dir",
]
