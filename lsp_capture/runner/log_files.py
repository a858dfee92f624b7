"""Capture log layout and the logging context shared by relays."""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Iterator
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from lsp_capture.runner.errors import BaseDirectoryError, LogFileError

__all__ = [
    "CAPTURE_LOGGER_NAME",
    "CaptureLayout",
    "CaptureLogs",
    "resolve_base_dir",
]

CAPTURE_LOGGER_NAME = "lsp_capture.capture"
_LOG_FORMAT = "%(asctime)s %(message)s"
_DATE_FORMAT = "%Y/%m/%d %H:%M:%S"

_logger = logging.getLogger(__name__)

# Records emitted after a session closes its logs are dropped, never echoed to stderr.
_capture_logger = logging.getLogger(CAPTURE_LOGGER_NAME)
_capture_logger.addHandler(logging.NullHandler())
_capture_logger.propagate = False


def resolve_base_dir(entry_point: str | None = None) -> Path:
    """Return the directory the capture logs should be written to.

    That is the directory holding the running entry point, or the current
    working directory when the entry point cannot be located.
    """

    candidate = sys.argv[0] if entry_point is None else entry_point
    if candidate:
        path = Path(candidate)
        if path.is_file():
            return path.resolve().parent
    _logger.debug("entry point %r not found; using working directory", candidate)
    try:
        return Path(os.getcwd())
    except OSError as exc:
        raise BaseDirectoryError(f"Getwd fail: {exc}") from exc


@dataclass(slots=True, frozen=True)
class CaptureLayout:
    """Locations of the four capture logs."""

    capture_log: Path
    client_input: Path
    server_output: Path
    server_error: Path

    @classmethod
    def from_base_dir(cls, base: Path) -> CaptureLayout:
        base = Path(base)
        return cls(
            capture_log=base / "lsp_capture.log",
            client_input=base / "client_input.log",
            server_output=base / "server_output.log",
            server_error=base / "server_err.log",
        )


@dataclass(slots=True)
class CaptureLogs:
    """Open capture logs for one session.

    ``logger`` writes timestamped diagnostics to the capture log; the three
    binary handles receive the raw bytes of each relayed stream.
    """

    layout: CaptureLayout
    logger: logging.Logger
    client_input: BinaryIO
    server_output: BinaryIO
    server_error: BinaryIO

    @classmethod
    @contextmanager
    def open(cls, layout: CaptureLayout) -> Iterator[CaptureLogs]:
        """Truncate-or-create all four logs, closing each on every exit path."""

        with ExitStack() as stack:
            try:
                handler = logging.FileHandler(layout.capture_log, mode="w", encoding="utf-8")
            except OSError as exc:
                raise LogFileError(f"open {layout.capture_log.name} fail: {exc}") from exc
            handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt=_DATE_FORMAT))
            logger = _capture_logger
            logger.setLevel(logging.INFO)
            logger.addHandler(handler)
            stack.callback(_detach_handler, logger, handler)

            def _open(path: Path) -> BinaryIO:
                try:
                    return stack.enter_context(path.open("wb"))
                except OSError as exc:
                    logger.critical("can not open %s: %s", path.name, exc)
                    raise LogFileError(f"can not open {path.name}: {exc}") from exc

            yield cls(
                layout=layout,
                logger=logger,
                client_input=_open(layout.client_input),
                server_output=_open(layout.server_output),
                server_error=_open(layout.server_error),
            )


def _detach_handler(logger: logging.Logger, handler: logging.Handler) -> None:
    logger.removeHandler(handler)
    handler.close()
