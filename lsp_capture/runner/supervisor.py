"""Process supervisor that relays and records a child's standard streams."""

from __future__ import annotations

import enum
import logging
import os
import shlex
import shutil
import signal
import subprocess
import sys
from collections.abc import Sequence
from dataclasses import dataclass
from typing import BinaryIO, TextIO

from lsp_capture.runner.errors import ChildStartError, PipeSetupError
from lsp_capture.runner.filtering import JDWP_BANNER, ChunkFilter, drop_chunks_containing
from lsp_capture.runner.log_files import CaptureLayout, CaptureLogs
from lsp_capture.runner.relay import Relay
from lsp_capture.runner.tee import TeeWriter

__all__ = [
    "CaptureSupervisor",
    "ExitOutcome",
    "SupervisorState",
    "exit_code_for",
]

_DEFAULT_STDOUT_FILTER = drop_chunks_containing(JDWP_BANNER)
_PIPE_NAMES = ("stdin", "stdout", "stderr")


class SupervisorState(enum.Enum):
    INIT = "init"
    LOGS_OPENED = "logs-opened"
    PIPES_CREATED = "pipes-created"
    RELAYS_RUNNING = "relays-running"
    CHILD_STARTED = "child-started"
    CHILD_EXITED = "child-exited"


@dataclass(slots=True, frozen=True)
class ExitOutcome:
    """How the child process terminated."""

    returncode: int | None
    error: BaseException | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.returncode == 0

    @property
    def terminating_signal(self) -> signal.Signals | None:
        if self.returncode is None or self.returncode >= 0:
            return None
        try:
            return signal.Signals(-self.returncode)
        except ValueError:
            return None

    def describe(self) -> str:
        if self.error is not None:
            return str(self.error)
        sig = self.terminating_signal
        if sig is not None:
            return f"signal: {sig.name}"
        if self.returncode is not None and self.returncode < 0:
            return f"signal: {-self.returncode}"
        return f"exit status {self.returncode}"


def exit_code_for(outcome: ExitOutcome, *, propagate: bool = False) -> int:
    """Map a child outcome onto the supervisor's own exit status.

    By default any unclean termination exits 1. With ``propagate`` the
    child's code is returned as-is and a signal maps to ``128 + signo``.
    """

    if outcome.succeeded:
        return 0
    if not propagate or outcome.returncode is None:
        return 1
    if outcome.returncode < 0:
        return 128 - outcome.returncode
    return outcome.returncode


class CaptureSupervisor:
    """Run a child process with its standard streams relayed and logged.

    Parent stdin goes to the child and ``client_input.log``; child stdout is
    filtered, then written to parent stdout and ``server_output.log``; child
    stderr goes to parent stderr and ``server_err.log``.
    """

    def __init__(
        self,
        argv: Sequence[str],
        layout: CaptureLayout,
        *,
        stdin: BinaryIO | None = None,
        stdout: BinaryIO | None = None,
        stderr: BinaryIO | None = None,
        stdout_filter: ChunkFilter = _DEFAULT_STDOUT_FILTER,
    ) -> None:
        if not argv:
            raise ValueError("argv must name a program to run")
        self.argv = list(argv)
        self.layout = layout
        self.stdin = stdin
        self.stdout = stdout
        self.stderr = stderr
        self.stdout_filter = stdout_filter
        self.state = SupervisorState.INIT
        self.relays: dict[str, Relay] = {}
        self.process: subprocess.Popen[bytes] | None = None

    def run(self) -> ExitOutcome:
        """Supervise the child until it exits.

        Raises :class:`~lsp_capture.runner.errors.CaptureStartupError` when
        logs or pipes cannot be set up and
        :class:`~lsp_capture.runner.errors.ChildStartError` when the child
        cannot be spawned. Every failure is written to the capture log first.
        """

        with CaptureLogs.open(self.layout) as logs:
            self.state = SupervisorState.LOGS_OPENED
            return self._supervise(logs)

    # ------------------------------------------------------------------ helpers
    def _supervise(self, logs: CaptureLogs) -> ExitOutcome:
        logger = logs.logger
        command_repr = shlex.join(self.argv)
        logger.info("starting %s", command_repr)
        program = shutil.which(self.argv[0])
        if program is None:
            message = f"exec: {self.argv[0]!r}: executable file not found in $PATH"
            logger.error("start sub process fail: %s", message)
            raise ChildStartError(message)

        (stdin_r, stdin_w), (stdout_r, stdout_w), (stderr_r, stderr_w) = self._create_pipes(
            logger
        )
        self.state = SupervisorState.PIPES_CREATED

        child_stdin = open(stdin_w, "wb")  # noqa: SIM115 - closed when parent stdin ends
        child_stdout = open(stdout_r, "rb", buffering=0)  # noqa: SIM115
        child_stderr = open(stderr_r, "rb", buffering=0)  # noqa: SIM115

        def _close_child_stdin(_relay: Relay) -> None:
            try:
                child_stdin.close()
            except OSError as exc:
                logger.warning("Error closing child stdin: %s", exc)

        self.relays = {
            "stdin": Relay(
                "stdin",
                _parent_stdin(self.stdin),
                TeeWriter([child_stdin, logs.client_input]),
                logger=logger,
                on_finish=_close_child_stdin,
            ),
            "stdout": Relay(
                "stdout",
                child_stdout,
                TeeWriter([_or_default(self.stdout, sys.stdout), logs.server_output]),
                logger=logger,
                chunk_filter=self.stdout_filter,
            ),
            "stderr": Relay(
                "stderr",
                child_stderr,
                TeeWriter([_or_default(self.stderr, sys.stderr), logs.server_error]),
                logger=logger,
            ),
        }
        for relay in self.relays.values():
            relay.start()
        self.state = SupervisorState.RELAYS_RUNNING

        child_ends = (stdin_r, stdout_w, stderr_w)
        try:
            process = subprocess.Popen(  # noqa: S603
                self.argv,
                executable=program,
                stdin=stdin_r,
                stdout=stdout_w,
                stderr=stderr_w,
            )
        except OSError as exc:
            _close_fds(child_ends)
            self._drain(child_stdout, child_stderr)
            logger.error("start sub process fail: %s", exc)
            raise ChildStartError(str(exc)) from exc
        # The child holds its own copies; ours must go so the relays see EOF.
        _close_fds(child_ends)
        self.process = process
        self.state = SupervisorState.CHILD_STARTED
        logger.info("started pid %s", process.pid)

        try:
            outcome = ExitOutcome(returncode=process.wait())
        except OSError as exc:
            outcome = ExitOutcome(returncode=None, error=exc)
        self.state = SupervisorState.CHILD_EXITED

        self._drain(child_stdout, child_stderr)
        if outcome.succeeded:
            logger.info("Command finished: %s", outcome.describe())
        else:
            logger.critical("Command finished with error: %s", outcome.describe())
        return outcome

    def _drain(self, *sources: BinaryIO) -> None:
        """Wait for the output relays to reach EOF, then release their pipes."""

        for name in ("stdout", "stderr"):
            self.relays[name].join()
        for source in sources:
            source.close()

    @staticmethod
    def _create_pipes(logger: logging.Logger) -> list[tuple[int, int]]:
        pipes: list[tuple[int, int]] = []
        for name in _PIPE_NAMES:
            try:
                pipes.append(os.pipe())
            except OSError as exc:
                for read_fd, write_fd in pipes:
                    os.close(read_fd)
                    os.close(write_fd)
                logger.critical("Failed to create %s pipe: %s", name, exc)
                raise PipeSetupError(f"Failed to create {name} pipe: {exc}") from exc
        return pipes


def _or_default(stream: BinaryIO | None, fallback: TextIO) -> BinaryIO:
    # Looked up at run time so redirected sys streams are honoured.
    return stream if stream is not None else fallback.buffer


def _parent_stdin(stream: BinaryIO | None) -> BinaryIO:
    if stream is not None:
        return stream
    buffer = sys.stdin.buffer
    # The abandoned stdin relay must not hold the buffer lock at interpreter shutdown.
    return getattr(buffer, "raw", buffer)


def _close_fds(fds: Sequence[int]) -> None:
    for fd in fds:
        os.close(fd)
