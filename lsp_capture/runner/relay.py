"""Long-lived byte forwarders between a source stream and a sink."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import BinaryIO, Protocol

from lsp_capture.runner.filtering import ChunkFilter, FilteringReader

__all__ = ["DEFAULT_CHUNK_SIZE", "Relay", "Sink"]

DEFAULT_CHUNK_SIZE = 32 * 1024


class Sink(Protocol):
    def write(self, data: bytes) -> int | None: ...


class Relay:
    """Copy chunks from ``source`` to ``sink`` until end-of-stream or an I/O error.

    Errors are logged as warnings on ``logger`` and stored in :attr:`error`;
    they never escape :meth:`run`. Each relay runs at most once.
    """

    def __init__(
        self,
        name: str,
        source: BinaryIO,
        sink: Sink,
        *,
        logger: logging.Logger,
        chunk_filter: ChunkFilter | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        on_finish: Callable[[Relay], None] | None = None,
    ) -> None:
        self.name = name
        self.reader = FilteringReader(source, chunk_filter)
        self.sink = sink
        self.logger = logger
        self.chunk_size = chunk_size
        self.on_finish = on_finish
        self.bytes_read = 0
        self.bytes_written = 0
        self.error: BaseException | None = None
        self._thread: threading.Thread | None = None
        self._started = False
        self._started_lock = threading.Lock()
        self._done = threading.Event()

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def start(self) -> threading.Thread:
        """Run the copy loop on a daemon thread."""

        self._claim()
        thread = threading.Thread(
            target=self._run_claimed, name=f"relay-{self.name}", daemon=True
        )
        self._thread = thread
        thread.start()
        return thread

    def run(self) -> None:
        """Run the copy loop on the calling thread."""

        self._claim()
        self._run_claimed()

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the loop to end; return whether it has."""

        return self._done.wait(timeout)

    # ------------------------------------------------------------------ helpers
    def _claim(self) -> None:
        with self._started_lock:
            if self._started:
                raise RuntimeError(f"relay {self.name!r} has already been started")
            self._started = True

    def _run_claimed(self) -> None:
        try:
            self._copy()
        except (OSError, ValueError) as exc:
            self.error = exc
            self.logger.warning("Error copying %s: %s", self.name, exc)
        finally:
            try:
                if self.on_finish is not None:
                    self.on_finish(self)
            finally:
                self._done.set()

    def _copy(self) -> None:
        buffer = bytearray(self.chunk_size)
        view = memoryview(buffer)
        while True:
            n = self.reader.readinto(view)
            if self.reader.eof:
                return
            if not n:
                continue
            self.bytes_read += n
            self.sink.write(bytes(view[:n]))
            self.bytes_written += n
