"""Chunk-level filtering for relayed byte streams."""

from __future__ import annotations

import selectors
from collections.abc import Callable
from typing import BinaryIO

__all__ = [
    "JDWP_BANNER",
    "ChunkFilter",
    "FilteringReader",
    "drop_chunks_containing",
    "identity",
]

ChunkFilter = Callable[[bytes], bytes]

# Printed by a JVM started with -agentlib:jdwp; it is not protocol data.
JDWP_BANNER = b"Listening for transport"


def identity(chunk: bytes) -> bytes:
    return chunk


def drop_chunks_containing(marker: bytes) -> ChunkFilter:
    """Return a filter that suppresses any chunk containing ``marker``.

    Only the bytes of a single read are inspected, so a marker split across
    two reads passes through untouched.
    """

    def _filter(chunk: bytes) -> bytes:
        if marker in chunk:
            return b""
        return chunk

    return _filter


class FilteringReader:
    """Apply a :data:`ChunkFilter` to every read of an underlying stream.

    A filtered read may legitimately produce zero bytes, so end-of-stream is
    reported through :attr:`eof` rather than by a zero-length result.
    """

    def __init__(self, raw: BinaryIO, chunk_filter: ChunkFilter | None = None) -> None:
        self.raw = raw
        self.chunk_filter = chunk_filter or identity
        self.eof = False

    def readinto(self, buffer: bytearray | memoryview) -> int:
        view = memoryview(buffer)
        n = self._read_raw(view)
        if not n:
            self.eof = True
            return 0
        filtered = self.chunk_filter(bytes(view[:n]))
        if len(filtered) > n:
            raise ValueError(
                f"chunk filter grew a {n}-byte chunk to {len(filtered)} bytes"
            )
        view[: len(filtered)] = filtered
        return len(filtered)

    def read(self, size: int) -> bytes:
        buffer = bytearray(size)
        n = self.readinto(buffer)
        return bytes(buffer[:n])

    def _read_raw(self, view: memoryview) -> int:
        reader = getattr(self.raw, "readinto1", None) or self.raw.readinto
        while True:
            try:
                n = reader(view)
            except BlockingIOError:
                n = None
            # Non-blocking streams report "no data yet" as None; only 0 is EOF.
            if n is not None:
                return n
            self._wait_readable()

    def _wait_readable(self) -> None:
        with selectors.DefaultSelector() as selector:
            selector.register(self.raw, selectors.EVENT_READ)
            selector.select()
