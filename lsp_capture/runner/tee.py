"""Fan a byte stream out to several writable destinations."""

from __future__ import annotations

from collections.abc import Sequence
from typing import BinaryIO

__all__ = ["TeeWriter"]


class TeeWriter:
    """Write every chunk to each destination, in order, flushing as it goes.

    A failing destination aborts the write with its own exception. Bytes
    already handed to earlier destinations are not rolled back.
    """

    def __init__(self, destinations: Sequence[BinaryIO]) -> None:
        if not destinations:
            raise ValueError("TeeWriter needs at least one destination")
        self.destinations = tuple(destinations)

    def write(self, data: bytes) -> int:
        for destination in self.destinations:
            destination.write(data)
            destination.flush()
        return len(data)

    def flush(self) -> None:
        for destination in self.destinations:
            destination.flush()
