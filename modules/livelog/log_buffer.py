"""Append-only in-memory store of ingested lines."""

from __future__ import annotations

import time
from typing import Callable, Iterator, List, Optional

from .models import LogLine


class LogBuffer:
    """Append-only line store addressed by sequence index.

    Sequence indices start at zero, grow by exactly one per append and are
    never reused. Nothing is ever removed, so an index is also the position
    of its line in the store.
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None) -> None:
        self._lines: List[LogLine] = []
        self._clock = clock or time.time

    def append(self, raw_text: str) -> int:
        """Store one line and return its sequence index."""
        index = len(self._lines)
        self._lines.append(LogLine.from_text(raw_text, index, received_at=self._clock()))
        return index

    def get(self, index: int) -> LogLine:
        if index < 0 or index >= len(self._lines):
            raise IndexError(f'sequence index {index} out of range (length {len(self._lines)})')
        return self._lines[index]

    def length(self) -> int:
        return len(self._lines)

    def last(self) -> Optional[LogLine]:
        return self._lines[-1] if self._lines else None

    def __len__(self) -> int:
        return len(self._lines)

    def __getitem__(self, index: int) -> LogLine:
        return self.get(index)

    def __iter__(self) -> Iterator[LogLine]:
        return iter(self._lines)
