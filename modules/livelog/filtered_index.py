"""Filtered-index maintenance with debounced recomputation.

The filtered index is the ordered list of sequence indices that currently
pass the active filter. It is kept up to date two ways:

- per appended line, by evaluating only that line against the applied filter;
- per filter change, by one full rescan of the buffer, deferred until the
  user has stopped editing for the debounce threshold.

The debounce is a deadline compared against a clock value the consumer loop
reads once per iteration; no timers run behind the loop's back.
"""

from __future__ import annotations

import bisect
from enum import Enum
from typing import Iterator, List, Optional

from utils import common

from .filter_engine import ActiveFilter
from .log_buffer import LogBuffer
from .models import LogLine

logger = common.get_logger('filtered_index')


class DebounceState(Enum):
    IDLE = 'idle'
    PENDING = 'pending'


class FilterDebouncer:
    """``IDLE -> PENDING(deadline) -> IDLE`` state machine for filter edits."""

    def __init__(self, delay_s: float) -> None:
        self.delay_s = max(0.0, float(delay_s))
        self.state = DebounceState.IDLE
        self.deadline: Optional[float] = None
        self.pending_count = 0

    @property
    def is_pending(self) -> bool:
        return self.state is DebounceState.PENDING

    def note_edit(self, now: float) -> None:
        """Record an edit; each edit pushes the deadline out again."""
        self.pending_count += 1
        self.deadline = now + self.delay_s
        if self.state is DebounceState.PENDING:
            logger.debug('Filter edit #%s (deadline moved to %.3f)', self.pending_count, self.deadline)
        else:
            logger.debug('Filter edit #%s (deadline set to %.3f)', self.pending_count, self.deadline)
        self.state = DebounceState.PENDING

    def poll(self, now: float) -> bool:
        """Return True exactly once when the deadline has passed without new edits."""
        if self.state is not DebounceState.PENDING or self.deadline is None:
            return False
        if now < self.deadline:
            return False
        self._reset()
        return True

    def force(self) -> bool:
        """Fire immediately if an edit is pending."""
        if self.state is not DebounceState.PENDING:
            return False
        self._reset()
        return True

    def cancel(self) -> None:
        self._reset()

    def _reset(self) -> None:
        coalesced = self.pending_count
        self.state = DebounceState.IDLE
        self.deadline = None
        self.pending_count = 0
        if coalesced:
            logger.debug('Debounce settled after %s edit(s)', coalesced)


class FilteredIndex:
    """Strictly increasing sequence indices passing the applied filter.

    With no filter applied the index is the whole buffer range, served
    directly from the buffer length without materialising a list.
    """

    def __init__(self, buffer: LogBuffer) -> None:
        self._buffer = buffer
        self._indices: Optional[List[int]] = None

    @property
    def is_unfiltered(self) -> bool:
        return self._indices is None

    def __len__(self) -> int:
        if self._indices is None:
            return len(self._buffer)
        return len(self._indices)

    def __getitem__(self, position: int) -> int:
        if self._indices is None:
            if position < 0:
                position += len(self._buffer)
            if position < 0 or position >= len(self._buffer):
                raise IndexError(f'filtered position {position} out of range')
            return position
        return self._indices[position]

    def __iter__(self) -> Iterator[int]:
        if self._indices is None:
            return iter(range(len(self._buffer)))
        return iter(self._indices)

    def slice(self, start: int, stop: int) -> List[int]:
        """Return the sequence indices at filtered positions ``[start, stop)``."""
        start = max(0, start)
        stop = min(stop, len(self))
        if start >= stop:
            return []
        if self._indices is None:
            return list(range(start, stop))
        return self._indices[start:stop]

    def position_of(self, index: int) -> Optional[int]:
        """Return the filtered position of a sequence index, or None if excluded."""
        if self._indices is None:
            return index if 0 <= index < len(self._buffer) else None
        position = bisect.bisect_left(self._indices, index)
        if position < len(self._indices) and self._indices[position] == index:
            return position
        return None

    def first_position_after(self, index: int) -> int:
        """Return the filtered position of the first sequence index greater than ``index``."""
        if self._indices is None:
            return min(max(0, index + 1), len(self._buffer))
        return bisect.bisect_right(self._indices, index)

    def to_list(self) -> List[int]:
        return list(self)

    def reset_to_all(self) -> None:
        self._indices = None

    def replace(self, indices: List[int]) -> None:
        self._indices = indices

    def append(self, index: int) -> None:
        if self._indices is not None:
            self._indices.append(index)


class FilteredIndexMaintainer:
    """Keeps a FilteredIndex consistent with the applied filter and the buffer."""

    def __init__(self, buffer: LogBuffer, debounce_s: float = 0.15) -> None:
        self._buffer = buffer
        self._applied: Optional[ActiveFilter] = None
        self._staged: Optional[ActiveFilter] = None
        self._has_staged = False
        self.index = FilteredIndex(buffer)
        self.debouncer = FilterDebouncer(debounce_s)
        self.rescan_count = 0

    @property
    def active_filter(self) -> Optional[ActiveFilter]:
        """Filter the index currently reflects."""
        return self._applied

    @property
    def staged_filter(self) -> Optional[ActiveFilter]:
        """Filter waiting for the debounce deadline (None if nothing is staged)."""
        return self._staged if self._has_staged else None

    @property
    def recompute_pending(self) -> bool:
        return self._has_staged

    def on_line_appended(self, line: LogLine) -> bool:
        """Evaluate one new line; return True when it is now part of the index."""
        if self._applied is None:
            return True
        if self._applied.matches(line.raw):
            self.index.append(line.index)
            return True
        return False

    def stage_filter(self, new_filter: Optional[ActiveFilter], now: float) -> None:
        """Record an edited filter; it is applied once edits stop for the threshold."""
        self._staged = _normalise(new_filter)
        self._has_staged = True
        self.debouncer.note_edit(now)

    def tick(self, now: float) -> bool:
        """Apply the staged filter if its deadline passed; return True on rescan."""
        if not self._has_staged:
            return False
        if not self.debouncer.poll(now):
            return False
        self._apply(self._staged)
        return True

    def apply_filter_now(self, new_filter: Optional[ActiveFilter]) -> None:
        """Replace the filter immediately, dropping any staged edit."""
        self.debouncer.cancel()
        self._apply(_normalise(new_filter))

    def rebuild(self) -> None:
        """Full rescan of the buffer against the applied filter."""
        if self._applied is None:
            self.index.reset_to_all()
            logger.debug('Filter cleared; index covers all %s line(s)', len(self._buffer))
            return

        self.rescan_count += 1
        active = self._applied
        indices = [line.index for line in self._buffer if active.matches(line.raw)]
        self.index.replace(indices)
        logger.debug(
            'Rescanned %s line(s) for %r (regex=%s): %s match(es)',
            len(self._buffer),
            active.pattern,
            active.is_regex,
            len(indices),
        )

    def _apply(self, new_filter: Optional[ActiveFilter]) -> None:
        self._applied = new_filter
        self._staged = None
        self._has_staged = False
        self.rebuild()


def _normalise(new_filter: Optional[ActiveFilter]) -> Optional[ActiveFilter]:
    if new_filter is None or new_filter.is_empty:
        return None
    return new_filter


__all__ = [
    'DebounceState',
    'FilterDebouncer',
    'FilteredIndex',
    'FilteredIndexMaintainer',
]
