"""Viewport and navigation over the filtered index."""

from __future__ import annotations

from typing import AbstractSet, Iterable, List, Optional

from utils import common
from utils.json_utils import pretty_json
from utils.time_formatting import format_relative_age

from .filter_engine import ActiveFilter
from .filtered_index import FilteredIndex
from .log_buffer import LogBuffer
from .models import MatchRange, RenderRow

logger = common.get_logger('viewport')


def clip_matches(matches: Iterable[MatchRange], offset: int) -> List[MatchRange]:
    """Re-express match ranges relative to a horizontal scroll offset.

    Ranges entirely left of the offset are dropped and a range straddling it
    is cut at the offset.
    """
    if offset <= 0:
        return list(matches)

    clipped: List[MatchRange] = []
    for match in matches:
        if match.end <= offset:
            continue
        clipped.append(MatchRange(max(match.start, offset) - offset, match.end - offset))
    return clipped


def scroll_text(text: str, offset: int) -> str:
    """Drop the first ``offset`` characters of every line in ``text``."""
    if offset <= 0:
        return text
    if '\n' not in text:
        return text[offset:]
    return '\n'.join(part[offset:] for part in text.split('\n'))


class Viewport:
    """Scroll position, follow mode and horizontal offset over a FilteredIndex.

    ``scroll`` is a position in the filtered index (not a sequence index) and
    is kept within ``[0, max(0, len(index) - height)]``. Any manual scroll
    disables follow mode; only ``set_follow(True)`` turns it back on.
    """

    def __init__(
        self,
        index: FilteredIndex,
        height: int = 1,
        follow: bool = True,
        horizontal_step: int = 4,
        line_wrap: bool = False,
    ) -> None:
        self._index = index
        self.height = max(1, int(height))
        self.scroll = 0
        self.follow = follow
        self.horizontal_scroll = 0
        self.horizontal_step = max(1, int(horizontal_step))
        self.line_wrap = line_wrap
        # Sequence index last reached by bookmark navigation, with the offset it left
        self._bookmark_cursor: Optional[int] = None
        self._bookmark_scroll: Optional[int] = None
        if follow:
            self.scroll = self.max_scroll

    # ------------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------------
    @property
    def max_scroll(self) -> int:
        return max(0, len(self._index) - self.height)

    @property
    def effective_horizontal_scroll(self) -> int:
        return 0 if self.line_wrap else self.horizontal_scroll

    def resize(self, height: int) -> None:
        self.height = max(1, int(height))
        self._settle()

    def _clamp(self) -> None:
        self.scroll = max(0, min(self.scroll, self.max_scroll))

    def _settle(self) -> None:
        if self.follow:
            self.scroll = self.max_scroll
        else:
            self._clamp()

    # ------------------------------------------------------------------
    # Vertical movement (manual: disables follow)
    # ------------------------------------------------------------------
    def scroll_to(self, position: int) -> None:
        self.follow = False
        self._bookmark_cursor = None
        self.scroll = int(position)
        self._clamp()

    def scroll_up(self, lines: int = 1) -> None:
        self.scroll_to(self.scroll - max(0, lines))

    def scroll_down(self, lines: int = 1) -> None:
        self.scroll_to(self.scroll + max(0, lines))

    def page_up(self) -> None:
        self.scroll_up(self.height)

    def page_down(self) -> None:
        self.scroll_down(self.height)

    def scroll_to_top(self) -> None:
        self.scroll_to(0)

    def scroll_to_bottom(self) -> None:
        self.scroll_to(self.max_scroll)

    # ------------------------------------------------------------------
    # Follow mode
    # ------------------------------------------------------------------
    def set_follow(self, enabled: bool) -> None:
        self.follow = bool(enabled)
        if self.follow:
            self.scroll = self.max_scroll

    def toggle_follow(self) -> None:
        self.set_follow(not self.follow)

    def on_line_accepted(self) -> None:
        """A line joined the filtered index."""
        if self.follow:
            self.scroll = self.max_scroll

    def on_index_rebuilt(self) -> None:
        self._settle()

    # ------------------------------------------------------------------
    # Horizontal movement
    # ------------------------------------------------------------------
    def scroll_left(self, columns: Optional[int] = None) -> None:
        step = self.horizontal_step if columns is None else max(0, columns)
        self.horizontal_scroll = max(0, self.horizontal_scroll - step)

    def scroll_right(self, columns: Optional[int] = None) -> None:
        if self.line_wrap:
            return
        step = self.horizontal_step if columns is None else max(0, columns)
        self.horizontal_scroll += step

    def reset_horizontal(self) -> None:
        self.horizontal_scroll = 0

    def toggle_line_wrap(self) -> None:
        self.line_wrap = not self.line_wrap

    # ------------------------------------------------------------------
    # Bookmarks
    # ------------------------------------------------------------------
    def next_bookmark(self, bookmarks: AbstractSet[int]) -> Optional[int]:
        """Move to the nearest filtered bookmark after the current one (or the top row)."""
        if not bookmarks or len(self._index) == 0:
            return None
        current = self._navigation_origin()
        for index in sorted(b for b in bookmarks if b > current):
            position = self._index.position_of(index)
            if position is not None:
                self._land_on_bookmark(index, position)
                return index
        logger.debug("No bookmark after sequence index %s in view", current)
        return None

    def prev_bookmark(self, bookmarks: AbstractSet[int]) -> Optional[int]:
        """Move to the nearest filtered bookmark before the current one (or the top row)."""
        if not bookmarks or len(self._index) == 0:
            return None
        current = self._navigation_origin()
        for index in sorted((b for b in bookmarks if b < current), reverse=True):
            position = self._index.position_of(index)
            if position is not None:
                self._land_on_bookmark(index, position)
                return index
        logger.debug("No bookmark before sequence index %s in view", current)
        return None

    def _navigation_origin(self) -> int:
        """Sequence index the bookmark search starts from.

        Landing on a bookmark inside the last page leaves the top row short of
        it, so the landed index is used while the offset is unchanged.
        """
        self._clamp()
        if self._bookmark_cursor is not None and self._bookmark_scroll == self.scroll:
            return self._bookmark_cursor
        return self._index[self.scroll]

    def _land_on_bookmark(self, index: int, position: int) -> None:
        self.scroll_to(position)
        self._bookmark_cursor = index
        self._bookmark_scroll = self.scroll

    # ------------------------------------------------------------------
    # Window
    # ------------------------------------------------------------------
    def window(self) -> List[int]:
        """Sequence indices of the visible rows, top to bottom."""
        self._clamp()
        return self._index.slice(self.scroll, self.scroll + self.height)

    def top_index(self) -> Optional[int]:
        visible = self.window()
        return visible[0] if visible else None

    def last_visible_index(self) -> Optional[int]:
        visible = self.window()
        return visible[-1] if visible else None

    def render(
        self,
        buffer: LogBuffer,
        active_filter: Optional[ActiveFilter],
        bookmarks: AbstractSet[int],
        now: Optional[float] = None,
        json_pretty: bool = False,
        show_relative_time: bool = False,
    ) -> List[RenderRow]:
        """Build render rows for the visible window."""
        return self.render_indices(
            self.window(),
            buffer,
            active_filter,
            bookmarks,
            now=now,
            json_pretty=json_pretty,
            show_relative_time=show_relative_time,
        )

    def render_indices(
        self,
        indices: Iterable[int],
        buffer: LogBuffer,
        active_filter: Optional[ActiveFilter],
        bookmarks: AbstractSet[int],
        now: Optional[float] = None,
        json_pretty: bool = False,
        show_relative_time: bool = False,
    ) -> List[RenderRow]:
        """Build render rows for arbitrary sequence indices at the current horizontal offset."""
        offset = self.effective_horizontal_scroll
        rows: List[RenderRow] = []
        for index in indices:
            line = buffer.get(index)

            pretty = pretty_json(line.raw) if json_pretty and line.is_json else None
            if pretty is not None:
                text = scroll_text(pretty, offset)
                ranges: List[MatchRange] = []
            else:
                text = scroll_text(line.raw, offset)
                ranges = active_filter.find_matches(line.raw) if active_filter is not None else []
                ranges = clip_matches(ranges, offset)

            relative_time = None
            if show_relative_time and now is not None:
                relative_time = format_relative_age(now - line.received_at)

            rows.append(
                RenderRow(
                    index=index,
                    text=text,
                    matches=ranges,
                    severity=line.severity,
                    bookmarked=index in bookmarks,
                    is_json=pretty is not None,
                    has_ansi=line.has_ansi,
                    relative_time=relative_time,
                )
            )
        return rows


__all__ = ['Viewport', 'clip_matches', 'scroll_text']
