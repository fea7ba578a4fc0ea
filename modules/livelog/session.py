"""Consumer-side session state and the timer that drives it.

``LiveLogSession`` is the one state structure the consumer loop owns: the log
buffer, filtered index, viewport, bookmarks, saved filters and status. It is
only ever touched from the consumer thread, so none of it is locked.
``LogPump`` is that consumer loop expressed as a Qt timer.
"""

from __future__ import annotations

import queue
import time
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from PyQt6.QtCore import QObject, QTimer, pyqtSignal

from config.config_manager import LiveLogSettings
from config.constants import StatusText
from utils import common

from .filter_engine import ActiveFilter, compile_filter
from .filtered_index import FilteredIndexMaintainer
from .log_buffer import LogBuffer
from .models import LogEvent, LogEventType, RenderRow, SourceState, SourceStatus
from .saved_filters import SavedFilter, SavedFilterStore, upsert_filter
from .viewport import Viewport

logger = common.get_logger('live_log_session')


class LiveLogSession:
    """Explicit state of one live log view."""

    def __init__(
        self,
        settings: Optional[LiveLogSettings] = None,
        saved_filter_store: Optional[SavedFilterStore] = None,
        clock: Optional[Callable[[], float]] = None,
        height: int = 1,
        source_names: Iterable[str] = (),
    ) -> None:
        self.settings = settings or LiveLogSettings()
        self.buffer = LogBuffer(clock=clock)
        self.maintainer = FilteredIndexMaintainer(self.buffer, debounce_s=self.settings.debounce_ms / 1000.0)
        self.viewport = Viewport(
            self.maintainer.index,
            height=height,
            follow=self.settings.follow,
            horizontal_step=self.settings.horizontal_scroll_step,
            line_wrap=self.settings.line_wrap,
        )
        self.bookmarks: Set[int] = set()

        self.filter_text = ''
        self.regex_mode = False

        self.level_colors = self.settings.level_colors
        self.json_pretty = self.settings.json_pretty
        self.show_relative_time = self.settings.show_relative_time

        self.status_message: Optional[str] = None
        self.sources: Dict[str, SourceStatus] = {}
        for name in source_names:
            self.sources[name] = SourceStatus(name)

        self._store = saved_filter_store
        self.saved_filters: List[SavedFilter] = saved_filter_store.load() if saved_filter_store else []

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------
    def handle_event(self, event: LogEvent) -> bool:
        """Apply one queued event; return True when the visible rows may have changed."""
        if event.kind is LogEventType.LINE:
            self.push_line(event.text, event.source)
            return True

        status = self._source_status(event.source)
        if event.kind is LogEventType.ERROR:
            if status is not None:
                status.state = SourceState.ERROR
                status.last_error = event.text
            self.status_message = self._qualify(event.source, f'{StatusText.ERROR_PREFIX}{event.text}')
            logger.warning('Source %s reported: %s', event.source or '<unnamed>', event.text)
        elif event.kind is LogEventType.END_OF_STREAM:
            if status is not None:
                status.state = SourceState.ENDED
            self.status_message = self._qualify(event.source, StatusText.STREAM_ENDED)
            logger.info('Source %s ended', event.source or '<unnamed>')
        return False

    def drain(self, events: "queue.Queue[LogEvent]", max_events: int) -> int:
        """Handle up to ``max_events`` events already waiting on ``events``."""
        handled = 0
        while handled < max_events:
            try:
                event = events.get_nowait()
            except queue.Empty:
                break
            self.handle_event(event)
            handled += 1
        return handled

    def push_line(self, text: str, source: str = '') -> int:
        index = self.buffer.append(text)
        status = self._source_status(source)
        if status is not None:
            status.lines += 1
            if status.state is SourceState.ERROR:
                status.state = SourceState.RUNNING
        if self.maintainer.on_line_appended(self.buffer.get(index)):
            self.viewport.on_line_accepted()
        return index

    def tick(self, now: float) -> bool:
        """Run the debounce check; return True when the filtered index was rebuilt."""
        if self.maintainer.tick(now):
            self.viewport.on_index_rebuilt()
            return True
        return False

    # ------------------------------------------------------------------
    # Filter input
    # ------------------------------------------------------------------
    @property
    def active_filter(self) -> Optional[ActiveFilter]:
        return self.maintainer.active_filter

    def edit_filter(self, text: str, now: float) -> None:
        self.filter_text = text
        self.maintainer.stage_filter(self._input_filter(), now)

    def toggle_regex(self, now: float) -> None:
        self.regex_mode = not self.regex_mode
        self.maintainer.stage_filter(self._input_filter(), now)

    def apply_filter_now(self, text: str, is_regex: bool = False) -> None:
        """Install a filter immediately, skipping the debounce."""
        self.filter_text = text
        self.regex_mode = is_regex
        self.maintainer.apply_filter_now(self._input_filter())
        self.viewport.on_index_rebuilt()

    def clear_filter(self) -> None:
        self.filter_text = ''
        self.maintainer.apply_filter_now(None)
        self.viewport.on_index_rebuilt()

    def _input_filter(self) -> Optional[ActiveFilter]:
        if not self.filter_text:
            return None
        return compile_filter(self.filter_text, self.regex_mode)

    # ------------------------------------------------------------------
    # Bookmarks
    # ------------------------------------------------------------------
    def toggle_bookmark(self, index: int) -> bool:
        """Flip the bookmark on a sequence index; return whether it is now bookmarked."""
        if index < 0 or index >= len(self.buffer):
            logger.debug('Ignoring bookmark toggle for unknown index %s', index)
            return False
        if index in self.bookmarks:
            self.bookmarks.discard(index)
            return False
        self.bookmarks.add(index)
        return True

    def toggle_bookmark_at_top(self) -> Optional[int]:
        index = self.viewport.top_index()
        if index is None:
            return None
        self.toggle_bookmark(index)
        return index

    def clear_bookmarks(self) -> None:
        self.bookmarks.clear()

    def next_bookmark(self) -> Optional[int]:
        index = self.viewport.next_bookmark(self.bookmarks)
        if index is None and self.bookmarks:
            self.status_message = StatusText.NO_BOOKMARKS
        return index

    def prev_bookmark(self) -> Optional[int]:
        index = self.viewport.prev_bookmark(self.bookmarks)
        if index is None and self.bookmarks:
            self.status_message = StatusText.NO_BOOKMARKS
        return index

    # ------------------------------------------------------------------
    # Saved filters
    # ------------------------------------------------------------------
    def save_current_filter(self, name: str) -> Optional[SavedFilter]:
        name = name.strip()
        if not name:
            self.status_message = StatusText.FILTER_NAME_REQUIRED
            return None
        if not self.filter_text:
            self.status_message = StatusText.NO_FILTER_TO_SAVE
            return None

        saved = SavedFilter(name=name, pattern=self.filter_text, is_regex=self.regex_mode)
        self.saved_filters = upsert_filter(self.saved_filters, saved)
        self._persist()
        self.status_message = StatusText.FILTER_SAVED.format(name=name)
        return saved

    def activate_saved_filter(self, position: int) -> Optional[SavedFilter]:
        if position < 0 or position >= len(self.saved_filters):
            return None
        saved = self.saved_filters[position]
        self.filter_text = saved.pattern
        self.regex_mode = saved.is_regex
        self.maintainer.apply_filter_now(saved.activate())
        self.viewport.on_index_rebuilt()
        logger.info('Activated saved filter %s', saved.name)
        return saved

    def delete_saved_filter(self, position: int) -> Optional[SavedFilter]:
        if position < 0 or position >= len(self.saved_filters):
            return None
        removed = self.saved_filters.pop(position)
        self._persist()
        self.status_message = StatusText.FILTER_DELETED.format(name=removed.name)
        return removed

    def _persist(self) -> None:
        if self._store is not None:
            self._store.save(self.saved_filters)

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------
    def toggle_json_pretty(self) -> None:
        self.json_pretty = not self.json_pretty

    def toggle_relative_time(self) -> None:
        self.show_relative_time = not self.show_relative_time

    def toggle_level_colors(self) -> None:
        self.level_colors = not self.level_colors

    def visible_rows(self, now: Optional[float] = None) -> List[RenderRow]:
        return self.viewport.render(
            self.buffer,
            self.active_filter,
            self.bookmarks,
            now=now,
            json_pretty=self.json_pretty,
            show_relative_time=self.show_relative_time,
        )

    def rows_for(self, indices: Iterable[int], now: Optional[float] = None) -> List[RenderRow]:
        """Render specific sequence indices with the session's display toggles."""
        return self.viewport.render_indices(
            indices,
            self.buffer,
            self.active_filter,
            self.bookmarks,
            now=now,
            json_pretty=self.json_pretty,
            show_relative_time=self.show_relative_time,
        )

    def line_counts(self) -> Tuple[int, int]:
        """Return ``(visible, total)`` line counts."""
        return len(self.maintainer.index), len(self.buffer)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _source_status(self, name: str) -> Optional[SourceStatus]:
        if not name:
            return None
        status = self.sources.get(name)
        if status is None:
            status = SourceStatus(name)
            self.sources[name] = status
        return status

    def _qualify(self, source: str, message: str) -> str:
        if source and len(self.sources) > 1:
            return f'{source}: {message}'
        return message


class LogPump(QObject):
    """Drives a LiveLogSession from a repeating QTimer.

    Each timeout reads the clock once, runs the debounce check and drains a
    bounded batch of queued events, so a flood of input never starves the
    event loop.
    """

    updated = pyqtSignal()
    status_changed = pyqtSignal(str)

    def __init__(
        self,
        session: LiveLogSession,
        events: "queue.Queue[LogEvent]",
        poll_interval_ms: Optional[int] = None,
        max_events_per_tick: Optional[int] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        super().__init__()
        self._session = session
        self._events = events
        self._clock = clock or time.monotonic
        self.max_events_per_tick = max_events_per_tick or session.settings.max_events_per_tick
        self._last_status: Optional[str] = session.status_message

        self.timer = QTimer(self)
        self.timer.setInterval(poll_interval_ms or session.settings.poll_interval_ms)
        self.timer.timeout.connect(self.pump_once)

    @property
    def session(self) -> LiveLogSession:
        return self._session

    def start(self) -> None:
        logger.debug('Log pump started (%s ms)', self.timer.interval())
        self.timer.start()

    def stop(self) -> None:
        self.timer.stop()

    def is_active(self) -> bool:
        return self.timer.isActive()

    def pump_once(self) -> bool:
        """One consumer-loop iteration; return True when visible state changed."""
        now = self._clock()
        changed = self._session.tick(now)
        if self._session.drain(self._events, self.max_events_per_tick):
            changed = True

        status = self._session.status_message
        if status != self._last_status:
            self._last_status = status
            self.status_changed.emit(status or '')
        if changed:
            self.updated.emit()
        return changed


__all__ = ['LiveLogSession', 'LogPump']
