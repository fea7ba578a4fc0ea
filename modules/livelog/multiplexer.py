"""Fan-in of every source onto one bounded event queue."""

from __future__ import annotations

import queue
import threading
from typing import Dict, List, Optional, Sequence

from PyQt6.QtCore import QObject, pyqtSignal

from config.constants import LiveLogConstants
from utils import common

from .models import LogEvent
from .sources import LogSource

logger = common.get_logger('source_multiplexer')


class SourceMultiplexer(QObject):
    """Runs one producer thread per source, all feeding a single bounded queue.

    A full queue blocks the producer that tried to put, so a fast source is
    throttled instead of growing memory. Blocking puts are timed so a stop
    request is noticed even while the consumer is not draining.
    """

    source_started = pyqtSignal(str)
    source_stopped = pyqtSignal(str)

    def __init__(
        self,
        sources: Sequence[LogSource],
        capacity: int = LiveLogConstants.EVENT_QUEUE_CAPACITY,
        put_timeout_s: float = LiveLogConstants.QUEUE_PUT_TIMEOUT_S,
        join_timeout_s: float = LiveLogConstants.SOURCE_JOIN_TIMEOUT_S,
    ) -> None:
        super().__init__()
        self._sources: List[LogSource] = list(sources)
        self.queue: "queue.Queue[LogEvent]" = queue.Queue(maxsize=max(1, int(capacity)))
        self._put_timeout_s = put_timeout_s
        self._join_timeout_s = join_timeout_s
        self._stop_event = threading.Event()
        self._threads: Dict[str, threading.Thread] = {}

    @property
    def sources(self) -> List[LogSource]:
        return list(self._sources)

    @property
    def source_names(self) -> List[str]:
        return [source.name for source in self._sources]

    def is_running(self) -> bool:
        return any(thread.is_alive() for thread in self._threads.values())

    # ------------------------------------------------------------------
    # Lifecycle management
    # ------------------------------------------------------------------
    def start(self) -> None:
        if self._threads:
            logger.debug('Multiplexer already started')
            return
        logger.info('Starting %s source(s): %s', len(self._sources), ', '.join(self.source_names))
        self._stop_event.clear()
        for position, source in enumerate(self._sources):
            thread = threading.Thread(
                target=self._produce,
                args=(source,),
                name=f'source-{position}-{source.name}',
                daemon=True,
            )
            self._threads[thread.name] = thread
            thread.start()

    def stop(self, wait: bool = True) -> None:
        logger.info('Stopping source multiplexer')
        self._stop_event.set()
        for source in self._sources:
            try:
                source.close()
            except OSError as exc:
                logger.warning('Closing source %s failed: %s', source.name, exc)
        if wait:
            for thread in list(self._threads.values()):
                thread.join(timeout=self._join_timeout_s)
                if thread.is_alive():
                    logger.warning('Producer thread %s did not stop in time', thread.name)
        self._threads.clear()

    # ------------------------------------------------------------------
    # Consumer side
    # ------------------------------------------------------------------
    def drain(self, max_events: Optional[int] = None) -> List[LogEvent]:
        """Take up to ``max_events`` queued events without blocking."""
        events: List[LogEvent] = []
        while max_events is None or len(events) < max_events:
            try:
                events.append(self.queue.get_nowait())
            except queue.Empty:
                break
        return events

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------
    def _put(self, event: LogEvent) -> bool:
        """Block until the event is queued; False if a stop was requested first."""
        while not self._stop_event.is_set():
            try:
                self.queue.put(event, timeout=self._put_timeout_s)
                return True
            except queue.Full:
                continue
        return False

    def _produce(self, source: LogSource) -> None:
        name = source.name
        with common.trace_id_scope(name):
            logger.debug('Producer for %s started', name)
            self.source_started.emit(name)
            try:
                for event in source.stream(self._stop_event):
                    if not self._put(event):
                        break
            except Exception as exc:
                logger.exception('Source %s failed', name)
                if self._put(LogEvent.error(f'{type(exc).__name__}: {exc}', name)):
                    self._put(LogEvent.end_of_stream(name))
            finally:
                logger.debug('Producer for %s finished', name)
                self.source_stopped.emit(name)


__all__ = ['SourceMultiplexer']
