#!/usr/bin/env python3
"""Unit tests for SourceMultiplexer fan-in, error capture and backpressure."""

import os
import sys
import threading
import time
import unittest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from PyQt6.QtCore import QCoreApplication, Qt

from modules.livelog.models import LogEvent, LogEventType
from modules.livelog.multiplexer import SourceMultiplexer
from modules.livelog.sources import LogSource


class ListSource(LogSource):
    def __init__(self, name, lines, end=True):
        self._name = name
        self._lines = list(lines)
        self._end = end
        self.closed = False

    @property
    def name(self):
        return self._name

    def stream(self, stop_event):
        for text in self._lines:
            if stop_event.is_set():
                return
            yield LogEvent.line(text, self._name)
        if self._end:
            yield LogEvent.end_of_stream(self._name)

    def close(self):
        self.closed = True


class BrokenSource(ListSource):
    def stream(self, stop_event):
        yield LogEvent.line("before failure", self._name)
        raise RuntimeError("boom")


class EndlessSource(ListSource):
    def __init__(self, name):
        super().__init__(name, [])
        self.produced = 0

    def stream(self, stop_event):
        while not stop_event.is_set():
            self.produced += 1
            yield LogEvent.line(f"line {self.produced}", self._name)


def _drain_until(multiplexer, count, timeout=3.0):
    events = []
    deadline = time.time() + timeout
    while len(events) < count and time.time() < deadline:
        events.extend(multiplexer.drain())
        time.sleep(0.01)
    return events


class TestSourceMultiplexer(unittest.TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        # Ensure a Qt core application exists for signals
        cls._app = QCoreApplication.instance() or QCoreApplication([])

    def test_events_from_all_sources_arrive(self) -> None:
        first = ListSource("a", ["a1", "a2", "a3"])
        second = ListSource("b", ["b1", "b2"])
        multiplexer = SourceMultiplexer([first, second], capacity=64)
        multiplexer.start()
        try:
            events = _drain_until(multiplexer, 7)
        finally:
            multiplexer.stop()

        self.assertEqual(len(events), 7)
        for name, expected in (("a", ["a1", "a2", "a3"]), ("b", ["b1", "b2"])):
            own = [event for event in events if event.source == name]
            self.assertEqual([event.text for event in own[:-1]], expected, "Per-source order is kept")
            self.assertEqual(own[-1].kind, LogEventType.END_OF_STREAM)
        self.assertTrue(first.closed and second.closed)

    def test_producer_exception_becomes_error_then_end(self) -> None:
        multiplexer = SourceMultiplexer([BrokenSource("flaky", [])], capacity=16)
        multiplexer.start()
        try:
            events = _drain_until(multiplexer, 3)
        finally:
            multiplexer.stop()

        self.assertEqual(
            [event.kind for event in events],
            [LogEventType.LINE, LogEventType.ERROR, LogEventType.END_OF_STREAM],
        )
        self.assertEqual(events[1].text, "RuntimeError: boom")
        self.assertEqual(events[1].source, "flaky")

    def test_full_queue_throttles_producer(self) -> None:
        source = EndlessSource("fast")
        multiplexer = SourceMultiplexer([source], capacity=4, put_timeout_s=0.02)
        multiplexer.start()
        try:
            self.assertTrue(self._wait(lambda: multiplexer.queue.full()))
            time.sleep(0.1)
            self.assertEqual(multiplexer.queue.qsize(), 4)
            self.assertLessEqual(source.produced, 5, "Producer blocks instead of buffering")

            drained = multiplexer.drain(max_events=2)
            self.assertEqual([event.text for event in drained], ["line 1", "line 2"])
            self.assertTrue(self._wait(lambda: source.produced >= 6))
        finally:
            multiplexer.stop()

        self.assertFalse(multiplexer.is_running(), "Stop is honoured while the queue is full")

    def test_drain_respects_limit(self) -> None:
        multiplexer = SourceMultiplexer([ListSource("a", [str(i) for i in range(10)], end=False)], capacity=64)
        multiplexer.start()
        try:
            self.assertTrue(self._wait(lambda: multiplexer.queue.qsize() == 10))
            self.assertEqual(len(multiplexer.drain(max_events=3)), 3)
            self.assertEqual(len(multiplexer.drain()), 7)
            self.assertEqual(multiplexer.drain(), [])
        finally:
            multiplexer.stop()

    def test_lifecycle_signals(self) -> None:
        started, stopped = [], []
        lock = threading.Lock()

        def record(target):
            def _append(name):
                with lock:
                    target.append(name)
            return _append

        multiplexer = SourceMultiplexer([ListSource("a", ["x"]), ListSource("b", [])], capacity=16)
        multiplexer.source_started.connect(record(started), Qt.ConnectionType.DirectConnection)
        multiplexer.source_stopped.connect(record(stopped), Qt.ConnectionType.DirectConnection)
        multiplexer.start()
        try:
            self.assertTrue(self._wait(lambda: len(stopped) == 2))
        finally:
            multiplexer.stop()

        self.assertEqual(sorted(started), ["a", "b"])
        self.assertEqual(sorted(stopped), ["a", "b"])
        self.assertEqual(multiplexer.source_names, ["a", "b"])

    @staticmethod
    def _wait(predicate, timeout=3.0):
        deadline = time.time() + timeout
        while time.time() < deadline:
            if predicate():
                return True
            time.sleep(0.01)
        return predicate()


if __name__ == "__main__":
    unittest.main()
