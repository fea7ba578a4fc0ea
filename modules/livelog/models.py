"""Data models for the live log core."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class Severity(Enum):
    """Severity classification derived once from a line's text."""

    TRACE = 'TRACE'
    DEBUG = 'DEBUG'
    INFO = 'INFO'
    WARN = 'WARN'
    ERROR = 'ERROR'
    FATAL = 'FATAL'
    UNKNOWN = 'UNKNOWN'


# logcat -v threadtime: "MM-DD HH:MM:SS.mmm  PID  TID L Tag: message"
_THREADTIME_PATTERN = re.compile(
    r'^\d{2}-\d{2}\s\d{2}:\d{2}:\d{2}\.\d{3}\s+\d+\s+\d+\s+(?P<level>[VDIWEF])\s'
)

_LOGCAT_LEVELS = {
    'V': Severity.TRACE,
    'D': Severity.DEBUG,
    'I': Severity.INFO,
    'W': Severity.WARN,
    'E': Severity.ERROR,
    'F': Severity.FATAL,
}

_KEYWORD_PATTERN = re.compile(
    r'\b(TRACE|DEBUG|INFO|WARNING|WARN|ERROR|ERR|FATAL|CRITICAL|PANIC)\b',
    re.IGNORECASE,
)

_KEYWORD_LEVELS = {
    'TRACE': Severity.TRACE,
    'DEBUG': Severity.DEBUG,
    'INFO': Severity.INFO,
    'WARN': Severity.WARN,
    'WARNING': Severity.WARN,
    'ERR': Severity.ERROR,
    'ERROR': Severity.ERROR,
    'FATAL': Severity.FATAL,
    'CRITICAL': Severity.FATAL,
    'PANIC': Severity.FATAL,
}

ANSI_INTRODUCER = '\x1b['


def classify_severity(text: str) -> Severity:
    """Return the severity of a raw line."""
    match = _THREADTIME_PATTERN.match(text)
    if match:
        return _LOGCAT_LEVELS[match.group('level')]

    match = _KEYWORD_PATTERN.search(text)
    if match:
        return _KEYWORD_LEVELS[match.group(1).upper()]
    return Severity.UNKNOWN


def looks_like_json(text: str) -> bool:
    """Return True when the stripped text is shaped like a JSON object or array."""
    stripped = text.strip()
    if len(stripped) < 2:
        return False
    return (stripped[0] == '{' and stripped[-1] == '}') or (stripped[0] == '[' and stripped[-1] == ']')


@dataclass(frozen=True)
class LogLine:
    """One ingested line; immutable once appended."""

    raw: str
    index: int
    severity: Severity = Severity.UNKNOWN
    has_ansi: bool = False
    is_json: bool = False
    received_at: float = 0.0

    @classmethod
    def from_text(cls, raw: str, index: int, received_at: float = 0.0) -> "LogLine":
        return cls(
            raw=raw,
            index=index,
            severity=classify_severity(raw),
            has_ansi=ANSI_INTRODUCER in raw,
            is_json=looks_like_json(raw),
            received_at=received_at,
        )


@dataclass(frozen=True)
class MatchRange:
    """Half-open ``[start, end)`` character interval where a filter matched."""

    start: int
    end: int

    def __len__(self) -> int:
        return self.end - self.start


class LogEventType(Enum):
    """Kinds of events producers place on the multiplexed queue."""

    LINE = 'line'
    ERROR = 'error'
    END_OF_STREAM = 'end_of_stream'


@dataclass(frozen=True)
class LogEvent:
    """Event emitted by a log source."""

    kind: LogEventType
    source: str = ''
    text: str = ''

    @classmethod
    def line(cls, text: str, source: str = '') -> "LogEvent":
        return cls(LogEventType.LINE, source, text)

    @classmethod
    def error(cls, message: str, source: str = '') -> "LogEvent":
        return cls(LogEventType.ERROR, source, message)

    @classmethod
    def end_of_stream(cls, source: str = '') -> "LogEvent":
        return cls(LogEventType.END_OF_STREAM, source)


class SourceState(Enum):
    """Status of one producer as seen by the consumer loop."""

    RUNNING = 'running'
    ERROR = 'error'
    ENDED = 'ended'


@dataclass
class SourceStatus:
    """Per-source status condition surfaced to the status line."""

    name: str
    state: SourceState = SourceState.RUNNING
    last_error: Optional[str] = None
    lines: int = 0


@dataclass(frozen=True)
class RenderRow:
    """Everything the external renderer needs for one visible row."""

    index: int
    text: str
    matches: List[MatchRange] = field(default_factory=list)
    severity: Severity = Severity.UNKNOWN
    bookmarked: bool = False
    is_json: bool = False
    has_ansi: bool = False
    relative_time: Optional[str] = None
