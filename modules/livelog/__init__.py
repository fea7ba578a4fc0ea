"""Live log subsystem."""

from .models import (
    LogEvent,
    LogEventType,
    LogLine,
    MatchRange,
    RenderRow,
    Severity,
    SourceState,
    SourceStatus,
)
from .filter_engine import ActiveFilter, compile_filter, find_matches, matches
from .log_buffer import LogBuffer
from .filtered_index import DebounceState, FilterDebouncer, FilteredIndex, FilteredIndexMaintainer
from .viewport import Viewport
from .saved_filters import SavedFilter, SavedFilterStore
from .sources import (
    CommandSource,
    FileSource,
    LogSource,
    StreamSource,
    docker_source,
    k8s_source,
    ssh_source,
)
from .multiplexer import SourceMultiplexer
from .session import LiveLogSession, LogPump

__all__ = [
    'ActiveFilter',
    'CommandSource',
    'DebounceState',
    'FileSource',
    'FilterDebouncer',
    'FilteredIndex',
    'FilteredIndexMaintainer',
    'LiveLogSession',
    'LogBuffer',
    'LogEvent',
    'LogEventType',
    'LogLine',
    'LogPump',
    'LogSource',
    'MatchRange',
    'RenderRow',
    'SavedFilter',
    'SavedFilterStore',
    'Severity',
    'SourceMultiplexer',
    'SourceState',
    'SourceStatus',
    'StreamSource',
    'Viewport',
    'compile_filter',
    'docker_source',
    'find_matches',
    'k8s_source',
    'matches',
    'ssh_source',
]
