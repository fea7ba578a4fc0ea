"""Application constants and configuration values."""


class ApplicationConstants:
    """General application constants."""

    # Application info
    APP_NAME = "bark"
    APP_VERSION = "0.3.0"
    APP_DESCRIPTION = "Live log tailing core with filtering, highlighting and bookmarks"

    # Configuration
    CONFIG_FILE_PATH = '~/.bark_config.json'
    BACKUP_CONFIG_FILE_PATH = '~/.bark_config.backup.json'
    SAVED_FILTERS_PATH = '~/.bark/filters.json'


class LiveLogConstants:
    """Defaults and limits for the live log core."""

    # Filter edits are applied once input has been idle this long
    FILTER_DEBOUNCE_MS = 150
    MIN_FILTER_DEBOUNCE_MS = 0
    MAX_FILTER_DEBOUNCE_MS = 5000

    # Consumer loop cadence (~60 iterations per second)
    POLL_INTERVAL_MS = 16
    MIN_POLL_INTERVAL_MS = 1

    # Bounded event queue shared by every source
    EVENT_QUEUE_CAPACITY = 1024
    MIN_EVENT_QUEUE_CAPACITY = 16

    # Upper bound on events consumed per loop iteration
    MAX_EVENTS_PER_TICK = 500

    HORIZONTAL_SCROLL_STEP = 4

    # File source polling
    FILE_POLL_INTERVAL_S = 0.1

    # Producer put() retry window while the queue is full (seconds)
    QUEUE_PUT_TIMEOUT_S = 0.1

    # Source thread join timeout on shutdown (seconds)
    SOURCE_JOIN_TIMEOUT_S = 2.0

    # Seconds granted to a follow command to exit after terminate()
    COMMAND_TERMINATE_TIMEOUT_S = 3.0


class StatusText:
    """Status-line messages surfaced by the consumer session."""

    STREAM_ENDED = 'Stream ended'
    ERROR_PREFIX = 'Error: '
    FILTER_SAVED = 'Saved filter "{name}"'
    FILTER_DELETED = 'Deleted filter "{name}"'
    FILTER_NAME_REQUIRED = 'Filter name required'
    NO_FILTER_TO_SAVE = 'No filter to save'
    NO_BOOKMARKS = 'No bookmarks in view'


class LoggingConstants:
    """Logging configuration constants."""

    DEFAULT_LOG_LEVEL = 'INFO'
    VALID_LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')
