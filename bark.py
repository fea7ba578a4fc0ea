"""Entry point for bark, a live log tail with filtering and bookmarks."""

import argparse
import os
import shutil
import signal
import sys
import time
from typing import IO, List, Optional, Sequence

from PyQt6.QtCore import QCoreApplication

from config.config_manager import ConfigManager, apply_env_overrides
from config.constants import ApplicationConstants
from modules.livelog import (
    FileSource,
    LiveLogSession,
    LogPump,
    LogSource,
    RenderRow,
    SavedFilterStore,
    Severity,
    SourceMultiplexer,
    StreamSource,
    docker_source,
    k8s_source,
    ssh_source,
)
from utils import common

logger = common.get_logger('bark')

__all__ = [
    "StdoutRenderer",
    "build_sources",
    "format_row",
    "main",
    "parse_args",
]

_RESET = '\x1b[0m'
_HIGHLIGHT = '\x1b[7m'
_SEVERITY_COLORS = {
    Severity.TRACE: '\x1b[2m',
    Severity.DEBUG: '\x1b[36m',
    Severity.INFO: '\x1b[32m',
    Severity.WARN: '\x1b[33m',
    Severity.ERROR: '\x1b[31m',
    Severity.FATAL: '\x1b[1;31m',
}


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog=ApplicationConstants.APP_NAME,
        description=ApplicationConstants.APP_DESCRIPTION,
    )
    parser.add_argument('paths', nargs='*', help="Log files to follow ('-' reads standard input)")
    parser.add_argument('--docker', action='append', default=[], metavar='CONTAINER', help='Follow docker container logs')
    parser.add_argument('--k8s', action='append', default=[], metavar='POD', help='Follow kubernetes pod logs')
    parser.add_argument('-n', '--namespace', help='Namespace for --k8s pods')
    parser.add_argument('-c', '--container', help='Container for --k8s pods')
    parser.add_argument('--ssh', nargs=2, action='append', default=[], metavar=('HOST', 'PATH'), help='Follow a remote file over ssh')
    parser.add_argument('--filter', default='', help='Initial filter pattern')
    parser.add_argument('--regex', action='store_true', help='Treat --filter as a regular expression')
    parser.add_argument('--tail', action='store_true', help='Start files at their end instead of the beginning')
    parser.add_argument('--no-follow', action='store_true', help='Read files once and exit')
    parser.add_argument('--config', help='Configuration file path')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')
    parser.add_argument('--version', action='version', version=f'%(prog)s {ApplicationConstants.APP_VERSION}')
    return parser.parse_args(argv)


def build_sources(args: argparse.Namespace, stdin: Optional[IO[str]] = None) -> List[LogSource]:
    """Translate parsed arguments into log sources, files first."""
    sources: List[LogSource] = []
    for path in args.paths:
        if path == '-':
            sources.append(StreamSource('stdin', stdin or sys.stdin))
        else:
            sources.append(FileSource(path, from_start=not args.tail, follow=not args.no_follow))
    for container in args.docker:
        sources.append(docker_source(container))
    for pod in args.k8s:
        sources.append(k8s_source(pod, namespace=args.namespace, container=args.container))
    for host, path in args.ssh:
        sources.append(ssh_source(host, path))
    return sources


def format_row(row: RenderRow, color: bool = False, level_colors: bool = True) -> str:
    """Render one row as terminal text; matches are shown in reverse video when coloring."""
    prefix = '* ' if row.bookmarked else ''
    if row.relative_time:
        prefix += f'{row.relative_time:>8} '

    if not color or row.has_ansi:
        return prefix + row.text

    pieces: List[str] = []
    cursor = 0
    for match in row.matches:
        pieces.append(row.text[cursor:match.start])
        pieces.append(f'{_HIGHLIGHT}{row.text[match.start:match.end]}{_RESET}')
        cursor = match.end
    pieces.append(row.text[cursor:])
    body = ''.join(pieces)

    severity_color = _SEVERITY_COLORS.get(row.severity) if level_colors else None
    if severity_color and not row.matches:
        body = f'{severity_color}{body}{_RESET}'
    return prefix + body


class StdoutRenderer:
    """Prints rows as they join the filtered index."""

    def __init__(self, session: LiveLogSession, stream: Optional[IO[str]] = None, color: Optional[bool] = None) -> None:
        self._session = session
        self._stream = stream or sys.stdout
        self._color = self._stream.isatty() if color is None else color
        # Sequence index of the last printed row
        self._last_printed = -1

    def flush(self) -> int:
        index = self._session.maintainer.index
        fresh = index.slice(index.first_position_after(self._last_printed), len(index))
        if not fresh:
            return 0

        now = time.time()
        for row in self._session.rows_for(fresh, now=now):
            self._stream.write(format_row(row, self._color, self._session.level_colors) + '\n')
        self._stream.flush()
        self._last_printed = fresh[-1]
        return len(fresh)

    def show_status(self, message: str) -> None:
        if message:
            sys.stderr.write(f'[{ApplicationConstants.APP_NAME}] {message}\n')


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main application entry point."""
    args = parse_args(argv)
    sources = build_sources(args)
    if not sources:
        sys.stderr.write('bark: no log source given (see --help)\n')
        return 2

    config_manager = ConfigManager(args.config)
    config = config_manager.load_config()
    settings = apply_env_overrides(config.livelog, os.environ)
    common.set_log_level('DEBUG' if args.debug else config.logging.log_level)
    if not config.logging.log_to_file:
        common.detach_file_handlers()

    app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])
    app.setApplicationName(ApplicationConstants.APP_NAME)
    app.setApplicationVersion(ApplicationConstants.APP_VERSION)

    session = LiveLogSession(
        settings=settings,
        saved_filter_store=SavedFilterStore(settings.saved_filters_path),
        height=max(1, shutil.get_terminal_size().lines - 1),
        source_names=[source.name for source in sources],
    )
    if args.filter:
        session.apply_filter_now(args.filter, args.regex)

    multiplexer = SourceMultiplexer(sources, capacity=settings.queue_capacity)
    pump = LogPump(session, multiplexer.queue)
    renderer = StdoutRenderer(session)

    def on_updated() -> None:
        renderer.flush()

    def on_idle_check() -> None:
        if not multiplexer.is_running() and multiplexer.queue.empty():
            logger.info('All sources finished')
            app.quit()

    pump.updated.connect(on_updated)
    pump.status_changed.connect(renderer.show_status)
    pump.timer.timeout.connect(on_idle_check)
    signal.signal(signal.SIGINT, lambda *_: app.quit())

    with common.trace_id_scope('main'):
        logger.info('Starting %s with %s source(s)', ApplicationConstants.APP_NAME, len(sources))
        multiplexer.start()
        pump.start()
        try:
            exit_code = app.exec()
        finally:
            pump.stop()
            multiplexer.stop()
            while pump.pump_once():
                pass
            renderer.flush()
    return exit_code


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
