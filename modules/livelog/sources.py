"""Log sources: producers of line, error and end-of-stream events.

Every source is consumed through the same small interface: a ``name`` and a
blocking ``stream(stop_event)`` generator run on a producer thread. The
consumer loop never looks at concrete transports.
"""

from __future__ import annotations

import os
import subprocess
import threading
from abc import ABC, abstractmethod
from typing import IO, Iterator, List, Optional, Sequence

from config.constants import LiveLogConstants
from utils import common

from .models import LogEvent

logger = common.get_logger('log_sources')


def _strip_newline(text: str) -> str:
    if text.endswith('\n'):
        text = text[:-1]
    if text.endswith('\r'):
        text = text[:-1]
    return text


class LogSource(ABC):
    """Capability interface shared by every transport."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable source name shown in status messages."""

    @abstractmethod
    def stream(self, stop_event: threading.Event) -> Iterator[LogEvent]:
        """Yield events until the transport ends or ``stop_event`` is set."""

    def close(self) -> None:
        """Release transport resources; may be called from another thread."""


class StreamSource(LogSource):
    """Reads lines from an already-open text stream (stdin, a pipe) until EOF."""

    def __init__(self, name: str, handle: IO[str]) -> None:
        self._name = name
        self._handle = handle

    @property
    def name(self) -> str:
        return self._name

    def stream(self, stop_event: threading.Event) -> Iterator[LogEvent]:
        try:
            for raw in self._handle:
                if stop_event.is_set():
                    return
                yield LogEvent.line(_strip_newline(raw), self._name)
        except (OSError, ValueError) as exc:
            logger.warning('Reading %s failed: %s', self._name, exc)
            yield LogEvent.error(str(exc), self._name)
        yield LogEvent.end_of_stream(self._name)


class FileSource(LogSource):
    """Tails a file, surviving truncation and rotation.

    Incomplete trailing lines are held back until their newline arrives. When
    the file is truncated or replaced (new inode), the pending fragment is
    flushed and the file is reopened from the start.
    """

    def __init__(
        self,
        path: str,
        from_start: bool = True,
        poll_interval_s: float = LiveLogConstants.FILE_POLL_INTERVAL_S,
        follow: bool = True,
    ) -> None:
        self.path = os.path.expanduser(path)
        self.from_start = from_start
        self.poll_interval_s = poll_interval_s
        self.follow = follow
        self._closed = threading.Event()
        self._handle: Optional[IO[bytes]] = None
        self._inode: Optional[int] = None

    @property
    def name(self) -> str:
        return os.path.basename(self.path) or self.path

    def close(self) -> None:
        self._closed.set()

    def _open(self, from_start: bool) -> None:
        self._handle = open(self.path, 'rb')
        stat = os.fstat(self._handle.fileno())
        self._inode = stat.st_ino
        if not from_start:
            self._handle.seek(0, os.SEEK_END)

    def _release(self) -> None:
        if self._handle is not None:
            try:
                self._handle.close()
            except OSError as exc:
                logger.debug('Closing %s failed: %s', self.path, exc)
        self._handle = None

    def _rotated(self) -> bool:
        try:
            stat = os.stat(self.path)
        except FileNotFoundError:
            return False
        if self._handle is None:
            return True
        return stat.st_ino != self._inode or stat.st_size < self._handle.tell()

    def _decode(self, data: bytes) -> str:
        return _strip_newline(data.decode('utf-8', errors='replace'))

    def stream(self, stop_event: threading.Event) -> Iterator[LogEvent]:
        try:
            self._open(self.from_start)
        except FileNotFoundError:
            yield LogEvent.error(f'No such file: {self.path}', self.name)
            yield LogEvent.end_of_stream(self.name)
            return
        except OSError as exc:
            logger.warning('Opening %s failed: %s', self.path, exc)
            yield LogEvent.error(f'Cannot open {self.path}: {exc}', self.name)
            yield LogEvent.end_of_stream(self.name)
            return

        logger.info('Tailing %s (from_start=%s, follow=%s)', self.path, self.from_start, self.follow)
        pending = b''
        try:
            while not (stop_event.is_set() or self._closed.is_set()):
                if self._handle is None:
                    stop_event.wait(self.poll_interval_s)
                    try:
                        self._open(from_start=True)
                    except OSError:
                        continue

                chunk = self._handle.readline()
                if chunk:
                    if chunk.endswith(b'\n'):
                        yield LogEvent.line(self._decode(pending + chunk), self.name)
                        pending = b''
                    else:
                        pending += chunk
                    continue

                if not self.follow:
                    break

                if self._rotated():
                    logger.info('%s was truncated or rotated; reopening', self.path)
                    if pending:
                        yield LogEvent.line(self._decode(pending), self.name)
                        pending = b''
                    self._release()
                    try:
                        self._open(from_start=True)
                    except OSError as exc:
                        logger.debug('Reopen of %s deferred: %s', self.path, exc)
                    continue

                stop_event.wait(self.poll_interval_s)
        except OSError as exc:
            logger.warning('Reading %s failed: %s', self.path, exc)
            yield LogEvent.error(str(exc), self.name)
            yield LogEvent.end_of_stream(self.name)
            return
        finally:
            self._release()

        if not self.follow:
            if pending:
                yield LogEvent.line(self._decode(pending), self.name)
            yield LogEvent.end_of_stream(self.name)


class CommandSource(LogSource):
    """Runs a follow command and streams its merged stdout/stderr line by line."""

    def __init__(
        self,
        name: str,
        argv: Sequence[str],
        terminate_timeout_s: float = LiveLogConstants.COMMAND_TERMINATE_TIMEOUT_S,
    ) -> None:
        if not argv:
            raise ValueError('argv must not be empty')
        self._name = name
        self.argv: List[str] = list(argv)
        self.terminate_timeout_s = terminate_timeout_s
        self._process: Optional[subprocess.Popen] = None
        self._lock = threading.Lock()
        self._closed = False

    @property
    def name(self) -> str:
        return self._name

    def stream(self, stop_event: threading.Event) -> Iterator[LogEvent]:
        program = self.argv[0]
        try:
            process = subprocess.Popen(
                self.argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                encoding='utf-8',
                errors='replace',
                bufsize=1,
            )
        except FileNotFoundError:
            yield LogEvent.error(f'{program} executable not found', self._name)
            yield LogEvent.end_of_stream(self._name)
            return
        except OSError as exc:
            yield LogEvent.error(f'Failed to start {program}: {exc}', self._name)
            yield LogEvent.end_of_stream(self._name)
            return

        with self._lock:
            self._process = process
            closed = self._closed
        if closed:
            self._terminate(process)

        logger.info('Started %s (pid %s): %s', self._name, process.pid, ' '.join(self.argv))
        try:
            for raw in process.stdout:
                if stop_event.is_set():
                    break
                yield LogEvent.line(_strip_newline(raw), self._name)
        finally:
            process.stdout.close()

        if stop_event.is_set() or self._closed:
            self._terminate(process)
            return

        returncode = process.wait()
        logger.info('%s exited with status %s', self._name, returncode)
        if returncode != 0:
            yield LogEvent.error(f'{program} exited with status {returncode}', self._name)
        yield LogEvent.end_of_stream(self._name)

    def close(self) -> None:
        with self._lock:
            self._closed = True
            process = self._process
        if process is not None:
            self._terminate(process)

    def _terminate(self, process: subprocess.Popen) -> None:
        if process.poll() is not None:
            return
        try:
            process.terminate()
            process.wait(timeout=self.terminate_timeout_s)
        except subprocess.TimeoutExpired:
            logger.warning('%s did not exit after terminate; killing', self._name)
            process.kill()
        except OSError as exc:
            logger.debug('Terminating %s skipped: %s', self._name, exc)


def docker_source(container: str) -> CommandSource:
    return CommandSource(f'docker:{container}', ['docker', 'logs', '-f', container])


def k8s_source(pod: str, namespace: Optional[str] = None, container: Optional[str] = None) -> CommandSource:
    argv = ['kubectl', 'logs', '-f', pod]
    if namespace:
        argv.extend(['-n', namespace])
    if container:
        argv.extend(['-c', container])
    name = f'k8s:{namespace}/{pod}' if namespace else f'k8s:{pod}'
    return CommandSource(name, argv)


def ssh_source(host: str, path: str) -> CommandSource:
    return CommandSource(f'ssh:{host}:{path}', ['ssh', host, 'tail', '-F', path])


__all__ = [
    'CommandSource',
    'FileSource',
    'LogSource',
    'StreamSource',
    'docker_source',
    'k8s_source',
    'ssh_source',
]
