"""Merge policies combining a child's stdout and stderr into one sequence.

Two policies are available:
- ``stdout-first``: each pull reads the next stdout line and falls through
  to stderr only once stdout has reached end-of-input. This is the
  compatibility default. It is not chronological: stderr lines are held
  back until stdout closes, and a child that fills the stderr pipe while
  stdout is still open will stall until stdout closes.
- ``arrival``: two background threads read the pipes and push tagged lines
  into a single queue, so records come out in the order they arrived.

Both read pull-driven from the caller's side; the Invocation serializes pulls.
"""

from __future__ import annotations

import logging
import queue
import threading
from abc import ABC, abstractmethod
from typing import IO, ClassVar

from ..errors import P4CliError, StreamDecodeError
from .records import StderrLine, StdoutLine, Stream, split_line

__all__ = [
    "LineReader",
    "Merger",
    "StdoutFirstMerger",
    "ArrivalOrderMerger",
    "MERGE_POLICIES",
    "resolve_merge",
]

logger = logging.getLogger(__name__)


class LineReader:
    """Reads newline-terminated lines from one pipe.

    Lines are split on ``\\n`` only and decoded strictly; a decode failure
    raises ``StreamDecodeError`` and leaves the reader at end-of-input.
    """

    def __init__(self, pipe: IO[bytes], stream: Stream, encoding: str = "utf-8") -> None:
        self.stream = stream
        self._pipe = pipe
        self._encoding = encoding
        self._eof = False

    @property
    def eof(self) -> bool:
        return self._eof

    def read_line(self) -> str | None:
        """Return the next line without its terminator, or None at end-of-input."""
        if self._eof:
            return None

        raw = self._pipe.readline()
        if not raw:
            self._eof = True
            return None

        data = split_line(raw)
        try:
            return data.decode(self._encoding)
        except UnicodeDecodeError as e:
            self._eof = True
            raise StreamDecodeError(self.stream.value, data, str(e)) from e

    def close(self) -> None:
        self._eof = True
        self._pipe.close()


def _make_record(stream: Stream, text: str) -> StdoutLine | StderrLine:
    if stream == Stream.STDOUT:
        return StdoutLine(text=text)
    return StderrLine(text=text)


class Merger(ABC):
    """Produces records from a pair of readers, one pull at a time."""

    name: ClassVar[str]

    def __init__(self, stdout: LineReader, stderr: LineReader) -> None:
        self.stdout = stdout
        self.stderr = stderr

    @abstractmethod
    def pull(self) -> StdoutLine | StderrLine | None:
        """Return the next record, or None once both streams are exhausted."""

    def close(self) -> None:
        """Release both pipes."""
        self.stdout.close()
        self.stderr.close()


class StdoutFirstMerger(Merger):
    """Drain stdout first, then stderr, one line per pull."""

    name = "stdout-first"

    def pull(self) -> StdoutLine | StderrLine | None:
        line = self.stdout.read_line()
        if line is not None:
            return StdoutLine(text=line)

        line = self.stderr.read_line()
        if line is not None:
            return StderrLine(text=line)

        return None


# Queue sentinel: a reader reached end-of-input
_EOF = object()


class ArrivalOrderMerger(Merger):
    """Emit lines in the order background readers receive them.

    Each pipe has a daemon thread that owns it: the thread reads until
    end-of-input and then closes the pipe itself. ``close()`` only tells the
    threads to stop queueing; they keep draining so the child never blocks
    on a full pipe, and release the pipes when the child closes them.

    The queue holds at most ``queue_size`` lines. A slow consumer makes the
    readers wait, and the child then blocks on its pipes as it would
    without the threads.
    """

    name = "arrival"
    queue_size: ClassVar[int] = 1024

    # Seconds between checks for close() while the queue is full
    _PUT_INTERVAL = 0.1

    def __init__(self, stdout: LineReader, stderr: LineReader) -> None:
        super().__init__(stdout, stderr)
        self._queue: queue.Queue[tuple[Stream, object]] = queue.Queue(maxsize=self.queue_size)
        self._closed = threading.Event()
        self._open_streams = 2
        self._threads = [
            threading.Thread(
                target=self._pump,
                args=(reader,),
                name=f"p4-{reader.stream.value}-reader",
                daemon=True,
            )
            for reader in (stdout, stderr)
        ]
        for thread in self._threads:
            thread.start()

    def _pump(self, reader: LineReader) -> None:
        item: object = _EOF
        try:
            while True:
                line = reader.read_line()
                if line is None:
                    break
                self._put((reader.stream, line))
        except (P4CliError, OSError, ValueError) as e:
            # ValueError: pipe closed underneath the reader
            item = e
        finally:
            try:
                reader.close()
            except OSError as e:
                logger.debug(f"Closing {reader.stream.value} pipe failed: {e}")
            self._put((reader.stream, item))

    def _put(self, entry: tuple[Stream, object]) -> None:
        """Queue ``entry``, or drop it once the merger is closed."""
        while not self._closed.is_set():
            try:
                self._queue.put(entry, timeout=self._PUT_INTERVAL)
                return
            except queue.Full:
                continue

    def pull(self) -> StdoutLine | StderrLine | None:
        while self._open_streams > 0:
            stream, item = self._queue.get()
            if item is _EOF:
                self._open_streams -= 1
                continue
            if isinstance(item, BaseException):
                self._open_streams -= 1
                raise item
            return _make_record(stream, item)  # type: ignore[arg-type]
        return None

    def close(self) -> None:
        self._closed.set()


MERGE_POLICIES: dict[str, type[Merger]] = {
    StdoutFirstMerger.name: StdoutFirstMerger,
    ArrivalOrderMerger.name: ArrivalOrderMerger,
}


def resolve_merge(policy: str | type[Merger]) -> type[Merger]:
    """Look up a merge policy by name, or pass a Merger subclass through."""
    if isinstance(policy, type) and issubclass(policy, Merger):
        return policy
    try:
        return MERGE_POLICIES[str(policy).strip().lower()]
    except KeyError:
        known = ", ".join(sorted(MERGE_POLICIES))
        raise ValueError(f"Unknown merge policy {policy!r} (known: {known})") from None
