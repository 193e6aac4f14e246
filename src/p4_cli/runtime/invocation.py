"""One run of the provisioned tool, exposed as a pull-driven line sequence.

An Invocation owns a child process and both of its output pipes. Records are
read synchronously when the caller pulls; there is no background pumping
unless the ``arrival`` merge policy is chosen.

Lifecycle:
    SPAWNED -> DRAINING -> EXHAUSTED
                        \\-> CLOSED (dropped early, or a read error)

Key design points:
- Standard input is inherited from the parent; callers cannot feed input
- One lock serializes pulls, so concurrent consumers get whole, distinct lines
- Exhaustion reaps the child and exposes ``returncode``
- Closing early releases the pipes but never kills the child; it is reaped
  on a daemon thread so closing does not wait for it to exit
"""

from __future__ import annotations

import logging
import os
import subprocess
import threading
from collections.abc import Sequence
from enum import Enum
from typing import Any

from ..errors import SpawnError
from .merge import LineReader, Merger, resolve_merge
from .records import StderrLine, StdoutLine, Stream, is_line_safe_encoding

__all__ = [
    "Invocation",
    "InvocationState",
]

logger = logging.getLogger(__name__)


class InvocationState(str, Enum):
    SPAWNED = "spawned"
    DRAINING = "draining"
    EXHAUSTED = "exhausted"
    CLOSED = "closed"


class Invocation:
    """Lazy, single-pass, finite sequence of records from one child process.

    Not restartable: run the tool again to get a fresh sequence.

    Example:
        with Invocation(["/tmp/p4_binary", "info"]) as inv:
            for record in inv:
                print(record)
        print(inv.returncode)
    """

    def __init__(
        self,
        argv: Sequence[str | os.PathLike[str]],
        *,
        merge: str | type[Merger] = "stdout-first",
        encoding: str = "utf-8",
    ) -> None:
        """Spawn the child.

        Args:
            argv: Executable followed by its arguments, passed verbatim
            merge: Merge policy name or Merger subclass
            encoding: Text encoding of both output streams

        Raises:
            SpawnError: the OS refused to start the process
            ValueError: unknown merge policy, or an encoding whose line
                terminators are not the single bytes ``\\r`` / ``\\n``
        """
        self.args: list[str] = [os.fspath(a) for a in argv]
        merger_cls = resolve_merge(merge)
        if not is_line_safe_encoding(encoding):
            raise ValueError(f"Encoding {encoding!r} cannot be split into lines")
        self._lock = threading.Lock()
        self._state = InvocationState.SPAWNED

        try:
            self._process = subprocess.Popen(
                self.args,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except (OSError, ValueError) as e:
            raise SpawnError(self.args, str(e)) from e

        assert self._process.stdout is not None and self._process.stderr is not None
        self._merger: Merger = merger_cls(
            LineReader(self._process.stdout, Stream.STDOUT, encoding),
            LineReader(self._process.stderr, Stream.STDERR, encoding),
        )

        logger.debug(
            f"Started subprocess pid={self._process.pid} "
            f"argv={self.args[0]} merge={merger_cls.name}"
        )

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def state(self) -> InvocationState:
        return self._state

    @property
    def returncode(self) -> int | None:
        """Exit status, known once the sequence is exhausted (or the child was reaped)."""
        return self._process.returncode

    def pull(self) -> StdoutLine | StderrLine | None:
        """Return the next record, or None once both streams are drained.

        Raises:
            StreamDecodeError: malformed bytes on a pipe; the sequence ends
        """
        with self._lock:
            if self._state in (InvocationState.EXHAUSTED, InvocationState.CLOSED):
                return None
            self._state = InvocationState.DRAINING

            try:
                record = self._merger.pull()
            except Exception:
                self._abort()
                raise

            if record is None:
                self._finish()
            return record

    def wait(self, timeout: float | None = None) -> int:
        """Block until the child exits and return its status.

        Raises:
            subprocess.TimeoutExpired: child still running after ``timeout``
        """
        return self._process.wait(timeout)

    def close(self) -> None:
        """Release the pipes without killing the child. Idempotent."""
        with self._lock:
            if self._state in (InvocationState.EXHAUSTED, InvocationState.CLOSED):
                return
            self._abort()
            logger.debug(f"Closed invocation early pid={self._process.pid}")

    def _finish(self) -> None:
        self._merger.close()
        self._process.wait()
        self._state = InvocationState.EXHAUSTED
        logger.debug(
            f"Subprocess completed pid={self._process.pid} "
            f"returncode={self._process.returncode}"
        )

    def _abort(self) -> None:
        self._state = InvocationState.CLOSED
        try:
            self._merger.close()
        finally:
            self._reap_in_background()

    def _reap_in_background(self) -> None:
        if self._process.poll() is not None:
            return
        threading.Thread(
            target=self._process.wait,
            name=f"p4-reaper-{self._process.pid}",
            daemon=True,
        ).start()

    def __iter__(self) -> Invocation:
        return self

    def __next__(self) -> StdoutLine | StderrLine:
        record = self.pull()
        if record is None:
            raise StopIteration
        return record

    def __enter__(self) -> Invocation:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def __del__(self) -> None:
        if getattr(self, "_merger", None) is not None:
            self.close()

    def __repr__(self) -> str:
        return (
            f"Invocation(pid={self._process.pid}, state={self._state.value}, "
            f"returncode={self._process.returncode})"
        )
