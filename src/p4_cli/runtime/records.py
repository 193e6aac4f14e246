"""Line records emitted by an invocation.

A record is one line of child output tagged with the stream it came from.
Records print as their bare text so callers can pass output straight through.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

__all__ = [
    "Stream",
    "StdoutLine",
    "StderrLine",
    "LineRecord",
    "CompletedRun",
    "split_line",
    "is_line_safe_encoding",
]


class Stream(str, Enum):
    """Origin stream of a line."""

    STDOUT = "stdout"
    STDERR = "stderr"


def split_line(raw: bytes) -> bytes:
    """Strip one line terminator (``\\n`` or ``\\r\\n``) from ``raw``.

    Other trailing whitespace is kept.
    """
    if raw.endswith(b"\n"):
        raw = raw[:-1]
        if raw.endswith(b"\r"):
            raw = raw[:-1]
    return raw


def is_line_safe_encoding(encoding: str) -> bool:
    """True if ``encoding`` writes ``\\r`` and ``\\n`` as the single ASCII bytes.

    Lines are split on raw bytes before decoding, so UTF-16/UTF-32 and other
    encodings with multi-byte terminators cannot be read line by line.
    """
    try:
        return "\r\n".encode(encoding) == b"\r\n"
    except (LookupError, UnicodeError):
        return False


class _LineBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str

    def __str__(self) -> str:
        return self.text


class StdoutLine(_LineBase):
    """A line read from the child's standard output."""

    stream: Literal[Stream.STDOUT] = Stream.STDOUT


class StderrLine(_LineBase):
    """A line read from the child's standard error."""

    stream: Literal[Stream.STDERR] = Stream.STDERR


LineRecord = Annotated[StdoutLine | StderrLine, Field(discriminator="stream")]


class CompletedRun(BaseModel):
    """Every record of one drained invocation plus its exit status.

    Attributes:
        args: Arguments the tool was invoked with
        records: Records in emission order
        returncode: Child exit status
    """

    model_config = ConfigDict(frozen=True)

    args: list[str] = Field(default_factory=list)
    records: list[LineRecord] = Field(default_factory=list)
    returncode: int

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def stdout_lines(self) -> list[str]:
        return [r.text for r in self.records if r.stream == Stream.STDOUT]

    @property
    def stderr_lines(self) -> list[str]:
        return [r.text for r in self.records if r.stream == Stream.STDERR]
