"""Runtime module: spawn the tool and read its two output streams as records.

This module provides pull-driven, order-preserving line sequences over a
child's stdout and stderr, with a swappable merge policy and an anyio-based
async adapter.
"""

from __future__ import annotations

from .aio import AsyncInvocation
from .invocation import Invocation, InvocationState
from .merge import (
    MERGE_POLICIES,
    ArrivalOrderMerger,
    LineReader,
    Merger,
    StdoutFirstMerger,
    resolve_merge,
)
from .records import CompletedRun, LineRecord, StderrLine, StdoutLine, Stream

__all__ = [
    "ArrivalOrderMerger",
    "AsyncInvocation",
    "CompletedRun",
    "Invocation",
    "InvocationState",
    "LineReader",
    "LineRecord",
    "MERGE_POLICIES",
    "Merger",
    "StderrLine",
    "StdoutFirstMerger",
    "StdoutLine",
    "Stream",
    "resolve_merge",
]
