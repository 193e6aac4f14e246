"""Async adapter over Invocation.

Each pull runs ``Invocation.pull`` in a worker thread through anyio, so the
blocking pipe reads never stall the event loop. Ordering, merge policy and
cleanup semantics are exactly those of the wrapped Invocation.
"""

from __future__ import annotations

import os
from collections.abc import Sequence
from functools import partial
from typing import Any

import anyio

from .invocation import Invocation, InvocationState
from .merge import Merger
from .records import StderrLine, StdoutLine

__all__ = ["AsyncInvocation"]


class AsyncInvocation:
    """Async-iterable view of one Invocation.

    Example:
        async with await AsyncInvocation.spawn([path, "--help"]) as inv:
            async for record in inv:
                print(record)
    """

    def __init__(self, invocation: Invocation) -> None:
        self.invocation = invocation

    @classmethod
    async def spawn(
        cls,
        argv: Sequence[str | os.PathLike[str]],
        *,
        merge: str | type[Merger] = "stdout-first",
        encoding: str = "utf-8",
    ) -> AsyncInvocation:
        """Spawn the child off the event loop and wrap it."""
        invocation = await anyio.to_thread.run_sync(
            partial(Invocation, argv, merge=merge, encoding=encoding)
        )
        return cls(invocation)

    @property
    def pid(self) -> int:
        return self.invocation.pid

    @property
    def state(self) -> InvocationState:
        return self.invocation.state

    @property
    def returncode(self) -> int | None:
        return self.invocation.returncode

    async def pull(self) -> StdoutLine | StderrLine | None:
        return await anyio.to_thread.run_sync(self.invocation.pull)

    async def wait(self, timeout: float | None = None) -> int:
        return await anyio.to_thread.run_sync(self.invocation.wait, timeout)

    async def aclose(self) -> None:
        await anyio.to_thread.run_sync(self.invocation.close)

    def __aiter__(self) -> AsyncInvocation:
        return self

    async def __anext__(self) -> StdoutLine | StderrLine:
        record = await self.pull()
        if record is None:
            raise StopAsyncIteration
        return record

    async def __aenter__(self) -> AsyncInvocation:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
