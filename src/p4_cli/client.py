"""P4Cli client: provision the embedded p4 once, then run it on demand.

用法:
    p4 = P4Cli()
    for record in p4.run(["-V"]):
        print(record)
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from .config import Config, get_config
from .provisioning import BinaryProvisioner
from .runtime import AsyncInvocation, CompletedRun, Invocation, Merger

__all__ = ["P4Cli", "ToolHandle"]

logger = logging.getLogger(__name__)

Args = Iterable[str | os.PathLike[str]]


@dataclass(frozen=True)
class ToolHandle:
    """Path of the provisioned executable."""

    path: Path

    def __str__(self) -> str:
        return str(self.path)


class P4Cli:
    """Embedded Perforce command-line client.

    Construction provisions the executable (fatal on failure); the resulting
    handle is shared read-only by every run from this object.

    Attributes:
        config: 生效的配置
        handle: 已落盘的可执行文件
    """

    def __init__(
        self,
        config: Config | None = None,
        *,
        provisioner: BinaryProvisioner | None = None,
    ) -> None:
        """Provision the executable.

        Args:
            config: 配置（默认从环境变量读取）
            provisioner: 自定义 provisioner（默认按 config 构造）

        Raises:
            UnsupportedPlatformError: no payload for this platform
            ProvisioningError: decompression or filesystem failure
        """
        self.config = config if config is not None else get_config()
        if provisioner is None:
            provisioner = BinaryProvisioner.from_config(self.config)
        self.handle = ToolHandle(provisioner.provision())
        logger.debug(f"P4Cli ready bin_path={self.handle.path}")

    @property
    def bin_path(self) -> Path:
        return self.handle.path

    def _argv(self, args: Args) -> list[str | os.PathLike[str]]:
        return [self.handle.path, *args]

    def run(self, args: Args, *, merge: str | type[Merger] | None = None) -> Invocation:
        """Spawn p4 with ``args`` and return its record sequence.

        Args:
            args: Argument tokens, passed verbatim (no shell)
            merge: Merge policy, defaults to ``config.merge``

        Raises:
            SpawnError: the OS refused to start the process
        """
        return Invocation(
            self._argv(args),
            merge=merge or self.config.merge,
            encoding=self.config.encoding,
        )

    async def arun(
        self,
        args: Args,
        *,
        merge: str | type[Merger] | None = None,
    ) -> AsyncInvocation:
        """Async counterpart of ``run``."""
        return await AsyncInvocation.spawn(
            self._argv(args),
            merge=merge or self.config.merge,
            encoding=self.config.encoding,
        )

    def collect(self, args: Args, *, merge: str | type[Merger] | None = None) -> CompletedRun:
        """Run p4 to completion and return every record plus the exit status.

        Convenience for callers that do not need streaming.
        """
        invocation = self.run(args, merge=merge)
        with invocation:
            records = list(invocation)
        return CompletedRun(
            args=invocation.args[1:],
            records=records,
            returncode=invocation.wait(),
        )

    def __repr__(self) -> str:
        return f"P4Cli(bin_path={self.handle.path}, merge={self.config.merge})"
