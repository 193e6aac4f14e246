"""Materialize the embedded p4 executable on local disk.

Provisioning steps:
1. Pick the payload for the running platform (see ``platforms``)
2. Decompress the whole zstandard stream into memory
3. Write it next to the target, flush and fsync
4. Mark it executable (POSIX), then atomically move it into place

The provisioner never removes what it writes; the file outlives the process.
"""

from __future__ import annotations

import logging
import os
import sys
import uuid
from dataclasses import dataclass
from pathlib import Path

import zstandard

from ..config import Config, PathMode
from ..errors import ProvisioningError
from .platforms import P4_RELEASE, PlatformKey, detect_platform, select_payload

__all__ = [
    "BinaryProvisioner",
    "BINARY_NAME",
    "EXECUTABLE_MODE",
    "decompress_payload",
    "write_executable",
]

logger = logging.getLogger(__name__)

IS_WINDOWS = sys.platform == "win32"

BINARY_NAME = "p4_binary"

# rwxr-xr-x
EXECUTABLE_MODE = 0o755


def decompress_payload(data: bytes) -> bytes:
    """Decompress a whole zstandard stream, across frame boundaries.

    Raises:
        ProvisioningError: corrupt, truncated or empty payload
    """
    decompressor = zstandard.ZstdDecompressor()
    chunks: list[bytes] = []
    remaining = data

    # One decompressobj per frame; the next frame starts at unused_data
    while True:
        dobj = decompressor.decompressobj()
        try:
            chunks.append(dobj.decompress(remaining))
        except zstandard.ZstdError as e:
            raise ProvisioningError(f"Failed to decompress payload: {e}") from e

        if not dobj.eof:
            raise ProvisioningError("Failed to decompress payload: truncated zstd stream")
        remaining = dobj.unused_data
        if not remaining:
            break

    binary = b"".join(chunks)
    if not binary:
        raise ProvisioningError("Failed to decompress payload: empty executable")
    return binary


def write_executable(binary: bytes, target: Path) -> Path:
    """Write ``binary`` to ``target`` and mark it executable.

    The bytes go to a hidden sibling first and replace ``target`` only after
    fsync + chmod, so a concurrently running copy of ``target`` is never
    truncated under it.

    Returns:
        Absolute path of ``target``
    """
    staging = target.with_name(f".{target.name}.{uuid.uuid4().hex[:8]}.tmp")
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(staging, "wb") as f:
            f.write(binary)
            f.flush()
            os.fsync(f.fileno())
        if not IS_WINDOWS:
            os.chmod(staging, EXECUTABLE_MODE)
        os.replace(staging, target)
    except OSError as e:
        try:
            staging.unlink(missing_ok=True)
        except OSError:
            logger.debug(f"Could not remove staging file {staging}")
        raise ProvisioningError(f"Failed to write executable {target}: {e}") from e

    return Path(os.path.abspath(target))


@dataclass
class BinaryProvisioner:
    """Produces a ready-to-execute p4 binary for one platform.

    Attributes:
        temp_dir: Directory the executable is written to
        path_mode: UNIQUE (per-process name) or FIXED (shared name)
        payload_dir: Directory of ``.zst`` payloads, None = bundled
        platform: Target platform, None = the running one

    Example:
        provisioner = BinaryProvisioner(temp_dir=Path("/tmp"))
        path = provisioner.provision()
    """

    temp_dir: Path
    path_mode: PathMode = PathMode.UNIQUE
    payload_dir: Path | None = None
    platform: PlatformKey | None = None

    @classmethod
    def from_config(cls, config: Config) -> "BinaryProvisioner":
        return cls(
            temp_dir=config.resolved_temp_dir,
            path_mode=config.path_mode,
            payload_dir=config.payload_dir,
        )

    def target_path(self) -> Path:
        """Where ``provision()`` writes the executable."""
        if self.path_mode is PathMode.FIXED:
            name = BINARY_NAME
        else:
            name = f"{BINARY_NAME}.{os.getpid()}"
        if IS_WINDOWS:
            name += ".exe"
        return self.temp_dir / name

    def provision(self) -> Path:
        """Select, decompress and write the payload.

        Returns:
            Absolute path to the executable

        Raises:
            UnsupportedPlatformError: no payload for the platform
            ProvisioningError: decompression or filesystem failure
        """
        key = self.platform or detect_platform()
        load = select_payload(key, self.payload_dir)

        try:
            compressed = load()
        except OSError as e:
            raise ProvisioningError(f"Failed to read payload for {key}: {e}") from e

        binary = decompress_payload(compressed)
        target = self.target_path()
        path = write_executable(binary, target)

        logger.debug(
            f"Provisioned p4 {P4_RELEASE} for {key} at {path} "
            f"({len(compressed)} -> {len(binary)} bytes, mode={self.path_mode.value})"
        )
        return path
