"""Platform capability table for the embedded p4 payloads.

One compressed payload exists per supported (operating system, CPU
architecture) pair. Selection happens once, at provisioning time; any other
pair is refused outright rather than degraded.
"""

from __future__ import annotations

import logging
import platform
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from ..errors import PayloadNotFoundError, UnsupportedPlatformError
from ..payloads import read_payload

__all__ = [
    "PlatformKey",
    "PayloadLoader",
    "SUPPORTED_PLATFORMS",
    "P4_RELEASE",
    "detect_platform",
    "payload_name",
    "select_payload",
]

logger = logging.getLogger(__name__)

# Perforce release the payloads were built from
P4_RELEASE: Final[str] = "2025.1"

PayloadLoader = Callable[[], bytes]

_SYSTEM_ALIASES: Final[dict[str, str]] = {
    "windows": "windows",
    "win32": "windows",
    "darwin": "macos",
    "macos": "macos",
    "linux": "linux",
}

_MACHINE_ALIASES: Final[dict[str, str]] = {
    "x86_64": "x86_64",
    "amd64": "x86_64",
    "x64": "x86_64",
    "arm64": "arm64",
    "aarch64": "arm64",
}


@dataclass(frozen=True)
class PlatformKey:
    """Normalized (system, machine) pair, e.g. ``PlatformKey("linux", "x86_64")``."""

    system: str
    machine: str

    @classmethod
    def of(cls, system: str, machine: str) -> "PlatformKey":
        """Build a key from raw ``platform.system()`` / ``platform.machine()`` values."""
        raw_system = system.strip().lower()
        raw_machine = machine.strip().lower()
        return cls(
            _SYSTEM_ALIASES.get(raw_system, raw_system),
            _MACHINE_ALIASES.get(raw_machine, raw_machine),
        )

    def __str__(self) -> str:
        return f"{self.system}-{self.machine}"


# (system, machine) -> payload slug
SUPPORTED_PLATFORMS: Final[dict[PlatformKey, str]] = {
    PlatformKey("windows", "x86_64"): "win-x64",
    PlatformKey("macos", "arm64"): "mac-arm64",
    PlatformKey("macos", "x86_64"): "mac-x64",
    PlatformKey("linux", "x86_64"): "linux-x64",
    PlatformKey("linux", "arm64"): "linux-arm64",
}


def detect_platform() -> PlatformKey:
    """Return the normalized key of the running interpreter's platform."""
    return PlatformKey.of(platform.system(), platform.machine())


def payload_name(key: PlatformKey) -> str:
    """Return the payload file name for ``key``.

    Raises:
        UnsupportedPlatformError: if ``key`` is not in the capability table
    """
    slug = SUPPORTED_PLATFORMS.get(key)
    if slug is None:
        raise UnsupportedPlatformError(key.system, key.machine)
    return f"p4cli-{slug}.zst"


def select_payload(key: PlatformKey, payload_dir: Path | None = None) -> PayloadLoader:
    """Pick the loader for ``key``'s compressed payload.

    Args:
        key: Target platform
        payload_dir: Directory holding ``p4cli-<slug>.zst`` files; the
            package's bundled payloads are used when omitted

    Returns:
        Zero-argument callable returning the compressed bytes

    Raises:
        UnsupportedPlatformError: if no payload exists for ``key``
    """
    name = payload_name(key)
    logger.debug(f"Selected payload {name} for {key}")

    if payload_dir is None:
        return lambda: read_payload(name)

    def load_from_dir() -> bytes:
        path = payload_dir / name
        try:
            return path.read_bytes()
        except FileNotFoundError as e:
            raise PayloadNotFoundError(name, str(payload_dir)) from e

    return load_from_dir
