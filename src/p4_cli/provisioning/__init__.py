"""Binary provisioning: platform selection, decompression, materialization."""

from __future__ import annotations

from .platforms import (
    P4_RELEASE,
    SUPPORTED_PLATFORMS,
    PlatformKey,
    detect_platform,
    payload_name,
    select_payload,
)
from .provisioner import BinaryProvisioner, decompress_payload, write_executable

__all__ = [
    "BinaryProvisioner",
    "PlatformKey",
    "P4_RELEASE",
    "SUPPORTED_PLATFORMS",
    "decompress_payload",
    "detect_platform",
    "payload_name",
    "select_payload",
    "write_executable",
]
