"""Bundled zstandard-compressed p4 executables.

Platform wheels ship exactly one ``p4cli-<slug>.zst`` file in this package;
source checkouts ship none and rely on ``P4CLI_PAYLOAD_DIR``.
"""

from __future__ import annotations

from importlib import resources

from ..errors import PayloadNotFoundError

__all__ = ["read_payload"]


def read_payload(name: str) -> bytes:
    """Return the raw bytes of the bundled payload ``name``."""
    resource = resources.files(__package__).joinpath(name)
    if not resource.is_file():
        raise PayloadNotFoundError(name, f"package {__package__}")
    return resource.read_bytes()
