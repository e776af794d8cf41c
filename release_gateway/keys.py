"""
Object key parsing for release requests.

A requested key such as ``desktop/app-latest_x64.deb`` is split into its
directory, base name and extension. Two rules here look odd but updater
clients depend on the exact key shapes:

- a base name without a ``.`` uses the whole base name as its extension
- the latest marker must be ``latest`` preceded by ``-``/``_`` and followed
  by ``_``/``.``
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from release_gateway.errors import InvalidKey

LATEST_MARKER_RE = re.compile(r"[-_]latest[_.]")

_MAX_SEGMENT_LENGTH = 255
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x1f\x7f]")

# Installer naming used by the publish pipeline. Platform names follow
# Node's `process.platform` so they line up with what clients report.
_MAC_RE = re.compile(r"-mac-([^-]+)-(.+)\.((dmg|zip).*)$")
_WIN_RE = re.compile(r"-win-([^-]+)-(.+)\.(exe.*)$")
_LINUX_RE = re.compile(r"_([^_]+)_([^.]+)\.(deb.*)$")


@dataclass(frozen=True)
class KeyDescriptor:
    key: str
    directory: str
    base_name: str
    extension: str

    def is_latest_marker(self) -> bool:
        return bool(LATEST_MARKER_RE.search(self.base_name))

    def join(self, name: str) -> str:
        """Build a sibling key in the same directory."""
        if self.directory:
            return f"{self.directory}/{name}"
        return name

    def __str__(self) -> str:
        return self.key


def parse_key(key: str) -> KeyDescriptor:
    directory, _, base_name = key.rpartition("/")
    _, dot, ext = base_name.rpartition(".")
    extension = ext if dot else base_name
    return KeyDescriptor(key=key, directory=directory, base_name=base_name, extension=extension)


def validate_key(key: str) -> str:
    """Reject keys that cannot name a stored object.

    Returns the key unchanged so callers can validate inline.
    """
    if not key or not key.strip():
        raise InvalidKey("Invalid key: empty")
    if "\\" in key:
        raise InvalidKey("Invalid key: backslashes not allowed")
    if _CONTROL_CHARS_RE.search(key):
        raise InvalidKey("Invalid key: contains control characters")
    for segment in key.split("/"):
        if segment == "..":
            raise InvalidKey("Invalid key: path traversal not allowed")
        if len(segment) > _MAX_SEGMENT_LENGTH:
            raise InvalidKey("Invalid key: segment too long")
    return key


def name_properties(base_name: str) -> dict[str, Any] | None:
    """Extract platform/arch/version/ext from an installer file name."""
    match = _MAC_RE.search(base_name)
    if match:
        return {"platform": "darwin", "arch": match.group(1), "version": match.group(2), "ext": match.group(3)}
    match = _WIN_RE.search(base_name)
    if match:
        return {"platform": "win32", "arch": match.group(1), "version": match.group(2), "ext": match.group(3)}
    match = _LINUX_RE.search(base_name)
    if match:
        # deb names put the version before the arch
        return {"platform": "linux", "version": match.group(1), "arch": match.group(2), "ext": match.group(3)}
    return None
