"""
Extension -> manifest mapping used by latest resolution.

The table starts from settings and can optionally be reloaded from a YAML
object in storage (``PLATFORM_TABLE_KEY``), e.g.::

    dmg: "-mac"
    exe: ""
    deb: "-linux"

Reloads run on an explicit background thread owned by
:class:`PlatformTableRefresher`. Readers call ``snapshot()`` once per
resolution and get an immutable table back.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Protocol

import yaml

from release_gateway.errors import UnsupportedPlatform
from release_gateway.s3_adapter import ObjectStorage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlatformTable:
    suffixes: Mapping[str, str]

    @classmethod
    def from_mapping(cls, raw: Mapping[str, str]) -> PlatformTable:
        return cls(suffixes=MappingProxyType({str(k): str(v or "") for k, v in raw.items()}))

    def manifest_name(self, extension: str) -> str:
        try:
            suffix = self.suffixes[extension]
        except KeyError:
            raise UnsupportedPlatform(f"no manifest for extension {extension!r}") from None
        return f"latest{suffix}.yml"


class PlatformTableSource(Protocol):
    def snapshot(self) -> PlatformTable: ...


class StaticPlatformTable:
    def __init__(self, table: PlatformTable) -> None:
        self._table = table

    def snapshot(self) -> PlatformTable:
        return self._table


class PlatformTableRefresher:
    """Periodically reloads the platform table from a storage object."""

    def __init__(
        self,
        storage: ObjectStorage,
        key: str,
        initial: PlatformTable,
        interval_seconds: float = 60.0,
    ) -> None:
        self.storage = storage
        self.key = key
        self.interval_seconds = interval_seconds
        self._table = initial
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def snapshot(self) -> PlatformTable:
        return self._table

    def refresh(self) -> PlatformTable:
        """Reload once. Keeps the previous table when the object is absent or bad."""
        try:
            obj = self.storage.get(self.key)
        except Exception:
            logger.exception("Platform table fetch failed for %s; keeping previous table", self.key)
            return self._table
        if obj is None:
            logger.warning("Platform table %s not found; keeping previous table", self.key)
            return self._table
        try:
            raw = yaml.safe_load(obj.read())
        except yaml.YAMLError:
            logger.exception("Platform table %s is not valid YAML", self.key)
            return self._table
        if not isinstance(raw, Mapping) or not raw:
            logger.warning("Platform table %s is not a non-empty mapping", self.key)
            return self._table
        self._table = PlatformTable.from_mapping(raw)
        logger.info("Loaded platform table from %s: %s", self.key, dict(self._table.suffixes))
        return self._table

    def _run(self) -> None:
        while not self._stop.wait(self.interval_seconds):
            self.refresh()

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self.refresh()
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="platform-table-refresh", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
