"""Resolution cache: extension token -> previously resolved concrete key."""

from __future__ import annotations

import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class CacheStore(Protocol):
    def get(self, token: str) -> str | None: ...

    def put(self, token: str, value: str, ttl_seconds: int) -> None: ...


class ResolutionCache:
    def __init__(self, store: CacheStore, default_ttl: int) -> None:
        self.backend = store
        self.default_ttl = default_ttl

    def lookup(self, extension: str) -> str | None:
        cached = self.backend.get(extension)
        if cached:
            logger.info("Latest %s -> %s (cached)", extension, cached)
            return cached
        logger.debug("Latest cache miss for %s", extension)
        return None

    def store(self, extension: str, concrete_key: str, ttl_seconds: int | None = None) -> None:
        ttl = ttl_seconds or self.default_ttl
        self.backend.put(extension, concrete_key, ttl)
        logger.info("Cached latest %s -> %s for %ds", extension, concrete_key, ttl)
