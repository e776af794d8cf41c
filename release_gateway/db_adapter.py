"""
DynamoDB adapter for the latest-pointer cache.

Provides get/put-with-TTL over a DynamoDB table, with fallback to in-memory
storage for local development and when DynamoDB calls fail.

The table needs a string partition key ``PK`` and should have DynamoDB TTL
enabled on the ``expires_at`` attribute. DynamoDB removes expired items
lazily, so reads also treat an elapsed ``expires_at`` as a miss.
"""

import logging
import threading
import time
from collections.abc import Callable
from typing import Any

from release_gateway.audit_logging import cache_audit, security_alert
from release_gateway.config import GatewaySettings

logger = logging.getLogger(__name__)


class LatestCacheStore:
    """Key-value store with expiry - uses DynamoDB or an in-memory dict."""

    def __init__(
        self,
        settings: GatewaySettings,
        table: Any | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._memory_cache: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()
        self._clock = clock
        self.table_name = settings.dynamodb_table_name
        self.table = table
        self.use_dynamodb = settings.use_dynamodb
        if self.use_dynamodb and self.table is None:
            try:
                import boto3

                dynamodb_resource = boto3.resource("dynamodb", region_name=settings.aws_region)
                self.table = dynamodb_resource.Table(self.table_name)
                logger.info(f"DynamoDB cache enabled: table={self.table_name}, region={settings.aws_region}")
            except Exception as e:
                logger.error(f"Failed to initialize DynamoDB: {e}")
                self.use_dynamodb = False

    def _make_pk(self, token: str) -> str:
        """Create partition key: LATEST#{token}"""
        return f"LATEST#{token}"

    def _memory_get(self, token: str) -> str | None:
        with self._lock:
            found = self._memory_cache.get(token)
            if found is None:
                return None
            value, expires_at = found
            if expires_at <= self._clock():
                del self._memory_cache[token]
                return None
            return value

    def _memory_put(self, token: str, value: str, ttl_seconds: int) -> None:
        with self._lock:
            self._memory_cache[token] = (value, self._clock() + ttl_seconds)

    def get(self, token: str) -> str | None:
        """Get a cached value; None when absent or expired."""
        if self.use_dynamodb and self.table is not None:
            start = time.time()
            try:
                response = self.table.get_item(Key={"PK": self._make_pk(token)})
                item = response.get("Item")
                duration_ms = int((time.time() - start) * 1000)
                cache_audit(
                    "dynamodb_get_item",
                    table=self.table_name,
                    token=token,
                    hit=item is not None,
                    duration_ms=duration_ms,
                )
                if not item:
                    return None
                if int(item.get("expires_at", 0)) <= int(self._clock()):
                    return None
                return str(item["value"])
            except Exception as e:
                logger.error(f"DynamoDB cache get failed: {e}, falling back to memory")
                security_alert("dynamodb_cache_get_failed", table=self.table_name, token=token, error=str(e))
                return self._memory_get(token)
        return self._memory_get(token)

    def put(self, token: str, value: str, ttl_seconds: int) -> None:
        """Store a value that expires after ttl_seconds."""
        if self.use_dynamodb and self.table is not None:
            start = time.time()
            try:
                self.table.put_item(
                    Item={
                        "PK": self._make_pk(token),
                        "value": value,
                        "expires_at": int(self._clock()) + int(ttl_seconds),
                    }
                )
                duration_ms = int((time.time() - start) * 1000)
                cache_audit(
                    "dynamodb_put_item",
                    table=self.table_name,
                    token=token,
                    ttl_seconds=ttl_seconds,
                    duration_ms=duration_ms,
                )
                return
            except Exception as e:
                logger.error(f"DynamoDB cache put failed: {e}, falling back to memory")
                security_alert("dynamodb_cache_put_failed", table=self.table_name, token=token, error=str(e))
        self._memory_put(token, value, ttl_seconds)
