"""
Shared pytest fixtures for the release gateway tests.

Everything runs against the in-memory storage and cache backends; AWS
clients are replaced with mocks where a test needs them.
"""

import io
from typing import Optional

import pytest

from release_gateway.app import create_app
from release_gateway.config import GatewaySettings
from release_gateway.db_adapter import LatestCacheStore
from release_gateway.s3_adapter import ObjectStorage

AUTH_KEY = "test-publisher-secret"
AUTH_HEADERS = {"X-Custom-Auth-Key": AUTH_KEY}


# ==================== MANIFEST DOCUMENTS ====================

LINUX_MANIFEST = b"""\
version: 1.2.3
files:
  - url: app-1.2.3.deb
    sha512: abc
    size: 10
path: app-1.2.3.deb
sha512: abc
releaseDate: '2024-05-01T12:00:00.000Z'
"""

MAC_MANIFEST = b"""\
version: 7.1.0
files:
  - url: app-mac-x64-7.1.0.zip
    sha512: zipx64
    size: 1000
  - url: app-mac-x64-7.1.0.dmg
    sha512: dmgx64
    size: 2000
  - url: app-mac-arm64-7.1.0.dmg
    sha512: dmgarm
    size: 1900
path: app-mac-x64-7.1.0.zip
sha512: zipx64
"""

WINDOWS_PRIMARY_ONLY_MANIFEST = b"""\
version: 2.0.0
path: app-win-x64-2.0.0.exe
sha512: winsha
"""


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def put_bytes(storage: ObjectStorage, key: str, data: bytes, content_type: Optional[str] = None) -> None:
    storage.put(key, io.BytesIO(data), content_type)


# ==================== SETTINGS AND COLLABORATORS ====================


@pytest.fixture
def settings() -> GatewaySettings:
    return GatewaySettings(
        releases_auth_key=AUTH_KEY,
        use_s3=False,
        use_dynamodb=False,
        upstream_static_host="https://upstream.test",
        platform_table_key=None,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def storage(settings) -> ObjectStorage:
    return ObjectStorage(settings)


@pytest.fixture
def cache_store(settings, clock) -> LatestCacheStore:
    return LatestCacheStore(settings, clock=clock)


# ==================== FLASK APP FIXTURES ====================


@pytest.fixture
def app(settings, storage, cache_store):
    config = {
        "TESTING": True,
        "RATELIMIT_ENABLED": False,
    }
    return create_app(config, settings=settings, storage=storage, cache_store=cache_store)


@pytest.fixture
def client(app):
    return app.test_client()
