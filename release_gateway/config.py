from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_LATEST_CACHE_TTL = 300

DEFAULT_ALLOW_LIST = [
    r"^static/",
    r"^desktop/[^/]+\.yml$",
    r"^desktop/[^/]+[-_][^/]+\.(?:dmg|zip|exe|deb)(?:\.blockmap)?$",
]

# extension -> manifest suffix, i.e. `latest{suffix}.yml`
DEFAULT_PLATFORM_MANIFESTS = {
    "dmg": "-mac",
    "exe": "",
    "deb": "-linux",
}


class GatewaySettings(BaseSettings):
    model_config = SettingsConfigDict(case_sensitive=False, extra="ignore")

    env: str = "dev"
    log_level: str = "INFO"

    # Pre-shared secret for publishers (X-Custom-Auth-Key)
    releases_auth_key: str = ""
    releases_secret_arn: str | None = None

    # Object storage
    use_s3: bool = False
    s3_bucket_name: str | None = None
    s3_region: str = "us-east-2"
    s3_prefix: str = ""

    # Latest-pointer cache
    use_dynamodb: bool = False
    dynamodb_table_name: str = "LatestCacheTable"
    aws_region: str = "us-east-2"
    latest_cache_ttl: int = DEFAULT_LATEST_CACHE_TTL

    # Resolution
    platform_manifests: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_PLATFORM_MANIFESTS))
    platform_table_key: str | None = None
    platform_table_refresh_seconds: float = 60.0

    # Dispatch
    allow_list: list[str] = Field(default_factory=lambda: list(DEFAULT_ALLOW_LIST))
    static_prefix: str = "static/"
    upstream_static_host: str = "https://static.example.com"
    upstream_timeout_s: float = 15.0
    cache_max_age: int = 300

    # HTTP behavior
    rate_limit_default: str = "1000 per minute"
    # Honor CF-Connecting-IP / X-Forwarded-For; enable only behind a trusted CDN
    trust_proxy_headers: bool = False
    max_content_length: int = 2 * 1024 * 1024 * 1024

    @field_validator("latest_cache_ttl", mode="before")
    @classmethod
    def _default_ttl(cls, value):
        # unset, empty and 0 all mean "use the default"
        if value in (None, "", 0, "0"):
            return DEFAULT_LATEST_CACHE_TTL
        return value

    @field_validator("s3_prefix", mode="after")
    @classmethod
    def _strip_prefix(cls, value: str) -> str:
        return value.strip("/")

    @field_validator("upstream_static_host", mode="after")
    @classmethod
    def _strip_host(cls, value: str) -> str:
        return value.rstrip("/")


@lru_cache
def get_settings() -> GatewaySettings:
    return GatewaySettings()
