"""Rate limiting middleware for the gateway using Flask-Limiter."""
import logging

from flask import current_app, request
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from release_gateway.audit_logging import client_ip
from release_gateway.core import has_valid_credential


def _limiter_key_func() -> str:
    """Return a string key for rate-limiting: CDN-reported client when trusted, else peer address."""
    if current_app.config.get("TRUST_PROXY_HEADERS", False):
        return client_ip() or get_remote_address()
    return get_remote_address()


def _is_publisher() -> bool:
    settings = current_app.extensions["release_gateway"].settings
    return has_valid_credential(request.headers, settings.releases_auth_key)


def init_rate_limiter(app) -> None:
    """Initialize Flask-Limiter on the given Flask app.

    Config keys consumed (optional):
      - RATE_LIMIT_DEFAULT: explicit default limits string
      - RATELIMIT_ENABLED: set False to disable (tests)
      - TRUST_PROXY_HEADERS: key on the CDN-reported client address

    Publishers presenting a valid credential are exempt.
    """
    app.config.setdefault("RATE_LIMIT_DEFAULT", "1000 per minute")
    default_limits = app.config.get("RATE_LIMIT_DEFAULT")

    try:
        Limiter(
            key_func=_limiter_key_func,
            app=app,
            default_limits=[default_limits],
            default_limits_exempt_when=_is_publisher,
            headers_enabled=True,
            storage_uri="memory://",
        )
    except Exception:
        logging.exception("Failed to initialize Flask-Limiter")
