from __future__ import annotations

import hmac
import logging
import mimetypes
import re
import time
from dataclasses import dataclass, field
from functools import wraps
from http import HTTPStatus
from typing import Any

import requests
from flask import Blueprint, Response, abort, current_app, jsonify, request, stream_with_context
from werkzeug.http import http_date

from release_gateway.audit_logging import AUTH_HEADER, audit_event, client_ip, security_alert
from release_gateway.config import GatewaySettings
from release_gateway.keys import name_properties, parse_key
from release_gateway.resolver import LatestResolver
from release_gateway.s3_adapter import ObjectStorage

logger = logging.getLogger(__name__)

blueprint = Blueprint("release_gateway", __name__)

ALLOWED_METHODS = ("PUT", "GET", "DELETE")

# Generic inference gives these an unhelpful type
_CONTENT_TYPE_OVERRIDES = {
    "dmg": "application/x-apple-diskimage",
    "exe": "application/x-msdownload",
}
_GENERIC_CONTENT_TYPES = {"", "application/octet-stream", "binary/octet-stream"}
_DEFAULT_CONTENT_TYPE = "application/octet-stream"

# What curl and browsers send for a raw body; never the artifact's type
_FORM_CONTENT_TYPES = {"application/x-www-form-urlencoded", "multipart/form-data"}

# Upstream response headers passed through when proxying static assets.
# Canonical casing matters: the Lambda adapter reads "Content-Type" verbatim.
_PROXY_HEADERS = ("Content-Type", "ETag", "Last-Modified", "Cache-Control", "Expires")


@dataclass
class GatewayServices:
    settings: GatewaySettings
    storage: ObjectStorage
    resolver: LatestResolver
    allow_list: list[re.Pattern[str]] = field(default_factory=list)


def services() -> GatewayServices:
    return current_app.extensions["release_gateway"]


# ---------------------------------------------------------------------------
# Observability helpers
# ---------------------------------------------------------------------------

_REQUEST_TIMES: list[float] = []
_STATS = {"ok": 0, "err": 0}


def _record_timing(f):
    @wraps(f)
    def _w(*args, **kwargs):
        t0 = time.time()
        try:
            resp = f(*args, **kwargs)
            _STATS["ok"] += 1
            return resp
        except Exception:
            _STATS["err"] += 1
            raise
        finally:
            _REQUEST_TIMES.append(time.time() - t0)
            if len(_REQUEST_TIMES) > 5000:
                del _REQUEST_TIMES[: len(_REQUEST_TIMES) - 5000]

    return _w


def _percentile(seq: list[float], p: float) -> float:
    if not seq:
        return 0.0
    s = sorted(seq)
    idx = max(0, min(len(s) - 1, int(p * (len(s) - 1))))
    return s[idx]


# ---------------------------------------------------------------------------
# Authorization
# ---------------------------------------------------------------------------


def has_valid_credential(headers: Any, secret: str) -> bool:
    """Check requests for the pre-shared publisher secret."""
    presented = headers.get(AUTH_HEADER, "")
    if not secret or not presented:
        return False
    return hmac.compare_digest(presented.encode("utf-8"), secret.encode("utf-8"))


def authorize_request(method: str, key: str, headers: Any, svc: GatewayServices) -> bool:
    if method in ("PUT", "DELETE"):
        return has_valid_credential(headers, svc.settings.releases_auth_key)
    if method in ("GET", "HEAD"):
        if has_valid_credential(headers, svc.settings.releases_auth_key):
            # let authenticated requests look at all keys
            return True
        return any(pattern.search(key) for pattern in svc.allow_list)
    return False


def raise_error(status: HTTPStatus, message: str, headers: dict[str, str] | None = None) -> None:
    response = jsonify({"message": message})
    response.status_code = status
    for name, value in (headers or {}).items():
        response.headers[name] = value
    abort(response)


def method_not_allowed() -> Response:
    response = jsonify({"message": "Method Not Allowed"})
    response.status_code = HTTPStatus.METHOD_NOT_ALLOWED
    response.headers["Allow"] = ", ".join(ALLOWED_METHODS)
    return response


# ---------------------------------------------------------------------------
# Response metadata
# ---------------------------------------------------------------------------


def content_type_for(extension: str, stored: str | None = None) -> str:
    override = _CONTENT_TYPE_OVERRIDES.get(extension.lower())
    if override:
        return override
    if stored and stored.split(";")[0].strip().lower() not in _GENERIC_CONTENT_TYPES:
        return stored
    guessed, _ = mimetypes.guess_type(f"file.{extension}")
    return guessed or _DEFAULT_CONTENT_TYPE


def set_cache_control(headers: Any, max_age: int) -> None:
    headers["Expires"] = http_date(time.time() + max_age)
    headers["Cache-Control"] = f"public, max-age={max_age}"


def upload_content_type(key: str) -> str:
    """Content type to record for an upload; form encodings fall back to the extension."""
    if request.mimetype and request.mimetype not in _FORM_CONTENT_TYPES:
        return request.content_type
    return content_type_for(parse_key(key).extension)


def _report_download(base_name: str) -> None:
    props = name_properties(base_name)
    if props is None:
        logger.warning("unable to parse platform/arch: %s", base_name)
        return
    audit_event("download", client_ip=client_ip(), **props)


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def proxy_static(key: str, svc: GatewayServices) -> Response:
    upstream = f"{svc.settings.upstream_static_host}/{key}"
    logger.info("Proxying: %s", upstream)
    try:
        upstream_resp = requests.get(upstream, stream=True, timeout=svc.settings.upstream_timeout_s)
    except requests.RequestException as e:
        logger.error("Upstream fetch failed for %s: %s", upstream, e)
        raise_error(HTTPStatus.BAD_GATEWAY, "Upstream unavailable")

    headers = {
        name: upstream_resp.headers[name] for name in _PROXY_HEADERS if name in upstream_resp.headers
    }
    response = Response(
        stream_with_context(upstream_resp.iter_content(chunk_size=64 * 1024)),
        status=upstream_resp.status_code,
        headers=headers,
    )
    # runs on normal completion and on client disconnect alike
    response.call_on_close(upstream_resp.close)
    return response


def get_object(key: str, svc: GatewayServices) -> Response:
    if key.startswith(svc.settings.static_prefix):
        return proxy_static(key, svc)

    descriptor = parse_key(key)
    resolved = parse_key(svc.resolver.resolve(descriptor))
    obj = svc.storage.get(resolved.key)
    if obj is None:
        raise_error(HTTPStatus.NOT_FOUND, "Object Not Found")

    if resolved.extension != "yml":
        _report_download(resolved.base_name)

    response = Response(
        obj.body,
        status=HTTPStatus.OK,
        content_type=content_type_for(resolved.extension, obj.content_type),
    )
    if obj.size:
        response.headers["Content-Length"] = str(obj.size)
    response.headers["ETag"] = obj.etag
    set_cache_control(response.headers, svc.settings.cache_max_age)
    return response


def put_object(key: str, svc: GatewayServices) -> Response:
    content_type = upload_content_type(key)
    svc.storage.put(key, request.stream, content_type)
    audit_event("object_put", key=key, content_type=content_type)
    return Response(f"Put {key} successfully!", status=HTTPStatus.OK, mimetype="text/plain")


def delete_object(key: str, svc: GatewayServices) -> Response:
    svc.storage.delete(key)
    audit_event("object_deleted", key=key)
    return Response("Deleted!", status=HTTPStatus.OK, mimetype="text/plain")


# -------------------- Health --------------------


@blueprint.route("/health", methods=["GET"])
def health() -> tuple[Response, int]:
    return (
        jsonify(
            {
                "ok": True,
                "requests": dict(_STATS),
                "p50_ms": int(_percentile(_REQUEST_TIMES, 0.50) * 1000),
                "p95_ms": int(_percentile(_REQUEST_TIMES, 0.95) * 1000),
            }
        ),
        200,
    )


# -------------------- Objects --------------------


@blueprint.route(
    "/",
    defaults={"key": ""},
    methods=["GET", "PUT", "DELETE", "POST", "PATCH", "OPTIONS"],
    provide_automatic_options=False,
)
@blueprint.route(
    "/<path:key>",
    methods=["GET", "PUT", "DELETE", "POST", "PATCH", "OPTIONS"],
    provide_automatic_options=False,
)
@_record_timing
def handle_object(key: str) -> Response:
    method = request.method
    if method not in ALLOWED_METHODS and method != "HEAD":
        return method_not_allowed()

    svc = services()
    if not authorize_request(method, key, request.headers, svc):
        security_alert("request_forbidden", method=method, key=key, client_ip=client_ip())
        raise_error(HTTPStatus.FORBIDDEN, "Forbidden")

    if method == "PUT":
        return put_object(key, svc)
    if method == "DELETE":
        return delete_object(key, svc)
    return get_object(key, svc)
