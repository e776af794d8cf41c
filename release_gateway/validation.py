"""Lightweight input validation middleware.

Checks run before dispatch:
- Enforces MAX_CONTENT_LENGTH on uploads (redundant with Flask but explicit)
- Rejects object keys that could not name a stored object (traversal,
  control characters, oversized segments)

Unsupported methods are left alone so they still get a 405.
"""
from http import HTTPStatus

from flask import jsonify, request

from release_gateway.core import ALLOWED_METHODS
from release_gateway.errors import InvalidKey
from release_gateway.keys import validate_key


def init_validation(app):
    @app.before_request
    def _validate_request():
        cl = request.content_length
        if cl is not None and cl > app.config.get("MAX_CONTENT_LENGTH", 2 * 1024 * 1024 * 1024):
            resp = jsonify({"message": "Request payload too large"})
            resp.status_code = HTTPStatus.REQUEST_ENTITY_TOO_LARGE
            return resp

        if request.method not in ALLOWED_METHODS and request.method != "HEAD":
            return None
        view_args = request.view_args or {}
        if "key" not in view_args:
            return None
        try:
            validate_key(view_args["key"])
        except InvalidKey as e:
            resp = jsonify({"message": str(e)})
            resp.status_code = HTTPStatus.BAD_REQUEST
            return resp
        return None

    return None
