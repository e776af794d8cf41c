"""Tests for release_gateway/audit_logging.py."""

import json
import logging

from release_gateway.audit_logging import JSONFormatter


class TestJSONFormatter:
    def _record(self, **extra):
        record = logging.LogRecord("audit", logging.INFO, __file__, 1, "download", (), None)
        for k, v in extra.items():
            setattr(record, k, v)
        return record

    def test_basic_fields(self):
        payload = json.loads(JSONFormatter().format(self._record()))
        assert payload["level"] == "INFO"
        assert payload["logger"] == "audit"
        assert payload["message"] == "download"

    def test_extras_included(self):
        payload = json.loads(JSONFormatter().format(self._record(client_ip="203.0.113.9", platform="darwin")))
        assert payload["client_ip"] == "203.0.113.9"
        assert payload["platform"] == "darwin"

    def test_unserializable_extra_stringified(self):
        payload = json.loads(JSONFormatter().format(self._record(obj=object())))
        assert payload["obj"].startswith("<object object")


class TestRequestAudit:
    """Request hooks emit one audit line per request."""

    def test_forbidden_request_raises_alert(self, client, caplog):
        audit = logging.getLogger("audit")
        audit.propagate = True
        try:
            with caplog.at_level(logging.INFO, logger="audit"):
                client.get("/desktop/secret-internal.bin")
        finally:
            audit.propagate = False
        messages = [r.getMessage() for r in caplog.records if r.name == "audit"]
        assert "http_request" in messages
        assert "security_alert" in messages
        assert "request_forbidden" in messages
