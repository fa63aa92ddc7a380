"""Tests for the JSON-lines protocol message types."""

from __future__ import annotations

import json

import pytest

from gopuzzles.errors import InvalidArgument
from gopuzzles.server.protocol import Notification, Request, Response


class TestRequest:
    def test_from_dict_full(self):
        data = {"id": 1, "method": "recordAttempt", "params": {"visitorId": "1.2.3.4", "puzzleId": "p1"}}
        req = Request.from_dict(data)
        assert req.id == 1
        assert req.method == "recordAttempt"
        assert req.params == {"visitorId": "1.2.3.4", "puzzleId": "p1"}

    def test_from_dict_no_params(self):
        req = Request.from_dict({"id": 2, "method": "listCollections"})
        assert req.id == 2
        assert req.params == {}

    def test_id_defaults_to_zero(self):
        assert Request.from_dict({"method": "listCollections"}).id == 0

    @pytest.mark.parametrize("data", [
        "recordAttempt",
        {"id": 3},
        {"id": 3, "method": ""},
        {"id": 3, "method": "like", "params": "p1"},
    ])
    def test_malformed(self, data):
        with pytest.raises(InvalidArgument):
            Request.from_dict(data)


class TestResponse:
    def test_success_json_line(self):
        resp = Response(id=1, result={"complete": True})
        line = resp.to_json_line()
        assert line.endswith("\n")
        assert json.loads(line) == {"id": 1, "result": {"complete": True}}

    def test_error_json_line(self):
        resp = Response(id=2, error="Already liked", code="conflict")
        parsed = json.loads(resp.to_json_line())
        assert parsed == {"id": 2, "error": "Already liked", "code": "conflict"}
        assert "result" not in parsed

    def test_error_code_defaults_to_internal(self):
        parsed = json.loads(Response(id=3, error="boom").to_json_line())
        assert parsed["code"] == "internal"

    def test_null_result(self):
        parsed = json.loads(Response(id=4, result=None).to_json_line())
        assert parsed["result"] is None


class TestNotification:
    def test_json_line(self):
        notif = Notification("achievementUnlocked", {"id": "solved-1"})
        line = notif.to_json_line()
        assert line.endswith("\n")
        assert json.loads(line) == {"method": "achievementUnlocked", "params": {"id": "solved-1"}}

    def test_empty_params(self):
        assert json.loads(Notification("ping").to_json_line()) == {"method": "ping", "params": {}}
