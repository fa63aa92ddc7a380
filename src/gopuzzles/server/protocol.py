"""JSON-lines protocol messages for the GoPuzzles request bridge."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Optional

from gopuzzles.errors import InvalidArgument


@dataclass
class Request:
    """Incoming call from the web front end; ``id`` defaults to 0."""
    id: int
    method: str
    params: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data) -> Request:
        if not isinstance(data, dict):
            raise InvalidArgument("Request must be a JSON object")
        method = data.get("method")
        if not isinstance(method, str) or not method:
            raise InvalidArgument("Request is missing a method")
        params = data.get("params")
        if params is None:
            params = {}
        elif not isinstance(params, dict):
            raise InvalidArgument("Request params must be a JSON object")
        return cls(id=data.get("id", 0), method=method, params=params)


@dataclass
class Response:
    """Outgoing response; ``code`` classifies errors (not_found, conflict, ...)."""
    id: int
    result: Optional[dict] = None
    error: Optional[str] = None
    code: Optional[str] = None

    def to_json_line(self) -> str:
        d = {"id": self.id}
        if self.error is not None:
            d["error"] = self.error
            d["code"] = self.code or "internal"
        else:
            d["result"] = self.result
        return json.dumps(d) + "\n"


@dataclass
class Notification:
    """Server-initiated message (no id, no response expected)."""
    method: str
    params: dict = field(default_factory=dict)

    def to_json_line(self) -> str:
        return json.dumps({"method": self.method, "params": self.params}) + "\n"
