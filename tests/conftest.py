"""Shared fixtures: an in-memory stand-in for the controller's HTTP endpoints."""

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import parse_qs, urlsplit

import pytest
import requests

from omada_controller_api.api_client import OmadaController

CONTROLLER_ID = "abc"
BASE_URL = "https://omada.example"
SESSION_COOKIE = "TPOMADA_SESSIONID=sess1"


def make_response(body: Any, status_code: int = 200, headers: Optional[Dict[str, str]] = None) -> requests.Response:
    """Build a real requests.Response carrying `body` (JSON-encoded unless it is a str)."""
    response = requests.Response()
    response.status_code = status_code
    if isinstance(body, str):
        response._content = body.encode("utf-8")
    else:
        response._content = json.dumps(body).encode("utf-8")
        response.headers["Content-Type"] = "application/json"
    response.encoding = "utf-8"
    for key, value in (headers or {}).items():
        response.headers[key] = value
    return response


def envelope(result: Any = None, error_code: int = 0, **extra) -> Dict[str, Any]:
    body = {"errorCode": error_code, "msg": "Success." if error_code == 0 else "Failed."}
    if result is not None:
        body["result"] = result
    body.update(extra)
    return body


@dataclass
class Call:
    method: str
    path: str
    params: Dict[str, str]
    headers: Dict[str, str]
    json: Any
    kwargs: Dict[str, Any] = field(default_factory=dict)


class FakeOmadaServer:
    """
    Routes ``session.request`` calls to per-path handlers and records them.

    A handler is either a callable taking the `Call`, or a list of responses
    consumed one per request.
    """

    def __init__(self):
        self.calls: List[Call] = []
        self.routes: Dict[tuple, Any] = {}
        self.tokens = ["T", "T2", "T3"]
        self.login_count = 0
        self.route("GET", "/api/info", lambda call: make_response(
            envelope({"omadacId": CONTROLLER_ID, "controllerVer": "5.13.30"})))
        self.route("POST", f"/{CONTROLLER_ID}/api/v2/login", self._login)

    def _login(self, call: Call) -> requests.Response:
        token = self.tokens[self.login_count]
        self.login_count += 1
        return make_response(
            envelope({"roleType": 0, "token": token}),
            headers={"Set-Cookie": f"{SESSION_COOKIE}; Path=/; HttpOnly"},
        )

    def route(self, method: str, path: str, handler: Any):
        self.routes[(method, path)] = handler

    def site_route(self, method: str, subpath: str, handler: Any, site_key: str = "site1"):
        self.route(method, f"/{CONTROLLER_ID}/api/v2/sites/{site_key}{subpath}", handler)

    def request(self, method, url, **kwargs):
        parts = urlsplit(url)
        call = Call(
            method=method,
            path=parts.path,
            params={k: v[0] for k, v in parse_qs(parts.query).items()},
            headers=dict(kwargs.get("headers") or {}),
            json=kwargs.get("json"),
            kwargs=kwargs,
        )
        self.calls.append(call)

        handler = self.routes.get((method, parts.path))
        if handler is None:
            return make_response("Not Found", status_code=404)
        if isinstance(handler, list):
            return handler.pop(0)
        return handler(call)

    def calls_to(self, path: str, method: Optional[str] = None) -> List[Call]:
        return [c for c in self.calls
                if c.path == path and (method is None or c.method == method)]


@pytest.fixture
def server():
    return FakeOmadaServer()


@pytest.fixture
def controller(server):
    ctl = OmadaController("omada.example", "admin", "s3cret")
    ctl.session.request = server.request
    yield ctl
    ctl.close()


@pytest.fixture
def api_path() -> Callable[[str], str]:
    return lambda path: f"/{CONTROLLER_ID}{path}"
