"""Builds starlette Requests from raw ASGI scopes for stage-level tests."""

import json as jsonlib
from urllib.parse import urlencode

from starlette.requests import Request


def make_request(
    method: str = "GET",
    path: str = "/",
    *,
    query: dict | list | None = None,
    headers: dict[str, str] | None = None,
    body: bytes = b"",
    json=None,
    cookies: dict[str, str] | None = None,
) -> Request:
    headers = dict(headers or {})
    if json is not None:
        body = jsonlib.dumps(json).encode()
        headers.setdefault("content-type", "application/json")
    if cookies:
        headers["cookie"] = "; ".join(f"{k}={v}" for k, v in cookies.items())
    scope = {
        "type": "http",
        "http_version": "1.1",
        "method": method,
        "scheme": "http",
        "path": path,
        "raw_path": path.encode(),
        "root_path": "",
        "query_string": urlencode(query or {}, doseq=True).encode(),
        "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
        "server": ("testserver", 80),
        "client": ("127.0.0.1", 50000),
    }
    sent = False

    async def receive():
        nonlocal sent
        if sent:
            return {"type": "http.disconnect"}
        sent = True
        return {"type": "http.request", "body": body, "more_body": False}

    return Request(scope, receive)
