"""
Waymark Testing - In-process ASGI test client.

Issues requests straight into a Waymark app (or any ASGI callable)
without opening a socket:

    async with TestClient(app) as client:
        resp = await client.get("/items/42")
        assert resp.json() == {"success": True, "data": {"id": "42"}}

Entering the client runs the app's startup (sealing the registry); leaving
it runs shutdown.
"""

from __future__ import annotations

import json as stdlib_json
import time as _time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple
from urllib.parse import urlencode


def make_scope(
    method: str = "GET",
    path: str = "/",
    *,
    query_string: str = "",
    headers: Optional[Sequence[Tuple[str, str]]] = None,
    scheme: str = "http",
    client: Optional[tuple] = None,
) -> Dict[str, Any]:
    """Build an HTTP ASGI scope."""
    if "?" in path and not query_string:
        path, query_string = path.split("?", 1)
    return {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": method.upper(),
        "scheme": scheme,
        "path": path,
        "raw_path": path.encode("utf-8"),
        "query_string": query_string.encode("latin-1"),
        "root_path": "",
        "headers": [
            (k.lower().encode("latin-1"), v.encode("latin-1"))
            for k, v in (headers or [])
        ],
        "client": client or ("127.0.0.1", 12345),
        "server": ("testserver", 80),
    }


def make_receive(body: bytes = b"") -> Callable[[], Awaitable[dict]]:
    """Build an ASGI receive callable delivering ``body`` in one message."""
    sent = False

    async def receive() -> dict:
        nonlocal sent
        if sent:
            return {"type": "http.disconnect"}
        sent = True
        return {"type": "http.request", "body": body, "more_body": False}

    return receive


class TestResponse:
    """Captured ASGI response."""

    __test__ = False

    def __init__(self, status_code: int, headers: Dict[str, str], body: bytes, *, elapsed: float = 0.0):
        self.status_code = status_code
        self.headers = headers
        self.body = body
        self.elapsed = elapsed

    @property
    def text(self) -> str:
        return self.body.decode("utf-8")

    def json(self) -> Any:
        return stdlib_json.loads(self.body)

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.headers.get(name.lower(), default)

    def __repr__(self) -> str:
        return f"<TestResponse [{self.status_code}] {len(self.body)}B {self.elapsed:.1f}ms>"


class TestClient:
    """
    In-process ASGI test client.

    Args:
        app: ASGI application
        headers: Headers sent with every request
        raise_server_exceptions: Re-raise exceptions escaping the app
    """

    __test__ = False

    def __init__(
        self,
        app: Any,
        *,
        headers: Optional[Dict[str, str]] = None,
        raise_server_exceptions: bool = True,
    ):
        self._app = app
        self._default_headers = dict(headers or {})
        self._raise_server_exceptions = raise_server_exceptions

    async def __aenter__(self) -> "TestClient":
        startup = getattr(self._app, "startup", None)
        if startup is not None:
            await startup()
        return self

    async def __aexit__(self, *exc_info) -> None:
        shutdown = getattr(self._app, "shutdown", None)
        if shutdown is not None:
            await shutdown()

    async def get(self, path: str, **kw) -> TestResponse:
        return await self.request("GET", path, **kw)

    async def post(self, path: str, **kw) -> TestResponse:
        return await self.request("POST", path, **kw)

    async def put(self, path: str, **kw) -> TestResponse:
        return await self.request("PUT", path, **kw)

    async def patch(self, path: str, **kw) -> TestResponse:
        return await self.request("PATCH", path, **kw)

    async def delete(self, path: str, **kw) -> TestResponse:
        return await self.request("DELETE", path, **kw)

    async def head(self, path: str, **kw) -> TestResponse:
        return await self.request("HEAD", path, **kw)

    async def options(self, path: str, **kw) -> TestResponse:
        return await self.request("OPTIONS", path, **kw)

    async def request(
        self,
        method: str,
        path: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        query_string: str = "",
        json: Any = None,
        data: Optional[Dict[str, str]] = None,
        body: bytes = b"",
    ) -> TestResponse:
        """Issue one in-process request."""
        combined: List[Tuple[str, str]] = list(self._default_headers.items())
        if headers:
            combined.extend(headers.items())

        if json is not None:
            body = stdlib_json.dumps(json).encode("utf-8")
            combined.append(("content-type", "application/json"))
        elif data is not None:
            body = urlencode(data).encode("utf-8")
            combined.append(("content-type", "application/x-www-form-urlencoded"))
        if body:
            combined.append(("content-length", str(len(body))))

        scope = make_scope(method, path, query_string=query_string, headers=combined)

        status_code = 500
        resp_headers: Dict[str, str] = {}
        body_parts: List[bytes] = []

        async def send(event: dict) -> None:
            nonlocal status_code
            if event["type"] == "http.response.start":
                status_code = event["status"]
                for name, value in event.get("headers", []):
                    resp_headers[name.decode("latin-1").lower()] = value.decode("latin-1")
            elif event["type"] == "http.response.body":
                body_parts.append(event.get("body", b""))

        start = _time.monotonic()
        try:
            await self._app(scope, make_receive(body), send)
        except Exception:
            if self._raise_server_exceptions:
                raise
        elapsed_ms = (_time.monotonic() - start) * 1000

        return TestResponse(status_code, resp_headers, b"".join(body_parts), elapsed=elapsed_ms)
