"""
Request - ASGI request wrapper.

Provides:
- Typed access to method, path, query, headers and route parameters
- One-shot body reading with a size limit
- Body parsing (JSON, urlencoded forms, text) done once, before dispatch,
  so that compiled bindings can read ``request.body`` synchronously
"""

from __future__ import annotations

import json as stdlib_json
from typing import Any, Awaitable, Callable, Dict, Optional
from urllib.parse import parse_qsl

from ._datastructures import Headers, MultiDict
from .faults import BadRequestFault, InvalidJSONFault, PayloadTooLargeFault

Receive = Callable[[], Awaitable[dict]]

_UNSET: Any = object()


class Request:
    """
    HTTP request.

    Attributes:
        scope: ASGI connection scope
        path_params: Values captured from the matched route pattern
        state: Free-form per-request state shared with middleware
    """

    def __init__(
        self,
        scope: Dict[str, Any],
        receive: Optional[Receive] = None,
        *,
        max_body_size: Optional[int] = None,
    ):
        self.scope = scope
        self._receive = receive
        self.max_body_size = max_body_size

        self.path_params: Dict[str, str] = {}
        self.state: Dict[str, Any] = {}

        self._body_bytes: Optional[bytes] = None
        self._parsed: Any = _UNSET
        self._query_params: Optional[MultiDict] = None
        self._headers: Optional[Headers] = None

    # ========================================================================
    # Basic Properties
    # ========================================================================

    @property
    def method(self) -> str:
        """HTTP method (GET, POST, etc.)."""
        return self.scope.get("method", "GET").upper()

    @property
    def path(self) -> str:
        """Request path (decoded)."""
        return self.scope.get("path", "/")

    @property
    def query_string(self) -> str:
        raw = self.scope.get("query_string", b"")
        return raw.decode("latin-1") if isinstance(raw, bytes) else raw

    @property
    def client(self) -> Optional[tuple]:
        """Client address (host, port)."""
        return self.scope.get("client")

    # ========================================================================
    # Query & Headers
    # ========================================================================

    @property
    def query_params(self) -> MultiDict:
        """Parsed query parameters, repeated keys preserved."""
        if self._query_params is None:
            self._query_params = MultiDict(parse_qsl(self.query_string, keep_blank_values=True))
        return self._query_params

    @property
    def query(self) -> Dict[str, Any]:
        """Query parameters as a plain dict; repeated keys become lists."""
        return self.query_params.to_dict()

    @property
    def headers(self) -> Headers:
        if self._headers is None:
            self._headers = Headers(raw=list(self.scope.get("headers", [])))
        return self._headers

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Get single header (case-insensitive)."""
        return self.headers.get(name, default)

    @property
    def content_type(self) -> str:
        value = self.headers.get("content-type") or ""
        return value.split(";")[0].strip().lower()

    # ========================================================================
    # Body
    # ========================================================================

    async def body_bytes(self) -> bytes:
        """
        Read the whole request body.

        The body is cached; calling this twice never touches ``receive``
        again.

        Raises:
            PayloadTooLargeFault: If the body exceeds ``max_body_size``
        """
        if self._body_bytes is not None:
            return self._body_bytes

        if self._receive is None:
            self._body_bytes = b""
            return self._body_bytes

        chunks = []
        size = 0
        more_body = True
        while more_body:
            message = await self._receive()
            if message.get("type") == "http.disconnect":
                break
            chunk = message.get("body", b"")
            size += len(chunk)
            if self.max_body_size is not None and size > self.max_body_size:
                raise PayloadTooLargeFault(
                    f"Request body exceeds {self.max_body_size} bytes",
                )
            chunks.append(chunk)
            more_body = message.get("more_body", False)

        self._body_bytes = b"".join(chunks)
        return self._body_bytes

    async def load(self) -> "Request":
        """
        Read and parse the body once.

        JSON bodies are decoded, urlencoded forms become a dict, ``text/*``
        becomes a string and anything else stays as bytes. An empty body
        parses to ``{}``.

        Raises:
            InvalidJSONFault: If a JSON body cannot be decoded
            BadRequestFault: If a urlencoded form is not valid UTF-8
        """
        if self._parsed is not _UNSET:
            return self

        raw = await self.body_bytes()
        content_type = self.content_type

        if not raw:
            self._parsed = {}
        elif content_type == "application/json" or content_type.endswith("+json"):
            try:
                self._parsed = stdlib_json.loads(raw)
            except ValueError as e:
                raise InvalidJSONFault(f"Invalid JSON payload: {e}") from e
        elif content_type == "application/x-www-form-urlencoded":
            try:
                text = raw.decode("utf-8")
            except UnicodeDecodeError as e:
                raise BadRequestFault(f"Invalid form payload: {e}") from e
            self._parsed = MultiDict(parse_qsl(text, keep_blank_values=True)).to_dict()
        elif content_type.startswith("text/"):
            self._parsed = raw.decode("utf-8", errors="replace")
        else:
            self._parsed = raw

        return self

    @property
    def body(self) -> Any:
        """Parsed body; ``{}`` until :meth:`load` has run."""
        if self._parsed is _UNSET:
            return {}
        return self._parsed

    @body.setter
    def body(self, value: Any) -> None:
        self._parsed = value

    def __repr__(self) -> str:
        return f"Request(method={self.method!r}, path={self.path!r})"
