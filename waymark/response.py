"""
Response - Mutable HTTP response writer.

A single Response object is created per request by the host and handed to
the matched binding. Handlers that take it (``Res()``) may write to it
directly; otherwise the binding writes the normalized envelope. Once
written, the response is *committed* and the host flushes it over ASGI.
"""

from __future__ import annotations

import dataclasses
import json
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple, Union

from .faults import Fault, FaultDomain


Send = Callable[[dict], Awaitable[None]]


def _json_default_serializer(o: Any) -> Any:
    """Default JSON serializer for non-standard types."""
    if hasattr(o, "model_dump"):
        return o.model_dump(mode="json")
    if dataclasses.is_dataclass(o) and not isinstance(o, type):
        return dataclasses.asdict(o)
    if isinstance(o, Enum):
        return o.value
    if isinstance(o, (set, frozenset, tuple)):
        return list(o)
    if hasattr(o, "isoformat"):
        return o.isoformat()
    return str(o)


def dump_json(obj: Any) -> bytes:
    """Encode ``obj`` as compact UTF-8 JSON."""
    return json.dumps(
        obj,
        default=_json_default_serializer,
        ensure_ascii=False,
        separators=(",", ":"),
    ).encode("utf-8")


class ResponseCommittedFault(Fault):
    """A second write to a response that was already sent."""
    code = "RESPONSE_ALREADY_COMMITTED"
    message = "Response has already been written"
    domain = FaultDomain.IO


class Response:
    """
    HTTP response.

    Attributes:
        status: HTTP status code
        committed: True once a body has been written via :meth:`send`
    """

    def __init__(
        self,
        content: Union[bytes, str, None] = b"",
        status: int = 200,
        headers: Optional[Mapping[str, str]] = None,
        media_type: Optional[str] = None,
    ):
        self.status = status
        self._headers: Dict[str, str] = {}
        if headers:
            for key, value in headers.items():
                self._headers[key.lower()] = value
        if media_type:
            self._headers["content-type"] = media_type
        self._body = self._encode(content)
        self.committed = False

    # ========================================================================
    # Factory Methods
    # ========================================================================

    @classmethod
    def json(
        cls,
        obj: Any,
        status: int = 200,
        *,
        headers: Optional[Mapping[str, str]] = None,
    ) -> "Response":
        """Create a JSON response."""
        return cls(
            content=dump_json(obj),
            status=status,
            headers=headers,
            media_type="application/json; charset=utf-8",
        )

    @classmethod
    def text(cls, content: str, status: int = 200, **kwargs) -> "Response":
        """Create plain text response."""
        return cls(
            content=content,
            status=status,
            media_type="text/plain; charset=utf-8",
            **kwargs,
        )

    # ========================================================================
    # Writers
    # ========================================================================

    @property
    def headers(self) -> Dict[str, str]:
        return self._headers

    @property
    def body(self) -> bytes:
        return self._body

    def set_status(self, status: int) -> "Response":
        """Set the status code without committing (builder style)."""
        self.status = status
        return self

    def set_header(self, name: str, value: str) -> "Response":
        if "\r" in value or "\n" in value:
            raise ValueError(f"Invalid header value for {name!r}")
        self._headers[name.lower()] = value
        return self

    def send(
        self,
        content: Union[bytes, str, None],
        status: Optional[int] = None,
        media_type: Optional[str] = None,
    ) -> None:
        """
        Write the body and commit the response.

        Raises:
            ResponseCommittedFault: If the response was already written
        """
        if self.committed:
            raise ResponseCommittedFault()
        if status is not None:
            self.status = status
        if media_type:
            self._headers["content-type"] = media_type
        self._body = self._encode(content)
        self.committed = True

    def send_json(self, obj: Any, status: Optional[int] = None) -> None:
        """Serialize ``obj`` as JSON, write it and commit."""
        self.send(dump_json(obj), status=status, media_type="application/json; charset=utf-8")

    def adopt(self, other: "Response") -> None:
        """Take over status, headers and body of another response and commit."""
        if self.committed:
            raise ResponseCommittedFault()
        self.status = other.status
        self._headers.update(other.headers)
        self._body = other.body
        self.committed = True

    # ========================================================================
    # ASGI
    # ========================================================================

    async def send_asgi(self, send: Send, *, head: bool = False) -> None:
        """
        Send response via ASGI.

        Args:
            send: ASGI send callable
            head: Omit the body (HEAD requests) but keep content-length
        """
        body = self._body
        if "content-type" not in self._headers and body:
            self._headers["content-type"] = "application/octet-stream"
        self._headers["content-length"] = str(len(body))

        await send({
            "type": "http.response.start",
            "status": self.status,
            "headers": self._prepare_headers(),
        })
        await send({
            "type": "http.response.body",
            "body": b"" if head else body,
            "more_body": False,
        })

    def _prepare_headers(self) -> List[Tuple[bytes, bytes]]:
        return [
            (name.encode("latin-1"), value.encode("latin-1"))
            for name, value in self._headers.items()
        ]

    @staticmethod
    def _encode(content: Union[bytes, str, None]) -> bytes:
        if content is None:
            return b""
        if isinstance(content, bytes):
            return content
        return str(content).encode("utf-8")

    def __repr__(self) -> str:
        return (
            f"Response(status={self.status}, "
            f"content_type={self._headers.get('content-type')!r}, committed={self.committed})"
        )
