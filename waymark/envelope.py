"""
Response envelope - the standard JSON shape every route answers with.

    { "success": bool, "data"?, "message"?, "error"?, "code"?, "details"? }

Handlers may return an :class:`Envelope` built with the helpers below to
choose the shape explicitly; any other non-None value is wrapped with
:func:`success_data` by the route compiler.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from .response import Response


_MISSING: Any = object()


@dataclass(frozen=True)
class Envelope:
    """
    An explicit response envelope.

    Only the fields that were set are serialized; ``code`` and ``details``
    are dropped when falsy.
    """

    success: bool
    data: Any = _MISSING
    message: Optional[str] = None
    error: Optional[str] = None
    code: Optional[str] = None
    details: Any = None

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"success": self.success}
        if self.data is not _MISSING:
            body["data"] = self.data
        if self.message is not None:
            body["message"] = self.message
        if self.error is not None:
            body["error"] = self.error
        if self.code:
            body["code"] = self.code
        if self.details:
            body["details"] = self.details
        return body


def success_data(data: Any) -> Envelope:
    """``{"success": true, "data": data}``"""
    return Envelope(success=True, data=data)


def success_message(message: str) -> Envelope:
    """``{"success": true, "message": message}``"""
    return Envelope(success=True, message=message)


def error_envelope(error: str, code: Optional[str] = None, details: Any = None) -> Envelope:
    """``{"success": false, "error": error, "code"?, "details"?}``"""
    return Envelope(success=False, error=error, code=code, details=details)


class ResponseHelper:
    """
    Writes envelopes straight to a response.

    For handlers that take the raw response (``Res()``) and want the
    standard shape without building it by hand::

        @Get("/export")
        def export(self, res: Annotated[Response, Res()]):
            ResponseHelper(res).success_message("Export queued", 202)
    """

    def __init__(self, response: Response):
        self.response = response

    def success_data(self, data: Any, status: int = 200) -> None:
        self.response.send_json(success_data(data).to_dict(), status=status)

    def success_message(self, message: str, status: int = 200) -> None:
        self.response.send_json(success_message(message).to_dict(), status=status)

    def error(
        self,
        error: str,
        status: int = 500,
        code: Optional[str] = None,
        details: Any = None,
    ) -> None:
        self.response.send_json(error_envelope(error, code, details).to_dict(), status=status)
