"""
Centralized error handling.

One ErrorHandler per host turns every exception that escapes a binding (or
the host itself) into an error envelope:

- HTTPFault                       -> its status, ``error``/``code``/``details``
- ValidationFault, pydantic error -> 400 ``Validation failed``
- anything else                   -> 500 ``Internal server error``
  (plus ``message`` and ``stack`` in debug mode)

Unknown routes get the 404 envelope from :meth:`ErrorHandler.not_found`.
"""

from __future__ import annotations

import logging
import traceback
from typing import Any, Optional

from pydantic import ValidationError

from .envelope import error_envelope
from .faults import Fault, HTTPFault, Severity, ValidationFault
from .request import Request
from .response import Response

logger = logging.getLogger("waymark.errors")

_LOG_LEVELS = {
    Severity.INFO: logging.INFO,
    Severity.WARN: logging.WARNING,
    Severity.ERROR: logging.ERROR,
    Severity.FATAL: logging.CRITICAL,
}


class ErrorHandler:
    """
    Default ``(exc, request, response)`` error handler.

    Args:
        debug: Expose exception message and stack trace on 500 answers
        log: Logger to report to (``waymark.errors`` by default)
    """

    def __init__(self, debug: bool = False, log: Optional[logging.Logger] = None):
        self.debug = debug
        self.logger = log or logger

    def __call__(self, exc: BaseException, request: Request, response: Response) -> None:
        self.handle(exc, request, response)

    def handle(self, exc: BaseException, request: Request, response: Response) -> None:
        if response.committed:
            self.logger.error(
                "Error after response was sent for %s %s: %r",
                request.method, request.path, exc,
            )
            return

        if isinstance(exc, HTTPFault):
            self._log_fault(exc, request)
            body = error_envelope(exc.message, exc.code, exc.details).to_dict()
            response.send_json(body, exc.status)
            return

        if isinstance(exc, (ValidationFault, ValidationError)):
            details = exc.details if isinstance(exc, ValidationFault) else exc.errors(include_url=False)
            self.logger.info("Validation failed for %s %s", request.method, request.path)
            body = error_envelope("Validation failed", ValidationFault.code, details).to_dict()
            response.send_json(body, 400)
            return

        if isinstance(exc, Fault):
            self._log_fault(exc, request)
        else:
            self.logger.error(
                "Unhandled error in %s %s",
                request.method, request.path,
                exc_info=(type(exc), exc, exc.__traceback__),
            )
        response.send_json(self._server_error(exc), 500)

    def _server_error(self, exc: BaseException) -> dict:
        if isinstance(exc, Fault) and exc.public:
            body = error_envelope(exc.message, exc.code).to_dict()
        else:
            body = error_envelope("Internal server error").to_dict()
        if self.debug:
            body["message"] = str(exc)
            body["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        return body

    def _log_fault(self, fault: Fault, request: Request) -> None:
        self.logger.log(
            _LOG_LEVELS.get(fault.severity, logging.ERROR),
            "[%s] %s: %s (%s %s)",
            fault.domain.value, fault.code, fault.message, request.method, request.path,
            extra={"fault": fault.to_dict()},
        )

    def not_found(self, request: Request, response: Response) -> None:
        """Answer 404 for a request no route matched."""
        target = request.path
        if request.query_string:
            target = f"{target}?{request.query_string}"
        body: dict[str, Any] = error_envelope("Not Found").to_dict()
        body["message"] = f"Route {target} not found"
        response.send_json(body, 404)
