"""
Waymark Faults - Structured fault types.

Defines:
- Fault base class (structured fault objects)
- FaultDomain (explicit fault domains)
- Severity levels
- Configuration faults raised while compiling controllers
- HTTP faults that the error handler maps to status codes
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


# ============================================================================
# Severity & Domain
# ============================================================================

class Severity(str, Enum):
    """
    Fault severity levels.

    Determines the logging level used by the error handler.
    """
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    FATAL = "fatal"


class FaultDomain:
    """
    Fault domains (taxonomy).

    Identifies the functional area where a fault occurred.
    """

    def __init__(self, name: str, description: str = ""):
        self.name = name
        self.value = name
        self.description = description

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"FaultDomain(name='{self.name}')"

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, FaultDomain):
            return self.name == other.name
        return str(self) == str(other)

    def __hash__(self) -> int:
        return hash(self.name)


FaultDomain.CONFIG = FaultDomain("config", "Controller and application configuration errors")
FaultDomain.REGISTRY = FaultDomain("registry", "Metadata registry errors")
FaultDomain.ROUTING = FaultDomain("routing", "Route matching errors")
FaultDomain.VALIDATION = FaultDomain("validation", "Request validation errors")
FaultDomain.FLOW = FaultDomain("flow", "Handler execution errors")
FaultDomain.IO = FaultDomain("io", "Request and response I/O")


DOMAIN_DEFAULTS = {
    FaultDomain.CONFIG: Severity.FATAL,
    FaultDomain.REGISTRY: Severity.FATAL,
    FaultDomain.ROUTING: Severity.WARN,
    FaultDomain.VALIDATION: Severity.INFO,
    FaultDomain.FLOW: Severity.ERROR,
    FaultDomain.IO: Severity.WARN,
}


# ============================================================================
# Fault - Base Class
# ============================================================================

class Fault(Exception):
    """
    Base fault class - structured, typed fault object.

    Attributes:
        code: Stable machine-readable identifier (e.g., "ROUTE_NOT_FOUND")
        message: Human-readable summary
        domain: Fault domain (CONFIG, ROUTING, ...)
        severity: Fault severity
        public: Whether the message is safe to expose to clients
        metadata: Additional context data

    Subclasses may declare ``code``, ``message`` and ``domain`` as class
    attributes instead of passing them in.

    Example:
        ```python
        raise Fault(
            code="TODO_NOT_FOUND",
            message="Todo 42 not found",
            domain=FaultDomain.FLOW,
            public=True,
        )
        ```
    """

    def __init__(
        self,
        code: str | None = None,
        message: str | None = None,
        *,
        domain: FaultDomain | None = None,
        severity: Optional[Severity] = None,
        public: Optional[bool] = None,
        metadata: Optional[dict[str, Any]] = None,
    ):
        self.code = code if code is not None else getattr(self, "code", None)
        self.message = message if message is not None else getattr(self, "message", None)
        self.domain = domain if domain is not None else getattr(self, "domain", None)

        if self.code is None or self.message is None or self.domain is None:
            raise TypeError(f"{self.__class__.__name__} missing required code, message, or domain")

        super().__init__(self.message)

        self.severity = severity or getattr(type(self), "severity", None) or DOMAIN_DEFAULTS.get(
            self.domain, Severity.ERROR
        )
        self.public = public if public is not None else getattr(type(self), "public", False)
        self.metadata = metadata or {}

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(code={self.code!r}, domain={self.domain.value}, "
            f"severity={self.severity.value}, public={self.public})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize fault for logging."""
        return {
            "code": self.code,
            "message": self.message,
            "domain": self.domain.value,
            "severity": self.severity.value,
            "public": self.public,
            "metadata": self.metadata,
        }


# ============================================================================
# Configuration Faults
# ============================================================================

class ConfigurationFault(Fault):
    """
    Base class for programmer errors detected while wiring routes.

    These are fatal: the process must not start serving with a broken
    route table.
    """
    domain = FaultDomain.CONFIG
    severity = Severity.FATAL


class ControllerNotRegisteredFault(ConfigurationFault):
    """A controller instance whose class was never decorated with @Controller."""
    code = "CONTROLLER_NOT_REGISTERED"

    def __init__(self, controller_name: str, **kwargs):
        super().__init__(
            message=f"Controller metadata not found for {controller_name}",
            metadata={"controller": controller_name},
            **kwargs,
        )
        self.controller_name = controller_name


class UnsupportedMethodFault(ConfigurationFault):
    """A route descriptor carrying a missing or unknown HTTP method."""
    code = "UNSUPPORTED_HTTP_METHOD"

    def __init__(self, method: Any, route: str, **kwargs):
        super().__init__(
            message=f"Unsupported HTTP method: {method!r} (route {route})",
            metadata={"method": method, "route": route},
            **kwargs,
        )


class ControllerConfigFault(ConfigurationFault):
    """A route descriptor that does not line up with the controller class."""
    code = "CONTROLLER_CONFIG_INVALID"

    def __init__(self, controller_name: str, reason: str, **kwargs):
        super().__init__(
            message=f"Invalid controller {controller_name}: {reason}",
            metadata={"controller": controller_name, "reason": reason},
            **kwargs,
        )


class InvalidSchemaFault(ConfigurationFault):
    """A validation schema exposing none of the supported validator protocols."""
    code = "INVALID_VALIDATION_SCHEMA"

    def __init__(self, schema: Any, route: str, **kwargs):
        super().__init__(
            message=(
                f"Validation schema {schema!r} on {route} has no parse(), "
                f"model_validate() or validate() and is not callable"
            ),
            metadata={"route": route},
            **kwargs,
        )


class ConfigInvalidFault(ConfigurationFault):
    """A configuration value that failed validation."""
    code = "CONFIG_INVALID"

    def __init__(self, key: str, reason: str, **kwargs):
        super().__init__(
            message=f"Invalid config value for '{key}': {reason}",
            metadata={"key": key, "reason": reason},
            **kwargs,
        )


class RegistrySealedFault(Fault):
    """A write attempted after the metadata registry was sealed."""
    code = "REGISTRY_SEALED"
    domain = FaultDomain.REGISTRY

    def __init__(self, operation: str, **kwargs):
        super().__init__(
            message=f"Metadata registry is sealed; cannot {operation}",
            metadata={"operation": operation},
            **kwargs,
        )


# ============================================================================
# Validation Faults
# ============================================================================

class ValidationFault(Fault):
    """
    Request validation failed.

    ``details`` carries per-field problems and is exposed to the client.
    """
    code = "VALIDATION_ERROR"
    message = "Validation failed"
    domain = FaultDomain.VALIDATION
    public = True

    def __init__(self, message: str | None = None, details: Any = None, **kwargs):
        super().__init__(message=message, **kwargs)
        self.details = details


# ============================================================================
# HTTP Faults
# ============================================================================

class HTTPFault(Fault):
    """
    Fault that maps directly to an HTTP status code.

    Handlers may raise these to short-circuit with a client-facing error.
    """
    status: int = 500
    code = "HTTP_ERROR"
    message = "Internal server error"
    domain = FaultDomain.FLOW
    public = True

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        details: Any = None,
        status: int | None = None,
        **kwargs,
    ):
        super().__init__(code=code, message=message, **kwargs)
        if status is not None:
            self.status = status
        self.details = details


class BadRequestFault(HTTPFault):
    """Malformed request (400)."""
    status = 400
    code = "BAD_REQUEST"
    message = "Bad request"
    domain = FaultDomain.IO


class InvalidJSONFault(BadRequestFault):
    """Request body announced as JSON could not be decoded (400)."""
    code = "INVALID_JSON"
    message = "Invalid JSON payload"


class PayloadTooLargeFault(HTTPFault):
    """Request body exceeds the configured limit (413)."""
    status = 413
    code = "PAYLOAD_TOO_LARGE"
    message = "Payload too large"
    domain = FaultDomain.IO


class NotFoundFault(HTTPFault):
    """Requested resource does not exist (404)."""
    status = 404
    code = "NOT_FOUND"
    message = "Not Found"
    severity = Severity.INFO


class MethodNotAllowedFault(HTTPFault):
    """Path exists but not for this HTTP method (405)."""
    status = 405
    code = "METHOD_NOT_ALLOWED"
    message = "Method not allowed"
    domain = FaultDomain.ROUTING

    def __init__(self, method: str, path: str, allowed: list[str], **kwargs):
        super().__init__(
            message=f"Method {method} not allowed for {path}",
            details={"allowed": allowed},
            **kwargs,
        )
        self.allowed = allowed
