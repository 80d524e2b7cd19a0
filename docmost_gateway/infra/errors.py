"""Custom exception hierarchy for the Docmost gateway.

All application-specific exceptions inherit from GatewayBaseError,
which carries an error code for response mapping and log context.
"""

from __future__ import annotations

from typing import Any


class GatewayBaseError(Exception):
    """Base exception for all gateway errors."""

    def __init__(self, message: str, *, code: str = "INTERNAL_ERROR") -> None:
        super().__init__(message)
        self.code = code


class ConfigError(GatewayBaseError):
    """Missing/invalid startup configuration, or a misrouted backend base URL."""

    def __init__(self, message: str, *, code: str = "CONFIG_ERROR") -> None:
        super().__init__(message, code=code)


class ValidationError(GatewayBaseError):
    """Missing or invalid caller-supplied parameters."""

    def __init__(self, message: str, *, code: str = "VALIDATION_ERROR") -> None:
        super().__init__(message, code=code)


class PolicyError(GatewayBaseError):
    """Operation blocked by the read-only policy."""

    def __init__(
        self,
        message: str = "The gateway is in READ_ONLY mode; write operations are not allowed.",
    ) -> None:
        super().__init__(message, code="READ_ONLY")


class ProtocolError(GatewayBaseError):
    """Malformed envelope or unknown method."""

    def __init__(self, message: str, *, code: str = "PROTOCOL_ERROR") -> None:
        super().__init__(message, code=code)


class AuthError(GatewayBaseError):
    """Login exchange failed to yield a usable credential."""

    def __init__(self, message: str, *, code: str = "AUTH_ERROR") -> None:
        super().__init__(message, code=code)


class BackendError(GatewayBaseError):
    """The Docmost backend answered with a failure status.

    status is None when the request never got a response (timeout, connection refused).
    """

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        body: Any = None,
        code: str = "BACKEND_ERROR",
    ) -> None:
        super().__init__(message, code=code)
        self.status = status
        self.body = body
