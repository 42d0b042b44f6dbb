"""DB Bridge — Exception hierarchy.

All exceptions raised by the bridge inherit from BridgeError so that callers
can catch the full family with a single except clause when needed.  Every
error carries a stable ``code`` so that a caller can tell input mistakes
apart from missing connections and backend failures.

Hierarchy:
    BridgeError
    ├── ValidationError
    ├── NotSupportedError
    ├── DuplicateNameError
    ├── NotFoundError
    ├── BackendError
    │   ├── ConnectionError
    │   ├── QueryError
    │   └── SchemaError
    └── ToolError
        └── ToolNotFoundError
"""

from __future__ import annotations

from typing import Any


class BridgeError(Exception):
    """Base exception for all DB Bridge errors."""

    code: str = "internal_error"

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = context or {}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context})"


# ---------------------------------------------------------------------------
# Input errors, detected before any network activity
# ---------------------------------------------------------------------------


class ValidationError(BridgeError):
    """Required connection parameters are missing or malformed."""

    code = "validation_error"

    def __init__(
        self,
        message: str,
        missing_fields: list[str] | None = None,
        backend_type: str | None = None,
    ) -> None:
        super().__init__(
            message,
            context={"missing_fields": missing_fields or [], "backend_type": backend_type},
        )
        self.missing_fields = missing_fields or []
        self.backend_type = backend_type

    @classmethod
    def missing(cls, fields: list[str], backend_type: str | None = None) -> "ValidationError":
        return cls(
            f"Missing required configuration fields: {', '.join(fields)}",
            missing_fields=fields,
            backend_type=backend_type,
        )


class NotSupportedError(BridgeError):
    """The backend type identifier has no registered driver."""

    code = "not_supported"

    def __init__(self, backend_type: str, supported: list[str]) -> None:
        super().__init__(
            f"Unsupported database type: '{backend_type}'. "
            f"Supported types: {', '.join(supported)}",
            context={"backend_type": backend_type, "supported": supported},
        )
        self.backend_type = backend_type
        self.supported = supported


class DuplicateNameError(BridgeError):
    code = "duplicate_name"

    def __init__(self, name: str) -> None:
        super().__init__(
            f"Connection '{name}' already exists",
            context={"connection": name},
        )
        self.name = name


class NotFoundError(BridgeError):
    code = "not_found"

    def __init__(self, name: str, kind: str = "Connection") -> None:
        super().__init__(
            f"{kind} '{name}' not found",
            context={"connection": name},
        )
        self.name = name


# ---------------------------------------------------------------------------
# Backend errors, raised after the backend rejected an operation
# ---------------------------------------------------------------------------


class BackendError(BridgeError):
    """Base for errors originating in a backend client library.

    The original backend message is always preserved inside ``message``; the
    original exception is chained through ``__cause__``.
    """

    code = "backend_error"

    def __init__(
        self,
        message: str,
        backend_type: str | None = None,
        connection: str | None = None,
    ) -> None:
        super().__init__(
            message,
            context={"backend_type": backend_type, "connection": connection},
        )
        self.backend_type = backend_type
        self.connection = connection


class ConnectionError(BackendError):
    """The backend rejected a connection attempt (auth, network, timeout)."""

    code = "connection_error"


class QueryError(BackendError):
    code = "query_error"


class SchemaError(BackendError):
    code = "schema_error"


# ---------------------------------------------------------------------------
# Tool layer
# ---------------------------------------------------------------------------


class ToolError(BridgeError):
    """Base for tool-coordination errors."""

    code = "tool_error"


class ToolNotFoundError(ToolError):
    code = "tool_not_found"

    def __init__(self, tool: str, available: list[str] | None = None) -> None:
        super().__init__(
            f"Unknown tool: '{tool}'",
            context={"tool": tool, "available": available or []},
        )
        self.tool = tool
