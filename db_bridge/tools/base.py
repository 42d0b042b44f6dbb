"""Tool layer — BaseToolset interface.

A toolset maps tool names to ``_tool_<name>`` coroutine methods and turns
every outcome into a ``ToolResult``.  Operational failures never escape as
exceptions: they become ``success=False`` results carrying the error message
and its machine code, so the agent can decide whether to retry, fix its
input or give up.  Only an unknown tool name raises (``ToolNotFoundError``)
from :meth:`BaseToolset.get_handler`; :meth:`BaseToolset.call` reports it as
a failed result like everything else.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import pydantic

from db_bridge.exceptions import BridgeError, ToolNotFoundError
from db_bridge.logging import bind_tool_context, clear_tool_context, get_logger
from db_bridge.tools.manifest import ToolManifest

log = get_logger(__name__)


@dataclass
class ToolResult:
    """Structured result returned by a tool call."""

    success: bool
    output: Any = None
    error: str | None = None
    code: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        # Round-trip through JSON so dates, Decimals and bytes from drivers
        # become plain strings.
        return json.loads(self.to_json())

    def to_json(self, indent: int | None = None) -> str:
        data: dict[str, Any] = {"success": self.success}
        if self.success:
            data["output"] = self.output
        else:
            data["error"] = self.error
            data["code"] = self.code
        if self.metadata:
            data["metadata"] = self.metadata
        return json.dumps(data, indent=indent, default=str)


class BaseToolset(ABC):
    """Abstract base class for tool collections.

    Subclasses must:
      1. Set ``TOOLSET_ID`` and ``VERSION``
      2. Implement :meth:`get_manifest`
      3. Implement ``_tool_<name>`` coroutine methods for each declared tool
    """

    TOOLSET_ID: str = ""
    VERSION: str = "0.0.0"

    @abstractmethod
    def get_manifest(self) -> ToolManifest: ...

    def get_handler(self, tool: str) -> Any:
        """Convention: tool ``"execute_query"`` maps to ``_tool_execute_query``."""
        handler = getattr(self, f"_tool_{tool}", None)
        if handler is None:
            raise ToolNotFoundError(tool, available=self.get_manifest().tool_names())
        return handler

    async def call(self, tool: str, params: dict[str, Any] | None = None) -> ToolResult:
        """Dispatch *tool* and wrap its outcome in a ``ToolResult``."""
        bind_tool_context(tool=tool)
        try:
            handler = self.get_handler(tool)
            output = await handler(params or {})
        except BridgeError as exc:
            log.warning("tool_failed", error=exc.message, code=exc.code)
            return ToolResult(success=False, error=exc.message, code=exc.code)
        except pydantic.ValidationError as exc:
            message = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'params'}: {err['msg']}"
                for err in exc.errors()
            )
            return ToolResult(
                success=False,
                error=f"Invalid parameters: {message}",
                code="validation_error",
            )
        except Exception as exc:
            log.exception("tool_crashed")
            return ToolResult(success=False, error=str(exc), code="internal_error")
        finally:
            clear_tool_context()
        return ToolResult(success=True, output=output)
