from db_bridge.tools.base import BaseToolset, ToolResult
from db_bridge.tools.database import DatabaseTools
from db_bridge.tools.manifest import ParamSpec, ToolManifest, ToolSpec

__all__ = [
    "BaseToolset",
    "DatabaseTools",
    "ParamSpec",
    "ToolManifest",
    "ToolResult",
    "ToolSpec",
]
