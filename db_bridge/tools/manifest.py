"""Tool layer — Tool manifest.

A ToolManifest is the machine-readable contract between a toolset and the
outside world (agent protocol tool listing, /tools API, CLI).

It describes:
  - Toolset identity and version
  - Available tools with their param schemas
  - Usage examples for agent few-shot prompting
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ParamSpec:
    """Description of a single tool parameter."""

    name: str
    type: str | list[str]  # JSON Schema type: string, integer, object, array, ...
    description: str
    required: bool = True
    default: Any = None
    enum: list[Any] | None = None
    example: Any = None


@dataclass
class ToolSpec:
    """Description of a single tool exposed by a toolset."""

    name: str
    description: str
    params: list[ParamSpec] = field(default_factory=list)
    returns: str = "object"
    returns_description: str = ""
    examples: list[dict[str, Any]] = field(default_factory=list)
    additional_params: bool = False
    """Whether keys beyond ``params`` are accepted (backend-specific options)."""

    def to_json_schema(self) -> dict[str, Any]:
        """Generate a JSONSchema dict for the params of this tool."""
        properties: dict[str, Any] = {}
        required: list[str] = []

        for param in self.params:
            prop: dict[str, Any] = {
                "type": param.type,
                "description": param.description,
            }
            if param.enum is not None:
                prop["enum"] = param.enum
            if param.example is not None:
                prop["examples"] = [param.example]
            if param.default is not None:
                prop["default"] = param.default
            properties[param.name] = prop
            if param.required:
                required.append(param.name)

        schema: dict[str, Any] = {
            "type": "object",
            "properties": properties,
            "additionalProperties": self.additional_params,
        }
        if required:
            schema["required"] = required
        return schema

    def to_tool_definition(self) -> dict[str, Any]:
        """Tool listing entry in the agent protocol's shape."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.to_json_schema(),
        }


@dataclass
class ToolManifest:
    """Complete capability manifest for a toolset."""

    toolset_id: str
    version: str
    description: str
    tools: list[ToolSpec] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)

    def get_tool(self, tool_name: str) -> ToolSpec | None:
        for tool in self.tools:
            if tool.name == tool_name:
                return tool
        return None

    def tool_names(self) -> list[str]:
        return [t.name for t in self.tools]

    def to_dict(self) -> dict[str, Any]:
        return {
            "toolset_id": self.toolset_id,
            "version": self.version,
            "description": self.description,
            "tags": self.tags,
            "tools": [
                {
                    "name": t.name,
                    "description": t.description,
                    "params_schema": t.to_json_schema(),
                    "returns": t.returns,
                    "returns_description": t.returns_description,
                    "examples": t.examples,
                }
                for t in self.tools
            ],
        }
