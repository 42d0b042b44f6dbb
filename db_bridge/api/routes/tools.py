"""GET /tools, GET /tools/{name}/schema, POST /tools/{name}"""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Body, HTTPException, status

from db_bridge.api.dependencies import AuthDep, ToolsDep
from db_bridge.api.schemas import ToolCallResponse, ToolSummary

router = APIRouter(prefix="/tools", tags=["tools"])


@router.get("", response_model=list[ToolSummary], summary="List all tools")
async def list_tools(_auth: AuthDep, tools: ToolsDep) -> list[ToolSummary]:
    return [
        ToolSummary(
            name=spec.name,
            description=spec.description,
            params_schema=spec.to_json_schema(),
        )
        for spec in tools.get_manifest().tools
    ]


@router.get("/{tool_name}/schema", summary="Get the JSONSchema for a tool's params")
async def get_tool_schema(
    tool_name: str,
    _auth: AuthDep,
    tools: ToolsDep,
) -> dict[str, Any]:
    spec = tools.get_manifest().get_tool(tool_name)
    if spec is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Tool '{tool_name}' does not exist.",
        )
    return spec.to_json_schema()


@router.post("/{tool_name}", response_model=ToolCallResponse, summary="Call a tool")
async def call_tool(
    tool_name: str,
    _auth: AuthDep,
    tools: ToolsDep,
    params: Annotated[dict[str, Any] | None, Body()] = None,
) -> dict[str, Any]:
    # Unknown tools are an HTTP-level error; everything else is reported
    # inside the ToolResult body.
    tools.get_handler(tool_name)
    result = await tools.call(tool_name, params or {})
    return result.to_dict()
