# -*- coding: utf-8 -*-
from mcp_gateway.server import mcp as gateway_mcp, GATEWAY_PLANNER_TOOLS

# Server registry mapping server names to MCP instances
# All services are unified through the MCP Gateway
SERVER_REGISTRY = {
    "planner_server": gateway_mcp,
    "suggestion_service": gateway_mcp,
}

# Map tool names to the service they come from
TOOL_SERVICE_MAPPING: dict[str, str] = {
    **{name: "planner_server" for name in GATEWAY_PLANNER_TOOLS},
    "suggest_for_task": "suggestion_service",
    # Gateway tools
    "get_gateway_info": "gateway",
    "list_available_tools": "gateway",
}


async def list_tool_schemas() -> list[dict]:
    """Collect and return JSON schemas of all available tools from MCP servers."""
    schemas = []

    # Get all tools from the unified MCP gateway
    all_tools = await gateway_mcp.get_tools()

    for tool_key, tool in all_tools.items():
        # Determine which server this tool belongs to
        server_name = TOOL_SERVICE_MAPPING.get(tool_key, "unknown_server")

        schemas.append({
            "server": server_name,
            "name": tool_key,
            "title": tool.title or tool_key,
            "description": tool.description or "",
            "inputSchema": tool.parameters or {},
            "outputSchema": tool.output_schema or {},
        })

    return schemas
