"""
MCP Gateway Server - Unified entry point for the planner tools.

This server registers the planner tools and the suggestion wrapper with a
single FastMCP instance. Planner tools run in-process against the store;
suggestions are fetched from the distributed suggestion service via HTTP.
"""
from __future__ import annotations

from fastmcp import FastMCP

# Import the raw functions (not the decorated versions) so they can be
# registered with our own unified FastMCP instance
from planner_server.server import PLANNER_TOOLS
from mcp_wrappers.suggestions.mcp_service import (
    _suggest_for_task,
    MAX_RETRIES,
    SUGGESTION_SERVICE_URL,
)
from planner_server.suggestions import Suggestion

# Create the unified MCP server
mcp = FastMCP("StudentPlannerGateway")

# The gateway fetches suggestions remotely instead of using the in-process heuristics
GATEWAY_PLANNER_TOOLS = {name: fn for name, fn in PLANNER_TOOLS.items() if name != "suggest_for_task"}


def get_service_status() -> dict[str, str]:
    """
    Get the status of all distributed services.

    This function reports the configured URLs to help with debugging and
    service discovery.
    """
    return {
        "planner": "in-process",
        "suggestion_service": SUGGESTION_SERVICE_URL,
        "suggestion_max_retries": str(MAX_RETRIES),
        "gateway_status": "running",
    }


# Planner Tools
for _name, _fn in GATEWAY_PLANNER_TOOLS.items():
    mcp.tool(_fn, name=_name)


# Suggestion Service Tools
@mcp.tool()
async def suggest_for_task(
        title: str = "",
        subject: str = "",
        task_type: str = "academic",
        recent_study_minutes: int = 0,
) -> list[Suggestion]:
    """Suggests study and scheduling actions for a task being planned."""
    return await _suggest_for_task(title, subject, task_type, recent_study_minutes=recent_study_minutes)


@mcp.tool()
def get_gateway_info() -> dict[str, str]:
    """
    Get information about the MCP Gateway and connected services.

    This tool provides status information about the gateway and the
    URLs of all distributed services it connects to.
    """
    return get_service_status()


def get_tool_summary() -> dict[str, list[str]]:
    """List all available tools organized by service."""
    def summary(name: str, fn) -> str:
        first_line = (fn.__doc__ or "").strip().splitlines()
        return f"{name} - {first_line[0]}" if first_line else name

    return {
        "planner": [summary(name, fn) for name, fn in GATEWAY_PLANNER_TOOLS.items()],
        "suggestion_service": [
            "suggest_for_task - Suggest study and scheduling actions, with offline fallback",
        ],
        "gateway_tools": [
            "get_gateway_info - Get gateway and service status information",
            "list_available_tools - List all available tools by service",
        ],
    }


@mcp.tool()
def list_available_tools() -> dict[str, list[str]]:
    """List all available tools organized by service."""
    return get_tool_summary()


if __name__ == "__main__":
    print("🌟 Starting MCP Gateway Server")
    print("📋 Available Services:")

    status = get_service_status()
    for service_name, service_url in status.items():
        if service_name != "gateway_status":
            print(f"  • {service_name}: {service_url}")

    print(f"\n🚀 Gateway Status: {status['gateway_status']}")
    print("\nTools available:")
    tools = get_tool_summary()
    for service_name, tool_list in tools.items():
        print(f"\n📦 {service_name}:")
        for tool in tool_list:
            print(f"    - {tool}")

    print(f"\n🌐 Starting MCP server...")
    mcp.run()
