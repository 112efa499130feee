"""MCP stdio server with tool handlers proxying to the engine HTTP API."""

from __future__ import annotations

import json

import anyio
import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.stdio import stdio_server

from switchboard import __version__
from switchboard.mcp_server.client import EngineClient

TASK_SCHEMA = {
    "type": "object",
    "properties": {
        "task": {"type": "string", "description": "Free-text task description"},
    },
    "required": ["task"],
}

RUN_PLAN_SCHEMA = {
    "type": "object",
    "properties": {
        "plan_id": {"type": "string", "description": "Plan id returned by dispatch_task"},
        "follow_handoffs": {
            "type": "boolean",
            "description": "Run handoff plans too (default: server config)",
        },
    },
    "required": ["plan_id"],
}

RELOAD_SCHEMA = {
    "type": "object",
    "properties": {
        "sources": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Registry sources. Omit to reload the current ones.",
        },
    },
}


def create_mcp_server() -> Server:
    """Create and configure the MCP server with 4 tool handlers."""
    server = Server("switchboard", __version__)

    @server.list_tools()
    async def list_tools() -> list[types.Tool]:
        return [
            types.Tool(
                name="match_agents",
                description="Rank registry agents for a task without dispatching.",
                inputSchema=TASK_SCHEMA,
            ),
            types.Tool(
                name="dispatch_task",
                description="Select an agent and workflow for a task. Returns the plan id.",
                inputSchema=TASK_SCHEMA,
            ),
            types.Tool(
                name="run_plan",
                description="Execute a dispatched plan and return its step results and outcome.",
                inputSchema=RUN_PLAN_SCHEMA,
            ),
            types.Tool(
                name="reload_registry",
                description="Validate and atomically swap in a new agent registry.",
                inputSchema=RELOAD_SCHEMA,
            ),
        ]

    @server.call_tool()
    async def call_tool(
        name: str,
        arguments: dict | None,
    ) -> list[types.TextContent]:
        args = arguments or {}
        client = EngineClient()
        try:
            if name == "match_agents":
                result = await client.match(args["task"])
            elif name == "dispatch_task":
                result = await client.dispatch(args["task"])
            elif name == "run_plan":
                result = await client.run(
                    args["plan_id"], follow_handoffs=args.get("follow_handoffs")
                )
            elif name == "reload_registry":
                result = await client.reload_registry(args.get("sources"))
            else:
                return [types.TextContent(type="text", text=f"Unknown tool: {name}")]
        finally:
            await client.close()

        return [types.TextContent(type="text", text=json.dumps(result, indent=2))]

    return server


async def run_mcp_server() -> None:
    """Run the MCP server with stdio transport."""
    server = create_mcp_server()
    async with stdio_server() as (read_stream, write_stream):
        init_options = server.create_initialization_options(
            notification_options=NotificationOptions(),
        )
        await server.run(read_stream, write_stream, init_options)


def main() -> None:
    anyio.run(run_mcp_server)
