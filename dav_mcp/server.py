# server.py
# DAV (CalDAV / CardDAV / WebDAV) - MCP connector

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from fastmcp.tools import Tool
from fastmcp.tools.tool import ToolResult
from pydantic import Field
from starlette.requests import Request
from starlette.responses import PlainTextResponse

from .client import make_handles
from .providers import resolve
from .settings import ConfigError, Settings, load_env_file, load_settings
from .tools import ToolRegistry, build_registry

log = logging.getLogger("dav-mcp")
TOOL_MANAGER_LOGGER = "fastmcp.tools.tool_manager"

INSTRUCTIONS = (
    "Read-only access to the account's calendars, contacts and (where the provider "
    "supports WebDAV) files. List containers first, then pass their URLs to the "
    "fetch tools."
)


def configure_logging(level: Optional[str] = None) -> None:
    # stdout carries the stdio transport, so logs go to stderr (basicConfig default)
    level = (level or os.environ.get("LOG_LEVEL") or "INFO").upper()
    logging.basicConfig(level=level, format="%(levelname)s %(message)s")
    # tool failures are logged once, by the registry
    logging.getLogger(TOOL_MANAGER_LOGGER).setLevel(logging.CRITICAL)


class RegistryTool(Tool):
    """FastMCP tool that forwards calls to the ToolRegistry."""

    registry: Any = Field(default=None, exclude=True, repr=False)

    async def run(self, arguments: Dict[str, Any]) -> ToolResult:
        result = await self.registry.invoke(self.name, arguments)
        if result.isError:
            raise ToolError(result.content[0].text)
        return ToolResult(content=result.content)


def build_registry_for(settings: Settings) -> ToolRegistry:
    """Resolve the provider and wire up its handles and tools (no network I/O)."""
    config = resolve(settings.provider, settings.credentials.username)
    handles = make_handles(config, settings.credentials, timeout=settings.timeout)
    return build_registry(config, handles)


def build_server(settings: Settings) -> FastMCP:
    registry = build_registry_for(settings)

    mcp = FastMCP(f"DAV MCP ({registry.provider})", instructions=INSTRUCTIONS)

    @mcp.custom_route("/health", methods=["GET"])
    async def health(_: Request) -> PlainTextResponse:
        return PlainTextResponse("OK")

    for entry in registry.catalog():
        mcp.add_tool(RegistryTool(
            name=entry["name"],
            description=entry["description"],
            parameters=entry["inputSchema"],
            registry=registry,
        ))
    log.info("Registered tools: %s", ", ".join(registry.names()))
    return mcp


def main() -> None:
    load_env_file()
    configure_logging()
    try:
        settings = load_settings()
        mcp = build_server(settings)
    except ConfigError as exc:
        log.error("Error: %s", exc)
        raise SystemExit(1)

    log.info("DAV provider: %s  transport: %s", settings.provider, settings.transport)
    if settings.transport == "http":
        log.info("Starting MCP HTTP server on %s:%s", settings.host, settings.port)
        mcp.run(transport="http", host=settings.host, port=settings.port, path="/mcp")
    else:
        mcp.run()


if __name__ == "__main__":
    main()
