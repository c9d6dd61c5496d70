"""MCP server setup for the ScanPower adapter."""

import logging
from typing import Any, Dict

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from fastmcp.tools import Tool
from fastmcp.tools.tool import ToolResult
from mcp.types import TextContent
from pydantic import Field

from .config import Settings
from .dispatcher import ToolDispatcher
from .models import ToolCallResult, ToolDescriptor
from .openapi import OpenAPILoader
from .session import UpstreamSession
from .tool_registry import ToolRegistry
from .upstream_client import UpstreamClient

logger = logging.getLogger(__name__)


class OperationTool(Tool):
    """A compiled OpenAPI operation served through FastMCP."""

    dispatcher: Any = Field(default=None, exclude=True)

    @classmethod
    def from_descriptor(cls, descriptor: ToolDescriptor, dispatcher: ToolDispatcher) -> "OperationTool":
        return cls(
            name=descriptor.name,
            description=descriptor.description,
            parameters=descriptor.input_schema,
            dispatcher=dispatcher,
        )

    async def run(self, arguments: Dict[str, Any]) -> ToolResult:
        result = await self.dispatcher.call_tool(self.name, arguments)
        return to_tool_result(result)


def to_tool_result(result: ToolCallResult) -> ToolResult:
    if result.is_error:
        raise ToolError("\n".join(result.texts))
    if result.is_elicitation:
        names = ", ".join(item["name"] for item in result.requires)
        return ToolResult(
            content=[TextContent(type="text", text=f"Missing required inputs: {names}")],
            structured_content={"requires": result.requires},
        )
    return ToolResult(content=[TextContent(type="text", text=text) for text in result.texts])


def build_dispatcher(settings: Settings) -> ToolDispatcher:
    session = UpstreamSession.from_settings(settings)
    client = UpstreamClient(
        session,
        timeout_seconds=settings.scanpower_api_timeout_seconds,
        verify_ssl=settings.scanpower_verify_ssl,
        user_agent=settings.user_agent(),
    )
    loader = OpenAPILoader(
        timeout_seconds=settings.scanpower_spec_timeout_seconds,
        verify_ssl=settings.scanpower_verify_ssl,
        user_agent=settings.user_agent(),
    )
    registry = ToolRegistry(
        loader,
        spec_source=settings.scanpower_openapi_spec,
        base_url=settings.scanpower_base_url,
    )
    if not settings.scanpower_verify_ssl:
        logger.warning("TLS certificate verification toward %s is disabled", settings.scanpower_base_url)
    return ToolDispatcher(registry, client)


async def build_server(settings: Settings) -> tuple[FastMCP, object | None]:
    dispatcher = build_dispatcher(settings)

    mcp = FastMCP(settings.service_name, version=settings.service_version, instructions=_instructions())
    _attach_healthcheck(mcp, dispatcher)
    app = _get_http_app(mcp, settings)
    _attach_auth(app, settings)

    tools = await dispatcher.registry.load_tools()
    for descriptor in tools:
        mcp.add_tool(OperationTool.from_descriptor(descriptor, dispatcher))
        logger.debug("Registered tool: %s", descriptor.name)
    logger.info("Registered %s tools", len(tools))

    return mcp, app


def _attach_auth(app, settings: Settings) -> None:  # type: ignore[no-untyped-def]
    if not app:
        return
    if not settings.adapter_auth_token:
        logger.warning("ADAPTER_AUTH_TOKEN not set; HTTP transport accepts anonymous callers")
        return

    async def auth_middleware(request, call_next):  # type: ignore[no-untyped-def]
        if request.method == "OPTIONS":
            return await call_next(request)
        if request.url.path.endswith("/health"):
            return await call_next(request)

        auth_header = request.headers.get("authorization", "")
        token = auth_header.replace("Bearer", "").strip()
        if token == settings.adapter_auth_token:
            return await call_next(request)

        from starlette.responses import JSONResponse

        return JSONResponse({"error": "Unauthorized"}, status_code=401)

    from starlette.middleware.base import BaseHTTPMiddleware

    app.add_middleware(BaseHTTPMiddleware, dispatch=auth_middleware)


def _attach_healthcheck(mcp: FastMCP, dispatcher: ToolDispatcher) -> None:
    @mcp.custom_route("/health", methods=["GET"])
    async def healthcheck(_request):  # type: ignore[no-untyped-def]
        from starlette.responses import JSONResponse

        registry = dispatcher.registry
        return JSONResponse(
            {"status": "ok", "ready": registry.ready, "tools": len(registry.tools)}
        )


def _instructions() -> str:
    return (
        "ScanPower API adapter. Each tool is one operation of the ScanPower OpenAPI document. "
        "Calls missing required inputs return a 'requires' list instead of failing; supply the "
        "listed inputs and call again. Use getProxyUsers with 'proxy_user_id' to act on behalf "
        "of another account."
    )


def _get_http_app(mcp: FastMCP, settings: Settings):  # type: ignore[no-untyped-def]
    transport = settings.adapter_transport.lower()
    if transport in {"http"}:
        app = mcp.http_app(transport="http", stateless_http=True, json_response=True)
        _attach_cors(app)
        return app
    if transport in {"streamable-http", "streamablehttp"}:
        app = mcp.http_app(
            transport="streamable-http", stateless_http=True, json_response=True
        )
        _attach_cors(app)
        return app
    if transport in {"sse"}:
        app = mcp.http_app(transport="sse")
        _attach_cors(app)
        return app
    return None


def _attach_cors(app) -> None:  # type: ignore[no-untyped-def]
    if not app:
        return
    from starlette.middleware.cors import CORSMiddleware

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
