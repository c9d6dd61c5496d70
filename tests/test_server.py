"""Tests for the FastMCP surface."""

from __future__ import annotations

import json

import pytest
from fastmcp.exceptions import ToolError

from conftest import RecordingUpstream, make_dispatcher
from scanpower_adapter.config import Settings
from scanpower_adapter.models import ToolCallResult
from scanpower_adapter.server import OperationTool, build_dispatcher, build_server, to_tool_result


def test_text_result_becomes_text_content():
    result = to_tool_result(ToolCallResult(texts=["one", "two"]))
    assert [block.text for block in result.content] == ["one", "two"]


def test_error_result_raises_tool_error():
    with pytest.raises(ToolError, match="Unknown tool: nope"):
        to_tool_result(ToolCallResult.error("Unknown tool: nope"))


def test_elicitation_result_is_structured():
    requires = [{"name": "id", "description": "Widget id", "schema": {"type": "string"}}]
    result = to_tool_result(ToolCallResult(requires=requires))

    assert result.content[0].text == "Missing required inputs: id"
    assert result.structured_content == {"requires": requires}


@pytest.mark.asyncio
async def test_operation_tool_delegates_to_dispatcher():
    upstream = RecordingUpstream({("GET", "/widgets/5"): (200, {"id": "5"})})
    dispatcher = make_dispatcher(upstream)
    descriptor = next(tool for tool in dispatcher.registry.tools if tool.name == "getWidget")

    tool = OperationTool.from_descriptor(descriptor, dispatcher)
    assert tool.parameters == descriptor.input_schema

    result = await tool.run({"id": "5", "api_token": "t"})
    assert json.loads(result.content[0].text) == {"id": "5"}


@pytest.mark.asyncio
async def test_build_server_registers_compiled_tools(tmp_path, sample_spec):
    spec_path = tmp_path / "openapi.json"
    spec_path.write_text(json.dumps(sample_spec), encoding="utf-8")
    settings = Settings(
        _env_file=None,
        scanpower_openapi_spec=str(spec_path),
        adapter_transport="stdio",
    )

    mcp, app = await build_server(settings)

    assert app is None
    tools = await mcp.get_tools()
    assert "getWidget" in tools
    assert "post__reports" in tools
    assert tools["getWidget"].parameters["required"] == ["id"]


@pytest.mark.asyncio
async def test_build_server_without_spec_has_no_tools():
    settings = Settings(_env_file=None, scanpower_openapi_spec=None, adapter_transport="stdio")
    mcp, _ = await build_server(settings)
    assert await mcp.get_tools() == {}


@pytest.mark.asyncio
async def test_http_transport_builds_an_app(tmp_path):
    settings = Settings(_env_file=None, adapter_transport="http", adapter_auth_token="secret")
    _, app = await build_server(settings)
    assert app is not None


@pytest.mark.parametrize("verify", [True, False])
def test_verify_ssl_setting_reaches_http_clients(verify):
    dispatcher = build_dispatcher(Settings(_env_file=None, scanpower_verify_ssl=verify))

    assert dispatcher.client.verify_ssl is verify
    assert dispatcher.registry.openapi_loader.verify_ssl is verify
