"""Shared fixtures: a sample OpenAPI document and a recording upstream."""

from __future__ import annotations

import copy
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest

from scanpower_adapter.dispatcher import ToolDispatcher
from scanpower_adapter.openapi import OpenAPILoader
from scanpower_adapter.session import UpstreamSession
from scanpower_adapter.tool_registry import ToolRegistry
from scanpower_adapter.upstream_client import UpstreamClient

BASE_URL = "https://api.scanpower.test"

SAMPLE_SPEC: Dict[str, Any] = {
    "openapi": "3.0.0",
    "info": {"title": "ScanPower", "version": "2.0"},
    "security": [{"bearerAuth": []}],
    "components": {
        "securitySchemes": {
            "bearerAuth": {"type": "http", "scheme": "bearer"},
            "basic_auth": {"type": "http", "scheme": "basic"},
            "apiKeyAuth": {"type": "apiKey", "in": "header", "name": "X-Key"},
        },
        "parameters": {
            "PageSize": {
                "name": "page-size",
                "in": "query",
                "required": False,
                "description": "Page size",
                "schema": {"type": "integer"},
            }
        },
    },
    "paths": {
        "/widgets/{id}": {
            "parameters": [
                {
                    "name": "id",
                    "in": "path",
                    "required": True,
                    "description": "Widget id",
                    "schema": {"type": "string"},
                }
            ],
            "get": {"operationId": "getWidget", "summary": "Get a widget"},
            "put": {
                "operationId": "updateWidget",
                "description": "Replace a widget",
                "requestBody": {
                    "content": {
                        "application/json": {
                            "schema": {
                                "type": "object",
                                "properties": {"name": {"type": "string"}},
                            }
                        }
                    }
                },
            },
        },
        "/widgets/": {
            "get": {
                "operationId": "listWidgets",
                "parameters": [
                    {"$ref": "#/components/parameters/PageSize"},
                    {
                        "name": "status",
                        "in": "query",
                        "required": True,
                        "description": "Status filter",
                    },
                ],
            }
        },
        "/orders/{order.id}/items/": {
            "get": {
                "operationId": "listOrderItems",
                "parameters": [{"name": "order.id", "in": "path", "required": True}],
            }
        },
        "/api/v2/token": {
            "get": {"operationId": "getApiToken", "security": [{"basic_auth": []}]}
        },
        "/account": {
            "get": {
                "operationId": "getProxyUsers",
                "parameters": [{"name": "proxy", "in": "query"}],
            }
        },
        "/catalog/items": {
            "get": {
                "operationId": "searchCatalogItems",
                "parameters": [
                    {"name": "keywords", "in": "query"},
                    {"name": "x-access-token", "in": "header", "required": True},
                ],
            }
        },
        "/reports": {
            "post": {
                "summary": "Create report",
                "security": [{"apiKeyAuth": []}],
                "parameters": [
                    {
                        "name": "X-Request-Id",
                        "in": "header",
                        "required": True,
                        "description": "Correlation id",
                    },
                    {"name": "session", "in": "cookie"},
                ],
                "requestBody": {
                    "content": {"application/json": {"schema": {"type": "object"}}}
                },
            }
        },
        "/uploads": {
            "post": {
                "operationId": "uploadFile",
                "security": [],
                "requestBody": {"content": {"multipart/form-data": {"schema": {}}}},
            }
        },
    },
}

Route = Tuple[int, Any]


class RecordingUpstream:
    """httpx handler that records requests and answers from a route table."""

    def __init__(self, routes: Optional[Dict[Tuple[str, str], Route]] = None) -> None:
        self.requests: List[httpx.Request] = []
        self.routes: Dict[Tuple[str, str], Route] = {
            ("GET", "/api/v2/token"): (200, {"token": "minted-token"}),
            ("GET", "/api/az/access-token"): (200, {"access_token": "amz-token-9876"}),
        }
        self.routes.update(routes or {})

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status, body = self.routes.get((request.method, request.url.path), (200, {"ok": True}))
        return httpx.Response(status, json=body)

    def calls_to(self, path: str) -> List[httpx.Request]:
        return [request for request in self.requests if request.url.path == path]

    def api_calls(self) -> List[httpx.Request]:
        token_paths = {"/api/v2/token", "/api/az/access-token"}
        return [request for request in self.requests if request.url.path not in token_paths]


def make_dispatcher(
    upstream: Callable[[httpx.Request], httpx.Response],
    document: Optional[Dict[str, Any]] = None,
    **session_overrides: Any,
) -> ToolDispatcher:
    session_kwargs: Dict[str, Any] = {
        "base_url": BASE_URL,
        "username": "user",
        "password": "pass",
    }
    session_kwargs.update(session_overrides)
    session = UpstreamSession(**session_kwargs)
    client = UpstreamClient(session, transport=httpx.MockTransport(upstream))
    registry = ToolRegistry(OpenAPILoader(), spec_source=None)
    registry.install(copy.deepcopy(document if document is not None else SAMPLE_SPEC))
    return ToolDispatcher(registry, client)


@pytest.fixture
def sample_spec() -> Dict[str, Any]:
    return copy.deepcopy(SAMPLE_SPEC)


@pytest.fixture
def upstream() -> RecordingUpstream:
    return RecordingUpstream()


@pytest.fixture
def dispatcher(upstream: RecordingUpstream) -> ToolDispatcher:
    return make_dispatcher(upstream)
