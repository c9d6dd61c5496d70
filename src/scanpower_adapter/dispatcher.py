"""Tool dispatcher: turns a tool call into one upstream HTTP request.

A call moves through these steps, any of which may end in an error result:

    resolve operation -> build url -> build query -> build headers
    -> build body -> check missing -> resolve auth -> execute -> format

Missing inputs do not fail the call. They come back as an elicitation result
naming each input so the caller can supply them and retry.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Tuple
from urllib.parse import quote

from .errors import (
    AdapterError,
    AuthenticationError,
    ConfigurationError,
    UnknownToolError,
    UnresolvedPathError,
    UpstreamError,
)
from .logging import mask_headers, redact_payload
from .models import (
    AuthKind,
    MissingInput,
    OperationDescriptor,
    ParameterDef,
    PreparedRequest,
    ToolCallResult,
)
from .overrides import policy_for, proxy_user_confirmation
from .session import UpstreamSession
from .tool_registry import ToolRegistry
from .upstream_client import UpstreamClient

logger = logging.getLogger(__name__)

NOT_READY_MESSAGE = "Server is not ready yet. Please wait for OpenAPI spec to load."
ACCESS_TOKEN_HEADER = "x-access-token"
API_TOKEN_ARG = "api_token"
PROXY_USER_ARG = "proxy_user_id"

_PLACEHOLDER = re.compile(r"\{[^{}/]+\}")


class ToolDispatcher:
    def __init__(self, registry: ToolRegistry, client: UpstreamClient) -> None:
        self.registry = registry
        self.client = client

    @property
    def session(self) -> UpstreamSession:
        return self.client.session

    def list_tools(self) -> List[Dict[str, Any]]:
        if not self.registry.ready:
            return []
        return [tool.to_mcp() for tool in self.registry.tools]

    async def call_tool(
        self, name: str, arguments: Optional[Mapping[str, Any]] = None
    ) -> ToolCallResult:
        if not self.registry.ready:
            return ToolCallResult.error(NOT_READY_MESSAGE)

        args: Dict[str, Any] = dict(arguments or {})
        logger.info("Calling tool=%s arguments=%s", name, redact_payload(args))

        proxy_user_id = args.get(PROXY_USER_ARG)
        if isinstance(proxy_user_id, str) and proxy_user_id.strip():
            proxy_user_id = proxy_user_id.strip()
            self.session.set_proxy_user(proxy_user_id)
            logger.info("Proxy user set to: %s", proxy_user_id)
            if policy_for(name).proxy_user_selection:
                return ToolCallResult.text(proxy_user_confirmation(proxy_user_id))

        request: Optional[PreparedRequest] = None
        try:
            operation = self._resolve_operation(name)
            request, missing = await self._build_request(operation, args)

            missing = [item for item in missing if item.name != API_TOKEN_ARG]
            if missing:
                logger.info(
                    "Eliciting inputs for tool=%s missing=%s",
                    name,
                    [item.name for item in missing],
                )
                return ToolCallResult.elicitation(missing)

            if _PLACEHOLDER.search(request.path):
                raise UnresolvedPathError(
                    f"Path {request.path} still contains unresolved placeholders"
                )
            await self._resolve_auth(operation, request, args)
            payload = await self.client.request(
                request.method,
                request.path,
                params=request.params,
                json_body=request.body,
                headers=request.headers,
                basic_auth=request.use_basic_auth,
            )
            return self._format_result(operation, payload)
        except AdapterError as exc:
            logger.error("Tool call failed tool=%s error=%s", name, exc)
            return self._format_error(name, args, request, exc)
        except Exception as exc:
            logger.exception("Unexpected failure in tool=%s", name)
            return self._format_error(name, args, request, exc)

    def _resolve_operation(self, name: str) -> OperationDescriptor:
        operation = self.registry.get(name)
        if operation is None:
            raise UnknownToolError(name, self.registry.names())
        return operation

    async def _build_request(
        self, operation: OperationDescriptor, args: Dict[str, Any]
    ) -> Tuple[PreparedRequest, List[MissingInput]]:
        missing: List[MissingInput] = []
        request = PreparedRequest(method=operation.method, path=operation.path_template)

        request.path = self._build_path(operation, args, missing)
        request.params = self._build_query(operation, args, missing)
        request.headers = await self._build_headers(operation, args, missing)

        body = args.get("body")
        if body is not None:
            request.body = body
        elif operation.body_required:
            missing.append(
                MissingInput(
                    name="body",
                    location="body",
                    description="Request body",
                    schema=operation.body_schema or {"type": "object"},
                )
            )
        return request, missing

    def _build_path(
        self, operation: OperationDescriptor, args: Dict[str, Any], missing: List[MissingInput]
    ) -> str:
        path = operation.path_template
        for param in operation.path_params:
            value = _argument(args, param)
            if value is None:
                missing.append(_missing(param))
                continue
            path = path.replace("{" + param.name + "}", quote(_stringify(value), safe=""))

        if operation.path_has_trailing_slash and not path.endswith("/"):
            path += "/"
        return path

    def _build_query(
        self, operation: OperationDescriptor, args: Dict[str, Any], missing: List[MissingInput]
    ) -> Dict[str, Any]:
        query: Dict[str, Any] = {}
        for param in operation.query_params:
            value = _argument(args, param)
            if value is not None:
                query[param.name] = _query_value(value)
            elif param.required:
                missing.append(_missing(param))
        return query

    async def _build_headers(
        self, operation: OperationDescriptor, args: Dict[str, Any], missing: List[MissingInput]
    ) -> Dict[str, Any]:
        headers: Dict[str, Any] = {}
        for param in operation.header_params:
            value = _argument(args, param)
            if not value and param.name.lower() == ACCESS_TOKEN_HEADER:
                value = await self._amazon_access_token()
                if value is None:
                    continue
            if value is not None:
                headers[param.name] = _stringify(value)
            elif param.required:
                missing.append(_missing(param))
        return headers

    async def _amazon_access_token(self) -> Optional[str]:
        try:
            return await self.client.get_amazon_access_token()
        except AdapterError as exc:
            logger.warning("Continuing without %s header: %s", ACCESS_TOKEN_HEADER, exc)
            return None

    async def _resolve_auth(
        self, operation: OperationDescriptor, request: PreparedRequest, args: Dict[str, Any]
    ) -> None:
        if operation.auth is AuthKind.BASIC:
            for key in [key for key in request.headers if key.lower() == "authorization"]:
                del request.headers[key]
            if not self.session.has_basic_credentials:
                raise ConfigurationError(
                    "SCANPOWER_USERNAME and SCANPOWER_PASSWORD are required for basic authentication"
                )
            request.use_basic_auth = True
            logger.info("Using basic auth for operation=%s path=%s", operation.operation_id, request.path)
        elif operation.auth is AuthKind.BEARER:
            token = args.get(API_TOKEN_ARG) or None
            if token is None:
                token = await self.client.ensure_api_token()
            if not token:
                raise AuthenticationError("Missing bearer token (api_token)")
            request.headers["Authorization"] = f"Bearer {token}"
        elif operation.auth is AuthKind.UNSUPPORTED:
            logger.debug(
                "No supported security scheme for operation=%s; sending without credentials",
                operation.operation_id,
            )

    def _format_result(self, operation: OperationDescriptor, payload: Any) -> ToolCallResult:
        formatter = policy_for(operation.operation_id).response_formatter
        if formatter is not None:
            texts = formatter(payload)
            if texts:
                return ToolCallResult(texts=texts)
        return ToolCallResult.text(json.dumps(payload, indent=2, ensure_ascii=False, default=str))

    def _format_error(
        self,
        name: str,
        args: Dict[str, Any],
        request: Optional[PreparedRequest],
        exc: Exception,
    ) -> ToolCallResult:
        details: Dict[str, Any] = {"tool_name": name, "arguments": redact_payload(args)}
        if request is not None:
            described = request.describe()
            described["headers"] = mask_headers(described["headers"])
            details["request"] = described
        if isinstance(exc, UpstreamError) and exc.status_code is not None:
            details["response"] = {"status": exc.status_code, "body": exc.body}

        rendered = json.dumps(details, indent=2, ensure_ascii=False, default=str)
        return ToolCallResult.error(f"Error: {exc}\n\nFull Request Details:\n{rendered}")


def _argument(args: Mapping[str, Any], param: ParameterDef) -> Any:
    value = args.get(param.name)
    if value is None:
        value = args.get(param.arg_name)
    return value


def _missing(param: ParameterDef) -> MissingInput:
    return MissingInput(
        name=param.arg_name,
        location=param.location,
        description=param.description,
        schema=param.schema or None,
    )


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def _query_value(value: Any) -> Any:
    if isinstance(value, dict):
        return json.dumps(value)
    if isinstance(value, list):
        return [json.dumps(item) if isinstance(item, (dict, list)) else item for item in value]
    return value
