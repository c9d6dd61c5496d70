"""Compile an OpenAPI document into operation and tool descriptors."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .errors import SpecificationError
from .models import AuthKind, OperationDescriptor, ParameterDef, ToolDescriptor
from .openapi import resolve_ref
from .overrides import policy_for


logger = logging.getLogger(__name__)

HTTP_METHODS = ("get", "post", "put", "delete", "patch")
JSON_MEDIA_TYPE = "application/json"

PATH_PARAM_SCHEMA = {"type": "string"}
QUERY_PARAM_SCHEMA = {"type": ["string", "number", "boolean", "array", "object"]}
HEADER_PARAM_SCHEMA = {"type": "string"}
BODY_SCHEMA = {"type": ["object", "array", "string", "number", "boolean", "null"]}
API_TOKEN_SCHEMA = {"type": "string", "description": "Optional token for bearer/apiKey auth"}

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]+")


@dataclass
class CompiledSpec:
    operations: Dict[str, OperationDescriptor] = field(default_factory=dict)
    tools: List[ToolDescriptor] = field(default_factory=list)


class OperationCompiler:
    def __init__(self, document: Dict[str, Any]) -> None:
        self.document = document
        components = document.get("components") or {}
        self.security_schemes: Dict[str, Any] = components.get("securitySchemes") or {}

    def compile(self) -> CompiledSpec:
        compiled = CompiledSpec()
        paths = self.document.get("paths") or {}
        if not isinstance(paths, dict):
            raise SpecificationError("OpenAPI 'paths' must be an object")

        for path, path_item in paths.items():
            if not isinstance(path_item, dict):
                continue
            for method in HTTP_METHODS:
                operation = path_item.get(method)
                if not isinstance(operation, dict):
                    continue
                descriptor = self.compile_operation(path, method, path_item, operation)
                if descriptor.operation_id in compiled.operations:
                    logger.warning(
                        "Duplicate operation id %s (%s %s) skipped; keeping the first declaration",
                        descriptor.operation_id,
                        method.upper(),
                        path,
                    )
                    continue
                compiled.operations[descriptor.operation_id] = descriptor
                compiled.tools.append(build_tool_descriptor(descriptor))

        logger.info("Compiled %s operations into tools", len(compiled.tools))
        return compiled

    def compile_operation(
        self, path: str, method: str, path_item: Dict[str, Any], operation: Dict[str, Any]
    ) -> OperationDescriptor:
        operation_id = operation.get("operationId") or fallback_operation_id(method, path)
        description = (
            operation.get("summary") or operation.get("description") or f"{method.upper()} {path}"
        )

        buckets: Dict[str, List[ParameterDef]] = {"path": [], "query": [], "header": []}
        for parameter in self._resolve_parameters(path_item, operation):
            location = parameter.get("in")
            name = parameter.get("name")
            if location not in buckets or not name:
                continue
            buckets[location].append(
                ParameterDef(
                    name=name,
                    location=location,
                    required=bool(parameter.get("required", False)),
                    description=parameter.get("description"),
                    schema=parameter.get("schema") or {},
                )
            )

        body_required, body_schema = self._extract_body(operation)
        security = operation.get("security")
        if security is None:
            security = self.document.get("security") or []

        trailing_slash = path.endswith("/")
        policy = policy_for(operation_id)
        if not trailing_slash and policy.force_trailing_slash_path == path:
            logger.info("Forcing trailing slash for %s - path will be %s/", operation_id, path)
            trailing_slash = True

        return OperationDescriptor(
            operation_id=operation_id,
            method=method.upper(),
            path_template=path,
            description=description,
            path_params=tuple(buckets["path"]),
            query_params=tuple(buckets["query"]),
            header_params=tuple(buckets["header"]),
            body_required=body_required,
            body_schema=body_schema,
            security=tuple(req for req in security if isinstance(req, dict)),
            auth=self.resolve_auth(security),
            path_has_trailing_slash=trailing_slash,
        )

    def resolve_auth(self, security: List[Any]) -> AuthKind:
        """Classify the first security requirement group; alternatives are ignored."""
        if not security or not isinstance(security[0], dict):
            return AuthKind.NONE
        requirement: Dict[str, Any] = security[0]
        if not requirement:
            return AuthKind.NONE

        schemes = [
            (name, self.security_schemes[name])
            for name in requirement
            if isinstance(self.security_schemes.get(name), dict)
        ]
        for name, scheme in schemes:
            if _http_scheme(scheme) == "basic" or "basic" in name.lower():
                return AuthKind.BASIC
        for _, scheme in schemes:
            if _http_scheme(scheme) == "bearer":
                return AuthKind.BEARER
        return AuthKind.UNSUPPORTED

    def _resolve_parameters(
        self, path_item: Dict[str, Any], operation: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        raw = [*(path_item.get("parameters") or []), *(operation.get("parameters") or [])]
        # An operation-level parameter replaces a path-level one with the same name and location.
        resolved: Dict[Tuple[Any, Any], Dict[str, Any]] = {}
        for parameter in raw:
            if not isinstance(parameter, dict):
                continue
            ref = parameter.get("$ref")
            if isinstance(ref, str):
                target = resolve_ref(self.document, ref)
                if isinstance(target, dict):
                    parameter = target
                else:
                    logger.warning("Unresolvable parameter reference: %s", ref)
            resolved[(parameter.get("name"), parameter.get("in"))] = parameter
        return list(resolved.values())

    def _extract_body(self, operation: Dict[str, Any]) -> Tuple[bool, Optional[Dict[str, Any]]]:
        request_body = operation.get("requestBody") or {}
        content = request_body.get("content") or {}
        if JSON_MEDIA_TYPE not in content:
            return False, None
        return True, (content.get(JSON_MEDIA_TYPE) or {}).get("schema")


def _http_scheme(scheme: Dict[str, Any]) -> Optional[str]:
    if str(scheme.get("type", "")).lower() not in {"http", "https"}:
        return None
    return str(scheme.get("scheme", "")).lower()


def fallback_operation_id(method: str, path: str) -> str:
    return f"{method.lower()}_{_NON_ALNUM.sub('_', path)}"


def build_tool_descriptor(operation: OperationDescriptor) -> ToolDescriptor:
    properties: Dict[str, Any] = {}
    for param in operation.path_params:
        properties[param.arg_name] = dict(PATH_PARAM_SCHEMA)
    for param in operation.query_params:
        properties[param.arg_name] = dict(QUERY_PARAM_SCHEMA)
    for param in operation.header_params:
        properties[param.arg_name] = dict(HEADER_PARAM_SCHEMA)
    if operation.body_required:
        properties["body"] = dict(BODY_SCHEMA)
    properties["api_token"] = dict(API_TOKEN_SCHEMA)

    input_schema: Dict[str, Any] = {"type": "object", "properties": properties}
    required = [param.arg_name for param in operation.path_params]
    if required:
        input_schema["required"] = required

    return ToolDescriptor(
        name=operation.operation_id,
        description=operation.description,
        input_schema=input_schema,
    )
