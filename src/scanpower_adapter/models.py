"""Internal models for compiled operations and tool results."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


_UNSAFE_ARG_CHARS = re.compile(r"[-.]")


def sanitize_arg_name(name: str) -> str:
    return _UNSAFE_ARG_CHARS.sub("_", name)


class AuthKind(str, Enum):
    NONE = "none"
    BASIC = "basic"
    BEARER = "bearer"
    UNSUPPORTED = "unsupported"


@dataclass(frozen=True)
class ParameterDef:
    name: str
    location: str
    required: bool = False
    description: Optional[str] = None
    schema: Dict[str, Any] = field(default_factory=dict)

    @property
    def arg_name(self) -> str:
        return sanitize_arg_name(self.name)


@dataclass(frozen=True)
class OperationDescriptor:
    operation_id: str
    method: str
    path_template: str
    description: str
    path_params: Tuple[ParameterDef, ...] = ()
    query_params: Tuple[ParameterDef, ...] = ()
    header_params: Tuple[ParameterDef, ...] = ()
    body_required: bool = False
    body_schema: Optional[Dict[str, Any]] = None
    security: Tuple[Dict[str, List[str]], ...] = ()
    auth: AuthKind = AuthKind.NONE
    path_has_trailing_slash: bool = False


@dataclass(frozen=True)
class ToolDescriptor:
    name: str
    description: str
    input_schema: Dict[str, Any]

    def to_mcp(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }


@dataclass(frozen=True)
class MissingInput:
    name: str
    location: str
    description: Optional[str] = None
    schema: Optional[Dict[str, Any]] = None

    def to_requirement(self) -> Dict[str, Any]:
        return {"name": self.name, "description": self.description, "schema": self.schema}


@dataclass
class PreparedRequest:
    """Mutable per-call request state built up by the dispatcher."""

    method: str
    path: str
    params: Dict[str, Any] = field(default_factory=dict)
    headers: Dict[str, Any] = field(default_factory=dict)
    body: Any = None
    use_basic_auth: bool = False

    def describe(self) -> Dict[str, Any]:
        return {
            "method": self.method,
            "url": self.path,
            "params": self.params or None,
            "body": self.body,
            "headers": self.headers,
        }


@dataclass
class ToolCallResult:
    texts: List[str] = field(default_factory=list)
    is_error: bool = False
    requires: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def text(cls, text: str) -> "ToolCallResult":
        return cls(texts=[text])

    @classmethod
    def error(cls, message: str) -> "ToolCallResult":
        return cls(texts=[message], is_error=True)

    @classmethod
    def elicitation(cls, missing: List[MissingInput]) -> "ToolCallResult":
        return cls(requires=[item.to_requirement() for item in missing])

    @property
    def is_elicitation(self) -> bool:
        return bool(self.requires)

    def to_mcp(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "content": [{"type": "text", "text": text} for text in self.texts],
            "isError": self.is_error,
        }
        if self.requires:
            result["requires"] = self.requires
        return result
