"""Error types raised while compiling and dispatching tool calls."""

from __future__ import annotations

from difflib import get_close_matches
from typing import Any, Iterable, Optional


class AdapterError(Exception):
    pass


class ConfigurationError(AdapterError):
    pass


class SpecificationError(AdapterError):
    pass


class AuthenticationError(AdapterError):
    pass


class UpstreamError(AdapterError):
    def __init__(
        self, message: str, status_code: Optional[int] = None, body: Any = None
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class UnresolvedPathError(AdapterError):
    pass


class UnknownToolError(AdapterError):
    def __init__(self, tool_name: str, available: Iterable[str] = ()) -> None:
        self.tool_name = tool_name
        message = f"Unknown tool: {tool_name}"
        matches = get_close_matches(tool_name, list(available), n=1, cutoff=0.6)
        if matches:
            message += f" (did you mean '{matches[0]}'?)"
        super().__init__(message)
