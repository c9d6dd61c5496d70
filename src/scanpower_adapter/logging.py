"""Logging helpers with redaction."""

from __future__ import annotations

import logging
import re
import sys
from typing import Any, Dict, Mapping


_SENSITIVE_KEYS = re.compile(r"(token|secret|api[_-]?key|password)", re.IGNORECASE)
_BEARER = re.compile(r"^(bearer\s+)(.+)$", re.IGNORECASE)


def configure_logging(level: str) -> None:
    # stdout carries the stdio transport, so logs go to stderr.
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        stream=sys.stderr,
    )


def redact_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    redacted: Dict[str, Any] = {}
    for key, value in payload.items():
        if _SENSITIVE_KEYS.search(key):
            redacted[key] = "***REDACTED***"
        elif isinstance(value, dict):
            redacted[key] = redact_payload(value)
        else:
            redacted[key] = value
    return redacted


def mask_headers(headers: Mapping[str, Any]) -> Dict[str, Any]:
    """Mask credential-bearing header values, keeping the last 4 chars of tokens."""
    masked: Dict[str, Any] = {}
    for key, value in headers.items():
        lowered = key.lower()
        text = str(value)
        if lowered == "authorization":
            if text.lower().startswith("basic "):
                masked[key] = "Basic ***"
            else:
                match = _BEARER.match(text)
                masked[key] = f"{match.group(1)}***{match.group(2)[-4:]}" if match else "***"
        elif lowered == "x-access-token":
            masked[key] = f"***{text[-4:]}"
        else:
            masked[key] = value
    return masked
