"""OpenAPI spec loader."""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, Optional

import httpx


logger = logging.getLogger(__name__)

_TRAILING_COMMA = re.compile(r",(\s*[}\]])")
_HTTP_URL = re.compile(r"^https?://", re.IGNORECASE)
_BLOB_URL = re.compile(r"^blob:https?://", re.IGNORECASE)


def strip_trailing_commas(text: str) -> str:
    return _TRAILING_COMMA.sub(r"\1", text)


def resolve_ref(document: Dict[str, Any], ref: str) -> Optional[Any]:
    """Walk an internal ``#/a/b`` reference from the document root."""
    if not ref.startswith("#/"):
        return None
    node: Any = document
    for part in ref[2:].split("/"):
        part = part.replace("~1", "/").replace("~0", "~")
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node


class OpenAPILoader:
    def __init__(
        self,
        timeout_seconds: float = 30,
        verify_ssl: bool = True,
        user_agent: str = "ScanPower-MCP-Server/1.0.0",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.verify_ssl = verify_ssl
        self.user_agent = user_agent
        self._transport = transport

    async def load_spec(self, source: Optional[str]) -> Optional[Dict[str, Any]]:
        """Load a document from a path or URL; any failure yields ``None``."""
        if not source:
            logger.warning("No OpenAPI spec configured. Dynamic tools disabled.")
            return None
        if _BLOB_URL.match(source):
            logger.error(
                "Blob URLs cannot be fetched via HTTP. Provide a direct HTTP/HTTPS URL "
                "to the OpenAPI spec."
            )
            return None
        if _HTTP_URL.match(source):
            return await self._load_url(source)
        return self._load_file(source)

    async def _load_url(self, url: str) -> Optional[Dict[str, Any]]:
        logger.info("Loading OpenAPI spec from URL: %s", url)
        headers = {"Accept": "application/json", "User-Agent": self.user_agent}
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds,
                verify=self.verify_ssl,
                transport=self._transport,
            ) as client:
                response = await client.get(url, headers=headers)
        except httpx.HTTPError as exc:
            logger.error("Failed to fetch OpenAPI spec from URL. Dynamic tools disabled. %s", exc)
            return None

        if response.status_code != 200:
            logger.warning("Failed to fetch OpenAPI spec: %s (%s)", url, response.status_code)
            return None
        return self._parse(response.text, url)

    def _load_file(self, path: str) -> Optional[Dict[str, Any]]:
        logger.info("Loading OpenAPI spec from file: %s", path)
        try:
            text = Path(path).expanduser().read_text(encoding="utf-8")
        except OSError as exc:
            logger.error("Failed to read OpenAPI spec file. Dynamic tools disabled. %s", exc)
            return None
        return self._parse(text, path)

    def _parse(self, text: str, source: str) -> Optional[Dict[str, Any]]:
        try:
            data = json.loads(strip_trailing_commas(text))
        except ValueError as exc:
            logger.error("Failed to parse OpenAPI spec from %s. Dynamic tools disabled. %s", source, exc)
            return None
        if not isinstance(data, dict):
            logger.error("OpenAPI spec from %s is not a JSON object. Dynamic tools disabled.", source)
            return None
        return data
