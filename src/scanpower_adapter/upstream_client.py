"""ScanPower API client: request execution and token exchanges."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from .errors import AuthenticationError, UpstreamError
from .logging import mask_headers, redact_payload
from .session import UpstreamSession

logger = logging.getLogger(__name__)

TOKEN_PATH = "/api/v2/token"
AMAZON_ACCESS_TOKEN_PATH = "/api/az/access-token"
PROXY_HEADER = "X-Proxy"


class UpstreamClient:
    def __init__(
        self,
        session: UpstreamSession,
        timeout_seconds: float = 30,
        verify_ssl: bool = True,
        user_agent: str = "ScanPower-MCP-Server/1.0.0",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.session = session
        self.timeout_seconds = timeout_seconds
        self.verify_ssl = verify_ssl
        self.user_agent = user_agent
        self._transport = transport

    @property
    def base_url(self) -> str:
        return self.session.base_url.rstrip("/")

    def _headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json", "User-Agent": self.user_agent}

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout_seconds,
            verify=self.verify_ssl,
            follow_redirects=True,
            transport=self._transport,
        )

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json_body: Any = None,
        headers: Optional[Dict[str, Any]] = None,
        basic_auth: bool = False,
    ) -> Any:
        """Send one request and return the decoded body; no retries."""
        merged = self._headers()
        merged.update({key: str(value) for key, value in (headers or {}).items()})
        auth = (self.session.username, self.session.password) if basic_auth else None

        logger.debug(
            "HTTP request method=%s url=%s%s params=%s headers=%s basic_auth=%s",
            method,
            self.base_url,
            path,
            redact_payload(params or {}),
            mask_headers(merged),
            basic_auth,
        )

        # A string body is already serialized JSON and goes out as-is.
        body: Dict[str, Any] = {"json": json_body}
        if isinstance(json_body, str):
            body = {"content": json_body.encode("utf-8")}

        try:
            async with self._client() as client:
                response = await client.request(
                    method,
                    path,
                    params=params or None,
                    **body,
                    headers=merged,
                    auth=auth,
                )
        except httpx.HTTPError as exc:
            logger.warning("HTTP error method=%s url=%s%s error=%s", method, self.base_url, path, exc)
            raise UpstreamError(f"Request to {path} failed: {exc}") from exc

        if response.is_error:
            body = _decode(response)
            logger.warning(
                "HTTP error status=%s method=%s url=%s body=%s",
                response.status_code,
                method,
                response.request.url,
                body,
            )
            raise UpstreamError(
                f"Request failed with status code {response.status_code}",
                status_code=response.status_code,
                body=body,
            )
        return _decode(response)

    async def authenticate(self) -> str:
        """Mint a bearer token with Basic credentials and cache it on the session."""
        headers: Dict[str, Any] = {}
        if self.session.proxy_user_id:
            headers[PROXY_HEADER] = self.session.proxy_user_id
        try:
            data = await self.request("GET", TOKEN_PATH, headers=headers, basic_auth=True)
        except UpstreamError as exc:
            raise AuthenticationError(f"Authentication failed: {exc}") from exc

        token = data.get("token") if isinstance(data, dict) else None
        if not token:
            raise AuthenticationError("Authentication failed: token missing from response")
        self.session.api_token = str(token)
        logger.info("Obtained ScanPower API token")
        return self.session.api_token

    async def ensure_api_token(self) -> str:
        async with self.session.api_token_lock:
            if self.session.api_token:
                return self.session.api_token
            return await self.authenticate()

    async def get_amazon_access_token(self) -> str:
        async with self.session.amazon_token_lock:
            if self.session.amazon_access_token:
                return self.session.amazon_access_token
            try:
                data = await self.request(
                    "GET",
                    AMAZON_ACCESS_TOKEN_PATH,
                    params={"marketplace": self.session.marketplace_id},
                )
            except UpstreamError as exc:
                raise UpstreamError(
                    f"Failed to get Amazon access token: {exc}",
                    status_code=exc.status_code,
                    body=exc.body,
                ) from exc

            token = data.get("access_token") if isinstance(data, dict) else None
            if not token:
                raise UpstreamError("Failed to get Amazon access token: access_token missing")
            self.session.amazon_access_token = str(token)
            return self.session.amazon_access_token


def _decode(response: httpx.Response) -> Any:
    if not response.content:
        return {"status": "ok"}
    try:
        return response.json()
    except ValueError:
        return response.text
