"""Process-lifetime upstream session state."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Optional

from .config import Settings


@dataclass
class UpstreamSession:
    base_url: str
    username: str = ""
    password: str = ""
    proxy_user_id: Optional[str] = None
    marketplace_id: str = "ATVPDKIKX0DER"
    api_token: Optional[str] = None
    amazon_access_token: Optional[str] = None
    api_token_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)
    amazon_token_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    @classmethod
    def from_settings(cls, settings: Settings) -> "UpstreamSession":
        return cls(
            base_url=settings.scanpower_base_url,
            username=settings.scanpower_username,
            password=settings.scanpower_password,
            proxy_user_id=settings.scanpower_proxy_user_id or None,
            marketplace_id=settings.amazon_marketplace_id,
        )

    @property
    def has_basic_credentials(self) -> bool:
        return bool(self.username and self.password)

    def set_proxy_user(self, proxy_user_id: Optional[str]) -> None:
        # A minted token is bound to the proxy user it was minted for.
        if proxy_user_id != self.proxy_user_id:
            self.api_token = None
        self.proxy_user_id = proxy_user_id
