"""Configuration for the ScanPower tool adapter."""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="", env_file=".env", case_sensitive=False, extra="ignore"
    )

    service_name: str = Field(default="scanpower-mcp-server")
    service_version: str = Field(default="1.0.0")

    scanpower_base_url: str = Field(default="https://api.scanpower.com")
    scanpower_username: str = Field(default="")
    scanpower_password: str = Field(default="")
    scanpower_proxy_user_id: Optional[str] = Field(default=None)
    scanpower_openapi_spec: Optional[str] = Field(default=None)
    scanpower_verify_ssl: bool = Field(default=True)
    scanpower_api_timeout_seconds: float = Field(default=30)
    scanpower_spec_timeout_seconds: float = Field(default=30)

    amazon_marketplace_id: str = Field(default="ATVPDKIKX0DER")
    amazon_access_key_id: str = Field(default="")
    amazon_secret_access_key: str = Field(default="")
    amazon_role_arn: str = Field(default="")

    adapter_transport: str = Field(default="stdio")
    adapter_host: str = Field(default="0.0.0.0")
    adapter_port: int = Field(default=8000)
    adapter_auth_token: Optional[str] = Field(default=None)

    adapter_log_level: str = Field(default="INFO")

    def user_agent(self) -> str:
        return f"ScanPower-MCP-Server/{self.service_version}"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
