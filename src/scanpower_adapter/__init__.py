"""Expose a ScanPower OpenAPI document as MCP tools."""

__version__ = "1.0.0"
