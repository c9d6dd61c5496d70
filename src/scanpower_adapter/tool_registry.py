"""Tool registry: loads the OpenAPI document once and holds the compiled tables."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .compiler import CompiledSpec, OperationCompiler
from .errors import SpecificationError
from .models import OperationDescriptor, ToolDescriptor
from .openapi import OpenAPILoader


logger = logging.getLogger(__name__)


class ToolRegistry:
    def __init__(
        self,
        openapi_loader: OpenAPILoader,
        spec_source: Optional[str],
        base_url: Optional[str] = None,
    ) -> None:
        self.openapi_loader = openapi_loader
        self.spec_source = spec_source
        self.base_url = base_url
        self.document: Optional[Dict[str, Any]] = None
        self.operations: Dict[str, OperationDescriptor] = {}
        self.tools: List[ToolDescriptor] = []
        self.ready = False

    async def load_tools(self) -> List[ToolDescriptor]:
        """Load and compile the document. Readiness is set even when loading fails."""
        document = await self.openapi_loader.load_spec(self.spec_source)
        self.install(document)
        return self.tools

    def install(self, document: Optional[Dict[str, Any]]) -> None:
        compiled = CompiledSpec()
        if document is not None:
            if self.base_url:
                document["servers"] = [{"url": self.base_url}]
            try:
                compiled = OperationCompiler(document).compile()
            except (SpecificationError, AttributeError, TypeError, ValueError):
                logger.exception("Failed to compile OpenAPI spec. Dynamic tools disabled.")
                document = None
                compiled = CompiledSpec()

        self.document = document
        self.operations = compiled.operations
        self.tools = compiled.tools
        self.ready = True
        logger.info("Tool registry ready with %s tools", len(self.tools))

    def get(self, name: str) -> Optional[OperationDescriptor]:
        return self.operations.get(name)

    def names(self) -> List[str]:
        return list(self.operations)
