"""
Descriptor language capability.

Parsing CWL, WDL and Nextflow is delegated to handlers registered per
descriptor type. Handlers only serve presentation (DAG and tool tables);
refresh never calls them.
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional

from ..core.enums import DescriptorType, RenderMode


class LanguageHandler(ABC):
    """Renders presentation views of one descriptor language."""

    @abstractmethod
    def render(
        self,
        primary_path: str,
        primary_content: str,
        secondary_files: Dict[str, str],
        mode: RenderMode,
    ) -> str:
        """Return a JSON document describing the workflow DAG or its tools."""


class LanguageHandlerRegistry:
    """Descriptor type -> handler lookup."""

    def __init__(self, handlers: Optional[Dict[DescriptorType, LanguageHandler]] = None):
        self._handlers: Dict[DescriptorType, LanguageHandler] = {}
        for descriptor_type, handler in (handlers or {}).items():
            self.register(descriptor_type, handler)

    def register(self, descriptor_type: DescriptorType, handler: LanguageHandler) -> None:
        self._handlers[DescriptorType(descriptor_type)] = handler

    def get(self, descriptor_type: Optional[str]) -> Optional[LanguageHandler]:
        if descriptor_type is None:
            return None
        return self._handlers.get(DescriptorType(descriptor_type))
