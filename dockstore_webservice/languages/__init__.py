"""Descriptor language handlers."""

from .base import LanguageHandler, LanguageHandlerRegistry

__all__ = ["LanguageHandler", "LanguageHandlerRegistry"]
