"""
FastAPI dependencies for the registry collaborators.

Deployments register source-control clients and language handlers on the
shared instances at startup; tests swap them out through
``app.dependency_overrides``.
"""

from functools import lru_cache
from typing import Optional

from fastapi import Header, HTTPException

from .config import get_settings
from .languages import LanguageHandlerRegistry
from .search import IndexNotifier, create_index_notifier
from .sourcecode import SourceCodeRepoFactory


@lru_cache
def get_source_code_repo_factory() -> SourceCodeRepoFactory:
    return SourceCodeRepoFactory()


@lru_cache
def get_index_notifier() -> IndexNotifier:
    return create_index_notifier(get_settings())


def close_index_notifier() -> None:
    """Close the shared notifier, if one was created, and forget it."""
    if get_index_notifier.cache_info().currsize:
        get_index_notifier().close()
    get_index_notifier.cache_clear()


@lru_cache
def get_language_handlers() -> LanguageHandlerRegistry:
    return LanguageHandlerRegistry()


def get_current_user_id(x_dockstore_user: Optional[str] = Header(None)) -> int:
    """Caller identity; authentication happens in front of this service."""
    if x_dockstore_user is None:
        raise HTTPException(status_code=401, detail="X-Dockstore-User header is required")
    try:
        return int(x_dockstore_user)
    except ValueError:
        raise HTTPException(status_code=400, detail="X-Dockstore-User must be a user id")
