"""Database package for the Dockstore webservice."""

from .base import Base, get_db, get_engine, get_session_local, init_database
from .models import (
    EntryModel,
    EntryVersionModel,
    SourceFileModel,
    TagModel,
    TokenModel,
    ToolModel,
    UserModel,
    WorkflowModel,
    WorkflowVersionModel,
)
from .store import EntryStore

__all__ = [
    "Base",
    "EntryModel",
    "EntryStore",
    "EntryVersionModel",
    "SourceFileModel",
    "TagModel",
    "TokenModel",
    "ToolModel",
    "UserModel",
    "WorkflowModel",
    "WorkflowVersionModel",
    "get_db",
    "get_engine",
    "get_session_local",
    "init_database",
]
