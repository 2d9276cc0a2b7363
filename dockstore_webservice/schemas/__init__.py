"""Pydantic request schemas."""

from .requests import (
    CheckerWorkflowRequest,
    EntryUpdateRequest,
    ManualRegisterRequest,
    PublishRequest,
    ResetPathsRequest,
    TestParameterFilesRequest,
    VerifyRequest,
    VersionUpdate,
)

__all__ = [
    "CheckerWorkflowRequest",
    "EntryUpdateRequest",
    "ManualRegisterRequest",
    "PublishRequest",
    "ResetPathsRequest",
    "TestParameterFilesRequest",
    "VerifyRequest",
    "VersionUpdate",
]
