"""Request bodies for the workflow API."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, constr


class ManualRegisterRequest(BaseModel):
    """Register a workflow from a repository without waiting for a refresh."""

    source_control: constr(min_length=1, max_length=64) = Field(
        ..., description="GitHub, Bitbucket or GitLab (host names are accepted too)"
    )
    repository_path: constr(min_length=3, max_length=512) = Field(
        ..., description="organization/repository"
    )
    default_workflow_path: constr(min_length=1, max_length=1024)
    descriptor_type: constr(min_length=1, max_length=16)
    workflow_name: Optional[constr(min_length=1, max_length=256)] = None
    default_test_parameter_file_path: Optional[constr(min_length=1, max_length=1024)] = None


class EntryUpdateRequest(BaseModel):
    descriptor_type: Optional[constr(min_length=1, max_length=16)] = None
    default_workflow_path: Optional[constr(min_length=1, max_length=1024)] = None
    default_test_parameter_file_path: Optional[constr(min_length=1, max_length=1024)] = None
    default_version: Optional[constr(min_length=1, max_length=256)] = None


class VersionUpdate(BaseModel):
    """User edit of one version; a new workflow_path marks the version dirty."""

    model_config = ConfigDict(extra="forbid")

    id: int
    workflow_path: Optional[constr(min_length=1, max_length=1024)] = None
    hidden: Optional[bool] = None


class PublishRequest(BaseModel):
    publish: bool


class VerifyRequest(BaseModel):
    verify: bool
    verified_source: Optional[constr(min_length=1, max_length=4000)] = None


class ResetPathsRequest(BaseModel):
    workflow_path: Optional[constr(min_length=1, max_length=1024)] = None


class TestParameterFilesRequest(BaseModel):
    # Keep pytest from collecting this class
    __test__ = False

    paths: List[constr(min_length=1, max_length=1024)] = Field(..., min_length=1)
    descriptor_type: Optional[constr(min_length=1, max_length=16)] = None


class CheckerWorkflowRequest(BaseModel):
    checker_workflow_path: constr(min_length=1, max_length=1024)
    test_parameter_path: Optional[constr(min_length=1, max_length=1024)] = None
