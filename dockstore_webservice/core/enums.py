"""
Canonical enums for registry entries.

These enums define the allowed values stored on entries, versions and
source files. Source-control adapters MUST map provider-specific values
into these sets.
"""

from enum import Enum
from typing import Optional


class EntryKind(str, Enum):
    """Variants of a registry entry."""

    TOOL = "tool"
    WORKFLOW = "workflow"


class EntryMode(str, Enum):
    """Whether version data has been fetched for an entry."""

    STUB = "STUB"
    FULL = "FULL"


class DescriptorType(str, Enum):
    """Descriptor languages understood by the registry."""

    CWL = "cwl"
    WDL = "wdl"
    NEXTFLOW = "nfl"

    @classmethod
    def parse(cls, value: str) -> Optional["DescriptorType"]:
        """Map a user-supplied descriptor type string, or None if unknown."""
        normalized = (value or "").strip().lower()
        if normalized == "nextflow":
            return cls.NEXTFLOW
        for member in cls:
            if member.value == normalized:
                return member
        return None


class FileType(str, Enum):
    """Language-qualified source file types."""

    DOCKSTORE_CWL = "DOCKSTORE_CWL"
    DOCKSTORE_WDL = "DOCKSTORE_WDL"
    NEXTFLOW_CONFIG = "NEXTFLOW_CONFIG"
    NEXTFLOW = "NEXTFLOW"
    CWL_TEST_JSON = "CWL_TEST_JSON"
    WDL_TEST_JSON = "WDL_TEST_JSON"
    NEXTFLOW_TEST_PARAMS = "NEXTFLOW_TEST_PARAMS"
    DOCKERFILE = "DOCKERFILE"


class FileRole(str, Enum):
    """Role a file plays within one version; derived, never stored."""

    PRIMARY_DESCRIPTOR = "PRIMARY_DESCRIPTOR"
    SECONDARY_DESCRIPTOR = "SECONDARY_DESCRIPTOR"
    TEST_PARAMETER_FILE = "TEST_PARAMETER_FILE"
    DOCKERFILE = "DOCKERFILE"


class DoiStatus(str, Enum):
    NONE = "NONE"
    REQUESTED = "REQUESTED"
    CREATED = "CREATED"


class SourceControl(str, Enum):
    """Supported source-control hosts, valued by host name."""

    GITHUB = "github.com"
    BITBUCKET = "bitbucket.org"
    GITLAB = "gitlab.com"

    @property
    def friendly_name(self) -> str:
        return {
            SourceControl.GITHUB: "GitHub",
            SourceControl.BITBUCKET: "Bitbucket",
            SourceControl.GITLAB: "GitLab",
        }[self]

    @classmethod
    def from_friendly_name(cls, name: str) -> Optional["SourceControl"]:
        lowered = (name or "").lower()
        for member in cls:
            if lowered in (member.friendly_name.lower(), member.value):
                return member
        return None


class RenderMode(str, Enum):
    """Presentation requested from a language handler."""

    DAG = "DAG"
    TOOLS = "TOOLS"


# Descriptor type -> file types of its descriptor files, primary first
DESCRIPTOR_FILE_TYPES = {
    DescriptorType.CWL: (FileType.DOCKSTORE_CWL,),
    DescriptorType.WDL: (FileType.DOCKSTORE_WDL,),
    DescriptorType.NEXTFLOW: (FileType.NEXTFLOW_CONFIG, FileType.NEXTFLOW),
}

TEST_PARAMETER_FILE_TYPES = {
    DescriptorType.CWL: FileType.CWL_TEST_JSON,
    DescriptorType.WDL: FileType.WDL_TEST_JSON,
    DescriptorType.NEXTFLOW: FileType.NEXTFLOW_TEST_PARAMS,
}

DESCRIPTOR_TYPES_BY_FILE_TYPE = {
    file_type: descriptor_type
    for descriptor_type, file_types in DESCRIPTOR_FILE_TYPES.items()
    for file_type in file_types
}


def descriptor_file_types(descriptor_type: Optional[DescriptorType]) -> tuple:
    """File types that hold descriptors for a language."""
    if descriptor_type is None:
        return ()
    return DESCRIPTOR_FILE_TYPES[DescriptorType(descriptor_type)]


def parameter_file_type(descriptor_type: DescriptorType) -> FileType:
    return TEST_PARAMETER_FILE_TYPES[DescriptorType(descriptor_type)]
