"""
SQLAlchemy models for the Dockstore registry.

Ownership hierarchy:
- An entry (tool or workflow) exclusively owns its versions.
- A version exclusively owns its source files.
- Neither versions nor files hold a pointer back to their owner; they are
  reached through the owning collection only.
- The checker workflow link is a plain nullable id, never an ownership edge.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..core.enums import (
    DescriptorType,
    DoiStatus,
    EntryKind,
    EntryMode,
    FileRole,
    FileType,
    descriptor_file_types,
    parameter_file_type,
)
from .base import Base


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


# =============================================================================
# Join Tables
# =============================================================================

entry_users = Table(
    "entry_users",
    Base.metadata,
    Column(
        "entry_id",
        Integer,
        ForeignKey("entries.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "user_id",
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("created_at", DateTime(timezone=True), default=func.now()),
)


# =============================================================================
# Database Enums
# =============================================================================

entry_mode_enum = Enum(*[m.value for m in EntryMode], name="entry_mode")
entry_kind_enum = Enum(*[k.value for k in EntryKind], name="entry_kind")
file_type_enum = Enum(*[t.value for t in FileType], name="source_file_type")
doi_status_enum = Enum(*[s.value for s in DoiStatus], name="doi_status")


# =============================================================================
# Users and Tokens
# =============================================================================


class UserModel(Base):
    """A registry user; owns entries through ``entry_users``."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(256), nullable=False, unique=True, index=True)
    is_admin = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())

    tokens = relationship(
        "TokenModel", back_populates="user", cascade="all, delete-orphan"
    )
    entries = relationship(
        "EntryModel", secondary=entry_users, back_populates="users"
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "is_admin": self.is_admin,
        }


class TokenModel(Base):
    """A source-control credential linked to a user."""

    __tablename__ = "tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Host name of the provider, e.g. "github.com"
    token_source = Column(String(64), nullable=False)
    content = Column(Text, nullable=True)
    username = Column(String(256), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())

    user = relationship("UserModel", back_populates="tokens")

    @property
    def is_usable(self) -> bool:
        return bool(self.content)

    def to_dict(self) -> Dict[str, Any]:
        # Token content is never serialized
        return {
            "id": self.id,
            "user_id": self.user_id,
            "token_source": self.token_source,
            "username": self.username,
        }


# =============================================================================
# Source Files
# =============================================================================


class SourceFileModel(Base):
    """One file's content at one version. Identity within a version is (type, path)."""

    __tablename__ = "source_files"

    id = Column(Integer, primary_key=True, autoincrement=True)
    version_id = Column(
        Integer,
        ForeignKey("entry_versions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type = Column(file_type_enum, nullable=False)
    path = Column(String(1024), nullable=False)
    content = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (
        UniqueConstraint("version_id", "type", "path", name="uq_source_files_identity"),
    )

    @property
    def identity(self) -> str:
        """Key used to match files across refreshes."""
        return f"{FileType(self.type).value}:{self.path}"

    def clone(self) -> "SourceFileModel":
        """Detached copy carrying identity and content, without database id."""
        return SourceFileModel(type=self.type, path=self.path, content=self.content)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "path": self.path,
            "content": self.content,
        }


# =============================================================================
# Versions
# =============================================================================


class EntryVersionModel(Base):
    """One tagged or branched revision of an entry.

    Invariants:
    - name is unique within the owning entry.
    - when dirty_bit is set, refresh never overwrites workflow_path.
    """

    __tablename__ = "entry_versions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    kind = Column(String(32), nullable=False)
    entry_id = Column(
        Integer,
        ForeignKey("entries.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Source-derived fields
    name = Column(String(256), nullable=False)
    reference = Column(String(256), nullable=True)
    commit_id = Column(String(64), nullable=True)
    workflow_path = Column(String(1024), nullable=True)
    valid = Column(Boolean, nullable=False, default=False)
    last_modified = Column(DateTime(timezone=True), nullable=True)

    # User/admin-owned fields, preserved across refreshes
    dirty_bit = Column(Boolean, nullable=False, default=False)
    hidden = Column(Boolean, nullable=False, default=False)
    verified = Column(Boolean, nullable=False, default=False)
    verified_source = Column(Text, nullable=True)
    doi_status = Column(doi_status_enum, nullable=False, default=DoiStatus.NONE.value)

    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=func.now(),
        onupdate=func.now(),
    )

    source_files = relationship(
        "SourceFileModel",
        cascade="all, delete-orphan",
        order_by="SourceFileModel.id",
    )

    __table_args__ = (
        UniqueConstraint("entry_id", "name", name="uq_entry_versions_entry_name"),
        Index("ix_entry_versions_name", "name"),
    )

    __mapper_args__ = {
        "polymorphic_on": kind,
        "polymorphic_identity": "version",
    }

    # Columns refresh copies from source control
    SOURCE_FIELDS = ("reference", "commit_id", "valid", "last_modified")
    # Columns frozen while dirty_bit is set
    PATH_FIELDS = ("workflow_path",)

    def __init__(self, **kwargs: Any):
        kwargs.setdefault("valid", False)
        kwargs.setdefault("dirty_bit", False)
        kwargs.setdefault("hidden", False)
        kwargs.setdefault("verified", False)
        kwargs.setdefault("doi_status", DoiStatus.NONE.value)
        kwargs.setdefault("source_files", [])
        super().__init__(**kwargs)

    def update(self, version: "EntryVersionModel") -> None:
        """Copy source-derived fields from a freshly fetched version.

        Path fields are left alone while the dirty bit is set; user-owned
        fields (dirty_bit, hidden, verified, doi_status) are never copied.
        """
        for field in self.SOURCE_FIELDS:
            setattr(self, field, getattr(version, field))
        if not self.dirty_bit:
            for field in self.PATH_FIELDS:
                setattr(self, field, getattr(version, field))

    def files_by_identity(self) -> Dict[str, SourceFileModel]:
        return {f.identity: f for f in self.source_files}

    def file_role(
        self, source_file: SourceFileModel, descriptor_type: Optional[str]
    ) -> FileRole:
        """Role of a file in this version for the given descriptor language."""
        if source_file.type == FileType.DOCKERFILE.value:
            return FileRole.DOCKERFILE
        if source_file.type in {t.value for t in descriptor_file_types(descriptor_type)}:
            if source_file.path == self.workflow_path:
                return FileRole.PRIMARY_DESCRIPTOR
            return FileRole.SECONDARY_DESCRIPTOR
        return FileRole.TEST_PARAMETER_FILE

    def primary_descriptor(self) -> Optional[SourceFileModel]:
        """The descriptor file whose path equals workflow_path, if present."""
        for source_file in self.source_files:
            if source_file.type == FileType.DOCKERFILE.value:
                continue
            if source_file.path == self.workflow_path:
                return source_file
        return None

    def secondary_files(self, descriptor_type: Optional[str]) -> Dict[str, str]:
        """Map of path -> content for the non-primary descriptor files."""
        types = {t.value for t in descriptor_file_types(descriptor_type)}
        return {
            f.path: f.content
            for f in self.source_files
            if f.type in types and f.path != self.workflow_path
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind,
            "name": self.name,
            "reference": self.reference,
            "commit_id": self.commit_id,
            "workflow_path": self.workflow_path,
            "valid": self.valid,
            "dirty_bit": self.dirty_bit,
            "hidden": self.hidden,
            "verified": self.verified,
            "verified_source": self.verified_source,
            "doi_status": self.doi_status,
            "last_modified": _isoformat(self.last_modified),
            "source_files": [f.to_dict() for f in self.source_files],
        }


class WorkflowVersionModel(EntryVersionModel):
    """A branch or tag of a workflow repository."""

    __mapper_args__ = {"polymorphic_identity": EntryKind.WORKFLOW.value}


class TagModel(EntryVersionModel):
    """A tag of a tool: an image tag plus its descriptor and Dockerfile paths."""

    __mapper_args__ = {"polymorphic_identity": EntryKind.TOOL.value}

    image_id = Column(String(256), nullable=True)
    size = Column(Integer, nullable=True)
    automated = Column(Boolean, nullable=True)
    dockerfile_path = Column(String(1024), nullable=True)

    SOURCE_FIELDS = EntryVersionModel.SOURCE_FIELDS + ("image_id", "size", "automated")
    PATH_FIELDS = EntryVersionModel.PATH_FIELDS + ("dockerfile_path",)

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result.update(
            {
                "image_id": self.image_id,
                "size": self.size,
                "automated": self.automated,
                "dockerfile_path": self.dockerfile_path,
            }
        )
        return result


# =============================================================================
# Entries
# =============================================================================


class EntryModel(Base):
    """Root registry record for a tool or workflow.

    Invariants:
    - (source_control, organization, repository, subname) is unique.
    - descriptor_type is immutable while mode is FULL.
    - a checker entry never has a checker of its own.
    """

    __tablename__ = "entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    kind = Column(entry_kind_enum, nullable=False)

    # Path identity; subname is "" rather than NULL so uniqueness holds
    source_control = Column(String(256), nullable=False)
    organization = Column(String(256), nullable=False)
    repository = Column(String(256), nullable=False)
    subname = Column(String(256), nullable=False, default="")

    git_url = Column(String(512), nullable=True, index=True)
    mode = Column(entry_mode_enum, nullable=False, default=EntryMode.STUB.value)
    descriptor_type = Column(String(16), nullable=True)
    is_published = Column(Boolean, nullable=False, default=False, index=True)
    is_checker = Column(Boolean, nullable=False, default=False, index=True)
    checker_id = Column(
        Integer, ForeignKey("entries.id", ondelete="SET NULL"), nullable=True
    )
    default_version = Column(String(256), nullable=True)

    # Metadata copied from source control
    description = Column(Text, nullable=True)
    author = Column(String(256), nullable=True)
    email = Column(String(256), nullable=True)
    last_modified = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=func.now(),
        onupdate=func.now(),
    )

    versions = relationship(
        "EntryVersionModel",
        cascade="all, delete-orphan",
        order_by="EntryVersionModel.id",
    )
    users = relationship("UserModel", secondary=entry_users, back_populates="entries")

    __table_args__ = (
        UniqueConstraint(
            "source_control",
            "organization",
            "repository",
            "subname",
            name="uq_entries_path",
        ),
        Index("ix_entries_kind_published", "kind", "is_published"),
    )

    __mapper_args__ = {
        "polymorphic_on": kind,
        "polymorphic_identity": "entry",
    }

    # Columns refresh copies from source control
    SOURCE_FIELDS = ("description", "author", "email", "last_modified", "git_url")
    IDENTITY_FIELDS = ("source_control", "organization", "repository", "subname")
    # Registration settings carried over when a stub is created from a snapshot
    STUB_FIELDS = ("git_url", "descriptor_type", "is_checker")

    def __init__(self, **kwargs: Any):
        kwargs.setdefault("subname", "")
        kwargs.setdefault("mode", EntryMode.STUB.value)
        kwargs.setdefault("is_published", False)
        kwargs.setdefault("is_checker", False)
        kwargs.setdefault("versions", [])
        super().__init__(**kwargs)

    @property
    def path(self) -> str:
        return f"{self.source_control}/{self.organization}/{self.repository}"

    @property
    def entry_path(self) -> str:
        """Full path including the optional subname."""
        if self.subname:
            return f"{self.path}/{self.subname}"
        return self.path

    @property
    def is_stub(self) -> bool:
        return self.mode == EntryMode.STUB.value

    @property
    def has_checker_workflow(self) -> bool:
        return self.checker_id is not None

    def version_named(self, name: str) -> Optional[EntryVersionModel]:
        for version in self.versions:
            if version.name == name:
                return version
        return None

    def version_with_id(self, version_id: int) -> Optional[EntryVersionModel]:
        for version in self.versions:
            if version.id == version_id:
                return version
        return None

    def has_valid_version(self) -> bool:
        return any(v.valid for v in self.versions)

    def update(self, entry: "EntryModel") -> None:
        """Copy source-derived metadata from a freshly fetched entry."""
        for field in self.SOURCE_FIELDS:
            setattr(self, field, getattr(entry, field))

    def new_version(self, **kwargs: Any) -> EntryVersionModel:
        """Construct a version of the class matching this entry's kind."""
        raise NotImplementedError

    def stub_copy(self) -> "EntryModel":
        """New STUB entry of the same kind with this entry's identity and settings."""
        copy = type(self)()
        for field in self.IDENTITY_FIELDS + self.STUB_FIELDS:
            setattr(copy, field, getattr(self, field))
        return copy

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind,
            "path": self.path,
            "entry_path": self.entry_path,
            "source_control": self.source_control,
            "organization": self.organization,
            "repository": self.repository,
            "subname": self.subname or None,
            "git_url": self.git_url,
            "mode": self.mode,
            "descriptor_type": self.descriptor_type,
            "is_published": self.is_published,
            "is_checker": self.is_checker,
            "checker_id": self.checker_id,
            "default_version": self.default_version,
            "description": self.description,
            "author": self.author,
            "email": self.email,
            "last_modified": _isoformat(self.last_modified),
            "versions": [v.to_dict() for v in self.versions],
            "created_at": _isoformat(self.created_at),
            "updated_at": _isoformat(self.updated_at),
        }


class WorkflowModel(EntryModel):
    """A workflow registered from a source-control repository."""

    __mapper_args__ = {"polymorphic_identity": EntryKind.WORKFLOW.value}

    default_workflow_path = Column(String(1024), nullable=True)
    default_test_parameter_file_path = Column(String(1024), nullable=True)

    STUB_FIELDS = EntryModel.STUB_FIELDS + (
        "default_workflow_path",
        "default_test_parameter_file_path",
    )

    def __init__(self, **kwargs: Any):
        kwargs.setdefault("default_workflow_path", "/Dockstore.cwl")
        super().__init__(**kwargs)

    @property
    def workflow_name(self) -> Optional[str]:
        return self.subname or None

    @property
    def test_parameter_type(self) -> Optional[FileType]:
        if self.descriptor_type is None:
            return None
        return parameter_file_type(DescriptorType(self.descriptor_type))

    def new_version(self, **kwargs: Any) -> WorkflowVersionModel:
        return WorkflowVersionModel(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result.update(
            {
                "workflow_name": self.workflow_name,
                "default_workflow_path": self.default_workflow_path,
                "default_test_parameter_file_path": self.default_test_parameter_file_path,
            }
        )
        return result


class ToolModel(EntryModel):
    """A containerized tool; source_control holds the image registry host."""

    __mapper_args__ = {"polymorphic_identity": EntryKind.TOOL.value}

    default_dockerfile_path = Column(String(1024), nullable=True)
    default_cwl_path = Column(String(1024), nullable=True)
    default_wdl_path = Column(String(1024), nullable=True)
    default_test_cwl_parameter_file = Column(String(1024), nullable=True)
    default_test_wdl_parameter_file = Column(String(1024), nullable=True)
    tool_maintainer_email = Column(String(256), nullable=True)
    private_access = Column(Boolean, nullable=True)
    last_build = Column(DateTime(timezone=True), nullable=True)

    SOURCE_FIELDS = EntryModel.SOURCE_FIELDS + (
        "tool_maintainer_email",
        "private_access",
        "last_build",
    )
    STUB_FIELDS = EntryModel.STUB_FIELDS + (
        "default_dockerfile_path",
        "default_cwl_path",
        "default_wdl_path",
        "default_test_cwl_parameter_file",
        "default_test_wdl_parameter_file",
    )

    def __init__(self, **kwargs: Any):
        kwargs.setdefault("default_dockerfile_path", "/Dockerfile")
        kwargs.setdefault("default_cwl_path", "/Dockstore.cwl")
        kwargs.setdefault("default_wdl_path", "/Dockstore.wdl")
        kwargs.setdefault("default_test_cwl_parameter_file", "/test.json")
        kwargs.setdefault("default_test_wdl_parameter_file", "/test.json")
        kwargs.setdefault("tool_maintainer_email", "")
        kwargs.setdefault("private_access", False)
        super().__init__(**kwargs)

    @property
    def tool_name(self) -> Optional[str]:
        return self.subname or None

    @property
    def descriptor_types(self) -> List[str]:
        """Languages with a descriptor in any tag, in CWL, WDL order."""
        present = {f.type for tag in self.versions for f in tag.source_files}
        languages = []
        if FileType.DOCKSTORE_CWL.value in present:
            languages.append(DescriptorType.CWL.value)
        if FileType.DOCKSTORE_WDL.value in present:
            languages.append(DescriptorType.WDL.value)
        return languages

    def new_version(self, **kwargs: Any) -> TagModel:
        return TagModel(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result.update(
            {
                "tool_name": self.tool_name,
                "descriptor_types": self.descriptor_types,
                "default_dockerfile_path": self.default_dockerfile_path,
                "default_cwl_path": self.default_cwl_path,
                "default_wdl_path": self.default_wdl_path,
                "tool_maintainer_email": self.tool_maintainer_email,
                "private_access": self.private_access,
                "last_build": _isoformat(self.last_build),
            }
        )
        return result

