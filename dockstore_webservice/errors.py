"""
Domain errors.

Every user-visible failure is a ``DockstoreError`` carrying a stable code
for programmatic handling, a human-readable message and the HTTP status
the transport layer should answer with.
"""

from typing import Any, Dict


class DockstoreError(Exception):
    """Base class for errors surfaced to API callers.

    Attributes:
        code: Stable error code for programmatic handling
        message: Human-readable error description
        status_code: HTTP status used by the API layer
    """

    code = "DOCKSTORE_ERROR"
    status_code = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(f"{self.code}: {message}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return {
            "error": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
        }


class NoCredentialError(DockstoreError):
    """No valid source-control token for any configured provider."""

    code = "NO_CREDENTIAL"


class DuplicateEntryError(DockstoreError):
    """An entry with the same path already exists."""

    code = "DUPLICATE_ENTRY"


class InvalidDescriptorPathError(DockstoreError):
    """Descriptor path does not match the convention of its descriptor type."""

    code = "INVALID_DESCRIPTOR_PATH"


class InvalidDescriptorTypeError(DockstoreError):
    code = "INVALID_DESCRIPTOR_TYPE"


class EntryNotFoundError(DockstoreError):
    code = "ENTRY_NOT_FOUND"
    status_code = 404


class VersionNotFoundError(DockstoreError):
    code = "VERSION_NOT_FOUND"
    status_code = 404


class UserNotFoundError(DockstoreError):
    code = "USER_NOT_FOUND"
    status_code = 404


class PublishedEntryError(DockstoreError):
    """Restub attempted on a published entry."""

    code = "PUBLISHED_ENTRY"


class PublishRequirementsError(DockstoreError):
    code = "PUBLISH_REQUIREMENTS"


class InvalidVersionError(DockstoreError):
    """The operation needs a FULL entry and a valid version."""

    code = "INVALID_VERSION"


class CheckerWorkflowError(DockstoreError):
    """Checker workflow registration preconditions failed."""

    code = "CHECKER_WORKFLOW"


class SourceControlError(DockstoreError):
    """Source control returned nothing for a repository we asked about."""

    code = "SOURCE_CONTROL"
    status_code = 502


class InvalidRepositoryError(DockstoreError):
    """Unsupported source-control provider or malformed ``org/repo`` path."""

    code = "INVALID_REPOSITORY"


class VerificationError(DockstoreError):
    code = "INVALID_VERIFICATION"


class EntryPermissionError(DockstoreError):
    """The caller neither owns the entry nor is an admin."""

    code = "FORBIDDEN"
    status_code = 403
