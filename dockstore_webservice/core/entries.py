"""
Entry management.

User-facing operations on registered entries that sit around refresh:
restub, publish, manual registration, default and version edits, test
parameter files and DAG/tool rendering.
"""

from typing import Any, Dict, Iterable, List, Optional

import structlog

from ..db.models import (
    EntryModel,
    EntryVersionModel,
    SourceFileModel,
    WorkflowModel,
)
from ..db.store import EntryStore
from ..errors import (
    DuplicateEntryError,
    EntryNotFoundError,
    InvalidDescriptorTypeError,
    InvalidRepositoryError,
    InvalidVersionError,
    NoCredentialError,
    PublishedEntryError,
    PublishRequirementsError,
    SourceControlError,
    UserNotFoundError,
    VerificationError,
    VersionNotFoundError,
)
from ..languages import LanguageHandlerRegistry
from ..search import IndexNotifier, NullIndexNotifier, notify_delete, notify_update
from ..sourcecode import SourceCodeRepoFactory, build_git_url
from .descriptors import parse_descriptor_type, validate_descriptor_path
from .enums import (
    DESCRIPTOR_TYPES_BY_FILE_TYPE,
    DescriptorType,
    EntryMode,
    FileType,
    RenderMode,
    SourceControl,
    descriptor_file_types,
    parameter_file_type,
)
from .permissions import check_user
from .reconciler import reconcile

logger = structlog.get_logger()

DEFAULT_TEST_PARAMETER_FILE_PATH = "/test.json"


class EntryService:
    """Service for entry lifecycle and version edits.

    Usage:
        service = EntryService(EntryStore(db), notifier)
        entry = service.publish(user_id, entry_id, True)
    """

    def __init__(
        self,
        store: EntryStore,
        index_notifier: Optional[IndexNotifier] = None,
        source_code_repo_factory: Optional[SourceCodeRepoFactory] = None,
        language_handlers: Optional[LanguageHandlerRegistry] = None,
    ):
        self.store = store
        self.index_notifier = index_notifier or NullIndexNotifier()
        self.source_code_repo_factory = source_code_repo_factory
        self.language_handlers = language_handlers or LanguageHandlerRegistry()

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get(self, entry_id: int) -> EntryModel:
        entry = self.store.get(entry_id)
        if entry is None:
            raise EntryNotFoundError(f"Entry {entry_id} not found")
        return entry

    def list_entries(self, limit: int = 100, offset: int = 0, published_only: bool = False) -> List[EntryModel]:
        if published_only:
            return self.store.list_published(WorkflowModel, limit=limit, offset=offset)
        return self.store.list_entries(WorkflowModel, limit=limit, offset=offset)

    def _owned_entry(self, user_id: int, entry_id: int) -> EntryModel:
        user = self.store.get_user(user_id)
        if user is None:
            raise UserNotFoundError(f"User {user_id} not found")
        entry = self.get(entry_id)
        check_user(user, entry)
        return entry

    def _version_named(self, entry: EntryModel, version_name: str) -> EntryVersionModel:
        version = entry.version_named(version_name)
        if version is None:
            raise VersionNotFoundError(
                f"{entry.entry_path} has no version named {version_name!r}"
            )
        return version

    def _version_with_id(self, entry: EntryModel, version_id: int) -> EntryVersionModel:
        version = entry.version_with_id(version_id)
        if version is None:
            raise VersionNotFoundError(f"{entry.entry_path} has no version {version_id}")
        return version

    @staticmethod
    def _descriptor_type(entry: EntryModel, descriptor_type: Optional[str]) -> DescriptorType:
        value = descriptor_type or entry.descriptor_type
        if value is None:
            raise InvalidDescriptorTypeError(
                f"A descriptor type is required for {entry.entry_path}"
            )
        return parse_descriptor_type(value)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def restub(self, user_id: int, entry_id: int) -> EntryModel:
        """Drop all version data and return the entry to STUB mode.

        Raises:
            EntryPermissionError: caller does not own the entry
            PublishedEntryError: the entry is published
        """
        entry = self._owned_entry(user_id, entry_id)
        if entry.is_published:
            raise PublishedEntryError("A workflow must be unpublished to restub.")

        def work() -> EntryModel:
            entry.versions.clear()
            entry.checker_id = None
            entry.mode = EntryMode.STUB.value
            return entry

        self.store.execute(work)
        logger.info("entry_restubbed", entry_id=entry.id, entry_path=entry.entry_path)
        notify_delete(self.index_notifier, entry)
        return entry

    def publish(self, user_id: int, entry_id: int, publish: bool) -> EntryModel:
        """Publish or unpublish an entry; its checker workflow follows.

        Raises:
            EntryPermissionError: caller does not own the entry
            PublishRequirementsError: entry is a checker, or has no valid
                version or no git url when publishing
        """
        entry = self._owned_entry(user_id, entry_id)
        if entry.is_checker:
            parent = self.store.find_parent_of_checker(entry)
            target = parent.entry_path if parent is not None else "its parent entry"
            raise PublishRequirementsError(
                f"Cannot directly publish or unpublish a checker workflow; publish {target} instead."
            )
        if publish:
            if not entry.has_valid_version():
                raise PublishRequirementsError(
                    "Repository does not meet requirements to publish: no valid version."
                )
            if not entry.git_url:
                raise PublishRequirementsError(
                    "Repository does not meet requirements to publish: no git url."
                )

        checker = self.store.get_checker(entry)

        def work() -> EntryModel:
            entry.is_published = publish
            if checker is not None:
                checker.is_published = publish
            return entry

        self.store.execute(work)
        logger.info("entry_publish_changed", entry_id=entry.id, published=publish)
        if publish:
            notify_update(self.index_notifier, entry)
        else:
            notify_delete(self.index_notifier, entry)
        return entry

    def manual_register(
        self,
        user_id: int,
        source_control: str,
        repository_path: str,
        default_workflow_path: str,
        workflow_name: Optional[str],
        descriptor_type: str,
        default_test_parameter_file_path: Optional[str] = None,
    ) -> WorkflowModel:
        """Register a workflow by hand and fill it from source control.

        Raises:
            InvalidRepositoryError, InvalidDescriptorTypeError,
            InvalidDescriptorPathError, DuplicateEntryError,
            NoCredentialError, SourceControlError
        """
        provider = SourceControl.from_friendly_name(source_control)
        if provider is None:
            raise InvalidRepositoryError(
                f"Source control {source_control!r} is not supported. Only "
                f"{', '.join(s.friendly_name for s in SourceControl)} are supported."
            )
        parts = repository_path.strip("/").split("/")
        if len(parts) != 2 or not all(parts):
            raise InvalidRepositoryError(
                f"Repository path {repository_path!r} must have the form organization/repository."
            )
        organization, repository = parts
        language = parse_descriptor_type(descriptor_type)
        validate_descriptor_path(default_workflow_path, language)

        user = self.store.get_user(user_id)
        if user is None:
            raise UserNotFoundError(f"User {user_id} not found")

        entry = WorkflowModel(
            source_control=provider.value,
            organization=organization,
            repository=repository,
            subname=workflow_name or "",
            git_url=build_git_url(provider.value, f"{organization}/{repository}"),
            descriptor_type=language.value,
            default_workflow_path=default_workflow_path,
            default_test_parameter_file_path=(
                default_test_parameter_file_path or DEFAULT_TEST_PARAMETER_FILE_PATH
            ),
        )
        if self.store.find_by_path(entry.entry_path) is not None:
            raise DuplicateEntryError(f"A workflow with path {entry.entry_path} already exists.")

        repo = None
        if self.source_code_repo_factory is not None:
            repo = self.source_code_repo_factory.for_git_url(
                entry.git_url, self.store.tokens_for_user(user.id)
            )
        if repo is None:
            raise NoCredentialError(
                f"No usable {provider.friendly_name} token found. Please link your account."
            )

        def work() -> WorkflowModel:
            self.store.add(entry)
            entry.users.append(user)
            fetched = repo.get_entry(f"{organization}/{repository}", entry)
            if fetched is None:
                raise SourceControlError(
                    f"Repository {organization}/{repository} could not be read from {provider.value}"
                )
            reconcile(entry, fetched)
            return entry

        self.store.execute(work)
        logger.info(
            "entry_registered",
            user_id=user.id,
            entry_id=entry.id,
            entry_path=entry.entry_path,
            versions=len(entry.versions),
        )
        notify_update(self.index_notifier, entry)
        return entry

    # ------------------------------------------------------------------
    # Entry and version edits
    # ------------------------------------------------------------------

    def update_entry(
        self,
        entry_id: int,
        descriptor_type: Optional[str] = None,
        default_workflow_path: Optional[str] = None,
        default_test_parameter_file_path: Optional[str] = None,
        default_version: Optional[str] = None,
    ) -> EntryModel:
        """Edit user-owned entry settings.

        Raises:
            InvalidDescriptorTypeError: changing the language of a FULL entry
            VersionNotFoundError: default_version names no version
        """
        entry = self.get(entry_id)
        language = None
        if descriptor_type is not None:
            language = parse_descriptor_type(descriptor_type)
            if language.value != entry.descriptor_type and not entry.is_stub:
                raise InvalidDescriptorTypeError(
                    "You cannot change the descriptor type of a FULL workflow. "
                    "Restub the workflow first."
                )
        if default_version is not None:
            self._version_named(entry, default_version)

        def work() -> EntryModel:
            if language is not None:
                entry.descriptor_type = language.value
            if default_version is not None:
                entry.default_version = default_version
            if isinstance(entry, WorkflowModel):
                if default_workflow_path is not None:
                    entry.default_workflow_path = default_workflow_path
                if default_test_parameter_file_path is not None:
                    entry.default_test_parameter_file_path = default_test_parameter_file_path
            return entry

        self.store.execute(work)
        notify_update(self.index_notifier, entry)
        return entry

    def update_versions(
        self, entry_id: int, updates: Iterable[Dict[str, Any]]
    ) -> List[EntryVersionModel]:
        """Apply user edits to versions by id.

        Each update carries ``id`` and optionally ``workflow_path`` and
        ``hidden``. Changing ``workflow_path`` sets the dirty bit so later
        refreshes keep the user's path.
        """
        entry = self.get(entry_id)
        updates = list(updates)
        pairs = [(self._version_with_id(entry, u["id"]), u) for u in updates]

        def work() -> List[EntryVersionModel]:
            for version, update in pairs:
                workflow_path = update.get("workflow_path")
                if workflow_path is not None and workflow_path != version.workflow_path:
                    version.workflow_path = workflow_path
                    version.dirty_bit = True
                if update.get("hidden") is not None:
                    version.hidden = update["hidden"]
            return [version for version, _ in pairs]

        versions = self.store.execute(work)
        notify_update(self.index_notifier, entry)
        return versions

    def reset_version_paths(
        self, entry_id: int, workflow_path: Optional[str] = None
    ) -> EntryModel:
        """Point every non-dirty version at ``workflow_path`` (default: the entry's default path)."""
        entry = self.get(entry_id)
        path = workflow_path or getattr(entry, "default_workflow_path", None)
        if not path:
            raise InvalidVersionError(f"{entry.entry_path} has no default workflow path")

        def work() -> EntryModel:
            for version in entry.versions:
                if not version.dirty_bit:
                    version.workflow_path = path
            return entry

        return self.store.execute(work)

    def verify_version(
        self,
        entry_id: int,
        version_id: int,
        verify: bool,
        verified_source: Optional[str] = None,
    ) -> EntryVersionModel:
        entry = self.get(entry_id)
        version = self._version_with_id(entry, version_id)
        if verify and not verified_source:
            raise VerificationError("A verification source is required to verify a version.")

        def work() -> EntryVersionModel:
            version.verified = verify
            version.verified_source = verified_source if verify else None
            return version

        self.store.execute(work)
        notify_update(self.index_notifier, entry)
        return version

    # ------------------------------------------------------------------
    # Test parameter files
    # ------------------------------------------------------------------

    def _editable_version(self, entry: EntryModel, version_name: str) -> EntryVersionModel:
        if entry.is_stub:
            raise InvalidVersionError(
                f"{entry.entry_path} is a stub; refresh it before editing test parameter files."
            )
        version = self._version_named(entry, version_name)
        if not version.valid:
            raise InvalidVersionError(f"Version {version_name} of {entry.entry_path} is invalid.")
        return version

    def add_test_parameter_files(
        self,
        entry_id: int,
        version_name: str,
        paths: Iterable[str],
        descriptor_type: Optional[str] = None,
    ) -> List[SourceFileModel]:
        """Register test parameter file paths on a version; existing paths are left as is."""
        entry = self.get(entry_id)
        version = self._editable_version(entry, version_name)
        file_type = parameter_file_type(self._descriptor_type(entry, descriptor_type))
        present = version.files_by_identity()

        def work() -> List[SourceFileModel]:
            for path in paths:
                source_file = SourceFileModel(type=file_type.value, path=path, content="")
                if source_file.identity not in present:
                    version.source_files.append(source_file)
                    present[source_file.identity] = source_file
            return [f for f in version.source_files if f.type == file_type.value]

        return self.store.execute(work)

    def delete_test_parameter_files(
        self,
        entry_id: int,
        version_name: str,
        paths: Iterable[str],
        descriptor_type: Optional[str] = None,
    ) -> List[SourceFileModel]:
        entry = self.get(entry_id)
        version = self._editable_version(entry, version_name)
        file_type = parameter_file_type(self._descriptor_type(entry, descriptor_type))
        doomed = set(paths)

        def work() -> List[SourceFileModel]:
            for source_file in list(version.source_files):
                if source_file.type == file_type.value and source_file.path in doomed:
                    version.source_files.remove(source_file)
            return [f for f in version.source_files if f.type == file_type.value]

        return self.store.execute(work)

    # ------------------------------------------------------------------
    # Files and rendering
    # ------------------------------------------------------------------

    def get_source_file(
        self, entry_id: int, version_name: str, file_type: FileType
    ) -> Optional[SourceFileModel]:
        """The primary file of a type: for descriptor types the one at workflow_path."""
        entry = self.get(entry_id)
        version = self._version_named(entry, version_name)
        file_type = FileType(file_type)
        candidates = [f for f in version.source_files if f.type == file_type.value]
        for source_file in candidates:
            if source_file.path == version.workflow_path:
                return source_file
        if file_type in DESCRIPTOR_TYPES_BY_FILE_TYPE:
            return None
        return candidates[0] if candidates else None

    def get_secondary_files(
        self, entry_id: int, version_name: str, descriptor_type: Optional[str] = None
    ) -> List[SourceFileModel]:
        entry = self.get(entry_id)
        version = self._version_named(entry, version_name)
        types = {t.value for t in descriptor_file_types(self._descriptor_type(entry, descriptor_type))}
        return [
            f for f in version.source_files
            if f.type in types and f.path != version.workflow_path
        ]

    def get_test_parameter_files(
        self, entry_id: int, version_name: str, descriptor_type: Optional[str] = None
    ) -> List[SourceFileModel]:
        entry = self.get(entry_id)
        version = self._version_named(entry, version_name)
        file_type = parameter_file_type(self._descriptor_type(entry, descriptor_type))
        return [f for f in version.source_files if f.type == file_type.value]

    def render(
        self,
        entry_id: int,
        version_id: int,
        mode: RenderMode,
        descriptor_type: Optional[str] = None,
    ) -> Optional[str]:
        """DAG or tool table of a version, or None without a primary descriptor."""
        entry = self.get(entry_id)
        version = self._version_with_id(entry, version_id)
        language = self._descriptor_type(entry, descriptor_type)
        primary = version.primary_descriptor()
        if primary is None:
            return None
        handler = self.language_handlers.get(language.value)
        if handler is None:
            raise InvalidDescriptorTypeError(f"No language handler registered for {language.value}")
        return handler.render(
            primary.path,
            primary.content or "",
            version.secondary_files(language.value),
            RenderMode(mode),
        )
