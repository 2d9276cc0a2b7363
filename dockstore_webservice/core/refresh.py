"""
Refresh orchestration.

Drives per-user refreshes: enumerates the user's repositories on every
source-control provider they hold a token for, fetches a snapshot per
repository and reconciles it into the persisted entry. Each entry is
fetched, reconciled and committed on its own, so a failure on one entry
rolls back only that entry and the remaining ones are still refreshed.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Set

import structlog

from ..config import Settings, get_settings
from ..db.models import EntryModel, UserModel, WorkflowModel
from ..db.store import EntryStore
from ..errors import (
    EntryNotFoundError,
    NoCredentialError,
    SourceControlError,
    UserNotFoundError,
)
from ..search import IndexNotifier, NullIndexNotifier, notify_update
from ..sourcecode import SourceCodeRepo, SourceCodeRepoFactory
from .enums import DescriptorType, EntryKind, EntryMode
from .permissions import check_user
from .reconciler import diff_versions, reconcile

logger = structlog.get_logger()

CHECKER_DESCRIPTOR_TYPES = (DescriptorType.CWL.value, DescriptorType.WDL.value)
CHECKER_SUFFIX = "_{}_checker"


@dataclass
class RefreshReport:
    """Outcome of ``refresh_all``."""

    refreshed: List[int] = field(default_factory=list)
    created: List[int] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "refreshed": self.refreshed,
            "created": self.created,
            "failed": self.failed,
            "skipped": self.skipped,
        }


def checker_descriptor_types(entry: EntryModel) -> List[str]:
    """Descriptor languages of an entry that may carry a checker workflow."""
    if entry.kind == EntryKind.TOOL.value:
        languages = entry.descriptor_types
    else:
        languages = [entry.descriptor_type]
    return [lang for lang in languages if lang in CHECKER_DESCRIPTOR_TYPES]


def conventional_checker_path(entry: EntryModel, descriptor_type: str) -> str:
    """Path a checker for ``entry`` is registered under, e.g. ``.../name_cwl_checker``."""
    return f"{entry.path}/{entry.subname}{CHECKER_SUFFIX.format(descriptor_type)}"


class RefreshOrchestrator:
    """Refreshes a user's entries from source control.

    Usage:
        orchestrator = RefreshOrchestrator(EntryStore(db), factory, notifier)
        report = orchestrator.refresh_all(user_id)
        entry = orchestrator.refresh_one(user_id, entry_id)
    """

    def __init__(
        self,
        store: EntryStore,
        source_code_repo_factory: SourceCodeRepoFactory,
        index_notifier: Optional[IndexNotifier] = None,
        settings: Optional[Settings] = None,
    ):
        self.store = store
        self.source_code_repo_factory = source_code_repo_factory
        self.index_notifier = index_notifier or NullIndexNotifier()
        self.settings = settings or get_settings()

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _get_user(self, user_id: int) -> UserModel:
        user = self.store.get_user(user_id)
        if user is None:
            raise UserNotFoundError(f"User {user_id} not found")
        return user

    def _source_code_repos(self, user: UserModel) -> List[SourceCodeRepo]:
        repos = []
        for token in self.store.tokens_for_user(user.id):
            if not token.is_usable:
                continue
            repo = self.source_code_repo_factory(token)
            if repo is None:
                continue
            if not repo.check_validity():
                logger.warning(
                    "source_control_token_invalid",
                    user_id=user.id,
                    token_source=token.token_source,
                )
                continue
            repos.append(repo)
        if not repos:
            raise NoCredentialError(
                "No source control repository token found. Please link at least "
                "one source control repository token to your account."
            )
        return repos

    def _repo_for_entry(self, user: UserModel, entry: EntryModel) -> SourceCodeRepo:
        repo = self.source_code_repo_factory.for_git_url(
            entry.git_url, self.store.tokens_for_user(user.id)
        )
        if repo is None:
            raise NoCredentialError(
                f"No usable source control token for {entry.git_url}. "
                "Please re-link your git accounts."
            )
        return repo

    # ------------------------------------------------------------------
    # Single entry
    # ------------------------------------------------------------------

    def _skip_empty_snapshot(self, entry: EntryModel, fetched: EntryModel) -> bool:
        return (
            self.settings.refresh_skip_empty_snapshots
            and bool(entry.versions)
            and not fetched.versions
        )

    def _refresh_entry(
        self,
        repo: SourceCodeRepo,
        user: UserModel,
        entry: EntryModel,
        force_full: bool = False,
    ) -> Optional[EntryModel]:
        """Fetch, reconcile and commit one persisted entry.

        Returns None when the snapshot was empty and ignored.
        """
        repository_id = f"{entry.organization}/{entry.repository}"
        log = logger.bind(user_id=user.id, entry_id=entry.id, entry_path=entry.entry_path)

        def work() -> Optional[EntryModel]:
            fetched = repo.get_entry(repository_id, entry)
            if fetched is None:
                raise SourceControlError(
                    f"Repository {repository_id} could not be read from {repo.source_control.value}"
                )
            if self._skip_empty_snapshot(entry, fetched):
                log.warning("empty_snapshot_skipped", versions=len(entry.versions))
                return None
            diff = diff_versions(entry, fetched)
            reconcile(entry, fetched)
            if force_full:
                entry.mode = EntryMode.FULL.value
            if user not in entry.users:
                entry.users.append(user)
            log.info("entry_refreshed", **diff.to_dict())
            return entry

        refreshed = self.store.execute(work)
        if refreshed is not None:
            notify_update(self.index_notifier, refreshed)
        return refreshed

    def _create_entry(
        self, repo: SourceCodeRepo, user: UserModel, repository_id: str
    ) -> Optional[EntryModel]:
        """Persist an entry for a repository that has none yet."""

        def work() -> Optional[EntryModel]:
            fetched = repo.get_entry(repository_id, None)
            if fetched is None:
                return None
            entry = self.store.add(fetched.stub_copy())
            entry.users.append(user)
            reconcile(entry, fetched)
            logger.info(
                "entry_created",
                user_id=user.id,
                entry_id=entry.id,
                entry_path=entry.entry_path,
                versions=len(entry.versions),
            )
            return entry

        entry = self.store.execute(work)
        if entry is not None:
            notify_update(self.index_notifier, entry)
        return entry

    def _checker_to_cascade(
        self, entry: EntryModel, already_processed: Set[int]
    ) -> Optional[EntryModel]:
        if entry.is_checker or not checker_descriptor_types(entry):
            return None
        checker = self.store.get_checker(entry)
        if checker is None or checker.id in already_processed:
            return None
        return checker

    def _link_conventional_checker(self, entry: EntryModel) -> None:
        """Attach an already registered checker found by its conventional path."""
        if entry.is_checker or entry.has_checker_workflow:
            return
        for descriptor_type in checker_descriptor_types(entry):
            checker = self.store.find_by_path(
                conventional_checker_path(entry, descriptor_type), WorkflowModel
            )
            if checker is not None and checker.is_checker:
                self.store.execute(lambda: setattr(entry, "checker_id", checker.id))
                logger.info("checker_linked", entry_id=entry.id, checker_id=checker.id)
                return

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def refresh_one(
        self,
        user_id: int,
        entry_id: int,
        already_processed: Optional[Set[int]] = None,
    ) -> EntryModel:
        """Fully refresh one entry, then its checker workflow.

        Raises:
            UserNotFoundError, EntryNotFoundError, NoCredentialError
            EntryPermissionError: caller does not own the entry
            SourceControlError: repository could not be read
        """
        if already_processed is None:
            already_processed = set()
        user = self._get_user(user_id)
        entry = self.store.get(entry_id)
        if entry is None:
            raise EntryNotFoundError(f"Entry {entry_id} not found")

        check_user(user, entry)
        self._refresh_targeted(user, entry, already_processed)
        return entry

    def _refresh_targeted(
        self, user: UserModel, entry: EntryModel, already_processed: Set[int]
    ) -> None:
        repo = self._repo_for_entry(user, entry)
        self._link_conventional_checker(entry)
        self._refresh_entry(repo, user, entry, force_full=True)
        already_processed.add(entry.id)

        # The checker belongs to the same request; ownership is not re-checked
        checker = self._checker_to_cascade(entry, already_processed)
        if checker is not None:
            self._refresh_targeted(user, checker, already_processed)

    def refresh_all(
        self,
        user_id: int,
        organization: Optional[str] = None,
        already_processed: Optional[Set[int]] = None,
    ) -> RefreshReport:
        """Refresh every repository visible to the user.

        Entries whose id is in ``already_processed`` are not refreshed
        again; the set is updated in place.

        Raises:
            UserNotFoundError: unknown user
            NoCredentialError: user holds no usable source-control token
        """
        if already_processed is None:
            already_processed = set()
        user = self._get_user(user_id)
        report = RefreshReport()
        for repo in self._source_code_repos(user):
            self._refresh_repositories(repo, user, organization, already_processed, report)
        logger.info(
            "refresh_completed",
            user_id=user_id,
            organization=organization,
            refreshed=len(report.refreshed),
            created=len(report.created),
            failed=len(report.failed),
        )
        return report

    def _refresh_repositories(
        self,
        repo: SourceCodeRepo,
        user: UserModel,
        organization: Optional[str],
        already_processed: Set[int],
        report: RefreshReport,
    ) -> None:
        repositories = repo.list_repositories()
        for git_url, repository_id in sorted(repositories.items()):
            if organization and repository_id.split("/")[0] != organization:
                continue
            existing = self.store.find_by_git_url(git_url, repo.entry_model)
            if not existing:
                self._isolated(
                    report,
                    repository_id,
                    lambda: self._record_created(repo, user, repository_id, already_processed, report),
                )
                continue
            if any(entry.id in already_processed for entry in existing):
                continue
            for entry in existing:
                # A checker cascaded from an earlier sibling
                if entry.id in already_processed:
                    continue
                self._isolated(
                    report,
                    entry.entry_path,
                    lambda: self._record_refreshed(repo, user, entry, already_processed, report),
                )

    def _record_created(self, repo, user, repository_id, already_processed, report) -> None:
        entry = self._create_entry(repo, user, repository_id)
        if entry is None:
            report.skipped.append(repository_id)
            return
        already_processed.add(entry.id)
        report.created.append(entry.id)

    def _record_refreshed(self, repo, user, entry, already_processed, report) -> None:
        entry_path = entry.entry_path
        refreshed = self._refresh_entry(repo, user, entry)
        already_processed.add(entry.id)
        if refreshed is None:
            report.skipped.append(entry_path)
            return
        report.refreshed.append(entry.id)

        checker = self._checker_to_cascade(entry, already_processed)
        if checker is not None:
            self._isolated(
                report,
                checker.entry_path,
                lambda: self._record_refreshed(repo, user, checker, already_processed, report),
            )

    def _isolated(self, report: RefreshReport, label: str, fn) -> None:
        """Run one entry's refresh; a failure is logged and recorded, not raised."""
        try:
            fn()
        except Exception as e:
            logger.exception("entry_refresh_failed", entry_path=label, error=str(e))
            report.failed.append(label)
