"""
Checker workflow registration.

A checker workflow validates the output of its parent entry. It is a
separate STUB workflow, linked from the parent by ``checker_id`` and
registered under ``<parent path>/<parent name>_<type>_checker``.
"""

from typing import Optional

import structlog

from ..db.models import EntryModel, ToolModel, WorkflowModel, utc_now
from ..db.store import EntryStore
from ..errors import (
    CheckerWorkflowError,
    DuplicateEntryError,
    EntryNotFoundError,
    InvalidDescriptorTypeError,
    UserNotFoundError,
)
from ..search import IndexNotifier, NullIndexNotifier, notify_update
from ..sourcecode import parse_git_url
from .descriptors import parse_descriptor_type, validate_descriptor_path
from .enums import DescriptorType, EntryMode
from .refresh import CHECKER_DESCRIPTOR_TYPES, CHECKER_SUFFIX

logger = structlog.get_logger()


class CheckerWorkflowService:
    """Registers checker workflows for tools and workflows."""

    def __init__(self, store: EntryStore, index_notifier: Optional[IndexNotifier] = None):
        self.store = store
        self.index_notifier = index_notifier or NullIndexNotifier()

    def register(
        self,
        user_id: int,
        entry_id: int,
        checker_workflow_path: str,
        descriptor_type: str,
        test_parameter_path: Optional[str] = None,
    ) -> EntryModel:
        """Create a STUB checker workflow and link it to the entry.

        All preconditions are checked before anything is written, so a
        failed registration leaves the parent untouched.

        Returns:
            The parent entry, now linked to its checker.

        Raises:
            InvalidDescriptorTypeError: descriptor type is not cwl or wdl
            CheckerWorkflowError: parent is a STUB, a checker, or already has one
            DuplicateEntryError: an entry already exists at the checker path
        """
        language = parse_descriptor_type(descriptor_type)
        if language.value not in CHECKER_DESCRIPTOR_TYPES:
            raise InvalidDescriptorTypeError(
                f"{descriptor_type} is not a valid descriptor type. Only cwl and wdl are valid."
            )

        user = self.store.get_user(user_id)
        if user is None:
            raise UserNotFoundError(f"User {user_id} not found")
        entry = self.store.get(entry_id)
        if entry is None:
            raise EntryNotFoundError(f"Entry {entry_id} not found")

        if entry.is_checker:
            raise CheckerWorkflowError("A checker workflow cannot have a checker workflow of its own.")
        if entry.is_stub:
            raise CheckerWorkflowError("Checker workflows cannot be added to workflow stubs.")
        if entry.has_checker_workflow:
            raise CheckerWorkflowError(
                f"{entry.entry_path} already has a checker workflow."
            )
        validate_descriptor_path(checker_workflow_path, language)

        checker = self._build_checker(entry, language, checker_workflow_path, test_parameter_path)
        if self.store.find_by_path(checker.entry_path) is not None:
            raise DuplicateEntryError(
                f"An entry already exists at {checker.entry_path}."
            )

        def work() -> EntryModel:
            self.store.add(checker)
            checker.users.append(user)
            entry.checker_id = checker.id
            return entry

        self.store.execute(work)
        logger.info(
            "checker_workflow_registered",
            entry_id=entry.id,
            checker_id=checker.id,
            checker_path=checker.entry_path,
        )
        notify_update(self.index_notifier, checker)
        return entry

    def _build_checker(
        self,
        entry: EntryModel,
        language: DescriptorType,
        checker_workflow_path: str,
        test_parameter_path: Optional[str],
    ) -> WorkflowModel:
        if isinstance(entry, ToolModel):
            coordinates = parse_git_url(entry.git_url)
            if coordinates is None:
                raise CheckerWorkflowError(f"Problem parsing git url {entry.git_url!r}.")
            source_control, organization, repository = coordinates
            if language == DescriptorType.CWL:
                default_test = entry.default_test_cwl_parameter_file
            else:
                default_test = entry.default_test_wdl_parameter_file
            suffix_type = language.value
        else:
            source_control = entry.source_control
            organization = entry.organization
            repository = entry.repository
            default_test = entry.default_test_parameter_file_path
            # Workflow checkers are named after the parent's own language
            suffix_type = entry.descriptor_type
            if suffix_type not in CHECKER_DESCRIPTOR_TYPES:
                raise InvalidDescriptorTypeError(
                    f"{entry.entry_path} has descriptor type {suffix_type}; "
                    "checker workflows support only cwl and wdl entries."
                )

        return WorkflowModel(
            mode=EntryMode.STUB.value,
            source_control=source_control,
            organization=organization,
            repository=repository,
            subname=f"{entry.subname}{CHECKER_SUFFIX.format(suffix_type)}",
            git_url=entry.git_url,
            descriptor_type=language.value,
            default_workflow_path=checker_workflow_path,
            default_test_parameter_file_path=test_parameter_path or default_test,
            is_checker=True,
            is_published=entry.is_published,
            last_modified=utc_now(),
        )
