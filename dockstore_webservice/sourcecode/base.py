"""
Source-control capability.

Concrete GitHub/Bitbucket/GitLab clients live outside this package; they
register themselves with a ``SourceCodeRepoFactory`` keyed by the token
source (provider host name) they serve.
"""

import logging
import re
from abc import ABC, abstractmethod
from typing import Callable, Dict, NamedTuple, Optional, Type

from ..core.enums import SourceControl
from ..db.models import EntryModel, TokenModel, WorkflowModel

logger = logging.getLogger(__name__)

GIT_URL_PATTERN = re.compile(r"git@(\S+):(\S+)/(\S+)\.git")


class GitCoordinates(NamedTuple):
    source_control: str
    organization: str
    repository: str


def parse_git_url(git_url: str) -> Optional[GitCoordinates]:
    """Split ``git@host:org/repo.git`` into its coordinates."""
    match = GIT_URL_PATTERN.search(git_url or "")
    if not match:
        return None
    return GitCoordinates(match.group(1), match.group(2), match.group(3))


def build_git_url(source_control: str, repository_path: str) -> str:
    """Inverse of ``parse_git_url`` for an ``org/repo`` path."""
    return f"git@{source_control}:{repository_path}.git"


class SourceCodeRepo(ABC):
    """Read access to one source-control provider on behalf of one user."""

    #: Entry class produced by ``get_entry``
    entry_model: Type[EntryModel] = WorkflowModel

    def __init__(self, source_control: SourceControl, token: TokenModel):
        self.source_control = source_control
        self.token = token

    @abstractmethod
    def list_repositories(self) -> Dict[str, str]:
        """Return a mapping of git url -> repository id (``org/repo``)."""

    @abstractmethod
    def get_entry(
        self, repository_id: str, existing: Optional[EntryModel] = None
    ) -> Optional[EntryModel]:
        """Materialize a detached snapshot of the repository.

        Returns None when the repository is inaccessible or deleted.
        Otherwise the snapshot is complete and self-consistent: every
        version carries every file. ``existing`` may be used as a hint
        (e.g. its subname, descriptor type and default paths) but the
        returned object must never be ``existing`` itself.

        For every version of ``existing`` whose dirty bit is set, the
        matching snapshot version must resolve its descriptor at the
        persisted ``workflow_path`` and carry the file found there, so a
        frozen path keeps its primary descriptor across refreshes.
        """

    def check_validity(self) -> bool:
        """Whether the credential is usable; providers may override."""
        return self.token is not None and self.token.is_usable


class SourceCodeRepoFactory:
    """Build a ``SourceCodeRepo`` for a user token.

    Usage:
        factory = SourceCodeRepoFactory()
        factory.register(SourceControl.GITHUB, GitHubSourceCodeRepo)
        repo = factory(token)
    """

    def __init__(self) -> None:
        self._builders: Dict[str, Callable[[SourceControl, TokenModel], SourceCodeRepo]] = {}

    def register(
        self,
        source_control: SourceControl,
        builder: Callable[[SourceControl, TokenModel], SourceCodeRepo],
    ) -> None:
        self._builders[SourceControl(source_control).value] = builder

    def __call__(self, token: TokenModel) -> Optional[SourceCodeRepo]:
        builder = self._builders.get(token.token_source)
        if builder is None:
            logger.debug("No source code repo registered for %s", token.token_source)
            return None
        return builder(SourceControl(token.token_source), token)

    def for_git_url(self, git_url: str, tokens) -> Optional[SourceCodeRepo]:
        """Pick the repo whose provider hosts ``git_url``, using the matching token."""
        coordinates = parse_git_url(git_url)
        if coordinates is None:
            return None
        for token in tokens:
            if token.token_source == coordinates.source_control and token.is_usable:
                return self(token)
        return None
