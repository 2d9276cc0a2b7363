"""
Entry store.

The persistence collaborator used by refresh and entry management. It
wraps a SQLAlchemy session; atomicity of one refresh-and-persist is
provided by ``execute``.
"""

from typing import Callable, List, Optional, Type, TypeVar

from sqlalchemy import desc
from sqlalchemy.orm import Session

from .models import (
    EntryModel,
    EntryVersionModel,
    TokenModel,
    UserModel,
    WorkflowModel,
)

T = TypeVar("T")


class EntryStore:
    """Service for loading and persisting registry entries.

    Usage:
        store = EntryStore(db_session)
        entry = store.execute(lambda: reconcile(store.get(1), fetched))
    """

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def execute(self, fn: Callable[[], T]) -> T:
        """Run ``fn`` in a transaction: commit on success, roll back and re-raise on failure."""
        try:
            result = fn()
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return result

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def add(self, entry: EntryModel) -> EntryModel:
        """Stage a new entry and assign its id."""
        self.db.add(entry)
        self.db.flush()
        return entry

    def get(self, entry_id: int) -> Optional[EntryModel]:
        """Get an entry (tool or workflow) by ID."""
        return self.db.get(EntryModel, entry_id)

    def get_version(self, entry_id: int, version_id: int) -> Optional[EntryVersionModel]:
        """Get a version by ID, only if it belongs to the given entry."""
        return (
            self.db.query(EntryVersionModel)
            .filter(
                EntryVersionModel.id == version_id,
                EntryVersionModel.entry_id == entry_id,
            )
            .first()
        )

    def find_by_git_url(
        self, git_url: str, model: Type[EntryModel] = WorkflowModel
    ) -> List[EntryModel]:
        """All entries of a kind sharing a git url, ordered by id."""
        return (
            self.db.query(model)
            .filter(model.git_url == git_url)
            .order_by(model.id)
            .all()
        )

    def find_by_path(
        self, entry_path: str, model: Type[EntryModel] = EntryModel
    ) -> Optional[EntryModel]:
        """Find an entry by ``source_control/organization/repository[/subname]``.

        The subname may itself contain slashes; everything after the third
        segment is treated as the subname.
        """
        parts = entry_path.strip("/").split("/", 3)
        if len(parts) < 3:
            return None
        source_control, organization, repository = parts[:3]
        subname = parts[3] if len(parts) == 4 else ""
        return (
            self.db.query(model)
            .filter(
                model.source_control == source_control,
                model.organization == organization,
                model.repository == repository,
                model.subname == subname,
            )
            .first()
        )

    def list_entries(
        self,
        model: Type[EntryModel] = EntryModel,
        include_checkers: bool = False,
        limit: int = 100,
        offset: int = 0,
    ) -> List[EntryModel]:
        """List entries; checker entries are excluded unless asked for."""
        query = self.db.query(model)
        if not include_checkers:
            query = query.filter(model.is_checker.is_(False))
        return query.order_by(model.id).offset(offset).limit(limit).all()

    def list_published(
        self,
        model: Type[EntryModel] = EntryModel,
        organization: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[EntryModel]:
        query = self.db.query(model).filter(
            model.is_published.is_(True), model.is_checker.is_(False)
        )
        if organization:
            query = query.filter(model.organization == organization)
        return (
            query.order_by(desc(model.last_modified), model.id)
            .offset(offset)
            .limit(limit)
            .all()
        )

    def get_checker(self, entry: EntryModel) -> Optional[EntryModel]:
        """Resolve the non-owning checker link of an entry."""
        if entry.checker_id is None:
            return None
        return self.get(entry.checker_id)

    def find_parent_of_checker(self, checker: EntryModel) -> Optional[EntryModel]:
        return (
            self.db.query(EntryModel)
            .filter(EntryModel.checker_id == checker.id)
            .first()
        )

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def get_user(self, user_id: int) -> Optional[UserModel]:
        return self.db.get(UserModel, user_id)

    def tokens_for_user(self, user_id: int) -> List[TokenModel]:
        return (
            self.db.query(TokenModel)
            .filter(TokenModel.user_id == user_id)
            .order_by(TokenModel.id)
            .all()
        )
