"""Ownership checks for operations that change an entry on a user's behalf."""

from ..db.models import EntryModel, UserModel
from ..errors import EntryPermissionError


def check_user(user: UserModel, entry: EntryModel) -> None:
    """Raise ``EntryPermissionError`` unless ``user`` owns ``entry`` or is an admin."""
    if user.is_admin:
        return
    if any(owner.id == user.id for owner in entry.users):
        return
    raise EntryPermissionError(
        f"User {user.username} does not have permission to modify {entry.entry_path}"
    )
