"""
Reconciliation of a fetched source-control snapshot into a persisted entry.

``reconcile`` is a pure in-memory merge: it performs no I/O and never
talks to the database, so it can be exercised on detached model objects.
Persisting the result is the caller's job (see ``EntryStore.execute``).

Rules:
- versions missing upstream are removed together with their files
- versions present on both sides are updated in place; source-derived
  fields are copied, path fields only when the dirty bit is clear
- versions new upstream are inserted as copies of the fetched version
- files are matched by (type, path); matches get new content in place,
  so their identity (database id) survives the refresh

Within an entry the work is ordered delete -> update -> insert, for
versions and again for the files of each version, so an insert never
lands on a key a delete is about to free.
"""

from dataclasses import dataclass, field
from typing import Dict, List

from ..db.models import EntryModel, EntryVersionModel
from .enums import EntryMode


@dataclass
class VersionDiff:
    """Version names partitioned by what a reconcile will do with them."""

    removed: List[str] = field(default_factory=list)
    updated: List[str] = field(default_factory=list)
    added: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, List[str]]:
        return {"removed": self.removed, "updated": self.updated, "added": self.added}


def _by_name(versions) -> Dict[str, EntryVersionModel]:
    return {version.name: version for version in versions}


def diff_versions(persisted: EntryModel, fetched: EntryModel) -> VersionDiff:
    """Compute which versions a reconcile would remove, update and add."""
    existing = _by_name(persisted.versions)
    incoming = _by_name(fetched.versions)
    return VersionDiff(
        removed=[name for name in existing if name not in incoming],
        updated=[name for name in incoming if name in existing],
        added=[name for name in incoming if name not in existing],
    )


def check_same_identity(persisted: EntryModel, fetched: EntryModel) -> None:
    """Fail fast when the two entries cannot describe the same repository."""
    if persisted is fetched:
        raise ValueError("fetched snapshot must be a separate object from the persisted entry")
    if type(persisted) is not type(fetched):
        raise ValueError(
            f"cannot reconcile {type(persisted).__name__} with {type(fetched).__name__}"
        )
    if persisted.entry_path != fetched.entry_path:
        raise ValueError(
            f"cannot reconcile {persisted.entry_path} with {fetched.entry_path}"
        )


def reconcile_files(version: EntryVersionModel, fetched: EntryVersionModel) -> None:
    """Make the files of ``version`` match those of ``fetched``."""
    existing = version.files_by_identity()
    incoming = fetched.files_by_identity()

    for key, source_file in existing.items():
        if key not in incoming:
            version.source_files.remove(source_file)

    for key, fetched_file in incoming.items():
        source_file = existing.get(key)
        if source_file is not None and source_file.content != fetched_file.content:
            source_file.content = fetched_file.content

    for key, fetched_file in incoming.items():
        if key not in existing:
            version.source_files.append(fetched_file.clone())


def _update_entry(persisted: EntryModel, fetched: EntryModel) -> None:
    persisted.update(fetched)
    # Descriptor type is frozen once the entry is FULL
    if persisted.is_stub and fetched.descriptor_type is not None:
        persisted.descriptor_type = fetched.descriptor_type
    # Finding version data is what makes an entry FULL
    if fetched.mode == EntryMode.FULL.value or fetched.versions:
        persisted.mode = EntryMode.FULL.value


def reconcile(persisted: EntryModel, fetched: EntryModel) -> EntryModel:
    """Merge ``fetched`` into ``persisted`` and return ``persisted``.

    ``fetched`` is only read. An empty fetched version set removes every
    version; deciding whether an empty snapshot should be trusted is up
    to the caller.
    """
    check_same_identity(persisted, fetched)
    _update_entry(persisted, fetched)

    diff = diff_versions(persisted, fetched)
    existing = _by_name(persisted.versions)
    incoming = _by_name(fetched.versions)

    for name in diff.removed:
        persisted.versions.remove(existing.pop(name))

    for name in diff.updated:
        version = existing[name]
        version.update(incoming[name])
        reconcile_files(version, incoming[name])

    for name in diff.added:
        version = persisted.new_version(name=name)
        version.update(incoming[name])
        reconcile_files(version, incoming[name])
        persisted.versions.append(version)

    return persisted
