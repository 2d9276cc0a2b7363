"""
Tests for refresh orchestration.

Source control is a scripted fake; persistence is a real SQLite session
so that commits, rollbacks and unique constraints behave as deployed.
"""

import pytest

from dockstore_webservice.core.enums import EntryMode
from dockstore_webservice.core.refresh import (
    RefreshOrchestrator,
    conventional_checker_path,
)
from dockstore_webservice.db.models import TokenModel, UserModel, WorkflowModel
from dockstore_webservice.errors import (
    EntryNotFoundError,
    EntryPermissionError,
    NoCredentialError,
    SourceControlError,
    UserNotFoundError,
)

from factories import (
    FakeSourceCodeRepo,
    RecordingIndexNotifier,
    cwl,
    fake_factory,
    workflow,
    workflow_version,
)


def hello(content="a", names=("master",), organization="dockstore", repository="hello"):
    return lambda: workflow(
        organization=organization,
        repository=repository,
        description="hello workflow",
        versions=[workflow_version(name, [cwl("/a.cwl", content)]) for name in names],
    )


@pytest.fixture
def make_orchestrator(store, notifier, settings):
    def _make(snapshots, index_notifier=None, settings_override=None, trees=None):
        repo = FakeSourceCodeRepo(snapshots, trees=trees)
        orchestrator = RefreshOrchestrator(
            store,
            fake_factory(repo),
            index_notifier or notifier,
            settings_override or settings,
        )
        return orchestrator, repo

    return _make


class TestRefreshAll:
    def test_creates_entries_for_new_repositories(self, make_orchestrator, user, store, notifier):
        orchestrator, _ = make_orchestrator({"dockstore/hello": hello()})

        report = orchestrator.refresh_all(user.id)

        assert len(report.created) == 1
        entry = store.get(report.created[0])
        assert isinstance(entry, WorkflowModel)
        assert entry.entry_path == "github.com/dockstore/hello"
        assert entry.mode == EntryMode.FULL.value
        assert entry.description == "hello workflow"
        assert [v.name for v in entry.versions] == ["master"]
        assert [u.username for u in entry.users] == ["alice"]
        assert notifier.updated == [entry.id]

    def test_updates_existing_entries(self, make_orchestrator, user, persist, store):
        entry = persist(
            workflow(versions=[workflow_version("master", [cwl("/a.cwl", "old")])]),
            owner=user,
        )
        orchestrator, _ = make_orchestrator({"dockstore/hello": hello("new", ("master", "dev"))})

        report = orchestrator.refresh_all(user.id)

        assert report.refreshed == [entry.id]
        assert report.created == []
        refreshed = store.get(entry.id)
        assert sorted(v.name for v in refreshed.versions) == ["dev", "master"]
        assert refreshed.version_named("master").source_files[0].content == "new"

    def test_adds_caller_to_owners(self, make_orchestrator, user, persist, store):
        entry = persist(workflow())
        orchestrator, _ = make_orchestrator({"dockstore/hello": hello()})

        orchestrator.refresh_all(user.id)

        assert [u.id for u in store.get(entry.id).users] == [user.id]

    def test_organization_filter(self, make_orchestrator, user):
        orchestrator, repo = make_orchestrator(
            {"dockstore/hello": hello(), "other/thing": hello(organization="other", repository="thing")}
        )

        report = orchestrator.refresh_all(user.id, organization="other")

        assert repo.fetched == ["other/thing"]
        assert len(report.created) == 1

    def test_already_processed_entries_are_skipped(self, make_orchestrator, user, persist):
        entry = persist(workflow())
        orchestrator, repo = make_orchestrator({"dockstore/hello": hello()})
        processed = {entry.id}

        report = orchestrator.refresh_all(user.id, already_processed=processed)

        assert repo.fetched == []
        assert report.refreshed == []
        assert processed == {entry.id}

    def test_processed_set_is_filled(self, make_orchestrator, user, persist):
        entry = persist(workflow())
        orchestrator, _ = make_orchestrator(
            {"dockstore/hello": hello(), "dockstore/new": hello(repository="new")}
        )
        processed = set()

        report = orchestrator.refresh_all(user.id, already_processed=processed)

        assert processed == {entry.id, report.created[0]}

    def test_failure_is_isolated(self, make_orchestrator, user, persist, store):
        broken = persist(
            workflow(repository="broken", versions=[workflow_version("master", [cwl("/a.cwl", "keep")])])
        )

        def explode():
            raise RuntimeError("rate limited")

        orchestrator, _ = make_orchestrator(
            {"dockstore/broken": explode, "dockstore/hello": hello()}
        )

        report = orchestrator.refresh_all(user.id)

        assert report.failed == ["github.com/dockstore/broken"]
        assert len(report.created) == 1
        untouched = store.get(broken.id)
        assert untouched.version_named("master").source_files[0].content == "keep"

    def test_unreachable_repository_is_recorded_as_failed(self, make_orchestrator, user, persist, store):
        entry = persist(workflow(versions=[workflow_version("master")]))
        orchestrator, _ = make_orchestrator({"dockstore/hello": lambda: None})

        report = orchestrator.refresh_all(user.id)

        assert report.failed == ["github.com/dockstore/hello"]
        assert [v.name for v in store.get(entry.id).versions] == ["master"]

    def test_unreachable_new_repository_is_skipped(self, make_orchestrator, user):
        orchestrator, _ = make_orchestrator({"dockstore/hello": lambda: None})

        report = orchestrator.refresh_all(user.id)

        assert report.created == []
        assert report.skipped == ["dockstore/hello"]

    def test_empty_snapshot_does_not_wipe_versions(self, make_orchestrator, user, persist, store):
        entry = persist(workflow(versions=[workflow_version("master")]))
        orchestrator, _ = make_orchestrator({"dockstore/hello": lambda: workflow()})

        report = orchestrator.refresh_all(user.id)

        assert report.skipped == ["github.com/dockstore/hello"]
        assert [v.name for v in store.get(entry.id).versions] == ["master"]

    def test_empty_snapshot_trusted_when_configured(self, make_orchestrator, user, persist, store, settings):
        entry = persist(workflow(versions=[workflow_version("master")]))
        trusting = settings.model_copy(update={"refresh_skip_empty_snapshots": False})
        orchestrator, _ = make_orchestrator(
            {"dockstore/hello": lambda: workflow()}, settings_override=trusting
        )

        orchestrator.refresh_all(user.id)

        assert store.get(entry.id).versions == []

    def test_notifier_failure_does_not_abort(self, make_orchestrator, user):
        orchestrator, _ = make_orchestrator(
            {"dockstore/hello": hello()}, index_notifier=RecordingIndexNotifier(fail=True)
        )

        report = orchestrator.refresh_all(user.id)

        assert len(report.created) == 1
        assert report.failed == []

    def test_checker_refreshed_once_with_parent(self, make_orchestrator, user, persist, store):
        parent, checker = persist(
            workflow(),
            workflow(subname="_cwl_checker", is_checker=True, mode=EntryMode.STUB),
        )
        store.execute(lambda: setattr(parent, "checker_id", checker.id))
        orchestrator, repo = make_orchestrator({"dockstore/hello": hello()})

        report = orchestrator.refresh_all(user.id)

        assert report.refreshed == [parent.id, checker.id]
        assert repo.fetched == ["dockstore/hello", "dockstore/hello"]
        assert store.get(checker.id).mode == EntryMode.FULL.value


class TestCredentials:
    def test_user_without_tokens(self, make_orchestrator, db_session):
        bob = UserModel(username="bob")
        db_session.add(bob)
        db_session.commit()
        orchestrator, _ = make_orchestrator({})

        with pytest.raises(NoCredentialError):
            orchestrator.refresh_all(bob.id)

    def test_token_for_unsupported_provider(self, make_orchestrator, db_session):
        carol = UserModel(username="carol")
        carol.tokens.append(TokenModel(token_source="gitlab.com", content="gl-token"))
        db_session.add(carol)
        db_session.commit()
        orchestrator, _ = make_orchestrator({})

        with pytest.raises(NoCredentialError):
            orchestrator.refresh_all(carol.id)

    def test_invalid_token_is_ignored(self, make_orchestrator, user):
        orchestrator, repo = make_orchestrator({"dockstore/hello": hello()})
        repo.valid = False

        with pytest.raises(NoCredentialError):
            orchestrator.refresh_all(user.id)

    def test_unknown_user(self, make_orchestrator):
        orchestrator, _ = make_orchestrator({})

        with pytest.raises(UserNotFoundError):
            orchestrator.refresh_all(999)


class TestRefreshOne:
    def test_promotes_stub_to_full(self, make_orchestrator, user, persist, store, notifier):
        entry = persist(workflow(mode=EntryMode.STUB), owner=user)
        orchestrator, _ = make_orchestrator({"dockstore/hello": hello()})

        refreshed = orchestrator.refresh_one(user.id, entry.id)

        assert refreshed.id == entry.id
        assert store.get(entry.id).mode == EntryMode.FULL.value
        assert notifier.updated == [entry.id]

    def test_unreachable_repository_raises(self, make_orchestrator, user, persist, store):
        entry = persist(workflow(mode=EntryMode.STUB), owner=user)
        orchestrator, _ = make_orchestrator({"dockstore/hello": lambda: None})

        with pytest.raises(SourceControlError):
            orchestrator.refresh_one(user.id, entry.id)

        assert store.get(entry.id).mode == EntryMode.STUB.value

    def test_failure_propagates(self, make_orchestrator, user, persist):
        entry = persist(workflow(), owner=user)

        def explode():
            raise RuntimeError("rate limited")

        orchestrator, _ = make_orchestrator({"dockstore/hello": explode})

        with pytest.raises(RuntimeError):
            orchestrator.refresh_one(user.id, entry.id)

    def test_unknown_entry(self, make_orchestrator, user):
        orchestrator, _ = make_orchestrator({})

        with pytest.raises(EntryNotFoundError):
            orchestrator.refresh_one(user.id, 12345)

    def test_cascades_to_checker(self, make_orchestrator, user, persist, store):
        parent = persist(workflow(), owner=user)
        checker = persist(workflow(subname="_cwl_checker", is_checker=True, mode=EntryMode.STUB))
        store.execute(lambda: setattr(parent, "checker_id", checker.id))
        orchestrator, repo = make_orchestrator({"dockstore/hello": hello()})
        processed = set()

        orchestrator.refresh_one(user.id, parent.id, processed)

        assert processed == {parent.id, checker.id}
        assert len(repo.fetched) == 2
        assert store.get(checker.id).mode == EntryMode.FULL.value

    def test_no_cascade_for_nextflow(self, make_orchestrator, user, persist, store):
        parent = persist(workflow(descriptor_type="nfl"), owner=user)
        checker = persist(workflow(subname="_cwl_checker", is_checker=True, mode=EntryMode.STUB))
        store.execute(lambda: setattr(parent, "checker_id", checker.id))
        orchestrator, repo = make_orchestrator(
            {"dockstore/hello": lambda: workflow(descriptor_type="nfl", versions=[workflow_version("master")])}
        )

        orchestrator.refresh_one(user.id, parent.id)

        assert repo.fetched == ["dockstore/hello"]

    def test_links_checker_registered_under_conventional_path(self, make_orchestrator, user, persist, store):
        parent = persist(workflow(), owner=user)
        checker = persist(workflow(subname="_cwl_checker", is_checker=True, mode=EntryMode.STUB))
        assert conventional_checker_path(parent, "cwl") == checker.entry_path
        orchestrator, _ = make_orchestrator({"dockstore/hello": hello()})

        orchestrator.refresh_one(user.id, parent.id)

        assert store.get(parent.id).checker_id == checker.id

    def test_non_owner_cannot_refresh(self, make_orchestrator, user, mallory, persist, store):
        entry = persist(workflow(mode=EntryMode.STUB), owner=user)
        orchestrator, repo = make_orchestrator({"dockstore/hello": hello()})

        with pytest.raises(EntryPermissionError):
            orchestrator.refresh_one(mallory.id, entry.id)

        assert repo.fetched == []
        unchanged = store.get(entry.id)
        assert [u.username for u in unchanged.users] == ["alice"]
        assert unchanged.mode == EntryMode.STUB.value

    def test_admin_may_refresh_without_owning(
        self, make_orchestrator, user, mallory, persist, store, db_session
    ):
        mallory.is_admin = True
        db_session.commit()
        entry = persist(workflow(mode=EntryMode.STUB), owner=user)
        orchestrator, _ = make_orchestrator({"dockstore/hello": hello()})

        orchestrator.refresh_one(mallory.id, entry.id)

        assert store.get(entry.id).mode == EntryMode.FULL.value

    def test_dirty_version_keeps_primary_descriptor(self, make_orchestrator, user, persist, store):
        master = workflow_version("master", [cwl("/x.cwl", "old")], workflow_path="/x.cwl")
        master.dirty_bit = True
        entry = persist(workflow(versions=[master]), owner=user)
        orchestrator, _ = make_orchestrator(
            {
                "dockstore/hello": lambda: workflow(
                    versions=[workflow_version("master", [cwl("/y.cwl", "y")], workflow_path="/y.cwl")]
                )
            },
            trees={"dockstore/hello": {"/x.cwl": "new", "/y.cwl": "y"}},
        )

        orchestrator.refresh_one(user.id, entry.id)

        refreshed = store.get(entry.id).version_named("master")
        assert refreshed.workflow_path == "/x.cwl"
        assert refreshed.dirty_bit is True
        assert refreshed.primary_descriptor() is not None
        assert refreshed.primary_descriptor().content == "new"
