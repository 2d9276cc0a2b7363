"""Tests for entry lifecycle, edits, files and rendering."""

import json

import pytest

from dockstore_webservice.core.entries import EntryService
from dockstore_webservice.core.enums import (
    DescriptorType,
    EntryMode,
    FileType,
    RenderMode,
)
from dockstore_webservice.errors import (
    DuplicateEntryError,
    EntryPermissionError,
    InvalidDescriptorPathError,
    InvalidDescriptorTypeError,
    InvalidRepositoryError,
    InvalidVersionError,
    NoCredentialError,
    PublishedEntryError,
    PublishRequirementsError,
    SourceControlError,
    VerificationError,
    VersionNotFoundError,
)
from dockstore_webservice.languages import LanguageHandler, LanguageHandlerRegistry

from factories import (
    FakeSourceCodeRepo,
    cwl,
    fake_factory,
    source_file,
    workflow,
    workflow_version,
)


class EchoHandler(LanguageHandler):
    def render(self, primary_path, primary_content, secondary_files, mode):
        return json.dumps(
            {"mode": mode.value, "primary": primary_path, "secondary": sorted(secondary_files)}
        )


@pytest.fixture
def repo():
    return FakeSourceCodeRepo(
        {
            "dockstore/hello": lambda: workflow(
                subname="",
                versions=[workflow_version("master", [cwl("/a.cwl")])],
            )
        }
    )


@pytest.fixture
def service(store, notifier, repo):
    handlers = LanguageHandlerRegistry({DescriptorType.CWL: EchoHandler()})
    return EntryService(store, notifier, fake_factory(repo), handlers)


@pytest.fixture
def full_entry(persist, user):
    master = workflow_version(
        "master",
        [
            cwl("/a.cwl", "main"),
            cwl("/tools/b.cwl", "tool"),
            source_file(FileType.CWL_TEST_JSON, "/test.json", "{}"),
        ],
    )
    broken = workflow_version("broken", [cwl("/a.cwl")], valid=False)
    return persist(workflow(versions=[master, broken]), owner=user)


class TestRestub:
    def test_clears_versions_and_checker(self, service, full_entry, persist, store, user, notifier):
        checker = persist(workflow(subname="_cwl_checker", is_checker=True))
        store.execute(lambda: setattr(full_entry, "checker_id", checker.id))

        entry = service.restub(user.id, full_entry.id)

        assert entry.mode == EntryMode.STUB.value
        assert entry.versions == []
        assert entry.checker_id is None
        assert notifier.deleted == [full_entry.id]

    def test_published_entry_rejected(self, service, persist, store, user):
        entry = persist(
            workflow(is_published=True, versions=[workflow_version("master")]), owner=user
        )

        with pytest.raises(PublishedEntryError):
            service.restub(user.id, entry.id)

        assert len(store.get(entry.id).versions) == 1

    def test_requires_ownership(self, service, full_entry, store, mallory):
        with pytest.raises(EntryPermissionError):
            service.restub(mallory.id, full_entry.id)

        assert len(store.get(full_entry.id).versions) == 2

    def test_admin_may_restub(self, service, full_entry, mallory, db_session):
        mallory.is_admin = True
        db_session.commit()

        entry = service.restub(mallory.id, full_entry.id)

        assert entry.mode == EntryMode.STUB.value


class TestPublish:
    def test_publish_and_checker_follows(self, service, full_entry, persist, store, user, notifier):
        checker = persist(workflow(subname="_cwl_checker", is_checker=True))
        store.execute(lambda: setattr(full_entry, "checker_id", checker.id))

        service.publish(user.id, full_entry.id, True)

        assert store.get(full_entry.id).is_published is True
        assert store.get(checker.id).is_published is True
        assert notifier.updated == [full_entry.id]

        service.publish(user.id, full_entry.id, False)

        assert store.get(checker.id).is_published is False
        assert notifier.deleted == [full_entry.id]

    def test_requires_valid_version(self, service, persist, user):
        entry = persist(workflow(versions=[workflow_version("master", valid=False)]), owner=user)

        with pytest.raises(PublishRequirementsError):
            service.publish(user.id, entry.id, True)

    def test_requires_git_url(self, service, persist, user):
        entry = persist(workflow(versions=[workflow_version("master")]), owner=user)
        entry.git_url = None

        with pytest.raises(PublishRequirementsError):
            service.publish(user.id, entry.id, True)

    def test_checker_cannot_be_published_directly(self, service, full_entry, persist, store, user):
        checker = persist(
            workflow(subname="_cwl_checker", is_checker=True, versions=[workflow_version("master")]),
            owner=user,
        )
        store.execute(lambda: setattr(full_entry, "checker_id", checker.id))

        with pytest.raises(PublishRequirementsError, match="github.com/dockstore/hello instead"):
            service.publish(user.id, checker.id, True)

    def test_requires_ownership(self, service, full_entry, store, mallory, notifier):
        with pytest.raises(EntryPermissionError):
            service.publish(mallory.id, full_entry.id, True)

        assert store.get(full_entry.id).is_published is False
        assert notifier.updated == []


class TestManualRegister:
    def test_registers_and_fills_from_source(self, service, user, store, repo, notifier):
        entry = service.manual_register(
            user.id, "GitHub", "dockstore/hello", "/a.cwl", None, "cwl"
        )

        stored = store.get(entry.id)
        assert stored.entry_path == "github.com/dockstore/hello"
        assert stored.git_url == "git@github.com:dockstore/hello.git"
        assert stored.mode == EntryMode.FULL.value
        assert stored.default_workflow_path == "/a.cwl"
        assert stored.default_test_parameter_file_path == "/test.json"
        assert [v.name for v in stored.versions] == ["master"]
        assert [u.id for u in stored.users] == [user.id]
        assert repo.fetched == ["dockstore/hello"]
        assert notifier.updated == [entry.id]

    def test_duplicate_rejected(self, service, user, persist):
        persist(workflow())

        with pytest.raises(DuplicateEntryError):
            service.manual_register(user.id, "github", "dockstore/hello", "/a.cwl", None, "cwl")

    @pytest.mark.parametrize("provider", ["sourceforge", "quay.io"])
    def test_unsupported_provider(self, service, user, provider):
        with pytest.raises(InvalidRepositoryError):
            service.manual_register(user.id, provider, "dockstore/hello", "/a.cwl", None, "cwl")

    def test_malformed_repository_path(self, service, user):
        with pytest.raises(InvalidRepositoryError):
            service.manual_register(user.id, "GitHub", "hello", "/a.cwl", None, "cwl")

    @pytest.mark.parametrize(
        "path, descriptor_type",
        [("/main.nf", "nextflow"), ("/Dockstore.wdl", "cwl"), ("/Dockstore.cwl", "wdl")],
    )
    def test_descriptor_path_convention(self, service, user, path, descriptor_type):
        with pytest.raises(InvalidDescriptorPathError):
            service.manual_register(user.id, "GitHub", "dockstore/hello", path, None, descriptor_type)

    def test_unknown_descriptor_type(self, service, user):
        with pytest.raises(InvalidDescriptorTypeError):
            service.manual_register(user.id, "GitHub", "dockstore/hello", "/a.py", None, "python")

    def test_no_token_for_provider(self, service, user):
        with pytest.raises(NoCredentialError):
            service.manual_register(user.id, "Bitbucket", "dockstore/hello", "/a.cwl", None, "cwl")

    def test_unreachable_repository_leaves_nothing(self, service, user, store):
        with pytest.raises(SourceControlError):
            service.manual_register(user.id, "GitHub", "dockstore/missing", "/a.cwl", None, "cwl")

        assert store.list_entries(include_checkers=True) == []


class TestUpdateEntry:
    def test_full_entry_descriptor_type_frozen(self, service, full_entry):
        with pytest.raises(InvalidDescriptorTypeError):
            service.update_entry(full_entry.id, descriptor_type="wdl")

    def test_stub_descriptor_type_editable(self, service, persist):
        stub = persist(workflow(mode=EntryMode.STUB))

        assert service.update_entry(stub.id, descriptor_type="wdl").descriptor_type == "wdl"

    def test_default_version_must_exist(self, service, full_entry):
        with pytest.raises(VersionNotFoundError):
            service.update_entry(full_entry.id, default_version="nope")

        entry = service.update_entry(full_entry.id, default_version="master")
        assert entry.default_version == "master"

    def test_default_paths(self, service, full_entry):
        entry = service.update_entry(
            full_entry.id,
            default_workflow_path="/b.cwl",
            default_test_parameter_file_path="/b.json",
        )

        assert entry.default_workflow_path == "/b.cwl"
        assert entry.default_test_parameter_file_path == "/b.json"


class TestVersionEdits:
    def test_path_change_sets_dirty_bit(self, service, full_entry):
        master = full_entry.version_named("master")

        (version,) = service.update_versions(
            full_entry.id, [{"id": master.id, "workflow_path": "/tools/b.cwl", "hidden": True}]
        )

        assert version.workflow_path == "/tools/b.cwl"
        assert version.dirty_bit is True
        assert version.hidden is True

    def test_same_path_keeps_clean(self, service, full_entry):
        master = full_entry.version_named("master")

        (version,) = service.update_versions(
            full_entry.id, [{"id": master.id, "workflow_path": "/a.cwl"}]
        )

        assert version.dirty_bit is False

    def test_unknown_version_rejected_before_changes(self, service, full_entry, store):
        master = full_entry.version_named("master")

        with pytest.raises(VersionNotFoundError):
            service.update_versions(
                full_entry.id,
                [{"id": master.id, "hidden": True}, {"id": 999, "hidden": True}],
            )

        assert store.get(full_entry.id).version_named("master").hidden is False

    def test_reset_paths_skips_dirty_versions(self, service, full_entry):
        master = full_entry.version_named("master")
        service.update_versions(full_entry.id, [{"id": master.id, "workflow_path": "/x.cwl"}])

        entry = service.reset_version_paths(full_entry.id, "/reset.cwl")

        assert entry.version_named("master").workflow_path == "/x.cwl"
        assert entry.version_named("broken").workflow_path == "/reset.cwl"

    def test_reset_paths_defaults_to_entry_default(self, service, full_entry):
        entry = service.reset_version_paths(full_entry.id)

        assert {v.workflow_path for v in entry.versions} == {"/Dockstore.cwl"}

    def test_verify_requires_source(self, service, full_entry):
        master = full_entry.version_named("master")

        with pytest.raises(VerificationError):
            service.verify_version(full_entry.id, master.id, True)

        version = service.verify_version(full_entry.id, master.id, True, "Travis CI")
        assert version.verified is True
        assert version.verified_source == "Travis CI"

        version = service.verify_version(full_entry.id, master.id, False)
        assert version.verified is False
        assert version.verified_source is None


class TestTestParameterFiles:
    def test_add_and_delete(self, service, full_entry):
        files = service.add_test_parameter_files(full_entry.id, "master", ["/more.json", "/test.json"])

        assert sorted(f.path for f in files) == ["/more.json", "/test.json"]

        files = service.delete_test_parameter_files(full_entry.id, "master", ["/test.json"])

        assert [f.path for f in files] == ["/more.json"]
        assert [f.path for f in service.get_test_parameter_files(full_entry.id, "master")] == ["/more.json"]

    def test_invalid_version_rejected(self, service, full_entry):
        with pytest.raises(InvalidVersionError):
            service.add_test_parameter_files(full_entry.id, "broken", ["/x.json"])

    def test_missing_version_rejected(self, service, full_entry):
        with pytest.raises(VersionNotFoundError):
            service.add_test_parameter_files(full_entry.id, "nope", ["/x.json"])

    def test_stub_rejected(self, service, persist):
        stub = persist(workflow(mode=EntryMode.STUB, versions=[workflow_version("master")]))

        with pytest.raises(InvalidVersionError):
            service.add_test_parameter_files(stub.id, "master", ["/x.json"])


class TestFilesAndRendering:
    def test_primary_descriptor(self, service, full_entry):
        primary = service.get_source_file(full_entry.id, "master", FileType.DOCKSTORE_CWL)

        assert primary.path == "/a.cwl"
        assert primary.content == "main"

    def test_non_descriptor_file(self, service, full_entry):
        test_json = service.get_source_file(full_entry.id, "master", FileType.CWL_TEST_JSON)

        assert test_json.path == "/test.json"

    def test_missing_file(self, service, full_entry):
        assert service.get_source_file(full_entry.id, "master", FileType.DOCKERFILE) is None

    def test_secondary_files(self, service, full_entry):
        files = service.get_secondary_files(full_entry.id, "master")

        assert [f.path for f in files] == ["/tools/b.cwl"]

    def test_render_passes_primary_and_secondaries(self, service, full_entry):
        master = full_entry.version_named("master")

        rendered = json.loads(service.render(full_entry.id, master.id, RenderMode.DAG))

        assert rendered == {"mode": "DAG", "primary": "/a.cwl", "secondary": ["/tools/b.cwl"]}

    def test_render_without_primary(self, service, persist):
        entry = persist(workflow(versions=[workflow_version("master", [cwl("/other.cwl")])]))

        assert service.render(entry.id, entry.versions[0].id, RenderMode.TOOLS) is None

    def test_render_without_handler(self, service, persist):
        entry = persist(
            workflow(
                descriptor_type="wdl",
                versions=[workflow_version("master", [source_file(FileType.DOCKSTORE_WDL, "/a.wdl")], workflow_path="/a.wdl")],
            )
        )

        with pytest.raises(InvalidDescriptorTypeError):
            service.render(entry.id, entry.versions[0].id, RenderMode.DAG)
