"""create registry tables

Revision ID: 001
Revises:
Create Date: 2026-10-18 00:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None

ENTRY_MODES = ("STUB", "FULL")
ENTRY_KINDS = ("tool", "workflow")
FILE_TYPES = (
    "DOCKSTORE_CWL",
    "DOCKSTORE_WDL",
    "NEXTFLOW_CONFIG",
    "NEXTFLOW",
    "CWL_TEST_JSON",
    "WDL_TEST_JSON",
    "NEXTFLOW_TEST_PARAMS",
    "DOCKERFILE",
)
DOI_STATUSES = ("NONE", "REQUESTED", "CREATED")


def _timestamps() -> list:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(length=256), nullable=False),
        sa.Column("is_admin", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    op.create_table(
        "tokens",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "user_id",
            sa.Integer,
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("token_source", sa.String(length=64), nullable=False),
        sa.Column("content", sa.Text, nullable=True),
        sa.Column("username", sa.String(length=256), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_tokens_user_id", "tokens", ["user_id"])

    op.create_table(
        "entries",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("kind", sa.Enum(*ENTRY_KINDS, name="entry_kind"), nullable=False),
        sa.Column("source_control", sa.String(length=256), nullable=False),
        sa.Column("organization", sa.String(length=256), nullable=False),
        sa.Column("repository", sa.String(length=256), nullable=False),
        sa.Column("subname", sa.String(length=256), nullable=False, server_default=""),
        sa.Column("git_url", sa.String(length=512), nullable=True),
        sa.Column(
            "mode",
            sa.Enum(*ENTRY_MODES, name="entry_mode"),
            nullable=False,
            server_default="STUB",
        ),
        sa.Column("descriptor_type", sa.String(length=16), nullable=True),
        sa.Column("is_published", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("is_checker", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column(
            "checker_id",
            sa.Integer,
            sa.ForeignKey("entries.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("default_version", sa.String(length=256), nullable=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("author", sa.String(length=256), nullable=True),
        sa.Column("email", sa.String(length=256), nullable=True),
        sa.Column("last_modified", sa.DateTime(timezone=True), nullable=True),
        # workflow columns
        sa.Column("default_workflow_path", sa.String(length=1024), nullable=True),
        sa.Column("default_test_parameter_file_path", sa.String(length=1024), nullable=True),
        # tool columns
        sa.Column("default_dockerfile_path", sa.String(length=1024), nullable=True),
        sa.Column("default_cwl_path", sa.String(length=1024), nullable=True),
        sa.Column("default_wdl_path", sa.String(length=1024), nullable=True),
        sa.Column("default_test_cwl_parameter_file", sa.String(length=1024), nullable=True),
        sa.Column("default_test_wdl_parameter_file", sa.String(length=1024), nullable=True),
        sa.Column("tool_maintainer_email", sa.String(length=256), nullable=True),
        sa.Column("private_access", sa.Boolean, nullable=True),
        sa.Column("last_build", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint(
            "source_control",
            "organization",
            "repository",
            "subname",
            name="uq_entries_path",
        ),
    )
    op.create_index("ix_entries_git_url", "entries", ["git_url"])
    op.create_index("ix_entries_is_published", "entries", ["is_published"])
    op.create_index("ix_entries_is_checker", "entries", ["is_checker"])
    op.create_index("ix_entries_kind_published", "entries", ["kind", "is_published"])

    op.create_table(
        "entry_users",
        sa.Column(
            "entry_id",
            sa.Integer,
            sa.ForeignKey("entries.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "user_id",
            sa.Integer,
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "entry_versions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("kind", sa.String(length=32), nullable=False),
        sa.Column(
            "entry_id",
            sa.Integer,
            sa.ForeignKey("entries.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=256), nullable=False),
        sa.Column("reference", sa.String(length=256), nullable=True),
        sa.Column("commit_id", sa.String(length=64), nullable=True),
        sa.Column("workflow_path", sa.String(length=1024), nullable=True),
        sa.Column("valid", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("last_modified", sa.DateTime(timezone=True), nullable=True),
        sa.Column("dirty_bit", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("hidden", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("verified", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("verified_source", sa.Text, nullable=True),
        sa.Column(
            "doi_status",
            sa.Enum(*DOI_STATUSES, name="doi_status"),
            nullable=False,
            server_default="NONE",
        ),
        # tag columns
        sa.Column("image_id", sa.String(length=256), nullable=True),
        sa.Column("size", sa.Integer, nullable=True),
        sa.Column("automated", sa.Boolean, nullable=True),
        sa.Column("dockerfile_path", sa.String(length=1024), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("entry_id", "name", name="uq_entry_versions_entry_name"),
    )
    op.create_index("ix_entry_versions_entry_id", "entry_versions", ["entry_id"])
    op.create_index("ix_entry_versions_name", "entry_versions", ["name"])

    op.create_table(
        "source_files",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "version_id",
            sa.Integer,
            sa.ForeignKey("entry_versions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("type", sa.Enum(*FILE_TYPES, name="source_file_type"), nullable=False),
        sa.Column("path", sa.String(length=1024), nullable=False),
        sa.Column("content", sa.Text, nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("version_id", "type", "path", name="uq_source_files_identity"),
    )
    op.create_index("ix_source_files_version_id", "source_files", ["version_id"])


def downgrade() -> None:
    op.drop_index("ix_source_files_version_id", table_name="source_files")
    op.drop_table("source_files")
    op.drop_index("ix_entry_versions_name", table_name="entry_versions")
    op.drop_index("ix_entry_versions_entry_id", table_name="entry_versions")
    op.drop_table("entry_versions")
    op.drop_table("entry_users")
    op.drop_index("ix_entries_kind_published", table_name="entries")
    op.drop_index("ix_entries_is_checker", table_name="entries")
    op.drop_index("ix_entries_is_published", table_name="entries")
    op.drop_index("ix_entries_git_url", table_name="entries")
    op.drop_table("entries")
    op.drop_index("ix_tokens_user_id", table_name="tokens")
    op.drop_table("tokens")
    op.drop_index("ix_users_username", table_name="users")
    op.drop_table("users")

    bind = op.get_bind()
    for enum_name in ("source_file_type", "doi_status", "entry_mode", "entry_kind"):
        sa.Enum(name=enum_name).drop(bind, checkfirst=True)
