"""Create projects, data sources, workflows, tasks and task events.

Revision ID: labelflow_schema_20261001
Revises:
Create Date: 2026-10-01 00:00:00.000000
"""
from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql
from alembic import op


# revision identifiers, used by Alembic.
revision = "labelflow_schema_20261001"
down_revision = None
branch_labels = None
depends_on = None

ENUMS = {
    "projectrole": ("VIEWER", "ANNOTATOR", "REVIEWER", "MANAGER"),
    "datasourcetype": (
        "MINIO_BUCKET",
        "S3_BUCKET",
        "GSC_BUCKET",
        "AZURE_BLOB_STORAGE",
        "LOCAL_DIRECTORY",
        "DATABASE",
        "API",
        "OTHER",
    ),
    "datasourcestatus": ("ACTIVE", "INACTIVE", "SYNCING", "ERROR", "ARCHIVED"),
    "assetstatus": ("PENDING_IMPORT", "IMPORTED", "IMPORT_ERROR", "ARCHIVED"),
    "workflowstagetype": ("ANNOTATION", "REVISION", "COMPLETION"),
    "taskstatus": (
        "NOT_STARTED",
        "READY_FOR_ANNOTATION",
        "READY_FOR_REVIEW",
        "READY_FOR_COMPLETION",
        "IN_PROGRESS",
        "COMPLETED",
        "SUSPENDED",
        "DEFERRED",
        "ARCHIVED",
        "VETOED",
        "CHANGES_REQUIRED",
    ),
    "taskeventtype": (
        "TASK_CREATED",
        "TASK_ASSIGNED",
        "TASK_UNASSIGNED",
        "STAGE_CHANGED",
        "STATUS_CHANGED",
        "TASK_VETOED",
        "ASSET_MOVED",
    ),
}


def enum_column_type(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    ]


def upgrade() -> None:
    """Create the labeling workflow schema."""
    bind = op.get_bind()
    for name, values in ENUMS.items():
        postgresql.ENUM(*values, name=name).create(bind, checkfirst=True)

    op.create_table(
        "users",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        *timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_id"), "users", ["id"], unique=False)
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)

    op.create_table(
        "roles",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column(
            "permissions",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column("description", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_roles_id"), "roles", ["id"], unique=False)
    op.create_index(op.f("ix_roles_name"), "roles", ["name"], unique=True)

    op.create_table(
        "user_role_association",
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("role_id", sa.UUID(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["role_id"], ["roles.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("user_id", "role_id"),
    )

    op.create_table(
        "projects",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("owner_id", sa.UUID(), nullable=True),
        *timestamps(),
        sa.ForeignKeyConstraint(["owner_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_projects_id"), "projects", ["id"], unique=False)
    op.create_index(op.f("ix_projects_owner_id"), "projects", ["owner_id"], unique=False)

    op.create_table(
        "project_members",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("project_id", sa.UUID(), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("role", enum_column_type("projectrole"), nullable=False),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("project_id", "user_id", name="uq_project_member"),
    )
    op.create_index(op.f("ix_project_members_id"), "project_members", ["id"], unique=False)
    op.create_index(op.f("ix_project_members_project_id"), "project_members", ["project_id"], unique=False)
    op.create_index(op.f("ix_project_members_user_id"), "project_members", ["user_id"], unique=False)

    op.create_table(
        "data_sources",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("project_id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("source_type", enum_column_type("datasourcetype"), nullable=False),
        sa.Column("status", enum_column_type("datasourcestatus"), nullable=False),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("connection_details", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        *timestamps(),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_data_sources_id"), "data_sources", ["id"], unique=False)
    op.create_index(op.f("ix_data_sources_project_id"), "data_sources", ["project_id"], unique=False)

    op.create_table(
        "assets",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("project_id", sa.UUID(), nullable=False),
        sa.Column("data_source_id", sa.UUID(), nullable=False),
        sa.Column("external_id", sa.String(length=512), nullable=False),
        sa.Column("filename", sa.String(length=255), nullable=True),
        sa.Column("mime_type", sa.String(length=100), nullable=True),
        sa.Column("status", enum_column_type("assetstatus"), nullable=False),
        sa.Column("meta_data", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        *timestamps(),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["data_source_id"], ["data_sources.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_assets_id"), "assets", ["id"], unique=False)
    op.create_index(op.f("ix_assets_project_id"), "assets", ["project_id"], unique=False)
    op.create_index(op.f("ix_assets_data_source_id"), "assets", ["data_source_id"], unique=False)
    op.create_index(op.f("ix_assets_status"), "assets", ["status"], unique=False)

    op.create_table(
        "workflows",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("project_id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("label_scheme_id", sa.UUID(), nullable=True),
        sa.Column("created_by", sa.UUID(), nullable=True),
        *timestamps(),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_workflows_id"), "workflows", ["id"], unique=False)
    op.create_index(op.f("ix_workflows_project_id"), "workflows", ["project_id"], unique=False)

    op.create_table(
        "workflow_stages",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("workflow_id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("stage_order", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("stage_type", enum_column_type("workflowstagetype"), nullable=False),
        sa.Column("is_initial_stage", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_final_stage", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("input_data_source_id", sa.UUID(), nullable=True),
        sa.Column("target_data_source_id", sa.UUID(), nullable=True),
        *timestamps(),
        sa.ForeignKeyConstraint(["workflow_id"], ["workflows.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["input_data_source_id"], ["data_sources.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["target_data_source_id"], ["data_sources.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_workflow_stages_id"), "workflow_stages", ["id"], unique=False)
    op.create_index(op.f("ix_workflow_stages_workflow_id"), "workflow_stages", ["workflow_id"], unique=False)
    op.create_index(
        op.f("ix_workflow_stages_input_data_source_id"), "workflow_stages", ["input_data_source_id"], unique=False
    )
    op.create_index(
        op.f("ix_workflow_stages_target_data_source_id"), "workflow_stages", ["target_data_source_id"], unique=False
    )

    op.create_table(
        "workflow_stage_connections",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("from_stage_id", sa.UUID(), nullable=False),
        sa.Column("to_stage_id", sa.UUID(), nullable=False),
        sa.Column("condition", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["from_stage_id"], ["workflow_stages.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["to_stage_id"], ["workflow_stages.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("from_stage_id", "to_stage_id", name="uq_stage_connection"),
    )
    op.create_index(op.f("ix_workflow_stage_connections_id"), "workflow_stage_connections", ["id"], unique=False)
    op.create_index(
        op.f("ix_workflow_stage_connections_from_stage_id"),
        "workflow_stage_connections",
        ["from_stage_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_workflow_stage_connections_to_stage_id"),
        "workflow_stage_connections",
        ["to_stage_id"],
        unique=False,
    )

    op.create_table(
        "workflow_stage_assignments",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("workflow_stage_id", sa.UUID(), nullable=False),
        sa.Column("project_member_id", sa.UUID(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["workflow_stage_id"], ["workflow_stages.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["project_member_id"], ["project_members.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("workflow_stage_id", "project_member_id", name="uq_stage_assignment"),
    )
    op.create_index(op.f("ix_workflow_stage_assignments_id"), "workflow_stage_assignments", ["id"], unique=False)
    op.create_index(
        op.f("ix_workflow_stage_assignments_workflow_stage_id"),
        "workflow_stage_assignments",
        ["workflow_stage_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_workflow_stage_assignments_project_member_id"),
        "workflow_stage_assignments",
        ["project_member_id"],
        unique=False,
    )

    op.create_table(
        "tasks",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("project_id", sa.UUID(), nullable=False),
        sa.Column("workflow_id", sa.UUID(), nullable=False),
        sa.Column("workflow_stage_id", sa.UUID(), nullable=False),
        sa.Column("asset_id", sa.UUID(), nullable=False),
        sa.Column("status", enum_column_type("taskstatus"), nullable=False),
        sa.Column("priority", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("assigned_to_user_id", sa.UUID(), nullable=True),
        sa.Column("last_worked_on_by_user_id", sa.UUID(), nullable=True),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("working_time_ms", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("meta_data", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("archived_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("suspended_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deferred_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("vetoed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("changes_required_at", sa.DateTime(timezone=True), nullable=True),
        *timestamps(),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["workflow_id"], ["workflows.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["workflow_stage_id"], ["workflow_stages.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["asset_id"], ["assets.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["assigned_to_user_id"], ["users.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["last_worked_on_by_user_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    for column in ("id", "project_id", "workflow_id", "workflow_stage_id", "asset_id", "status", "assigned_to_user_id"):
        op.create_index(op.f(f"ix_tasks_{column}"), "tasks", [column], unique=False)

    op.create_table(
        "task_events",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("task_id", sa.UUID(), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=True),
        sa.Column("event_type", enum_column_type("taskeventtype"), nullable=False),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("from_status", enum_column_type("taskstatus"), nullable=True),
        sa.Column("to_status", enum_column_type("taskstatus"), nullable=True),
        sa.Column("from_workflow_stage_id", sa.UUID(), nullable=True),
        sa.Column("to_workflow_stage_id", sa.UUID(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["task_id"], ["tasks.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["from_workflow_stage_id"], ["workflow_stages.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["to_workflow_stage_id"], ["workflow_stages.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    for column in ("id", "task_id", "user_id", "event_type"):
        op.create_index(op.f(f"ix_task_events_{column}"), "task_events", [column], unique=False)


def downgrade() -> None:
    """Drop the labeling workflow schema."""
    for table in (
        "task_events",
        "tasks",
        "workflow_stage_assignments",
        "workflow_stage_connections",
        "workflow_stages",
        "workflows",
        "assets",
        "data_sources",
        "project_members",
        "projects",
        "user_role_association",
        "roles",
        "users",
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for name, values in reversed(list(ENUMS.items())):
        postgresql.ENUM(*values, name=name).drop(bind, checkfirst=True)
