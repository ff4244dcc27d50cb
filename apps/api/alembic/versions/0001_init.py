"""init

Revision ID: 0001_init
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def _id() -> sa.Column:
  return sa.Column("id", sa.String(36), primary_key=True)


def _ts(name: str) -> sa.Column:
  return sa.Column(name, sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()"))


def upgrade() -> None:
  op.create_table(
    "users",
    _id(),
    sa.Column("email", sa.String(), nullable=False),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("password_hash", sa.String(), nullable=False),
    sa.Column("avatar_url", sa.String(), nullable=True),
    _ts("created_at"),
    _ts("updated_at"),
  )
  op.create_index("ix_users_email", "users", ["email"], unique=True)

  op.create_table(
    "sessions",
    _id(),
    sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
    sa.Column("created_ip", sa.String(), nullable=True),
    sa.Column("user_agent", sa.String(), nullable=True),
    _ts("created_at"),
    sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_sessions_user_id", "sessions", ["user_id"], unique=False)

  op.create_table(
    "workspaces",
    _id(),
    sa.Column("name", sa.String(), nullable=False),
    _ts("created_at"),
    _ts("updated_at"),
  )

  op.create_table(
    "workspace_members",
    _id(),
    sa.Column("workspace_id", sa.String(36), sa.ForeignKey("workspaces.id"), nullable=False),
    sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
    sa.Column("role", sa.String(), nullable=False, server_default="MEMBER"),
    _ts("joined_at"),
    sa.UniqueConstraint("workspace_id", "user_id", name="ux_workspace_members_workspace_user"),
  )
  op.create_index("ix_workspace_members_workspace_id", "workspace_members", ["workspace_id"], unique=False)
  op.create_index("ix_workspace_members_user_id", "workspace_members", ["user_id"], unique=False)

  op.create_table(
    "workspace_invitations",
    _id(),
    sa.Column("workspace_id", sa.String(36), sa.ForeignKey("workspaces.id"), nullable=False),
    sa.Column("email", sa.String(), nullable=False),
    sa.Column("token", sa.String(), nullable=False),
    sa.Column("invited_by_id", sa.String(36), nullable=True),
    sa.Column("role", sa.String(), nullable=False, server_default="MEMBER"),
    sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
    _ts("created_at"),
  )
  op.create_index("ix_workspace_invitations_workspace_id", "workspace_invitations", ["workspace_id"], unique=False)
  op.create_index("ix_workspace_invitations_email", "workspace_invitations", ["email"], unique=False)
  op.create_index("ix_workspace_invitations_token", "workspace_invitations", ["token"], unique=True)

  op.create_table(
    "columns",
    _id(),
    sa.Column("workspace_id", sa.String(36), sa.ForeignKey("workspaces.id"), nullable=False),
    sa.Column("key", sa.String(), nullable=False),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
    _ts("created_at"),
    _ts("updated_at"),
    sa.UniqueConstraint("workspace_id", "key", name="ux_columns_workspace_key"),
  )
  op.create_index("ix_columns_workspace_id", "columns", ["workspace_id"], unique=False)

  op.create_table(
    "projects",
    _id(),
    sa.Column("workspace_id", sa.String(36), sa.ForeignKey("workspaces.id"), nullable=False),
    sa.Column("created_by_id", sa.String(36), nullable=True),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("description", sa.Text(), nullable=True),
    sa.Column("status", sa.String(), nullable=False, server_default="ACTIVE"),
    sa.Column("priority", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
    _ts("created_at"),
    _ts("updated_at"),
  )
  op.create_index("ix_projects_workspace_id", "projects", ["workspace_id"], unique=False)

  op.create_table(
    "milestones",
    _id(),
    sa.Column("project_id", sa.String(36), sa.ForeignKey("projects.id"), nullable=False),
    sa.Column("status_column_id", sa.String(36), sa.ForeignKey("columns.id"), nullable=False),
    sa.Column("depends_on_milestone_id", sa.String(36), sa.ForeignKey("milestones.id"), nullable=True),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("description", sa.Text(), nullable=True),
    sa.Column("value", sa.String(), nullable=False, server_default="MEDIUM"),
    sa.Column("urgency", sa.String(), nullable=False, server_default="MEDIUM"),
    sa.Column("effort", sa.String(), nullable=False, server_default="MEDIUM"),
    sa.Column("priority", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("priority_score", sa.Float(), nullable=True),
    sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
    _ts("created_at"),
    _ts("updated_at"),
  )
  op.create_index("ix_milestones_project_id", "milestones", ["project_id"], unique=False)
  op.create_index("ix_milestones_status_column_id", "milestones", ["status_column_id"], unique=False)
  op.create_index("ix_milestones_depends_on_milestone_id", "milestones", ["depends_on_milestone_id"], unique=False)

  op.create_table(
    "tasks",
    _id(),
    sa.Column("milestone_id", sa.String(36), sa.ForeignKey("milestones.id"), nullable=False),
    sa.Column("status_column_id", sa.String(36), sa.ForeignKey("columns.id"), nullable=False),
    sa.Column("depends_on_task_id", sa.String(36), sa.ForeignKey("tasks.id"), nullable=True),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("description", sa.Text(), nullable=True),
    sa.Column("value", sa.String(), nullable=False, server_default="MEDIUM"),
    sa.Column("urgency", sa.String(), nullable=False, server_default="MEDIUM"),
    sa.Column("effort", sa.String(), nullable=False, server_default="SMALL"),
    sa.Column("priority", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("priority_score", sa.Float(), nullable=True),
    sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    _ts("created_at"),
    _ts("updated_at"),
  )
  op.create_index("ix_tasks_milestone_id", "tasks", ["milestone_id"], unique=False)
  op.create_index("ix_tasks_status_column_id", "tasks", ["status_column_id"], unique=False)
  op.create_index("ix_tasks_depends_on_task_id", "tasks", ["depends_on_task_id"], unique=False)

  op.create_table(
    "tags",
    _id(),
    sa.Column("workspace_id", sa.String(36), sa.ForeignKey("workspaces.id"), nullable=False),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("color", sa.String(), nullable=False, server_default="#3b82f6"),
    _ts("created_at"),
    sa.UniqueConstraint("workspace_id", "name", name="ux_tags_workspace_name"),
  )
  op.create_index("ix_tags_workspace_id", "tags", ["workspace_id"], unique=False)

  op.create_table(
    "task_tags",
    _id(),
    sa.Column("task_id", sa.String(36), sa.ForeignKey("tasks.id"), nullable=False),
    sa.Column("tag_id", sa.String(36), sa.ForeignKey("tags.id"), nullable=False),
    sa.UniqueConstraint("task_id", "tag_id", name="ux_task_tags_task_tag"),
  )
  op.create_index("ix_task_tags_task_id", "task_tags", ["task_id"], unique=False)
  op.create_index("ix_task_tags_tag_id", "task_tags", ["tag_id"], unique=False)

  op.create_table(
    "ai_recommendations",
    _id(),
    sa.Column("workspace_id", sa.String(36), sa.ForeignKey("workspaces.id"), nullable=False),
    sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
    sa.Column("input_snapshot", sa.JSON(), nullable=False),
    sa.Column("top_tasks", sa.JSON(), nullable=False),
    sa.Column("suggested_moves", sa.JSON(), nullable=False),
    sa.Column("themes", sa.JSON(), nullable=False),
    sa.Column("prompt_version", sa.String(), nullable=False),
    sa.Column("model_version", sa.String(), nullable=True),
    sa.Column("tokens_used", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("duration_ms", sa.Integer(), nullable=False, server_default="0"),
    _ts("created_at"),
  )
  op.create_index("ix_ai_recommendations_workspace_id", "ai_recommendations", ["workspace_id"], unique=False)
  op.create_index("ix_ai_recommendations_user_id", "ai_recommendations", ["user_id"], unique=False)

  op.create_table(
    "audit_events",
    _id(),
    sa.Column("workspace_id", sa.String(36), nullable=True),
    sa.Column("actor_id", sa.String(36), nullable=True),
    sa.Column("event_type", sa.String(), nullable=False),
    sa.Column("entity_type", sa.String(), nullable=False),
    sa.Column("entity_id", sa.String(), nullable=True),
    sa.Column("payload", sa.JSON(), nullable=False),
    _ts("created_at"),
  )
  op.create_index("ix_audit_events_workspace_id", "audit_events", ["workspace_id"], unique=False)


def downgrade() -> None:
  for table in (
    "audit_events",
    "ai_recommendations",
    "task_tags",
    "tags",
    "tasks",
    "milestones",
    "projects",
    "columns",
    "workspace_invitations",
    "workspace_members",
    "workspaces",
    "sessions",
    "users",
  ):
    op.drop_table(table)
