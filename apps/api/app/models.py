from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
  return datetime.now(timezone.utc)


def as_utc(dt: datetime | None) -> datetime | None:
  # SQLite hands back naive datetimes even for timezone-aware columns.
  if dt is None:
    return None
  if dt.tzinfo is None:
    return dt.replace(tzinfo=timezone.utc)
  return dt


def _uuid() -> str:
  return str(uuid.uuid4())


COLUMN_KEYS = (
  "PROJECTS",
  "MILESTONES",
  "BACKLOG",
  "WORKING",
  "READY_TEST",
  "AGENT_TESTING",
  "DEPLOYED_TESTING",
  "COMPLETED",
)


class Base(DeclarativeBase):
  pass


class User(Base):
  __tablename__ = "users"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  email: Mapped[str] = mapped_column(String, nullable=False, unique=True, index=True)
  name: Mapped[str] = mapped_column(String, nullable=False)
  password_hash: Mapped[str] = mapped_column(String, nullable=False)
  avatar_url: Mapped[str | None] = mapped_column(String, nullable=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class Session(Base):
  __tablename__ = "sessions"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
  created_ip: Mapped[str | None] = mapped_column(String, nullable=True)
  user_agent: Mapped[str | None] = mapped_column(String, nullable=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class Workspace(Base):
  __tablename__ = "workspaces"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  name: Mapped[str] = mapped_column(String, nullable=False)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class WorkspaceMember(Base):
  __tablename__ = "workspace_members"
  __table_args__ = (UniqueConstraint("workspace_id", "user_id", name="ux_workspace_members_workspace_user"),)

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  workspace_id: Mapped[str] = mapped_column(String(36), ForeignKey("workspaces.id"), nullable=False, index=True)
  user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
  role: Mapped[str] = mapped_column(String, nullable=False, default="MEMBER")  # OWNER | MEMBER
  joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class WorkspaceInvitation(Base):
  __tablename__ = "workspace_invitations"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  workspace_id: Mapped[str] = mapped_column(String(36), ForeignKey("workspaces.id"), nullable=False, index=True)
  email: Mapped[str] = mapped_column(String, nullable=False, index=True)
  token: Mapped[str] = mapped_column(String, nullable=False, unique=True, index=True)
  invited_by_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
  role: Mapped[str] = mapped_column(String, nullable=False, default="MEMBER")
  expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
  accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class Column(Base):
  __tablename__ = "columns"
  __table_args__ = (UniqueConstraint("workspace_id", "key", name="ux_columns_workspace_key"),)

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  workspace_id: Mapped[str] = mapped_column(String(36), ForeignKey("workspaces.id"), nullable=False, index=True)
  key: Mapped[str] = mapped_column(String, nullable=False)
  name: Mapped[str] = mapped_column(String, nullable=False)
  sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class Project(Base):
  __tablename__ = "projects"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  workspace_id: Mapped[str] = mapped_column(String(36), ForeignKey("workspaces.id"), nullable=False, index=True)
  created_by_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
  name: Mapped[str] = mapped_column(String, nullable=False)
  description: Mapped[str | None] = mapped_column(Text, nullable=True)
  status: Mapped[str] = mapped_column(String, nullable=False, default="ACTIVE")  # ACTIVE | ARCHIVED
  priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class Milestone(Base):
  __tablename__ = "milestones"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  project_id: Mapped[str] = mapped_column(String(36), ForeignKey("projects.id"), nullable=False, index=True)
  status_column_id: Mapped[str] = mapped_column(String(36), ForeignKey("columns.id"), nullable=False, index=True)
  depends_on_milestone_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("milestones.id"), nullable=True, index=True)
  name: Mapped[str] = mapped_column(String, nullable=False)
  description: Mapped[str | None] = mapped_column(Text, nullable=True)
  value: Mapped[str] = mapped_column(String, nullable=False, default="MEDIUM")
  urgency: Mapped[str] = mapped_column(String, nullable=False, default="MEDIUM")
  effort: Mapped[str] = mapped_column(String, nullable=False, default="MEDIUM")
  priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  priority_score: Mapped[float | None] = mapped_column(Float, nullable=True)
  sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class Task(Base):
  __tablename__ = "tasks"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  milestone_id: Mapped[str] = mapped_column(String(36), ForeignKey("milestones.id"), nullable=False, index=True)
  status_column_id: Mapped[str] = mapped_column(String(36), ForeignKey("columns.id"), nullable=False, index=True)
  depends_on_task_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("tasks.id"), nullable=True, index=True)
  name: Mapped[str] = mapped_column(String, nullable=False)
  description: Mapped[str | None] = mapped_column(Text, nullable=True)
  value: Mapped[str] = mapped_column(String, nullable=False, default="MEDIUM")
  urgency: Mapped[str] = mapped_column(String, nullable=False, default="MEDIUM")
  effort: Mapped[str] = mapped_column(String, nullable=False, default="SMALL")
  priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  priority_score: Mapped[float | None] = mapped_column(Float, nullable=True)
  sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class Tag(Base):
  __tablename__ = "tags"
  __table_args__ = (UniqueConstraint("workspace_id", "name", name="ux_tags_workspace_name"),)

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  workspace_id: Mapped[str] = mapped_column(String(36), ForeignKey("workspaces.id"), nullable=False, index=True)
  name: Mapped[str] = mapped_column(String, nullable=False)
  color: Mapped[str] = mapped_column(String, nullable=False, default="#3b82f6")
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class TaskTag(Base):
  __tablename__ = "task_tags"
  __table_args__ = (UniqueConstraint("task_id", "tag_id", name="ux_task_tags_task_tag"),)

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  task_id: Mapped[str] = mapped_column(String(36), ForeignKey("tasks.id"), nullable=False, index=True)
  tag_id: Mapped[str] = mapped_column(String(36), ForeignKey("tags.id"), nullable=False, index=True)


class AIRecommendation(Base):
  __tablename__ = "ai_recommendations"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  workspace_id: Mapped[str] = mapped_column(String(36), ForeignKey("workspaces.id"), nullable=False, index=True)
  user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
  input_snapshot: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
  top_tasks: Mapped[list[Any]] = mapped_column(JSON, nullable=False, default=list)
  suggested_moves: Mapped[list[Any]] = mapped_column(JSON, nullable=False, default=list)
  themes: Mapped[list[Any]] = mapped_column(JSON, nullable=False, default=list)
  prompt_version: Mapped[str] = mapped_column(String, nullable=False)
  model_version: Mapped[str | None] = mapped_column(String, nullable=True)
  tokens_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  duration_ms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class AuditEvent(Base):
  __tablename__ = "audit_events"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  workspace_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
  actor_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
  event_type: Mapped[str] = mapped_column(String, nullable=False)
  entity_type: Mapped[str] = mapped_column(String, nullable=False)
  entity_id: Mapped[str | None] = mapped_column(String, nullable=True)
  payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
