from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Annotated, Any, Literal

from pydantic import AfterValidator, AliasChoices, BaseModel, Field, StringConstraints, field_validator


def _check_uuid(value: str) -> str:
  uuid.UUID(value)
  return value


def _parse_dt_utc(value: object) -> object:
  if value is None:
    return None
  if isinstance(value, str):
    s = value.strip()
    if not s:
      return None
    value = datetime.fromisoformat(s.replace("Z", "+00:00"))
  if isinstance(value, datetime):
    if value.tzinfo is None:
      return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
  return value


UuidStr = Annotated[str, AfterValidator(_check_uuid)]
Rating = Literal["LOW", "MEDIUM", "HIGH"]
Effort = Literal["SMALL", "MEDIUM", "LARGE"]
ProjectStatus = Literal["ACTIVE", "ARCHIVED"]
EmailField = Annotated[str, Field(min_length=3, max_length=320, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")]
ShortName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=50)]
Name = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]
LongName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=200)]


class RefOut(BaseModel):
  id: str
  name: str


# --- auth ---


class UserOut(BaseModel):
  id: str
  email: str
  name: str
  avatarUrl: str | None = None
  createdAt: datetime | None = None


class RegisterIn(BaseModel):
  email: EmailField
  name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=120)]
  password: str = Field(min_length=8, max_length=200)


class LoginIn(BaseModel):
  email: str
  password: str


# --- columns ---


class ColumnOut(BaseModel):
  id: str
  key: str
  name: str
  sortOrder: int


class ColumnUpdateIn(BaseModel):
  name: ShortName


class ColumnReorderIn(BaseModel):
  columnIds: list[UuidStr] = Field(min_length=1)


# --- projects ---


class ProjectCreateIn(BaseModel):
  name: Name
  description: str | None = Field(default=None, max_length=500)
  status: ProjectStatus = "ACTIVE"
  priority: int = Field(default=0, ge=0, le=999)


class ProjectUpdateIn(BaseModel):
  name: Name | None = None
  description: str | None = Field(default=None, max_length=500)
  status: ProjectStatus | None = None
  priority: int | None = Field(default=None, ge=0, le=999)
  sortOrder: int | None = Field(default=None, ge=0)


class ProjectOut(BaseModel):
  id: str
  workspaceId: str
  name: str
  description: str | None
  status: str
  priority: int
  sortOrder: int
  milestoneCount: int = 0
  createdAt: datetime
  updatedAt: datetime


# --- milestones ---


class MilestoneCreateIn(BaseModel):
  projectId: UuidStr
  name: Name
  description: str | None = Field(default=None, max_length=500)
  value: Rating = "MEDIUM"
  urgency: Rating = "MEDIUM"
  effort: Effort = "MEDIUM"
  priority: int = Field(default=0, ge=0, le=999)
  statusColumnId: UuidStr
  dependsOnMilestoneId: UuidStr | None = None


class MilestoneUpdateIn(BaseModel):
  projectId: UuidStr | None = None
  name: Name | None = None
  description: str | None = Field(default=None, max_length=500)
  value: Rating | None = None
  urgency: Rating | None = None
  effort: Effort | None = None
  priority: int | None = Field(default=None, ge=0, le=999)
  statusColumnId: UuidStr | None = None
  dependsOnMilestoneId: UuidStr | None = None
  sortOrder: int | None = Field(default=None, ge=0)


class MilestoneDependencyIn(BaseModel):
  dependsOnMilestoneId: UuidStr | None


class MilestoneOut(BaseModel):
  id: str
  projectId: str
  name: str
  description: str | None
  value: str
  urgency: str
  effort: str
  priority: int
  priorityScore: float | None
  sortOrder: int
  statusColumnId: str
  statusColumn: ColumnOut | None = None
  dependsOnMilestoneId: str | None
  dependsOn: RefOut | None = None
  taskCount: int = 0
  createdAt: datetime
  updatedAt: datetime


class MilestoneDependenciesOut(BaseModel):
  dependsOn: RefOut | None
  blocks: list[RefOut]


# --- tags ---


class TagCreateIn(BaseModel):
  name: ShortName
  color: str = Field(default="#3b82f6", pattern=r"^#[0-9A-Fa-f]{6}$")


class TagUpdateIn(BaseModel):
  name: ShortName | None = None
  color: str | None = Field(default=None, pattern=r"^#[0-9A-Fa-f]{6}$")


class TagOut(BaseModel):
  id: str
  name: str
  color: str
  taskCount: int = 0


# --- tasks ---


class TaskCreateIn(BaseModel):
  milestoneId: UuidStr
  name: LongName
  description: str | None = Field(default=None, max_length=1000)
  value: Rating = "MEDIUM"
  urgency: Rating = "MEDIUM"
  effort: Effort = "SMALL"
  priority: int = Field(default=0, ge=0, le=999)
  statusColumnId: UuidStr
  dependsOnTaskId: UuidStr | None = None


class TaskUpdateIn(BaseModel):
  milestoneId: UuidStr | None = None
  name: LongName | None = None
  description: str | None = Field(default=None, max_length=1000)
  value: Rating | None = None
  urgency: Rating | None = None
  effort: Effort | None = None
  priority: int | None = Field(default=None, ge=0, le=999)
  statusColumnId: UuidStr | None = None
  dependsOnTaskId: UuidStr | None = None
  completedAt: datetime | None = None
  sortOrder: int | None = Field(default=None, ge=0)

  @field_validator("completedAt", mode="before")
  @classmethod
  def _completed_at_to_utc(cls, v: object) -> object:
    return _parse_dt_utc(v)


class TaskTagsIn(BaseModel):
  tagIds: list[UuidStr]


class TaskOut(BaseModel):
  id: str
  milestoneId: str
  milestone: RefOut | None = None
  projectId: str | None = None
  name: str
  description: str | None
  value: str
  urgency: str
  effort: str
  priority: int
  priorityScore: float | None
  sortOrder: int
  statusColumnId: str
  statusColumn: ColumnOut | None = None
  dependsOnTaskId: str | None
  dependsOn: RefOut | None = None
  completedAt: datetime | None
  tags: list[TagOut] = Field(default_factory=list)
  createdAt: datetime
  updatedAt: datetime


class MilestoneDetailOut(MilestoneOut):
  project: ProjectOut
  tasks: list[TaskOut]


class ProjectDetailOut(ProjectOut):
  milestones: list[MilestoneOut]


# --- workspace ---


class WorkspaceMemberOut(BaseModel):
  id: str
  userId: str
  role: str
  joinedAt: datetime
  user: UserOut


class InvitationOut(BaseModel):
  id: str
  email: str
  role: str
  invitedById: str | None
  expiresAt: datetime
  createdAt: datetime


class WorkspaceCountsOut(BaseModel):
  members: int
  projects: int
  pendingInvitations: int


class WorkspaceOut(BaseModel):
  id: str
  name: str
  role: str
  createdAt: datetime
  members: list[WorkspaceMemberOut]
  invitations: list[InvitationOut]
  counts: WorkspaceCountsOut


class InviteIn(BaseModel):
  email: EmailField


class InviteCreatedOut(BaseModel):
  invitation: InvitationOut
  inviteUrl: str
  message: str = "Invitation sent successfully"


class InvitePreviewOut(BaseModel):
  email: str
  workspace: RefOut
  invitedBy: str | None
  expiresAt: datetime


class InviteAcceptOut(BaseModel):
  workspaceId: str
  role: str


class InitStatusOut(BaseModel):
  isInitialized: bool
  hasWorkspace: bool
  workspaceId: str | None
  columnsCount: int


class InitOut(BaseModel):
  workspaceId: str
  columnsCreated: int
  tagsCreated: int
  welcomeProjectId: str | None


# --- import ---


class OutlineImportIn(BaseModel):
  projectName: Name
  content: str = Field(min_length=1, validation_alias=AliasChoices("content", "rtfContent"))


class OutlineImportOut(BaseModel):
  project: RefOut
  created: bool
  milestoneCount: int
  taskCount: int


# --- analytics ---


class AnalyticsOverviewOut(BaseModel):
  totalProjects: int
  totalMilestones: int
  totalTasks: int
  completedTasks: int
  completionRate: int


class ColumnCountOut(BaseModel):
  column: str
  columnKey: str
  count: int


class PriorityCountOut(BaseModel):
  priority: str
  count: int


class EffortCountOut(BaseModel):
  effort: str
  count: int


class TrendPointOut(BaseModel):
  date: str
  completed: int


class ProjectBreakdownOut(BaseModel):
  projectId: str
  projectName: str
  milestones: int
  tasks: int
  completedTasks: int


class ActivityOut(BaseModel):
  type: Literal["milestone", "task"]
  name: str
  action: str
  timestamp: datetime


class AnalyticsOut(BaseModel):
  overview: AnalyticsOverviewOut
  tasksByColumn: list[ColumnCountOut]
  tasksByPriority: list[PriorityCountOut]
  tasksByEffort: list[EffortCountOut]
  completionTrend: list[TrendPointOut]
  projectBreakdown: list[ProjectBreakdownOut]
  recentActivity: list[ActivityOut]


# --- ai ---


class AIPrioritizeIn(BaseModel):
  includeCompleted: bool = False
  focusProjectId: UuidStr | None = None


class TaskScore(BaseModel):
  taskId: UuidStr
  taskTitle: str
  priorityScore: float = Field(ge=0, le=20)
  isUrgent: bool
  reasoning: str | None = None


class TriageFlag(BaseModel):
  taskId: UuidStr
  type: Literal["BLOCKED", "BLOCKER", "OVERDUE", "HIGH_EFFORT"]
  message: str


class TriageOutput(BaseModel):
  analyzedCount: int
  urgentTasks: list[UuidStr]
  taskScores: list[TaskScore]
  flags: list[TriageFlag] | None = None


class RankedTask(BaseModel):
  taskId: UuidStr
  taskTitle: str
  rank: int = Field(ge=1, le=10)
  priorityScore: float
  rationale: str


class SuggestedMove(BaseModel):
  taskId: UuidStr
  taskTitle: str
  currentColumn: str
  suggestedColumn: str
  reasoning: str
  impact: Literal["HIGH", "MEDIUM", "LOW"]


class FlowAnalysis(BaseModel):
  todoCount: int
  inProgressCount: int
  reviewCount: int
  recommendation: str


class PrioritizerOutput(BaseModel):
  topTasks: list[RankedTask] = Field(max_length=10)
  suggestedMoves: list[SuggestedMove] = Field(max_length=5)
  flowAnalysis: FlowAnalysis | None = None


class Theme(BaseModel):
  title: str
  description: str
  relatedTaskIds: list[UuidStr]
  category: Literal["OPPORTUNITY", "RISK", "GOAL"]
  priority: Literal["HIGH", "MEDIUM", "LOW"]


class InsightRecommendation(BaseModel):
  title: str
  description: str
  actionItems: list[str] = Field(max_length=3)
  expectedImpact: str


class RiskAssessment(BaseModel):
  level: Literal["LOW", "MEDIUM", "HIGH"]
  factors: list[str]


class InsightsOutput(BaseModel):
  summary: str = Field(max_length=500)
  themes: list[Theme] = Field(max_length=5)
  recommendations: list[InsightRecommendation] = Field(min_length=3, max_length=5)
  riskAssessment: RiskAssessment | None = None


class AIRunMetadata(BaseModel):
  generatedAt: datetime
  tokensUsed: int
  executionTimeMs: int
  modelVersion: str


class AIPrioritizationOut(BaseModel):
  triage: TriageOutput
  prioritization: PrioritizerOutput
  insights: InsightsOutput
  metadata: AIRunMetadata


class AIRecommendationOut(BaseModel):
  id: str
  topTasks: list[Any]
  suggestedMoves: list[Any]
  themes: list[Any]
  createdAt: datetime


class AIRecommendationMetaOut(BaseModel):
  tokensUsed: int
  durationMs: int
  promptVersion: str
  modelVersion: str | None


class AILatestRecommendationOut(BaseModel):
  recommendation: AIRecommendationOut
  isFresh: bool
  metadata: AIRecommendationMetaOut


# --- audit ---


class AuditOut(BaseModel):
  id: str
  actorId: str | None
  eventType: str
  entityType: str
  entityId: str | None
  payload: dict[str, Any]
  createdAt: datetime
