"""Pydantic models for the Oracle request pipeline.

Persisted entities (Team, Update, Member, Message) are owned by the data store;
these models are read/write views over their rows. Everything else lives only
for the duration of one request.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


# =============================================================================
# Enums
# =============================================================================


class Stage(str, Enum):
    """Team lifecycle stage. Declaration order is the classifier tie-break order."""

    IDEATION = "ideation"
    DEVELOPMENT = "development"
    TESTING = "testing"
    LAUNCH = "launch"
    GROWTH = "growth"


class Role(str, Enum):
    BUILDER = "builder"
    MENTOR = "mentor"
    LEAD = "lead"
    GUEST = "guest"


class UpdateType(str, Enum):
    DAILY = "daily"
    MILESTONE = "milestone"
    MENTOR_MEETING = "mentor_meeting"


class BroadcastType(str, Enum):
    ALL = "all"
    TEAM = "team"
    ROLE = "role"


class ResourceType(str, Enum):
    YOUTUBE = "youtube"
    ARTICLE = "article"
    DOCUMENTATION = "documentation"
    TUTORIAL = "tutorial"
    TOOL = "tool"


class ActionKind(str, Enum):
    """Side-effecting actions the Oracle can perform on behalf of a user."""

    BROADCAST = "broadcast"
    ASSIGN_USER = "assign_user"
    CREATE_UPDATE = "create_update"
    UPDATE_STATUS = "update_status"
    SEND_MESSAGE = "send_message"
    NONE = "none"


# =============================================================================
# Store-backed entities
# =============================================================================


class Team(BaseModel):
    """A cohort team. Unknown columns are retained for lead-level views."""

    model_config = ConfigDict(extra="allow")

    id: str
    name: str
    description: str | None = None
    stage: Stage = Stage.IDEATION
    tags: list[str] = Field(default_factory=list)
    mentor_id: str | None = None
    archived: bool = False

    @model_validator(mode="before")
    @classmethod
    def _coerce_stage(cls, data: Any) -> Any:
        # Rows with a missing or unknown stage are treated as ideation
        if isinstance(data, dict):
            stage = data.get("stage")
            if stage not in {s.value for s in Stage} and not isinstance(stage, Stage):
                data = {**data, "stage": Stage.IDEATION}
            if data.get("tags") is None:
                data = {**data, "tags": []}
        return data


class Update(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str | None = None
    team_id: str
    content: str
    type: UpdateType = UpdateType.DAILY
    created_by: str | None = None
    created_at: datetime | None = None


class Member(BaseModel):
    """Community member profile."""

    model_config = ConfigDict(extra="allow")

    id: str
    name: str
    role: Role
    skills: list[str] = Field(default_factory=list)
    help_needed: list[str] = Field(default_factory=list)
    experience_level: str | None = None
    team_id: str | None = None
    bio: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _null_lists(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = {
                **data,
                "skills": data.get("skills") or [],
                "help_needed": data.get("help_needed") or [],
            }
        return data


class Message(BaseModel):
    sender_id: str | None = None
    sender_role: Role | None = None
    receiver_id: str | None = None
    receiver_role: Role | None = None
    team_id: str | None = None
    content: str
    is_broadcast: bool = False
    broadcast_type: BroadcastType | None = None
    broadcast_target: str | None = None
    read: bool = False


# =============================================================================
# Ephemeral pipeline values
# =============================================================================


class OracleResource(BaseModel):
    title: str
    url: str
    type: ResourceType
    description: str
    relevance: float = Field(ge=0.0, le=1.0)


class StageAnalysis(BaseModel):
    stage: Stage
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str


# Payload fields each action may carry; everything else is dropped on decode
ACTION_FIELDS: dict[ActionKind, set[str]] = {
    ActionKind.BROADCAST: {"content", "broadcast_type", "target_value"},
    ActionKind.ASSIGN_USER: {"target_value", "team_id", "team_name"},
    ActionKind.CREATE_UPDATE: {"update_text"},
    ActionKind.UPDATE_STATUS: {"status_text"},
    ActionKind.SEND_MESSAGE: {"target_type", "target_value", "content"},
    ActionKind.NONE: set(),
}

_PAYLOAD_FIELDS = set().union(*ACTION_FIELDS.values())


class IntentDescriptor(BaseModel):
    """Structured description of a requested action, decoded from untrusted text."""

    model_config = ConfigDict(extra="ignore")

    action: ActionKind
    target_type: Literal["role", "team", "user"] | None = None
    target_value: str | None = None
    content: str | None = None
    update_text: str | None = None
    status_text: str | None = None
    team_id: str | None = None
    team_name: str | None = None
    broadcast_type: BroadcastType | None = None

    @model_validator(mode="after")
    def _drop_irrelevant_fields(self) -> "IntentDescriptor":
        allowed = ACTION_FIELDS[self.action]
        for field_name in _PAYLOAD_FIELDS - allowed:
            if getattr(self, field_name) is not None:
                setattr(self, field_name, None)
        return self

    @property
    def is_actionable(self) -> bool:
        return self.action != ActionKind.NONE


class CommandResult(BaseModel):
    executed: bool
    action: ActionKind
    message: str
    data: dict[str, Any] | None = None


# =============================================================================
# Request / response
# =============================================================================


class UserProfile(BaseModel):
    """Requester profile as sent by the client."""

    model_config = ConfigDict(extra="allow")

    id: str
    name: str
    role: Role
    skills: list[str] = Field(default_factory=list)
    help_needed: list[str] = Field(default_factory=list)
    experience_level: str | None = None
    bio: str | None = None
    team_id: str | None = None


class ContextRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    needs_resources: bool = Field(default=True, alias="needsResources")
    needs_mentions: bool = Field(default=True, alias="needsMentions")
    needs_team_context: bool = Field(default=False, alias="needsTeamContext")
    needs_personalization: bool = Field(default=False, alias="needsPersonalization")


class OracleRequest(BaseModel):
    """Inbound Oracle query.

    Fields are deliberately loose here; ``validate_oracle_request`` produces the
    structured 400 errors clients rely on.
    """

    model_config = ConfigDict(populate_by_name=True)

    query: str | None = None
    role: str | None = None
    team_id: str | None = Field(default=None, alias="teamId")
    user_id: str | None = Field(default=None, alias="userId")
    user_profile: dict[str, Any] | None = Field(default=None, alias="userProfile")
    context_request: ContextRequest | None = Field(default=None, alias="contextRequest")


class ValidatedOracleRequest(BaseModel):
    query: str
    role: Role
    team_id: str | None = None
    user_id: str | None = None
    profile: UserProfile | None = None
    context_request: ContextRequest = Field(default_factory=ContextRequest)


class OracleResponse(BaseModel):
    answer: str
    sources: int = 0
    confidence: int = Field(ge=0, le=100)
    detected_stage: Stage | None = None
    stage_confidence: float | None = None
    stage_reasoning: str | None = None
    resources: list[OracleResource] = Field(default_factory=list)
    mentions: list[str] = Field(default_factory=list)
    next_actions: list[str] = Field(default_factory=list)
    suggested_frameworks: list[str] = Field(default_factory=list)
    personalization: dict[str, Any] | None = None
    command_executed: bool = False
    command_type: ActionKind | None = None
    command_result: str | None = None
    model_used: str | None = None
    processing_time_ms: int = 0
