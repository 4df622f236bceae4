"""
Pydantic models and enums for the demo generation pipeline.
"""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


# ── Project Status ───────────────────────────────────────────────────────────

class ProjectStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = {ProjectStatus.COMPLETED, ProjectStatus.FAILED}


# ── Pipeline Steps ───────────────────────────────────────────────────────────

class StepName(str, Enum):
    INIT = "init"
    SCRIPT = "script"
    VOICE = "voice"
    AVATAR = "avatar"
    COMBINE = "combine"
    FINALIZE = "finalize"


class StepState(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


# Allowed forward moves within one run
STEP_TRANSITIONS = {
    StepState.PENDING: {StepState.PROCESSING, StepState.ERROR},
    StepState.PROCESSING: {StepState.COMPLETED, StepState.ERROR},
    StepState.COMPLETED: set(),
    StepState.ERROR: set(),
}


class PipelineStep(BaseModel):
    name: StepName
    status: StepState = StepState.PENDING
    message: Optional[str] = None
    error_kind: Optional[str] = None
    updated_at: Optional[str] = None


def step_plan(include_avatar: bool) -> list[StepName]:
    """Ordered steps for a run; avatar only when requested."""
    steps = [StepName.INIT, StepName.SCRIPT, StepName.VOICE]
    if include_avatar:
        steps.append(StepName.AVATAR)
    steps += [StepName.COMBINE, StepName.FINALIZE]
    return steps


# ── Project Inputs ───────────────────────────────────────────────────────────

class DemoType(str, Enum):
    WALKTHROUGH = "walkthrough"
    PITCH = "pitch"
    TUTORIAL = "tutorial"


class VoiceStyle(str, Enum):
    PROFESSIONAL = "professional"
    CASUAL = "casual"
    ENTHUSIASTIC = "enthusiastic"


class Project(BaseModel):
    """A row of the projects table, as the pipeline sees it."""
    id: str
    user_id: Optional[str] = None
    title: str = ""
    description: Optional[str] = None
    code_snippet: str = ""
    language: str = "javascript"
    demo_type: DemoType = DemoType.WALKTHROUGH
    voice_style: VoiceStyle = VoiceStyle.PROFESSIONAL
    include_code: bool = True
    include_avatar: bool = False

    status: ProjectStatus = ProjectStatus.PROCESSING
    tavus_video_id: Optional[str] = None
    video_url: Optional[str] = None
    pipeline_steps: list[PipelineStep] = Field(default_factory=list)
    error_message: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: dict) -> "Project":
        """Convert a Supabase row, tolerating legacy or unknown enum values."""
        data = dict(row)
        if data.get("demo_type") not in DemoType._value2member_map_:
            data["demo_type"] = DemoType.WALKTHROUGH
        if data.get("voice_style") not in VoiceStyle._value2member_map_:
            data["voice_style"] = VoiceStyle.PROFESSIONAL
        # draft rows predate the pipeline; treat them as not yet terminal
        if data.get("status") not in ProjectStatus._value2member_map_:
            data["status"] = ProjectStatus.PROCESSING
        data["pipeline_steps"] = data.get("pipeline_steps") or []
        for key in ("title", "code_snippet"):
            if data.get(key) is None:
                data[key] = ""
        if not data.get("language"):
            data["language"] = "javascript"
        return cls(**data)


# ── Code Summary ─────────────────────────────────────────────────────────────

class CodeSummary(BaseModel):
    narrative_summary: str
    representative_code: str
    detected_language: str
    key_features: list[str] = Field(default_factory=list)
    files_analyzed: list[str] = Field(default_factory=list)
    total_lines: int = 0


# ── API Request Models ───────────────────────────────────────────────────────

class ProjectCreateRequest(BaseModel):
    """Create a project from pasted code or a GitHub repository."""
    user_id: str
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    code_snippet: Optional[str] = None
    language: Optional[str] = None
    github_repo: Optional[str] = Field(None, description="owner/name of a repository to scan")
    demo_type: DemoType = DemoType.WALKTHROUGH
    voice_style: VoiceStyle = VoiceStyle.PROFESSIONAL
    include_code: bool = True
    include_avatar: bool = False
    start: bool = Field(False, description="Kick off the pipeline in the background")


class PipelineRunRequest(BaseModel):
    project_id: str


class ConversationCreateRequest(BaseModel):
    session_id: str
    project_id: str


class ConversationMessageRequest(BaseModel):
    message: str = Field(..., min_length=1)


# ── API Response Models ──────────────────────────────────────────────────────

class PipelineRunResult(BaseModel):
    project_id: str
    status: ProjectStatus
    video_url: Optional[str] = None
    tavus_video_id: Optional[str] = None
    steps: list[PipelineStep] = Field(default_factory=list)
    error: Optional[str] = None


class ReconcileOutcome(str, Enum):
    COMPLETED = "completed"
    ALREADY_COMPLETED = "already_completed"
    FAILED = "failed"
    STILL_PROCESSING = "still_processing"
    PROVIDER_ERROR = "provider_error"
    UPDATE_ERROR = "update_error"


class ReconcileResult(BaseModel):
    project_id: str
    title: Optional[str] = None
    tavus_video_id: Optional[str] = None
    outcome: ReconcileOutcome
    updated: bool = False
    provider_status: Optional[str] = None
    video_url: Optional[str] = None
    error: Optional[str] = None


class ReconcileReport(BaseModel):
    updated: int = 0
    total: int = 0
    results: list[ReconcileResult] = Field(default_factory=list)


class ProjectReconcileResponse(BaseModel):
    """Single-project reconciliation answer."""
    project_id: str
    status: ProjectStatus
    video_url: Optional[str] = None
    provider_status: Optional[str] = None
    message: str = ""


class ConversationSessionResponse(BaseModel):
    session_id: str
    status: str
    tavus_session_id: Optional[str] = None
    conversation_url: Optional[str] = None
    mode: str = "text"


class ConversationReply(BaseModel):
    session_id: str
    response: str
    provider: str
