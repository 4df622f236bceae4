"""
Project persistence over Supabase.

The projects row is the only shared mutable state of the pipeline. Every
write here is a single-row partial update keyed by id that also bumps
updated_at. Writes that must not clobber a terminal state are conditional
(status filter in the same UPDATE), and the returned rows tell the caller
whether anything actually changed.

All access goes through the service-role client (RLS bypass).
"""

import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from supabase import create_client, Client

from ..config import WorkerConfig
from ..errors import (
    ConfigurationError,
    PersistenceError,
    ProjectNotFoundError,
    ProjectStateError,
    SessionNotFoundError,
)
from .models import PipelineStep, Project, ProjectStatus

logger = logging.getLogger(__name__)

PROJECTS = "projects"
ANALYTICS = "analytics"
SESSIONS = "conversation_sessions"


# ── Supabase Service Client (bypasses RLS) ───────────────────────────────────

def create_service_client(config: WorkerConfig) -> Client:
    """Build the service-role Supabase client from config."""
    if not config.supabase_url or not config.supabase_service_key:
        raise ConfigurationError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")
    return create_client(config.supabase_url, config.supabase_service_key)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _steps_payload(steps: list[PipelineStep]) -> list[dict]:
    return [step.model_dump(mode="json") for step in steps]


class ProjectStore:
    """Reads and conditional writes against the projects table."""

    def __init__(self, client: Client):
        self._sb = client

    # ═════════════════════════════════════════════════════════════════════════
    # Reads
    # ═════════════════════════════════════════════════════════════════════════

    def get(self, project_id: str) -> Project:
        try:
            result = self._sb.table(PROJECTS).select("*").eq("id", project_id).limit(1).execute()
        except Exception as e:
            raise PersistenceError(f"Failed to load project {project_id}: {e}") from e
        if not result.data:
            raise ProjectNotFoundError(f"Project {project_id} not found")
        return Project.from_row(result.data[0])

    def list_reconcilable(self, project_id: Optional[str] = None) -> list[Project]:
        """
        Projects that have an avatar job id.

        Sweep form (no id) skips completed projects; the single-project form
        returns the project whatever its status so the caller can report it.
        """
        try:
            query = self._sb.table(PROJECTS).select("*").not_.is_("tavus_video_id", "null")
            if project_id:
                query = query.eq("id", project_id)
            else:
                query = query.neq("status", ProjectStatus.COMPLETED.value)
            result = query.execute()
        except Exception as e:
            raise PersistenceError(f"Failed to list reconcilable projects: {e}") from e
        return [Project.from_row(row) for row in result.data or []]

    # ═════════════════════════════════════════════════════════════════════════
    # Creation
    # ═════════════════════════════════════════════════════════════════════════

    def create(self, fields: dict) -> Project:
        """Insert a new project in processing status."""
        row = {
            "id": str(uuid4()),
            **fields,
            "status": ProjectStatus.PROCESSING.value,
            "tavus_video_id": None,
            "video_url": None,
            "pipeline_steps": [],
            "created_at": _now_iso(),
            "updated_at": _now_iso(),
        }
        try:
            result = self._sb.table(PROJECTS).insert(row).execute()
        except Exception as e:
            raise PersistenceError(f"Failed to create project: {e}") from e
        created = result.data[0] if result.data else row
        logger.info(f"Project {created['id']} created ({created.get('title')})")
        return Project.from_row(created)

    # ═════════════════════════════════════════════════════════════════════════
    # Pipeline writes
    # ═════════════════════════════════════════════════════════════════════════

    def _update(self, project_id: str, fields: dict, *, guard=None) -> bool:
        """Partial update keyed by id. ``guard`` narrows the filter further."""
        payload = {**fields, "updated_at": _now_iso()}
        try:
            query = self._sb.table(PROJECTS).update(payload).eq("id", project_id)
            if guard is not None:
                query = guard(query)
            result = query.execute()
        except Exception as e:
            raise PersistenceError(f"Failed to update project {project_id}: {e}") from e
        return bool(result.data)

    def mark_processing(self, project_id: str, steps: list[PipelineStep]) -> bool:
        """Enter (or re-enter) processing. Never touches a completed project."""
        return self._update(
            project_id,
            {
                "status": ProjectStatus.PROCESSING.value,
                "error_message": None,
                "pipeline_steps": _steps_payload(steps),
            },
            guard=lambda q: q.neq("status", ProjectStatus.COMPLETED.value),
        )

    def save_steps(self, project_id: str, steps: list[PipelineStep]) -> None:
        self._update(project_id, {"pipeline_steps": _steps_payload(steps)})

    def set_job_id(self, project_id: str, job_id: str) -> None:
        """
        Record the avatar job id. Only fills an empty slot; an existing,
        different id is never overwritten.
        """
        changed = self._update(
            project_id,
            {"tavus_video_id": job_id},
            guard=lambda q: q.is_("tavus_video_id", "null"),
        )
        if changed:
            logger.info(f"Project {project_id} → avatar job {job_id}")
            return
        current = self.get(project_id)
        if current.tavus_video_id != job_id:
            raise ProjectStateError(
                f"Project {project_id} already has avatar job {current.tavus_video_id}"
            )

    def mark_completed(
        self,
        project_id: str,
        video_url: str,
        steps: Optional[list[PipelineStep]] = None,
    ) -> bool:
        """Write the deliverable URL and completed. No-op on a completed project."""
        if not video_url:
            raise ValueError("A completed project needs a video_url")
        fields: dict = {
            "status": ProjectStatus.COMPLETED.value,
            "video_url": video_url,
            "error_message": None,
        }
        if steps is not None:
            fields["pipeline_steps"] = _steps_payload(steps)
        changed = self._update(
            project_id, fields,
            guard=lambda q: q.neq("status", ProjectStatus.COMPLETED.value),
        )
        if changed:
            logger.info(f"Project {project_id} → completed")
        return changed

    def mark_failed(
        self,
        project_id: str,
        error_message: str,
        steps: Optional[list[PipelineStep]] = None,
        *,
        only_if_processing: bool = False,
    ) -> bool:
        """
        Write failed. Completed projects are never downgraded; with
        ``only_if_processing`` an already-failed project is left alone too.
        """
        fields: dict = {
            "status": ProjectStatus.FAILED.value,
            "error_message": error_message[:1000],
        }
        if steps is not None:
            fields["pipeline_steps"] = _steps_payload(steps)
        if only_if_processing:
            guard = lambda q: q.eq("status", ProjectStatus.PROCESSING.value)  # noqa: E731
        else:
            guard = lambda q: q.neq("status", ProjectStatus.COMPLETED.value)  # noqa: E731
        changed = self._update(project_id, fields, guard=guard)
        if changed:
            logger.info(f"Project {project_id} → failed: {error_message}")
        return changed

    # ═════════════════════════════════════════════════════════════════════════
    # Side tables
    # ═════════════════════════════════════════════════════════════════════════

    def ensure_analytics(self, project_id: str) -> None:
        """Create the zeroed analytics row for a finished project if missing."""
        try:
            self._sb.table(ANALYTICS).upsert(
                {"project_id": project_id, "views": 0, "shares": 0, "completion_rate": 0},
                on_conflict="project_id",
                ignore_duplicates=True,
            ).execute()
        except Exception as e:
            raise PersistenceError(f"Failed to create analytics for {project_id}: {e}") from e

    def get_github_token(self, user_id: str) -> str:
        try:
            result = (
                self._sb.table("profiles")
                .select("github_access_token")
                .eq("id", user_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise PersistenceError(f"Failed to load profile {user_id}: {e}") from e
        token = result.data[0].get("github_access_token") if result.data else None
        if not token:
            raise ConfigurationError("GitHub access token not found. Connect GitHub first.")
        return token


class SessionStore:
    """Conversation sessions; rows are created by the app before the worker sees them."""

    def __init__(self, client: Client):
        self._sb = client

    def get(self, session_id: str) -> dict:
        try:
            result = self._sb.table(SESSIONS).select("*").eq("id", session_id).limit(1).execute()
        except Exception as e:
            raise PersistenceError(f"Failed to load session {session_id}: {e}") from e
        if not result.data:
            raise SessionNotFoundError(f"Conversation session {session_id} not found")
        return result.data[0]

    def update(self, session_id: str, fields: dict) -> None:
        try:
            self._sb.table(SESSIONS).update(
                {**fields, "updated_at": _now_iso()}
            ).eq("id", session_id).execute()
        except Exception as e:
            raise PersistenceError(f"Failed to update session {session_id}: {e}") from e
        logger.info(f"Session {session_id} → {fields.get('status', 'updated')}")
