"""Shared fixtures and in-memory fakes for demo-worker tests."""

from __future__ import annotations

import copy
from typing import Optional
from unittest.mock import AsyncMock, patch

import pytest

from demo_worker import metrics
from demo_worker.config import WorkerConfig, set_config
from demo_worker.errors import (
    EmptyResponseError,
    ProjectNotFoundError,
    ProjectStateError,
    ProviderCallError,
    SessionNotFoundError,
)
from demo_worker.pipeline.models import PipelineStep, Project
from demo_worker.tavus import AvatarJobStatus


# ── Fakes ────────────────────────────────────────────────────────────────────


class FakeProjectStore:
    """Mirrors ProjectStore semantics (conditional writes included) over a dict."""

    def __init__(self):
        self.rows: dict[str, dict] = {}
        self.writes: list[tuple[str, str, dict]] = []  # (op, project_id, fields)
        self.analytics: set[str] = set()
        self.fail_on: set[str] = set()
        self.github_tokens: dict[str, str] = {}

    def add(self, **fields) -> Project:
        row = {
            "id": "proj-1",
            "user_id": "user-1",
            "title": "Rate limiter",
            "description": "Sliding window limiter",
            "code_snippet": "def allow(user):\n    return True\n",
            "language": "python",
            "demo_type": "walkthrough",
            "voice_style": "professional",
            "include_code": True,
            "include_avatar": False,
            "status": "processing",
            "tavus_video_id": None,
            "video_url": None,
            "pipeline_steps": [],
            "error_message": None,
        }
        row.update(fields)
        self.rows[row["id"]] = row
        return Project.from_row(row)

    def row(self, project_id: str) -> dict:
        return self.rows[project_id]

    def _check(self, op: str):
        if op in self.fail_on:
            from demo_worker.errors import PersistenceError

            raise PersistenceError(f"{op} failed")

    def _write(self, op: str, project_id: str, fields: dict):
        self._check(op)
        self.rows[project_id].update(fields)
        self.writes.append((op, project_id, copy.deepcopy(fields)))

    @staticmethod
    def _steps(steps: list[PipelineStep]) -> list[dict]:
        return [s.model_dump(mode="json") for s in steps]

    # ── ProjectStore interface ──

    def get(self, project_id: str) -> Project:
        self._check("get")
        if project_id not in self.rows:
            raise ProjectNotFoundError(f"Project {project_id} not found")
        return Project.from_row(self.rows[project_id])

    def list_reconcilable(self, project_id: Optional[str] = None) -> list[Project]:
        self._check("list_reconcilable")
        out = []
        for row in self.rows.values():
            if not row.get("tavus_video_id"):
                continue
            if project_id:
                if row["id"] == project_id:
                    out.append(Project.from_row(row))
            elif row["status"] != "completed":
                out.append(Project.from_row(row))
        return out

    def create(self, fields: dict) -> Project:
        return self.add(id=f"proj-{len(self.rows) + 1}", **fields)

    def mark_processing(self, project_id: str, steps: list[PipelineStep]) -> bool:
        if self.rows[project_id]["status"] == "completed":
            return False
        self._write("mark_processing", project_id, {
            "status": "processing", "error_message": None, "pipeline_steps": self._steps(steps),
        })
        return True

    def save_steps(self, project_id: str, steps: list[PipelineStep]) -> None:
        self._write("save_steps", project_id, {"pipeline_steps": self._steps(steps)})

    def set_job_id(self, project_id: str, job_id: str) -> None:
        current = self.rows[project_id].get("tavus_video_id")
        if current and current != job_id:
            raise ProjectStateError(f"Project {project_id} already has avatar job {current}")
        self._write("set_job_id", project_id, {"tavus_video_id": job_id})

    def mark_completed(self, project_id: str, video_url: str, steps=None) -> bool:
        if self.rows[project_id]["status"] == "completed":
            return False
        fields = {"status": "completed", "video_url": video_url, "error_message": None}
        if steps is not None:
            fields["pipeline_steps"] = self._steps(steps)
        self._write("mark_completed", project_id, fields)
        return True

    def mark_failed(self, project_id: str, error_message: str, steps=None, *, only_if_processing=False) -> bool:
        status = self.rows[project_id]["status"]
        if status == "completed" or (only_if_processing and status != "processing"):
            return False
        fields = {"status": "failed", "error_message": error_message}
        if steps is not None:
            fields["pipeline_steps"] = self._steps(steps)
        self._write("mark_failed", project_id, fields)
        return True

    def ensure_analytics(self, project_id: str) -> None:
        self._check("ensure_analytics")
        self.analytics.add(project_id)

    def get_github_token(self, user_id: str) -> str:
        from demo_worker.errors import ConfigurationError

        if user_id not in self.github_tokens:
            raise ConfigurationError("GitHub access token not found. Connect GitHub first.")
        return self.github_tokens[user_id]


class FakeSessionStore:
    def __init__(self):
        self.rows = {"s1": {"id": "s1", "project_id": "proj-1", "status": "initializing"}}
        self.updates: list[tuple[str, dict]] = []

    def get(self, session_id: str) -> dict:
        if session_id not in self.rows:
            raise SessionNotFoundError(f"Conversation session {session_id} not found")
        return dict(self.rows[session_id])

    def update(self, session_id: str, fields: dict) -> None:
        self.rows[session_id].update(fields)
        self.updates.append((session_id, fields))


class FakeTextProvider:
    def __init__(self, name: str, text: str = "", error: Optional[Exception] = None, configured: bool = True):
        self.name = name
        self.text = text
        self.error = error
        self.configured = configured
        self.calls: list[dict] = []

    def is_configured(self) -> bool:
        return self.configured

    async def generate(self, prompt, *, system_prompt, max_tokens, temperature):
        self.calls.append({
            "prompt": prompt,
            "system_prompt": system_prompt,
            "max_tokens": max_tokens,
            "temperature": temperature,
        })
        if self.error is not None:
            raise self.error
        if not self.text:
            raise EmptyResponseError(self.name)
        return self.text


class FakeTTS:
    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.calls: list[tuple[str, str]] = []

    async def synthesize(self, text: str, voice_id: str) -> bytes:
        self.calls.append((text, voice_id))
        if self.error is not None:
            raise self.error
        return b"ID3-fake-mp3"


class FakeStorage:
    base = "https://cdn.test"

    def __init__(self):
        self.objects: dict[str, bytes] = {}

    async def store(self, key: str, data: bytes, content_type: str = "audio/mpeg") -> str:
        self.objects[key] = data
        return f"{self.base}/{key}"


class FakeTavus:
    """Scripted Tavus: ``statuses`` are returned in order, the last one repeats."""

    def __init__(self, statuses: Optional[list] = None, video_id: str = "tv-123"):
        self.statuses = list(statuses or [])
        self.video_id = video_id
        self.submitted: list[dict] = []
        self.polled: list[str] = []
        self.replica_id = "r-1"
        self.conversations: list[dict] = []
        self.ended: list[str] = []

    def is_configured(self) -> bool:
        return True

    async def create_video(self, script: str, audio_url: str) -> str:
        self.submitted.append({"script": script, "audio_url": audio_url})
        return self.video_id

    async def get_video(self, video_id: str) -> AvatarJobStatus:
        self.polled.append(video_id)
        item = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        if isinstance(item, Exception):
            raise item
        return item

    async def create_conversation(self, name: str, system_prompt: str) -> dict:
        self.conversations.append({"name": name, "system_prompt": system_prompt})
        return {"conversation_id": "conv-1", "conversation_url": "https://tavus.daily.co/conv-1"}

    async def end_conversation(self, conversation_id: str) -> None:
        self.ended.append(conversation_id)


def job(status: str, url: Optional[str] = None) -> AvatarJobStatus:
    from demo_worker.tavus import normalize_status

    return AvatarJobStatus(status=normalize_status(status), raw_status=status, download_url=url)


def provider_error(name: str, status: int = 500) -> ProviderCallError:
    return ProviderCallError(name, "boom", status)


# ── Fixtures ─────────────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def _isolate_globals():
    """Fresh config and metrics for every test; nothing read from the real env."""
    metrics.reset()
    set_config(WorkerConfig(environment="development"))
    yield
    set_config(None)
    metrics.reset()


@pytest.fixture
def store() -> FakeProjectStore:
    return FakeProjectStore()


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def no_sleep():
    """Make avatar polling instant."""
    with patch("demo_worker.pipeline.avatar.asyncio.sleep", new_callable=AsyncMock) as sleep:
        yield sleep
