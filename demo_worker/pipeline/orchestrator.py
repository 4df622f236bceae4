"""
DemoPipelineService: per-project pipeline orchestrator.

Chains the steps with durable status tracking:
  init      → mark the project processing, write a fresh step list
  script    → narration text (provider gateway)
  voice     → narration audio (ElevenLabs + storage)
  avatar    → Tavus replica render, only when requested
  combine   → pick the deliverable
  finalize  → write video_url + completed

Every step transition is written to the project row as it happens. Any
failure marks the failing step, writes ``failed`` on the project and ends
the run. A run therefore always finishes as completed or failed.
"""

import time
import uuid
import logging
from typing import Optional

from .. import metrics
from ..errors import ConfigurationError, DemoWorkerError, ProjectStateError
from ..run_lock import RunLock
from .avatar import AvatarVideoGenerator
from .compose import VideoComposer
from .models import (
    STEP_TRANSITIONS,
    PipelineRunResult,
    PipelineStep,
    Project,
    ProjectStatus,
    StepName,
    StepState,
    step_plan,
)
from .project_service import ProjectStore, _now_iso
from .script_gen import ScriptGenerator
from .voice import VoiceSynthesizer

logger = logging.getLogger(__name__)


class StepTracker:
    """In-memory step list for one run, mirrored to the project row on every change."""

    def __init__(self, project_id: str, include_avatar: bool, store: ProjectStore):
        self.project_id = project_id
        self._store = store
        self.steps = [PipelineStep(name=name) for name in step_plan(include_avatar)]

    def _get(self, name: StepName) -> PipelineStep:
        for step in self.steps:
            if step.name == name:
                return step
        raise KeyError(f"Step {name.value} is not part of this run")

    @property
    def current(self) -> Optional[StepName]:
        for step in self.steps:
            if step.status == StepState.PROCESSING:
                return step.name
        return None

    def transition(
        self,
        name: StepName,
        state: StepState,
        message: Optional[str] = None,
        error_kind: Optional[str] = None,
    ) -> None:
        """Move a step forward in memory. Backward moves are a bug."""
        step = self._get(name)
        if state not in STEP_TRANSITIONS[step.status]:
            raise ValueError(
                f"Illegal step transition {name.value}: {step.status.value} → {state.value}"
            )
        step.status = state
        step.message = message
        step.error_kind = error_kind
        step.updated_at = _now_iso()
        logger.info(f"[{self.project_id}] {name.value} → {state.value}" + (f" ({message})" if message else ""))

    def failing_step(self) -> StepName:
        """The step a failure belongs to: the running one, else the last one reached."""
        if self.current is not None:
            return self.current
        reached = [s.name for s in self.steps if s.status != StepState.PENDING]
        return reached[-1] if reached else StepName.INIT

    def preview(self, name: StepName, state: StepState) -> list[PipelineStep]:
        """Copy of the step list with one step moved, leaving the tracker as is."""
        steps = [step.model_copy() for step in self.steps]
        for step in steps:
            if step.name == name:
                step.status = state
                step.updated_at = _now_iso()
        return steps

    def start(self, name: StepName, message: Optional[str] = None) -> None:
        self.transition(name, StepState.PROCESSING, message)
        self._store.save_steps(self.project_id, self.steps)

    def complete(self, name: StepName, message: Optional[str] = None, *, persist: bool = True) -> None:
        self.transition(name, StepState.COMPLETED, message)
        if persist:
            self._store.save_steps(self.project_id, self.steps)


class DemoPipelineService:
    """
    Production pipeline orchestrator.

    Usage:
        service = DemoPipelineService(store, scripts, voice, avatar, composer, run_lock)
        result = await service.run(project_id)
    """

    def __init__(
        self,
        store: ProjectStore,
        scripts: ScriptGenerator,
        voice: VoiceSynthesizer,
        avatar: Optional[AvatarVideoGenerator],
        composer: VideoComposer,
        run_lock: Optional[RunLock] = None,
    ):
        self._store = store
        self._scripts = scripts
        self._voice = voice
        self._avatar = avatar
        self._composer = composer
        self._lock = run_lock or RunLock()

    # ── Entry points ─────────────────────────────────────────────────────

    async def run(self, project_id: str) -> PipelineRunResult:
        """
        Run the whole pipeline for a project.

        Raises:
            ProjectNotFoundError: unknown project.
            ProjectStateError:    project already completed, or a run for it
                                  is already in progress.

        Every other failure is recorded on the project and reported in the
        returned result with status ``failed``.
        """
        token = self._lock.acquire(project_id)
        if token is None:
            raise ProjectStateError(f"A pipeline run for project {project_id} is already in progress")

        metrics.add_gauge("active_runs", 1)
        try:
            project = self._store.get(project_id)
            if project.status == ProjectStatus.COMPLETED:
                raise ProjectStateError(f"Project {project_id} is already completed")
            return await self._execute(project)
        finally:
            metrics.add_gauge("active_runs", -1)
            self._lock.release(project_id, token)

    async def run_safely(self, project_id: str) -> Optional[PipelineRunResult]:
        """Background-task wrapper for run: refusals are logged, not raised."""
        try:
            return await self.run(project_id)
        except DemoWorkerError as e:
            logger.warning(f"[{project_id}] background run not started: {e}")
            return None

    # ── The run ──────────────────────────────────────────────────────────

    async def _execute(self, project: Project) -> PipelineRunResult:
        attempt_id = uuid.uuid4().hex[:12]
        tracker = StepTracker(project.id, project.include_avatar, self._store)
        job_id = project.tavus_video_id
        metrics.inc_counter("pipeline.runs")
        logger.info(f"[{project.id}] pipeline start (attempt {attempt_id})")

        try:
            # ── Init ─────────────────────────────────────────────────────
            tracker.transition(StepName.INIT, StepState.PROCESSING, "Preparing project")
            if not self._store.mark_processing(project.id, tracker.steps):
                # completed by someone else since we read it
                return self._current_result(project.id)
            tracker.complete(StepName.INIT)

            # ── Script ───────────────────────────────────────────────────
            tracker.start(StepName.SCRIPT, "Generating narration script")
            t0 = time.monotonic()
            script = await self._scripts.generate(project)
            self._timed(StepName.SCRIPT, t0)
            tracker.complete(StepName.SCRIPT, f"{len(script.split())} words")

            # ── Voice ────────────────────────────────────────────────────
            tracker.start(StepName.VOICE, "Synthesizing narration")
            t0 = time.monotonic()
            audio_url = await self._voice.synthesize(
                project.id, attempt_id, script, project.voice_style
            )
            self._timed(StepName.VOICE, t0)
            tracker.complete(StepName.VOICE)

            # ── Avatar ───────────────────────────────────────────────────
            avatar_url = None
            if project.include_avatar:
                if self._avatar is None:
                    tracker.start(StepName.AVATAR)
                    raise ConfigurationError("Avatar video requested but TAVUS_API_KEY is not set")

                tracker.start(
                    StepName.AVATAR,
                    f"Resuming avatar job {job_id}" if job_id else "Submitting avatar render",
                )

                async def record_job(new_job_id: str) -> None:
                    nonlocal job_id
                    self._store.set_job_id(project.id, new_job_id)
                    job_id = new_job_id

                t0 = time.monotonic()
                avatar_url = await self._avatar.generate(
                    script, audio_url,
                    on_submitted=record_job,
                    existing_job_id=job_id,
                )
                self._timed(StepName.AVATAR, t0)
                tracker.complete(StepName.AVATAR)

            # ── Combine ──────────────────────────────────────────────────
            tracker.start(StepName.COMBINE, "Combining media")
            video_url = await self._composer.compose(
                avatar_url,
                audio_url,
                code=project.code_snippet,
                include_code=project.include_code,
                demo_type=project.demo_type,
            )
            tracker.complete(StepName.COMBINE)

            # ── Finalize ─────────────────────────────────────────────────
            tracker.start(StepName.FINALIZE, "Saving deliverable")
            final_steps = tracker.preview(StepName.FINALIZE, StepState.COMPLETED)
            if not self._store.mark_completed(project.id, video_url, final_steps):
                logger.info(f"[{project.id}] already completed elsewhere; keeping stored URL")
                return self._current_result(project.id)

        except Exception as e:
            return self._record_failure(project.id, tracker, job_id, e)

        tracker.complete(StepName.FINALIZE, persist=False)
        self._bootstrap_analytics(project.id)
        metrics.inc_counter("pipeline.completed")
        logger.info(f"[{project.id}] pipeline complete: {video_url}")
        return PipelineRunResult(
            project_id=project.id,
            status=ProjectStatus.COMPLETED,
            video_url=video_url,
            tavus_video_id=job_id,
            steps=tracker.steps,
        )

    # ── Helpers ──────────────────────────────────────────────────────────

    def _record_failure(
        self,
        project_id: str,
        tracker: StepTracker,
        job_id: Optional[str],
        error: Exception,
    ) -> PipelineRunResult:
        step = tracker.failing_step()
        kind = getattr(error, "kind", "internal")
        message = str(error) or error.__class__.__name__
        logger.error(f"Pipeline failed for project {project_id} at {step.value}: {message}", exc_info=True)

        try:
            tracker.transition(step, StepState.ERROR, message, kind)
        except ValueError:
            # step had already finished; the failure came from the write after it
            pass

        metrics.inc_counter("pipeline.failed")
        metrics.inc_counter(f"pipeline.failed.{kind}")
        metrics.record_error(step.value, kind, message, project_id)

        try:
            self._store.mark_failed(project_id, f"{step.value}: {message}", tracker.steps)
        except Exception as write_error:
            logger.error(
                f"[{project_id}] could not record failure ({write_error}); original error: {message}"
            )

        return PipelineRunResult(
            project_id=project_id,
            status=ProjectStatus.FAILED,
            tavus_video_id=job_id,
            steps=tracker.steps,
            error=message,
        )

    def _current_result(self, project_id: str) -> PipelineRunResult:
        project = self._store.get(project_id)
        return PipelineRunResult(
            project_id=project.id,
            status=project.status,
            video_url=project.video_url,
            tavus_video_id=project.tavus_video_id,
            steps=project.pipeline_steps,
            error=project.error_message,
        )

    def _bootstrap_analytics(self, project_id: str) -> None:
        try:
            self._store.ensure_analytics(project_id)
        except Exception as e:
            logger.warning(f"[{project_id}] analytics row not created: {e}")

    @staticmethod
    def _timed(step: StepName, started: float) -> None:
        metrics.record_latency(f"step.{step.value}", (time.monotonic() - started) * 1000)
