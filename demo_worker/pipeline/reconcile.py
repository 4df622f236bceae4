"""
Reconciliation of avatar renders against Tavus.

A pipeline run can die (timeout, crash, redeploy) while Tavus keeps
rendering. Because the job id is written onto the project right after
submission, the sweeper can ask Tavus directly and repair the row:

  provider completed + URL → video_url + completed
  provider failed          → failed, only while the project is processing
  anything else            → left alone

Writes are conditional, so running the sweep twice changes nothing the
second time. One project's error never stops the rest of the sweep.
"""

import logging
from typing import Optional

from .. import metrics
from ..tavus import TavusClient
from .models import (
    Project,
    ProjectReconcileResponse,
    ProjectStatus,
    ReconcileOutcome,
    ReconcileReport,
    ReconcileResult,
)
from .project_service import ProjectStore

logger = logging.getLogger(__name__)


class ReconciliationSweeper:
    def __init__(self, store: ProjectStore, client: TavusClient):
        self._store = store
        self._client = client

    async def reconcile(self, project_id: Optional[str] = None) -> ReconcileReport:
        """Sweep every unfinished project with a job id, or just ``project_id``."""
        projects = self._store.list_reconcilable(project_id)
        report = ReconcileReport(total=len(projects))
        logger.info(f"Reconciling {len(projects)} project(s)")

        for project in projects:
            result = await self._reconcile_one(project)
            report.results.append(result)
            if result.updated:
                report.updated += 1

        metrics.inc_counter("reconcile.sweeps")
        metrics.inc_counter("reconcile.updated", report.updated)
        logger.info(f"Reconcile done: {report.updated}/{report.total} updated")
        return report

    async def reconcile_project(self, project_id: str) -> ProjectReconcileResponse:
        """
        Single-project form.

        Raises:
            ProjectNotFoundError: unknown project.
        """
        report = await self.reconcile(project_id)
        project = self._store.get(project_id)

        if not report.results:
            return ProjectReconcileResponse(
                project_id=project_id,
                status=project.status,
                video_url=project.video_url,
                message="No avatar job recorded for this project",
            )

        result = report.results[0]
        messages = {
            ReconcileOutcome.COMPLETED: "Video completed and saved",
            ReconcileOutcome.ALREADY_COMPLETED: "Project already completed",
            ReconcileOutcome.FAILED: "Avatar render failed",
            ReconcileOutcome.STILL_PROCESSING: "Video is still being generated",
            ReconcileOutcome.PROVIDER_ERROR: f"Provider check failed: {result.error}",
            ReconcileOutcome.UPDATE_ERROR: f"Could not save provider result: {result.error}",
        }
        return ProjectReconcileResponse(
            project_id=project_id,
            status=project.status,
            video_url=project.video_url,
            provider_status=result.provider_status,
            message=messages[result.outcome],
        )

    async def _reconcile_one(self, project: Project) -> ReconcileResult:
        result = ReconcileResult(
            project_id=project.id,
            title=project.title,
            tavus_video_id=project.tavus_video_id,
            outcome=ReconcileOutcome.STILL_PROCESSING,
        )

        if project.status == ProjectStatus.COMPLETED:
            result.outcome = ReconcileOutcome.ALREADY_COMPLETED
            result.video_url = project.video_url
            return result

        try:
            job = await self._client.get_video(project.tavus_video_id)
        except Exception as e:
            logger.warning(f"[{project.id}] Tavus check failed: {e}")
            result.outcome = ReconcileOutcome.PROVIDER_ERROR
            result.error = str(e)
            return result

        result.provider_status = job.raw_status

        try:
            if job.status == "completed" and job.download_url:
                changed = self._store.mark_completed(project.id, job.download_url)
                result.video_url = job.download_url
                if changed:
                    result.outcome = ReconcileOutcome.COMPLETED
                    result.updated = True
                    self._bootstrap_analytics(project.id)
                else:
                    result.outcome = ReconcileOutcome.ALREADY_COMPLETED
            elif job.status == "failed":
                result.outcome = ReconcileOutcome.FAILED
                if project.status == ProjectStatus.PROCESSING:
                    changed = self._store.mark_failed(
                        project.id,
                        f"avatar: Tavus reported {job.raw_status}"
                        + (f" ({job.error})" if job.error else ""),
                        only_if_processing=True,
                    )
                    result.updated = changed
            else:
                result.outcome = ReconcileOutcome.STILL_PROCESSING
        except Exception as e:
            logger.warning(f"[{project.id}] reconcile write failed: {e}")
            result.outcome = ReconcileOutcome.UPDATE_ERROR
            result.error = str(e)

        logger.info(f"[{project.id}] reconcile → {result.outcome.value}")
        return result

    def _bootstrap_analytics(self, project_id: str) -> None:
        try:
            self._store.ensure_analytics(project_id)
        except Exception as e:
            logger.warning(f"[{project_id}] analytics row not created: {e}")
