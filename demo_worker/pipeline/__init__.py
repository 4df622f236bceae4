"""
Demo Generation Pipeline

  Pipeline:      Script → Voice → Avatar (optional) → Combine → Finalize
  Reconcile:     Repair projects whose avatar render finished after the run
  Projects:      Creation from pasted code or a scanned GitHub repository
  Conversation:  Live Q&A about a project's code
"""

from .orchestrator import DemoPipelineService
from .reconcile import ReconciliationSweeper
from .routes import (
    conversation_router,
    pipeline_router,
    project_router,
    reconcile_router,
)
from .models import ProjectStatus, StepName, StepState

__all__ = [
    "DemoPipelineService",
    "ReconciliationSweeper",
    "conversation_router",
    "pipeline_router",
    "project_router",
    "reconcile_router",
    "ProjectStatus",
    "StepName",
    "StepState",
]
