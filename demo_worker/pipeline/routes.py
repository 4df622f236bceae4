"""
FastAPI routes for the demo pipeline.

Project Endpoints:
  POST /projects                         Create project (pasted code or GitHub repo)
  GET  /projects/{id}                    Project with its step list

Pipeline Endpoints:
  POST /pipeline/run                     Run the full pipeline (waits for the result)
  GET  /pipeline/status/{project_id}     Current status + steps

Reconcile Endpoints:
  POST /reconcile                        Sweep all unfinished avatar jobs
  POST /reconcile/{project_id}           Reconcile one project

Conversation Endpoints:
  POST /conversations                    Open a session
  POST /conversations/{id}/messages      One chat turn
  POST /conversations/{id}/end           Close a session
"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException

from ..errors import (
    ConfigurationError,
    DemoWorkerError,
    ProjectNotFoundError,
    ProjectStateError,
    SessionNotFoundError,
)
from .models import (
    ConversationCreateRequest,
    ConversationMessageRequest,
    ConversationReply,
    ConversationSessionResponse,
    PipelineRunRequest,
    PipelineRunResult,
    Project,
    ProjectCreateRequest,
    ProjectReconcileResponse,
    ReconcileReport,
)
from .services import Services, get_services

logger = logging.getLogger(__name__)


def _http_error(action: str, e: Exception) -> HTTPException:
    """Map worker errors onto HTTP status codes."""
    if isinstance(e, (ProjectNotFoundError, SessionNotFoundError)):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, ProjectStateError):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, ConfigurationError):
        return HTTPException(status_code=503, detail=str(e))
    if isinstance(e, DemoWorkerError):
        logger.error(f"{action} failed: {e}")
        return HTTPException(status_code=502, detail=str(e))
    logger.error(f"{action} failed: {e}", exc_info=True)
    return HTTPException(status_code=500, detail=str(e))


# ═════════════════════════════════════════════════════════════════════════════
# Project Router
# ═════════════════════════════════════════════════════════════════════════════

project_router = APIRouter(prefix="/projects", tags=["projects"])


@project_router.post("", response_model=Project)
async def create_project(
    request: ProjectCreateRequest,
    background_tasks: BackgroundTasks,
    services: Services = Depends(get_services),
):
    """
    Create a project in processing status.

    With ``github_repo`` the code, description and language come from a scan
    of the repository. With ``start`` the pipeline runs in the background.

    Errors:
      - 400: neither code nor repository given
      - 503: GitHub not connected for this user
    """
    if not request.code_snippet and not request.github_repo:
        raise HTTPException(status_code=400, detail="Provide code_snippet or github_repo")

    try:
        code = request.code_snippet or ""
        description = request.description
        language = request.language

        if request.github_repo:
            token = services.projects.get_github_token(request.user_id)
            summary = await services.summarizer.summarize(request.github_repo, token)
            if not summary.files_analyzed:
                raise HTTPException(status_code=400, detail="No code files found in repository")
            code = code or summary.representative_code
            description = description or summary.narrative_summary
            language = language or summary.detected_language.lower()

        project = services.projects.create({
            "user_id": request.user_id,
            "title": request.title,
            "description": description,
            "code_snippet": code,
            "language": language or "javascript",
            "demo_type": request.demo_type.value,
            "voice_style": request.voice_style.value,
            "include_code": request.include_code,
            "include_avatar": request.include_avatar,
        })
    except HTTPException:
        raise
    except Exception as e:
        raise _http_error("Project create", e)

    if request.start:
        background_tasks.add_task(services.pipeline.run_safely, project.id)
    return project


@project_router.get("/{project_id}", response_model=Project)
async def get_project(project_id: str, services: Services = Depends(get_services)):
    try:
        return services.projects.get(project_id)
    except Exception as e:
        raise _http_error("Get project", e)


# ═════════════════════════════════════════════════════════════════════════════
# Pipeline Router
# ═════════════════════════════════════════════════════════════════════════════

pipeline_router = APIRouter(prefix="/pipeline", tags=["pipeline"])


@pipeline_router.post("/run", response_model=PipelineRunResult)
async def run_pipeline(request: PipelineRunRequest, services: Services = Depends(get_services)):
    """
    Run the pipeline to completion and return the outcome.

    Runs inside the request so the container stays alive while the avatar
    render is polled.

    Errors:
      - 404: unknown project
      - 409: already completed, or a run is in progress
    """
    try:
        return await services.pipeline.run(request.project_id)
    except Exception as e:
        raise _http_error("Pipeline run", e)


@pipeline_router.get("/status/{project_id}", response_model=PipelineRunResult)
async def get_pipeline_status(project_id: str, services: Services = Depends(get_services)):
    try:
        project = services.projects.get(project_id)
    except Exception as e:
        raise _http_error("Pipeline status", e)
    return PipelineRunResult(
        project_id=project.id,
        status=project.status,
        video_url=project.video_url,
        tavus_video_id=project.tavus_video_id,
        steps=project.pipeline_steps,
        error=project.error_message,
    )


# ═════════════════════════════════════════════════════════════════════════════
# Reconcile Router
# ═════════════════════════════════════════════════════════════════════════════

reconcile_router = APIRouter(prefix="/reconcile", tags=["reconcile"])


@reconcile_router.post("", response_model=ReconcileReport)
async def reconcile_all(services: Services = Depends(get_services)):
    try:
        return await services.sweeper.reconcile()
    except Exception as e:
        raise _http_error("Reconcile sweep", e)


@reconcile_router.post("/{project_id}", response_model=ProjectReconcileResponse)
@reconcile_router.get("/{project_id}", response_model=ProjectReconcileResponse)
async def reconcile_project(project_id: str, services: Services = Depends(get_services)):
    try:
        return await services.sweeper.reconcile_project(project_id)
    except Exception as e:
        raise _http_error("Reconcile project", e)


# ═════════════════════════════════════════════════════════════════════════════
# Conversation Router
# ═════════════════════════════════════════════════════════════════════════════

conversation_router = APIRouter(prefix="/conversations", tags=["conversations"])


@conversation_router.post("", response_model=ConversationSessionResponse)
async def create_conversation(
    request: ConversationCreateRequest,
    services: Services = Depends(get_services),
):
    try:
        return await services.conversations.create(request.session_id, request.project_id)
    except Exception as e:
        raise _http_error("Create conversation", e)


@conversation_router.post("/{session_id}/messages", response_model=ConversationReply)
async def send_message(
    session_id: str,
    request: ConversationMessageRequest,
    services: Services = Depends(get_services),
):
    try:
        return await services.conversations.message(session_id, request.message)
    except Exception as e:
        raise _http_error("Conversation message", e)


@conversation_router.post("/{session_id}/end", response_model=ConversationSessionResponse)
async def end_conversation(session_id: str, services: Services = Depends(get_services)):
    try:
        return await services.conversations.end(session_id)
    except Exception as e:
        raise _http_error("End conversation", e)
