"""
Service wiring.

Everything is built once from WorkerConfig at startup and shared by the
routes. Tests swap the whole bundle with ``set_services``.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..config import WorkerConfig
from ..elevenlabs import ElevenLabsClient
from ..github import GitHubClient
from ..provider_gateway import ProviderGateway
from ..run_lock import RunLock, connect_redis
from ..tavus import TavusClient
from .avatar import AvatarVideoGenerator
from .code_summary import GitHubCodeSummarizer
from .compose import VideoComposer
from .conversation import ConversationService
from .orchestrator import DemoPipelineService
from .project_service import ProjectStore, SessionStore, create_service_client
from .reconcile import ReconciliationSweeper
from .script_gen import ScriptGenerator
from .storage import build_storage
from .voice import VoiceSynthesizer

logger = logging.getLogger(__name__)


@dataclass
class Services:
    config: WorkerConfig
    projects: ProjectStore
    gateway: ProviderGateway
    pipeline: DemoPipelineService
    sweeper: ReconciliationSweeper
    conversations: ConversationService
    summarizer: GitHubCodeSummarizer


def build_services(config: WorkerConfig) -> Services:
    sb = create_service_client(config)
    projects = ProjectStore(sb)
    gateway = ProviderGateway.from_config(config)
    tavus = TavusClient(config)

    avatar = None
    if config.avatar_enabled:
        avatar = AvatarVideoGenerator(
            tavus,
            poll_interval=config.avatar_poll_interval,
            max_attempts=config.avatar_max_poll_attempts,
        )

    pipeline = DemoPipelineService(
        store=projects,
        scripts=ScriptGenerator(gateway),
        voice=VoiceSynthesizer(ElevenLabsClient(config), build_storage(config, sb)),
        avatar=avatar,
        composer=VideoComposer(),
        run_lock=RunLock(connect_redis(config.redis_url), config.run_lock_ttl),
    )

    logger.info(
        f"Services ready: text providers={gateway.configured() or 'none'}, "
        f"avatar={'on' if avatar else 'off'}, storage={config.storage_backend}"
    )
    return Services(
        config=config,
        projects=projects,
        gateway=gateway,
        pipeline=pipeline,
        sweeper=ReconciliationSweeper(projects, tavus),
        conversations=ConversationService(SessionStore(sb), projects, gateway, tavus),
        summarizer=GitHubCodeSummarizer(GitHubClient()),
    )


_services: Optional[Services] = None


def get_services() -> Services:
    if _services is None:
        raise RuntimeError("Services not initialised; the app lifespan has not run")
    return _services


def set_services(services: Optional[Services]) -> None:
    global _services
    _services = services
